"""Assessment service: assessments with ordered questions, and the per-student assignment lifecycle."""

import logging
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.api.v1.class_subjects.service import get_class_subject_or_404
from app.auth.rbac import has_role
from app.core.enums import AssignmentStatus, EnrollmentStatus, RoleName
from app.core.exceptions import InvalidArgument, InvalidRole, InvalidState, NotFound
from app.core.models import Assessment, AssessmentAssignment, AssessmentQuestion, Enrollment, User

from .schemas import AssessmentCreate, AssessmentResponse, AssignmentResponse, QuestionCreate, QuestionResponse

logger = logging.getLogger(__name__)


def total_points(assessment: Assessment) -> float:
    return float(sum(q.points or 0 for q in assessment.questions))


def _to_response(a: Assessment) -> AssessmentResponse:
    return AssessmentResponse(
        id=a.id,
        class_subject_id=a.class_subject_id,
        teacher_id=a.teacher_id,
        title=a.title,
        description=a.description,
        type=a.type,
        delivery_mode=a.delivery_mode,
        is_published=a.is_published,
        scheduled_at=a.scheduled_at,
        total_points=total_points(a),
        questions=[QuestionResponse.model_validate(q) for q in a.questions],
        created_at=a.created_at,
    )


def _assignment_to_response(aa: AssessmentAssignment) -> AssignmentResponse:
    return AssignmentResponse(
        id=aa.id,
        assessment_id=aa.assessment_id,
        student_id=aa.student_id,
        status=aa.status,
        started_at=aa.started_at,
        submitted_at=aa.submitted_at,
        graded_at=aa.graded_at,
        score=aa.score,
        teacher_notes=aa.teacher_notes,
    )


async def _get_assessment_or_404(db: AsyncSession, assessment_id: UUID) -> Assessment:
    result = await db.execute(
        select(Assessment)
        .where(Assessment.id == assessment_id)
        .options(selectinload(Assessment.questions))
        .execution_options(populate_existing=True)
    )
    obj = result.scalar_one_or_none()
    if not obj:
        raise NotFound("Assessment not found")
    return obj


async def _get_assignment_or_404(db: AsyncSession, assignment_id: UUID) -> AssessmentAssignment:
    result = await db.execute(
        select(AssessmentAssignment)
        .where(AssessmentAssignment.id == assignment_id)
        .options(selectinload(AssessmentAssignment.assessment).selectinload(Assessment.questions))
        .execution_options(populate_existing=True)
    )
    obj = result.scalar_one_or_none()
    if not obj:
        raise NotFound("Assignment not found")
    return obj


def _build_questions(items: List[QuestionCreate], start: int = 1) -> List[AssessmentQuestion]:
    return [
        AssessmentQuestion(content=item.content.strip(), points=item.points, order_number=start + i)
        for i, item in enumerate(items)
    ]


async def create_assessment(db: AsyncSession, payload: AssessmentCreate) -> AssessmentResponse:
    await get_class_subject_or_404(db, payload.class_subject_id)
    teacher = await db.get(User, payload.teacher_id)
    if not teacher:
        raise NotFound("Teacher not found")
    if not has_role(teacher, RoleName.TEACHER):
        raise InvalidRole("Only teachers can own assessments")
    obj = Assessment(
        class_subject_id=payload.class_subject_id,
        teacher_id=payload.teacher_id,
        title=payload.title.strip(),
        description=payload.description,
        type=payload.type.value,
        delivery_mode=payload.delivery_mode.value,
        settings={"is_published": payload.is_published},
        scheduled_at=payload.scheduled_at,
    )
    obj.questions = _build_questions(payload.questions)
    db.add(obj)
    await db.commit()
    logger.info("Assessment '%s' created under class-subject %s", obj.title, obj.class_subject_id)
    return _to_response(await _get_assessment_or_404(db, obj.id))


async def get_assessment(db: AsyncSession, assessment_id: UUID) -> AssessmentResponse:
    return _to_response(await _get_assessment_or_404(db, assessment_id))


async def list_assessments(db: AsyncSession, class_subject_id: UUID) -> List[AssessmentResponse]:
    result = await db.execute(
        select(Assessment)
        .where(Assessment.class_subject_id == class_subject_id)
        .options(selectinload(Assessment.questions))
        .order_by(Assessment.created_at.desc())
    )
    return [_to_response(a) for a in result.scalars().all()]


async def add_questions(db: AsyncSession, assessment_id: UUID, items: List[QuestionCreate]) -> AssessmentResponse:
    """Append questions. Locked once any student has been graded, since totals would shift."""
    assessment = await _get_assessment_or_404(db, assessment_id)
    graded = await db.execute(
        select(AssessmentAssignment.id).where(
            AssessmentAssignment.assessment_id == assessment_id,
            AssessmentAssignment.graded_at.is_not(None),
        )
    )
    if graded.first() is not None:
        raise InvalidState("Assessment has graded assignments; questions are locked")
    start = max((q.order_number for q in assessment.questions), default=0) + 1
    for question in _build_questions(items, start=start):
        question.assessment_id = assessment.id
        db.add(question)
    await db.commit()
    return _to_response(await _get_assessment_or_404(db, assessment_id))


async def publish_assessment(db: AsyncSession, assessment_id: UUID) -> AssessmentResponse:
    assessment = await _get_assessment_or_404(db, assessment_id)
    if assessment.is_published:
        raise InvalidState("Assessment is already published")
    # reassign so the JSON column is flagged dirty
    assessment.settings = {**(assessment.settings or {}), "is_published": True}
    await db.commit()
    logger.info("Assessment %s published", assessment.id)
    return _to_response(await _get_assessment_or_404(db, assessment_id))


async def start_assignment(db: AsyncSession, assessment_id: UUID, student_id: UUID) -> AssignmentResponse:
    assessment = await _get_assessment_or_404(db, assessment_id)
    if not assessment.is_published:
        raise InvalidState("Assessment is not published")
    student = await db.get(User, student_id)
    if not student:
        raise NotFound("Student not found")
    if not has_role(student, RoleName.STUDENT):
        raise InvalidRole("User does not have the student role")
    class_subject = await get_class_subject_or_404(db, assessment.class_subject_id)
    enrolled = await db.execute(
        select(Enrollment.id).where(
            Enrollment.student_id == student_id,
            Enrollment.class_id == class_subject.class_id,
            Enrollment.status == EnrollmentStatus.ACTIVE.value,
        )
    )
    if enrolled.first() is None:
        raise InvalidState("Student is not actively enrolled in this class")

    existing = await db.execute(
        select(AssessmentAssignment).where(
            AssessmentAssignment.assessment_id == assessment_id,
            AssessmentAssignment.student_id == student_id,
        )
    )
    assignment = existing.scalar_one_or_none()
    if assignment is None:
        assignment = AssessmentAssignment(assessment_id=assessment_id, student_id=student_id)
        db.add(assignment)
    elif assignment.status != AssignmentStatus.NOT_STARTED:
        raise InvalidState(f"Assignment already {assignment.status.value}")
    assignment.started_at = datetime.utcnow()
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise InvalidState("Assignment already exists for this student")
    return _assignment_to_response(await _get_assignment_or_404(db, assignment.id))


async def submit_assignment(db: AsyncSession, assignment_id: UUID) -> AssignmentResponse:
    assignment = await _get_assignment_or_404(db, assignment_id)
    if assignment.status != AssignmentStatus.IN_PROGRESS:
        raise InvalidState(f"Cannot submit an assignment that is {assignment.status.value}")
    assignment.submitted_at = datetime.utcnow()
    await db.commit()
    return _assignment_to_response(await _get_assignment_or_404(db, assignment_id))


async def grade_assignment(
    db: AsyncSession,
    assignment_id: UUID,
    score: float,
    teacher_notes: Optional[str] = None,
) -> AssignmentResponse:
    """Grade (or re-grade) a submitted assignment. Score is raw points out of the assessment total."""
    assignment = await _get_assignment_or_404(db, assignment_id)
    if assignment.status.rank < AssignmentStatus.SUBMITTED.rank:
        raise InvalidState("Only submitted assignments can be graded")
    max_points = total_points(assignment.assessment)
    if score < 0 or score > max_points:
        raise InvalidArgument(f"Score must be between 0 and {max_points:g}")
    assignment.score = score
    assignment.graded_at = datetime.utcnow()
    if teacher_notes is not None:
        assignment.teacher_notes = teacher_notes
    await db.commit()
    logger.info("Assignment %s graded: %s/%s", assignment.id, score, max_points)
    return _assignment_to_response(await _get_assignment_or_404(db, assignment_id))


async def get_assignment(db: AsyncSession, assignment_id: UUID) -> AssignmentResponse:
    return _assignment_to_response(await _get_assignment_or_404(db, assignment_id))
