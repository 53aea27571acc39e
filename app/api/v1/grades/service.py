"""
Grade aggregation.

Subject average (on settings.grade_scale, /20 by default):
    average = Σ score_i / Σ total_points_i × scale, over graded assignments only.
Annual average:
    annual = Σ(average_s × coefficient_s) / Σ coefficient_s, over subjects whose average is not null.
A subject with nothing graded is left out of both sums rather than counted as zero.
"""

from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.api.v1.assessments.service import total_points
from app.api.v1.classes.service import get_class_or_404
from app.api.v1.enrollments.service import find_active_enrollment
from app.core.config import settings
from app.core.enums import AssignmentStatus, EnrollmentStatus
from app.core.exceptions import NotFound
from app.core.models import (
    AcademicYear,
    Assessment,
    AssessmentAssignment,
    ClassSubject,
    Enrollment,
    SchoolClass,
    User,
)

from .schemas import (
    AssessmentStats,
    AssessmentSummaryItem,
    ClassResults,
    ClassResultsOverview,
    GradeBreakdown,
    ScoreDistribution,
    StudentOverview,
    StudentResult,
    SubjectClassStats,
    SubjectGrade,
)


def subject_average(graded: Iterable[Tuple[float, float]], scale: Optional[int] = None) -> Optional[float]:
    """graded: (score, total_points) pairs. Pairs with no points are ignored."""
    scale = settings.grade_scale if scale is None else scale
    score_sum = 0.0
    points_sum = 0.0
    for score, points in graded:
        if points and points > 0:
            score_sum += score
            points_sum += points
    if points_sum <= 0:
        return None
    return round(score_sum / points_sum * scale, 2)


def weighted_average(values: Iterable[Tuple[Optional[float], float]]) -> Tuple[Optional[float], float]:
    """(average, coefficient) pairs -> (coefficient-weighted mean, Σ contributing coefficients)."""
    weighted_sum = 0.0
    coefficient_sum = 0.0
    for average, coefficient in values:
        if average is None:
            continue
        weighted_sum += average * coefficient
        coefficient_sum += coefficient
    if coefficient_sum <= 0:
        return None, 0.0
    return round(weighted_sum / coefficient_sum, 2), coefficient_sum


def _mean(values: Sequence[float]) -> Optional[float]:
    if not values:
        return None
    return round(sum(values) / len(values), 2)


async def _load_year(db: AsyncSession, school_class: SchoolClass) -> AcademicYear:
    ay = await db.get(AcademicYear, school_class.academic_year_id)
    if not ay:
        raise NotFound("Academic year not found")
    return ay


async def _load_class_subjects(db: AsyncSession, school_class: SchoolClass) -> List[ClassSubject]:
    """Every teaching window of the class that overlaps its academic year, with assessments and questions."""
    ay = await _load_year(db, school_class)
    result = await db.execute(
        select(ClassSubject)
        .where(
            ClassSubject.class_id == school_class.id,
            ClassSubject.valid_from <= ay.end_date,
            or_(ClassSubject.valid_to.is_(None), ClassSubject.valid_to > ay.start_date),
        )
        .options(
            selectinload(ClassSubject.subject),
            selectinload(ClassSubject.teacher),
            selectinload(ClassSubject.assessments).selectinload(Assessment.questions),
        )
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


def _group_by_subject(rows: List[ClassSubject]) -> List[List[ClassSubject]]:
    """One group per subject, newest window first, groups sorted by subject name."""
    groups: Dict[UUID, List[ClassSubject]] = defaultdict(list)
    for row in rows:
        groups[row.subject_id].append(row)
    ordered = []
    for windows in groups.values():
        windows.sort(key=lambda cs: cs.valid_from, reverse=True)
        ordered.append(windows)
    ordered.sort(key=lambda windows: windows[0].subject.name if windows[0].subject else "")
    return ordered


async def _load_assignments(
    db: AsyncSession,
    assessment_ids: List[UUID],
    student_ids: List[UUID],
) -> Dict[Tuple[UUID, UUID], AssessmentAssignment]:
    if not assessment_ids or not student_ids:
        return {}
    result = await db.execute(
        select(AssessmentAssignment).where(
            AssessmentAssignment.assessment_id.in_(assessment_ids),
            AssessmentAssignment.student_id.in_(student_ids),
        )
    )
    return {(aa.assessment_id, aa.student_id): aa for aa in result.scalars().all()}


def _build_breakdown(
    student: User,
    school_class: SchoolClass,
    groups: List[List[ClassSubject]],
    assignments: Dict[Tuple[UUID, UUID], AssessmentAssignment],
) -> GradeBreakdown:
    subjects: List[SubjectGrade] = []
    for windows in groups:
        newest = windows[0]
        assessments = [a for cs in windows for a in cs.assessments]
        graded = []
        completed = 0
        for assessment in assessments:
            aa = assignments.get((assessment.id, student.id))
            if aa is None:
                continue
            if aa.submitted_at is not None:
                completed += 1
            if aa.graded_at is not None and aa.score is not None:
                graded.append((aa.score, total_points(assessment)))
        subjects.append(
            SubjectGrade(
                subject_id=newest.subject_id,
                class_subject_id=newest.id,
                subject_name=newest.subject.name if newest.subject else "-",
                teacher_name=newest.teacher.full_name if newest.teacher else None,
                coefficient=newest.coefficient,
                average=subject_average(graded),
                assessments_count=len(assessments),
                completed_count=completed,
            )
        )
    annual, total_coefficient = weighted_average((s.average, s.coefficient) for s in subjects)
    return GradeBreakdown(
        student_id=student.id,
        student_name=student.full_name,
        class_id=school_class.id,
        class_name=school_class.name,
        subjects=subjects,
        annual_average=annual,
        total_coefficient=total_coefficient,
        total_assessments=sum(s.assessments_count for s in subjects),
        completed_assessments=sum(s.completed_count for s in subjects),
    )


async def grade_breakdown(db: AsyncSession, student_id: UUID, class_id: UUID) -> GradeBreakdown:
    student = await db.get(User, student_id)
    if not student:
        raise NotFound("Student not found")
    school_class = await get_class_or_404(db, class_id)
    rows = await _load_class_subjects(db, school_class)
    assessment_ids = [a.id for cs in rows for a in cs.assessments]
    assignments = await _load_assignments(db, assessment_ids, [student.id])
    return _build_breakdown(student, school_class, _group_by_subject(rows), assignments)


async def student_overview(
    db: AsyncSession,
    student_id: UUID,
    academic_year_id: Optional[UUID] = None,
) -> StudentOverview:
    """Breakdown for the student's active enrollment (current year by default); empty when not enrolled."""
    enrollment = await find_active_enrollment(db, student_id, academic_year_id)
    if enrollment is None:
        return StudentOverview(student_id=student_id)
    breakdown = await grade_breakdown(db, student_id, enrollment.class_id)
    return StudentOverview(
        student_id=student_id,
        enrollment_id=enrollment.id,
        class_id=enrollment.class_id,
        overall_average=breakdown.annual_average,
        total_assessments=breakdown.total_assessments,
        completed_assessments=breakdown.completed_assessments,
        subjects=breakdown.subjects,
    )


def _assessment_stats(
    assessment: Assessment,
    subject_name: str,
    students: List[User],
    assignments: Dict[Tuple[UUID, UUID], AssessmentAssignment],
) -> AssessmentStats:
    counts = {status: 0 for status in AssignmentStatus}
    scores: List[float] = []
    for student in students:
        aa = assignments.get((assessment.id, student.id))
        status = aa.status if aa is not None else AssignmentStatus.NOT_STARTED
        counts[status] += 1
        if status == AssignmentStatus.GRADED and aa.score is not None:
            scores.append(aa.score)
    total = len(students)
    graded = counts[AssignmentStatus.GRADED]
    return AssessmentStats(
        id=assessment.id,
        title=assessment.title,
        type=assessment.type,
        subject_name=subject_name,
        scheduled_at=assessment.scheduled_at,
        total_points=total_points(assessment),
        total_assigned=total,
        not_started=counts[AssignmentStatus.NOT_STARTED],
        in_progress=counts[AssignmentStatus.IN_PROGRESS],
        submitted=counts[AssignmentStatus.SUBMITTED],
        graded=graded,
        scores=ScoreDistribution(
            min=min(scores) if scores else None,
            max=max(scores) if scores else None,
            mean=_mean(scores),
        ),
        completion_rate=round(graded / total * 100, 2) if total else 0.0,
    )


async def class_results(db: AsyncSession, class_id: UUID) -> ClassResults:
    """Read-only report: per-assessment status counts and score spread, per-student breakdown summary."""
    school_class = await get_class_or_404(db, class_id)
    enrollment_rows = await db.execute(
        select(Enrollment, User)
        .join(User, User.id == Enrollment.student_id)
        .where(
            Enrollment.class_id == class_id,
            Enrollment.status == EnrollmentStatus.ACTIVE.value,
        )
        .order_by(User.full_name)
    )
    enrolled = enrollment_rows.all()
    students = [user for _, user in enrolled]

    rows = await _load_class_subjects(db, school_class)
    groups = _group_by_subject(rows)
    assessment_ids = [a.id for cs in rows for a in cs.assessments]
    assignments = await _load_assignments(db, assessment_ids, [s.id for s in students])

    assessment_stats: List[AssessmentStats] = []
    for windows in groups:
        subject_name = windows[0].subject.name if windows[0].subject else "-"
        for cs in windows:
            for assessment in cs.assessments:
                assessment_stats.append(_assessment_stats(assessment, subject_name, students, assignments))

    graded_by_student: Dict[UUID, int] = defaultdict(int)
    for (_, student_id), aa in assignments.items():
        if aa.graded_at is not None:
            graded_by_student[student_id] += 1

    subject_averages: Dict[UUID, List[float]] = defaultdict(list)
    student_stats: List[StudentResult] = []
    for enrollment, student in enrolled:
        breakdown = _build_breakdown(student, school_class, groups, assignments)
        for subject in breakdown.subjects:
            if subject.average is not None:
                subject_averages[subject.subject_id].append(subject.average)
        graded_count = graded_by_student[student.id]
        student_stats.append(
            StudentResult(
                student_id=student.id,
                student_name=student.full_name,
                enrollment_id=enrollment.id,
                annual_average=breakdown.annual_average,
                total_assessments=breakdown.total_assessments,
                completed_assessments=breakdown.completed_assessments,
                graded_count=graded_count,
            )
        )

    subject_stats = [
        SubjectClassStats(
            subject_id=windows[0].subject_id,
            subject_name=windows[0].subject.name if windows[0].subject else "-",
            coefficient=windows[0].coefficient,
            class_average=_mean(subject_averages[windows[0].subject_id]),
            graded_students=len(subject_averages[windows[0].subject_id]),
        )
        for windows in groups
    ]

    means = [s.scores.mean for s in assessment_stats if s.scores.mean is not None]
    overview = ClassResultsOverview(
        total_students=len(students),
        total_assessments=len(assessment_stats),
        average_score=_mean(means),
        completion_rate=_mean([s.completion_rate for s in assessment_stats]) or 0.0,
    )
    return ClassResults(
        class_id=school_class.id,
        class_name=school_class.name,
        overview=overview,
        assessment_stats=assessment_stats,
        subject_stats=subject_stats,
        student_stats=student_stats,
    )


async def assessment_summary(
    db: AsyncSession,
    student_id: UUID,
    academic_year_id: Optional[UUID] = None,
) -> List[AssessmentSummaryItem]:
    """Every assignment of the student with raw score and grade normalised to the scale."""
    stmt = (
        select(AssessmentAssignment)
        .join(Assessment, Assessment.id == AssessmentAssignment.assessment_id)
        .join(ClassSubject, ClassSubject.id == Assessment.class_subject_id)
        .join(SchoolClass, SchoolClass.id == ClassSubject.class_id)
        .where(AssessmentAssignment.student_id == student_id)
        .options(
            selectinload(AssessmentAssignment.assessment).selectinload(Assessment.questions),
            selectinload(AssessmentAssignment.assessment)
            .selectinload(Assessment.class_subject)
            .selectinload(ClassSubject.subject),
            selectinload(AssessmentAssignment.assessment)
            .selectinload(Assessment.class_subject)
            .selectinload(ClassSubject.school_class),
        )
        .order_by(Assessment.created_at.desc())
    )
    if academic_year_id is not None:
        stmt = stmt.where(SchoolClass.academic_year_id == academic_year_id)
    result = await db.execute(stmt)

    items: List[AssessmentSummaryItem] = []
    for aa in result.scalars().all():
        assessment = aa.assessment
        max_points = total_points(assessment)
        normalized = None
        if aa.graded_at is not None and aa.score is not None and max_points > 0:
            normalized = round(aa.score / max_points * settings.grade_scale, 2)
        class_subject = assessment.class_subject
        items.append(
            AssessmentSummaryItem(
                assignment_id=aa.id,
                assessment_id=assessment.id,
                title=assessment.title,
                type=assessment.type,
                subject_name=class_subject.subject.name if class_subject.subject else None,
                class_name=class_subject.school_class.name if class_subject.school_class else None,
                raw_score=aa.score,
                max_points=max_points,
                normalized_grade=normalized,
                status=aa.status,
                submitted_at=aa.submitted_at,
                graded_at=aa.graded_at,
            )
        )
    return items
