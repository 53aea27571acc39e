from datetime import date

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.assessments import service as assessment_service
from app.api.v1.assessments.schemas import AssessmentCreate, QuestionCreate
from app.api.v1.class_subjects import service as class_subject_service
from app.api.v1.class_subjects.schemas import ClassSubjectCreate
from app.api.v1.enrollments.service import enroll, withdraw
from app.api.v1.grades import service
from app.api.v1.grades.service import subject_average, weighted_average
from app.core.enums import AssignmentStatus

from conftest import make_subject, make_user, make_year


async def _teach(db: AsyncSession, school: dict, name: str, coefficient: float):
    subject = await make_subject(db, school["level"], name=name)
    return await class_subject_service.assign(
        db,
        ClassSubjectCreate(
            class_id=school["class"].id,
            subject_id=subject.id,
            teacher_id=school["teacher"].id,
            coefficient=coefficient,
            valid_from=date(2025, 9, 1),
        ),
    )


async def _assessment(db: AsyncSession, school: dict, class_subject_id, title: str = "Exam", points: float = 20):
    return await assessment_service.create_assessment(
        db,
        AssessmentCreate(
            class_subject_id=class_subject_id,
            teacher_id=school["teacher"].id,
            title=title,
            is_published=True,
            questions=[QuestionCreate(content="Answer everything", points=points)],
        ),
    )


async def _complete(db: AsyncSession, assessment_id, student_id, score=None):
    """Start and submit; grade too when a score is given."""
    aa = await assessment_service.start_assignment(db, assessment_id, student_id)
    await assessment_service.submit_assignment(db, aa.id)
    if score is not None:
        await assessment_service.grade_assignment(db, aa.id, score)
    return aa


def test_subject_average_normalises_to_scale() -> None:
    assert subject_average([(15, 20), (5, 10)], scale=20) == round(20 / 30 * 20, 2)
    assert subject_average([(8, 10)], scale=100) == 80.0


def test_subject_average_without_grades_is_none() -> None:
    assert subject_average([]) is None
    assert subject_average([(0, 0)]) is None


def test_weighted_average_skips_missing_subjects() -> None:
    assert weighted_average([(16.0, 2), (10.0, 1)]) == (14.0, 3)
    assert weighted_average([(12.0, 1), (None, 3)]) == (12.0, 1)
    assert weighted_average([(None, 3)]) == (None, 0.0)


@pytest.mark.asyncio
async def test_annual_average_is_coefficient_weighted(db_session: AsyncSession, school: dict) -> None:
    maths = await _teach(db_session, school, "Mathematics", coefficient=2)
    history = await _teach(db_session, school, "History", coefficient=1)
    student = await make_user(db_session)
    await enroll(db_session, student.id, school["class"].id)

    exam_m = await _assessment(db_session, school, maths.id)
    exam_h = await _assessment(db_session, school, history.id)
    await _complete(db_session, exam_m.id, student.id, score=16)
    await _complete(db_session, exam_h.id, student.id, score=10)

    breakdown = await service.grade_breakdown(db_session, student.id, school["class"].id)

    by_name = {s.subject_name: s for s in breakdown.subjects}
    assert by_name["Mathematics"].average == 16.0
    assert by_name["History"].average == 10.0
    assert breakdown.annual_average == 14.0
    assert breakdown.total_coefficient == 3
    assert breakdown.total_assessments == 2
    assert breakdown.completed_assessments == 2


@pytest.mark.asyncio
async def test_ungraded_subject_is_excluded_not_zeroed(db_session: AsyncSession, school: dict) -> None:
    graded_cs = await _teach(db_session, school, "Physics", coefficient=1)
    pending_cs = await _teach(db_session, school, "Chemistry", coefficient=3)
    student = await make_user(db_session)
    await enroll(db_session, student.id, school["class"].id)

    await _complete(db_session, (await _assessment(db_session, school, graded_cs.id)).id, student.id, score=12)
    await _complete(db_session, (await _assessment(db_session, school, pending_cs.id)).id, student.id)

    breakdown = await service.grade_breakdown(db_session, student.id, school["class"].id)

    by_name = {s.subject_name: s for s in breakdown.subjects}
    assert by_name["Chemistry"].average is None
    assert by_name["Chemistry"].completed_count == 1
    assert breakdown.annual_average == 12.0
    assert breakdown.total_coefficient == 1


@pytest.mark.asyncio
async def test_breakdown_spans_teacher_replacement(db_session: AsyncSession, school: dict) -> None:
    cs = await _teach(db_session, school, "Biology", coefficient=2)
    student = await make_user(db_session)
    await enroll(db_session, student.id, school["class"].id)
    await _complete(db_session, (await _assessment(db_session, school, cs.id, "Before")).id, student.id, score=10)

    bob = await make_user(db_session, role="teacher", name="Bob Teacher")
    new_cs = await class_subject_service.replace_teacher(db_session, cs.id, bob.id, date(2026, 2, 1))
    await _complete(db_session, (await _assessment(db_session, school, new_cs.id, "After")).id, student.id, score=20)

    breakdown = await service.grade_breakdown(db_session, student.id, school["class"].id)

    assert len(breakdown.subjects) == 1
    biology = breakdown.subjects[0]
    assert biology.class_subject_id == new_cs.id
    assert biology.teacher_name == "Bob Teacher"
    assert biology.assessments_count == 2
    assert biology.average == 15.0


@pytest.mark.asyncio
async def test_breakdown_without_subjects(db_session: AsyncSession, school: dict) -> None:
    student = await make_user(db_session)
    breakdown = await service.grade_breakdown(db_session, student.id, school["class"].id)
    assert breakdown.subjects == []
    assert breakdown.annual_average is None
    assert breakdown.total_coefficient == 0.0


@pytest.mark.asyncio
async def test_student_overview(db_session: AsyncSession, school: dict) -> None:
    cs = await _teach(db_session, school, "Geography", coefficient=1)
    student = await make_user(db_session)

    empty = await service.student_overview(db_session, student.id)
    assert empty.enrollment_id is None
    assert empty.subjects == []

    enrollment = await enroll(db_session, student.id, school["class"].id)
    await _complete(db_session, (await _assessment(db_session, school, cs.id)).id, student.id, score=18)

    overview = await service.student_overview(db_session, student.id)
    assert overview.enrollment_id == enrollment.id
    assert overview.overall_average == 18.0

    other_year = await make_year(db_session, name="2019-2020")
    assert (await service.student_overview(db_session, student.id, other_year.id)).class_id is None


@pytest.mark.asyncio
async def test_class_results(db_session: AsyncSession, school: dict) -> None:
    cs = await _teach(db_session, school, "Mathematics", coefficient=1)
    ann = await make_user(db_session, name="Ann")
    bob = await make_user(db_session, name="Bob")
    cid = await make_user(db_session, name="Cid")
    dan = await make_user(db_session, name="Dan")
    for student in (ann, bob, cid, dan):
        await enroll(db_session, student.id, school["class"].id)
    left = await enroll(db_session, (await make_user(db_session, name="Eve")).id, school["class"].id)

    exam = await _assessment(db_session, school, cs.id)
    await _complete(db_session, exam.id, ann.id, score=10)
    await _complete(db_session, exam.id, bob.id, score=20)
    await _complete(db_session, exam.id, cid.id)
    await withdraw(db_session, left.id)

    results = await service.class_results(db_session, school["class"].id)

    assert results.overview.total_students == 4
    assert results.overview.total_assessments == 1
    stats = results.assessment_stats[0]
    assert stats.total_assigned == 4
    assert stats.graded == 2
    assert stats.submitted == 1
    assert stats.not_started == 1
    assert stats.scores.min == 10
    assert stats.scores.max == 20
    assert stats.scores.mean == 15.0
    assert stats.completion_rate == 50.0
    assert results.overview.average_score == 15.0

    assert [s.student_name for s in results.student_stats] == ["Ann", "Bob", "Cid", "Dan"]
    by_name = {s.student_name: s for s in results.student_stats}
    assert by_name["Ann"].annual_average == 10.0
    assert by_name["Bob"].graded_count == 1
    assert by_name["Cid"].annual_average is None
    assert by_name["Dan"].completed_assessments == 0


@pytest.mark.asyncio
async def test_class_results_without_grades(db_session: AsyncSession, school: dict) -> None:
    cs = await _teach(db_session, school, "Art", coefficient=1)
    await _assessment(db_session, school, cs.id)
    await enroll(db_session, (await make_user(db_session)).id, school["class"].id)

    results = await service.class_results(db_session, school["class"].id)
    stats = results.assessment_stats[0]
    assert stats.scores.min is None and stats.scores.mean is None
    assert stats.not_started == 1
    assert results.overview.average_score is None
    assert results.overview.completion_rate == 0.0


@pytest.mark.asyncio
async def test_assessment_summary(db_session: AsyncSession, school: dict) -> None:
    cs = await _teach(db_session, school, "Music", coefficient=1)
    student = await make_user(db_session)
    await enroll(db_session, student.id, school["class"].id)
    quiz = await _assessment(db_session, school, cs.id, "Quiz", points=10)
    exam = await _assessment(db_session, school, cs.id, "Exam", points=40)
    await _complete(db_session, quiz.id, student.id, score=7)
    await assessment_service.start_assignment(db_session, exam.id, student.id)

    items = await service.assessment_summary(db_session, student.id)

    by_title = {i.title: i for i in items}
    assert by_title["Quiz"].normalized_grade == 14.0
    assert by_title["Quiz"].raw_score == 7
    assert by_title["Quiz"].max_points == 10
    assert by_title["Quiz"].status == AssignmentStatus.GRADED
    assert by_title["Exam"].normalized_grade is None
    assert by_title["Exam"].status == AssignmentStatus.IN_PROGRESS
    assert by_title["Exam"].subject_name == "Music"


@pytest.mark.asyncio
async def test_class_subject_average_skips_ungraded_students(db_session: AsyncSession, school: dict) -> None:
    maths = await _teach(db_session, school, "Mathematics", coefficient=2)
    drawing = await _teach(db_session, school, "Drawing", coefficient=1)
    graded = await make_user(db_session, name="Graded")
    pending = await make_user(db_session, name="Pending")
    for student in (graded, pending):
        await enroll(db_session, student.id, school["class"].id)

    exam = await _assessment(db_session, school, maths.id)
    await _assessment(db_session, school, drawing.id)
    await _complete(db_session, exam.id, graded.id, score=14)
    await _complete(db_session, exam.id, pending.id)

    results = await service.class_results(db_session, school["class"].id)

    by_name = {s.subject_name: s for s in results.subject_stats}
    assert by_name["Mathematics"].class_average == 14.0
    assert by_name["Mathematics"].graded_students == 1
    assert by_name["Mathematics"].coefficient == 2
    assert by_name["Drawing"].class_average is None
    assert by_name["Drawing"].graded_students == 0
