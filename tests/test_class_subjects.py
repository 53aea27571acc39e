from datetime import date

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.academic_years.service import add_semester
from app.api.v1.academic_years.schemas import SemesterCreate
from app.api.v1.assessments import service as assessment_service
from app.api.v1.assessments.schemas import AssessmentCreate, QuestionCreate
from app.api.v1.class_subjects import service
from app.api.v1.class_subjects.schemas import ClassSubjectCreate
from app.core.exceptions import InvalidArgument, InvalidRole, InvalidState
from app.core.models import ClassSubject

from conftest import make_level, make_subject, make_user, make_year


def _payload(school: dict, subject, **overrides) -> ClassSubjectCreate:
    data = {
        "class_id": school["class"].id,
        "subject_id": subject.id,
        "teacher_id": school["teacher"].id,
        "coefficient": 2.0,
        "valid_from": date(2025, 9, 1),
    }
    data.update(overrides)
    return ClassSubjectCreate(**data)


def _windows_overlap(rows) -> bool:
    rows = sorted(rows, key=lambda r: r.valid_from)
    for earlier, later in zip(rows, rows[1:]):
        if earlier.valid_to is None or earlier.valid_to > later.valid_from:
            return True
    return False


@pytest.mark.asyncio
async def test_assign_opens_active_window(db_session: AsyncSession, school: dict) -> None:
    subject = await make_subject(db_session, school["level"], name="Mathematics")
    cs = await service.assign(db_session, _payload(school, subject))
    assert cs.is_active is True
    assert cs.valid_to is None
    assert cs.coefficient == 2.0
    assert cs.subject_name == "Mathematics"
    assert cs.teacher_name == "Alice Teacher"


@pytest.mark.asyncio
async def test_assign_rejects_overlapping_window(db_session: AsyncSession, school: dict) -> None:
    subject = await make_subject(db_session, school["level"])
    first = await service.assign(db_session, _payload(school, subject))

    with pytest.raises(InvalidArgument):
        await service.assign(db_session, _payload(school, subject, valid_from=date(2026, 1, 1)))

    await service.terminate(db_session, first.id, date(2026, 1, 1))
    # half-open windows: a new one may start on the day the previous ended
    second = await service.assign(db_session, _payload(school, subject, valid_from=date(2026, 1, 1)))
    assert second.is_active is True


@pytest.mark.asyncio
async def test_assign_validations(db_session: AsyncSession, school: dict) -> None:
    subject = await make_subject(db_session, school["level"])
    with pytest.raises(InvalidArgument):
        await service.assign(db_session, _payload(school, subject, coefficient=0))

    student = await make_user(db_session, role="student")
    with pytest.raises(InvalidRole):
        await service.assign(db_session, _payload(school, subject, teacher_id=student.id))

    other_level_subject = await make_subject(db_session, await make_level(db_session))
    with pytest.raises(InvalidArgument):
        await service.assign(db_session, _payload(school, other_level_subject))

    other_year = await make_year(db_session, name="2030-2031", start=date(2030, 9, 1), end=date(2031, 6, 30))
    foreign = await add_semester(
        db_session,
        other_year.id,
        SemesterCreate(name="S1", start_date=date(2030, 9, 1), end_date=date(2031, 1, 31), order_number=1),
    )
    with pytest.raises(InvalidArgument):
        await service.assign(db_session, _payload(school, subject, semester_id=foreign.id))


@pytest.mark.asyncio
async def test_replace_teacher_keeps_history(db_session: AsyncSession, school: dict) -> None:
    subject = await make_subject(db_session, school["level"])
    bob = await make_user(db_session, role="teacher", name="Bob Teacher")
    original = await service.assign(db_session, _payload(school, subject))

    replacement = await service.replace_teacher(db_session, original.id, bob.id, date(2026, 2, 1))

    assert replacement.id != original.id
    assert replacement.teacher_id == bob.id
    assert replacement.valid_from == date(2026, 2, 1)
    assert replacement.valid_to is None
    assert replacement.coefficient == original.coefficient

    closed = await service.get_class_subject(db_session, original.id)
    assert closed.valid_to == date(2026, 2, 1)
    assert closed.teacher_id == school["teacher"].id

    history = await service.teaching_history(db_session, school["class"].id, subject.id)
    assert [h.teacher_name for h in history] == ["Bob Teacher", "Alice Teacher"]

    rows = (
        await db_session.execute(
            select(ClassSubject).where(
                ClassSubject.class_id == school["class"].id,
                ClassSubject.subject_id == subject.id,
            )
        )
    ).scalars().all()
    assert not _windows_overlap(rows)


@pytest.mark.asyncio
async def test_replace_teacher_preconditions(db_session: AsyncSession, school: dict) -> None:
    subject = await make_subject(db_session, school["level"])
    bob = await make_user(db_session, role="teacher")
    cs = await service.assign(db_session, _payload(school, subject))

    with pytest.raises(InvalidArgument):
        await service.replace_teacher(db_session, cs.id, school["teacher"].id, date(2026, 2, 1))
    with pytest.raises(InvalidArgument):
        await service.replace_teacher(db_session, cs.id, bob.id, date(2025, 9, 1))
    with pytest.raises(InvalidRole):
        await service.replace_teacher(db_session, cs.id, (await make_user(db_session)).id, date(2026, 2, 1))

    # nothing was closed by the failed attempts
    assert (await service.get_class_subject(db_session, cs.id)).is_active is True

    await service.terminate(db_session, cs.id, date(2026, 3, 1))
    with pytest.raises(InvalidState):
        await service.replace_teacher(db_session, cs.id, bob.id, date(2026, 4, 1))


@pytest.mark.asyncio
async def test_update_coefficient_in_place(db_session: AsyncSession, school: dict) -> None:
    subject = await make_subject(db_session, school["level"])
    cs = await service.assign(db_session, _payload(school, subject))

    updated = await service.update_coefficient(db_session, cs.id, 4.0)
    assert updated.id == cs.id
    assert updated.coefficient == 4.0
    with pytest.raises(InvalidArgument):
        await service.update_coefficient(db_session, cs.id, -1)


@pytest.mark.asyncio
async def test_terminate(db_session: AsyncSession, school: dict) -> None:
    subject = await make_subject(db_session, school["level"])
    cs = await service.assign(db_session, _payload(school, subject))

    with pytest.raises(InvalidArgument):
        await service.terminate(db_session, cs.id, date(2025, 9, 1))
    closed = await service.terminate(db_session, cs.id, date(2026, 6, 30))
    assert closed.is_active is False
    with pytest.raises(InvalidState):
        await service.terminate(db_session, cs.id, date(2026, 6, 30))

    assert await service.list_class_subjects(db_session, school["class"].id, active_only=True) == []
    assert len(await service.list_class_subjects(db_session, school["class"].id)) == 1


@pytest.mark.asyncio
async def test_history_pagination(db_session: AsyncSession, school: dict) -> None:
    subject = await make_subject(db_session, school["level"])
    cs = await service.assign(db_session, _payload(school, subject))
    for month in (10, 11, 12):
        teacher = await make_user(db_session, role="teacher")
        cs = await service.replace_teacher(db_session, cs.id, teacher.id, date(2025, month, 1))

    page = await service.teaching_history(db_session, school["class"].id, subject.id, limit=2, offset=1)
    assert [h.valid_from for h in page] == [date(2025, 11, 1), date(2025, 10, 1)]


@pytest.mark.asyncio
async def test_delete_class_subject_with_assessments_refused(db_session: AsyncSession, school: dict) -> None:
    subject = await make_subject(db_session, school["level"])
    used = await service.assign(db_session, _payload(school, subject))
    await assessment_service.create_assessment(
        db_session,
        AssessmentCreate(
            class_subject_id=used.id,
            teacher_id=school["teacher"].id,
            title="Quiz 1",
            questions=[QuestionCreate(content="2+2?", points=1)],
        ),
    )
    with pytest.raises(InvalidState):
        await service.delete_class_subject(db_session, used.id)

    spare = await service.assign(db_session, _payload(school, await make_subject(db_session, school["level"])))
    await service.delete_class_subject(db_session, spare.id)
    assert len(await service.list_class_subjects(db_session, school["class"].id)) == 1
