import logging
from datetime import date
from typing import List, Optional
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.api.v1.classes.service import get_class_or_404
from app.auth.rbac import has_role
from app.core.config import settings
from app.core.enums import RoleName
from app.core.exceptions import InvalidArgument, InvalidRole, InvalidState, NotFound
from app.core.models import Assessment, ClassSubject, Semester, Subject, User

from .schemas import ClassSubjectCreate, ClassSubjectResponse

logger = logging.getLogger(__name__)


def _to_response(cs: ClassSubject) -> ClassSubjectResponse:
    return ClassSubjectResponse(
        id=cs.id,
        class_id=cs.class_id,
        subject_id=cs.subject_id,
        teacher_id=cs.teacher_id,
        semester_id=cs.semester_id,
        coefficient=cs.coefficient,
        valid_from=cs.valid_from,
        valid_to=cs.valid_to,
        is_active=cs.valid_to is None,
        created_at=cs.created_at,
        subject_name=cs.subject.name if cs.subject is not None else None,
        teacher_name=cs.teacher.full_name if cs.teacher is not None else None,
    )


def _with_names(stmt):
    return stmt.options(selectinload(ClassSubject.subject), selectinload(ClassSubject.teacher))


async def get_class_subject_or_404(db: AsyncSession, class_subject_id: UUID) -> ClassSubject:
    result = await db.execute(
        _with_names(select(ClassSubject).where(ClassSubject.id == class_subject_id)).execution_options(
            populate_existing=True
        )
    )
    obj = result.scalar_one_or_none()
    if not obj:
        raise NotFound("Class-subject assignment not found")
    return obj


async def _get_teacher(db: AsyncSession, teacher_id: UUID) -> User:
    teacher = await db.get(User, teacher_id)
    if not teacher:
        raise NotFound("Teacher not found")
    if not has_role(teacher, RoleName.TEACHER):
        raise InvalidRole("User does not have the teacher role")
    return teacher


def _validate_coefficient(value: float) -> None:
    if value is None or value <= 0:
        raise InvalidArgument("Coefficient must be greater than 0")


async def assign(db: AsyncSession, payload: ClassSubjectCreate) -> ClassSubjectResponse:
    """Open a teaching window for (class, subject). Refused if it would overlap an existing window."""
    _validate_coefficient(payload.coefficient)
    school_class = await get_class_or_404(db, payload.class_id)
    subject = await db.get(Subject, payload.subject_id)
    if not subject:
        raise NotFound("Subject not found")
    if subject.level_id is not None and subject.level_id != school_class.level_id:
        raise InvalidArgument("Subject level does not match the class level")
    await _get_teacher(db, payload.teacher_id)
    if payload.semester_id is not None:
        semester = await db.get(Semester, payload.semester_id)
        if not semester or semester.academic_year_id != school_class.academic_year_id:
            raise InvalidArgument("Semester does not belong to the class academic year")

    valid_from = payload.valid_from or date.today()
    overlapping = await db.scalar(
        select(func.count(ClassSubject.id)).where(
            ClassSubject.class_id == payload.class_id,
            ClassSubject.subject_id == payload.subject_id,
            or_(ClassSubject.valid_to.is_(None), ClassSubject.valid_to > valid_from),
        )
    )
    if overlapping:
        raise InvalidArgument("This subject already has a teaching assignment for this class over that period")

    obj = ClassSubject(
        class_id=payload.class_id,
        subject_id=payload.subject_id,
        teacher_id=payload.teacher_id,
        semester_id=payload.semester_id,
        coefficient=payload.coefficient,
        valid_from=valid_from,
        valid_to=None,
    )
    db.add(obj)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise InvalidArgument("Invalid class-subject assignment")
    logger.info("Teacher %s assigned to subject %s in class %s", payload.teacher_id, subject.code, school_class.name)
    return _to_response(await get_class_subject_or_404(db, obj.id))


async def replace_teacher(
    db: AsyncSession,
    class_subject_id: UUID,
    new_teacher_id: UUID,
    effective_date: Optional[date] = None,
) -> ClassSubjectResponse:
    """Close the current window at effective_date and open a new one for the new teacher (one commit)."""
    current = await get_class_subject_or_404(db, class_subject_id)
    if current.valid_to is not None:
        raise InvalidState("This assignment has already been terminated")
    if current.teacher_id == new_teacher_id:
        raise InvalidArgument("New teacher is the same as the current teacher")
    effective_date = effective_date or date.today()
    if effective_date <= current.valid_from:
        raise InvalidArgument("Effective date must be after the start of the current assignment")
    await _get_teacher(db, new_teacher_id)

    current.valid_to = effective_date
    replacement = ClassSubject(
        class_id=current.class_id,
        subject_id=current.subject_id,
        teacher_id=new_teacher_id,
        semester_id=current.semester_id,
        coefficient=current.coefficient,
        valid_from=effective_date,
        valid_to=None,
    )
    db.add(replacement)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise InvalidArgument("Teacher replacement failed")
    logger.info(
        "Class-subject %s: teacher %s replaced by %s from %s",
        current.id,
        current.teacher_id,
        new_teacher_id,
        effective_date,
    )
    return _to_response(await get_class_subject_or_404(db, replacement.id))


async def update_coefficient(db: AsyncSession, class_subject_id: UUID, coefficient: float) -> ClassSubjectResponse:
    """In-place update; coefficient changes are not versioned."""
    _validate_coefficient(coefficient)
    obj = await get_class_subject_or_404(db, class_subject_id)
    previous = obj.coefficient
    obj.coefficient = coefficient
    await db.commit()
    logger.info("Class-subject %s coefficient %s -> %s", obj.id, previous, coefficient)
    return _to_response(await get_class_subject_or_404(db, class_subject_id))


async def terminate(
    db: AsyncSession,
    class_subject_id: UUID,
    end_date: Optional[date] = None,
) -> ClassSubjectResponse:
    obj = await get_class_subject_or_404(db, class_subject_id)
    if obj.valid_to is not None:
        raise InvalidState("This assignment has already been terminated")
    end_date = end_date or date.today()
    if end_date <= obj.valid_from:
        raise InvalidArgument("End date must be after valid_from")
    obj.valid_to = end_date
    await db.commit()
    logger.info("Class-subject %s terminated on %s", obj.id, end_date)
    return _to_response(await get_class_subject_or_404(db, class_subject_id))


async def teaching_history(
    db: AsyncSession,
    class_id: UUID,
    subject_id: UUID,
    limit: Optional[int] = None,
    offset: int = 0,
) -> List[ClassSubjectResponse]:
    """Every window for (class, subject), newest valid_from first."""
    stmt = _with_names(
        select(ClassSubject).where(
            ClassSubject.class_id == class_id,
            ClassSubject.subject_id == subject_id,
        )
    )
    stmt = stmt.order_by(ClassSubject.valid_from.desc()).offset(offset).limit(limit or settings.default_page_size)
    result = await db.execute(stmt)
    return [_to_response(cs) for cs in result.scalars().all()]


async def list_class_subjects(
    db: AsyncSession,
    class_id: UUID,
    active_only: bool = False,
) -> List[ClassSubjectResponse]:
    await get_class_or_404(db, class_id)
    stmt = _with_names(select(ClassSubject).where(ClassSubject.class_id == class_id))
    if active_only:
        stmt = stmt.where(ClassSubject.valid_to.is_(None))
    result = await db.execute(stmt.order_by(ClassSubject.subject_id, ClassSubject.valid_from.desc()))
    return [_to_response(cs) for cs in result.scalars().all()]


async def get_class_subject(db: AsyncSession, class_subject_id: UUID) -> ClassSubjectResponse:
    return _to_response(await get_class_subject_or_404(db, class_subject_id))


async def delete_class_subject(db: AsyncSession, class_subject_id: UUID) -> None:
    obj = await get_class_subject_or_404(db, class_subject_id)
    assessments = await db.scalar(
        select(func.count(Assessment.id)).where(Assessment.class_subject_id == class_subject_id)
    )
    if assessments:
        raise InvalidState("Cannot delete a class-subject assignment that has assessments")
    await db.delete(obj)
    await db.commit()
    logger.info("Class-subject %s deleted", class_subject_id)
