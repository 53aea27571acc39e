import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import EnrollmentStatus
from app.core.exceptions import InvalidArgument, InvalidState, NotFound
from app.core.models import AcademicYear, ClassSubject, Enrollment, Level, SchoolClass

from .schemas import ClassCreate, ClassResponse, ClassUpdate

logger = logging.getLogger(__name__)


def _class_to_response(c: SchoolClass, active_students: int) -> ClassResponse:
    return ClassResponse(
        id=c.id,
        academic_year_id=c.academic_year_id,
        level_id=c.level_id,
        name=c.name,
        max_students=c.max_students,
        active_students=active_students,
        is_full=is_at_capacity(c, active_students),
        created_at=c.created_at,
        updated_at=c.updated_at,
    )


def is_at_capacity(c: SchoolClass, active_students: int) -> bool:
    if c.max_students is None:
        return False
    return active_students >= c.max_students


async def count_active_enrollments(db: AsyncSession, class_id: UUID) -> int:
    count = await db.scalar(
        select(func.count(Enrollment.id)).where(
            Enrollment.class_id == class_id,
            Enrollment.status == EnrollmentStatus.ACTIVE.value,
        )
    )
    return int(count or 0)


async def get_class_or_404(db: AsyncSession, class_id: UUID, for_update: bool = False) -> SchoolClass:
    stmt = select(SchoolClass).where(SchoolClass.id == class_id)
    if for_update:
        # Serialises concurrent capacity checks on the same class (no-op on SQLite)
        stmt = stmt.with_for_update()
    result = await db.execute(stmt)
    obj = result.scalar_one_or_none()
    if not obj:
        raise NotFound("Class not found")
    return obj


async def create_class(db: AsyncSession, payload: ClassCreate) -> ClassResponse:
    if await db.get(AcademicYear, payload.academic_year_id) is None:
        raise NotFound("Academic year not found")
    if await db.get(Level, payload.level_id) is None:
        raise NotFound("Level not found")
    name = payload.name.strip()
    existing = await db.execute(
        select(SchoolClass.id).where(
            SchoolClass.academic_year_id == payload.academic_year_id,
            SchoolClass.level_id == payload.level_id,
            SchoolClass.name == name,
        )
    )
    if existing.scalar_one_or_none():
        raise InvalidArgument(f"Class '{name}' already exists for this year and level")
    obj = SchoolClass(
        academic_year_id=payload.academic_year_id,
        level_id=payload.level_id,
        name=name,
        max_students=payload.max_students,
    )
    db.add(obj)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise InvalidArgument(f"Class '{name}' already exists for this year and level")
    await db.refresh(obj)
    return _class_to_response(obj, 0)


async def list_classes(db: AsyncSession, academic_year_id: Optional[UUID] = None) -> List[ClassResponse]:
    counts = (
        select(Enrollment.class_id, func.count(Enrollment.id).label("active"))
        .where(Enrollment.status == EnrollmentStatus.ACTIVE.value)
        .group_by(Enrollment.class_id)
        .subquery()
    )
    stmt = select(SchoolClass, func.coalesce(counts.c.active, 0)).outerjoin(
        counts, counts.c.class_id == SchoolClass.id
    )
    if academic_year_id is not None:
        stmt = stmt.where(SchoolClass.academic_year_id == academic_year_id)
    result = await db.execute(stmt.order_by(SchoolClass.name))
    return [_class_to_response(c, int(active)) for c, active in result.all()]


async def get_class(db: AsyncSession, class_id: UUID) -> ClassResponse:
    obj = await get_class_or_404(db, class_id)
    return _class_to_response(obj, await count_active_enrollments(db, class_id))


async def update_class(db: AsyncSession, class_id: UUID, payload: ClassUpdate) -> ClassResponse:
    obj = await get_class_or_404(db, class_id)
    if payload.name is not None:
        obj.name = payload.name.strip()
    if payload.max_students is not None:
        obj.max_students = payload.max_students
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise InvalidArgument("Another class already uses this name for this year and level")
    await db.refresh(obj)
    return _class_to_response(obj, await count_active_enrollments(db, class_id))


async def delete_class(db: AsyncSession, class_id: UUID) -> None:
    """Delete a class that has neither enrollments (any status) nor class subjects."""
    obj = await get_class_or_404(db, class_id)
    enrollments = await db.scalar(select(func.count(Enrollment.id)).where(Enrollment.class_id == class_id))
    if enrollments:
        raise InvalidState("Cannot delete class with enrollments")
    class_subjects = await db.scalar(select(func.count(ClassSubject.id)).where(ClassSubject.class_id == class_id))
    if class_subjects:
        raise InvalidState("Cannot delete class with subject assignments")
    await db.delete(obj)
    await db.commit()
    logger.info("Class %s deleted", obj.name)
