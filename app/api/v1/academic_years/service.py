import calendar
import logging
from datetime import date, timedelta
from typing import List, Optional
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.config import settings
from app.core.exceptions import InvalidArgument, InvalidState, NotFound
from app.core.models import AcademicYear, SchoolClass, Semester

from .schemas import AcademicYearCreate, AcademicYearResponse, AcademicYearUpdate, SemesterCreate, SemesterResponse

logger = logging.getLogger(__name__)


def _to_response(ay: AcademicYear) -> AcademicYearResponse:
    return AcademicYearResponse(
        id=ay.id,
        name=ay.name,
        start_date=ay.start_date,
        end_date=ay.end_date,
        is_current=ay.is_current,
        created_at=ay.created_at,
        updated_at=ay.updated_at,
        semesters=[SemesterResponse.model_validate(s) for s in ay.semesters],
    )


def _validate_dates(start_date: date, end_date: date) -> None:
    if end_date <= start_date:
        raise InvalidArgument("end_date must be after start_date")


async def _deactivate_all(db: AsyncSession) -> None:
    await db.execute(
        update(AcademicYear).where(AcademicYear.is_current.is_(True)).values(is_current=False)
    )


async def get_academic_year_or_404(db: AsyncSession, academic_year_id: UUID) -> AcademicYear:
    result = await db.execute(
        select(AcademicYear)
        .where(AcademicYear.id == academic_year_id)
        .options(selectinload(AcademicYear.semesters))
        .execution_options(populate_existing=True)
    )
    ay = result.scalar_one_or_none()
    if not ay:
        raise NotFound("Academic year not found")
    return ay


def _add_months(d: date, months: int) -> date:
    month_index = d.month - 1 + months
    year = d.year + month_index // 12
    month = month_index % 12 + 1
    return date(year, month, min(d.day, calendar.monthrange(year, month)[1]))


def _default_semesters(ay: AcademicYear) -> List[Semester]:
    """Two semesters: start -> start + N months, then the next day -> end."""
    mid = _add_months(ay.start_date, settings.semester_split_months)
    if mid >= ay.end_date:
        mid = ay.start_date + timedelta(days=(ay.end_date - ay.start_date).days // 2)
    return [
        Semester(name="Semester 1", start_date=ay.start_date, end_date=mid, order_number=1),
        Semester(name="Semester 2", start_date=mid + timedelta(days=1), end_date=ay.end_date, order_number=2),
    ]


async def create_academic_year(db: AsyncSession, payload: AcademicYearCreate) -> AcademicYearResponse:
    """Create academic year. If is_current=true, unset current on all other years (same transaction)."""
    _validate_dates(payload.start_date, payload.end_date)
    name = payload.name.strip()
    existing = await db.execute(select(AcademicYear.id).where(AcademicYear.name == name))
    if existing.scalar_one_or_none():
        raise InvalidArgument(f"Academic year with name '{name}' already exists")
    if payload.is_current:
        await _deactivate_all(db)
    ay = AcademicYear(
        name=name,
        start_date=payload.start_date,
        end_date=payload.end_date,
        is_current=payload.is_current,
    )
    if payload.create_semesters:
        ay.semesters = _default_semesters(ay)
    db.add(ay)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise InvalidArgument("Academic year name conflict")
    logger.info("Academic year %s created (current=%s)", ay.name, ay.is_current)
    return _to_response(await get_academic_year_or_404(db, ay.id))


async def list_academic_years(
    db: AsyncSession,
    is_current: Optional[bool] = None,
    search: Optional[str] = None,
    limit: Optional[int] = None,
    offset: int = 0,
) -> List[AcademicYearResponse]:
    stmt = select(AcademicYear).options(selectinload(AcademicYear.semesters))
    if is_current is not None:
        stmt = stmt.where(AcademicYear.is_current.is_(is_current))
    if search:
        stmt = stmt.where(AcademicYear.name.ilike(f"%{search.strip()}%"))
    stmt = stmt.order_by(AcademicYear.start_date.desc()).offset(offset).limit(limit or settings.default_page_size)
    result = await db.execute(stmt)
    return [_to_response(ay) for ay in result.scalars().all()]


async def get_academic_year(db: AsyncSession, academic_year_id: UUID) -> AcademicYearResponse:
    return _to_response(await get_academic_year_or_404(db, academic_year_id))


async def get_current_year(db: AsyncSession) -> Optional[AcademicYear]:
    result = await db.execute(select(AcademicYear).where(AcademicYear.is_current.is_(True)))
    return result.scalars().first()


async def get_current_academic_year(db: AsyncSession) -> Optional[AcademicYearResponse]:
    """Current academic year, the default scope for enrollment and grade queries."""
    ay = await get_current_year(db)
    if not ay:
        return None
    return _to_response(await get_academic_year_or_404(db, ay.id))


async def update_academic_year(
    db: AsyncSession,
    academic_year_id: UUID,
    payload: AcademicYearUpdate,
) -> AcademicYearResponse:
    """Partial update. Every new value is validated before the row is touched."""
    ay = await get_academic_year_or_404(db, academic_year_id)
    name = payload.name.strip() if payload.name is not None else ay.name
    if name != ay.name:
        other = await db.execute(
            select(AcademicYear.id).where(AcademicYear.name == name, AcademicYear.id != academic_year_id)
        )
        if other.scalar_one_or_none():
            raise InvalidArgument(f"Academic year with name '{name}' already exists")
    start_date = payload.start_date if payload.start_date is not None else ay.start_date
    end_date = payload.end_date if payload.end_date is not None else ay.end_date
    _validate_dates(start_date, end_date)
    for semester in ay.semesters:
        if semester.start_date < start_date or semester.end_date > end_date:
            raise InvalidArgument(f"Semester '{semester.name}' would fall outside the academic year")

    ay.name = name
    ay.start_date = start_date
    ay.end_date = end_date
    if payload.is_current and not ay.is_current:
        await _deactivate_all(db)
        ay.is_current = True
    elif payload.is_current is False:
        ay.is_current = False
    await db.commit()
    return _to_response(await get_academic_year_or_404(db, academic_year_id))


async def set_current(db: AsyncSession, academic_year_id: UUID) -> AcademicYearResponse:
    """Make this year the current one. All others become non-current in the same commit."""
    ay = await get_academic_year_or_404(db, academic_year_id)
    await _deactivate_all(db)
    ay.is_current = True
    await db.commit()
    logger.info("Academic year %s set as current", ay.name)
    return _to_response(await get_academic_year_or_404(db, academic_year_id))


async def archive(db: AsyncSession, academic_year_id: UUID) -> AcademicYearResponse:
    """Clear is_current. Does not promote another year, so zero years may be current afterwards."""
    ay = await get_academic_year_or_404(db, academic_year_id)
    ay.is_current = False
    await db.commit()
    logger.info("Academic year %s archived", ay.name)
    return _to_response(await get_academic_year_or_404(db, academic_year_id))


async def delete_academic_year(db: AsyncSession, academic_year_id: UUID) -> None:
    ay = await get_academic_year_or_404(db, academic_year_id)
    if ay.is_current:
        raise InvalidState("Cannot delete the current academic year")
    class_count = await db.scalar(
        select(func.count(SchoolClass.id)).where(SchoolClass.academic_year_id == academic_year_id)
    )
    if class_count:
        raise InvalidState("Cannot delete academic year with existing classes")
    await db.delete(ay)
    await db.commit()
    logger.info("Academic year %s deleted", ay.name)


async def add_semester(
    db: AsyncSession,
    academic_year_id: UUID,
    payload: SemesterCreate,
) -> SemesterResponse:
    ay = await get_academic_year_or_404(db, academic_year_id)
    _validate_dates(payload.start_date, payload.end_date)
    if payload.start_date < ay.start_date or payload.end_date > ay.end_date:
        raise InvalidArgument("Semester must fall within the academic year")
    for other in ay.semesters:
        if other.order_number == payload.order_number:
            raise InvalidArgument(f"Semester order {payload.order_number} already exists for this year")
        if payload.start_date <= other.end_date and other.start_date <= payload.end_date:
            raise InvalidArgument(f"Semester overlaps '{other.name}'")
    semester = Semester(
        academic_year_id=ay.id,
        name=payload.name.strip(),
        start_date=payload.start_date,
        end_date=payload.end_date,
        order_number=payload.order_number,
    )
    db.add(semester)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise InvalidArgument("Semester order conflict")
    await db.refresh(semester)
    return SemesterResponse.model_validate(semester)


async def list_semesters(db: AsyncSession, academic_year_id: UUID) -> List[SemesterResponse]:
    ay = await get_academic_year_or_404(db, academic_year_id)
    return [SemesterResponse.model_validate(s) for s in ay.semesters]
