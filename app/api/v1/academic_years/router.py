from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import ServiceError
from app.db.session import get_db

from .schemas import AcademicYearCreate, AcademicYearResponse, AcademicYearUpdate, SemesterCreate, SemesterResponse
from . import service

router = APIRouter(prefix="/api/v1/academic-years", tags=["academic-years"])


@router.post("", response_model=AcademicYearResponse, status_code=status.HTTP_201_CREATED)
async def create_academic_year(
    payload: AcademicYearCreate,
    db: AsyncSession = Depends(get_db),
) -> AcademicYearResponse:
    """Create academic year. Use is_current=true to make it the current year immediately."""
    try:
        return await service.create_academic_year(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("", response_model=List[AcademicYearResponse])
async def list_academic_years(
    is_current: Optional[bool] = Query(None),
    search: Optional[str] = Query(None, description="Filter by name"),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
) -> List[AcademicYearResponse]:
    return await service.list_academic_years(db, is_current=is_current, search=search, limit=limit, offset=offset)


@router.get("/current", response_model=Optional[AcademicYearResponse])
async def get_current_academic_year(
    db: AsyncSession = Depends(get_db),
) -> Optional[AcademicYearResponse]:
    """Get the current academic year (is_current=true). Default scope for data operations."""
    return await service.get_current_academic_year(db)


@router.get("/{academic_year_id}", response_model=AcademicYearResponse)
async def get_academic_year(
    academic_year_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> AcademicYearResponse:
    try:
        return await service.get_academic_year(db, academic_year_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put("/{academic_year_id}", response_model=AcademicYearResponse)
async def update_academic_year(
    academic_year_id: UUID,
    payload: AcademicYearUpdate,
    db: AsyncSession = Depends(get_db),
) -> AcademicYearResponse:
    try:
        return await service.update_academic_year(db, academic_year_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/{academic_year_id}/set-current", response_model=AcademicYearResponse)
async def set_academic_year_current(
    academic_year_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> AcademicYearResponse:
    """Set this academic year as current. All others become non-current."""
    try:
        return await service.set_current(db, academic_year_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/{academic_year_id}/archive", response_model=AcademicYearResponse)
async def archive_academic_year(
    academic_year_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> AcademicYearResponse:
    try:
        return await service.archive(db, academic_year_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete("/{academic_year_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_academic_year(
    academic_year_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> None:
    """Delete a non-current academic year that has no classes."""
    try:
        await service.delete_academic_year(db, academic_year_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/{academic_year_id}/semesters", response_model=List[SemesterResponse])
async def list_semesters(
    academic_year_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> List[SemesterResponse]:
    try:
        return await service.list_semesters(db, academic_year_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/{academic_year_id}/semesters",
    response_model=SemesterResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_semester(
    academic_year_id: UUID,
    payload: SemesterCreate,
    db: AsyncSession = Depends(get_db),
) -> SemesterResponse:
    try:
        return await service.add_semester(db, academic_year_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
