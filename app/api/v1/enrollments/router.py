from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import EnrollmentStatus
from app.core.exceptions import ServiceError
from app.db.session import get_db

from .schemas import EnrollmentCreate, EnrollmentResponse, EnrollmentTransfer
from . import service

router = APIRouter(prefix="/api/v1/enrollments", tags=["enrollments"])


@router.post("", response_model=EnrollmentResponse, status_code=status.HTTP_201_CREATED)
async def enroll_student(payload: EnrollmentCreate, db: AsyncSession = Depends(get_db)):
    try:
        return await service.enroll(db, payload.student_id, payload.class_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("", response_model=List[EnrollmentResponse])
async def list_class_enrollments(
    class_id: UUID,
    status_filter: Optional[EnrollmentStatus] = Query(None, alias="status"),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await service.list_class_enrollments(db, class_id, status=status_filter)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/active", response_model=Optional[EnrollmentResponse])
async def get_active_enrollment(
    student_id: UUID,
    academic_year_id: Optional[UUID] = Query(None, description="Defaults to the current academic year"),
    db: AsyncSession = Depends(get_db),
):
    return await service.active_enrollment_for(db, student_id, academic_year_id)


@router.get("/{enrollment_id}", response_model=EnrollmentResponse)
async def get_enrollment(enrollment_id: UUID, db: AsyncSession = Depends(get_db)):
    try:
        return await service.get_enrollment(db, enrollment_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/{enrollment_id}/transfer", response_model=EnrollmentResponse, status_code=status.HTTP_201_CREATED)
async def transfer_student(
    enrollment_id: UUID,
    payload: EnrollmentTransfer,
    db: AsyncSession = Depends(get_db),
):
    """Withdraw this enrollment and create an active one in the target class (all-or-nothing)."""
    try:
        return await service.transfer(db, enrollment_id, payload.new_class_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/{enrollment_id}/withdraw", response_model=EnrollmentResponse)
async def withdraw_student(enrollment_id: UUID, db: AsyncSession = Depends(get_db)):
    try:
        return await service.withdraw(db, enrollment_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/{enrollment_id}/reactivate", response_model=EnrollmentResponse)
async def reactivate_enrollment(enrollment_id: UUID, db: AsyncSession = Depends(get_db)):
    try:
        return await service.reactivate(db, enrollment_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete("/{enrollment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_enrollment(enrollment_id: UUID, db: AsyncSession = Depends(get_db)):
    try:
        await service.delete_enrollment(db, enrollment_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
