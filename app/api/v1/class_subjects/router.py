from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import ServiceError
from app.db.session import get_db

from .schemas import (
    AssignmentTerminate,
    ClassSubjectCreate,
    ClassSubjectResponse,
    CoefficientUpdate,
    TeacherReplace,
)
from . import service

router = APIRouter(prefix="/api/v1/class-subjects", tags=["class-subjects"])


@router.post("", response_model=ClassSubjectResponse, status_code=status.HTTP_201_CREATED)
async def assign_class_subject(
    payload: ClassSubjectCreate,
    db: AsyncSession = Depends(get_db),
):
    try:
        return await service.assign(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("", response_model=List[ClassSubjectResponse])
async def list_class_subjects(
    class_id: UUID,
    active_only: bool = Query(False),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await service.list_class_subjects(db, class_id, active_only=active_only)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/history", response_model=List[ClassSubjectResponse])
async def get_teaching_history(
    class_id: UUID,
    subject_id: UUID,
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    return await service.teaching_history(db, class_id, subject_id, limit=limit, offset=offset)


@router.get("/{class_subject_id}", response_model=ClassSubjectResponse)
async def get_class_subject(class_subject_id: UUID, db: AsyncSession = Depends(get_db)):
    try:
        return await service.get_class_subject(db, class_subject_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/{class_subject_id}/replace-teacher", response_model=ClassSubjectResponse, status_code=status.HTTP_201_CREATED)
async def replace_teacher(
    class_subject_id: UUID,
    payload: TeacherReplace,
    db: AsyncSession = Depends(get_db),
):
    """Close the current window and open a new one for the new teacher; history is preserved."""
    try:
        return await service.replace_teacher(db, class_subject_id, payload.new_teacher_id, payload.effective_date)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.patch("/{class_subject_id}/coefficient", response_model=ClassSubjectResponse)
async def update_coefficient(
    class_subject_id: UUID,
    payload: CoefficientUpdate,
    db: AsyncSession = Depends(get_db),
):
    try:
        return await service.update_coefficient(db, class_subject_id, payload.coefficient)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/{class_subject_id}/terminate", response_model=ClassSubjectResponse)
async def terminate_assignment(
    class_subject_id: UUID,
    payload: AssignmentTerminate,
    db: AsyncSession = Depends(get_db),
):
    try:
        return await service.terminate(db, class_subject_id, payload.end_date)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete("/{class_subject_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_class_subject(class_subject_id: UUID, db: AsyncSession = Depends(get_db)):
    try:
        await service.delete_class_subject(db, class_subject_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
