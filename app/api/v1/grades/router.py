from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ServiceError
from app.db.session import get_db

from .schemas import AssessmentSummaryItem, ClassResults, GradeBreakdown, StudentOverview
from . import service

router = APIRouter(prefix="/api/v1/grades", tags=["grades"])


@router.get("/breakdown", response_model=GradeBreakdown)
async def get_grade_breakdown(
    student_id: UUID = Query(...),
    class_id: UUID = Query(...),
    db: AsyncSession = Depends(get_db),
) -> GradeBreakdown:
    """Per-subject averages and coefficient-weighted annual average of a student in a class."""
    try:
        return await service.grade_breakdown(db, student_id, class_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/classes/{class_id}/results", response_model=ClassResults)
async def get_class_results(
    class_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> ClassResults:
    try:
        return await service.class_results(db, class_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/students/{student_id}/overview", response_model=StudentOverview)
async def get_student_overview(
    student_id: UUID,
    academic_year_id: Optional[UUID] = Query(None, description="Defaults to the current academic year"),
    db: AsyncSession = Depends(get_db),
) -> StudentOverview:
    try:
        return await service.student_overview(db, student_id, academic_year_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/students/{student_id}/assessments", response_model=List[AssessmentSummaryItem])
async def get_assessment_summary(
    student_id: UUID,
    academic_year_id: Optional[UUID] = Query(None),
    db: AsyncSession = Depends(get_db),
) -> List[AssessmentSummaryItem]:
    try:
        return await service.assessment_summary(db, student_id, academic_year_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
