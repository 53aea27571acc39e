from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ServiceError
from app.db.session import get_db

from .schemas import (
    AssessmentCreate,
    AssessmentResponse,
    AssignmentGrade,
    AssignmentResponse,
    AssignmentStart,
    QuestionCreate,
)
from . import service

router = APIRouter(prefix="/api/v1/assessments", tags=["assessments"])


@router.post("", response_model=AssessmentResponse, status_code=status.HTTP_201_CREATED)
async def create_assessment(payload: AssessmentCreate, db: AsyncSession = Depends(get_db)):
    try:
        return await service.create_assessment(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("", response_model=List[AssessmentResponse])
async def list_assessments(class_subject_id: UUID, db: AsyncSession = Depends(get_db)):
    return await service.list_assessments(db, class_subject_id)


@router.get("/{assessment_id}", response_model=AssessmentResponse)
async def get_assessment(assessment_id: UUID, db: AsyncSession = Depends(get_db)):
    try:
        return await service.get_assessment(db, assessment_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/{assessment_id}/questions", response_model=AssessmentResponse)
async def add_questions(
    assessment_id: UUID,
    payload: List[QuestionCreate],
    db: AsyncSession = Depends(get_db),
):
    try:
        return await service.add_questions(db, assessment_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/{assessment_id}/publish", response_model=AssessmentResponse)
async def publish_assessment(assessment_id: UUID, db: AsyncSession = Depends(get_db)):
    try:
        return await service.publish_assessment(db, assessment_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/{assessment_id}/assignments",
    response_model=AssignmentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def start_assignment(
    assessment_id: UUID,
    payload: AssignmentStart,
    db: AsyncSession = Depends(get_db),
):
    """Student starts the assessment (not_started -> in_progress)."""
    try:
        return await service.start_assignment(db, assessment_id, payload.student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/assignments/{assignment_id}", response_model=AssignmentResponse)
async def get_assignment(assignment_id: UUID, db: AsyncSession = Depends(get_db)):
    try:
        return await service.get_assignment(db, assignment_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/assignments/{assignment_id}/submit", response_model=AssignmentResponse)
async def submit_assignment(assignment_id: UUID, db: AsyncSession = Depends(get_db)):
    try:
        return await service.submit_assignment(db, assignment_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/assignments/{assignment_id}/grade", response_model=AssignmentResponse)
async def grade_assignment(
    assignment_id: UUID,
    payload: AssignmentGrade,
    db: AsyncSession = Depends(get_db),
):
    try:
        return await service.grade_assignment(db, assignment_id, payload.score, payload.teacher_notes)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
