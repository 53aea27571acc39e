from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ServiceError
from app.db.session import get_db

from .schemas import LevelCreate, LevelResponse, SubjectCreate, SubjectResponse
from . import service

router = APIRouter(prefix="/api/v1", tags=["subjects"])


@router.post("/levels", response_model=LevelResponse, status_code=status.HTTP_201_CREATED)
async def create_level(payload: LevelCreate, db: AsyncSession = Depends(get_db)):
    try:
        return await service.create_level(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/levels", response_model=List[LevelResponse])
async def list_levels(db: AsyncSession = Depends(get_db)):
    return await service.list_levels(db)


@router.post("/subjects", response_model=SubjectResponse, status_code=status.HTTP_201_CREATED)
async def create_subject(payload: SubjectCreate, db: AsyncSession = Depends(get_db)):
    try:
        return await service.create_subject(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/subjects", response_model=List[SubjectResponse])
async def list_subjects(
    level_id: Optional[UUID] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    return await service.list_subjects(db, level_id=level_id)
