from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import InvalidArgument, NotFound
from app.core.models import Level, Subject

from .schemas import LevelCreate, LevelResponse, SubjectCreate, SubjectResponse


async def create_level(db: AsyncSession, payload: LevelCreate) -> LevelResponse:
    obj = Level(name=payload.name.strip(), description=payload.description)
    db.add(obj)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise InvalidArgument(f"Level '{payload.name}' already exists")
    await db.refresh(obj)
    return LevelResponse.model_validate(obj)


async def list_levels(db: AsyncSession) -> List[LevelResponse]:
    result = await db.execute(select(Level).order_by(Level.name))
    return [LevelResponse.model_validate(lv) for lv in result.scalars().all()]


async def create_subject(db: AsyncSession, payload: SubjectCreate) -> SubjectResponse:
    if payload.level_id is not None and await db.get(Level, payload.level_id) is None:
        raise NotFound("Level not found")
    code = payload.code.strip().upper()
    existing = await db.execute(select(Subject.id).where(Subject.code == code))
    if existing.scalar_one_or_none():
        raise InvalidArgument(f"Subject with code '{code}' already exists")
    obj = Subject(name=payload.name.strip(), code=code, level_id=payload.level_id)
    db.add(obj)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise InvalidArgument(f"Subject with code '{code}' already exists")
    await db.refresh(obj)
    return SubjectResponse.model_validate(obj)


async def list_subjects(db: AsyncSession, level_id: Optional[UUID] = None) -> List[SubjectResponse]:
    stmt = select(Subject)
    if level_id is not None:
        stmt = stmt.where(Subject.level_id == level_id)
    result = await db.execute(stmt.order_by(Subject.name))
    return [SubjectResponse.model_validate(s) for s in result.scalars().all()]
