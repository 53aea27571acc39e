from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class LevelCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None


class LevelResponse(BaseModel):
    id: UUID
    name: str
    description: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class SubjectCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    code: str = Field(..., min_length=1, max_length=50, description="Unique subject code, e.g. MATH6")
    level_id: Optional[UUID] = None


class SubjectResponse(BaseModel):
    id: UUID
    name: str
    code: str
    level_id: Optional[UUID] = None
    created_at: datetime

    class Config:
        from_attributes = True
