from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class ClassCreate(BaseModel):
    academic_year_id: UUID
    level_id: UUID
    name: str = Field(..., min_length=1, max_length=50)
    max_students: Optional[int] = Field(None, ge=1, description="NULL = no capacity limit")


class ClassUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=50)
    max_students: Optional[int] = Field(None, ge=1)


class ClassResponse(BaseModel):
    id: UUID
    academic_year_id: UUID
    level_id: UUID
    name: str
    max_students: Optional[int] = None
    active_students: int = 0
    is_full: bool = False
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
