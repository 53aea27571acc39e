from datetime import date, datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class ClassSubjectCreate(BaseModel):
    class_id: UUID
    subject_id: UUID
    teacher_id: UUID
    coefficient: float = Field(1.0, description="Weight of the subject in the annual average; must be > 0")
    semester_id: Optional[UUID] = Field(None, description="NULL = whole academic year")
    valid_from: Optional[date] = Field(None, description="Defaults to today")


class TeacherReplace(BaseModel):
    new_teacher_id: UUID
    effective_date: Optional[date] = Field(None, description="First day of the new teacher; defaults to today")


class CoefficientUpdate(BaseModel):
    coefficient: float


class AssignmentTerminate(BaseModel):
    end_date: Optional[date] = Field(None, description="Exclusive end of the window; defaults to today")


class ClassSubjectResponse(BaseModel):
    id: UUID
    class_id: UUID
    subject_id: UUID
    teacher_id: UUID
    semester_id: Optional[UUID] = None
    coefficient: float
    valid_from: date
    valid_to: Optional[date] = None
    is_active: bool
    created_at: datetime
    subject_name: Optional[str] = Field(None, description="Populated when the subject is loaded")
    teacher_name: Optional[str] = Field(None, description="Populated when the teacher is loaded")

    class Config:
        from_attributes = True
