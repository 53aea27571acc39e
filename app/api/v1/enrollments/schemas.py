from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class EnrollmentCreate(BaseModel):
    student_id: UUID
    class_id: UUID


class EnrollmentTransfer(BaseModel):
    new_class_id: UUID = Field(..., description="Target class; must belong to an academic year the student is free in")


class EnrollmentResponse(BaseModel):
    id: UUID
    class_id: UUID
    student_id: UUID
    status: str
    enrolled_at: datetime
    withdrawn_at: Optional[datetime] = None
    academic_year_id: Optional[UUID] = None
    class_name: Optional[str] = None
    student_name: Optional[str] = None

    class Config:
        from_attributes = True
