"""Assessment schemas."""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.core.enums import AssessmentType, AssignmentStatus, DeliveryMode


# ----- Question -----
class QuestionCreate(BaseModel):
    content: str = Field(..., min_length=1)
    points: float = Field(1.0, ge=0)


class QuestionResponse(BaseModel):
    id: UUID
    content: str
    points: float
    order_number: int

    class Config:
        from_attributes = True


# ----- Assessment -----
class AssessmentCreate(BaseModel):
    class_subject_id: UUID
    teacher_id: UUID
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    type: AssessmentType = AssessmentType.EXAM
    delivery_mode: DeliveryMode = DeliveryMode.SUPERVISED
    is_published: bool = False
    scheduled_at: Optional[datetime] = None
    questions: List[QuestionCreate] = Field(default_factory=list)


class AssessmentResponse(BaseModel):
    id: UUID
    class_subject_id: UUID
    teacher_id: UUID
    title: str
    description: Optional[str] = None
    type: str
    delivery_mode: str
    is_published: bool
    scheduled_at: Optional[datetime] = None
    total_points: float
    questions: List[QuestionResponse] = Field(default_factory=list)
    created_at: datetime


# ----- Student assignment -----
class AssignmentStart(BaseModel):
    student_id: UUID


class AssignmentGrade(BaseModel):
    score: float = Field(..., description="Raw score in points, 0 <= score <= total points")
    teacher_notes: Optional[str] = None


class AssignmentResponse(BaseModel):
    id: UUID
    assessment_id: UUID
    student_id: UUID
    status: AssignmentStatus
    started_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None
    graded_at: Optional[datetime] = None
    score: Optional[float] = None
    teacher_notes: Optional[str] = None

    class Config:
        from_attributes = True
