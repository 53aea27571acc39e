from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.core.enums import AssignmentStatus


class SubjectGrade(BaseModel):
    subject_id: UUID
    class_subject_id: UUID = Field(..., description="Newest teaching window for this subject")
    subject_name: str
    teacher_name: Optional[str] = None
    coefficient: float
    average: Optional[float] = Field(None, description="Σ score / Σ total points × scale; null when nothing is graded")
    assessments_count: int
    completed_count: int


class GradeBreakdown(BaseModel):
    student_id: UUID
    student_name: Optional[str] = None
    class_id: UUID
    class_name: str
    subjects: List[SubjectGrade] = Field(default_factory=list)
    annual_average: Optional[float] = None
    total_coefficient: float = 0.0
    total_assessments: int = 0
    completed_assessments: int = 0


class StudentOverview(BaseModel):
    student_id: UUID
    enrollment_id: Optional[UUID] = None
    class_id: Optional[UUID] = None
    overall_average: Optional[float] = None
    total_assessments: int = 0
    completed_assessments: int = 0
    subjects: List[SubjectGrade] = Field(default_factory=list)


class ScoreDistribution(BaseModel):
    min: Optional[float] = None
    max: Optional[float] = None
    mean: Optional[float] = None


class AssessmentStats(BaseModel):
    id: UUID
    title: str
    type: str
    subject_name: str
    scheduled_at: Optional[datetime] = None
    total_points: float
    total_assigned: int
    not_started: int
    in_progress: int
    submitted: int
    graded: int
    scores: ScoreDistribution
    completion_rate: float


class StudentResult(BaseModel):
    student_id: UUID
    student_name: str
    enrollment_id: UUID
    annual_average: Optional[float] = None
    total_assessments: int
    completed_assessments: int
    graded_count: int


class ClassResultsOverview(BaseModel):
    total_students: int
    total_assessments: int
    average_score: Optional[float] = None
    completion_rate: float


class SubjectClassStats(BaseModel):
    subject_id: UUID
    subject_name: str
    coefficient: float
    class_average: Optional[float] = Field(None, description="Mean of the students' subject averages; ungraded students are left out")
    graded_students: int = 0


class ClassResults(BaseModel):
    class_id: UUID
    class_name: str
    overview: ClassResultsOverview
    assessment_stats: List[AssessmentStats] = Field(default_factory=list)
    subject_stats: List[SubjectClassStats] = Field(default_factory=list)
    student_stats: List[StudentResult] = Field(default_factory=list)


class AssessmentSummaryItem(BaseModel):
    assignment_id: UUID
    assessment_id: UUID
    title: str
    type: str
    subject_name: Optional[str] = None
    class_name: Optional[str] = None
    raw_score: Optional[float] = None
    max_points: float
    normalized_grade: Optional[float] = None
    status: AssignmentStatus
    submitted_at: Optional[datetime] = None
    graded_at: Optional[datetime] = None
