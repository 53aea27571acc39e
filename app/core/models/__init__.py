from app.auth.models import User
from app.core.models.academic_year import AcademicYear, Semester
from app.core.models.level import Level
from app.core.models.subject import Subject
from app.core.models.class_model import SchoolClass
from app.core.models.enrollment import Enrollment
from app.core.models.class_subject import ClassSubject
from app.core.models.assessment import (
    Assessment,
    AssessmentAssignment,
    AssessmentQuestion,
    assignment_status,
)

__all__ = [
    "AcademicYear",
    "Assessment",
    "AssessmentAssignment",
    "AssessmentQuestion",
    "ClassSubject",
    "Enrollment",
    "Level",
    "SchoolClass",
    "Semester",
    "Subject",
    "User",
    "assignment_status",
]
