from enum import Enum


class RoleName(str, Enum):
    ADMIN = "admin"
    TEACHER = "teacher"
    STUDENT = "student"


class EnrollmentStatus(str, Enum):
    ACTIVE = "active"
    WITHDRAWN = "withdrawn"


class AssessmentType(str, Enum):
    EXAM = "exam"
    HOMEWORK = "homework"
    QUIZ = "quiz"
    PROJECT = "project"


class DeliveryMode(str, Enum):
    SUPERVISED = "supervised"
    HOMEWORK = "homework"


class AssignmentStatus(str, Enum):
    """
    Lifecycle of one student's assessment assignment.
    Transitions only move forward: not_started -> in_progress -> submitted -> graded.
    """

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"
    GRADED = "graded"

    @property
    def rank(self) -> int:
        return _ASSIGNMENT_ORDER.index(self)


_ASSIGNMENT_ORDER = [
    AssignmentStatus.NOT_STARTED,
    AssignmentStatus.IN_PROGRESS,
    AssignmentStatus.SUBMITTED,
    AssignmentStatus.GRADED,
]
