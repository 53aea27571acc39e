"""Assessment models: exams/homework, their questions, and per-student assignments."""

import uuid
from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.core.enums import AssignmentStatus
from app.db.session import Base


class Assessment(Base):
    """Gradable unit of work under one class subject. settings["is_published"] gates visibility."""

    __tablename__ = "assessments"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    class_subject_id = Column(
        UUID(as_uuid=True),
        ForeignKey("class_subjects.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    teacher_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    type = Column(String(20), nullable=False, default="exam")  # exam | homework | quiz | project
    delivery_mode = Column(String(20), nullable=False, default="supervised")  # supervised | homework
    settings = Column(JSON, nullable=False, default=dict)
    scheduled_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    class_subject = relationship("ClassSubject", back_populates="assessments")
    teacher = relationship("User", foreign_keys=[teacher_id])
    questions = relationship(
        "AssessmentQuestion",
        back_populates="assessment",
        cascade="all, delete-orphan",
        order_by="AssessmentQuestion.order_number",
    )
    assignments = relationship("AssessmentAssignment", back_populates="assessment", cascade="all, delete-orphan")

    @property
    def is_published(self) -> bool:
        return bool((self.settings or {}).get("is_published", False))


class AssessmentQuestion(Base):
    __tablename__ = "assessment_questions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    assessment_id = Column(UUID(as_uuid=True), ForeignKey("assessments.id", ondelete="CASCADE"), nullable=False)
    content = Column(Text, nullable=False)
    points = Column(Float, nullable=False, default=1.0)
    order_number = Column(Integer, nullable=False, default=0)

    assessment = relationship("Assessment", back_populates="questions")


class AssessmentAssignment(Base):
    """
    One student's instance of one assessment. Timestamps are monotonic:
    started_at <= submitted_at <= graded_at, and none is ever cleared.
    """

    __tablename__ = "assessment_assignments"
    __table_args__ = (
        UniqueConstraint("assessment_id", "student_id", name="uq_assessment_assignment_student"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    assessment_id = Column(UUID(as_uuid=True), ForeignKey("assessments.id", ondelete="CASCADE"), nullable=False)
    student_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    started_at = Column(DateTime(timezone=True), nullable=True)
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    graded_at = Column(DateTime(timezone=True), nullable=True)
    score = Column(Float, nullable=True)
    teacher_notes = Column(Text, nullable=True)

    assessment = relationship("Assessment", back_populates="assignments")
    student = relationship("User", foreign_keys=[student_id])

    @property
    def status(self) -> AssignmentStatus:
        return assignment_status(self.started_at, self.submitted_at, self.graded_at)


def assignment_status(started_at, submitted_at, graded_at) -> AssignmentStatus:
    """Single place where timestamps are turned into an AssignmentStatus."""
    if graded_at is not None:
        return AssignmentStatus.GRADED
    if submitted_at is not None:
        return AssignmentStatus.SUBMITTED
    if started_at is not None:
        return AssignmentStatus.IN_PROGRESS
    return AssignmentStatus.NOT_STARTED
