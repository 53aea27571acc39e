"""Teaching assignment: one teacher teaching one subject in one class over [valid_from, valid_to)."""

import uuid
from datetime import datetime

from sqlalchemy import Column, Date, DateTime, Float, ForeignKey, Index
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.db.session import Base


class ClassSubject(Base):
    """
    Versioned row. Replacing the teacher closes this row (valid_to) and opens a new one,
    so windows of the same (class_id, subject_id) never overlap. valid_to NULL = still open.
    """

    __tablename__ = "class_subjects"
    __table_args__ = (
        Index("ix_class_subjects_class_subject", "class_id", "subject_id"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    class_id = Column(UUID(as_uuid=True), ForeignKey("classes.id", ondelete="RESTRICT"), nullable=False)
    subject_id = Column(UUID(as_uuid=True), ForeignKey("subjects.id", ondelete="RESTRICT"), nullable=False)
    teacher_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)
    semester_id = Column(UUID(as_uuid=True), ForeignKey("semesters.id", ondelete="SET NULL"), nullable=True)  # NULL = whole year
    coefficient = Column(Float, nullable=False, default=1.0)
    valid_from = Column(Date, nullable=False)
    valid_to = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    school_class = relationship("SchoolClass", foreign_keys=[class_id])
    subject = relationship("Subject")
    teacher = relationship("User", foreign_keys=[teacher_id])
    semester = relationship("Semester")
    assessments = relationship(
        "Assessment",
        back_populates="class_subject",
        passive_deletes=True,
        order_by="Assessment.created_at",
    )
