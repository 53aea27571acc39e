"""Year-scoped classes (e.g. 6A for 2025-2026). Model named SchoolClass to avoid Python 'class' keyword."""
import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.db.session import Base


class SchoolClass(Base):
    """A class for one academic year. max_students NULL means no capacity limit."""

    __tablename__ = "classes"
    __table_args__ = (
        UniqueConstraint("academic_year_id", "level_id", "name", name="uq_class_year_level_name"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    academic_year_id = Column(
        UUID(as_uuid=True),
        ForeignKey("academic_years.id", ondelete="RESTRICT"),
        nullable=False,
    )
    level_id = Column(UUID(as_uuid=True), ForeignKey("levels.id", ondelete="RESTRICT"), nullable=False)
    name = Column(String(50), nullable=False)
    max_students = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    academic_year = relationship("AcademicYear")
    level = relationship("Level")
