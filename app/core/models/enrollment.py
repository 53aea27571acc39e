import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.db.session import Base


class Enrollment(Base):
    """
    Student placement in a class. A student holds at most one ACTIVE enrollment per
    academic year (checked through the class's academic_year_id).
    Transfer never moves a row: the old one is withdrawn and a new one is created.
    """

    __tablename__ = "enrollments"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    class_id = Column(UUID(as_uuid=True), ForeignKey("classes.id", ondelete="RESTRICT"), nullable=False, index=True)
    student_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default="active")  # active | withdrawn
    enrolled_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    withdrawn_at = Column(DateTime(timezone=True), nullable=True)

    student = relationship("User", back_populates="enrollments", foreign_keys=[student_id])
    school_class = relationship("SchoolClass", foreign_keys=[class_id])
