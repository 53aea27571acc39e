"""Grade levels (e.g. 6th, 5th). Classes and subjects are both attached to a level."""

import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID

from app.db.session import Base


class Level(Base):
    __tablename__ = "levels"
    __table_args__ = (UniqueConstraint("name", name="uq_level_name"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
