"""CoursePassword model — one-time activation code minted by an admin."""

import uuid
from datetime import datetime, timedelta, timezone

from sqlalchemy import Column, String, DateTime, Boolean, ForeignKey
from sqlalchemy.orm import relationship

from portal.database import Base
from portal.config import settings


def _default_expiry() -> datetime:
    return datetime.now(timezone.utc) + timedelta(days=settings.COURSE_PASSWORD_TTL_DAYS)


class CoursePassword(Base):
    __tablename__ = "course_passwords"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    course_id = Column(String(36), ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)
    password = Column(String(100), nullable=False)
    used = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    expires_at = Column(DateTime(timezone=True), nullable=False, default=_default_expiry)

    # Relationships
    course = relationship("Course", back_populates="passwords")
