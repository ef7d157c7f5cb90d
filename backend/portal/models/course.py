"""Course model — a paid bundle of videos with a fixed subscription length."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, DateTime, Text, Integer, Boolean, Numeric
from sqlalchemy.orm import relationship

from portal.database import Base


class Course(Base):
    __tablename__ = "courses"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=True)
    duration_months = Column(Integer, nullable=False, default=1)
    # Inactive courses drop out of the catalog; existing subscriptions keep working.
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc),
                        onupdate=lambda: datetime.now(timezone.utc))

    # Relationships
    subscriptions = relationship("Subscription", back_populates="course", cascade="all, delete-orphan")
    passwords = relationship("CoursePassword", back_populates="course", cascade="all, delete-orphan")
    course_videos = relationship(
        "CourseVideo",
        back_populates="course",
        cascade="all, delete-orphan",
        order_by="CourseVideo.order_index",
    )
