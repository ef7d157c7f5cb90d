"""CourseVideo model — ordered playlist entry linking a course to a video."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, DateTime, Integer, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from portal.database import Base


class CourseVideo(Base):
    __tablename__ = "course_videos"
    __table_args__ = (UniqueConstraint("course_id", "video_id", name="uq_course_video"),)

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    course_id = Column(String(36), ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)
    video_id = Column(String(36), ForeignKey("videos.id", ondelete="CASCADE"), nullable=False)
    order_index = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    # Relationships
    course = relationship("Course", back_populates="course_videos")
    video = relationship("Video", back_populates="course_links")
