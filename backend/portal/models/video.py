"""Video model — an uploaded file or an external link."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, DateTime, Text, Integer
from sqlalchemy.orm import relationship

from portal.database import Base

VIDEO_PROCESSING = "processing"
VIDEO_READY = "ready"
VIDEO_DISABLED = "disabled"

TYPE_FILE = "file"
TYPE_URL = "url"


class Video(Base):
    __tablename__ = "videos"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    title = Column(String(500), nullable=False)
    description = Column(Text, nullable=True)
    file_path = Column(Text, nullable=True)  # object path in the videos bucket
    video_url = Column(Text, nullable=True)  # external link for url videos
    video_type = Column(String(10), nullable=False, default=TYPE_FILE)  # file | url
    status = Column(String(20), nullable=False, default=VIDEO_PROCESSING)  # processing | ready | disabled
    duration_seconds = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc),
                        onupdate=lambda: datetime.now(timezone.utc))

    # Relationships
    course_links = relationship("CourseVideo", back_populates="video", cascade="all, delete-orphan")
