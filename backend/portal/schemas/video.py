"""Video request/response schemas."""

from typing import Optional

from pydantic import BaseModel, Field


class VideoUrlCreate(BaseModel):
    title: str
    video_url: str
    description: Optional[str] = None
    duration_seconds: Optional[int] = Field(None, ge=0)


class VideoUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    video_url: Optional[str] = None
    duration_seconds: Optional[int] = Field(None, ge=0)


class VideoProcess(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None


class VideoResponse(BaseModel):
    id: str
    title: str
    description: Optional[str]
    video_type: str
    status: str
    duration_seconds: Optional[int]
    created_at: str
    updated_at: str
    # Admin views only
    file_path: Optional[str] = None
    video_url: Optional[str] = None
    order_index: Optional[int] = None

    class Config:
        from_attributes = True


class VideoListResponse(BaseModel):
    videos: list[VideoResponse]
    total: int


class PlaybackResponse(BaseModel):
    video_id: str
    video_type: str
    url: str
    expires_in: Optional[int] = None
