"""Course request/response schemas."""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class CourseCreate(BaseModel):
    title: str
    description: Optional[str] = None
    price: Optional[Decimal] = None
    duration_months: int = Field(1, ge=1)
    is_active: bool = True


class CourseUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    price: Optional[Decimal] = None
    duration_months: Optional[int] = Field(None, ge=1)
    is_active: Optional[bool] = None


class CourseResponse(BaseModel):
    id: str
    title: str
    description: Optional[str]
    price: Optional[float]
    duration_months: int
    is_active: bool
    created_at: str
    # Caller's subscription status for this course, catalog views only
    subscription_status: Optional[str] = None
    has_access: bool = False

    class Config:
        from_attributes = True


class CourseListResponse(BaseModel):
    courses: list[CourseResponse]
    total: int


class CourseVideosUpdate(BaseModel):
    video_ids: list[str]


class WhatsAppLinkResponse(BaseModel):
    course_id: str
    url: str
