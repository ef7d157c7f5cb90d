"""Subscription and course password schemas."""

from typing import Optional

from pydantic import BaseModel, Field


class RedeemRequest(BaseModel):
    password: str


class RenewRequest(BaseModel):
    months: int = Field(1, ge=1, le=36)


class SubscriptionResponse(BaseModel):
    id: str
    user_id: str
    course_id: str
    status: str
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    has_receipt: bool = False
    days_remaining: Optional[int] = None
    is_active_now: bool = False
    created_at: str
    # Admin listings
    email: Optional[str] = None
    course_title: Optional[str] = None


class SubscriptionListResponse(BaseModel):
    subscriptions: list[SubscriptionResponse]
    total: int


class ReceiptUrlResponse(BaseModel):
    subscription_id: str
    url: str
    expires_in: int


class SweepResponse(BaseModel):
    expired: int


class PasswordCreate(BaseModel):
    course_id: str
    password: Optional[str] = None


class PasswordResponse(BaseModel):
    id: str
    course_id: str
    course_title: Optional[str] = None
    password: str
    used: bool
    created_at: str
    expires_at: str


class PasswordListResponse(BaseModel):
    passwords: list[PasswordResponse]
    total: int
