"""Subscriptions router — student onboarding paths and admin review."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, UploadFile, File
from sqlalchemy.orm import Session

from portal.config import settings
from portal.database import get_db
from portal.dates import days_remaining
from portal.models.profile import Profile
from portal.models.subscription import Subscription
from portal.schemas.subscription import (
    RedeemRequest,
    RenewRequest,
    SubscriptionResponse,
    SubscriptionListResponse,
    ReceiptUrlResponse,
)
from portal.middleware.auth import get_current_profile, require_admin
from portal.middleware.rate_limit import limiter
from portal.services import access, subscription_service
from portal.services.storage import StorageBackend, get_storage

router = APIRouter(prefix="/api/subscriptions", tags=["subscriptions"])
admin_router = APIRouter(prefix="/api/admin/subscriptions", tags=["admin: subscriptions"])


def subscription_to_response(
    sub: Subscription,
    email: Optional[str] = None,
    course_title: Optional[str] = None,
) -> SubscriptionResponse:
    return SubscriptionResponse(
        id=sub.id,
        user_id=sub.user_id,
        course_id=sub.course_id,
        status=sub.status,
        start_date=sub.start_date.isoformat() if sub.start_date else None,
        end_date=sub.end_date.isoformat() if sub.end_date else None,
        has_receipt=bool(sub.payment_proof),
        days_remaining=days_remaining(sub.end_date),
        is_active_now=access.is_active_window(sub),
        created_at=sub.created_at.isoformat(),
        email=email,
        course_title=course_title,
    )


# ── Student ──────────────────────────────────────────────────────────────────

@router.get("/me", response_model=SubscriptionListResponse)
def my_subscriptions(
    db: Session = Depends(get_db),
    current: Profile = Depends(get_current_profile),
):
    subs = subscription_service.my_subscriptions(db, current.user_id)
    return SubscriptionListResponse(
        subscriptions=[subscription_to_response(s, course_title=s.course.title) for s in subs],
        total=len(subs),
    )


@router.post("/{course_id}/receipt", response_model=SubscriptionResponse, status_code=201)
async def submit_receipt(
    course_id: str,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    current: Profile = Depends(get_current_profile),
    storage: StorageBackend = Depends(get_storage),
):
    """Upload a payment receipt; the subscription waits for admin review."""
    content = await file.read()
    if not content:
        raise HTTPException(status_code=400, detail="Empty file")
    if len(content) > settings.MAX_RECEIPT_SIZE:
        raise HTTPException(status_code=400, detail="File too large")

    sub = subscription_service.request_by_receipt(
        db,
        storage,
        current,
        course_id,
        filename=file.filename or "",
        content=content,
        content_type=file.content_type,
    )
    return subscription_to_response(sub)


@router.post("/{course_id}/redeem", response_model=SubscriptionResponse)
@limiter.limit(settings.REDEEM_RATE_LIMIT)
def redeem_password(
    request: Request,
    course_id: str,
    req: RedeemRequest,
    db: Session = Depends(get_db),
    current: Profile = Depends(get_current_profile),
    storage: StorageBackend = Depends(get_storage),
):
    """Activate a subscription with a one-time course password."""
    sub = subscription_service.request_by_password(db, storage, current, course_id, req.password)
    return subscription_to_response(sub)


# ── Admin ────────────────────────────────────────────────────────────────────

@admin_router.get("", response_model=SubscriptionListResponse)
def list_subscriptions(
    status: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    admin: Profile = Depends(require_admin),
):
    rows = subscription_service.list_subscriptions(db, status=status, search=search)
    return SubscriptionListResponse(
        subscriptions=[subscription_to_response(s, email, title) for s, email, title in rows],
        total=len(rows),
    )


@admin_router.post("/{subscription_id}/approve", response_model=SubscriptionResponse)
def approve_subscription(
    subscription_id: str,
    db: Session = Depends(get_db),
    admin: Profile = Depends(require_admin),
    storage: StorageBackend = Depends(get_storage),
):
    """pending -> active; the payment receipt is deleted."""
    return subscription_to_response(subscription_service.approve(db, storage, subscription_id))


@admin_router.post("/{subscription_id}/reject", status_code=204)
def reject_subscription(
    subscription_id: str,
    db: Session = Depends(get_db),
    admin: Profile = Depends(require_admin),
    storage: StorageBackend = Depends(get_storage),
):
    subscription_service.reject(db, storage, subscription_id)


@admin_router.post("/{subscription_id}/renew", response_model=SubscriptionResponse)
def renew_subscription(
    subscription_id: str,
    req: RenewRequest,
    db: Session = Depends(get_db),
    admin: Profile = Depends(require_admin),
):
    return subscription_to_response(subscription_service.renew(db, subscription_id, req.months))


@admin_router.delete("/{subscription_id}", status_code=204)
def delete_subscription(
    subscription_id: str,
    db: Session = Depends(get_db),
    admin: Profile = Depends(require_admin),
    storage: StorageBackend = Depends(get_storage),
):
    subscription_service.delete(db, storage, subscription_id)


@admin_router.get("/{subscription_id}/receipt", response_model=ReceiptUrlResponse)
def view_receipt(
    subscription_id: str,
    db: Session = Depends(get_db),
    admin: Profile = Depends(require_admin),
    storage: StorageBackend = Depends(get_storage),
):
    """Short-lived link to the uploaded receipt."""
    url = subscription_service.receipt_url(db, storage, subscription_id)
    return ReceiptUrlResponse(
        subscription_id=subscription_id,
        url=url,
        expires_in=settings.RECEIPT_URL_TTL_SECONDS,
    )
