"""Subscription service — onboarding paths, admin review and expiry.

State machine::

    (none) --receipt--> pending --approve--> active --sweep--> expired
    (none|pending|expired) --password--> active
    (active|expired) --renew--> active
    pending --reject--> (deleted)

Every operation commits once. Receipt objects are only removed from storage
after the database change is committed; a failed removal is logged and
leaves an orphaned object rather than a dangling reference.
"""

import logging
import time
import uuid
from datetime import datetime
from typing import Optional
from urllib.parse import quote

from sqlalchemy import or_, update
from sqlalchemy.orm import Session

from portal.config import settings
from portal.dates import add_months, as_utc, utcnow
from portal.exceptions import (
    InvalidTransition,
    NotFoundError,
    StorageError,
    ValidationFailed,
)
from portal.models.course import Course
from portal.models.profile import Profile
from portal.models.subscription import (
    Subscription,
    STATUS_ACTIVE,
    STATUS_EXPIRED,
    STATUS_PENDING,
)
from portal.services import access, password_service
from portal.services.course_service import get_active_course
from portal.services.storage import StorageBackend

logger = logging.getLogger(__name__)

RECEIPT_EXTENSIONS = {"png", "jpg", "jpeg", "gif", "webp", "heic", "pdf"}
VALID_STATUSES = (STATUS_PENDING, STATUS_ACTIVE, STATUS_EXPIRED)


def _find(db: Session, user_id: str, course_id: str) -> Optional[Subscription]:
    return (
        db.query(Subscription)
        .filter(Subscription.user_id == user_id, Subscription.course_id == course_id)
        .first()
    )


def get_subscription(db: Session, subscription_id: str) -> Subscription:
    sub = db.query(Subscription).filter(Subscription.id == subscription_id).first()
    if not sub:
        raise NotFoundError("Subscription not found")
    return sub


def _discard_receipt(storage: StorageBackend, path: Optional[str]) -> None:
    if not path:
        return
    try:
        storage.remove(settings.RECEIPT_BUCKET, [path])
    except StorageError as e:
        logger.warning("Could not delete payment receipt %s: %s", path, e)


def receipt_path(user_id: str, course_id: str, filename: str) -> str:
    """Per-user private path: ``<user_id>/<course_id>_<epoch_ms>.<ext>``."""
    ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
    if ext not in RECEIPT_EXTENSIONS:
        raise ValidationFailed(
            f"Receipt type '.{ext}' not supported. Allowed: {', '.join(sorted(RECEIPT_EXTENSIONS))}"
        )
    return f"{user_id}/{course_id}_{int(time.time() * 1000)}.{ext}"


# ── Student onboarding ───────────────────────────────────────────────────────

def request_by_receipt(
    db: Session,
    storage: StorageBackend,
    profile: Profile,
    course_id: str,
    filename: str,
    content: bytes,
    content_type: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Subscription:
    """Upload a payment receipt and park the subscription as pending for review."""
    course = get_active_course(db, course_id)
    now = now or utcnow()

    existing = _find(db, profile.user_id, course.id)
    if access.is_active_window(existing, now):
        raise InvalidTransition("You already have an active subscription to this course")

    path = receipt_path(profile.user_id, course.id, filename)
    stored_path = storage.upload(settings.RECEIPT_BUCKET, path, content, content_type)

    previous_proof = existing.payment_proof if existing else None
    try:
        if existing:
            sub = existing
            sub.status = STATUS_PENDING
            sub.payment_proof = stored_path
        else:
            sub = Subscription(
                id=str(uuid.uuid4()),
                user_id=profile.user_id,
                course_id=course.id,
                status=STATUS_PENDING,
                payment_proof=stored_path,
            )
            db.add(sub)
        db.commit()
    except Exception:
        db.rollback()
        _discard_receipt(storage, stored_path)
        raise

    _discard_receipt(storage, previous_proof)
    db.refresh(sub)
    logger.info("Subscription %s pending review (receipt %s)", sub.id, stored_path)
    return sub


def request_by_password(
    db: Session,
    storage: StorageBackend,
    profile: Profile,
    course_id: str,
    password: str,
    now: Optional[datetime] = None,
) -> Subscription:
    """Redeem a one-time course password into an active subscription.

    Claiming the password and activating the subscription share one
    transaction: either both are committed or neither is.
    """
    course = get_active_course(db, course_id)
    now = now or utcnow()
    if not password or not password.strip():
        raise ValidationFailed("Password is required")

    record = password_service.find_redeemable(db, course.id, password, now)
    existing = _find(db, profile.user_id, course.id)
    stale_proof = existing.payment_proof if existing else None
    try:
        password_service.claim(db, record, now)
        sub = _activate(db, existing, profile.user_id, course, now)
        db.commit()
    except Exception:
        db.rollback()
        raise

    _discard_receipt(storage, stale_proof)
    db.refresh(sub)
    logger.info("Course password %s redeemed; subscription %s active until %s", record.id, sub.id, sub.end_date)
    return sub


def _activate(
    db: Session,
    existing: Optional[Subscription],
    user_id: str,
    course: Course,
    now: datetime,
) -> Subscription:
    sub = existing or Subscription(id=str(uuid.uuid4()), user_id=user_id, course_id=course.id)
    sub.status = STATUS_ACTIVE
    sub.start_date = now
    sub.end_date = add_months(now, course.duration_months)
    sub.payment_proof = None
    if existing is None:
        db.add(sub)
    return sub


def my_subscriptions(db: Session, user_id: str) -> list[Subscription]:
    return (
        db.query(Subscription)
        .filter(Subscription.user_id == user_id)
        .order_by(Subscription.created_at.desc())
        .all()
    )


def whatsapp_link(course: Course) -> str:
    """wa.me deep link with a pre-filled subscription request."""
    months = course.duration_months
    price = f"{course.price} {settings.CURRENCY_LABEL}" if course.price is not None else "-"
    message = (
        f"Hello, I would like to subscribe to the course: {course.title}\n"
        f"Price: {price}\n"
        f"Duration: {months} {'month' if months == 1 else 'months'}\n\n"
        "Please send me the payment details and the course password."
    )
    return f"https://wa.me/{settings.WHATSAPP_NUMBER}?text={quote(message)}"


# ── Admin review ─────────────────────────────────────────────────────────────

def list_subscriptions(
    db: Session,
    status: Optional[str] = None,
    search: Optional[str] = None,
) -> list[tuple[Subscription, str, str]]:
    """All subscriptions with student e-mail and course title, newest first."""
    if status and status not in VALID_STATUSES:
        raise ValidationFailed(f"Unknown status '{status}'")

    query = (
        db.query(Subscription, Profile.email, Course.title)
        .join(Profile, Profile.user_id == Subscription.user_id)
        .join(Course, Course.id == Subscription.course_id)
    )
    if status:
        query = query.filter(Subscription.status == status)
    if search:
        pattern = f"%{search.strip().lower()}%"
        query = query.filter(
            or_(Profile.email.ilike(pattern), Course.title.ilike(pattern))
        )
    return [tuple(row) for row in query.order_by(Subscription.created_at.desc()).all()]


def approve(
    db: Session,
    storage: StorageBackend,
    subscription_id: str,
    now: Optional[datetime] = None,
) -> Subscription:
    """pending → active for the receipt path; the receipt is deleted afterwards."""
    sub = get_subscription(db, subscription_id)
    if sub.status != STATUS_PENDING:
        raise InvalidTransition(f"Cannot approve a subscription in status '{sub.status}'")

    now = now or utcnow()
    proof = sub.payment_proof
    _activate(db, sub, sub.user_id, sub.course, now)
    db.commit()

    _discard_receipt(storage, proof)
    db.refresh(sub)
    logger.info("Subscription %s approved until %s", sub.id, sub.end_date)
    return sub


def reject(db: Session, storage: StorageBackend, subscription_id: str) -> None:
    """Drop a pending request outright; no record is kept."""
    sub = get_subscription(db, subscription_id)
    if sub.status != STATUS_PENDING:
        raise InvalidTransition(f"Cannot reject a subscription in status '{sub.status}'")
    _delete(db, storage, sub)


def delete(db: Session, storage: StorageBackend, subscription_id: str) -> None:
    _delete(db, storage, get_subscription(db, subscription_id))


def _delete(db: Session, storage: StorageBackend, sub: Subscription) -> None:
    proof = sub.payment_proof
    sub_id = sub.id
    db.delete(sub)
    db.commit()
    _discard_receipt(storage, proof)
    logger.info("Subscription %s deleted", sub_id)


def renew(
    db: Session,
    subscription_id: str,
    months: int,
    now: Optional[datetime] = None,
) -> Subscription:
    """Extend an active or expired subscription by ``months``.

    The new end date counts from the later of now and the current end date.
    """
    if months < 1:
        raise ValidationFailed("Renewal must be at least one month")
    sub = get_subscription(db, subscription_id)
    if sub.status == STATUS_PENDING:
        raise InvalidTransition("Pending requests must be approved, not renewed")
    now = now or utcnow()

    current_end = as_utc(sub.end_date)
    base = max(now, current_end) if current_end else now
    sub.end_date = add_months(base, months)
    sub.status = STATUS_ACTIVE
    if sub.start_date is None:
        sub.start_date = now
    db.commit()
    db.refresh(sub)
    logger.info("Subscription %s renewed by %d month(s) until %s", sub.id, months, sub.end_date)
    return sub


def receipt_url(db: Session, storage: StorageBackend, subscription_id: str) -> str:
    """Short-lived link to the uploaded receipt for manual review."""
    sub = get_subscription(db, subscription_id)
    if not sub.payment_proof:
        raise NotFoundError("This subscription has no payment receipt")
    return storage.create_signed_url(
        settings.RECEIPT_BUCKET, sub.payment_proof, settings.RECEIPT_URL_TTL_SECONDS
    )


# ── Scheduled ────────────────────────────────────────────────────────────────

def expire_sweep(db: Session, now: Optional[datetime] = None) -> int:
    """Flip active subscriptions whose end date has passed to expired."""
    now = now or utcnow()
    result = db.execute(
        update(Subscription)
        .where(Subscription.status == STATUS_ACTIVE, Subscription.end_date < now)
        .values(status=STATUS_EXPIRED, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    count = result.rowcount or 0
    logger.info("Expiry sweep marked %d subscription(s) expired", count)
    return count
