"""Access gate — who may see which course content.

These predicates are the authorization boundary for students: every query
that can return course playlists or videos to a student goes through them.
Admins bypass subscription gating entirely.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import and_, exists
from sqlalchemy.orm import Session

from portal.dates import as_utc, utcnow
from portal.exceptions import AccessDenied
from portal.models.profile import Profile
from portal.models.subscription import Subscription, STATUS_ACTIVE
from portal.models.video import Video, VIDEO_READY


def is_active_window(subscription: Optional[Subscription], now: Optional[datetime] = None) -> bool:
    """True iff the subscription is active and ``now`` lies inside [start_date, end_date]."""
    if subscription is None or subscription.status != STATUS_ACTIVE:
        return False
    if subscription.start_date is None or subscription.end_date is None:
        return False
    now = as_utc(now or utcnow())
    return as_utc(subscription.start_date) <= now <= as_utc(subscription.end_date)


def active_subscription_clause(user_id: str, course_id, now: datetime):
    """SQL predicate: an active, in-window subscription exists for (user, course).

    ``course_id`` may be a literal id or a column (for correlated queries).
    """
    return exists().where(
        and_(
            Subscription.user_id == user_id,
            Subscription.course_id == course_id,
            Subscription.status == STATUS_ACTIVE,
            Subscription.start_date <= now,
            Subscription.end_date >= now,
        )
    )


def student_visible_video_clause():
    """Only ready videos are ever shown to students."""
    return Video.status == VIDEO_READY


def ensure_approved(profile: Profile) -> None:
    """Platform-level gate: students need admin approval before any content access."""
    if profile.is_admin:
        return
    if not profile.approved:
        raise AccessDenied("Your account is awaiting approval")


def has_course_access(db: Session, profile: Profile, course_id: str, now: Optional[datetime] = None) -> bool:
    if profile.is_admin:
        return True
    if not profile.approved:
        return False
    now = now or utcnow()
    return db.query(active_subscription_clause(profile.user_id, course_id, now)).scalar()


def ensure_course_access(db: Session, profile: Profile, course_id: str, now: Optional[datetime] = None) -> None:
    ensure_approved(profile)
    if not has_course_access(db, profile, course_id, now):
        raise AccessDenied("An active subscription is required for this course")
