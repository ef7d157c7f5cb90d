"""Course service — catalog reads and admin course management."""

import logging
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from portal.dates import utcnow
from portal.exceptions import NotFoundError, ValidationFailed
from portal.models.course import Course
from portal.models.course_video import CourseVideo
from portal.models.profile import Profile
from portal.models.subscription import Subscription
from portal.models.video import Video
from portal.services import access

logger = logging.getLogger(__name__)

_UNSET = object()


def get_course(db: Session, course_id: str) -> Course:
    course = db.query(Course).filter(Course.id == course_id).first()
    if not course:
        raise NotFoundError("Course not found")
    return course


def get_active_course(db: Session, course_id: str) -> Course:
    """Catalog lookup: inactive courses look like missing ones."""
    course = db.query(Course).filter(Course.id == course_id, Course.is_active.is_(True)).first()
    if not course:
        raise NotFoundError("Course not found")
    return course


def list_catalog(db: Session) -> list[Course]:
    """Active courses, newest first."""
    return (
        db.query(Course)
        .filter(Course.is_active.is_(True))
        .order_by(Course.created_at.desc())
        .all()
    )


def list_all_courses(db: Session) -> list[Course]:
    return db.query(Course).order_by(Course.created_at.desc()).all()


def subscriptions_by_course(db: Session, user_id: str) -> dict[str, Subscription]:
    """The caller's subscriptions keyed by course id, for annotating the catalog."""
    rows = db.query(Subscription).filter(Subscription.user_id == user_id).all()
    return {s.course_id: s for s in rows}


def _validate(title: Optional[str], duration_months: Optional[int], price: Optional[Decimal]) -> None:
    if title is not None and not title.strip():
        raise ValidationFailed("Course title is required")
    if duration_months is not None and duration_months < 1:
        raise ValidationFailed("Duration must be at least one month")
    if price is not None and price < 0:
        raise ValidationFailed("Price cannot be negative")


def create_course(
    db: Session,
    title: str,
    description: Optional[str] = None,
    price: Optional[Decimal] = None,
    duration_months: int = 1,
    is_active: bool = True,
) -> Course:
    _validate(title, duration_months, price)
    course = Course(
        id=str(uuid.uuid4()),
        title=title.strip(),
        description=description,
        price=price,
        duration_months=duration_months,
        is_active=is_active,
    )
    db.add(course)
    db.commit()
    db.refresh(course)
    logger.info("Course %s created", course.id)
    return course


def update_course(
    db: Session,
    course_id: str,
    title: Optional[str] = None,
    description=_UNSET,
    price=_UNSET,
    duration_months: Optional[int] = None,
    is_active: Optional[bool] = None,
) -> Course:
    """Partial update; ``description``/``price`` accept an explicit None to clear them."""
    course = get_course(db, course_id)
    _validate(title, duration_months, None if price is _UNSET else price)

    if title is not None:
        course.title = title.strip()
    if description is not _UNSET:
        course.description = description
    if price is not _UNSET:
        course.price = price
    if duration_months is not None:
        course.duration_months = duration_months
    if is_active is not None:
        course.is_active = is_active

    db.commit()
    db.refresh(course)
    return course


def toggle_active(db: Session, course_id: str) -> Course:
    course = get_course(db, course_id)
    course.is_active = not course.is_active
    db.commit()
    db.refresh(course)
    logger.info("Course %s is_active=%s", course.id, course.is_active)
    return course


def delete_course(db: Session, course_id: str) -> None:
    """Delete a course with its playlist, passwords and subscriptions."""
    course = get_course(db, course_id)
    db.delete(course)
    db.commit()
    logger.info("Course %s deleted", course_id)


def set_course_videos(db: Session, course_id: str, video_ids: list[str]) -> list[CourseVideo]:
    """Replace the course playlist with ``video_ids`` in the given order."""
    course = get_course(db, course_id)

    if len(set(video_ids)) != len(video_ids):
        raise ValidationFailed("A video can only appear once in a course")
    if video_ids:
        found = {v.id for v in db.query(Video.id).filter(Video.id.in_(video_ids)).all()}
        missing = [v for v in video_ids if v not in found]
        if missing:
            raise NotFoundError(f"Video not found: {missing[0]}")

    db.query(CourseVideo).filter(CourseVideo.course_id == course.id).delete(synchronize_session=False)
    links = [
        CourseVideo(id=str(uuid.uuid4()), course_id=course.id, video_id=video_id, order_index=index)
        for index, video_id in enumerate(video_ids)
    ]
    db.add_all(links)
    db.commit()
    db.expire(course)
    return links


def list_course_videos(
    db: Session,
    profile: Profile,
    course_id: str,
    now: Optional[datetime] = None,
) -> list[Video]:
    """Playlist for a viewer, in order.

    Students get ready videos only, and only while their subscription window
    is open; the subscription predicate is part of the query itself.
    Admins see every linked video.
    """
    # Deactivated courses stay readable for subscribers.
    get_course(db, course_id)
    query = (
        db.query(Video)
        .join(CourseVideo, CourseVideo.video_id == Video.id)
        .filter(CourseVideo.course_id == course_id)
    )
    if not profile.is_admin:
        now = now or utcnow()
        access.ensure_course_access(db, profile, course_id, now)
        query = query.filter(
            access.student_visible_video_clause(),
            access.active_subscription_clause(profile.user_id, CourseVideo.course_id, now),
        )
    return query.order_by(CourseVideo.order_index.asc()).all()
