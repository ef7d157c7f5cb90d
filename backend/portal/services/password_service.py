"""Course password service — one-time activation codes."""

import logging
import secrets
import string
import uuid
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from portal.config import settings
from portal.dates import utcnow
from portal.exceptions import InvalidOrExpiredPassword, NotFoundError, ValidationFailed
from portal.models.course_password import CoursePassword
from portal.services.course_service import get_course

logger = logging.getLogger(__name__)

PASSWORD_ALPHABET = string.ascii_uppercase + string.digits


def generate_password(length: Optional[int] = None) -> str:
    """Random code from A-Z0-9."""
    length = length or settings.COURSE_PASSWORD_LENGTH
    return "".join(secrets.choice(PASSWORD_ALPHABET) for _ in range(length))


def create_password(
    db: Session,
    course_id: str,
    password: Optional[str] = None,
    now: Optional[datetime] = None,
) -> CoursePassword:
    """Mint a code for a course; a custom code is used as-is after trimming."""
    course = get_course(db, course_id)
    if password is not None:
        password = password.strip()
        if not password:
            raise ValidationFailed("Password cannot be blank")
    now = now or utcnow()

    record = CoursePassword(
        id=str(uuid.uuid4()),
        course_id=course.id,
        password=password or generate_password(),
        used=False,
        created_at=now,
        expires_at=now + timedelta(days=settings.COURSE_PASSWORD_TTL_DAYS),
    )
    db.add(record)
    db.commit()
    db.refresh(record)
    logger.info("Course password %s minted for course %s", record.id, course.id)
    return record


def list_available(db: Session, now: Optional[datetime] = None) -> list[CoursePassword]:
    """Unused, unexpired codes, newest first."""
    now = now or utcnow()
    return (
        db.query(CoursePassword)
        .filter(CoursePassword.used.is_(False), CoursePassword.expires_at > now)
        .order_by(CoursePassword.created_at.desc())
        .all()
    )


def delete_password(db: Session, password_id: str) -> None:
    record = db.query(CoursePassword).filter(CoursePassword.id == password_id).first()
    if not record:
        raise NotFoundError("Password not found")
    db.delete(record)
    db.commit()


def find_redeemable(db: Session, course_id: str, password: str, now: datetime) -> CoursePassword:
    record = (
        db.query(CoursePassword)
        .filter(
            CoursePassword.course_id == course_id,
            CoursePassword.password == password.strip(),
            CoursePassword.used.is_(False),
            CoursePassword.expires_at > now,
        )
        .first()
    )
    if not record:
        raise InvalidOrExpiredPassword()
    return record


def claim(db: Session, record: CoursePassword, now: datetime) -> None:
    """Mark the code used inside the caller's transaction.

    The update only matches a still-unused, unexpired row, so two
    concurrent redemptions cannot both claim the same code.
    """
    result = db.execute(
        update(CoursePassword)
        .where(
            CoursePassword.id == record.id,
            CoursePassword.used.is_(False),
            CoursePassword.expires_at > now,
        )
        .values(used=True)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise InvalidOrExpiredPassword()
    record.used = True
