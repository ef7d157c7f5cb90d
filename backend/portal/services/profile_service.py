"""Profile service — registration side effects and student approval."""

import logging
import uuid
from typing import Optional

from sqlalchemy.orm import Session

from portal.exceptions import InvalidTransition, NotFoundError, ValidationFailed
from portal.middleware.auth import hash_password
from portal.models.profile import Profile, ROLE_ADMIN, ROLE_STUDENT
from portal.models.user import User

logger = logging.getLogger(__name__)


def register_user(db: Session, email: str, password: str, role: str = ROLE_STUDENT) -> Profile:
    """Create credentials plus profile. New students start unapproved."""
    email = email.strip().lower()
    if not email or "@" not in email:
        raise ValidationFailed("A valid e-mail is required")
    if len(password) < 6:
        raise ValidationFailed("Password must be at least 6 characters")
    if role not in (ROLE_ADMIN, ROLE_STUDENT):
        raise ValidationFailed("Role must be 'admin' or 'student'")
    if db.query(User).filter(User.email == email).first():
        raise InvalidTransition("Email already registered")

    user = User(id=str(uuid.uuid4()), email=email, password_hash=hash_password(password))
    profile = Profile(
        id=str(uuid.uuid4()),
        user_id=user.id,
        email=email,
        role=role,
        approved=role == ROLE_ADMIN,
    )
    db.add(user)
    db.add(profile)
    db.commit()
    db.refresh(profile)
    logger.info("Registered %s %s", role, profile.user_id)
    return profile


def get_profile(db: Session, user_id: str) -> Optional[Profile]:
    return db.query(Profile).filter(Profile.user_id == user_id).first()


def list_profiles(db: Session, role: Optional[str] = None, approved: Optional[bool] = None) -> list[Profile]:
    query = db.query(Profile)
    if role:
        query = query.filter(Profile.role == role)
    if approved is not None:
        query = query.filter(Profile.approved.is_(approved))
    return query.order_by(Profile.created_at.desc()).all()


def set_approved(db: Session, user_id: str, approved: bool) -> Profile:
    profile = get_profile(db, user_id)
    if not profile:
        raise NotFoundError("User not found")
    if profile.is_admin and not approved:
        raise InvalidTransition("Admins cannot be revoked")
    profile.approved = approved
    db.commit()
    db.refresh(profile)
    logger.info("Profile %s approved=%s", user_id, approved)
    return profile
