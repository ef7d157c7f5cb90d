"""Bearer-token authentication and role dependencies."""

from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from portal.config import settings
from portal.database import get_db
from portal.models.profile import Profile

security = HTTPBearer()
optional_security = HTTPBearer(auto_error=False)

ACCESS_TOKEN_TYPE = "access"


def hash_password(password: str) -> str:
    """bcrypt hash (passlib is broken with bcrypt>=4.1, so call bcrypt directly)."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))


def create_access_token(user_id: str, role: Optional[str] = None) -> str:
    expire = datetime.now(timezone.utc) + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    claims = {"sub": user_id, "role": role, "type": ACCESS_TOKEN_TYPE, "exp": expire}
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_token(token: str) -> dict:
    """Validate a login token and return its claims.

    Signed storage links use the same secret, so the ``type`` claim is
    what tells the two apart.
    """
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )
    if payload.get("type") != ACCESS_TOKEN_TYPE or not payload.get("sub"):
        raise HTTPException(status_code=401, detail="Invalid token payload")
    return payload


def get_current_profile(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> Profile:
    payload = decode_token(credentials.credentials)
    profile = db.query(Profile).filter(Profile.user_id == payload["sub"]).first()
    if not profile:
        raise HTTPException(status_code=401, detail="User not found")
    return profile


def get_optional_profile(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(optional_security),
    db: Session = Depends(get_db),
) -> Optional[Profile]:
    """The caller's profile, or None for anonymous visitors. A bad token is still a 401."""
    if credentials is None:
        return None
    return get_current_profile(credentials, db)


def require_admin(current: Profile = Depends(get_current_profile)) -> Profile:
    if not current.is_admin:
        raise HTTPException(status_code=403, detail="Admin role required")
    return current
