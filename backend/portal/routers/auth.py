"""Auth router — registration, login, and current profile."""

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from portal.config import settings
from portal.database import get_db
from portal.models.profile import Profile
from portal.models.user import User
from portal.schemas.auth import RegisterRequest, LoginRequest, TokenResponse, ProfileResponse
from portal.middleware.auth import verify_password, create_access_token, get_current_profile
from portal.middleware.rate_limit import limiter
from portal.services import profile_service

router = APIRouter(prefix="/api/auth", tags=["auth"])


def profile_to_response(profile: Profile) -> ProfileResponse:
    return ProfileResponse(
        id=profile.id,
        user_id=profile.user_id,
        email=profile.email,
        role=profile.role,
        approved=profile.approved,
        created_at=profile.created_at.isoformat(),
    )


@router.post("/register", response_model=ProfileResponse, status_code=201)
def register(req: RegisterRequest, db: Session = Depends(get_db)):
    """Register a student account. It stays unapproved until an admin approves it."""
    profile = profile_service.register_user(db, req.email, req.password)
    return profile_to_response(profile)


@router.post("/login", response_model=TokenResponse)
@limiter.limit(settings.LOGIN_RATE_LIMIT)
def login(request: Request, req: LoginRequest, db: Session = Depends(get_db)):
    """Login and get JWT token."""
    user = db.query(User).filter(User.email == req.email.strip().lower()).first()
    if not user or not verify_password(req.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid email or password")

    role = user.profile.role if user.profile else None
    token = create_access_token(user.id, role)
    return TokenResponse(access_token=token)


@router.get("/me", response_model=ProfileResponse)
def get_me(current: Profile = Depends(get_current_profile)):
    """Get current profile."""
    return profile_to_response(current)
