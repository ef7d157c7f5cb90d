"""Profiles router — admin approval of student accounts."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from portal.database import get_db
from portal.models.profile import Profile
from portal.schemas.auth import ProfileResponse, ProfileListResponse, ApprovalUpdate
from portal.middleware.auth import require_admin
from portal.routers.auth import profile_to_response
from portal.services import profile_service

router = APIRouter(prefix="/api/admin/profiles", tags=["admin: profiles"])


@router.get("", response_model=ProfileListResponse)
def list_profiles(
    role: Optional[str] = Query(None),
    approved: Optional[bool] = Query(None),
    db: Session = Depends(get_db),
    admin: Profile = Depends(require_admin),
):
    profiles = profile_service.list_profiles(db, role=role, approved=approved)
    return ProfileListResponse(profiles=[profile_to_response(p) for p in profiles], total=len(profiles))


@router.patch("/{user_id}/approval", response_model=ProfileResponse)
def set_approval(
    user_id: str,
    req: ApprovalUpdate,
    db: Session = Depends(get_db),
    admin: Profile = Depends(require_admin),
):
    """Grant or revoke a student's platform access."""
    return profile_to_response(profile_service.set_approved(db, user_id, req.approved))
