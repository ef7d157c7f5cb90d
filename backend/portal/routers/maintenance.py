"""Maintenance router — hooks for the external scheduler."""

import secrets
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from portal.config import settings
from portal.database import get_db
from portal.middleware.auth import decode_token, optional_security
from portal.models.profile import Profile
from portal.schemas.subscription import SweepResponse
from portal.services import subscription_service

router = APIRouter(prefix="/api/maintenance", tags=["maintenance"])


def require_scheduler_or_admin(
    x_cron_token: Optional[str] = Header(None),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(optional_security),
    db: Session = Depends(get_db),
) -> None:
    """Accept the configured cron token or an admin bearer token."""
    if settings.CRON_TOKEN and x_cron_token and secrets.compare_digest(x_cron_token, settings.CRON_TOKEN):
        return
    if credentials:
        payload = decode_token(credentials.credentials)
        profile = db.query(Profile).filter(Profile.user_id == payload.get("sub")).first()
        if profile and profile.is_admin:
            return
    raise HTTPException(status_code=403, detail="Scheduler token or admin role required")


@router.post("/expire-subscriptions", response_model=SweepResponse)
def expire_subscriptions(
    db: Session = Depends(get_db),
    _: None = Depends(require_scheduler_or_admin),
):
    """Mark active subscriptions past their end date as expired."""
    return SweepResponse(expired=subscription_service.expire_sweep(db))
