"""Course passwords router — admin-minted one-time codes."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from portal.database import get_db
from portal.models.course_password import CoursePassword
from portal.models.profile import Profile
from portal.schemas.subscription import PasswordCreate, PasswordResponse, PasswordListResponse
from portal.middleware.auth import require_admin
from portal.services import password_service

router = APIRouter(prefix="/api/admin/passwords", tags=["admin: passwords"])


def _password_to_response(record: CoursePassword) -> PasswordResponse:
    return PasswordResponse(
        id=record.id,
        course_id=record.course_id,
        course_title=record.course.title if record.course else None,
        password=record.password,
        used=record.used,
        created_at=record.created_at.isoformat(),
        expires_at=record.expires_at.isoformat(),
    )


@router.post("", response_model=PasswordResponse, status_code=201)
def create_password(
    req: PasswordCreate,
    db: Session = Depends(get_db),
    admin: Profile = Depends(require_admin),
):
    """Mint a code for a course; random unless a custom one is given."""
    record = password_service.create_password(db, req.course_id, req.password)
    return _password_to_response(record)


@router.get("", response_model=PasswordListResponse)
def list_passwords(
    db: Session = Depends(get_db),
    admin: Profile = Depends(require_admin),
):
    """Codes that can still be redeemed."""
    records = password_service.list_available(db)
    return PasswordListResponse(passwords=[_password_to_response(r) for r in records], total=len(records))


@router.delete("/{password_id}", status_code=204)
def delete_password(
    password_id: str,
    db: Session = Depends(get_db),
    admin: Profile = Depends(require_admin),
):
    password_service.delete_password(db, password_id)
