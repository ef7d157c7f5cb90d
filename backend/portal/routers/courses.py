"""Courses router — student catalog, playlists and admin course management."""

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from portal.database import get_db
from portal.dates import utcnow
from portal.exceptions import NotFoundError
from portal.models.course import Course
from portal.models.profile import Profile
from portal.models.subscription import Subscription
from portal.models.video import Video
from portal.schemas.course import (
    CourseCreate,
    CourseUpdate,
    CourseResponse,
    CourseListResponse,
    CourseVideosUpdate,
    WhatsAppLinkResponse,
)
from portal.schemas.video import VideoListResponse, PlaybackResponse
from portal.middleware.auth import get_current_profile, get_optional_profile, require_admin
from portal.routers.videos import video_to_response, playback_response
from portal.services import access, course_service, subscription_service
from portal.services.storage import StorageBackend, get_storage

router = APIRouter(prefix="/api/courses", tags=["courses"])
admin_router = APIRouter(prefix="/api/admin/courses", tags=["admin: courses"])


def course_to_response(course: Course, subscription: Subscription | None = None) -> CourseResponse:
    return CourseResponse(
        id=course.id,
        title=course.title,
        description=course.description,
        price=float(course.price) if course.price is not None else None,
        duration_months=course.duration_months,
        is_active=course.is_active,
        created_at=course.created_at.isoformat(),
        subscription_status=subscription.status if subscription else None,
        has_access=access.is_active_window(subscription),
    )


# ── Student catalog ──────────────────────────────────────────────────────────

@router.get("", response_model=CourseListResponse)
def list_courses(
    db: Session = Depends(get_db),
    current: Optional[Profile] = Depends(get_optional_profile),
):
    """Active courses. Signed-in callers also get their subscription status."""
    courses = course_service.list_catalog(db)
    subs = course_service.subscriptions_by_course(db, current.user_id) if current else {}
    return CourseListResponse(
        courses=[course_to_response(c, subs.get(c.id)) for c in courses],
        total=len(courses),
    )


@router.get("/{course_id}", response_model=CourseResponse)
def get_course(
    course_id: str,
    db: Session = Depends(get_db),
    current: Optional[Profile] = Depends(get_optional_profile),
):
    course = course_service.get_active_course(db, course_id)
    subs = course_service.subscriptions_by_course(db, current.user_id) if current else {}
    return course_to_response(course, subs.get(course.id))


@router.get("/{course_id}/whatsapp", response_model=WhatsAppLinkResponse)
def whatsapp_link(
    course_id: str,
    db: Session = Depends(get_db),
    current: Profile = Depends(get_current_profile),
):
    """Deep link for negotiating payment with the admins over WhatsApp."""
    course = course_service.get_active_course(db, course_id)
    return WhatsAppLinkResponse(course_id=course.id, url=subscription_service.whatsapp_link(course))


@router.get("/{course_id}/videos", response_model=VideoListResponse)
def list_course_videos(
    course_id: str,
    db: Session = Depends(get_db),
    current: Profile = Depends(get_current_profile),
):
    """Course playlist; students need an active subscription window."""
    videos = course_service.list_course_videos(db, current, course_id)
    return VideoListResponse(
        videos=[video_to_response(v, admin=current.is_admin, order_index=i) for i, v in enumerate(videos)],
        total=len(videos),
    )


@router.get("/{course_id}/videos/{video_id}/play", response_model=PlaybackResponse)
def play_course_video(
    course_id: str,
    video_id: str,
    db: Session = Depends(get_db),
    current: Profile = Depends(get_current_profile),
    storage: StorageBackend = Depends(get_storage),
):
    """Resolve a playable URL for a video of a course the caller may watch."""
    videos = course_service.list_course_videos(db, current, course_id, now=utcnow())
    video: Video | None = next((v for v in videos if v.id == video_id), None)
    if video is None:
        raise NotFoundError("Video not found")
    return playback_response(storage, video)


# ── Admin ────────────────────────────────────────────────────────────────────

@admin_router.get("", response_model=CourseListResponse)
def admin_list_courses(
    db: Session = Depends(get_db),
    admin: Profile = Depends(require_admin),
):
    courses = course_service.list_all_courses(db)
    return CourseListResponse(courses=[course_to_response(c) for c in courses], total=len(courses))


@admin_router.post("", response_model=CourseResponse, status_code=201)
def create_course(
    req: CourseCreate,
    db: Session = Depends(get_db),
    admin: Profile = Depends(require_admin),
):
    course = course_service.create_course(
        db,
        title=req.title,
        description=req.description,
        price=req.price,
        duration_months=req.duration_months,
        is_active=req.is_active,
    )
    return course_to_response(course)


@admin_router.patch("/{course_id}", response_model=CourseResponse)
def update_course(
    course_id: str,
    req: CourseUpdate,
    db: Session = Depends(get_db),
    admin: Profile = Depends(require_admin),
):
    # Only fields present in the body are touched; explicit nulls clear.
    clearable = {k: getattr(req, k) for k in ("description", "price") if k in req.model_fields_set}
    course = course_service.update_course(
        db,
        course_id,
        title=req.title,
        duration_months=req.duration_months,
        is_active=req.is_active,
        **clearable,
    )
    return course_to_response(course)


@admin_router.patch("/{course_id}/toggle", response_model=CourseResponse)
def toggle_course(
    course_id: str,
    db: Session = Depends(get_db),
    admin: Profile = Depends(require_admin),
):
    """Show or hide a course in the catalog."""
    return course_to_response(course_service.toggle_active(db, course_id))


@admin_router.delete("/{course_id}", status_code=204)
def delete_course(
    course_id: str,
    db: Session = Depends(get_db),
    admin: Profile = Depends(require_admin),
):
    course_service.delete_course(db, course_id)


@admin_router.get("/{course_id}/videos", response_model=VideoListResponse)
def admin_list_course_videos(
    course_id: str,
    db: Session = Depends(get_db),
    admin: Profile = Depends(require_admin),
):
    videos = course_service.list_course_videos(db, admin, course_id)
    return VideoListResponse(
        videos=[video_to_response(v, admin=True, order_index=i) for i, v in enumerate(videos)],
        total=len(videos),
    )


@admin_router.put("/{course_id}/videos", response_model=VideoListResponse)
def set_course_videos(
    course_id: str,
    req: CourseVideosUpdate,
    db: Session = Depends(get_db),
    admin: Profile = Depends(require_admin),
):
    """Replace the playlist; list order becomes playback order."""
    course_service.set_course_videos(db, course_id, req.video_ids)
    videos = course_service.list_course_videos(db, admin, course_id)
    return VideoListResponse(
        videos=[video_to_response(v, admin=True, order_index=i) for i, v in enumerate(videos)],
        total=len(videos),
    )
