"""Videos router — student library and admin video management."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, UploadFile, File, Form
from sqlalchemy.orm import Session

from portal.config import settings
from portal.database import get_db
from portal.models.profile import Profile
from portal.models.video import Video, TYPE_FILE
from portal.schemas.video import (
    VideoUrlCreate,
    VideoUpdate,
    VideoProcess,
    VideoResponse,
    VideoListResponse,
    PlaybackResponse,
)
from portal.middleware.auth import get_current_profile, require_admin
from portal.services import video_service
from portal.services.storage import StorageBackend, get_storage

router = APIRouter(prefix="/api/videos", tags=["videos"])
admin_router = APIRouter(prefix="/api/admin/videos", tags=["admin: videos"])


def video_to_response(video: Video, admin: bool = False, order_index: Optional[int] = None) -> VideoResponse:
    """Students never see storage paths; link videos are resolved via /play."""
    return VideoResponse(
        id=video.id,
        title=video.title,
        description=video.description,
        video_type=video.video_type,
        status=video.status,
        duration_seconds=video.duration_seconds,
        created_at=video.created_at.isoformat(),
        updated_at=video.updated_at.isoformat(),
        file_path=video.file_path if admin else None,
        video_url=video.video_url if admin else None,
        order_index=order_index,
    )


def playback_response(storage: StorageBackend, video: Video) -> PlaybackResponse:
    return PlaybackResponse(
        video_id=video.id,
        video_type=video.video_type,
        url=video_service.resolve_playback_url(storage, video),
        expires_in=settings.VIDEO_URL_TTL_SECONDS if video.video_type == TYPE_FILE else None,
    )


# ── Student library ──────────────────────────────────────────────────────────

@router.get("", response_model=VideoListResponse)
def list_videos(
    db: Session = Depends(get_db),
    current: Profile = Depends(get_current_profile),
):
    """Ready videos for approved users; playback still needs a subscribed course."""
    videos = video_service.list_ready_videos(db, current)
    return VideoListResponse(
        videos=[video_to_response(v, admin=current.is_admin) for v in videos],
        total=len(videos),
    )


@router.get("/{video_id}", response_model=VideoResponse)
def get_video(
    video_id: str,
    db: Session = Depends(get_db),
    current: Profile = Depends(get_current_profile),
):
    video = video_service.get_student_video(db, current, video_id)
    return video_to_response(video, admin=current.is_admin)


@router.get("/{video_id}/play", response_model=PlaybackResponse)
def play_video(
    video_id: str,
    db: Session = Depends(get_db),
    current: Profile = Depends(get_current_profile),
    storage: StorageBackend = Depends(get_storage),
):
    """Playable URL, if the video belongs to a course the caller is subscribed to."""
    video = video_service.get_playable_video(db, current, video_id)
    return playback_response(storage, video)


# ── Admin ────────────────────────────────────────────────────────────────────

@admin_router.get("", response_model=VideoListResponse)
def admin_list_videos(
    db: Session = Depends(get_db),
    admin: Profile = Depends(require_admin),
):
    videos = video_service.list_all_videos(db)
    return VideoListResponse(videos=[video_to_response(v, admin=True) for v in videos], total=len(videos))


@admin_router.post("/upload", response_model=VideoResponse, status_code=201)
async def upload_video(
    title: str = Form(...),
    description: Optional[str] = Form(None),
    duration_seconds: Optional[int] = Form(None),
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    admin: Profile = Depends(require_admin),
    storage: StorageBackend = Depends(get_storage),
):
    """Upload a video file, then run the processing step that marks it ready."""
    content = await file.read()
    if not content:
        raise HTTPException(status_code=400, detail="Empty file")
    if len(content) > settings.MAX_VIDEO_SIZE:
        raise HTTPException(status_code=400, detail="File too large")

    video = video_service.upload_video(
        db,
        storage,
        title=title,
        filename=file.filename or "upload.mp4",
        content=content,
        description=description,
        content_type=file.content_type,
        duration_seconds=duration_seconds,
    )
    video = video_service.process_upload(db, video.id, title=title, description=description)
    return video_to_response(video, admin=True)


@admin_router.post("/url", response_model=VideoResponse, status_code=201)
def add_url_video(
    req: VideoUrlCreate,
    db: Session = Depends(get_db),
    admin: Profile = Depends(require_admin),
):
    """Register an externally hosted video."""
    video = video_service.add_url_video(
        db,
        title=req.title,
        video_url=req.video_url,
        description=req.description,
        duration_seconds=req.duration_seconds,
    )
    return video_to_response(video, admin=True)


@admin_router.post("/{video_id}/process", response_model=VideoResponse)
def process_video(
    video_id: str,
    req: VideoProcess,
    db: Session = Depends(get_db),
    admin: Profile = Depends(require_admin),
):
    """Re-run the post-upload step for a video stuck in processing."""
    video = video_service.process_upload(db, video_id, title=req.title, description=req.description)
    return video_to_response(video, admin=True)


@admin_router.patch("/{video_id}", response_model=VideoResponse)
def update_video(
    video_id: str,
    req: VideoUpdate,
    db: Session = Depends(get_db),
    admin: Profile = Depends(require_admin),
):
    video = video_service.update_video(
        db,
        video_id,
        title=req.title,
        description=req.description,
        video_url=req.video_url,
        duration_seconds=req.duration_seconds,
    )
    return video_to_response(video, admin=True)


@admin_router.patch("/{video_id}/toggle", response_model=VideoResponse)
def toggle_video(
    video_id: str,
    db: Session = Depends(get_db),
    admin: Profile = Depends(require_admin),
):
    """ready ↔ disabled."""
    return video_to_response(video_service.toggle_status(db, video_id), admin=True)


@admin_router.delete("/{video_id}", status_code=204)
def delete_video(
    video_id: str,
    db: Session = Depends(get_db),
    admin: Profile = Depends(require_admin),
    storage: StorageBackend = Depends(get_storage),
):
    video_service.delete_video(db, storage, video_id)


@admin_router.get("/{video_id}/play", response_model=PlaybackResponse)
def admin_play_video(
    video_id: str,
    db: Session = Depends(get_db),
    admin: Profile = Depends(require_admin),
    storage: StorageBackend = Depends(get_storage),
):
    """Preview any video regardless of status."""
    return playback_response(storage, video_service.get_video(db, video_id))
