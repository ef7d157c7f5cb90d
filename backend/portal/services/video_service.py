"""Video service — library management and playback URL resolution."""

import logging
import re
import time
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from portal.config import settings
from portal.dates import utcnow
from portal.exceptions import AccessDenied, InvalidTransition, NotFoundError, StorageError, ValidationFailed
from portal.models.course_video import CourseVideo
from portal.models.profile import Profile
from portal.models.video import (
    Video,
    TYPE_FILE,
    TYPE_URL,
    VIDEO_DISABLED,
    VIDEO_PROCESSING,
    VIDEO_READY,
)
from portal.services import access
from portal.services.storage import StorageBackend

logger = logging.getLogger(__name__)

VIDEO_EXTENSIONS = {"mp4", "mov", "avi", "webm", "mkv", "m4v"}

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def _safe_filename(filename: str) -> str:
    name = _UNSAFE_CHARS.sub("_", filename.rsplit("/", 1)[-1]).strip("._")
    return name or "video"


def get_video(db: Session, video_id: str) -> Video:
    video = db.query(Video).filter(Video.id == video_id).first()
    if not video:
        raise NotFoundError("Video not found")
    return video


def get_student_video(db: Session, profile: Profile, video_id: str) -> Video:
    """A ready video for an approved student; anything else looks missing."""
    access.ensure_approved(profile)
    video = (
        db.query(Video)
        .filter(Video.id == video_id, access.student_visible_video_clause())
        .first()
    )
    if not video:
        raise NotFoundError("Video not found")
    return video


def get_playable_video(db: Session, profile: Profile, video_id: str, now: Optional[datetime] = None) -> Video:
    """A video the caller may stream.

    Admins can preview anything. Students need the video to be ready and
    linked to at least one course they hold an open subscription window for.
    """
    if profile.is_admin:
        return get_video(db, video_id)
    access.ensure_approved(profile)
    now = now or utcnow()
    video = (
        db.query(Video)
        .join(CourseVideo, CourseVideo.video_id == Video.id)
        .filter(
            Video.id == video_id,
            access.student_visible_video_clause(),
            access.active_subscription_clause(profile.user_id, CourseVideo.course_id, now),
        )
        .first()
    )
    if not video:
        raise AccessDenied("An active subscription is required for this video")
    return video


def list_all_videos(db: Session) -> list[Video]:
    return db.query(Video).order_by(Video.created_at.desc()).all()


def list_ready_videos(db: Session, profile: Profile) -> list[Video]:
    access.ensure_approved(profile)
    return (
        db.query(Video)
        .filter(access.student_visible_video_clause())
        .order_by(Video.created_at.desc())
        .all()
    )


def upload_video(
    db: Session,
    storage: StorageBackend,
    title: str,
    filename: str,
    content: bytes,
    description: Optional[str] = None,
    content_type: Optional[str] = None,
    duration_seconds: Optional[int] = None,
) -> Video:
    """Store an uploaded file and register it.

    The row starts as ``processing``; ``process_upload`` flips it to ready.
    If the upload fails the row is removed again.
    """
    if not title or not title.strip():
        raise ValidationFailed("Video title is required")
    ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
    if ext not in VIDEO_EXTENSIONS:
        raise ValidationFailed(
            f"Video type '.{ext}' not supported. Allowed: {', '.join(sorted(VIDEO_EXTENSIONS))}"
        )

    file_path = f"videos/{int(time.time() * 1000)}-{_safe_filename(filename)}"
    video = Video(
        id=str(uuid.uuid4()),
        title=title.strip(),
        description=description,
        file_path=file_path,
        video_type=TYPE_FILE,
        status=VIDEO_PROCESSING,
        duration_seconds=duration_seconds,
    )
    db.add(video)
    db.commit()

    try:
        storage.upload(settings.VIDEO_BUCKET, file_path, content, content_type)
    except StorageError:
        db.delete(video)
        db.commit()
        raise

    db.refresh(video)
    logger.info("Video %s uploaded to %s", video.id, file_path)
    return video


def process_upload(
    db: Session,
    video_id: str,
    title: Optional[str] = None,
    description: Optional[str] = None,
) -> Video:
    """Post-upload step: no transcoding, only metadata and ``ready``."""
    video = get_video(db, video_id)
    video.title = (title or video.title or "Untitled Video").strip()
    if description is not None:
        video.description = description
    video.status = VIDEO_READY
    db.commit()
    db.refresh(video)
    logger.info("Video %s processed and ready", video.id)
    return video


def add_url_video(
    db: Session,
    title: str,
    video_url: str,
    description: Optional[str] = None,
    duration_seconds: Optional[int] = None,
) -> Video:
    """Register an externally hosted video. Stored as given, not validated."""
    if not title or not title.strip():
        raise ValidationFailed("Video title is required")
    if not video_url or not video_url.strip():
        raise ValidationFailed("Video URL is required")
    video = Video(
        id=str(uuid.uuid4()),
        title=title.strip(),
        description=description,
        video_url=video_url.strip(),
        video_type=TYPE_URL,
        status=VIDEO_READY,
        duration_seconds=duration_seconds,
    )
    db.add(video)
    db.commit()
    db.refresh(video)
    return video


def update_video(
    db: Session,
    video_id: str,
    title: Optional[str] = None,
    description: Optional[str] = None,
    video_url: Optional[str] = None,
    duration_seconds: Optional[int] = None,
) -> Video:
    video = get_video(db, video_id)
    if title is not None:
        if not title.strip():
            raise ValidationFailed("Video title is required")
        video.title = title.strip()
    if description is not None:
        video.description = description
    if video_url is not None:
        if video.video_type != TYPE_URL:
            raise ValidationFailed("Only link videos have a URL")
        video.video_url = video_url.strip()
    if duration_seconds is not None:
        video.duration_seconds = duration_seconds
    db.commit()
    db.refresh(video)
    return video


def toggle_status(db: Session, video_id: str) -> Video:
    """ready ↔ disabled. Processing videos must be processed first."""
    video = get_video(db, video_id)
    if video.status == VIDEO_PROCESSING:
        raise InvalidTransition("Video is still processing")
    video.status = VIDEO_DISABLED if video.status == VIDEO_READY else VIDEO_READY
    db.commit()
    db.refresh(video)
    logger.info("Video %s status=%s", video.id, video.status)
    return video


def delete_video(db: Session, storage: StorageBackend, video_id: str) -> None:
    """Remove the stored file (best effort) then the row and its playlist links."""
    video = get_video(db, video_id)
    if video.video_type == TYPE_FILE and video.file_path:
        try:
            storage.remove(settings.VIDEO_BUCKET, [video.file_path])
        except StorageError as e:
            logger.warning("Could not delete video file %s: %s", video.file_path, e)
    db.delete(video)
    db.commit()
    logger.info("Video %s deleted", video_id)


def resolve_playback_url(storage: StorageBackend, video: Video) -> str:
    """Playable URL for a video.

    Files get a signed URL valid for ``VIDEO_URL_TTL_SECONDS``; link videos
    return their stored URL unchanged.
    """
    if video.video_type == TYPE_URL:
        if not video.video_url:
            raise NotFoundError("Video has no URL")
        return video.video_url
    if not video.file_path:
        raise NotFoundError("Video has no file")
    return storage.create_signed_url(settings.VIDEO_BUCKET, video.file_path, settings.VIDEO_URL_TTL_SECONDS)
