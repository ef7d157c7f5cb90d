"""Private object storage with time-limited signed URLs.

Two interchangeable backends:

* ``LocalStorage`` keeps objects on disk under ``STORAGE_DIR/<bucket>/<path>``
  and signs download links as short-lived JWTs, served by
  ``routers.storage``. Used for local development and tests.
* ``SupabaseStorage`` talks to Supabase Storage through ``supabase-py``.

Object paths are bucket-relative, e.g. ``<user_id>/<course_id>_<ts>.png``.
"""

import logging
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from pathlib import Path, PurePosixPath
from urllib.parse import quote

from jose import JWTError, jwt
from supabase import Client, create_client

from portal.config import settings
from portal.exceptions import AccessDenied, NotFoundError, StorageError, ValidationFailed

logger = logging.getLogger(__name__)

_SIGNED_URL_PURPOSE = "storage"


class StorageBackend:
    """Interface every storage backend implements."""

    def upload(self, bucket: str, path: str, content: bytes, content_type: str | None = None) -> str:
        """Store ``content`` at ``path`` and return the stored path."""
        raise NotImplementedError

    def remove(self, bucket: str, paths: list[str]) -> None:
        raise NotImplementedError

    def create_signed_url(self, bucket: str, path: str, expires_in: int) -> str:
        raise NotImplementedError


def _clean_path(path: str) -> str:
    """Reject absolute paths and parent traversal."""
    parts = PurePosixPath(path).parts
    if not parts or path.startswith("/") or any(p in ("..", ".") for p in parts):
        raise ValidationFailed("Invalid storage path")
    return "/".join(parts)


class LocalStorage(StorageBackend):
    def __init__(self, root: str | Path, base_url: str, secret_key: str, algorithm: str = "HS256"):
        self.root = Path(root)
        self.base_url = base_url.rstrip("/")
        self.secret_key = secret_key
        self.algorithm = algorithm

    def _file(self, bucket: str, path: str) -> Path:
        return self.root / _clean_path(bucket) / _clean_path(path)

    def upload(self, bucket: str, path: str, content: bytes, content_type: str | None = None) -> str:
        target = self._file(bucket, path)
        if target.exists():
            raise StorageError("An object already exists at this path")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(content)
        except OSError as e:
            logger.error("Local upload to %s/%s failed: %s", bucket, path, e)
            raise StorageError() from e
        return _clean_path(path)

    def remove(self, bucket: str, paths: list[str]) -> None:
        for path in paths:
            try:
                self._file(bucket, path).unlink(missing_ok=True)
            except OSError as e:
                logger.error("Local delete of %s/%s failed: %s", bucket, path, e)
                raise StorageError() from e

    def create_signed_url(self, bucket: str, path: str, expires_in: int) -> str:
        token = self.sign(bucket, path, expires_in)
        return f"{self.base_url}/api/storage/{quote(bucket)}/{quote(_clean_path(path))}?token={token}"

    def sign(self, bucket: str, path: str, expires_in: int) -> str:
        expire = datetime.now(timezone.utc) + timedelta(seconds=expires_in)
        claims = {
            "purpose": _SIGNED_URL_PURPOSE,
            "bucket": bucket,
            "path": _clean_path(path),
            "exp": expire,
        }
        return jwt.encode(claims, self.secret_key, algorithm=self.algorithm)

    def open_signed(self, bucket: str, path: str, token: str) -> Path:
        """Validate a signed token for (bucket, path) and return the file on disk."""
        try:
            claims = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError:
            raise AccessDenied("Link is invalid or has expired")
        if (
            claims.get("purpose") != _SIGNED_URL_PURPOSE
            or claims.get("bucket") != bucket
            or claims.get("path") != _clean_path(path)
        ):
            raise AccessDenied("Link is invalid or has expired")
        target = self._file(bucket, path)
        if not target.is_file():
            raise NotFoundError("Object not found")
        return target


class SupabaseStorage(StorageBackend):
    def __init__(self, url: str, key: str):
        if not url or not key:
            raise StorageError("Supabase storage is not configured")
        self.client: Client = create_client(url, key)
        logger.info("Supabase storage client initialised")

    def upload(self, bucket: str, path: str, content: bytes, content_type: str | None = None) -> str:
        options = {"upsert": "false"}
        if content_type:
            options["content-type"] = content_type
        try:
            self.client.storage.from_(bucket).upload(path, content, options)
        except Exception as e:
            logger.error("Supabase upload to %s/%s failed: %s", bucket, path, e)
            raise StorageError() from e
        return path

    def remove(self, bucket: str, paths: list[str]) -> None:
        try:
            self.client.storage.from_(bucket).remove(paths)
        except Exception as e:
            logger.error("Supabase delete in %s failed: %s", bucket, e)
            raise StorageError() from e

    def create_signed_url(self, bucket: str, path: str, expires_in: int) -> str:
        try:
            response = self.client.storage.from_(bucket).create_signed_url(path, expires_in)
        except Exception as e:
            logger.error("Supabase signed URL for %s/%s failed: %s", bucket, path, e)
            raise StorageError() from e
        url = response.get("signedURL") or response.get("signedUrl")
        if not url:
            raise StorageError()
        return url


@lru_cache
def get_storage() -> StorageBackend:
    """FastAPI dependency returning the configured storage backend."""
    backend = settings.STORAGE_BACKEND.lower()
    if backend == "local":
        return LocalStorage(
            root=settings.STORAGE_DIR,
            base_url=settings.PUBLIC_BASE_URL,
            secret_key=settings.SECRET_KEY,
            algorithm=settings.ALGORITHM,
        )
    if backend == "supabase":
        return SupabaseStorage(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)
    raise StorageError(f"Unknown storage backend '{settings.STORAGE_BACKEND}'")
