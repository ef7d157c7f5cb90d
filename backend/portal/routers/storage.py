"""Storage router — serves signed links issued by the local storage backend."""

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import FileResponse

from portal.services.storage import LocalStorage, StorageBackend, get_storage

router = APIRouter(prefix="/api/storage", tags=["storage"])


@router.get("/{bucket}/{path:path}")
def download(
    bucket: str,
    path: str,
    token: str = Query(...),
    storage: StorageBackend = Depends(get_storage),
):
    if not isinstance(storage, LocalStorage):
        raise HTTPException(status_code=404, detail="Not found")
    file_path = storage.open_signed(bucket, path, token)
    return FileResponse(path=str(file_path), filename=file_path.name)
