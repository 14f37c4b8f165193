"""File API: list, upload, detail, update, delete, download, and save-from-url."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from ..core.auth import AuthContext, require_user
from ..core.config import settings
from ..core.rate_limit import API_CALL, FILE_DELETE, FILE_UPLOAD, rate_limited
from ..database import get_db
from ..schemas.file import (
    DeleteResultResponse,
    DriveFileResponse,
    FileListResponse,
    FileUpdate,
    SaveFromUrlRequest,
)
from ..services.file_service import FileService
from ..services.trash_service import TrashService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/drive/files", tags=["files"])

# Separate router to keep save-from-url at its own URL.
save_router = APIRouter(prefix="/api/drive", tags=["files"])


@router.get("", response_model=FileListResponse)
def list_files(
    folder_id: Optional[str] = Query(None, description="Omit for files in the drive root"),
    search: Optional[str] = Query(None, max_length=200),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_user),
):
    files, total = FileService(db).list_files(auth.user_id, folder_id, search, page, limit)
    db.commit()
    return FileListResponse(files=files, total=total, page=page, limit=limit)


@router.post("", response_model=DriveFileResponse, status_code=201)
def upload_file(
    file: UploadFile = File(...),
    folder_id: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    tags: Optional[str] = Form(None, description="JSON array of strings"),
    is_public: bool = Form(False),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(rate_limited(FILE_UPLOAD)),
):
    # One byte past the limit is enough for the service to reject it.
    data = file.file.read(settings.max_file_size + 1)
    return FileService(db).upload(
        auth.user_id,
        data,
        file.filename or "upload",
        mime_type=file.content_type,
        folder_id=folder_id or None,
        tags=tags,
        description=description,
        is_public=is_public,
    )


@router.get("/{file_id}", response_model=DriveFileResponse)
def get_file(
    file_id: str,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_user),
):
    return FileService(db).get_file(auth.user_id, file_id)


@router.put("/{file_id}", response_model=DriveFileResponse)
def update_file(
    file_id: str,
    data: FileUpdate,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(rate_limited(API_CALL)),
):
    return FileService(db).update_file(
        auth.user_id,
        file_id,
        name=data.name,
        description=data.description,
        tags=data.tags,
        is_public=data.is_public,
    )


@router.delete("/{file_id}", response_model=DeleteResultResponse)
def delete_file(
    file_id: str,
    permanent: bool = Query(False, description="Skip the trash and delete for good"),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(rate_limited(FILE_DELETE)),
):
    service = TrashService(db)
    if permanent:
        result = service.hard_delete_file(auth.user_id, file_id)
        return DeleteResultResponse(
            permanent=True, folders=0, files=result.files, released_bytes=result.released_bytes
        )
    service.soft_delete_file(auth.user_id, file_id)
    return DeleteResultResponse(permanent=False, folders=0, files=1)


@router.get("/{file_id}/content")
def download_file(
    file_id: str,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_user),
):
    """Stream the file. Downloads by other users count against the owner's bandwidth."""
    file, path = FileService(db).open_for_download(auth.user_id, file_id)
    return FileResponse(path, media_type=file.mime_type, filename=file.original_name)


@save_router.post("/save-from-url", response_model=DriveFileResponse, status_code=201)
def save_from_url(
    data: SaveFromUrlRequest,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(rate_limited(FILE_UPLOAD)),
):
    """Fetch a remote file into the drive. Identical content already stored returns 409."""
    return FileService(db).save_from_url(
        auth.user_id, data.url, name=data.name, folder_id=data.folder_id, description=data.description
    )
