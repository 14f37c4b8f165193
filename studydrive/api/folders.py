"""Folder API: list, create, detail, update, delete, and subtree copy."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..core.auth import AuthContext, require_user
from ..core.rate_limit import API_CALL, FILE_DELETE, FOLDER_CREATE, rate_limited
from ..database import get_db
from ..schemas.file import DeleteResultResponse
from ..schemas.folder import (
    FolderCopyRequest,
    FolderCreate,
    FolderDetailResponse,
    FolderListResponse,
    FolderResponse,
    FolderUpdate,
)
from ..services.folder_service import FolderService
from ..services.trash_service import TrashService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/drive/folders", tags=["folders"])


@router.get("", response_model=FolderListResponse)
def list_folders(
    parent_id: Optional[str] = Query(None, description="Omit for root folders"),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_user),
):
    folders, total = FolderService(db).list_folders(auth.user_id, parent_id or None, page, limit)
    db.commit()
    return FolderListResponse(folders=folders, total=total, page=page, limit=limit)


@router.post("", response_model=FolderResponse, status_code=201)
def create_folder(
    data: FolderCreate,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(rate_limited(FOLDER_CREATE)),
):
    return FolderService(db).create_folder(
        auth.user_id, data.name, parent_id=data.parent_id, is_public=data.is_public
    )


@router.get("/{folder_id}", response_model=FolderDetailResponse)
def get_folder(
    folder_id: str,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_user),
):
    folder, breadcrumbs = FolderService(db).get_folder(auth.user_id, folder_id)
    return FolderDetailResponse(folder=folder, breadcrumbs=breadcrumbs)


@router.put("/{folder_id}", response_model=FolderResponse)
def update_folder(
    folder_id: str,
    data: FolderUpdate,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(rate_limited(API_CALL)),
):
    return FolderService(db).update_folder(
        auth.user_id, folder_id, name=data.name, is_public=data.is_public
    )


@router.delete("/{folder_id}", response_model=DeleteResultResponse)
def delete_folder(
    folder_id: str,
    permanent: bool = Query(False, description="Skip the trash and delete for good"),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(rate_limited(FILE_DELETE)),
):
    """Move a folder and its contents to trash, or remove them permanently."""
    service = TrashService(db)
    if permanent:
        result = service.hard_delete_folder(auth.user_id, folder_id)
        return DeleteResultResponse(
            permanent=True, folders=result.folders, files=result.files,
            released_bytes=result.released_bytes,
        )
    contents = service.soft_delete_folder(auth.user_id, folder_id)
    return DeleteResultResponse(permanent=False, folders=len(contents.folders), files=len(contents.files))


@router.post("/{folder_id}/copy", response_model=FolderResponse, status_code=201)
def copy_folder(
    folder_id: str,
    data: FolderCopyRequest,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(rate_limited(FOLDER_CREATE)),
):
    """Deep-copy a folder within the drive. Copies share bytes and use no quota."""
    return FolderService(db).copy_subtree(
        auth.user_id, folder_id, target_parent_id=data.target_parent_id, new_name=data.new_name
    )
