"""Drive API: info, explicit init, settings, activity feed, and search."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..core.auth import AuthContext, require_user
from ..core.rate_limit import API_CALL, SEARCH, rate_limited
from ..database import get_db
from ..schemas.activity import ActivityListResponse
from ..schemas.drive import DriveInfoResponse, DriveResponse, DriveSettingsUpdate
from ..schemas.file import SearchResponse
from ..services import activity_service
from ..services.drive_service import DriveService
from ..services.file_service import FileService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/drive", tags=["drive"])


@router.get("", response_model=DriveInfoResponse)
def get_drive_info(
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_user),
):
    """Drive of the caller, created on first access."""
    return DriveService(db).get_info(auth.user_id)


@router.post("", response_model=DriveResponse)
def init_drive(
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(rate_limited(API_CALL)),
):
    return DriveService(db).get_drive(auth.user_id)


@router.patch("", response_model=DriveResponse)
def update_drive_settings(
    data: DriveSettingsUpdate,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(rate_limited(API_CALL)),
):
    return DriveService(db).update_settings(
        auth.user_id, is_private=data.is_private, allow_copying=data.allow_copying
    )


# -- Activity ------------------------------------------------------------

@router.get("/activity", response_model=ActivityListResponse)
def list_activity(
    action: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_user),
):
    drive = DriveService(db).ensure_drive(auth.user_id)
    activities, total = activity_service.list_activity(
        db, drive.id, action=action, skip=(page - 1) * limit, limit=limit
    )
    stats = activity_service.get_stats(db, drive.id)
    db.commit()
    return ActivityListResponse(
        activities=activities, total=total, page=page, limit=limit, stats=stats
    )


# -- Search --------------------------------------------------------------

@router.get("/search", response_model=SearchResponse)
def search_drive(
    q: str = Query(..., min_length=1, max_length=200),
    type: str = Query("all", pattern="^(all|file|folder)$"),
    file_type: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=100),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(rate_limited(SEARCH)),
):
    """Search file names, descriptions, tags, and folder names across the drive."""
    files, folders = FileService(db).search(auth.user_id, q, kind=type, file_type=file_type, limit=limit)
    db.commit()
    return SearchResponse(query=q, files=files, folders=folders)
