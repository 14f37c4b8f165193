"""Drive activity log: records uploads, downloads, copies, deletes, and restores.

Entries are immutable. ``record`` adds the entry to the caller's session
without committing, so it lands in the same transaction as the change it
describes.

Usage in the service layer:
    activity_service.record(db, drive_id=drive.id, user_id="u1", action="upload",
                            target_type="file", target_id=file.id, target_name=file.original_name)
"""

import logging
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..models import DriveActivity

logger = logging.getLogger(__name__)

ACTIONS = (
    "upload", "download", "delete", "restore", "copy", "import",
    "move", "rename", "update", "create",
)


def record(
    db: Session,
    drive_id: str,
    user_id: str,
    action: str,
    target_type: str,
    target_id: Optional[str] = None,
    target_name: Optional[str] = None,
    details: Optional[dict] = None,
) -> DriveActivity:
    entry = DriveActivity(
        drive_id=drive_id,
        user_id=user_id,
        action=action,
        target_type=target_type,
        target_id=target_id,
        target_name=target_name,
        details=details or None,
    )
    db.add(entry)
    logger.debug("Activity %s %s %s", action, target_type, target_id)
    return entry


def list_activity(
    db: Session,
    drive_id: str,
    action: Optional[str] = None,
    skip: int = 0,
    limit: int = 20,
) -> tuple[list[DriveActivity], int]:
    """Newest-first page of a drive's activity, optionally one action only."""
    query = db.query(DriveActivity).filter(DriveActivity.drive_id == drive_id)
    if action:
        query = query.filter(DriveActivity.action == action)
    total = query.count()
    rows = (
        query.order_by(DriveActivity.created_at.desc(), DriveActivity.id.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )
    return rows, total


def get_stats(db: Session, drive_id: str) -> dict[str, int]:
    """Counts for the feed filters: all, upload, download, delete."""
    rows = (
        db.query(DriveActivity.action, func.count(DriveActivity.id))
        .filter(DriveActivity.drive_id == drive_id)
        .group_by(DriveActivity.action)
        .all()
    )
    counts = {action: count for action, count in rows}
    return {
        "total": sum(counts.values()),
        "uploads": counts.get("upload", 0),
        "downloads": counts.get("download", 0),
        "deletes": counts.get("delete", 0),
    }
