"""Drive accounts: lazy creation, info, sharing settings, and download bandwidth."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import sqlalchemy.exc
from sqlalchemy.orm import Session

from ..core.config import settings
from ..models import Drive
from ..models.drive import COPY_POLICIES
from ..exceptions import BandwidthExceededError, ValidationError
from ..repositories import DriveRepository, FileRepository, FolderRepository

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; every stored timestamp is UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def next_utc_midnight(now: Optional[datetime] = None) -> datetime:
    now = now or utcnow()
    tomorrow = (now + timedelta(days=1)).date()
    return datetime(tomorrow.year, tomorrow.month, tomorrow.day, tzinfo=timezone.utc)


class DriveService:

    def __init__(self, db: Session):
        self.db = db
        self.drive_repo = DriveRepository(db)

    def ensure_drive(self, user_id: str) -> Drive:
        """Return the user's drive, creating it on first use. Does not commit.

        Two first requests racing on creation both end up with the one row:
        the loser's insert fails the unique constraint inside a savepoint and
        it re-reads the winner's drive.
        """
        drive = self.drive_repo.get_by_user(user_id)
        if drive is not None:
            return drive

        savepoint = self.db.begin_nested()
        try:
            drive = self.drive_repo.create(
                user_id,
                storage_limit=settings.default_storage_limit,
                bandwidth_limit=settings.default_bandwidth_limit,
                bandwidth_reset_at=next_utc_midnight(),
            )
            savepoint.commit()
            logger.info("Drive created", extra={"user_id": user_id, "drive_id": drive.id})
            return drive
        except sqlalchemy.exc.IntegrityError:
            savepoint.rollback()
            return self.drive_repo.get_by_user_or_raise(user_id)

    def get_drive(self, user_id: str) -> Drive:
        drive = self.ensure_drive(user_id)
        self._refresh_bandwidth_window(drive)
        self.db.commit()
        return drive

    def get_info(self, user_id: str) -> dict:
        """Drive with usage figures and non-deleted item counts."""
        drive = self.get_drive(user_id)
        limit = drive.storage_limit or 0
        return {
            "drive": drive,
            "storage_percentage": round(drive.storage_used / limit * 100, 2) if limit else 0.0,
            "file_count": FileRepository(self.db).count_active(drive.id),
            "folder_count": FolderRepository(self.db).count_active(drive.id),
        }

    def update_settings(
        self,
        user_id: str,
        is_private: Optional[bool] = None,
        allow_copying: Optional[str] = None,
    ) -> Drive:
        drive = self.ensure_drive(user_id)
        if allow_copying is not None:
            if allow_copying not in COPY_POLICIES:
                raise ValidationError(
                    f"allow_copying must be one of {', '.join(COPY_POLICIES)}",
                    field="allow_copying",
                )
            drive.allow_copying = allow_copying
        if is_private is not None:
            drive.is_private = is_private
        self.db.commit()
        self.db.refresh(drive)
        return drive

    def charge_bandwidth(self, drive_id: str, size: int, now: Optional[datetime] = None) -> None:
        """Count a download by another user against the owner's daily budget.

        Does not commit. Raises BandwidthExceededError with the next reset time.
        """
        drive = self.drive_repo.lock(drive_id)
        self._refresh_bandwidth_window(drive, now)
        if drive.bandwidth_used + size > drive.bandwidth_limit:
            raise BandwidthExceededError(as_utc(drive.bandwidth_reset_at))
        drive.bandwidth_used = drive.bandwidth_used + size
        self.db.flush()

    def _refresh_bandwidth_window(self, drive: Drive, now: Optional[datetime] = None) -> None:
        now = now or utcnow()
        reset_at = as_utc(drive.bandwidth_reset_at)
        if reset_at is None or now >= reset_at:
            drive.bandwidth_used = 0
            drive.bandwidth_reset_at = next_utc_midnight(now)
