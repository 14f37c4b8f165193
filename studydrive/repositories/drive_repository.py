"""Drive repository."""

from datetime import datetime
from typing import Optional

from ..models import Drive
from ..exceptions import DriveNotFoundError
from .base import BaseRepository


class DriveRepository(BaseRepository[Drive]):

    model_class = Drive
    not_found_error = DriveNotFoundError

    def get_by_user(self, user_id: str) -> Optional[Drive]:
        return self.db.query(Drive).filter(Drive.user_id == user_id).first()

    def get_by_user_or_raise(self, user_id: str) -> Drive:
        drive = self.get_by_user(user_id)
        if drive is None:
            raise DriveNotFoundError(user_id)
        return drive

    def create(
        self,
        user_id: str,
        storage_limit: int,
        bandwidth_limit: int,
        bandwidth_reset_at: datetime,
    ) -> Drive:
        drive = Drive(
            user_id=user_id,
            storage_used=0,
            storage_limit=storage_limit,
            bandwidth_used=0,
            bandwidth_limit=bandwidth_limit,
            bandwidth_reset_at=bandwidth_reset_at,
        )
        self.db.add(drive)
        self.db.flush()
        return drive

    def lock(self, drive_id: str) -> Drive:
        """Load the drive row with a row lock (no-op on SQLite)."""
        drive = (
            self.db.query(Drive)
            .filter(Drive.id == drive_id)
            .with_for_update()
            .populate_existing()
            .first()
        )
        if drive is None:
            raise DriveNotFoundError(drive_id)
        return drive
