"""Quota ledger: the only writer of ``Drive.storage_used``.

Charges are a single conditional UPDATE (``storage_used + delta <=
storage_limit``), so two transactions racing for the last free bytes cannot
both succeed: the database serializes the writes and the loser matches zero
rows. Nothing here commits; the ledger change rides in the caller's unit of
work together with the metadata and activity rows.
"""

import logging

from sqlalchemy.orm import Session

from ..models import Drive
from ..exceptions import DriveNotFoundError, StorageExceededError
from ..repositories.file_repository import FileRepository

logger = logging.getLogger(__name__)


class QuotaLedger:

    def __init__(self, db: Session):
        self.db = db

    def check_and_reserve(self, drive_id: str, delta: int) -> bool:
        """Would *delta* more bytes fit? Read-only; the binding check is ``charge``."""
        drive = self._get(drive_id)
        return drive.storage_used + max(delta, 0) <= drive.storage_limit

    def require_room(self, drive_id: str, delta: int) -> None:
        """Like ``check_and_reserve`` but raises StorageExceededError."""
        drive = self._get(drive_id)
        if drive.storage_used + max(delta, 0) > drive.storage_limit:
            raise StorageExceededError(drive.storage_used, drive.storage_limit, delta)

    def charge(self, drive_id: str, delta: int) -> None:
        """Atomically add *delta* bytes, or raise StorageExceededError."""
        if delta <= 0:
            return
        matched = (
            self.db.query(Drive)
            .filter(Drive.id == drive_id, Drive.storage_used + delta <= Drive.storage_limit)
            .update({Drive.storage_used: Drive.storage_used + delta}, synchronize_session="fetch")
        )
        if matched == 0:
            drive = self._get(drive_id)
            raise StorageExceededError(drive.storage_used, drive.storage_limit, delta)

    def release(self, drive_id: str, delta: int) -> None:
        """Atomically subtract *delta* bytes, clamping at zero.

        A release larger than the recorded usage means an earlier accounting
        bug; it is logged and the counter is clamped instead of going negative.
        """
        if delta <= 0:
            return
        matched = (
            self.db.query(Drive)
            .filter(Drive.id == drive_id, Drive.storage_used >= delta)
            .update({Drive.storage_used: Drive.storage_used - delta}, synchronize_session="fetch")
        )
        if matched:
            return

        drive = self._get(drive_id)
        logger.warning(
            "Quota release exceeds recorded usage, clamping to zero",
            extra={"drive_id": drive_id, "storage_used": drive.storage_used, "release": delta},
        )
        self.db.query(Drive).filter(Drive.id == drive_id).update(
            {Drive.storage_used: 0}, synchronize_session="fetch"
        )

    def recalculate(self, drive_id: str) -> int:
        """Reset the counter to the sum of billed bytes of the drive's rows."""
        actual = FileRepository(self.db).sum_billed(drive_id)
        drive = self._get(drive_id)
        if drive.storage_used != actual:
            logger.warning(
                "Quota ledger drift corrected",
                extra={"drive_id": drive_id, "recorded": drive.storage_used, "actual": actual},
            )
            drive.storage_used = actual
            self.db.flush()
        return actual

    def _get(self, drive_id: str) -> Drive:
        drive = (
            self.db.query(Drive)
            .filter(Drive.id == drive_id)
            .populate_existing()
            .first()
        )
        if drive is None:
            raise DriveNotFoundError(drive_id)
        return drive
