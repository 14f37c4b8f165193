"""Lifecycle manager: soft delete, restore, hard delete, and trash retention.

Soft delete only stamps ``deleted_at``; nothing is released. A folder cascade
stamps the folder and every active descendant with one timestamp, and
restoring the folder reinstates exactly the rows carrying that timestamp.

Hard delete removes metadata rows explicitly (files first, then folders
deepest first), releases each row's ``billed_size`` from the ledger (or hands
it to a free same-drive copy that still holds the bytes), and logs the
activity in one transaction. Stored bytes that no remaining row points at
are removed after the commit, best-effort.
"""

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..models import Drive, DriveFile, Folder
from ..exceptions import DriveFileNotFoundError, FolderNotFoundError, NameConflictError
from ..repositories import DriveRepository, FileRepository, FolderRepository
from . import activity_service
from .content_store import ContentStore
from .drive_service import DriveService, as_utc, utcnow
from .folder_service import FolderService, sibling_name_guard
from .quota_ledger import QuotaLedger

logger = logging.getLogger(__name__)

SYSTEM_ACTOR = "system"


@dataclass
class SubtreeContents:
    """Every folder and file under a folder, trashed or not."""
    folders: List[Folder] = field(default_factory=list)
    files: List[DriveFile] = field(default_factory=list)
    total_bytes: int = 0
    billed_bytes: int = 0


@dataclass
class DeleteResult:
    folders: int = 0
    files: int = 0
    released_bytes: int = 0
    removed_blobs: int = 0


class TrashService:

    def __init__(self, db: Session, store: Optional[ContentStore] = None):
        self.db = db
        self.store = store or ContentStore()
        self.file_repo = FileRepository(db)
        self.folder_repo = FolderRepository(db)
        self.drives = DriveService(db)
        self.ledger = QuotaLedger(db)

    # ------------------------------------------------------------------
    # Soft delete / restore
    # ------------------------------------------------------------------

    def soft_delete_file(self, user_id: str, file_id: str, commit: bool = True) -> DriveFile:
        drive = self.drives.ensure_drive(user_id)
        file = self.file_repo.get_in_drive(drive.id, file_id)
        file.deleted_at = utcnow()
        activity_service.record(
            self.db, drive.id, user_id, "delete", "file",
            target_id=file.id, target_name=file.original_name,
            details={"permanent": False},
        )
        self.db.flush()
        if commit:
            self.db.commit()
        return file

    def soft_delete_folder(self, user_id: str, folder_id: str, commit: bool = True) -> SubtreeContents:
        """Trash a folder with every active descendant, all under one timestamp."""
        drive = self.drives.ensure_drive(user_id)
        folder = self.folder_repo.get_in_drive(drive.id, folder_id)
        now = utcnow()

        folders = self.folder_repo.walk_subtree(folder, include_deleted=False)
        files = self.file_repo.in_folders([f.id for f in folders], include_deleted=False)
        for item in (*folders, *files):
            item.deleted_at = now

        activity_service.record(
            self.db, drive.id, user_id, "delete", "folder",
            target_id=folder.id, target_name=folder.name,
            details={"permanent": False, "folders": len(folders), "files": len(files)},
        )
        self.db.flush()
        if commit:
            self.db.commit()
        logger.info(
            "Folder moved to trash",
            extra={"folder_id": folder.id, "folders": len(folders), "files": len(files)},
        )
        return SubtreeContents(
            folders=folders,
            files=files,
            total_bytes=sum(f.file_size for f in files),
            billed_bytes=sum(f.billed_size for f in files),
        )

    def restore_file(self, user_id: str, file_id: str, commit: bool = True) -> DriveFile:
        """Bring a file back. If its folder is gone or still trashed it lands in the root."""
        drive = self.drives.ensure_drive(user_id)
        file = self._trashed_file(drive.id, file_id)
        if file.folder_id and self.folder_repo.get_by_id_optional(file.folder_id) is None:
            file.folder_id = None
        file.deleted_at = None
        activity_service.record(
            self.db, drive.id, user_id, "restore", "file",
            target_id=file.id, target_name=file.original_name,
            details={"folder_id": file.folder_id},
        )
        self.db.flush()
        if commit:
            self.db.commit()
        return file

    def restore_folder(self, user_id: str, folder_id: str, commit: bool = True) -> Folder:
        """Restore a folder and the descendants trashed in the same cascade.

        A folder whose parent is still trashed is restored to the drive root.
        Raises NameConflictError if an active sibling took the name meanwhile.
        """
        drive = self.drives.ensure_drive(user_id)
        folder = self.folder_repo.get_by_id_including_deleted(folder_id)
        if folder is None or folder.drive_id != drive.id or folder.deleted_at is None:
            raise FolderNotFoundError(folder_id)
        stamp = as_utc(folder.deleted_at)

        moved_to_root = False
        if folder.parent_id and self.folder_repo.get_by_id_optional(folder.parent_id) is None:
            folder.parent_id = None
            moved_to_root = True
        if self.folder_repo.find_sibling(drive.id, folder.parent_id, folder.name, exclude_id=folder.id):
            raise NameConflictError(folder.name, folder.parent_id)

        subtree = self.folder_repo.walk_subtree(folder, include_deleted=True)
        restored = [f for f in subtree if as_utc(f.deleted_at) == stamp]
        restored_ids = {f.id for f in restored}
        files = [
            f for f in self.file_repo.in_folders(restored_ids, include_deleted=True)
            if as_utc(f.deleted_at) == stamp
        ]
        with sibling_name_guard(self.db, folder.name, folder.parent_id):
            for item in (*restored, *files):
                item.deleted_at = None
            if moved_to_root:
                FolderService(self.db).rewrite_subtree_paths(folder)

        activity_service.record(
            self.db, drive.id, user_id, "restore", "folder",
            target_id=folder.id, target_name=folder.name,
            details={"folders": len(restored), "files": len(files), "moved_to_root": moved_to_root},
        )
        self.db.flush()
        if commit:
            self.db.commit()
        return folder

    # ------------------------------------------------------------------
    # Hard delete
    # ------------------------------------------------------------------

    def collect_subtree(self, folder: Folder) -> SubtreeContents:
        """Every folder and file beneath *folder* regardless of trash state."""
        folders = self.folder_repo.walk_subtree(folder, include_deleted=True)
        files = self.file_repo.in_folders([f.id for f in folders], include_deleted=True)
        return SubtreeContents(
            folders=folders,
            files=files,
            total_bytes=sum(f.file_size for f in files),
            billed_bytes=sum(f.billed_size for f in files),
        )

    def hard_delete_file(self, user_id: str, file_id: str) -> DeleteResult:
        drive = self.drives.ensure_drive(user_id)
        file = self.file_repo.get_by_id_including_deleted(file_id)
        if file is None or file.drive_id != drive.id:
            raise DriveFileNotFoundError(file_id)
        return self._purge(drive, user_id, [], [file], target=("file", file.id, file.original_name))

    def hard_delete_folder(self, user_id: str, folder_id: str) -> DeleteResult:
        drive = self.drives.ensure_drive(user_id)
        folder = self.folder_repo.get_by_id_including_deleted(folder_id)
        if folder is None or folder.drive_id != drive.id:
            raise FolderNotFoundError(folder_id)
        contents = self.collect_subtree(folder)
        return self._purge(
            drive, user_id, contents.folders, contents.files,
            target=("folder", folder.id, folder.name),
        )

    def empty_trash(self, user_id: str) -> DeleteResult:
        """Hard-delete everything currently in the user's trash."""
        drive = self.drives.ensure_drive(user_id)
        total = DeleteResult()
        for folder_id in [f.id for f in self._topmost(self.folder_repo.get_deleted(drive.id))]:
            if self.folder_repo.get_by_id_including_deleted(folder_id) is None:
                continue
            self._add(total, self.hard_delete_folder(user_id, folder_id))
        for file_id in [f.id for f in self.file_repo.get_deleted(drive.id)]:
            self._add(total, self.hard_delete_file(user_id, file_id))
        return total

    # ------------------------------------------------------------------
    # Listing / retention
    # ------------------------------------------------------------------

    def list_trash(self, user_id: str) -> tuple[List[DriveFile], List[Folder]]:
        drive = self.drives.ensure_drive(user_id)
        return self.file_repo.get_deleted(drive.id), self.folder_repo.get_deleted(drive.id)

    def purge_expired_trash(self, days: Optional[int] = None) -> int:
        """Hard-delete items trashed more than *days* ago, across all drives.

        ``days`` defaults to ``settings.trash_retention_days``; 0 keeps trash
        forever. Each item commits on its own. Returns the number of files and
        folders removed.
        """
        days = settings.trash_retention_days if days is None else days
        if days <= 0:
            return 0
        cutoff = utcnow() - timedelta(days=days)
        drive_repo = DriveRepository(self.db)
        removed = 0

        for folder_id in [f.id for f in self._topmost(self.folder_repo.get_expired(cutoff))]:
            folder = self.folder_repo.get_by_id_including_deleted(folder_id)
            if folder is None:
                continue
            drive = drive_repo.get_by_id(folder.drive_id)
            contents = self.collect_subtree(folder)
            result = self._purge(
                drive, SYSTEM_ACTOR, contents.folders, contents.files,
                target=("folder", folder.id, folder.name),
            )
            removed += result.folders + result.files

        for file_id in [f.id for f in self.file_repo.get_expired(cutoff)]:
            file = self.file_repo.get_by_id_including_deleted(file_id)
            drive = drive_repo.get_by_id(file.drive_id)
            result = self._purge(
                drive, SYSTEM_ACTOR, [], [file],
                target=("file", file.id, file.original_name),
            )
            removed += result.files

        if removed:
            logger.info("Expired trash purged", extra={"removed": removed, "retention_days": days})
        return removed

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _trashed_file(self, drive_id: str, file_id: str) -> DriveFile:
        file = self.file_repo.get_by_id_including_deleted(file_id)
        if file is None or file.drive_id != drive_id or file.deleted_at is None:
            raise DriveFileNotFoundError(file_id)
        return file

    def _purge(
        self,
        drive: Drive,
        actor: str,
        folders: List[Folder],
        files: List[DriveFile],
        target: tuple,
    ) -> DeleteResult:
        target_type, target_id, target_name = target
        file_ids = [f.id for f in files]
        paths = {f.file_path: f.thumbnail_path for f in files}
        total_bytes = sum(f.file_size for f in files)

        try:
            billed = self._hand_over_billing(drive.id, files)
            if file_ids:
                self.db.query(DriveFile).filter(DriveFile.id.in_(file_ids)).delete(
                    synchronize_session="fetch"
                )
            # walk order is parents first, so reversed removes children first
            for folder in reversed(folders):
                self.db.query(Folder).filter(Folder.id == folder.id).delete(
                    synchronize_session="fetch"
                )
            self.ledger.release(drive.id, billed)
            activity_service.record(
                self.db, drive.id, actor, "delete", target_type,
                target_id=target_id, target_name=target_name,
                details={
                    "permanent": True,
                    "files": len(file_ids),
                    "folders": len(folders),
                    "size": str(total_bytes),
                },
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        removed = 0
        for file_path, thumbnail_path in paths.items():
            if self.file_repo.count_references(file_path):
                continue
            if self.store.delete(file_path):
                removed += 1
            if thumbnail_path:
                self.store.delete(thumbnail_path)

        logger.info(
            "Permanently deleted",
            extra={
                "drive_id": drive.id,
                "target_type": target_type,
                "target_id": target_id,
                "files": len(file_ids),
                "folders": len(folders),
                "released_bytes": billed,
            },
        )
        return DeleteResult(
            folders=len(folders), files=len(file_ids), released_bytes=billed, removed_blobs=removed,
        )

    def _hand_over_billing(self, drive_id: str, files: List[DriveFile]) -> int:
        """Pass each purged row's billing to a free row still holding its bytes.

        Same-drive copies bill nothing while the original pays, so the first
        surviving copy takes over the charge. Returns the bytes left to release.
        """
        purged_ids = {f.id for f in files}
        to_release = 0
        for file in files:
            if not file.billed_size:
                continue
            heir = self.file_repo.find_unbilled_sharing(drive_id, file.file_path, exclude_ids=purged_ids)
            if heir is None:
                to_release += file.billed_size
                continue
            heir.billed_size = file.billed_size
            self.db.flush()
            logger.debug("Billing handed over", extra={"from_file_id": file.id, "to_file_id": heir.id})
        return to_release

    @staticmethod
    def _topmost(folders: List[Folder]) -> List[Folder]:
        """Shallowest first so a parent's purge sweeps its children before they come up."""
        return sorted(folders, key=lambda f: f.path.count("/"))

    @staticmethod
    def _add(total: DeleteResult, part: DeleteResult) -> None:
        total.folders += part.folders
        total.files += part.files
        total.released_bytes += part.released_bytes
        total.removed_blobs += part.removed_blobs
