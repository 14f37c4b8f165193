"""Folder tree manager: create, browse, rename, and copy folder subtrees.

Paths are materialized on every folder (``parent.path + "/" + name``). Any
operation that changes a folder's name or position rewrites the path of the
whole subtree in the same transaction. Subtree walks are iterative and tree
depth is capped by ``settings.max_folder_depth``.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator, List, Optional

import sqlalchemy.exc
from sqlalchemy.orm import Session

from ..core.config import settings
from ..models import Drive, DriveFile, Folder
from ..exceptions import (
    FolderNotFoundError,
    NameConflictError,
    ParentNotFoundError,
    ValidationError,
)
from ..repositories import FileRepository, FolderRepository
from . import activity_service
from .drive_service import DriveService
from .quota_ledger import QuotaLedger
from .sanitizer import validate_name

logger = logging.getLogger(__name__)

SUBJECT_FOLDER_PREFIX = "Subjects - "
COPY_SUFFIX = " (Copy)"


@dataclass
class ClonedSubtree:
    """Result of copying a folder subtree."""
    root: Folder
    folders: List[Folder] = field(default_factory=list)
    files: List[DriveFile] = field(default_factory=list)
    billed_bytes: int = 0


def subject_folder_name(subject_name: str) -> str:
    name = subject_name.strip()
    if name.startswith(SUBJECT_FOLDER_PREFIX):
        return name
    return f"{SUBJECT_FOLDER_PREFIX}{name}"


@contextmanager
def sibling_name_guard(db: Session, name: str, parent_id: Optional[str]) -> Iterator[None]:
    """Savepoint that turns a lost race on the sibling-name index into NameConflictError.

    The caller checks the name first; this catches a concurrent writer that
    committed the same name between that check and our flush.
    """
    try:
        with db.begin_nested():
            yield
            db.flush()
    except sqlalchemy.exc.IntegrityError:
        raise NameConflictError(name, parent_id)


class FolderService:
    """Folder tree operations for one user's drive.

    Public methods:
        create_folder   -- NameConflict / ParentNotFound checked, depth capped
        get_folder      -- folder plus breadcrumbs
        list_folders    -- children of a parent (None = drive root)
        resolve_path    -- cached materialized path
        update_folder   -- rename (rewrites subtree paths) / is_public
        copy_subtree    -- same-drive deep copy sharing stored bytes
        clone_subtree   -- shared engine for same- and cross-drive copies
    """

    def __init__(self, db: Session):
        self.db = db
        self.folder_repo = FolderRepository(db)
        self.file_repo = FileRepository(db)
        self.drives = DriveService(db)
        self.ledger = QuotaLedger(db)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def create_folder(
        self,
        user_id: str,
        name: str,
        parent_id: Optional[str] = None,
        is_public: bool = False,
        subject_id: Optional[str] = None,
        commit: bool = True,
    ) -> Folder:
        drive = self.drives.ensure_drive(user_id)
        name = validate_name(name)
        if subject_id:
            name = subject_folder_name(name)

        parent = self._resolve_parent(drive.id, parent_id)
        self._check_depth(parent, extra_levels=1)
        parent_key = parent.id if parent else None
        self._check_name_free(drive.id, parent_key, name)

        with sibling_name_guard(self.db, name, parent_key):
            folder = self.folder_repo.create(drive.id, parent, name, is_public=is_public, subject_id=subject_id)
        activity_service.record(
            self.db, drive.id, user_id, "create", "folder",
            target_id=folder.id, target_name=folder.name,
            details={"path": folder.path},
        )
        if commit:
            self.db.commit()
            self.db.refresh(folder)
        logger.info("Folder created", extra={"folder_id": folder.id, "drive_id": drive.id})
        return folder

    def get_folder(self, user_id: str, folder_id: str) -> tuple[Folder, List[Folder]]:
        """Active folder and its breadcrumb chain, root first."""
        drive = self.drives.ensure_drive(user_id)
        folder = self.folder_repo.get_in_drive(drive.id, folder_id)
        return folder, self.folder_repo.ancestors(folder)

    def list_folders(
        self,
        user_id: str,
        parent_id: Optional[str] = None,
        page: int = 1,
        limit: int = 50,
    ) -> tuple[List[Folder], int]:
        drive = self.drives.ensure_drive(user_id)
        limit = max(1, min(limit, 100))
        page = max(page, 1)
        return self.folder_repo.list_children(drive.id, parent_id, skip=(page - 1) * limit, limit=limit)

    def resolve_path(self, folder_id: str) -> str:
        folder = self.folder_repo.get_by_id_including_deleted(folder_id)
        if folder is None:
            raise FolderNotFoundError(folder_id)
        return folder.path

    def update_folder(
        self,
        user_id: str,
        folder_id: str,
        name: Optional[str] = None,
        is_public: Optional[bool] = None,
        commit: bool = True,
    ) -> Folder:
        drive = self.drives.ensure_drive(user_id)
        folder = self.folder_repo.get_in_drive(drive.id, folder_id)

        if name is not None:
            new_name = validate_name(name)
            if folder.subject_id:
                new_name = subject_folder_name(new_name)
            if new_name != folder.name:
                self._check_name_free(drive.id, folder.parent_id, new_name, exclude_id=folder.id)
                old_name = folder.name
                with sibling_name_guard(self.db, new_name, folder.parent_id):
                    folder.name = new_name
                    self.rewrite_subtree_paths(folder)
                activity_service.record(
                    self.db, drive.id, user_id, "rename", "folder",
                    target_id=folder.id, target_name=new_name,
                    details={"old_name": old_name},
                )

        if is_public is not None:
            folder.is_public = is_public

        if commit:
            self.db.commit()
            self.db.refresh(folder)
        return folder

    def rewrite_subtree_paths(self, folder: Folder) -> int:
        """Recompute ``path`` for *folder* and every descendant (trashed ones too)."""
        parent = None
        if folder.parent_id:
            parent = self.folder_repo.get_by_id_including_deleted(folder.parent_id)
        folder.path = f"{parent.path}/{folder.name}" if parent else folder.name

        subtree = self.folder_repo.walk_subtree(folder, include_deleted=True)
        by_id = {f.id: f for f in subtree}
        for node in subtree[1:]:
            node.path = f"{by_id[node.parent_id].path}/{node.name}"
        self.db.flush()
        return len(subtree)

    def copy_subtree(
        self,
        user_id: str,
        source_folder_id: str,
        target_parent_id: Optional[str] = None,
        new_name: Optional[str] = None,
    ) -> Folder:
        """Deep-copy a folder and its active descendants inside the same drive.

        Copies share stored bytes and bill nothing, so ``storage_used`` does not
        change. The copy is built in one transaction and committed once.
        """
        drive = self.drives.ensure_drive(user_id)
        source = self.folder_repo.get_in_drive(drive.id, source_folder_id)
        target_parent = self._resolve_parent(drive.id, target_parent_id)

        if target_parent is not None and self._is_descendant(target_parent, source):
            raise ValidationError("Cannot copy a folder into itself", field="target_parent_id")

        name = validate_name(new_name) if new_name else f"{source.name}{COPY_SUFFIX}"

        try:
            cloned = self.clone_subtree(source, drive, target_parent, name, bill=False)
            activity_service.record(
                self.db, drive.id, user_id, "copy", "folder",
                target_id=cloned.root.id, target_name=cloned.root.name,
                details={
                    "source_id": source.id,
                    "folders": len(cloned.folders),
                    "files": len(cloned.files),
                },
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(cloned.root)
        return cloned.root

    def clone_subtree(
        self,
        source: Folder,
        dest_drive: Drive,
        dest_parent: Optional[Folder],
        name: str,
        bill: bool,
        skip_hashes: Optional[set] = None,
        keep_public: bool = True,
    ) -> ClonedSubtree:
        """Copy *source* and its active descendants under *dest_parent*.

        Every copied file row points at the original stored bytes. With
        ``bill`` the destination drive is charged the full size of the copied
        files (cross-drive copies); otherwise copies are free. Files whose hash
        is in *skip_hashes* are left out. Without ``keep_public`` every copy is
        private. Does not commit.
        """
        self._check_name_free(dest_drive.id, dest_parent.id if dest_parent else None, name)

        subtree = self.folder_repo.walk_subtree(source, include_deleted=False)
        height = max(self.folder_repo.depth_of(f) for f in subtree) - self.folder_repo.depth_of(source) + 1
        self._check_depth(dest_parent, extra_levels=height)

        files = self.file_repo.in_folders([f.id for f in subtree], include_deleted=False)
        if skip_hashes:
            files = [f for f in files if f.file_hash not in skip_hashes]

        billed = sum(f.file_size for f in files) if bill else 0
        self.ledger.charge(dest_drive.id, billed)

        mapping: dict[str, Folder] = {}
        created: List[Folder] = []
        for node in subtree:
            is_public = node.is_public and keep_public
            if node.id == source.id:
                # Callers roll the whole copy back on any error.
                try:
                    copy = self.folder_repo.create(dest_drive.id, dest_parent, name, is_public=is_public)
                except sqlalchemy.exc.IntegrityError:
                    raise NameConflictError(name, dest_parent.id if dest_parent else None)
            else:
                copy = self.folder_repo.create(
                    dest_drive.id, mapping[node.parent_id], node.name, is_public=is_public
                )
            mapping[node.id] = copy
            created.append(copy)

        copied_files = [
            self.copy_file_row(
                f, dest_drive.id, mapping[f.folder_id].id,
                billed_size=f.file_size if bill else 0,
                is_public=None if keep_public else False,
            )
            for f in files
        ]

        logger.info(
            "Folder subtree copied",
            extra={
                "source_id": source.id,
                "dest_drive_id": dest_drive.id,
                "folders": len(created),
                "files": len(copied_files),
                "billed_bytes": billed,
            },
        )
        return ClonedSubtree(root=mapping[source.id], folders=created, files=copied_files, billed_bytes=billed)

    def copy_file_row(
        self,
        source: DriveFile,
        drive_id: str,
        folder_id: Optional[str],
        billed_size: int = 0,
        name: Optional[str] = None,
        is_public: Optional[bool] = None,
    ) -> DriveFile:
        """New metadata row sharing *source*'s stored bytes. Does not commit."""
        return self.file_repo.add(
            DriveFile(
                drive_id=drive_id,
                folder_id=folder_id,
                original_name=name or source.original_name,
                stored_name=source.stored_name,
                file_path=source.file_path,
                thumbnail_path=source.thumbnail_path,
                file_size=source.file_size,
                billed_size=billed_size,
                mime_type=source.mime_type,
                file_type=source.file_type,
                file_hash=source.file_hash,
                description=source.description,
                tags=list(source.tags or []),
                is_public=source.is_public if is_public is None else is_public,
            )
        )

    def available_name(self, drive_id: str, parent_id: Optional[str], name: str) -> str:
        """*name*, or the first free "<name> (Copy)", "<name> (Copy 2)", ..."""
        if not self.folder_repo.find_sibling(drive_id, parent_id, name):
            return name
        candidate = f"{name}{COPY_SUFFIX}"
        counter = 2
        while self.folder_repo.find_sibling(drive_id, parent_id, candidate):
            candidate = f"{name} (Copy {counter})"
            counter += 1
        return candidate

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _resolve_parent(self, drive_id: str, parent_id: Optional[str]) -> Optional[Folder]:
        if not parent_id:
            return None
        parent = self.folder_repo.get_by_id_optional(parent_id)
        if parent is None or parent.drive_id != drive_id:
            raise ParentNotFoundError(parent_id)
        return parent

    def _check_name_free(
        self,
        drive_id: str,
        parent_id: Optional[str],
        name: str,
        exclude_id: Optional[str] = None,
    ) -> None:
        if self.folder_repo.find_sibling(drive_id, parent_id, name, exclude_id=exclude_id):
            raise NameConflictError(name, parent_id)

    def _check_depth(self, parent: Optional[Folder], extra_levels: int) -> None:
        base = self.folder_repo.depth_of(parent) if parent else 0
        if base + extra_levels > settings.max_folder_depth:
            raise ValidationError(
                f"Folders cannot be nested deeper than {settings.max_folder_depth} levels",
                field="parent_id",
            )

    def _is_descendant(self, candidate: Folder, ancestor: Folder) -> bool:
        return any(f.id == ancestor.id for f in self.folder_repo.ancestors(candidate))
