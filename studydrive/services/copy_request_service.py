"""Copy-request broker and cross-drive imports.

A copy request is a directed ask from one user to another for a file, a
folder, or a subject folder. The owner's ``allow_copying`` policy decides what
is possible:

    DENY     nothing can be requested or imported
    REQUEST  public items import directly, everything else needs a request
    ALLOW    everything imports directly

Approving a request and a direct import run the same cross-drive copy: new
rows in the requester's drive root that share the owner's stored bytes, are
always private, and bill the requester their full size.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Union

import sqlalchemy.exc
from sqlalchemy.orm import Session

from ..models import CopyRequest, Drive, DriveFile, Folder
from ..models.copy_request import APPROVED, DENIED, PENDING, REQUEST_TYPES
from ..exceptions import (
    ConflictError,
    DriveNotFoundError,
    DuplicateContentError,
    FolderNotFoundError,
    ForbiddenError,
    ValidationError,
)
from ..repositories import CopyRequestRepository, DriveRepository, FileRepository, FolderRepository
from . import activity_service
from .drive_service import DriveService, utcnow
from .folder_service import FolderService
from .quota_ledger import QuotaLedger
from .sanitizer import MAX_MESSAGE_LENGTH, sanitize_text

logger = logging.getLogger(__name__)

ALLOW = "ALLOW"
DENY = "DENY"

Target = Union[DriveFile, Folder]


@dataclass
class ImportResult:
    """Outcome of a cross-drive copy into the requester's drive."""
    folder: Optional[Folder] = None
    files: List[DriveFile] = field(default_factory=list)
    skipped: List[dict] = field(default_factory=list)
    billed_bytes: int = 0


class CopyRequestService:

    def __init__(self, db: Session):
        self.db = db
        self.requests = CopyRequestRepository(db)
        self.drive_repo = DriveRepository(db)
        self.file_repo = FileRepository(db)
        self.folder_repo = FolderRepository(db)
        self.drives = DriveService(db)
        self.folders = FolderService(db)
        self.ledger = QuotaLedger(db)

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def create_request(
        self,
        from_user_id: str,
        to_user_id: str,
        request_type: str,
        target_id: str,
        message: Optional[str] = None,
    ) -> CopyRequest:
        """Ask *to_user_id* for a copy of one of their items.

        Raises ForbiddenError under a DENY policy, a NotFound error for a
        missing or trashed target, ValidationError for a public file that can
        be copied directly, and ConflictError for a duplicate pending request.
        """
        self._check_type(request_type)
        if from_user_id == to_user_id:
            raise ValidationError("Cannot request a copy from your own drive", field="to_user_id")

        from_drive = self.drives.ensure_drive(from_user_id)
        to_drive = self._drive_of(to_user_id)
        if to_drive.allow_copying == DENY:
            raise ForbiddenError("This user does not allow copying from their drive")

        target = self._resolve_target(to_drive, request_type, target_id)
        if isinstance(target, DriveFile) and target.is_public and to_drive.allow_copying == ALLOW:
            raise ValidationError(
                "File is public and copying is allowed, import it directly", field="target_id"
            )

        if self.requests.find_pending(from_user_id, to_user_id, request_type, target_id):
            raise ConflictError(
                "A pending request for this item already exists",
                details={"request_type": request_type, "target_id": target_id},
            )

        request = CopyRequest(
            from_user_id=from_user_id,
            to_user_id=to_user_id,
            from_drive_id=from_drive.id,
            to_drive_id=to_drive.id,
            request_type=request_type,
            target_id=target_id,
            target_name=_target_name(target),
            status=PENDING,
            message=sanitize_text(message, MAX_MESSAGE_LENGTH) or None,
        )
        savepoint = self.db.begin_nested()
        try:
            self.db.add(request)
            self.db.flush()
            savepoint.commit()
        except sqlalchemy.exc.IntegrityError:
            # A concurrent identical request won the partial unique index.
            savepoint.rollback()
            raise ConflictError(
                "A pending request for this item already exists",
                details={"request_type": request_type, "target_id": target_id},
            )
        self.db.commit()
        self.db.refresh(request)
        logger.info(
            "Copy request created",
            extra={"request_id": request.id, "from_user_id": from_user_id, "to_user_id": to_user_id},
        )
        return request

    def list_requests(
        self,
        user_id: str,
        direction: str = "all",
        status: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[List[CopyRequest], int]:
        if direction not in ("sent", "received", "all"):
            raise ValidationError("direction must be sent, received, or all", field="direction")
        if status is not None and status not in (PENDING, APPROVED, DENIED):
            raise ValidationError("status must be PENDING, APPROVED, or DENIED", field="status")
        limit = max(1, min(limit, 100))
        page = max(page, 1)
        return self.requests.list_for_user(user_id, direction, status, skip=(page - 1) * limit, limit=limit)

    def resolve(
        self, user_id: str, request_id: str, approve: bool
    ) -> tuple[CopyRequest, Optional[ImportResult]]:
        """Approve or deny a PENDING request addressed to *user_id*.

        Approval copies the target into the requester's drive in the same
        transaction that marks the request resolved.
        """
        request = self.requests.lock(request_id)
        if request.to_user_id != user_id:
            raise ForbiddenError("Only the recipient can resolve this request")
        if request.status != PENDING:
            raise ConflictError(
                f"Request already {request.status.lower()}",
                details={"status": request.status},
            )

        result = None
        try:
            if approve:
                owner_drive = self.drive_repo.get_by_id(request.to_drive_id)
                requester_drive = self.drive_repo.get_by_id(request.from_drive_id)
                target = self._resolve_target(owner_drive, request.request_type, request.target_id)
                result = self._copy_into(
                    requester_drive, request.from_user_id, owner_drive, target, skip_duplicates=True,
                )
            request.status = APPROVED if approve else DENIED
            request.resolved_at = utcnow()
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(request)
        logger.info("Copy request resolved", extra={"request_id": request.id, "status": request.status})
        return request, result

    def cancel(self, user_id: str, request_id: str) -> None:
        """Withdraw a PENDING request. Only its sender may do this."""
        request = self.requests.get_by_id(request_id)
        if request.from_user_id != user_id:
            raise ForbiddenError("Only the requester can cancel this request")
        if request.status != PENDING:
            raise ConflictError(
                f"Cannot cancel a {request.status.lower()} request",
                details={"status": request.status},
            )
        self.db.delete(request)
        self.db.commit()

    # ------------------------------------------------------------------
    # Direct import
    # ------------------------------------------------------------------

    def import_directly(
        self,
        user_id: str,
        from_user_id: str,
        import_type: str,
        target_id: str,
        skip_duplicates: bool = True,
    ) -> ImportResult:
        """Copy another user's item without a request where their policy permits it."""
        self._check_type(import_type, field_name="import_type")
        if from_user_id == user_id:
            raise ValidationError("Cannot import from your own drive", field="from_user_id")

        source_drive = self._drive_of(from_user_id)
        if source_drive.allow_copying == DENY:
            raise ForbiddenError("This user does not allow importing from their drive")

        target = self._resolve_target(source_drive, import_type, target_id)
        if not target.is_public and source_drive.allow_copying != ALLOW:
            raise ForbiddenError(f"This {import_type} is not public and copying requires approval")

        dest_drive = self.drives.ensure_drive(user_id)
        try:
            result = self._copy_into(dest_drive, user_id, source_drive, target, skip_duplicates)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return result

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _copy_into(
        self,
        dest_drive: Drive,
        actor: str,
        source_drive: Drive,
        target: Target,
        skip_duplicates: bool,
    ) -> ImportResult:
        """Copy *target* into the root of *dest_drive*, billing it. Does not commit."""
        result = ImportResult()

        if isinstance(target, DriveFile):
            existing = self.file_repo.find_by_hash(dest_drive.id, target.file_hash)
            if existing is not None:
                if not skip_duplicates:
                    raise DuplicateContentError(existing.id, target.file_hash)
                result.skipped.append(_skip_entry(target, existing))
            else:
                self.ledger.charge(dest_drive.id, target.file_size)
                copy = self.folders.copy_file_row(
                    target, dest_drive.id, None, billed_size=target.file_size, is_public=False
                )
                result.files.append(copy)
                result.billed_bytes = target.file_size
            target_type = "file"
            new_id = result.files[0].id if result.files else None
            new_name = target.original_name
        else:
            skip_hashes = set()
            subtree = self.folder_repo.walk_subtree(target, include_deleted=False)
            for source_file in self.file_repo.in_folders([f.id for f in subtree], include_deleted=False):
                existing = self.file_repo.find_by_hash(dest_drive.id, source_file.file_hash)
                if existing is None:
                    continue
                if not skip_duplicates:
                    raise DuplicateContentError(existing.id, source_file.file_hash)
                skip_hashes.add(source_file.file_hash)
                result.skipped.append(_skip_entry(source_file, existing))

            name = self.folders.available_name(dest_drive.id, None, target.name)
            cloned = self.folders.clone_subtree(
                target, dest_drive, None, name,
                bill=True, skip_hashes=skip_hashes, keep_public=False,
            )
            result.folder = cloned.root
            result.files = cloned.files
            result.billed_bytes = cloned.billed_bytes
            target_type, new_id, new_name = "folder", cloned.root.id, cloned.root.name

        activity_service.record(
            self.db, dest_drive.id, actor, "import", target_type,
            target_id=new_id, target_name=new_name,
            details={
                "from_user_id": source_drive.user_id,
                "source_id": target.id,
                "files": len(result.files),
                "skipped": len(result.skipped),
                "size": str(result.billed_bytes),
            },
        )
        logger.info(
            "Imported into drive",
            extra={
                "dest_drive_id": dest_drive.id,
                "source_drive_id": source_drive.id,
                "files": len(result.files),
                "skipped": len(result.skipped),
                "billed_bytes": result.billed_bytes,
            },
        )
        return result

    def _drive_of(self, user_id: str) -> Drive:
        drive = self.drive_repo.get_by_user(user_id)
        if drive is None:
            raise DriveNotFoundError(user_id)
        return drive

    def _resolve_target(self, drive: Drive, request_type: str, target_id: str) -> Target:
        """Active file, folder, or subject folder of *drive*; NotFound otherwise."""
        if request_type == "file":
            return self.file_repo.get_in_drive(drive.id, target_id)
        if request_type == "folder":
            return self.folder_repo.get_in_drive(drive.id, target_id)
        folder = self.folder_repo.get_by_subject(drive.id, target_id)
        if folder is None:
            raise FolderNotFoundError(target_id)
        return folder

    @staticmethod
    def _check_type(request_type: str, field_name: str = "request_type") -> None:
        if request_type not in REQUEST_TYPES:
            raise ValidationError(
                f"{field_name} must be one of {', '.join(REQUEST_TYPES)}", field=field_name
            )


def _target_name(target: Target) -> str:
    return target.original_name if isinstance(target, DriveFile) else target.name


def _skip_entry(source: DriveFile, existing: DriveFile) -> dict:
    return {"name": source.original_name, "source_id": source.id, "existing_file_id": existing.id}
