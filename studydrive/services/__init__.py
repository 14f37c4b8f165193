"""Business logic services."""

from .drive_service import DriveService
from .folder_service import FolderService
from .file_service import FileService
from .trash_service import TrashService
from .copy_request_service import CopyRequestService
from .bulk_service import BulkService
from .quota_ledger import QuotaLedger
from .content_store import ContentStore

__all__ = [
    "DriveService",
    "FolderService",
    "FileService",
    "TrashService",
    "CopyRequestService",
    "BulkService",
    "QuotaLedger",
    "ContentStore",
]
