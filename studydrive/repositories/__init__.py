"""Repository layer for database operations."""

from .base import BaseRepository
from .drive_repository import DriveRepository
from .folder_repository import FolderRepository
from .file_repository import FileRepository
from .copy_request_repository import CopyRequestRepository

__all__ = [
    "BaseRepository",
    "DriveRepository",
    "FolderRepository",
    "FileRepository",
    "CopyRequestRepository",
]
