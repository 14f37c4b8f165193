"""Pydantic schemas for API validation."""

from .common import ByteSize
from .drive import DriveResponse, DriveInfoResponse, DriveSettingsUpdate
from .folder import (
    FolderCreate,
    FolderUpdate,
    FolderCopyRequest,
    FolderResponse,
    FolderDetailResponse,
    FolderListResponse,
)
from .file import DriveFileResponse, FileUpdate, FileListResponse, SaveFromUrlRequest
from .copy_request import CopyRequestCreate, CopyRequestResponse, ImportRequest, ImportResponse
from .activity import ActivityResponse, ActivityListResponse
from .bulk import BulkRequest, BulkResponse

__all__ = [
    "ByteSize",
    "DriveResponse",
    "DriveInfoResponse",
    "DriveSettingsUpdate",
    "FolderCreate",
    "FolderUpdate",
    "FolderCopyRequest",
    "FolderResponse",
    "FolderDetailResponse",
    "FolderListResponse",
    "DriveFileResponse",
    "FileUpdate",
    "FileListResponse",
    "SaveFromUrlRequest",
    "CopyRequestCreate",
    "CopyRequestResponse",
    "ImportRequest",
    "ImportResponse",
    "ActivityResponse",
    "ActivityListResponse",
    "BulkRequest",
    "BulkResponse",
]
