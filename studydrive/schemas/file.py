"""File schemas."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from .common import ByteSize
from .folder import FolderResponse


class DriveFileResponse(BaseModel):
    id: str
    drive_id: str
    folder_id: Optional[str] = None
    original_name: str
    mime_type: str
    file_type: str
    file_size: ByteSize
    file_hash: str
    description: Optional[str] = None
    tags: List[str] = []
    is_public: bool
    download_count: int = 0
    has_thumbnail: bool = False
    deleted_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @field_validator("tags", mode="before")
    @classmethod
    def tags_default(cls, v):
        return v or []


class FileUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    tags: Optional[List[str]] = None
    is_public: Optional[bool] = None


class FileListResponse(BaseModel):
    files: List[DriveFileResponse]
    total: int
    page: int
    limit: int


class SaveFromUrlRequest(BaseModel):
    url: str = Field(..., min_length=1, max_length=2048)
    name: Optional[str] = Field(None, max_length=255)
    folder_id: Optional[str] = None
    description: Optional[str] = None


class SearchResponse(BaseModel):
    query: str
    files: List[DriveFileResponse]
    folders: List[FolderResponse]


class TrashResponse(BaseModel):
    files: List[DriveFileResponse]
    folders: List[FolderResponse]
    total_size: ByteSize


class TrashItemRequest(BaseModel):
    item_type: str  # file / folder
    item_id: str


class DeleteResultResponse(BaseModel):
    """Counts of removed rows. Soft deletes release nothing."""
    permanent: bool
    folders: int
    files: int
    released_bytes: ByteSize = "0"

    class Config:
        from_attributes = True


class RestoreResponse(BaseModel):
    item_type: str
    file: Optional[DriveFileResponse] = None
    folder: Optional[FolderResponse] = None
