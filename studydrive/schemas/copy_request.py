"""Copy request and import schemas."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from .common import ByteSize
from .file import DriveFileResponse
from .folder import FolderResponse


class CopyRequestCreate(BaseModel):
    to_user_id: str = Field(..., min_length=1, max_length=50)
    request_type: str  # subject / file / folder
    target_id: str = Field(..., min_length=1, max_length=50)
    message: Optional[str] = None


class CopyRequestResolve(BaseModel):
    action: str  # approve / deny


class CopyRequestResponse(BaseModel):
    id: str
    from_user_id: str
    to_user_id: str
    from_drive_id: str
    to_drive_id: str
    request_type: str
    target_id: str
    target_name: Optional[str] = None
    status: str
    message: Optional[str] = None
    created_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CopyRequestListResponse(BaseModel):
    requests: List[CopyRequestResponse]
    total: int
    page: int
    limit: int


class SkippedItem(BaseModel):
    """A source file left out because identical content is already in the drive."""
    name: str
    source_id: str
    existing_file_id: str


class ImportResponse(BaseModel):
    folder: Optional[FolderResponse] = None
    files: List[DriveFileResponse]
    skipped: List[SkippedItem]
    billed_bytes: ByteSize

    class Config:
        from_attributes = True


class CopyRequestResolveResponse(BaseModel):
    request: CopyRequestResponse
    imported: Optional[ImportResponse] = None


class ImportRequest(BaseModel):
    from_user_id: str = Field(..., min_length=1, max_length=50)
    import_type: str  # subject / file / folder
    target_id: str = Field(..., min_length=1, max_length=50)
    skip_duplicates: bool = True
