"""Folder schemas."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class FolderCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    parent_id: Optional[str] = None
    is_public: bool = False


class FolderUpdate(BaseModel):
    """Rename and/or toggle visibility. Renames rewrite the subtree's paths."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    is_public: Optional[bool] = None


class FolderCopyRequest(BaseModel):
    target_parent_id: Optional[str] = None  # None = drive root
    new_name: Optional[str] = Field(None, max_length=255)


class FolderResponse(BaseModel):
    id: str
    drive_id: str
    parent_id: Optional[str] = None
    name: str
    path: str
    is_public: bool
    subject_id: Optional[str] = None
    deleted_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class Breadcrumb(BaseModel):
    id: str
    name: str

    class Config:
        from_attributes = True


class FolderDetailResponse(BaseModel):
    folder: FolderResponse
    breadcrumbs: List[Breadcrumb]


class FolderListResponse(BaseModel):
    folders: List[FolderResponse]
    total: int
    page: int
    limit: int


class SubjectFolderRequest(BaseModel):
    """Payload of the subject collaborator's create/rename hook."""
    name: str = Field(..., min_length=1, max_length=255)
