"""Bulk operation schemas."""

from typing import List, Optional

from pydantic import BaseModel, Field


class BulkRequest(BaseModel):
    operation: str  # delete / restore / move / copy
    file_ids: List[str] = Field(..., min_length=1)
    target_folder_id: Optional[str] = None


class BulkFailure(BaseModel):
    id: str
    error: str
    message: str


class BulkResponse(BaseModel):
    total: int
    succeeded: List[str]
    failed: List[BulkFailure]

    class Config:
        from_attributes = True
