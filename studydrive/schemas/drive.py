"""Drive schemas."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from .common import ByteSize


class DriveResponse(BaseModel):
    id: str
    user_id: str
    storage_used: ByteSize
    storage_limit: ByteSize
    bandwidth_used: ByteSize
    bandwidth_limit: ByteSize
    bandwidth_reset_at: datetime
    is_private: bool
    allow_copying: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class DriveInfoResponse(BaseModel):
    """Drive plus usage figures and active item counts."""
    drive: DriveResponse
    storage_percentage: float
    file_count: int
    folder_count: int


class DriveSettingsUpdate(BaseModel):
    is_private: Optional[bool] = None
    allow_copying: Optional[str] = None  # ALLOW / REQUEST / DENY
