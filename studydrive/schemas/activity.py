"""Activity schemas."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel


class ActivityResponse(BaseModel):
    id: int
    drive_id: str
    user_id: str
    action: str
    target_type: str
    target_id: Optional[str] = None
    target_name: Optional[str] = None
    details: Optional[dict] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ActivityStats(BaseModel):
    total: int
    uploads: int
    downloads: int
    deletes: int


class ActivityListResponse(BaseModel):
    activities: List[ActivityResponse]
    total: int
    page: int
    limit: int
    stats: ActivityStats
