"""Drive activity log model."""

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.sql import func

from ..database import Base


class DriveActivity(Base):
    """Append-only record of an action against a drive.

    Written inside the same transaction as the change it describes; never
    updated or deleted by the application.
    """

    __tablename__ = "drive_activities"
    __table_args__ = (
        Index("ix_drive_activities_drive_created", "drive_id", "created_at"),
        Index("ix_drive_activities_action", "action"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    drive_id = Column(String(50), ForeignKey("drives.id"), nullable=False)
    user_id = Column(String(50), nullable=False)  # actor
    action = Column(String(20), nullable=False)  # upload, download, delete, restore, copy, import, ...
    target_type = Column(String(10), nullable=False)  # file / folder / drive
    target_id = Column(String(50), nullable=True)
    target_name = Column(String(255), nullable=True)
    details = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
