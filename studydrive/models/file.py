"""File model: metadata for bytes held by the content store."""

import uuid

from sqlalchemy import JSON, BigInteger, Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.sql import func

from ..database import Base


class DriveFile(Base):
    """A file record.

    Several rows may share one ``file_path`` (copies). ``billed_size`` is what
    this row charges to its drive's ledger: the full size for uploads and
    cross-drive copies, 0 for same-drive copies.
    """

    __tablename__ = "drive_files"
    __table_args__ = (
        Index("ix_drive_files_drive_folder", "drive_id", "folder_id"),
        Index("ix_drive_files_file_hash", "drive_id", "file_hash"),
        Index("ix_drive_files_file_path", "file_path"),
        Index("ix_drive_files_deleted_at", "deleted_at"),
    )

    id = Column(String(50), primary_key=True, default=lambda: f"fil-{uuid.uuid4().hex[:16]}")
    drive_id = Column(String(50), ForeignKey("drives.id"), nullable=False)
    folder_id = Column(String(50), ForeignKey("drive_folders.id"), nullable=True)  # NULL = drive root

    original_name = Column(String(255), nullable=False)
    stored_name = Column(String(255), nullable=False)
    file_path = Column(Text, nullable=False)  # relative to storage_root
    thumbnail_path = Column(Text, nullable=True)

    file_size = Column(BigInteger, nullable=False)
    billed_size = Column(BigInteger, nullable=False, default=0)
    mime_type = Column(String(255), nullable=False, default="application/octet-stream")
    file_type = Column(String(20), nullable=False, default="other")
    file_hash = Column(String(64), nullable=False)  # sha256 hex

    description = Column(Text, nullable=True)
    tags = Column(JSON, default=list)
    is_public = Column(Boolean, nullable=False, default=False)
    download_count = Column(Integer, nullable=False, default=0)

    deleted_at = Column(DateTime(timezone=True), nullable=True, default=None)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    @property
    def has_thumbnail(self) -> bool:
        return bool(self.thumbnail_path)
