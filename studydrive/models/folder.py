"""Folder model: a node of a drive's folder tree."""

import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.sql import func

from ..database import Base


class Folder(Base):
    """A folder in one drive.

    ``path`` is materialized: ``parent.path + "/" + name`` (root folders use
    ``name``). Any rename rewrites the path of the whole subtree.
    """

    __tablename__ = "drive_folders"
    __table_args__ = (
        Index("ix_drive_folders_drive_parent", "drive_id", "parent_id"),
        Index("ix_drive_folders_deleted_at", "deleted_at"),
        Index("ix_drive_folders_subject_id", "subject_id"),
    )

    id = Column(String(50), primary_key=True, default=lambda: f"fld-{uuid.uuid4().hex[:16]}")
    drive_id = Column(String(50), ForeignKey("drives.id"), nullable=False)
    # No ON DELETE CASCADE: subtree deletion is explicit (see TrashService).
    parent_id = Column(String(50), ForeignKey("drive_folders.id"), nullable=True)

    name = Column(String(255), nullable=False)
    path = Column(Text, nullable=False)
    is_public = Column(Boolean, nullable=False, default=False)

    # Set for folders auto-provisioned for a subject (1:1).
    subject_id = Column(String(50), nullable=True)

    # Soft delete (NULL = active, timestamp = trashed)
    deleted_at = Column(DateTime(timezone=True), nullable=True, default=None)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


# Active siblings never share a name. Root folders have no parent, so the
# parent is coalesced to '' to make NULLs compare equal.
Index(
    "uq_drive_folders_active_sibling_name",
    Folder.drive_id,
    func.coalesce(Folder.parent_id, ""),
    Folder.name,
    unique=True,
    sqlite_where=Folder.deleted_at.is_(None),
    postgresql_where=Folder.deleted_at.is_(None),
)
