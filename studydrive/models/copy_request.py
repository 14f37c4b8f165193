"""Copy request model: a user asking another user's drive for a copy."""

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Index, String, Text, text
from sqlalchemy.sql import func

from ..database import Base

REQUEST_TYPES = ("subject", "file", "folder")

PENDING = "PENDING"
APPROVED = "APPROVED"
DENIED = "DENIED"


class CopyRequest(Base):
    """PENDING -> APPROVED | DENIED. Resolved requests are never reopened."""

    __tablename__ = "drive_copy_requests"
    __table_args__ = (
        Index("ix_copy_requests_to_user_status", "to_user_id", "status"),
        Index("ix_copy_requests_from_user_status", "from_user_id", "status"),
        # At most one PENDING request per (from, to, type, target).
        Index(
            "uq_copy_requests_pending",
            "from_user_id", "to_user_id", "request_type", "target_id",
            unique=True,
            sqlite_where=text("status = 'PENDING'"),
            postgresql_where=text("status = 'PENDING'"),
        ),
    )

    id = Column(String(50), primary_key=True, default=lambda: f"req-{uuid.uuid4().hex[:16]}")
    from_user_id = Column(String(50), nullable=False)
    to_user_id = Column(String(50), nullable=False)
    from_drive_id = Column(String(50), ForeignKey("drives.id"), nullable=False)
    to_drive_id = Column(String(50), ForeignKey("drives.id"), nullable=False)

    request_type = Column(String(10), nullable=False)
    target_id = Column(String(50), nullable=False)
    target_name = Column(String(255), nullable=True)

    status = Column(String(10), nullable=False, default=PENDING)
    message = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    resolved_at = Column(DateTime(timezone=True), nullable=True)
