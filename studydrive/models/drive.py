"""Drive model: one storage account per user."""

import uuid

from sqlalchemy import BigInteger, Boolean, Column, DateTime, String
from sqlalchemy.sql import func

from ..database import Base

COPY_POLICIES = ("ALLOW", "REQUEST", "DENY")


class Drive(Base):
    """Per-user storage account holding the quota ledger and sharing policy."""

    __tablename__ = "drives"

    id = Column(String(50), primary_key=True, default=lambda: f"drv-{uuid.uuid4().hex[:16]}")
    user_id = Column(String(50), nullable=False, unique=True)

    # Quota ledger. Only QuotaLedger writes storage_used.
    storage_used = Column(BigInteger, nullable=False, default=0)
    storage_limit = Column(BigInteger, nullable=False)

    # Bytes downloaded by other users since bandwidth_reset_at - 1 day.
    bandwidth_used = Column(BigInteger, nullable=False, default=0)
    bandwidth_limit = Column(BigInteger, nullable=False)
    bandwidth_reset_at = Column(DateTime(timezone=True), nullable=False)

    is_private = Column(Boolean, nullable=False, default=True)
    allow_copying = Column(String(10), nullable=False, default="REQUEST")  # ALLOW / REQUEST / DENY

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
