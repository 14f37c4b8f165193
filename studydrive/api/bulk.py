"""Bulk file operations API."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..core.auth import AuthContext
from ..core.rate_limit import API_CALL, rate_limited
from ..database import get_db
from ..schemas.bulk import BulkRequest, BulkResponse
from ..services.bulk_service import BulkService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/drive", tags=["bulk"])


@router.post("/bulk", response_model=BulkResponse)
def bulk_operation(
    data: BulkRequest,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(rate_limited(API_CALL)),
):
    """Apply delete, restore, move, or copy to many files; failures are reported per item."""
    result = BulkService(db).run(auth.user_id, data.operation, data.file_ids, data.target_folder_id)
    return BulkResponse.model_validate(result)
