"""Copy request API and direct imports from other users' drives."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from ..core.auth import AuthContext, require_user
from ..core.rate_limit import API_CALL, FILE_UPLOAD, rate_limited
from ..database import get_db
from ..exceptions import ValidationError
from ..schemas.copy_request import (
    CopyRequestCreate,
    CopyRequestListResponse,
    CopyRequestResolve,
    CopyRequestResolveResponse,
    CopyRequestResponse,
    ImportRequest,
    ImportResponse,
)
from ..services.copy_request_service import CopyRequestService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/drive/copy-requests", tags=["copy-requests"])

import_router = APIRouter(prefix="/api/drive", tags=["copy-requests"])


@router.get("", response_model=CopyRequestListResponse)
def list_copy_requests(
    type: str = Query("all", description="sent, received, or all"),
    status: Optional[str] = Query(None, description="PENDING, APPROVED, or DENIED"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_user),
):
    requests, total = CopyRequestService(db).list_requests(auth.user_id, type, status, page, limit)
    return CopyRequestListResponse(requests=requests, total=total, page=page, limit=limit)


@router.post("", response_model=CopyRequestResponse, status_code=201)
def create_copy_request(
    data: CopyRequestCreate,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(rate_limited(API_CALL)),
):
    return CopyRequestService(db).create_request(
        auth.user_id, data.to_user_id, data.request_type, data.target_id, data.message
    )


@router.put("/{request_id}", response_model=CopyRequestResolveResponse)
def resolve_copy_request(
    request_id: str,
    data: CopyRequestResolve,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(rate_limited(API_CALL)),
):
    """Approve (copying the item to the requester) or deny a pending request."""
    if data.action not in ("approve", "deny"):
        raise ValidationError("action must be approve or deny", field="action")
    request, imported = CopyRequestService(db).resolve(
        auth.user_id, request_id, approve=data.action == "approve"
    )
    return CopyRequestResolveResponse(
        request=request,
        imported=ImportResponse.model_validate(imported) if imported is not None else None,
    )


@router.delete("/{request_id}", status_code=204)
def cancel_copy_request(
    request_id: str,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(rate_limited(API_CALL)),
):
    CopyRequestService(db).cancel(auth.user_id, request_id)
    return Response(status_code=204)


@import_router.post("/import", response_model=ImportResponse, status_code=201)
def import_item(
    data: ImportRequest,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(rate_limited(FILE_UPLOAD)),
):
    """Copy another user's public item (or any item under an ALLOW policy) into your drive."""
    result = CopyRequestService(db).import_directly(
        auth.user_id,
        data.from_user_id,
        data.import_type,
        data.target_id,
        skip_duplicates=data.skip_duplicates,
    )
    return ImportResponse.model_validate(result)
