"""Trash API: list, restore, and permanent deletion."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..core.auth import AuthContext, require_user
from ..core.rate_limit import FILE_DELETE, rate_limited
from ..database import get_db
from ..exceptions import ValidationError
from ..schemas.file import DeleteResultResponse, RestoreResponse, TrashItemRequest, TrashResponse
from ..services.trash_service import TrashService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/drive/trash", tags=["trash"])

ITEM_TYPES = ("file", "folder")


def _check_item_type(item_type: str) -> None:
    if item_type not in ITEM_TYPES:
        raise ValidationError("item_type must be file or folder", field="item_type")


@router.get("", response_model=TrashResponse)
def list_trash(
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_user),
):
    files, folders = TrashService(db).list_trash(auth.user_id)
    db.commit()
    return TrashResponse(
        files=files, folders=folders, total_size=sum(f.file_size for f in files)
    )


@router.post("", response_model=RestoreResponse)
def restore_item(
    data: TrashItemRequest,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(rate_limited(FILE_DELETE)),
):
    _check_item_type(data.item_type)
    service = TrashService(db)
    if data.item_type == "file":
        return RestoreResponse(item_type="file", file=service.restore_file(auth.user_id, data.item_id))
    return RestoreResponse(item_type="folder", folder=service.restore_folder(auth.user_id, data.item_id))


@router.delete("", response_model=DeleteResultResponse)
def delete_permanently(
    item_type: Optional[str] = Query(None),
    item_id: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(rate_limited(FILE_DELETE)),
):
    """Permanently delete one trashed item, or empty the whole trash when no item is given."""
    service = TrashService(db)
    if item_id is None:
        result = service.empty_trash(auth.user_id)
    else:
        _check_item_type(item_type or "")
        if item_type == "file":
            result = service.hard_delete_file(auth.user_id, item_id)
        else:
            result = service.hard_delete_folder(auth.user_id, item_id)
    return DeleteResultResponse(
        permanent=True, folders=result.folders, files=result.files,
        released_bytes=result.released_bytes,
    )
