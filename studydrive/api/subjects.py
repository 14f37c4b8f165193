"""Subject collaborator hooks: keep one folder per subject in the owner's drive."""

import logging

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from ..core.auth import AuthContext
from ..core.rate_limit import API_CALL, rate_limited
from ..database import get_db
from ..schemas.folder import FolderResponse, SubjectFolderRequest
from ..services import subject_sync

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/drive/subjects", tags=["subjects"])


@router.put("/{subject_id}", response_model=FolderResponse)
def upsert_subject_folder(
    subject_id: str,
    data: SubjectFolderRequest,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(rate_limited(API_CALL)),
):
    """Provision the subject's folder, or follow a subject rename."""
    return subject_sync.rename_subject_folder(db, auth.user_id, subject_id, data.name)


@router.delete("/{subject_id}", status_code=204)
def remove_subject_folder(
    subject_id: str,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(rate_limited(API_CALL)),
):
    subject_sync.remove_subject_folder(db, auth.user_id, subject_id)
    db.commit()
    return Response(status_code=204)
