"""Subject folder hooks.

The subject collaborator calls these when a subject is created, renamed, or
deleted so every subject keeps exactly one ``"Subjects - <name>"`` folder at
the root of its owner's drive.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ..models import Folder
from ..repositories import FolderRepository
from .drive_service import DriveService
from .folder_service import FolderService, subject_folder_name
from .trash_service import TrashService

logger = logging.getLogger(__name__)


def provision_subject_folder(db: Session, user_id: str, subject_id: str, subject_name: str) -> Folder:
    """Return the subject's folder, creating it if it does not exist yet."""
    drive = DriveService(db).ensure_drive(user_id)
    existing = FolderRepository(db).get_by_subject(drive.id, subject_id)
    if existing is not None:
        db.commit()
        return existing
    folder = FolderService(db).create_folder(user_id, subject_name, subject_id=subject_id)
    logger.info("Subject folder provisioned", extra={"subject_id": subject_id, "folder_id": folder.id})
    return folder


def rename_subject_folder(db: Session, user_id: str, subject_id: str, subject_name: str) -> Folder:
    """Follow a subject rename; provisions the folder if it went missing."""
    drive = DriveService(db).ensure_drive(user_id)
    folder = FolderRepository(db).get_by_subject(drive.id, subject_id)
    if folder is None:
        return provision_subject_folder(db, user_id, subject_id, subject_name)
    if folder.name == subject_folder_name(subject_name):
        return folder
    return FolderService(db).update_folder(user_id, folder.id, name=subject_name)


def remove_subject_folder(db: Session, user_id: str, subject_id: str) -> Optional[Folder]:
    """Move the subject's folder to trash. Returns None if it had none."""
    drive = DriveService(db).ensure_drive(user_id)
    folder = FolderRepository(db).get_by_subject(drive.id, subject_id)
    if folder is None:
        return None
    TrashService(db).soft_delete_folder(user_id, folder.id)
    return folder
