"""File registry: ingest, browse, update, move, copy, and download files.

Every ingest path (multipart upload and save-from-url) runs the same steps:
size limit, sanitizing, dedup by content hash, quota pre-check, byte write,
best-effort thumbnail, then one transaction holding the file row, the ledger
charge, and the activity entry. If that transaction fails the freshly written
bytes are removed again.
"""

import logging
import mimetypes
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Union
from urllib.parse import unquote, urlsplit

import httpx
from sqlalchemy.orm import Session

from ..core.config import settings
from ..models import Drive, DriveFile, Folder
from ..exceptions import (
    DriveFileNotFoundError,
    DuplicateContentError,
    FileTooLargeError,
    ForbiddenError,
    UpstreamFetchError,
)
from ..repositories import DriveRepository, FileRepository, FolderRepository
from . import activity_service, thumbnails
from .content_store import ContentStore
from .drive_service import DriveService
from .folder_service import FolderService
from .quota_ledger import QuotaLedger
from .sanitizer import (
    sanitize_description,
    sanitize_search_query,
    sanitize_tags,
    validate_name,
    validate_url,
)

logger = logging.getLogger(__name__)

_FILE_TYPES = (
    ("image/", "image"),
    ("video/", "video"),
    ("audio/", "audio"),
    ("text/", "document"),
)
_MIME_FILE_TYPES = {
    "application/pdf": "pdf",
    "application/msword": "document",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": "document",
    "application/vnd.ms-powerpoint": "presentation",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation": "presentation",
    "application/vnd.ms-excel": "spreadsheet",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": "spreadsheet",
    "application/zip": "archive",
    "application/x-zip-compressed": "archive",
    "application/x-7z-compressed": "archive",
    "application/x-tar": "archive",
    "application/gzip": "archive",
}


@dataclass(frozen=True)
class FetchedContent:
    data: bytes
    content_type: Optional[str]
    name: Optional[str]


def detect_mime_type(name: str, declared: Optional[str]) -> str:
    declared = (declared or "").split(";")[0].strip().lower()
    if declared and declared != "application/octet-stream":
        return declared
    guessed, _ = mimetypes.guess_type(name)
    return guessed or "application/octet-stream"


def file_type_for(mime_type: str) -> str:
    if mime_type in _MIME_FILE_TYPES:
        return _MIME_FILE_TYPES[mime_type]
    for prefix, kind in _FILE_TYPES:
        if mime_type.startswith(prefix):
            return kind
    return "other"


def fetch_url(url: str, max_bytes: Optional[int] = None, timeout: Optional[float] = None) -> FetchedContent:
    """Download *url* with a timeout and a size cap.

    Raises UpstreamFetchError on network errors and non-2xx responses, and
    FileTooLargeError as soon as the body passes ``max_bytes``.
    """
    max_bytes = max_bytes if max_bytes is not None else settings.max_file_size
    timeout = timeout if timeout is not None else settings.fetch_timeout_seconds
    try:
        with httpx.Client(timeout=timeout, follow_redirects=True) as client:
            with client.stream("GET", url) as response:
                if response.status_code >= 400:
                    raise UpstreamFetchError(url, f"HTTP {response.status_code}")
                chunks = []
                received = 0
                for chunk in response.iter_bytes():
                    received += len(chunk)
                    if received > max_bytes:
                        raise FileTooLargeError(received, max_bytes)
                    chunks.append(chunk)
                return FetchedContent(
                    data=b"".join(chunks),
                    content_type=response.headers.get("content-type"),
                    name=_name_from_response(response),
                )
    except httpx.TimeoutException:
        raise UpstreamFetchError(url, "timed out")
    except httpx.HTTPError as e:
        raise UpstreamFetchError(url, type(e).__name__)


def _name_from_response(response: httpx.Response) -> Optional[str]:
    disposition = response.headers.get("content-disposition", "")
    for part in disposition.split(";"):
        key, _, value = part.strip().partition("=")
        if key.lower() == "filename" and value:
            return value.strip('"')
    tail = os.path.basename(unquote(urlsplit(str(response.url)).path))
    return tail or None


class FileService:
    """Deep module for file records.

    Owns the full ingest pipeline so callers never coordinate the content
    store, quota ledger, and activity log themselves.
    """

    def __init__(self, db: Session, store: Optional[ContentStore] = None):
        self.db = db
        self.store = store or ContentStore()
        self.file_repo = FileRepository(db)
        self.folder_repo = FolderRepository(db)
        self.drives = DriveService(db)
        self.ledger = QuotaLedger(db)

    # ------------------------------------------------------------------
    # Ingest
    # ------------------------------------------------------------------

    def upload(
        self,
        user_id: str,
        data: bytes,
        original_name: str,
        mime_type: Optional[str] = None,
        folder_id: Optional[str] = None,
        tags: Union[None, str, Iterable[str]] = None,
        description: Optional[str] = None,
        is_public: bool = False,
    ) -> DriveFile:
        drive = self.drives.ensure_drive(user_id)
        return self._ingest(
            drive, user_id, data, original_name, mime_type,
            folder_id=folder_id, tags=tags, description=description, is_public=is_public,
        )

    def save_from_url(
        self,
        user_id: str,
        url: str,
        name: Optional[str] = None,
        folder_id: Optional[str] = None,
        description: Optional[str] = None,
    ) -> DriveFile:
        """Fetch remote bytes and ingest them; identical content raises DuplicateContentError."""
        url = validate_url(url)
        drive = self.drives.ensure_drive(user_id)
        # Fail fast on a bad folder before spending a network round trip.
        self._resolve_folder(drive.id, folder_id)

        fetched = fetch_url(url)
        original_name = name or fetched.name or "download"
        return self._ingest(
            drive, user_id, fetched.data, original_name, fetched.content_type,
            folder_id=folder_id, description=description, details={"source_url": url},
        )

    def _ingest(
        self,
        drive: Drive,
        user_id: str,
        data: bytes,
        original_name: str,
        mime_type: Optional[str],
        folder_id: Optional[str] = None,
        tags: Union[None, str, Iterable[str]] = None,
        description: Optional[str] = None,
        is_public: bool = False,
        details: Optional[dict] = None,
    ) -> DriveFile:
        size = len(data)
        if size > settings.max_file_size:
            raise FileTooLargeError(size, settings.max_file_size)

        name = validate_name(original_name, field="name")
        clean_tags = sanitize_tags(tags)
        clean_description = sanitize_description(description)
        folder = self._resolve_folder(drive.id, folder_id)
        mime_type = detect_mime_type(name, mime_type)

        content_hash = ContentStore.hash(data)
        existing = self.file_repo.find_by_hash(drive.id, content_hash)
        if existing is not None:
            raise DuplicateContentError(existing.id, content_hash)

        self.ledger.require_room(drive.id, size)

        stored = self.store.put(user_id, data, name)
        thumbnail_path = self._make_thumbnail(stored.file_path, data, mime_type)

        try:
            file = self.file_repo.add(
                DriveFile(
                    drive_id=drive.id,
                    folder_id=folder.id if folder else None,
                    original_name=name,
                    stored_name=stored.stored_name,
                    file_path=stored.file_path,
                    thumbnail_path=thumbnail_path,
                    file_size=size,
                    billed_size=size,
                    mime_type=mime_type,
                    file_type=file_type_for(mime_type),
                    file_hash=content_hash,
                    description=clean_description,
                    tags=clean_tags,
                    is_public=is_public,
                )
            )
            self.ledger.charge(drive.id, size)
            activity_service.record(
                self.db, drive.id, user_id, "upload", "file",
                target_id=file.id, target_name=name,
                details={"size": str(size), **(details or {})},
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            self.store.delete(stored.file_path)
            if thumbnail_path:
                self.store.delete(thumbnail_path)
            raise

        self.db.refresh(file)
        logger.info(
            "File stored",
            extra={"file_id": file.id, "drive_id": drive.id, "size": size, "mime_type": mime_type},
        )
        return file

    def _make_thumbnail(self, file_path: str, data: bytes, mime_type: str) -> Optional[str]:
        thumb = thumbnails.generate_thumbnail(data, mime_type)
        if not thumb:
            return None
        try:
            return self.store.put_thumbnail(file_path, thumb)
        except OSError as e:
            logger.warning("Failed to store thumbnail: %s", e, extra={"file_path": file_path})
            return None

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get_file(self, user_id: str, file_id: str) -> DriveFile:
        drive = self.drives.ensure_drive(user_id)
        return self.file_repo.get_in_drive(drive.id, file_id)

    def list_files(
        self,
        user_id: str,
        folder_id: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 50,
    ) -> tuple[List[DriveFile], int]:
        """Files directly in *folder_id*; an absent folder means the drive root only."""
        drive = self.drives.ensure_drive(user_id)
        limit = max(1, min(limit, 100))
        page = max(page, 1)
        return self.file_repo.list(
            drive.id,
            folder_id=folder_id or None,
            search=sanitize_search_query(search) or None,
            skip=(page - 1) * limit,
            limit=limit,
        )

    def search(
        self,
        user_id: str,
        query: str,
        kind: str = "all",
        file_type: Optional[str] = None,
        limit: int = 50,
    ) -> tuple[List[DriveFile], List[Folder]]:
        """Drive-wide search over file name, description, and tags, and folder names."""
        drive = self.drives.ensure_drive(user_id)
        term = sanitize_search_query(query)
        limit = max(1, min(limit, 100))
        if not term:
            return [], []
        files = self.file_repo.search(drive.id, term, file_type, limit) if kind in ("all", "file") else []
        folders = self.folder_repo.search(drive.id, term, limit) if kind in ("all", "folder") else []
        return files, folders

    def open_for_download(self, user_id: str, file_id: str) -> tuple[DriveFile, Path]:
        """Authorize a download and account for it.

        Owners may always download. Others need a public file or a drive that
        is not private, and their download counts against the owner's daily
        bandwidth. Every download bumps ``download_count`` and is logged.
        """
        file = self.file_repo.get_by_id_optional(file_id)
        if file is None:
            raise DriveFileNotFoundError(file_id)
        drive = DriveRepository(self.db).get_by_id(file.drive_id)

        is_owner = drive.user_id == user_id
        if not (is_owner or file.is_public or not drive.is_private):
            raise ForbiddenError("This file is private")

        path = self.store.path_for(file.file_path)
        if not path.is_file():
            logger.error(
                "Stored bytes missing for file",
                extra={"file_id": file.id, "file_path": file.file_path},
            )
            raise DriveFileNotFoundError(file_id)

        if not is_owner:
            self.drives.charge_bandwidth(drive.id, file.file_size)
        file.download_count = (file.download_count or 0) + 1
        activity_service.record(
            self.db, drive.id, user_id, "download", "file",
            target_id=file.id, target_name=file.original_name,
            details={"size": str(file.file_size), "owner": is_owner},
        )
        self.db.commit()
        self.db.refresh(file)
        return file, path

    # ------------------------------------------------------------------
    # Update / move / copy
    # ------------------------------------------------------------------

    def update_file(
        self,
        user_id: str,
        file_id: str,
        name: Optional[str] = None,
        description: Optional[str] = None,
        tags: Union[None, str, Iterable[str]] = None,
        is_public: Optional[bool] = None,
    ) -> DriveFile:
        drive = self.drives.ensure_drive(user_id)
        file = self.file_repo.get_in_drive(drive.id, file_id)

        changes: List[str] = []
        old_name = file.original_name
        if name is not None:
            new_name = validate_name(name)
            if new_name != file.original_name:
                file.original_name = new_name
                changes.append("name")
        if description is not None:
            file.description = sanitize_description(description)
            changes.append("description")
        if tags is not None:
            file.tags = sanitize_tags(tags)
            changes.append("tags")
        if is_public is not None and is_public != file.is_public:
            file.is_public = is_public
            changes.append("is_public")

        if changes:
            action = "rename" if changes == ["name"] else "update"
            activity_service.record(
                self.db, drive.id, user_id, action, "file",
                target_id=file.id, target_name=file.original_name,
                details={"fields": changes, "old_name": old_name} if "name" in changes else {"fields": changes},
            )
        self.db.commit()
        self.db.refresh(file)
        return file

    def move_file(
        self,
        user_id: str,
        file_id: str,
        target_folder_id: Optional[str],
        commit: bool = True,
    ) -> DriveFile:
        drive = self.drives.ensure_drive(user_id)
        file = self.file_repo.get_in_drive(drive.id, file_id)
        target = self._resolve_folder(drive.id, target_folder_id)
        file.folder_id = target.id if target else None
        activity_service.record(
            self.db, drive.id, user_id, "move", "file",
            target_id=file.id, target_name=file.original_name,
            details={"folder_id": file.folder_id},
        )
        self.db.flush()
        if commit:
            self.db.commit()
        return file

    def copy_file(
        self,
        user_id: str,
        file_id: str,
        target_folder_id: Optional[str] = None,
        commit: bool = True,
    ) -> DriveFile:
        """Same-drive copy sharing the stored bytes; bills nothing."""
        drive = self.drives.ensure_drive(user_id)
        source = self.file_repo.get_in_drive(drive.id, file_id)
        target = self._resolve_folder(drive.id, target_folder_id)
        copy = FolderService(self.db).copy_file_row(
            source, drive.id, target.id if target else None, billed_size=0
        )
        activity_service.record(
            self.db, drive.id, user_id, "copy", "file",
            target_id=copy.id, target_name=copy.original_name,
            details={"source_id": source.id},
        )
        if commit:
            self.db.commit()
        return copy

    def _resolve_folder(self, drive_id: str, folder_id: Optional[str]) -> Optional[Folder]:
        if not folder_id:
            return None
        return self.folder_repo.get_in_drive(drive_id, folder_id)
