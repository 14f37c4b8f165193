"""File repository.

Every default read goes through ``_base_query()`` and so excludes trashed
files. Trash operations use the ``*_including_deleted`` / ``get_deleted``
variants explicitly.
"""

from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy import String, cast, func, or_
from sqlalchemy.orm import Query

from ..models import DriveFile
from ..exceptions import DriveFileNotFoundError
from .base import LIKE_ESCAPE, BaseRepository, contains_pattern


class FileRepository(BaseRepository[DriveFile]):

    model_class = DriveFile
    not_found_error = DriveFileNotFoundError

    def _base_query(self) -> Query:
        return self.db.query(DriveFile).filter(DriveFile.deleted_at.is_(None))

    def get_in_drive(self, drive_id: str, file_id: str) -> DriveFile:
        file = self._base_query().filter(DriveFile.id == file_id, DriveFile.drive_id == drive_id).first()
        if file is None:
            raise DriveFileNotFoundError(file_id)
        return file

    def add(self, file: DriveFile) -> DriveFile:
        self.db.add(file)
        self.db.flush()
        return file

    def find_by_hash(self, drive_id: str, file_hash: str) -> Optional[DriveFile]:
        """Active file in *drive_id* with identical content."""
        return self._base_query().filter(
            DriveFile.drive_id == drive_id, DriveFile.file_hash == file_hash
        ).first()

    def list(
        self,
        drive_id: str,
        folder_id: Optional[str] = None,
        search: Optional[str] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> tuple[List[DriveFile], int]:
        """Page of active files directly in *folder_id*.

        No folder means the drive root only (``folder_id IS NULL``), never
        every folder.
        """
        query = self._base_query().filter(DriveFile.drive_id == drive_id)
        if folder_id:
            query = query.filter(DriveFile.folder_id == folder_id)
        else:
            query = query.filter(DriveFile.folder_id.is_(None))
        if search:
            pattern = contains_pattern(search)
            query = query.filter(
                or_(
                    func.lower(DriveFile.original_name).like(pattern, escape=LIKE_ESCAPE),
                    func.lower(func.coalesce(DriveFile.description, "")).like(pattern, escape=LIKE_ESCAPE),
                )
            )
        total = query.count()
        files = query.order_by(DriveFile.created_at.desc(), DriveFile.id).offset(skip).limit(limit).all()
        return files, total

    def in_folders(self, folder_ids: Iterable[str], include_deleted: bool = True) -> List[DriveFile]:
        ids = list(folder_ids)
        if not ids:
            return []
        query = self.db.query(DriveFile).filter(DriveFile.folder_id.in_(ids))
        if not include_deleted:
            query = query.filter(DriveFile.deleted_at.is_(None))
        return query.order_by(DriveFile.created_at, DriveFile.id).all()

    def count_references(self, file_path: str) -> int:
        """Rows (trashed or not, any drive) pointing at stored bytes."""
        return self.db.query(DriveFile).filter(DriveFile.file_path == file_path).count()

    def find_unbilled_sharing(
        self, drive_id: str, file_path: str, exclude_ids: Iterable[str] = ()
    ) -> Optional[DriveFile]:
        """Free row in *drive_id* (trash included) pointing at *file_path*, active rows first."""
        query = self.db.query(DriveFile).filter(
            DriveFile.drive_id == drive_id,
            DriveFile.file_path == file_path,
            DriveFile.billed_size == 0,
        )
        excluded = list(exclude_ids)
        if excluded:
            query = query.filter(DriveFile.id.notin_(excluded))
        return query.order_by(DriveFile.deleted_at.isnot(None), DriveFile.created_at, DriveFile.id).first()

    def count_active(self, drive_id: str) -> int:
        return self._base_query().filter(DriveFile.drive_id == drive_id).count()

    def get_deleted(self, drive_id: str) -> List[DriveFile]:
        return (
            self.db.query(DriveFile)
            .filter(DriveFile.drive_id == drive_id, DriveFile.deleted_at.isnot(None))
            .order_by(DriveFile.deleted_at.desc())
            .all()
        )

    def get_expired(self, cutoff: datetime) -> List[DriveFile]:
        return (
            self.db.query(DriveFile)
            .filter(DriveFile.deleted_at.isnot(None), DriveFile.deleted_at < cutoff)
            .all()
        )

    def sum_billed(self, drive_id: str) -> int:
        """Sum of billed_size over every row of the drive (trash included)."""
        total = (
            self.db.query(func.coalesce(func.sum(DriveFile.billed_size), 0))
            .filter(DriveFile.drive_id == drive_id)
            .scalar()
        )
        return int(total or 0)

    def search(
        self,
        drive_id: str,
        term: str,
        file_type: Optional[str] = None,
        limit: int = 50,
    ) -> List[DriveFile]:
        """Case-insensitive match on name, description, or tags across the drive."""
        pattern = contains_pattern(term)
        query = self._base_query().filter(
            DriveFile.drive_id == drive_id,
            or_(
                func.lower(DriveFile.original_name).like(pattern, escape=LIKE_ESCAPE),
                func.lower(func.coalesce(DriveFile.description, "")).like(pattern, escape=LIKE_ESCAPE),
                func.lower(cast(DriveFile.tags, String)).like(pattern, escape=LIKE_ESCAPE),
            ),
        )
        if file_type:
            query = query.filter(DriveFile.file_type == file_type)
        return query.order_by(DriveFile.created_at.desc(), DriveFile.id).limit(limit).all()
