"""Folder repository.

Default queries exclude trashed folders. ``walk_subtree`` is the single
traversal used by copy, cascade delete, and hard delete; it is iterative so
deep trees cannot exhaust the stack.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Query

from ..models import Folder
from ..exceptions import FolderNotFoundError
from .base import LIKE_ESCAPE, BaseRepository, contains_pattern


class FolderRepository(BaseRepository[Folder]):

    model_class = Folder
    not_found_error = FolderNotFoundError

    def _base_query(self) -> Query:
        return self.db.query(Folder).filter(Folder.deleted_at.is_(None))

    def get_in_drive(self, drive_id: str, folder_id: str) -> Folder:
        """Active folder owned by *drive_id*. Raises FolderNotFoundError."""
        folder = self._base_query().filter(Folder.id == folder_id, Folder.drive_id == drive_id).first()
        if folder is None:
            raise FolderNotFoundError(folder_id)
        return folder

    def find_sibling(
        self,
        drive_id: str,
        parent_id: Optional[str],
        name: str,
        exclude_id: Optional[str] = None,
    ) -> Optional[Folder]:
        """Active folder with *name* under *parent_id* (None = drive root)."""
        query = self._base_query().filter(Folder.drive_id == drive_id, Folder.name == name)
        if parent_id is None:
            query = query.filter(Folder.parent_id.is_(None))
        else:
            query = query.filter(Folder.parent_id == parent_id)
        if exclude_id is not None:
            query = query.filter(Folder.id != exclude_id)
        return query.first()

    def create(
        self,
        drive_id: str,
        parent: Optional[Folder],
        name: str,
        is_public: bool = False,
        subject_id: Optional[str] = None,
    ) -> Folder:
        folder = Folder(
            drive_id=drive_id,
            parent_id=parent.id if parent else None,
            name=name,
            path=f"{parent.path}/{name}" if parent else name,
            is_public=is_public,
            subject_id=subject_id,
        )
        self.db.add(folder)
        self.db.flush()
        return folder

    def list_children(
        self,
        drive_id: str,
        parent_id: Optional[str],
        skip: int = 0,
        limit: int = 50,
    ) -> tuple[List[Folder], int]:
        query = self._base_query().filter(Folder.drive_id == drive_id)
        if parent_id:
            query = query.filter(Folder.parent_id == parent_id)
        else:
            query = query.filter(Folder.parent_id.is_(None))
        total = query.count()
        folders = query.order_by(Folder.created_at.desc(), Folder.id).offset(skip).limit(limit).all()
        return folders, total

    def get_by_subject(self, drive_id: str, subject_id: str) -> Optional[Folder]:
        return self._base_query().filter(
            Folder.drive_id == drive_id, Folder.subject_id == subject_id
        ).first()

    def count_active(self, drive_id: str) -> int:
        return self._base_query().filter(Folder.drive_id == drive_id).count()

    def depth_of(self, folder: Folder) -> int:
        """1 for a root folder, 2 for its children, and so on."""
        return folder.path.count("/") + 1 if folder.path else 1

    def walk_subtree(self, root: Folder, include_deleted: bool = True) -> List[Folder]:
        """Return *root* and every descendant, parents before children.

        Breadth-first with an explicit queue. With ``include_deleted`` trashed
        descendants are included too, which hard delete requires.
        """
        ordered: List[Folder] = [root]
        frontier = [root.id]
        while frontier:
            query = self.db.query(Folder).filter(Folder.parent_id.in_(frontier))
            if not include_deleted:
                query = query.filter(Folder.deleted_at.is_(None))
            children = query.order_by(Folder.name).all()
            ordered.extend(children)
            frontier = [child.id for child in children]
        return ordered

    def ancestors(self, folder: Folder) -> List[Folder]:
        """Chain from the drive root down to *folder* (inclusive)."""
        chain = [folder]
        seen = {folder.id}
        current = folder
        while current.parent_id is not None:
            parent = self.db.query(Folder).filter(Folder.id == current.parent_id).first()
            if parent is None or parent.id in seen:
                break
            chain.append(parent)
            seen.add(parent.id)
            current = parent
        chain.reverse()
        return chain

    def get_deleted(self, drive_id: str) -> List[Folder]:
        return (
            self.db.query(Folder)
            .filter(Folder.drive_id == drive_id, Folder.deleted_at.isnot(None))
            .order_by(Folder.deleted_at.desc())
            .all()
        )

    def get_expired(self, cutoff: datetime) -> List[Folder]:
        """Trashed folders whose own deletion predates *cutoff*."""
        return (
            self.db.query(Folder)
            .filter(Folder.deleted_at.isnot(None), Folder.deleted_at < cutoff)
            .all()
        )

    def search(self, drive_id: str, term: str, limit: int = 50) -> List[Folder]:
        return (
            self._base_query()
            .filter(
                Folder.drive_id == drive_id,
                func.lower(Folder.name).like(contains_pattern(term), escape=LIKE_ESCAPE),
            )
            .order_by(Folder.path)
            .limit(limit)
            .all()
        )
