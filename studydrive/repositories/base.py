"""Base repository with the shared get-by-ID pattern.

Subclasses set ``model_class`` and ``not_found_error``. Override
``_base_query()`` to apply default filters such as soft-delete exclusion;
``get_by_id`` and ``get_by_id_optional`` go through it.
"""

from typing import Generic, Optional, Type, TypeVar

from sqlalchemy.orm import Query, Session

from ..database import Base
from ..exceptions import DriveException

ModelT = TypeVar("ModelT", bound=Base)


class BaseRepository(Generic[ModelT]):

    model_class: Type[ModelT]
    id_column: str = "id"
    not_found_error: Type[DriveException]

    def __init__(self, db: Session):
        self.db = db

    def _base_query(self) -> Query:
        return self.db.query(self.model_class)

    def get_by_id(self, entity_id: str) -> ModelT:
        """Get entity by primary key. Raises not_found_error if missing."""
        entity = self.get_by_id_optional(entity_id)
        if entity is None:
            raise self.not_found_error(entity_id)
        return entity

    def get_by_id_optional(self, entity_id: str) -> Optional[ModelT]:
        col = getattr(self.model_class, self.id_column)
        return self._base_query().filter(col == entity_id).first()

    def get_by_id_including_deleted(self, entity_id: str) -> Optional[ModelT]:
        """Bypass ``_base_query`` filters (used by trash operations)."""
        col = getattr(self.model_class, self.id_column)
        return self.db.query(self.model_class).filter(col == entity_id).first()


LIKE_ESCAPE = "\\"


def contains_pattern(term: str) -> str:
    """Lower-cased ``%term%`` with LIKE wildcards in *term* matched literally.

    Use with ``.like(pattern, escape=LIKE_ESCAPE)``.
    """
    escaped = (
        term.lower()
        .replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )
    return f"%{escaped}%"
