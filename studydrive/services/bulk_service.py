"""Bulk file operations.

Each item runs inside its own savepoint so one bad id cannot undo the items
that already succeeded. Failures are collected per item and reported, never
raised; the batch commits once at the end.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from ..exceptions import DriveException, ValidationError
from .content_store import ContentStore
from .file_service import FileService
from .trash_service import TrashService

logger = logging.getLogger(__name__)

OPERATIONS = ("delete", "restore", "move", "copy")
MAX_BATCH = 100


@dataclass
class BulkResult:
    total: int = 0
    succeeded: List[str] = field(default_factory=list)
    failed: List[Dict[str, str]] = field(default_factory=list)


class BulkService:

    def __init__(self, db: Session, store: Optional[ContentStore] = None):
        self.db = db
        self.files = FileService(db, store)
        self.trash = TrashService(db, store)

    def run(
        self,
        user_id: str,
        operation: str,
        file_ids: List[str],
        target_folder_id: Optional[str] = None,
    ) -> BulkResult:
        if operation not in OPERATIONS:
            raise ValidationError(
                f"operation must be one of {', '.join(OPERATIONS)}", field="operation"
            )
        ids = list(dict.fromkeys(file_ids))
        if not ids:
            raise ValidationError("file_ids must not be empty", field="file_ids")
        if len(ids) > MAX_BATCH:
            raise ValidationError(f"At most {MAX_BATCH} items per batch", field="file_ids")

        handler = self._handler(operation, user_id, target_folder_id)
        result = BulkResult(total=len(ids))
        for file_id in ids:
            savepoint = self.db.begin_nested()
            try:
                handler(file_id)
                savepoint.commit()
                result.succeeded.append(file_id)
            except DriveException as e:
                savepoint.rollback()
                result.failed.append({"id": file_id, "error": e.error_code.value, "message": e.message})

        self.db.commit()
        logger.info(
            "Bulk operation finished",
            extra={
                "operation": operation,
                "total": result.total,
                "succeeded": len(result.succeeded),
                "failed": len(result.failed),
            },
        )
        return result

    def _handler(self, operation: str, user_id: str, target_folder_id: Optional[str]) -> Callable[[str], object]:
        if operation == "delete":
            return lambda file_id: self.trash.soft_delete_file(user_id, file_id, commit=False)
        if operation == "restore":
            return lambda file_id: self.trash.restore_file(user_id, file_id, commit=False)
        if operation == "move":
            return lambda file_id: self.files.move_file(user_id, file_id, target_folder_id, commit=False)
        return lambda file_id: self.files.copy_file(user_id, file_id, target_folder_id, commit=False)
