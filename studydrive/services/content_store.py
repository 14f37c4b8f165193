"""Content store: raw file bytes on the local filesystem.

Layout: ``<storage_root>/drives/<owner>/<yyyy>/<mm>/<uuid><ext>``. Paths
recorded in the database are relative to ``storage_root`` so the root can
move between deployments. Several file rows may point at one stored path;
callers check references before calling ``delete``.
"""

import hashlib
import logging
import os
import re
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from ..core.config import settings

logger = logging.getLogger(__name__)

_OWNER_UNSAFE = re.compile(r"[^A-Za-z0-9_-]")
_EXT = re.compile(r"^\.[A-Za-z0-9]{1,10}$")


@dataclass(frozen=True)
class StoredContent:
    stored_name: str
    file_path: str
    content_hash: str
    size: int


class ContentStore:

    def __init__(self, root: Optional[str] = None):
        self.root = Path(root or settings.storage_root).resolve()

    @staticmethod
    def hash(data: bytes) -> str:
        """sha256 hex digest of *data*."""
        return hashlib.sha256(data).hexdigest()

    def put(
        self,
        owner_id: str,
        data: bytes,
        original_name: str = "",
        now: Optional[datetime] = None,
    ) -> StoredContent:
        """Write *data* under the owner's year/month directory.

        The write goes to a temporary name and is renamed into place, so a
        crash never leaves a truncated file under the final name. OSError
        propagates to the caller.
        """
        now = now or datetime.now(timezone.utc)
        ext = os.path.splitext(original_name)[1].lower()
        if not _EXT.match(ext):
            ext = ""
        stored_name = f"{uuid.uuid4().hex}{ext}"
        owner = _OWNER_UNSAFE.sub("_", owner_id) or "unknown"
        relative = f"drives/{owner}/{now:%Y}/{now:%m}/{stored_name}"

        self._write(relative, data)
        return StoredContent(
            stored_name=stored_name,
            file_path=relative,
            content_hash=self.hash(data),
            size=len(data),
        )

    def put_thumbnail(self, file_path: str, data: bytes) -> str:
        """Store thumbnail bytes next to *file_path*. Returns the relative path."""
        base, _ = os.path.splitext(file_path)
        relative = f"{base}_thumb.jpg"
        self._write(relative, data)
        return relative

    def read(self, file_path: str) -> bytes:
        return self._resolve(file_path).read_bytes()

    def path_for(self, file_path: str) -> Path:
        """Absolute location of stored bytes (for streaming responses)."""
        return self._resolve(file_path)

    def exists(self, file_path: str) -> bool:
        return self._resolve(file_path).is_file()

    def delete(self, file_path: Optional[str]) -> bool:
        """Remove stored bytes. Best-effort: failures are logged, never raised."""
        if not file_path:
            return False
        try:
            self._resolve(file_path).unlink()
            return True
        except FileNotFoundError:
            logger.warning("Stored bytes already missing", extra={"file_path": file_path})
            return False
        except (OSError, ValueError) as e:
            logger.warning(
                "Failed to delete stored bytes: %s", e,
                extra={"file_path": file_path},
            )
            return False

    def _write(self, relative: str, data: bytes) -> None:
        target = self._resolve(relative)
        target.parent.mkdir(parents=True, exist_ok=True)
        tmp = target.with_name(f".{target.name}.tmp")
        with open(tmp, "wb") as fh:
            fh.write(data)
        os.replace(tmp, target)

    def _resolve(self, relative: str) -> Path:
        path = (self.root / relative).resolve()
        if path != self.root and self.root not in path.parents:
            raise ValueError(f"Path escapes storage root: {relative}")
        return path
