"""API routes."""

from .drive import router as drive_router
from .folders import router as folders_router
from .files import router as files_router, save_router
from .trash import router as trash_router
from .copy_requests import router as copy_requests_router, import_router
from .bulk import router as bulk_router
from .subjects import router as subjects_router

__all__ = [
    "drive_router",
    "folders_router",
    "files_router",
    "save_router",
    "trash_router",
    "copy_requests_router",
    "import_router",
    "bulk_router",
    "subjects_router",
]
