"""Main FastAPI application."""

import logging
import re
import time
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.orm import Session

from . import __version__
from .database import engine, Base, get_db, SessionLocal, DATABASE_URL
from .api import (
    drive_router,
    folders_router,
    files_router,
    save_router,
    trash_router,
    copy_requests_router,
    import_router,
    bulk_router,
    subjects_router,
)
from .core.config import settings, ConfigurationError, Environment
from .core.logging_config import setup_logging
from .middleware.exception_handler import drive_exception_handler, unhandled_exception_handler
from .middleware.request_context import RequestContextMiddleware
from .exceptions import DriveException
from .services.trash_service import TrashService

# Setup logging first
setup_logging(log_level=settings.log_level, log_format=settings.log_format)
logger = logging.getLogger(__name__)


def _mask_url(url: str) -> str:
    """Mask password in database URL for safe logging."""
    return re.sub(r'://([^:]+):([^@]+)@', r'://\1:***@', url)


Base.metadata.create_all(bind=engine)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle for the StudyDrive API."""
    # --- Security validation ---
    logger.info("Environment: %s", settings.environment.value)
    try:
        settings.validate_production_config()
    except ConfigurationError as e:
        logger.critical("STARTUP BLOCKED: %s", e)
        raise SystemExit(1) from e

    if settings.environment == Environment.DEVELOPMENT:
        if settings.jwt_secret_key == "dev-insecure-key-change-me" and settings.auth_enabled:
            logger.critical(
                "SECURITY: AUTH_ENABLED=true but JWT_SECRET_KEY is the default. "
                "Anyone can forge tokens. Generate a secure key: openssl rand -hex 32"
            )
        if not settings.auth_enabled:
            logger.warning(
                "SECURITY: Authentication is disabled (AUTH_ENABLED=false). "
                "The X-User-Id header is trusted as the caller's identity."
            )

    # --- Purge expired trash ---
    db = SessionLocal()
    try:
        purged = TrashService(db).purge_expired_trash()
        if purged > 0:
            logger.info("Purged %d expired items from trash", purged)
    except Exception as e:
        logger.warning("Trash purge failed (non-fatal): %s", e)
    finally:
        db.close()

    yield  # App runs here


app = FastAPI(
    title="StudyDrive API",
    description=(
        "Per-user file storage: folders, uploads with quota accounting and "
        "content dedup, trash with retention, and copy requests between users.\n\n"
        "**Authentication:** When `AUTH_ENABLED=true`, every endpoint requires a "
        "`Bearer` token. Otherwise the `X-User-Id` header names the caller.\n\n"
        "Byte sizes are returned as strings."
    ),
    version=__version__,
    lifespan=lifespan,
)

# CORS wraps request context.
app.add_middleware(RequestContextMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    allow_headers=["Content-Type", "Authorization", "X-User-Id"],
)

app.add_exception_handler(DriveException, drive_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

logger.info(
    "StudyDrive API started | env=%s | db=%s | auth=%s | storage=%s",
    settings.environment.value,
    _mask_url(DATABASE_URL),
    "enabled" if settings.auth_enabled else "disabled",
    settings.storage_root,
)

app.include_router(drive_router)
app.include_router(folders_router)
app.include_router(files_router)
app.include_router(save_router)
app.include_router(trash_router)
app.include_router(copy_requests_router)
app.include_router(import_router)
app.include_router(bulk_router)
app.include_router(subjects_router)


@app.get("/")
def root():
    return {
        "name": "StudyDrive API",
        "version": __version__,
        "status": "running"
    }


_startup_time = time.monotonic()


@app.get("/health")
def health_check(db: Session = Depends(get_db)):
    """Health check returning database status, uptime, and stored file count.

    Never raises: a DB failure reports ``degraded`` so load balancers can
    still probe without receiving 5xx.
    """
    db_status = "ok"
    file_count = 0
    try:
        db.execute(text("SELECT 1"))
        row = db.execute(text("SELECT COUNT(*) FROM drive_files WHERE deleted_at IS NULL")).scalar()
        file_count = row or 0
    except Exception:
        db_status = "error"

    return {
        "status": "healthy" if db_status == "ok" else "degraded",
        "db": db_status,
        "uptime_seconds": round(time.monotonic() - _startup_time),
        "version": __version__,
        "file_count": file_count,
    }
