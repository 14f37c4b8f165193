"""Exception handlers producing the structured error body."""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from ..exceptions import DriveException, ErrorCode

logger = logging.getLogger(__name__)


async def drive_exception_handler(request: Request, exc: DriveException) -> JSONResponse:
    """Return ``exc.to_dict()`` with the exception's status and headers.

    Client errors log at WARNING; only 5xx responses log at ERROR.
    """
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        f"DriveException: {exc.error_code.value}",
        extra={
            "error_code": exc.error_code.value,
            "path": request.url.path,
            "method": request.method,
            "details": exc.details,
            "status_code": exc.status_code
        }
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
        headers=exc.headers or None,
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log the full traceback server-side and leak nothing to the client."""
    logger.error(
        "Unhandled exception",
        exc_info=exc,
        extra={"path": request.url.path, "method": request.method},
    )
    return JSONResponse(
        status_code=500,
        content={
            "error": ErrorCode.INTERNAL_ERROR.value,
            "message": "Internal server error",
            "details": {},
        },
    )
