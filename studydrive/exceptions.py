"""Custom exception hierarchy for StudyDrive."""

from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any


class ErrorCode(str, Enum):
    """Standardized error codes for API responses."""

    # Lookup errors
    DRIVE_NOT_FOUND = "DRIVE_NOT_FOUND"
    FOLDER_NOT_FOUND = "FOLDER_NOT_FOUND"
    FILE_NOT_FOUND = "FILE_NOT_FOUND"
    COPY_REQUEST_NOT_FOUND = "COPY_REQUEST_NOT_FOUND"
    PARENT_NOT_FOUND = "PARENT_NOT_FOUND"

    # Tree errors
    NAME_CONFLICT = "NAME_CONFLICT"

    # Quota errors
    STORAGE_EXCEEDED = "STORAGE_EXCEEDED"
    BANDWIDTH_EXCEEDED = "BANDWIDTH_EXCEEDED"
    FILE_TOO_LARGE = "FILE_TOO_LARGE"

    # Validation errors
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # Auth & rate limiting
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    RATE_LIMITED = "RATE_LIMITED"

    # Concurrency / duplicate errors
    CONFLICT = "CONFLICT"
    DUPLICATE_CONTENT = "DUPLICATE_CONTENT"

    # External collaborators
    UPSTREAM_FETCH_FAILED = "UPSTREAM_FETCH_FAILED"

    # Generic errors
    INTERNAL_ERROR = "INTERNAL_ERROR"


class DriveException(Exception):
    """
    Base exception for all StudyDrive errors.

    Provides structured error responses with:
    - Human-readable message
    - Machine-readable error code
    - HTTP status code
    - Optional additional details
    - Optional extra response headers (e.g. Retry-After)
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        self.headers = headers or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to the JSON error body: error, message, details."""
        return {
            "error": self.error_code.value,
            "message": self.message,
            "details": self.details
        }


class DriveNotFoundError(DriveException):
    """No drive exists for the given id or owner."""

    def __init__(self, drive_id: str):
        super().__init__(
            f"Drive not found: {drive_id}",
            ErrorCode.DRIVE_NOT_FOUND,
            status_code=404,
            details={"drive_id": drive_id}
        )


class FolderNotFoundError(DriveException):
    """Folder not found (or soft-deleted where an active folder is required)."""

    def __init__(self, folder_id: str):
        super().__init__(
            f"Folder not found: {folder_id}",
            ErrorCode.FOLDER_NOT_FOUND,
            status_code=404,
            details={"folder_id": folder_id}
        )


class DriveFileNotFoundError(DriveException):
    """File not found (or soft-deleted where an active file is required)."""

    def __init__(self, file_id: str):
        super().__init__(
            f"File not found: {file_id}",
            ErrorCode.FILE_NOT_FOUND,
            status_code=404,
            details={"file_id": file_id}
        )


class CopyRequestNotFoundError(DriveException):

    def __init__(self, request_id: str):
        super().__init__(
            f"Copy request not found: {request_id}",
            ErrorCode.COPY_REQUEST_NOT_FOUND,
            status_code=404,
            details={"request_id": request_id}
        )


class ParentNotFoundError(DriveException):
    """The requested parent folder is missing or in the trash."""

    def __init__(self, parent_id: str):
        super().__init__(
            f"Parent folder not found: {parent_id}",
            ErrorCode.PARENT_NOT_FOUND,
            status_code=404,
            details={"parent_id": parent_id}
        )


class NameConflictError(DriveException):
    """A non-deleted sibling folder already uses this name."""

    def __init__(self, name: str, parent_id: Optional[str] = None):
        super().__init__(
            f"A folder named '{name}' already exists here",
            ErrorCode.NAME_CONFLICT,
            status_code=409,
            details={"name": name, "parent_id": parent_id}
        )


class StorageExceededError(DriveException):
    """Committing the operation would push the drive past its storage limit.

    Byte counts are reported as strings so clients never lose precision.
    """

    def __init__(self, storage_used: int, storage_limit: int, requested: int):
        super().__init__(
            "Storage limit exceeded",
            ErrorCode.STORAGE_EXCEEDED,
            status_code=413,
            details={
                "storage_used": str(storage_used),
                "storage_limit": str(storage_limit),
                "requested": str(requested),
            }
        )


class FileTooLargeError(DriveException):

    def __init__(self, size: int, max_size: int):
        super().__init__(
            f"File exceeds the maximum size of {max_size} bytes",
            ErrorCode.FILE_TOO_LARGE,
            status_code=400,
            details={"size": str(size), "max_size": str(max_size)}
        )


class ValidationError(DriveException):
    """Validation failed for user input."""

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(
            message,
            ErrorCode.VALIDATION_ERROR,
            status_code=400,
            details=details
        )


class AuthenticationError(DriveException):
    """Request lacks valid authentication credentials."""

    def __init__(self, message: str = "Invalid or missing authentication token"):
        super().__init__(
            message,
            ErrorCode.UNAUTHORIZED,
            status_code=401,
        )


class ForbiddenError(DriveException):
    """Authenticated user lacks permission, or a sharing policy denies the action."""

    def __init__(self, message: str = "You do not have permission to perform this action"):
        super().__init__(
            message,
            ErrorCode.FORBIDDEN,
            status_code=403,
        )


class RateLimitExceededError(DriveException):
    """Too many operations of one class inside the current window."""

    def __init__(self, operation: str, reset_time: datetime, retry_after: int):
        super().__init__(
            f"Rate limit exceeded for {operation}",
            ErrorCode.RATE_LIMITED,
            status_code=429,
            details={"operation": operation, "reset_time": reset_time.isoformat()},
            headers={"Retry-After": str(max(retry_after, 1))},
        )


class ConflictError(DriveException):
    """Operation conflicts with existing state (e.g. a duplicate pending request)."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message,
            ErrorCode.CONFLICT,
            status_code=409,
            details=details
        )


class DuplicateContentError(ConflictError):
    """Identical bytes already live in this drive as a non-deleted file."""

    def __init__(self, existing_file_id: str, content_hash: str):
        super().__init__(
            "This file already exists in your drive",
            details={"existing_file_id": existing_file_id, "content_hash": content_hash}
        )
        self.error_code = ErrorCode.DUPLICATE_CONTENT
        self.existing_file_id = existing_file_id


class BandwidthExceededError(DriveException):
    """Daily download bandwidth of the owning drive is used up."""

    def __init__(self, reset_time: datetime):
        super().__init__(
            "Daily bandwidth limit exceeded for this drive",
            ErrorCode.BANDWIDTH_EXCEEDED,
            status_code=429,
            details={"reset_time": reset_time.isoformat()}
        )


class UpstreamFetchError(DriveException):
    """Fetching remote content for save-from-url failed or timed out."""

    def __init__(self, url: str, reason: str):
        super().__init__(
            f"Could not fetch remote file: {reason}",
            ErrorCode.UPSTREAM_FETCH_FAILED,
            status_code=502,
            details={"url": url}
        )
