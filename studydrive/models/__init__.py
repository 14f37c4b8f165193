"""Database models."""

from .drive import Drive
from .folder import Folder
from .file import DriveFile
from .copy_request import CopyRequest
from .activity import DriveActivity

__all__ = ["Drive", "Folder", "DriveFile", "CopyRequest", "DriveActivity"]
