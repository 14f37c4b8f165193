"""StudyDrive: per-user file storage with quotas, trash, and copy requests."""

__version__ = "1.0.0"
