"""Custom exceptions for the image migration pipeline."""

from __future__ import annotations

from typing import Optional


class ImageMigrationError(Exception):
    """Base exception for all image migration errors."""


class ConfigurationError(ImageMigrationError):
    """Upload service credentials or settings are missing or invalid."""


class StoreConnectionError(ImageMigrationError):
    """The migration record store could not be reached."""


class LocalFileMissingError(ImageMigrationError):
    """A record references a local image that does not exist."""

    def __init__(self, path: str):
        super().__init__(f"Local file not found: {path}")
        self.path = path


class UploadError(ImageMigrationError):
    """The remote upload service rejected or failed the request."""


class UploadAuthenticationError(UploadError):
    """Upload failed because of bad credentials or missing permissions."""


class UploadExhaustedError(ImageMigrationError):
    """An upload kept failing until the retry budget ran out."""

    def __init__(self, last_error: Exception, attempts: int):
        super().__init__(
            f"Upload failed after {attempts} attempt(s): {last_error}"
        )
        self.last_error = last_error
        self.attempts = attempts


class PersistError(ImageMigrationError):
    """Recording a successful upload on the image record failed."""

    def __init__(self, image_id: str, reason: str, remote_id: Optional[str] = None):
        super().__init__(f"Could not update image {image_id}: {reason}")
        self.image_id = image_id
        self.remote_id = remote_id


FATAL_ERRORS = (ConfigurationError, StoreConnectionError)
