"""Core models, errors and services for the image migration pipeline."""

from .logging_config import get_logger, set_debug, setup_logger
from .exceptions import (
    ConfigurationError,
    ImageMigrationError,
    LocalFileMissingError,
    PersistError,
    StoreConnectionError,
    UploadAuthenticationError,
    UploadError,
    UploadExhaustedError,
)
from .models import (
    BatchOutcome,
    ConnectionDiagnostics,
    ImageRecord,
    ItemError,
    MigrationConfig,
    MigrationSummary,
    PendingImage,
    UploadedImage,
    UploadOutcome,
    UploadResult,
)

__all__ = [
    "setup_logger",
    "get_logger",
    "set_debug",
    "ImageMigrationError",
    "ConfigurationError",
    "StoreConnectionError",
    "LocalFileMissingError",
    "UploadError",
    "UploadAuthenticationError",
    "UploadExhaustedError",
    "PersistError",
    "MigrationConfig",
    "ImageRecord",
    "PendingImage",
    "UploadResult",
    "UploadOutcome",
    "UploadedImage",
    "ItemError",
    "BatchOutcome",
    "ConnectionDiagnostics",
    "MigrationSummary",
]
