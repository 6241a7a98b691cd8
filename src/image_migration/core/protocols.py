"""Protocol definitions for dependency injection and testability."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Protocol

from .models import (
    BatchOutcome,
    ConnectionDiagnostics,
    ImageRecord,
    MigrationSummary,
    PendingImage,
    UploadResult,
)


class S3ClientProtocol(Protocol):
    """Protocol for the S3 operations the uploader needs."""

    def put_object(
        self, Bucket: str, Key: str, Body: bytes, ContentType: str, **kwargs: Any
    ) -> Dict[str, Any]:
        """Put object to S3."""
        ...

    def head_bucket(self, Bucket: str) -> Dict[str, Any]:
        """Check that the bucket exists and is reachable."""
        ...

    def delete_object(self, Bucket: str, Key: str) -> Dict[str, Any]:
        """Delete object from S3."""
        ...


class LoggerProtocol(Protocol):
    """Protocol for logging operations."""

    def debug(self, message: str, *args: Any, **kwargs: Any) -> None:
        ...

    def info(self, message: str, *args: Any, **kwargs: Any) -> None:
        ...

    def warning(self, message: str, *args: Any, **kwargs: Any) -> None:
        ...

    def error(self, message: str, *args: Any, **kwargs: Any) -> None:
        ...


class UploadClient(ABC):
    """Uploads one local image to the remote store."""

    @abstractmethod
    def upload(self, image: PendingImage) -> UploadResult:
        """Upload an image and return its remote reference."""
        ...

    @abstractmethod
    def check_connection(self) -> None:
        """Raise ConfigurationError if the remote store is unusable."""
        ...

    @abstractmethod
    def delete(self, remote_id: str) -> None:
        """Delete a remote object. Only used by configuration self-tests."""
        ...


class RecordStore(ABC):
    """Persistence boundary holding the image records."""

    @abstractmethod
    def diagnostics(self) -> ConnectionDiagnostics:
        """Check that the store is reachable."""
        ...

    @abstractmethod
    def fetch_pending(self, include_migrated: bool = False) -> List[PendingImage]:
        """Images that still need uploading (all images when forced)."""
        ...

    @abstractmethod
    def mark_migrated(
        self,
        image_id: str,
        remote_url: str,
        remote_id: str,
        metadata: Dict[str, Any],
    ) -> None:
        """Record the remote reference and flip the migrated flag."""
        ...

    @abstractmethod
    def get(self, image_id: str) -> Optional[ImageRecord]:
        ...


class MigrationObserver(Protocol):
    """Receives progress events from the orchestrator."""

    def on_discovered(self, count: int, force: bool) -> None:
        ...

    def on_batch_started(self, batch_number: int, total_batches: int, size: int) -> None:
        ...

    def on_item_uploaded(self, image_id: str, remote_url: str) -> None:
        ...

    def on_item_failed(self, image_id: str, error: str) -> None:
        ...

    def on_upload_finished(self, outcome: BatchOutcome) -> None:
        ...

    def on_finished(self, summary: MigrationSummary) -> None:
        ...


class NullObserver:
    """Observer that ignores every event."""

    def on_discovered(self, count: int, force: bool) -> None:
        pass

    def on_batch_started(self, batch_number: int, total_batches: int, size: int) -> None:
        pass

    def on_item_uploaded(self, image_id: str, remote_url: str) -> None:
        pass

    def on_item_failed(self, image_id: str, error: str) -> None:
        pass

    def on_upload_finished(self, outcome: BatchOutcome) -> None:
        pass

    def on_finished(self, summary: MigrationSummary) -> None:
        pass
