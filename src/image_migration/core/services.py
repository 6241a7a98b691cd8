"""Service implementations for the image migration pipeline."""

import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from .error_handling import (
    BatchOperationContextManager,
    retry_upload_operation,
    with_error_handling,
)
from .exceptions import (
    FATAL_ERRORS,
    ConfigurationError,
    LocalFileMissingError,
    PersistError,
    StoreConnectionError,
    UploadError,
)
from .image_utils import (
    UPLOAD_CONTENT_TYPE,
    apply_upload_profile,
    build_remote_key,
    build_remote_url,
    create_self_test_image,
    resolve_local_path,
)
from .models import (
    BatchOutcome,
    MigrationConfig,
    MigrationSummary,
    PendingImage,
    UploadOutcome,
    UploadResult,
)
from .observability import LogContext, MetricsCollector
from .protocols import (
    LoggerProtocol,
    MigrationObserver,
    NullObserver,
    RecordStore,
    S3ClientProtocol,
    UploadClient,
)

ProcessBatchFunction = Callable[[List[PendingImage], UploadClient], List[UploadOutcome]]

CACHE_CONTROL = "public, max-age=31536000, immutable"


class S3UploadService(UploadClient):
    """Uploads local property images to an S3-compatible bucket behind a CDN."""

    def __init__(
        self,
        s3_client: S3ClientProtocol,
        config: MigrationConfig,
        logger: LoggerProtocol,
        metrics_collector: Optional[MetricsCollector] = None,
    ):
        self._s3_client = s3_client
        self._config = config
        self._logger = logger
        self._metrics_collector = metrics_collector

    def upload(self, image: PendingImage) -> UploadResult:
        """Read the image from disk and upload it."""
        path = resolve_local_path(image.local_path, self._config.image_root)
        if not path.is_file():
            raise LocalFileMissingError(str(path))
        try:
            data = path.read_bytes()
        except OSError as e:
            raise LocalFileMissingError(str(path)) from e

        return self.upload_bytes(data, image.property_id, image.image_index, image.id)

    @with_error_handling
    def upload_bytes(
        self,
        data: bytes,
        property_id: str,
        image_index: int,
        image_id: str,
        key_prefix: Optional[str] = None,
    ) -> UploadResult:
        """Apply the upload profile to an in-memory image and store it."""
        if not property_id or not image_id:
            raise ValueError("property_id and image_id are required")

        log_context = LogContext(
            correlation_id=f"img_{image_id}_{int(time.time() * 1000)}",
            operation="upload_image",
            component="s3_upload_service",
        ).with_metadata(image_id=image_id, property_id=property_id)
        start_time = time.time()

        try:
            processed, info = apply_upload_profile(
                data,
                quality=self._config.jpeg_quality,
                aspect_ratio=self._config.aspect_ratio,
            )
        except (OSError, ValueError) as e:
            self._record("upload_image", start_time, False, str(e))
            raise UploadError(f"Malformed image file: {e}") from e

        prefix = self._config.key_prefix if key_prefix is None else key_prefix
        key = build_remote_key(prefix, property_id, image_index, image_id)
        self._logger.debug(
            f"Uploading to s3://{self._config.bucket}/{key}",
            log_context.with_metadata(bytes=info["bytes"]),
        )

        try:
            self._s3_client.put_object(
                Bucket=self._config.bucket,
                Key=key,
                Body=processed,
                ContentType=UPLOAD_CONTENT_TYPE,
                CacheControl=CACHE_CONTROL,
            )
        except Exception as e:
            self._record("upload_image", start_time, False, str(e))
            raise

        metric = self._record("upload_image", start_time, True)
        result = UploadResult(
            remote_id=key,
            remote_url=build_remote_url(self._config.public_base_url, key),
            bytes=info["bytes"],
            width=info["width"],
            height=info["height"],
            format=info["format"],
            created_at=datetime.now(timezone.utc).isoformat(),
        )
        self._logger.info(
            "Uploaded image",
            log_context,
            remote_id=key,
            upload_time_ms=round(metric.duration_ms, 1) if metric else None,
        )
        return result

    def check_connection(self) -> None:
        """Verify settings and reach the bucket with a HEAD request."""
        missing = self._config.missing_settings()
        if missing:
            raise ConfigurationError(
                f"Missing required upload settings: {', '.join(missing)}"
            )
        try:
            self._head_bucket()
        except UploadError as e:
            raise ConfigurationError(f"Upload service check failed: {e}") from e
        self._logger.debug(f"Bucket {self._config.bucket} is reachable")

    @with_error_handling
    def _head_bucket(self) -> None:
        self._s3_client.head_bucket(Bucket=self._config.bucket)

    @with_error_handling
    def delete(self, remote_id: str) -> None:
        self._s3_client.delete_object(Bucket=self._config.bucket, Key=remote_id)
        self._logger.debug(f"Deleted s3://{self._config.bucket}/{remote_id}")

    def self_test(self) -> UploadResult:
        """Upload a generated test image, then delete it again."""
        test_id = f"self-test-{int(time.time() * 1000)}"
        prefix = f"{self._config.key_prefix.rstrip('/')}/self-test"
        result = self.upload_bytes(create_self_test_image(), "self-test", 0, test_id, key_prefix=prefix)
        self.delete(result.remote_id)
        self._logger.info(f"Self-test upload and cleanup succeeded: {result.remote_id}")
        return result

    def _record(self, operation: str, start_time: float, success: bool, error: Optional[str] = None):
        if self._metrics_collector is None:
            return None
        return self._metrics_collector.record(operation, start_time, success, error)


class RetryingUploadService(UploadClient):
    """Upload client that retries transient failures of another client."""

    def __init__(
        self,
        client: UploadClient,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._client = client
        self._upload = retry_upload_operation(
            max_attempts=max_attempts, base_delay=base_delay, sleep=sleep
        )(client.upload)

    def upload(self, image: PendingImage) -> UploadResult:
        return self._upload(image)

    def check_connection(self) -> None:
        self._client.check_connection()

    def delete(self, remote_id: str) -> None:
        self._client.delete(remote_id)


class BatchScheduler:
    """Uploads pending images group by group with a pause between groups."""

    def __init__(
        self,
        uploader: UploadClient,
        process_batch_fn: ProcessBatchFunction,
        logger: LoggerProtocol,
        batch_size: int = 3,
        batch_delay: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
        processor_name: str = "processor",
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self._uploader = uploader
        self._process_batch_fn = process_batch_fn
        self._logger = logger
        self._batch_size = batch_size
        self._batch_delay = batch_delay
        self._sleep = sleep
        self._processor_name = processor_name

    def run(
        self,
        items: List[PendingImage],
        observer: Optional[MigrationObserver] = None,
    ) -> BatchOutcome:
        """Upload every item; each one ends up in either uploaded or errors."""
        observer = observer or NullObserver()
        outcome = BatchOutcome(total_items=len(items))
        total_batches = (len(items) + self._batch_size - 1) // self._batch_size

        with BatchOperationContextManager(
            operation_name=f"Image upload via {self._processor_name}"
        ) as batch_manager:
            for start in range(0, len(items), self._batch_size):
                batch = items[start : start + self._batch_size]
                batch_number = start // self._batch_size + 1
                observer.on_batch_started(batch_number, total_batches, len(batch))
                self._logger.info(
                    f"Processing batch {batch_number}/{total_batches} with {len(batch)} images"
                )

                for result in self._settle(batch):
                    outcome.record(result)
                    if result.success and result.result is not None:
                        observer.on_item_uploaded(result.image_id, result.result.remote_url)
                    else:
                        batch_manager.add_error(
                            item_identifier=result.image_id,
                            error_message=result.error or "Unknown error",
                        )
                        observer.on_item_failed(result.image_id, result.error or "Unknown error")

                if start + self._batch_size < len(items) and self._batch_delay > 0:
                    self._logger.debug(f"Waiting {self._batch_delay:.2f}s before next batch")
                    self._sleep(self._batch_delay)

        self._logger.info(
            f"Upload finished: {outcome.successful}/{outcome.total_items} successful"
        )
        return outcome

    def _settle(self, batch: List[PendingImage]) -> List[UploadOutcome]:
        """Run one group and return exactly one outcome per input image."""
        results = self._process_batch_fn(batch, self._uploader)

        by_id: Dict[str, UploadOutcome] = {}
        for result in results:
            by_id.setdefault(result.image_id, result)

        settled = []
        for item in batch:
            result = by_id.get(item.id)
            if result is None:
                result = UploadOutcome(image_id=item.id, error="No upload result returned")
            settled.append(result)
        return settled


class MigrationOrchestrator:
    """Runs discover, validate, upload, persist and report for one migration."""

    def __init__(
        self,
        store: RecordStore,
        uploader: UploadClient,
        scheduler: BatchScheduler,
        logger: LoggerProtocol,
        observer: Optional[MigrationObserver] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._store = store
        self._uploader = uploader
        self._scheduler = scheduler
        self._logger = logger
        self._observer = observer or NullObserver()
        self._clock = clock

    def run(self, force: bool = False, remote: bool = False) -> MigrationSummary:
        """Migrate every pending image and summarize the run."""
        start_time = self._clock()
        summary = MigrationSummary(remote=remote, force=force)

        try:
            self._connect(remote, summary)

            pending = self._store.fetch_pending(include_migrated=force)
            summary.total_images = len(pending)
            self._observer.on_discovered(len(pending), force)
            self._logger.info(f"Found {len(pending)} images to migrate")

            if not pending:
                self._logger.info("No images to migrate")
                return self._finish(summary, start_time)

            self._uploader.check_connection()

            outcome = self._scheduler.run(pending, self._observer)
            self._observer.on_upload_finished(outcome)
            summary.uploaded_images = outcome.successful
            summary.failed_images = outcome.failed
            for item_error in outcome.errors:
                summary.errors.append(
                    f"Failed to migrate image {item_error.image_id}: {item_error.error}"
                )

            self._persist(outcome, summary)

        except FATAL_ERRORS as e:
            summary.success = False
            summary.errors.append(f"Migration failed: {e}")
            self._logger.error(f"Migration aborted: {type(e).__name__}: {e}")

        return self._finish(summary, start_time)

    def _connect(self, remote: bool, summary: MigrationSummary) -> None:
        diagnostics = self._store.diagnostics()
        if not diagnostics.is_connected:
            raise StoreConnectionError(
                f"Record store unreachable: {diagnostics.error or 'unknown error'}"
            )
        if remote and not diagnostics.is_remote:
            summary.warnings.append("Expected remote connection but got local database")
        self._logger.info(
            f"Connected to {diagnostics.database_type} record store "
            f"({diagnostics.response_time_ms:.0f}ms)"
        )

    def _persist(self, outcome: BatchOutcome, summary: MigrationSummary) -> None:
        for uploaded in outcome.uploaded:
            try:
                self._store.mark_migrated(
                    uploaded.image_id,
                    remote_url=uploaded.remote_url,
                    remote_id=uploaded.remote_id,
                    metadata=uploaded.metadata,
                )
            except PersistError as e:
                summary.failed_images += 1
                summary.errors.append(f"Failed to migrate image {uploaded.image_id}: {e}")
                summary.warnings.append(
                    f"Remote object {uploaded.remote_id} is orphaned (image {uploaded.image_id})"
                )
                self._logger.warning(f"Persist failed for image {uploaded.image_id}: {e}")
                continue
            summary.migrated_images += 1

    def _finish(self, summary: MigrationSummary, start_time: float) -> MigrationSummary:
        summary.elapsed_seconds = max(0.0, self._clock() - start_time)
        self._observer.on_finished(summary)
        return summary


def summarize_metrics(metrics_collector: Optional[MetricsCollector]) -> Dict[str, Any]:
    """Upload timing statistics, empty when no collector is in use."""
    if metrics_collector is None:
        return {}
    return metrics_collector.get_summary("upload_image")
