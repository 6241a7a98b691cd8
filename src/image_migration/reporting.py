"""Run narration and the human-readable migration report."""

from typing import Any, Dict, List, Optional

from .core.models import BatchOutcome, MigrationConfig, MigrationSummary
from .core.protocols import LoggerProtocol

RULE = "=" * 80


class LoggingObserver:
    """Narrates a migration run through a logger."""

    def __init__(self, logger: LoggerProtocol):
        self._logger = logger

    def on_discovered(self, count: int, force: bool) -> None:
        scope = "images (force mode, including migrated ones)" if force else "pending images"
        self._logger.info(f"Discovered {count} {scope}")

    def on_batch_started(self, batch_number: int, total_batches: int, size: int) -> None:
        self._logger.info(f"Batch {batch_number}/{total_batches}: uploading {size} images")

    def on_item_uploaded(self, image_id: str, remote_url: str) -> None:
        self._logger.info(f"[{image_id}] Uploaded: {remote_url}")

    def on_item_failed(self, image_id: str, error: str) -> None:
        self._logger.warning(f"[{image_id}] Upload failed: {error}")

    def on_upload_finished(self, outcome: BatchOutcome) -> None:
        self._logger.info(
            f"Uploads finished: {outcome.successful} succeeded, {outcome.failed} failed"
        )

    def on_finished(self, summary: MigrationSummary) -> None:
        if summary.success:
            self._logger.info(f"Migration finished in {summary.elapsed_seconds:.2f}s")
        else:
            self._logger.error(f"Migration failed after {summary.elapsed_seconds:.2f}s")


def format_configuration(config: MigrationConfig) -> str:
    """Describe where images go and how they are scheduled."""
    lines = [
        RULE,
        "PROPERTY IMAGE MIGRATION",
        RULE,
        "CONFIGURATION:",
        f"  Destination:   s3://{config.bucket}/{config.key_prefix}",
        f"  Public URL:    {config.public_base_url or '(not set)'}",
        f"  Image root:    {config.image_root}",
        f"  Record store:  {'remote' if config.remote else 'local'}",
        "",
        "PROCESSING OPTIONS:",
        f"  Processor:     {config.processor}",
        f"  Batch size:    {config.batch_size} (delay {config.batch_delay:.1f}s)",
        f"  Retries:       {config.max_retries} (base delay {config.retry_base_delay:.1f}s)",
        f"  Force:         {'yes' if config.force else 'no'}",
        RULE,
    ]
    return "\n".join(lines)


def _numbered(title: str, items: List[str]) -> List[str]:
    if not items:
        return []
    return ["", f"{title}:"] + [f"  {i}. {item}" for i, item in enumerate(items, start=1)]


def format_summary(
    summary: MigrationSummary, upload_stats: Optional[Dict[str, Any]] = None
) -> str:
    """Render a migration summary for the terminal."""
    status = "MIGRATION COMPLETED" if summary.success else "MIGRATION FAILED"
    if summary.success and summary.errors:
        status = "MIGRATION COMPLETED WITH ERRORS"

    lines = [
        RULE,
        status,
        RULE,
        f"Total images:     {summary.total_images}",
        f"Uploaded:         {summary.uploaded_images}",
        f"Migrated:         {summary.migrated_images}",
        f"Failed:           {summary.failed_images}",
        f"Execution time:   {summary.elapsed_seconds:.2f}s",
    ]
    if summary.total_images == 0 and summary.success:
        lines.append("No images to migrate - everything is already on the CDN.")
    if upload_stats:
        lines.append(
            f"Upload time:      avg {upload_stats['avg_duration'] * 1000:.0f}ms, "
            f"max {upload_stats['max_duration'] * 1000:.0f}ms"
        )

    lines.extend(_numbered("Errors", summary.errors))
    lines.extend(_numbered("Warnings", summary.warnings))
    lines.append(RULE)
    return "\n".join(lines)
