"""Common functions shared across all processor implementations."""

import time

from ..core import ImageMigrationError, PendingImage, UploadOutcome, get_logger
from ..core.protocols import UploadClient


def upload_single_image(uploader: UploadClient, item: PendingImage) -> UploadOutcome:
    """Upload one image and capture any failure in the returned outcome."""
    logger = get_logger("processor")
    start_time = time.time()

    try:
        result = uploader.upload(item)
        logger.debug(f"[{item.id}] Uploaded to {result.remote_url}")
        return UploadOutcome(
            image_id=item.id,
            success=True,
            result=result,
            upload_time=time.time() - start_time,
        )
    except ImageMigrationError as e:
        logger.error(f"[{item.id}] Failed due to {type(e).__name__}: {e}")
        error = str(e)
    except Exception as e:  # noqa: BLE001
        logger.error(f"[{item.id}] Unexpected error during upload: {e}", exc_info=True)
        error = f"{type(e).__name__}: {e}"

    return UploadOutcome(
        image_id=item.id,
        success=False,
        error=error,
        upload_time=time.time() - start_time,
    )
