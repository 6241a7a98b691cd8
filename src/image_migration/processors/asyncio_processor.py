"""AsyncIO processor implementation - awaits a group of uploads together."""

import asyncio
from typing import List, Optional

from ..core import PendingImage, UploadOutcome, get_logger
from ..core.protocols import UploadClient
from .common import upload_single_image


async def process_batch_async(
    batch: List[PendingImage],
    uploader: UploadClient,
    max_concurrency: Optional[int] = None,
) -> List[UploadOutcome]:
    """Run the blocking uploads of a group in worker threads and gather them."""
    logger = get_logger("asyncio-processor")
    semaphore = asyncio.Semaphore(max_concurrency or max(1, len(batch)))

    async def _upload(item: PendingImage) -> UploadOutcome:
        async with semaphore:
            return await asyncio.to_thread(upload_single_image, uploader, item)

    results = await asyncio.gather(*(_upload(item) for item in batch), return_exceptions=True)

    outcomes: List[UploadOutcome] = []
    for item, result in zip(batch, results):
        if isinstance(result, BaseException):
            logger.error(f"[{item.id}] Upload task crashed: {result}")
            outcomes.append(UploadOutcome(image_id=item.id, success=False, error=str(result)))
        else:
            outcomes.append(result)
    return outcomes


def process_batch(batch: List[PendingImage], uploader: UploadClient) -> List[UploadOutcome]:
    """
    Upload a group of images using asyncio.

    This is the synchronous wrapper that runs the async function.
    """
    if not batch:
        return []
    return asyncio.run(process_batch_async(batch, uploader))
