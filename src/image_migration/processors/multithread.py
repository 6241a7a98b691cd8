"""Multithreaded processor implementation - uploads a group on a thread pool."""

from typing import List, Optional
from concurrent.futures import ThreadPoolExecutor, as_completed

from ..core import PendingImage, UploadOutcome
from ..core.protocols import UploadClient
from .common import upload_single_image


def process_batch(
    batch: List[PendingImage],
    uploader: UploadClient,
    max_workers: Optional[int] = None,
) -> List[UploadOutcome]:
    """
    Upload a group of images concurrently and wait for all of them.

    Args:
        batch: The pending images of one group
        uploader: Upload client shared by the workers (boto3 clients are thread-safe)
        max_workers: Thread cap, defaults to the group size

    Returns:
        List of upload outcomes in completion order
    """
    if not batch:
        return []

    results: List[UploadOutcome] = []
    workers = min(max_workers or len(batch), len(batch))

    with ThreadPoolExecutor(max_workers=workers) as executor:
        future_to_item = {
            executor.submit(upload_single_image, uploader, item): item
            for item in batch
        }

        for future in as_completed(future_to_item):
            try:
                results.append(future.result())
            except Exception as e:
                item = future_to_item[future]
                results.append(
                    UploadOutcome(image_id=item.id, success=False, error=str(e))
                )

    return results
