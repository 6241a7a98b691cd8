"""Serial processor implementation - uploads images one by one."""

from typing import List

from ..core import PendingImage, UploadOutcome
from ..core.protocols import UploadClient
from .common import upload_single_image


def process_batch(batch: List[PendingImage], uploader: UploadClient) -> List[UploadOutcome]:
    """
    Uploads a group of images serially, one by one, in the current thread.

    Args:
        batch: The pending images of one group.
        uploader: Upload client (usually the retrying one).

    Returns:
        A list of `UploadOutcome` objects, one for each image.
    """
    results = []

    for item in batch:
        results.append(upload_single_image(uploader, item))

    return results
