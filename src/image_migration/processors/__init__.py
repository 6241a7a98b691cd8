"""Group upload strategies used by the batch scheduler."""

from typing import Dict, Tuple

from .serial import process_batch as serial_process_batch
from .multithread import process_batch as multithread_process_batch
from .asyncio_processor import process_batch as asyncio_process_batch

PROCESSORS: Dict[str, Tuple[str, object]] = {
    "serial": ("Serial", serial_process_batch),
    "multithread": ("Multithreaded", multithread_process_batch),
    "asyncio": ("AsyncIO", asyncio_process_batch),
}


def get_processor(name: str):
    """Return ``(display name, process_batch function)`` for a strategy."""
    try:
        return PROCESSORS[name]
    except KeyError:
        raise ValueError(
            f"Unknown processor: {name}. Choose from {', '.join(sorted(PROCESSORS))}"
        ) from None


__all__ = [
    "PROCESSORS",
    "get_processor",
    "serial_process_batch",
    "multithread_process_batch",
    "asyncio_process_batch",
]
