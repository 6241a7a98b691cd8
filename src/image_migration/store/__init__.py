"""Record store implementations."""

from .sql_store import SqlImageRecordStore, properties_images

__all__ = ["SqlImageRecordStore", "properties_images"]
