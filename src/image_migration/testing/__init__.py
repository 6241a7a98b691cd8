"""Testing utilities and fakes for the image migration pipeline."""

from .fakes import (
    FakeLogger,
    FakeRecordStore,
    FakeS3Client,
    FakeUploadClient,
    RecordingObserver,
    S3Object,
    create_test_image,
    make_records,
    setup_test_environment,
)

__all__ = [
    "FakeLogger",
    "FakeRecordStore",
    "FakeS3Client",
    "FakeUploadClient",
    "RecordingObserver",
    "S3Object",
    "create_test_image",
    "make_records",
    "setup_test_environment",
]
