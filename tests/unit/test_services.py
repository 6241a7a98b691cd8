"""Unit tests for service implementations."""

from unittest.mock import Mock, call

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from image_migration.core.exceptions import (
    ConfigurationError,
    LocalFileMissingError,
    StoreConnectionError,
    UploadAuthenticationError,
    UploadError,
    UploadExhaustedError,
)
from image_migration.core.models import MigrationConfig, PendingImage, UploadOutcome
from image_migration.core.observability import MetricsCollector
from image_migration.core.protocols import UploadClient
from image_migration.core.services import (
    CACHE_CONTROL,
    BatchScheduler,
    MigrationOrchestrator,
    RetryingUploadService,
    S3UploadService,
    summarize_metrics,
)
from image_migration.processors import serial_process_batch
from image_migration.testing.fakes import (
    FakeLogger,
    FakeRecordStore,
    FakeS3Client,
    FakeUploadClient,
    RecordingObserver,
    create_test_image,
    make_records,
)


def _config(tmp_path, **overrides):
    values = dict(
        bucket="test-bucket",
        public_base_url="https://cdn.example.com",
        image_root=str(tmp_path),
    )
    values.update(overrides)
    return MigrationConfig(**values)


def _pending(count, property_id="1"):
    return [record.to_pending() for record in make_records(count, property_id=property_id)]


def _write_image(tmp_path, local_path, width=160, height=120):
    path = tmp_path / local_path.lstrip("/")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(create_test_image(width, height))
    return path


class TestS3UploadService:
    """Tests for S3UploadService."""

    def test_upload_success(self, tmp_path):
        fake_s3 = FakeS3Client()
        metrics = MetricsCollector()
        service = S3UploadService(fake_s3, _config(tmp_path), FakeLogger(), metrics)
        image = PendingImage(
            id="img-1", property_id="42", local_path="/images/a.jpg", image_index=2
        )
        _write_image(tmp_path, image.local_path)

        result = service.upload(image)

        assert result.remote_id == "inmobiliaria/properties/property_42_2_img-1.jpg"
        assert result.remote_url == (
            "https://cdn.example.com/inmobiliaria/properties/property_42_2_img-1.jpg"
        )
        assert (result.width, result.height) == (160, 90)
        assert result.format == "jpg"
        assert result.created_at

        stored = fake_s3.bucket_objects()[result.remote_id]
        assert stored.content_type == "image/jpeg"
        assert stored.cache_control == CACHE_CONTROL
        assert stored.size == result.bytes
        assert metrics.get_summary("upload_image")["successful_operations"] == 1

    def test_upload_missing_file(self, tmp_path):
        fake_s3 = FakeS3Client()
        service = S3UploadService(fake_s3, _config(tmp_path), FakeLogger())
        image = PendingImage(id="img-1", property_id="1", local_path="/images/missing.jpg")

        with pytest.raises(LocalFileMissingError, match="Local file not found"):
            service.upload(image)
        assert fake_s3.put_count == 0

    def test_upload_malformed_image(self, tmp_path):
        fake_s3 = FakeS3Client()
        service = S3UploadService(fake_s3, _config(tmp_path), FakeLogger())
        path = tmp_path / "images" / "broken.jpg"
        path.parent.mkdir(parents=True)
        path.write_bytes(b"not an image")
        image = PendingImage(id="img-1", property_id="1", local_path="/images/broken.jpg")

        with pytest.raises(UploadError, match="Malformed image file"):
            service.upload(image)

    def test_upload_maps_storage_errors(self, tmp_path):
        fake_s3 = FakeS3Client()
        fake_s3.queue_failures(
            ClientError({"Error": {"Code": "SlowDown", "Message": "slow"}}, "PutObject"),
            ClientError({"Error": {"Code": "AccessDenied", "Message": "denied"}}, "PutObject"),
            EndpointConnectionError(endpoint_url="https://s3.example.com"),
        )
        metrics = MetricsCollector()
        service = S3UploadService(fake_s3, _config(tmp_path), FakeLogger(), metrics)
        image = PendingImage(id="img-1", property_id="1", local_path="/images/a.jpg")
        _write_image(tmp_path, image.local_path)

        with pytest.raises(UploadError, match="SlowDown"):
            service.upload(image)
        with pytest.raises(UploadAuthenticationError):
            service.upload(image)
        with pytest.raises(UploadError, match="Network error"):
            service.upload(image)

        assert metrics.get_summary("upload_image")["failed_operations"] == 3

    def test_check_connection_missing_settings(self, tmp_path):
        service = S3UploadService(FakeS3Client(), _config(tmp_path, bucket=""), FakeLogger())

        with pytest.raises(ConfigurationError, match="IMAGE_BUCKET"):
            service.check_connection()

    def test_check_connection_rejected_credentials(self, tmp_path):
        fake_s3 = FakeS3Client()
        fake_s3.head_error = ClientError(
            {"Error": {"Code": "InvalidAccessKeyId", "Message": "bad key"}}, "HeadBucket"
        )
        service = S3UploadService(fake_s3, _config(tmp_path), FakeLogger())

        with pytest.raises(ConfigurationError, match="InvalidAccessKeyId"):
            service.check_connection()

    def test_check_connection_ok(self, tmp_path):
        service = S3UploadService(FakeS3Client(), _config(tmp_path), FakeLogger())
        service.check_connection()

    def test_self_test_uploads_and_deletes_test_image(self, tmp_path):
        fake_s3 = FakeS3Client()
        service = S3UploadService(fake_s3, _config(tmp_path), FakeLogger())

        result = service.self_test()

        assert result.remote_id.startswith("inmobiliaria/properties/self-test/")
        assert fake_s3.deleted == [result.remote_id]
        assert fake_s3.bucket_objects() == {}


class TestRetryingUploadService:
    """Tests for RetryingUploadService."""

    def test_retries_transient_failures(self):
        client = FakeUploadClient(failures={"img-1": [UploadError("t1"), UploadError("t2")]})
        sleep = Mock()
        uploader = RetryingUploadService(client, max_attempts=3, base_delay=1.0, sleep=sleep)

        result = uploader.upload(_pending(1)[0])

        assert result.remote_url.endswith("property_1_1_img-1.jpg")
        assert client.calls["img-1"] == 3
        assert sleep.call_args_list == [call(1.0), call(2.0)]

    def test_gives_up_after_max_attempts(self):
        client = FakeUploadClient(failures={"img-1": [UploadError("t")] * 5})
        uploader = RetryingUploadService(client, max_attempts=3, sleep=Mock())

        with pytest.raises(UploadExhaustedError):
            uploader.upload(_pending(1)[0])
        assert client.calls["img-1"] == 3

    def test_missing_file_is_not_retried(self):
        client = FakeUploadClient(failures={"img-1": [LocalFileMissingError("/a.jpg")]})
        sleep = Mock()
        uploader = RetryingUploadService(client, max_attempts=3, sleep=sleep)

        with pytest.raises(LocalFileMissingError):
            uploader.upload(_pending(1)[0])
        assert client.calls["img-1"] == 1
        sleep.assert_not_called()

    def test_delegates_connection_check_and_delete(self):
        client = FakeUploadClient()
        client.connection_error = ConfigurationError("no bucket")
        uploader = RetryingUploadService(client)

        with pytest.raises(ConfigurationError):
            uploader.check_connection()
        uploader.delete("p/a.jpg")
        assert client.deleted == ["p/a.jpg"]

    def test_upload_clients_must_implement_delete(self):
        class NoDeleteClient(UploadClient):
            def upload(self, image):
                raise UploadError("unused")

            def check_connection(self):
                pass

        with pytest.raises(TypeError, match="delete"):
            NoDeleteClient()


class TestBatchScheduler:
    """Tests for BatchScheduler."""

    def test_groups_and_pauses_between_groups(self):
        client = FakeUploadClient()
        sleep = Mock()
        observer = RecordingObserver()
        scheduler = BatchScheduler(
            client, serial_process_batch, FakeLogger(), batch_size=3, batch_delay=1.0, sleep=sleep
        )

        outcome = scheduler.run(_pending(7), observer)

        assert outcome.total_items == 7
        assert outcome.successful == 7
        assert outcome.is_complete
        assert sleep.call_args_list == [call(1.0), call(1.0)]
        batches = [payload for name, payload in observer.events if name == "batch_started"]
        assert batches == [(1, 3, 3), (2, 3, 3), (3, 3, 1)]

    def test_single_group_never_sleeps(self):
        sleep = Mock()
        scheduler = BatchScheduler(
            FakeUploadClient(), serial_process_batch, FakeLogger(), batch_size=3, sleep=sleep
        )

        scheduler.run(_pending(3))

        sleep.assert_not_called()

    def test_failures_are_recorded_per_item(self):
        client = FakeUploadClient(failures={"img-2": [LocalFileMissingError("/b.jpg")]})
        observer = RecordingObserver()
        scheduler = BatchScheduler(client, serial_process_batch, FakeLogger(), sleep=Mock())

        outcome = scheduler.run(_pending(3), observer)

        assert outcome.successful == 2
        assert outcome.failed == 1
        assert outcome.errors[0].image_id == "img-2"
        assert "Local file not found" in outcome.errors[0].error
        assert ("item_failed", ("img-2", outcome.errors[0].error)) in observer.events

    def test_missing_results_become_failures(self):
        def drop_last(batch, uploader):
            return [
                UploadOutcome(image_id=item.id, success=True, result=uploader.upload(item))
                for item in batch[:-1]
            ]

        scheduler = BatchScheduler(FakeUploadClient(), drop_last, FakeLogger(), sleep=Mock())

        outcome = scheduler.run(_pending(3))

        assert outcome.is_complete
        assert outcome.failed == 1
        assert outcome.errors[0].error == "No upload result returned"

    def test_empty_run(self):
        sleep = Mock()
        scheduler = BatchScheduler(FakeUploadClient(), serial_process_batch, FakeLogger(), sleep=sleep)

        outcome = scheduler.run([])

        assert outcome.total_items == 0
        assert outcome.is_complete
        sleep.assert_not_called()

    def test_rejects_invalid_batch_size(self):
        with pytest.raises(ValueError):
            BatchScheduler(FakeUploadClient(), serial_process_batch, FakeLogger(), batch_size=0)


def _orchestrator(store, client, observer=None):
    logger = FakeLogger()
    scheduler = BatchScheduler(client, serial_process_batch, logger, sleep=Mock())
    return MigrationOrchestrator(store, client, scheduler, logger, observer=observer)


class TestMigrationOrchestrator:
    """Tests for MigrationOrchestrator."""

    def test_migrates_pending_images(self):
        store = FakeRecordStore(make_records(4, migrated=["img-4"]))
        client = FakeUploadClient()
        observer = RecordingObserver()

        summary = _orchestrator(store, client, observer).run()

        assert summary.success
        assert summary.total_images == 3
        assert summary.uploaded_images == 3
        assert summary.migrated_images == 3
        assert summary.failed_images == 0
        assert "img-4" not in client.calls
        assert store.update_count == 3
        record = store.get("img-1")
        assert record.migrated
        assert record.remote_url == client.uploaded["img-1"].remote_url
        assert record.remote_metadata["format"] == "jpg"
        assert observer.names()[0] == "discovered"
        assert observer.names()[-1] == "finished"

    def test_force_includes_migrated_images(self):
        store = FakeRecordStore(make_records(2, migrated=["img-1", "img-2"]))
        client = FakeUploadClient()

        summary = _orchestrator(store, client).run(force=True)

        assert summary.total_images == 2
        assert summary.migrated_images == 2
        assert summary.force

    def test_nothing_pending_skips_upload_check(self):
        store = FakeRecordStore(make_records(1, migrated=["img-1"]))
        client = FakeUploadClient()
        client.connection_error = ConfigurationError("should not be checked")

        summary = _orchestrator(store, client).run()

        assert summary.success
        assert summary.total_images == 0
        assert client.call_count == 0

    def test_unreachable_store_fails_the_run(self):
        store = FakeRecordStore(make_records(2), connected=False)
        client = FakeUploadClient()

        summary = _orchestrator(store, client).run()

        assert not summary.success
        assert summary.errors[0].startswith("Migration failed:")
        assert client.call_count == 0

    def test_store_read_failure_fails_the_run(self):
        store = FakeRecordStore(make_records(2))
        store.fetch_error = StoreConnectionError("table is missing")

        summary = _orchestrator(store, FakeUploadClient()).run()

        assert not summary.success
        assert "table is missing" in summary.errors[0]

    def test_upload_configuration_error_fails_the_run(self):
        store = FakeRecordStore(make_records(2))
        client = FakeUploadClient()
        client.connection_error = ConfigurationError("Missing required upload settings: IMAGE_BUCKET")

        summary = _orchestrator(store, client).run()

        assert not summary.success
        assert summary.total_images == 2
        assert summary.migrated_images == 0
        assert "IMAGE_BUCKET" in summary.errors[0]
        assert client.call_count == 0
        assert store.update_count == 0

    def test_item_failures_keep_success(self):
        store = FakeRecordStore(make_records(3))
        client = FakeUploadClient(failures={"img-3": [UploadError("boom")]})

        summary = _orchestrator(store, client).run()

        assert summary.success
        assert summary.migrated_images == 2
        assert summary.failed_images == 1
        assert summary.errors == ["Failed to migrate image img-3: boom"]
        assert not store.get("img-3").migrated

    def test_persist_failure_reports_orphan(self):
        store = FakeRecordStore(make_records(2), failing_updates=["img-2"])
        client = FakeUploadClient()

        summary = _orchestrator(store, client).run()

        assert summary.uploaded_images == 2
        assert summary.migrated_images == 1
        assert summary.failed_images == 1
        assert "img-2" in summary.errors[0]
        remote_id = client.uploaded["img-2"].remote_id
        assert summary.warnings == [f"Remote object {remote_id} is orphaned (image img-2)"]
        assert not store.get("img-2").migrated

    def test_remote_requested_but_local_store_warns(self):
        store = FakeRecordStore(make_records(1), is_remote=False)

        summary = _orchestrator(store, FakeUploadClient()).run(remote=True)

        assert summary.success
        assert summary.remote
        assert "Expected remote connection but got local database" in summary.warnings

    def test_elapsed_time_uses_clock(self):
        store = FakeRecordStore()
        client = FakeUploadClient()
        logger = FakeLogger()
        scheduler = BatchScheduler(client, serial_process_batch, logger, sleep=Mock())
        clock = Mock(side_effect=[10.0, 12.5])

        summary = MigrationOrchestrator(store, client, scheduler, logger, clock=clock).run()

        assert summary.elapsed_seconds == 2.5


def test_summarize_metrics():
    assert summarize_metrics(None) == {}
    assert summarize_metrics(MetricsCollector()) == {}
