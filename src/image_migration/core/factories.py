"""Factory classes for creating configured service instances."""

import logging
import time
from typing import Any, Callable, Optional

import boto3
from botocore.config import Config

from ..processors import get_processor
from ..store import SqlImageRecordStore
from .logging_config import get_logger
from .models import MigrationConfig
from .observability import LogContext, MetricsCollector, format_with_context
from .protocols import LoggerProtocol, MigrationObserver, RecordStore, S3ClientProtocol
from .services import (
    BatchScheduler,
    MigrationOrchestrator,
    RetryingUploadService,
    S3UploadService,
)


class LoggerAdapter:
    """Adapter to make standard logger compatible with LoggerProtocol."""

    def __init__(self, logger: logging.Logger):
        self._logger = logger

    def debug(self, message: str, context: Optional[LogContext] = None, **kwargs: Any) -> None:
        if self._logger.isEnabledFor(logging.DEBUG):
            self._logger.debug(format_with_context(message, context, **kwargs))

    def info(self, message: str, context: Optional[LogContext] = None, **kwargs: Any) -> None:
        self._logger.info(format_with_context(message, context, **kwargs))

    def warning(self, message: str, context: Optional[LogContext] = None, **kwargs: Any) -> None:
        self._logger.warning(format_with_context(message, context, **kwargs))

    def error(self, message: str, context: Optional[LogContext] = None, **kwargs: Any) -> None:
        self._logger.error(format_with_context(message, context, **kwargs))


class LoggerFactory:
    """Factory for creating logger instances."""

    @staticmethod
    def create_logger(name: str = "pipeline") -> LoggerProtocol:
        return LoggerAdapter(get_logger(name))


class S3ClientFactory:
    """Factory for creating S3 client instances."""

    @staticmethod
    def create_s3_client(config: MigrationConfig, **kwargs: Any) -> S3ClientProtocol:
        """Create an S3 client with timeouts and without botocore's own retries."""
        client_config = Config(
            connect_timeout=config.upload_timeout,
            read_timeout=config.upload_timeout,
            retries={"total_max_attempts": 1},
        )
        session = boto3.Session(
            aws_access_key_id=config.access_key_id,
            aws_secret_access_key=config.secret_access_key,
            region_name=config.region,
        )
        return session.client(  # type: ignore
            "s3",
            endpoint_url=config.endpoint_url,
            config=client_config,
            **kwargs,
        )


class MigrationPipelineFactory:
    """Factory for creating the complete migration pipeline."""

    @staticmethod
    def create_upload_service(
        config: MigrationConfig,
        s3_client: Optional[S3ClientProtocol] = None,
        logger: Optional[LoggerProtocol] = None,
        metrics_collector: Optional[MetricsCollector] = None,
    ) -> S3UploadService:
        if s3_client is None:
            s3_client = S3ClientFactory.create_s3_client(config)
        if logger is None:
            logger = LoggerFactory.create_logger("uploader")
        return S3UploadService(s3_client, config, logger, metrics_collector)

    @staticmethod
    def create_pipeline(
        config: MigrationConfig,
        s3_client: Optional[S3ClientProtocol] = None,
        store: Optional[RecordStore] = None,
        logger: Optional[LoggerProtocol] = None,
        observer: Optional[MigrationObserver] = None,
        metrics_collector: Optional[MetricsCollector] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> MigrationOrchestrator:
        """Create a fully configured migration pipeline."""
        if logger is None:
            logger = LoggerFactory.create_logger("pipeline")
        if store is None:
            store = SqlImageRecordStore.from_config(config, remote=config.remote)

        upload_service = MigrationPipelineFactory.create_upload_service(
            config, s3_client, logger, metrics_collector
        )
        uploader = RetryingUploadService(
            upload_service,
            max_attempts=config.max_retries,
            base_delay=config.retry_base_delay,
            sleep=sleep,
        )

        processor_name, process_batch_fn = get_processor(config.processor)
        scheduler = BatchScheduler(
            uploader,
            process_batch_fn,
            logger,
            batch_size=config.batch_size,
            batch_delay=config.batch_delay,
            sleep=sleep,
            processor_name=processor_name,
        )

        return MigrationOrchestrator(
            store=store,
            uploader=uploader,
            scheduler=scheduler,
            logger=logger,
            observer=observer,
        )
