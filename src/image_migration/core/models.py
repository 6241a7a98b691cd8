"""Shared data models for the image migration pipeline."""

import os
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, model_validator

DEFAULT_KEY_PREFIX = "inmobiliaria/properties"
DEFAULT_DATABASE_URL = "sqlite:///.data/listings.db"


class MigrationConfig(BaseModel):
    """Configuration for one migration run."""

    bucket: str = ""
    key_prefix: str = DEFAULT_KEY_PREFIX
    public_base_url: str = ""
    region: Optional[str] = None
    endpoint_url: Optional[str] = None
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    image_root: str = "public"
    database_url: str = DEFAULT_DATABASE_URL
    remote_database_url: Optional[str] = None
    max_retries: int = Field(default=3, ge=1)
    retry_base_delay: float = Field(default=1.0, ge=0)
    batch_size: int = Field(default=3, ge=1)
    batch_delay: float = Field(default=1.0, ge=0)
    upload_timeout: float = Field(default=30.0, gt=0)
    jpeg_quality: int = Field(default=85, ge=1, le=100)
    aspect_ratio: Optional[float] = 16 / 9
    processor: str = "multithread"
    force: bool = False
    remote: bool = False
    debug: bool = False

    @classmethod
    def from_env(cls, **overrides: Any) -> "MigrationConfig":
        """Build a config from environment variables, then apply overrides."""
        values: Dict[str, Any] = {
            "bucket": os.getenv("IMAGE_BUCKET", ""),
            "key_prefix": os.getenv("IMAGE_KEY_PREFIX", DEFAULT_KEY_PREFIX),
            "public_base_url": os.getenv("IMAGE_PUBLIC_BASE_URL", ""),
            "region": os.getenv("AWS_REGION"),
            "endpoint_url": os.getenv("S3_ENDPOINT_URL"),
            "access_key_id": os.getenv("AWS_ACCESS_KEY_ID"),
            "secret_access_key": os.getenv("AWS_SECRET_ACCESS_KEY"),
            "image_root": os.getenv("IMAGE_ROOT", "public"),
            "database_url": os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL),
            "remote_database_url": os.getenv("REMOTE_DATABASE_URL"),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def database_url_for(self, remote: bool) -> str:
        """Pick the record store URL for a local or remote run."""
        if remote and self.remote_database_url:
            return self.remote_database_url
        return self.database_url

    def missing_settings(self) -> List[str]:
        """Names of upload settings that must be set before uploading."""
        missing = []
        if not self.bucket:
            missing.append("IMAGE_BUCKET")
        if not self.public_base_url:
            missing.append("IMAGE_PUBLIC_BASE_URL")
        if bool(self.access_key_id) != bool(self.secret_access_key):
            missing.append(
                "AWS_SECRET_ACCESS_KEY" if self.access_key_id else "AWS_ACCESS_KEY_ID"
            )
        return missing


class ImageRecord(BaseModel):
    """A property image row as held by the record store."""

    id: str
    property_id: str
    local_path: str
    image_index: int = 1
    remote_id: Optional[str] = None
    remote_url: Optional[str] = None
    remote_metadata: Dict[str, Any] = Field(default_factory=dict)
    migrated: bool = False

    @model_validator(mode="after")
    def _migrated_needs_remote_reference(self) -> "ImageRecord":
        if self.migrated and not (self.remote_url and self.remote_id):
            raise ValueError(
                f"Image {self.id} is marked migrated without remote_url and remote_id"
            )
        return self

    def to_pending(self) -> "PendingImage":
        return PendingImage(
            id=self.id,
            property_id=self.property_id,
            local_path=self.local_path,
            image_index=self.image_index,
        )


class PendingImage(BaseModel):
    """An image waiting to be uploaded."""

    id: str
    property_id: str
    local_path: str
    image_index: int = 1


class UploadResult(BaseModel):
    """What the remote store reports back for one upload."""

    remote_id: str
    remote_url: str
    bytes: int = 0
    width: int = 0
    height: int = 0
    format: str = ""
    created_at: str = ""

    def metadata(self) -> Dict[str, Any]:
        """Metadata blob stored alongside the remote reference."""
        return {
            "format": self.format,
            "bytes": self.bytes,
            "width": self.width,
            "height": self.height,
            "createdAt": self.created_at,
        }


class UploadOutcome(BaseModel):
    """Result of scheduling a single image upload."""

    image_id: str
    success: bool = False
    result: Optional[UploadResult] = None
    error: str = ""
    upload_time: float = 0.0


class UploadedImage(BaseModel):
    image_id: str
    remote_id: str
    remote_url: str
    metadata: Dict[str, Any] = Field(default_factory=dict)


class ItemError(BaseModel):
    image_id: str
    error: str


class BatchOutcome(BaseModel):
    """Aggregate counters for one scheduler run."""

    total_items: int = 0
    successful: int = 0
    failed: int = 0
    uploaded: List[UploadedImage] = Field(default_factory=list)
    errors: List[ItemError] = Field(default_factory=list)

    def record(self, outcome: UploadOutcome) -> None:
        """Fold one item outcome into the running totals."""
        if outcome.success and outcome.result is not None:
            self.successful += 1
            self.uploaded.append(
                UploadedImage(
                    image_id=outcome.image_id,
                    remote_id=outcome.result.remote_id,
                    remote_url=outcome.result.remote_url,
                    metadata=outcome.result.metadata(),
                )
            )
        else:
            self.failed += 1
            self.errors.append(
                ItemError(image_id=outcome.image_id, error=outcome.error or "Unknown error")
            )

    @property
    def is_complete(self) -> bool:
        return self.successful + self.failed == self.total_items


class ConnectionDiagnostics(BaseModel):
    """Outcome of probing the record store."""

    is_connected: bool
    is_remote: bool = False
    database_type: str = "local"
    response_time_ms: float = 0.0
    error: Optional[str] = None


class MigrationSummary(BaseModel):
    """Top-level result of one orchestration run."""

    success: bool = True
    total_images: int = 0
    uploaded_images: int = 0
    migrated_images: int = 0
    failed_images: int = 0
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    elapsed_seconds: float = 0.0
    remote: bool = False
    force: bool = False
