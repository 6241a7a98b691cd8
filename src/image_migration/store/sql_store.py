"""Record store backed by the listing site's relational database."""

import json
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from sqlalchemy import (
    Boolean,
    Column,
    Integer,
    MetaData,
    Table,
    Text,
    create_engine,
    false,
    func,
    or_,
    select,
    text,
    update,
)
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError

from ..core import get_logger
from ..core.exceptions import PersistError, StoreConnectionError
from ..core.models import ConnectionDiagnostics, ImageRecord, MigrationConfig, PendingImage
from ..core.protocols import RecordStore

metadata = MetaData()

# The site's image table. Column names follow the site's schema; the
# cloudinary* columns hold the CDN reference whatever the storage provider.
properties_images = Table(
    "PropertiesImages",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("propertyId", Integer, nullable=True),
    Column("image", Text, nullable=False),
    Column("cloudinaryUrl", Text, nullable=True),
    Column("cloudinaryPublicId", Text, nullable=True),
    Column("cloudinaryMetadata", Text, nullable=True),
    Column("isMigrated", Boolean, nullable=True, default=False),
)


def _ranked_images():
    """Image rows with their 1-based position within the property."""
    table = properties_images
    return select(
        table,
        func.row_number()
        .over(partition_by=table.c.propertyId, order_by=table.c.id)
        .label("image_index"),
    ).subquery("ranked_images")


def _record_key(image_id: Union[str, int]) -> Union[str, int]:
    value = str(image_id)
    return int(value) if value.isdigit() else value


class SqlImageRecordStore(RecordStore):
    """SQLAlchemy implementation of the migration record store."""

    def __init__(self, engine: Union[Engine, str], is_remote: bool = False):
        self._engine = create_engine(engine) if isinstance(engine, str) else engine
        self._is_remote = is_remote
        self._logger = get_logger("record-store")

    @classmethod
    def from_config(cls, config: MigrationConfig, remote: bool = False) -> "SqlImageRecordStore":
        """Open the local or remote database named by the config."""
        url = config.database_url_for(remote)
        _ensure_sqlite_directory(url)
        is_remote = remote and bool(config.remote_database_url)
        return cls(create_engine(url), is_remote=is_remote)

    @property
    def engine(self) -> Engine:
        return self._engine

    def create_schema(self) -> None:
        """Create the image table. Meant for local development and tests."""
        metadata.create_all(self._engine)

    def diagnostics(self) -> ConnectionDiagnostics:
        start = time.perf_counter()
        database_type = "remote" if self._is_remote else "local"
        try:
            with self._engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            elapsed = (time.perf_counter() - start) * 1000
            self._logger.error(f"Database diagnostics failed after {elapsed:.0f}ms: {e}")
            return ConnectionDiagnostics(
                is_connected=False,
                is_remote=self._is_remote,
                database_type=database_type,
                response_time_ms=elapsed,
                error=str(e),
            )

        elapsed = (time.perf_counter() - start) * 1000
        self._logger.debug(f"Database diagnostics completed in {elapsed:.0f}ms ({database_type})")
        return ConnectionDiagnostics(
            is_connected=True,
            is_remote=self._is_remote,
            database_type=database_type,
            response_time_ms=elapsed,
        )

    def fetch_pending(self, include_migrated: bool = False) -> List[PendingImage]:
        ranked = _ranked_images()
        statement = select(ranked).order_by(ranked.c.propertyId, ranked.c.id)
        if not include_migrated:
            # Rows flagged migrated without a remote reference still count as pending
            statement = statement.where(
                or_(
                    ranked.c.isMigrated.is_(None),
                    ranked.c.isMigrated == false(),
                    ranked.c.cloudinaryUrl.is_(None),
                    ranked.c.cloudinaryUrl == "",
                    ranked.c.cloudinaryPublicId.is_(None),
                    ranked.c.cloudinaryPublicId == "",
                )
            )
        return [record.to_pending() for record in self._query(statement)]

    def get(self, image_id: str) -> Optional[ImageRecord]:
        ranked = _ranked_images()
        records = self._query(select(ranked).where(ranked.c.id == _record_key(image_id)))
        return records[0] if records else None

    def mark_migrated(
        self,
        image_id: str,
        remote_url: str,
        remote_id: str,
        metadata: Dict[str, Any],
    ) -> None:
        if not remote_url or not remote_id:
            raise PersistError(image_id, "remote_url and remote_id are required", remote_id)

        statement = (
            update(properties_images)
            .where(properties_images.c.id == _record_key(image_id))
            .values(
                cloudinaryUrl=remote_url,
                cloudinaryPublicId=remote_id,
                cloudinaryMetadata=json.dumps(metadata),
                isMigrated=True,
            )
        )
        try:
            with self._engine.begin() as conn:
                updated = conn.execute(statement).rowcount
        except SQLAlchemyError as e:
            raise PersistError(image_id, str(e), remote_id) from e

        if updated == 0:
            raise PersistError(image_id, "no such image record", remote_id)
        self._logger.debug(f"Image {image_id} marked as migrated")

    def _query(self, statement: Any) -> List[ImageRecord]:
        try:
            with self._engine.connect() as conn:
                rows = conn.execute(statement).mappings().all()
        except SQLAlchemyError as e:
            raise StoreConnectionError(f"Could not read image records: {e}") from e
        return [_row_to_record(row) for row in rows]


def _row_to_record(row: Any) -> ImageRecord:
    raw_metadata = row["cloudinaryMetadata"]
    try:
        remote_metadata = json.loads(raw_metadata) if raw_metadata else {}
    except ValueError:
        remote_metadata = {"raw": raw_metadata}

    remote_url = row["cloudinaryUrl"]
    remote_id = row["cloudinaryPublicId"]
    migrated = bool(row["isMigrated"]) and bool(remote_url) and bool(remote_id)
    property_id = row["propertyId"]

    return ImageRecord(
        id=str(row["id"]),
        property_id="" if property_id is None else str(property_id),
        local_path=row["image"],
        image_index=row["image_index"],
        remote_id=remote_id,
        remote_url=remote_url,
        remote_metadata=remote_metadata,
        migrated=migrated,
    )


def _ensure_sqlite_directory(url: str) -> None:
    parsed = make_url(url)
    if parsed.get_backend_name() != "sqlite":
        return
    database = parsed.database
    if database and database != ":memory:":
        Path(database).parent.mkdir(parents=True, exist_ok=True)
