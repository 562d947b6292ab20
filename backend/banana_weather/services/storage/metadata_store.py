"""
Location metadata store.

Keyed store of Location records: the cache of user lookups and the
catalogue of curated presets share one collection.

Directory structure:
    data/
    └── locations/
        ├── paris__france.json
        ├── san_francisco__ca__usa.json
        └── ...

Example:
    store = JsonMetadataStore(settings.data_dir)

    record = await store.get("paris__france")
    saved = await store.upsert(Location(id="tokyo__japan", name="Tokyo, Japan"))
    presets = await store.list(limit=20, filter_by=LocationFilter.PRESET)
"""

import json
import logging
import os
import tempfile
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import Protocol, runtime_checkable

from pydantic import ValidationError

from banana_weather.models.schemas import (
    Location,
    LocationFilter,
    LocationStats,
    utcnow,
)
from banana_weather.services.clients.base import PersistenceError

logger = logging.getLogger(__name__)

LOCATIONS_DIR = "locations"


@runtime_checkable
class MetadataStore(Protocol):
    """Persistence port for Location records."""

    async def get(self, record_id: str) -> Location | None:
        """
        Fetch a record by ID.

        Returns:
            The record, or None if it does not exist

        Raises:
            PersistenceError: If the ID is invalid or the record cannot be read
        """
        ...

    async def upsert(self, record: Location) -> Location:
        """
        Create or fully replace a record; last write wins.

        The store sets last_updated to its own clock.

        Raises:
            PersistenceError: If the ID is empty or invalid, or the write fails
        """
        ...

    async def aggregate_counts(self) -> LocationStats:
        """Counts of all, preset and user records plus the latest update time."""
        ...

    async def list(
        self,
        limit: int = 0,
        filter_by: LocationFilter = LocationFilter.ALL,
    ) -> list[Location]:
        """Records ordered by last_updated descending; limit <= 0 is unlimited."""
        ...


def _sort_key(record: Location) -> datetime:
    return record.last_updated or datetime.min.replace(tzinfo=utcnow().tzinfo)


class JsonMetadataStore:
    """MetadataStore keeping one JSON document per record.

    Writes go through a temporary file and os.replace, so a reader never
    sees a half-written record. No locking: concurrent writers of the same
    record race and the last one wins.

    Attributes:
        data_dir: Root data directory
        clock: Source of last_updated timestamps
    """

    def __init__(
        self,
        data_dir: Path,
        clock: Callable[[], datetime] = utcnow,
    ):
        """Initialize store.

        Args:
            data_dir: Root data directory (records go to data_dir/locations)
            clock: Timestamp source, injectable for tests
        """
        self.data_dir = Path(data_dir)
        self.clock = clock

    @property
    def locations_dir(self) -> Path:
        return self.data_dir / LOCATIONS_DIR

    def _record_path(self, record_id: str) -> Path:
        """
        File of a record.

        Raises:
            PersistenceError: If the ID would resolve outside locations_dir
        """
        if "/" in record_id or "\\" in record_id or ".." in record_id:
            raise PersistenceError(f"Invalid record id: {record_id!r}", provider="store")
        return self.locations_dir / f"{record_id}.json"

    def _read_file(self, path: Path) -> Location:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return Location.model_validate(data)

    def _iter_records(self):
        """Yield every readable record; broken files are skipped with a warning."""
        if not self.locations_dir.exists():
            return

        for path in sorted(self.locations_dir.glob("*.json")):
            try:
                yield self._read_file(path)
            except (OSError, ValueError, ValidationError) as e:
                logger.warning(f"Skipping unreadable record {path.name}: {e}")

    async def get(self, record_id: str) -> Location | None:
        """Fetch a record by ID (None if missing)."""
        if not record_id:
            return None

        path = self._record_path(record_id)
        if not path.exists():
            return None

        try:
            return self._read_file(path)
        except (OSError, ValueError, ValidationError) as e:
            raise PersistenceError(
                f"Failed to read record {record_id}: {e}",
                provider="store",
                original_error=e,
            ) from e

    async def upsert(self, record: Location) -> Location:
        """Write a record, stamping last_updated with the store clock.

        Args:
            record: Record to store (its last_updated is ignored)

        Returns:
            The stored record

        Raises:
            PersistenceError: If the ID is empty or invalid, or the write fails
        """
        if not record.id:
            raise PersistenceError("Cannot store a record without an id", provider="store")

        path = self._record_path(record.id)
        stored = record.model_copy(update={"last_updated": self.clock()})

        try:
            self.locations_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.locations_dir, prefix=f".{stored.id}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(
                        stored.model_dump(mode="json"),
                        f,
                        ensure_ascii=False,
                        indent=2,
                    )
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise PersistenceError(
                f"Failed to write record {stored.id}: {e}",
                provider="store",
                original_error=e,
            ) from e

        logger.debug(f"Stored record {stored.id}")
        return stored

    async def aggregate_counts(self) -> LocationStats:
        """Compute collection statistics."""
        stats = LocationStats()

        for record in self._iter_records():
            stats.total += 1
            if record.is_preset:
                stats.presets += 1
            if record.last_updated and (
                stats.last_updated is None or record.last_updated > stats.last_updated
            ):
                stats.last_updated = record.last_updated

        stats.user_generated = stats.total - stats.presets
        return stats

    async def list(
        self,
        limit: int = 0,
        filter_by: LocationFilter = LocationFilter.ALL,
    ) -> list[Location]:
        """List records, newest first.

        Args:
            limit: Maximum number of records (<= 0 means unlimited)
            filter_by: all, preset or user records

        Returns:
            Records ordered by last_updated descending
        """
        records = [
            record
            for record in self._iter_records()
            if filter_by == LocationFilter.ALL
            or record.is_preset == (filter_by == LocationFilter.PRESET)
        ]
        records.sort(key=_sort_key, reverse=True)

        if limit > 0:
            records = records[:limit]
        return records
