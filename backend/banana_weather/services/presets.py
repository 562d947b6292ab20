"""
Curated ("preset") location management.

Presets are ordinary Location records flagged is_preset. Unlike user
lookups they must carry complete media, so every stage failure here is
fatal for the preset being processed.

Example:
    service = PresetService(orchestrator, store)

    outcome = await service.generate(
        PresetSpec(id="atlantis", name="Atlantis", city="Atlantis",
                   category="Fantasy", context="Sunken city under the sea"),
    )
    report = await service.run_batch(Path("presets.csv"), force=False)
"""

import csv
import json
import logging
import time
from pathlib import Path

from pydantic import ValidationError

from banana_weather.models.schemas import (
    BatchReport,
    LegacyPreset,
    Location,
    MigrationReport,
    PresetAction,
    PresetOutcome,
    PresetSpec,
    StyleMode,
)
from banana_weather.services.clients.base import PersistenceError, ServiceError
from banana_weather.services.pipeline.orchestrator import WeatherOrchestrator
from banana_weather.services.storage.metadata_store import MetadataStore

logger = logging.getLogger(__name__)

MIN_CSV_FIELDS = 4
DEFAULT_CATEGORY = "General"


class PresetNotFoundError(LookupError):
    """No record exists for the requested preset ID."""

    def __init__(self, record_id: str):
        self.record_id = record_id
        super().__init__(f"Location not found: {record_id}")


def parse_preset_csv(path: Path) -> tuple[list[PresetSpec], int]:
    """
    Read preset definitions from a CSV file.

    Columns: id,name,city,category,context. The first row is always treated
    as a header. Rows with fewer than four fields, or with an empty id, are
    skipped; context is optional.

    Args:
        path: CSV file path

    Returns:
        Tuple of (specs, skipped_row_count)
    """
    specs: list[PresetSpec] = []
    skipped = 0

    with open(path, "r", encoding="utf-8", newline="") as f:
        for line_no, row in enumerate(csv.reader(f), start=1):
            if line_no == 1:
                continue
            if len(row) < MIN_CSV_FIELDS:
                logger.debug(f"CSV line {line_no}: {len(row)} fields, skipped")
                skipped += 1
                continue

            try:
                specs.append(
                    PresetSpec(
                        id=row[0],
                        name=row[1],
                        city=row[2],
                        category=row[3],
                        context=row[4] if len(row) > MIN_CSV_FIELDS else "",
                    )
                )
            except ValidationError as e:
                logger.warning(f"CSV line {line_no}: invalid row skipped: {e}")
                skipped += 1

    return specs, skipped


def load_legacy_presets(data: bytes | str) -> list[LegacyPreset]:
    """
    Parse a legacy presets.json document (a JSON array of entries).

    Raises:
        ValueError: If the document is not a JSON array of objects
    """
    entries = json.loads(data)
    if not isinstance(entries, list):
        raise ValueError("presets.json must contain a JSON array")
    return [LegacyPreset.model_validate(entry) for entry in entries]


class PresetService:
    """
    Generates, refreshes and imports preset locations.

    Reuses the orchestrator's stage methods, so presets and user lookups
    share prompt selection, upload naming and video polling.

    Attributes:
        orchestrator: Pipeline providing image/upload/video stages
            (None is enough for migrate)
        store: Metadata store
    """

    def __init__(self, orchestrator: WeatherOrchestrator | None, store: MetadataStore):
        self.orchestrator = orchestrator
        self.store = store

    async def _produce_media(
        self,
        record_id: str,
        city: str,
        context: str,
        style: StyleMode,
        prefix: str,
    ) -> tuple[str, str]:
        """Image -> upload -> video. Any failure propagates."""
        logger.info(f"Generating image for '{city}' (style: {int(style)})...")
        image = await self.orchestrator.generate_image(city, context, style)

        name = f"{prefix}_{record_id}_image_{int(time.time())}.png"
        uploaded = await self.orchestrator.upload_image(image, name)
        logger.info(f"Image uploaded: {uploaded.public_url}")

        logger.info("Generating video (Veo)...")
        video = await self.orchestrator.generate_video(uploaded.ref)
        logger.info(f"Video generated: {video.public_url}")

        return uploaded.public_url, video.public_url

    async def generate(
        self,
        spec: PresetSpec,
        force: bool = False,
        style: StyleMode = StyleMode.RANDOM,
    ) -> PresetOutcome:
        """
        Create or update one preset.

        An existing record is only patched (name, category, preset flag)
        unless force is set; its media is left untouched and no generator
        is called.

        Args:
            spec: Preset definition
            force: Regenerate media even if the record exists
            style: Prompt template selector

        Returns:
            PresetOutcome with the action taken and the stored record

        Raises:
            ServiceError: If any generation stage or the final write fails
        """
        existing = await self.store.get(spec.id)

        if existing is not None and not force:
            logger.info(f"Skipping generation for [{spec.id}], updating metadata only.")
            patched = existing.model_copy(
                update={"name": spec.name, "category": spec.category, "is_preset": True}
            )
            stored = await self.store.upsert(patched)
            return PresetOutcome(action=PresetAction.PATCHED, location=stored)

        image_url, video_url = await self._produce_media(
            spec.id, spec.city, spec.context, style, "preset"
        )

        stored = await self.store.upsert(
            Location(
                id=spec.id,
                name=spec.name,
                category=spec.category,
                city_query=spec.city,
                image_url=image_url,
                video_url=video_url,
                is_preset=True,
            )
        )
        logger.info(f"Preset saved: {spec.id}")
        return PresetOutcome(action=PresetAction.GENERATED, location=stored)

    async def run_batch(self, path: Path, force: bool = False) -> BatchReport:
        """
        Process a CSV of presets sequentially.

        Per-row failures are logged and counted; the batch continues.

        Raises:
            OSError: If the CSV cannot be read
        """
        specs, skipped = parse_preset_csv(path)
        report = BatchReport(skipped=skipped)

        logger.info(f"Running batch from {path} ({len(specs)} presets, force: {force})")

        for index, spec in enumerate(specs, start=1):
            logger.info(f"Processing [{index}/{len(specs)}]: {spec.name} ({spec.id})")
            report.processed += 1
            try:
                outcome = await self.generate(spec, force=force)
            except ServiceError as e:
                logger.error(f"Error processing {spec.id}: {e}")
                report.failed.append(spec.id)
                continue

            if outcome.action == PresetAction.PATCHED:
                report.patched += 1
            else:
                report.generated += 1

        logger.info(
            f"Batch complete: {report.generated} generated, {report.patched} patched, "
            f"{report.skipped} skipped, {len(report.failed)} failed"
        )
        return report

    async def refresh(
        self,
        record_id: str,
        style: StyleMode = StyleMode.RANDOM,
    ) -> Location:
        """
        Regenerate media for an existing record from its city_query.

        Name, category and preset flag are kept.

        Raises:
            PresetNotFoundError: If no record has this ID
            ServiceError: If any generation stage or the write fails
        """
        existing = await self.store.get(record_id)
        if existing is None:
            raise PresetNotFoundError(record_id)

        logger.info(f"Refreshing location: {record_id} (style: {int(style)})")
        image_url, video_url = await self._produce_media(
            record_id, existing.city_query or existing.name, "", style, "refresh"
        )

        stored = await self.store.upsert(
            existing.model_copy(update={"image_url": image_url, "video_url": video_url})
        )
        logger.info("Refresh complete.")
        return stored

    async def migrate(self, entries: list[LegacyPreset]) -> MigrationReport:
        """
        Import legacy presets as preset records.

        city_query is set to the entry's name; an empty category becomes
        "General". Per-entry failures are logged and counted.
        """
        report = MigrationReport()
        logger.info(f"Migrating {len(entries)} presets...")

        for entry in entries:
            record = Location(
                id=entry.id,
                name=entry.name,
                category=entry.category or DEFAULT_CATEGORY,
                city_query=entry.name,
                image_url=entry.image_url,
                video_url=entry.video_url,
                is_preset=True,
            )
            try:
                await self.store.upsert(record)
            except PersistenceError as e:
                logger.error(f"Error migrating {entry.id}: {e}")
                report.failed.append(entry.id)
                continue

            logger.info(f"Migrated: {entry.id}")
            report.migrated += 1

        logger.info("Migration complete.")
        return report
