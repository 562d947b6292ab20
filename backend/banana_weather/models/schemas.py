"""
Pydantic models for the weather artwork pipeline.
"""

import re
from datetime import datetime, timezone
from enum import Enum, IntEnum

from pydantic import BaseModel, Field

_ID_INVALID_CHARS = re.compile(r"[^a-z0-9]")


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def location_id(name: str) -> str:
    """
    Derive the record ID for a canonical location name.

    Lowercases the name and replaces every character outside [a-z0-9]
    with an underscore (one per character, no collapsing).

    Example:
        >>> location_id("San Francisco, CA")
        'san_francisco__ca'
    """
    return _ID_INVALID_CHARS.sub("_", name.lower())


class PipelineStage(str, Enum):
    """Stage of a single generation job."""
    RESOLVING_LOCATION = "resolving_location"
    CACHE_CHECK = "cache_check"
    CACHE_HIT = "cache_hit"
    CACHE_MISS = "cache_miss"
    GENERATING_IMAGE = "generating_image"
    IMAGE_READY = "image_ready"
    UPLOADING_IMAGE = "uploading_image"
    GENERATING_VIDEO = "generating_video"
    VIDEO_READY = "video_ready"
    PERSISTING = "persisting"
    DONE = "done"
    FAILED = "failed"


class EventKind(str, Enum):
    """Names of the events streamed to the caller."""
    STATUS = "status"
    RESULT = "result"
    VIDEO = "video"
    ERROR = "error"


class LocationFilter(str, Enum):
    """Record filter for listings."""
    ALL = "all"
    PRESET = "preset"
    USER = "user"


class StyleMode(IntEnum):
    """Image prompt template selector."""
    RANDOM = 0
    CLASSIC = 1
    DRINK = 2


# ═══════════════════════════════════════════════════════════════════════════
# Persisted records
# ═══════════════════════════════════════════════════════════════════════════


class Location(BaseModel):
    """One persisted location record (curated preset or cached user lookup).

    Field names are the storage and wire contract shared with the frontend
    and the admin tooling.
    """

    id: str
    name: str = ""
    category: str = ""
    city_query: str = ""
    image_url: str = ""
    video_url: str = ""
    is_preset: bool = False
    last_updated: datetime | None = None

    @property
    def has_video(self) -> bool:
        return bool(self.video_url)


class LocationStats(BaseModel):
    """Aggregate counts over the locations collection."""

    total: int = 0
    presets: int = 0
    user_generated: int = 0
    last_updated: datetime | None = None


class LegacyPreset(BaseModel):
    """Entry of the legacy presets.json list imported by `banana migrate`."""

    id: str
    name: str = ""
    category: str = ""
    image_url: str = ""
    video_url: str = ""


# ═══════════════════════════════════════════════════════════════════════════
# Requests, events and results
# ═══════════════════════════════════════════════════════════════════════════


class WeatherRequest(BaseModel):
    """Caller input: a free-text city or a coordinate pair."""

    city: str = ""
    lat: float | None = None
    lng: float | None = None

    @property
    def has_coordinates(self) -> bool:
        """Coordinates are used only when both are supplied."""
        return self.lat is not None and self.lng is not None


class WeatherResult(BaseModel):
    """Payload of the `result` event.

    Exactly one of image_base64 (fresh generation) or image_url (cache hit)
    is set; unset fields are omitted from the JSON.
    """

    city: str
    image_base64: str | None = None
    image_url: str | None = None
    last_updated: datetime

    def to_json(self) -> str:
        return self.model_dump_json(exclude_none=True)


class ProgressEvent(BaseModel):
    """Single event emitted by the orchestrator."""

    kind: EventKind
    data: str

    @classmethod
    def status(cls, message: str) -> "ProgressEvent":
        return cls(kind=EventKind.STATUS, data=message)

    @classmethod
    def result(cls, payload: WeatherResult) -> "ProgressEvent":
        return cls(kind=EventKind.RESULT, data=payload.to_json())

    @classmethod
    def video(cls, url: str) -> "ProgressEvent":
        return cls(kind=EventKind.VIDEO, data=url)

    @classmethod
    def error(cls, message: str) -> "ProgressEvent":
        return cls(kind=EventKind.ERROR, data=message)


class GenerationOutcome(BaseModel):
    """Summary of one pipeline run, returned to the invoking layer."""

    location_id: str
    city: str
    cache_hit: bool = False
    image_url: str = ""
    video_url: str = ""
    video_error: str | None = None


# ═══════════════════════════════════════════════════════════════════════════
# External service contracts
# ═══════════════════════════════════════════════════════════════════════════


class ResolvedLocation(BaseModel):
    """Forward geocoding result."""

    name: str
    lat: float = 0.0
    lng: float = 0.0


class StoredObject(BaseModel):
    """Uploaded artifact: internal reference (gs://...) and public URL."""

    ref: str
    public_url: str


class OperationHandle(BaseModel):
    """Handle of a long-running video generation operation."""

    name: str
    model: str = ""


class OperationStatus(BaseModel):
    """One poll of a long-running operation.

    `response` is the raw, schema-unstable payload; the poller extracts
    the result reference from it.
    """

    done: bool = False
    error: dict | None = None
    response: dict | None = None


# ═══════════════════════════════════════════════════════════════════════════
# Presets
# ═══════════════════════════════════════════════════════════════════════════


class PresetSpec(BaseModel):
    """Curated location definition (CLI flags or one CSV row)."""

    id: str = Field(..., min_length=1)
    name: str
    city: str
    category: str = "General"
    context: str = ""


class PresetAction(str, Enum):
    """What the preset flow did for one spec."""
    PATCHED = "patched"  # existing record, metadata only
    GENERATED = "generated"


class PresetOutcome(BaseModel):
    """Result of generating one preset."""

    action: PresetAction
    location: Location


class BatchReport(BaseModel):
    """Counters for a batch preset run."""

    processed: int = 0
    generated: int = 0
    patched: int = 0
    skipped: int = 0
    failed: list[str] = Field(default_factory=list)


class MigrationReport(BaseModel):
    """Counters for a legacy preset migration."""

    migrated: int = 0
    failed: list[str] = Field(default_factory=list)
