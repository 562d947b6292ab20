"""
Pydantic models for the weather artwork pipeline.

Exports:
    - Persisted records (Location, LocationStats, LegacyPreset)
    - Pipeline types (WeatherRequest, WeatherResult, ProgressEvent, ...)
    - External service contracts (OperationHandle, OperationStatus, ...)
"""

from banana_weather.models.schemas import (
    BatchReport,
    EventKind,
    GenerationOutcome,
    LegacyPreset,
    Location,
    LocationFilter,
    LocationStats,
    MigrationReport,
    OperationHandle,
    OperationStatus,
    PipelineStage,
    PresetAction,
    PresetOutcome,
    PresetSpec,
    ProgressEvent,
    ResolvedLocation,
    StoredObject,
    StyleMode,
    WeatherRequest,
    WeatherResult,
    location_id,
    utcnow,
)

__all__ = [
    # Records
    "Location",
    "LocationStats",
    "LegacyPreset",
    "location_id",
    "utcnow",
    # Pipeline
    "PipelineStage",
    "EventKind",
    "ProgressEvent",
    "WeatherRequest",
    "WeatherResult",
    "GenerationOutcome",
    "LocationFilter",
    "StyleMode",
    # Service contracts
    "ResolvedLocation",
    "StoredObject",
    "OperationHandle",
    "OperationStatus",
    # Presets
    "PresetSpec",
    "PresetAction",
    "PresetOutcome",
    "BatchReport",
    "MigrationReport",
]
