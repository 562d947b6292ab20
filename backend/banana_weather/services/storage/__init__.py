"""
Persistence of location records.
"""

from banana_weather.services.storage.metadata_store import (
    JsonMetadataStore,
    MetadataStore,
)

__all__ = [
    "MetadataStore",
    "JsonMetadataStore",
]
