"""
External service clients for the weather pipeline.

Ports (protocols) and the error taxonomy live in `base`; each concrete
client implements one port:
- GeocodingClient: LocationResolver (Google Geocoding)
- GeminiImageClient: ImageGenerator (Gemini on Vertex AI)
- GcsObjectStore: ObjectStore (Google Cloud Storage)
- VeoClient: VideoGenerator (Veo on Vertex AI)

Usage:
    from banana_weather.services.clients import GeocodingClient, LocationResolver

    async with GeocodingClient.from_settings(settings) as geo:
        location = await geo.resolve_by_query("Tokyo")
"""

from banana_weather.services.clients.base import (
    BaseHTTPClient,
    ClientConfig,
    GenerationError,
    ImageGenerator,
    JobCancelledError,
    LocationResolver,
    ObjectStore,
    PersistenceError,
    ResolutionError,
    ServiceError,
    UploadError,
    VideoError,
    VideoGenerator,
    VideoTimeoutError,
)
from banana_weather.services.clients.gcs_object_store import (
    GcsObjectStore,
    public_url_for,
)
from banana_weather.services.clients.gemini_image_client import GeminiImageClient
from banana_weather.services.clients.geocoding_client import GeocodingClient
from banana_weather.services.clients.veo_client import VeoClient

__all__ = [
    # Ports and base classes
    "LocationResolver",
    "ImageGenerator",
    "ObjectStore",
    "VideoGenerator",
    "BaseHTTPClient",
    "ClientConfig",
    # Errors
    "ServiceError",
    "ResolutionError",
    "GenerationError",
    "UploadError",
    "VideoError",
    "VideoTimeoutError",
    "JobCancelledError",
    "PersistenceError",
    # Implementations
    "GeocodingClient",
    "GeminiImageClient",
    "GcsObjectStore",
    "VeoClient",
    "public_url_for",
]
