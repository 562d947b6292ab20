"""
Ports for the external services used by the weather pipeline.

Defines the interfaces the orchestrator depends on (geocoding, image
generation, object storage, video generation) and the error taxonomy shared
by every implementation. Concrete clients live next to this module; tests
substitute in-memory doubles.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

import httpx

from banana_weather.models.schemas import (
    OperationHandle,
    OperationStatus,
    ResolvedLocation,
    StoredObject,
    StyleMode,
)


@dataclass
class ClientConfig:
    """
    Configuration for HTTP client instances.

    Attributes:
        base_url: API endpoint URL
        timeout: Request timeout in seconds
        api_key: API key (query-string auth)
        access_token: OAuth bearer token (header auth)
        max_retries: Number of retry attempts for transient errors
    """

    base_url: str
    timeout: float = 120.0
    api_key: str | None = None
    access_token: str | None = None
    max_retries: int = 3


# ═══════════════════════════════════════════════════════════════════════════
# Error taxonomy
# ═══════════════════════════════════════════════════════════════════════════


class ServiceError(Exception):
    """
    Base exception for external service errors.

    Attributes:
        message: Error description
        provider: Service name (geocoding, gemini, veo, gcs, store)
        original_error: Underlying exception if available
    """

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        original_error: Exception | None = None,
    ):
        self.message = message
        self.provider = provider
        self.original_error = original_error
        super().__init__(message)

    def __str__(self) -> str:
        if self.provider:
            return f"{self.message} | provider={self.provider}"
        return self.message


class ResolutionError(ServiceError):
    """Location lookup failed. Fatal: nothing can be produced without a name."""


class GenerationError(ServiceError):
    """Image generation failed. Fatal: no image means no video and no cache entry."""


class UploadError(ServiceError):
    """Artifact upload failed. Soft: the caller already has the image."""


class VideoError(ServiceError):
    """
    Video generation failed. Soft: the job still succeeds with the image.

    Attributes:
        raw_response: Raw operation payload when result extraction failed
    """

    def __init__(
        self,
        message: str,
        raw_response: str | None = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.raw_response = raw_response


class VideoTimeoutError(VideoError):
    """The video operation did not finish before the polling deadline."""


class JobCancelledError(ServiceError):
    """The caller cancelled the job while it was waiting on an external operation."""


class PersistenceError(ServiceError):
    """Metadata store read/write failed. Logged only; never withholds content."""


# ═══════════════════════════════════════════════════════════════════════════
# Ports
# ═══════════════════════════════════════════════════════════════════════════


@runtime_checkable
class LocationResolver(Protocol):
    """Resolves coordinates or free text into a canonical display name."""

    async def resolve_by_coordinates(self, lat: float, lng: float) -> str:
        """
        Reverse-geocode a coordinate pair.

        Raises:
            ResolutionError: If the lookup fails or finds nothing
        """
        ...

    async def resolve_by_query(self, text: str) -> ResolvedLocation:
        """
        Forward-geocode a free-text query.

        Raises:
            ResolutionError: If the lookup fails or finds nothing
        """
        ...


@runtime_checkable
class ImageGenerator(Protocol):
    """Produces a raster image for a location."""

    async def generate(
        self,
        location_name: str,
        extra_context: str = "",
        style_mode: StyleMode = StyleMode.RANDOM,
    ) -> bytes:
        """
        Generate a 9:16 weather illustration.

        Args:
            location_name: Canonical location name
            extra_context: Free-text hint appended to the prompt (fictional settings)
            style_mode: Prompt template selector

        Returns:
            Raw image bytes (PNG)

        Raises:
            GenerationError: If no image could be produced
        """
        ...


@runtime_checkable
class ObjectStore(Protocol):
    """Persists binary artifacts."""

    async def upload(
        self,
        data: bytes,
        suggested_name: str,
        content_type: str = "image/png",
    ) -> StoredObject:
        """
        Upload an artifact.

        Returns:
            StoredObject with internal reference and public URL

        Raises:
            UploadError: If the upload fails
        """
        ...

    async def read(self, name: str) -> bytes:
        """
        Read an object by name.

        Raises:
            UploadError: If the object cannot be fetched
        """
        ...


@runtime_checkable
class VideoGenerator(Protocol):
    """Submits and inspects long-running image-to-video operations."""

    async def submit(self, input_image_ref: str, prompt: str = "") -> OperationHandle:
        """
        Start an animation job seeded by an uploaded image.

        Args:
            input_image_ref: Internal reference of the seed image (gs://...)
            prompt: Motion prompt (default prompt if empty)

        Raises:
            VideoError: If the job could not be started
        """
        ...

    async def poll(self, handle: OperationHandle) -> OperationStatus:
        """
        Query the operation once.

        Raises:
            VideoError: On transport errors (the poller treats these as transient)
        """
        ...


# ═══════════════════════════════════════════════════════════════════════════
# Shared HTTP client base
# ═══════════════════════════════════════════════════════════════════════════


class BaseHTTPClient(ABC):
    """
    Abstract base class for httpx-backed service clients.

    Owns the AsyncClient unless one is injected (tests pass a client built
    on httpx.MockTransport) and provides the async context manager protocol.
    """

    provider: str = "http"

    def __init__(
        self,
        config: ClientConfig,
        http_client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize client with configuration.

        Args:
            config: Client configuration with URL, timeout, credentials
            http_client: Optional pre-built client (not closed by us)
        """
        self.config = config
        self._owns_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient(timeout=config.timeout)

    def auth_headers(self) -> dict[str, str]:
        """Bearer auth header when an access token is configured."""
        if self.config.access_token:
            return {"Authorization": f"Bearer {self.config.access_token}"}
        return {}

    @abstractmethod
    async def check_health(self) -> bool:
        """Lightweight availability probe."""
        pass

    async def close(self) -> None:
        """Close the HTTP client (only if we created it)."""
        if self._owns_client:
            await self.http_client.aclose()

    async def __aenter__(self) -> "BaseHTTPClient":
        """Context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        await self.close()
