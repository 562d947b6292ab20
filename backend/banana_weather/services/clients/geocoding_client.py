"""
Google Geocoding client.

Implements the LocationResolver port over the Geocoding REST API:
forward lookups for free-text queries, reverse lookups for coordinates.
"""

import logging

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from banana_weather.config import ConfigError, Settings
from banana_weather.models.schemas import ResolvedLocation
from banana_weather.services.clients.base import (
    BaseHTTPClient,
    ClientConfig,
    ResolutionError,
)

logger = logging.getLogger(__name__)

# Retry configuration for transient errors
RETRY_DECORATOR = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((httpx.ConnectError, httpx.TimeoutException)),
    reraise=True,
)

# Reverse lookups are narrowed to city-level results
REVERSE_RESULT_TYPES = "locality|administrative_area_level_2|administrative_area_level_1"


class GeocodingClient(BaseHTTPClient):
    """
    Async client for the Google Geocoding API.

    Example:
        async with GeocodingClient.from_settings(settings) as geo:
            location = await geo.resolve_by_query("Paris")
            name = await geo.resolve_by_coordinates(48.85, 2.35)
    """

    provider = "geocoding"

    @classmethod
    def from_settings(cls, settings: Settings) -> "GeocodingClient":
        """
        Create GeocodingClient from application settings.

        Raises:
            ConfigError: If GOOGLE_MAPS_API_KEY is not set
        """
        if not settings.google_maps_api_key:
            raise ConfigError(
                "GOOGLE_MAPS_API_KEY is required", ["google_maps_api_key"]
            )

        config = ClientConfig(
            base_url=settings.geocoding_url,
            api_key=settings.google_maps_api_key,
            timeout=30.0,
        )
        return cls(config)

    async def check_health(self) -> bool:
        try:
            await self.resolve_by_query("London")
            return True
        except ResolutionError as e:
            logger.debug(f"Geocoding not available: {e}")
            return False

    async def resolve_by_query(self, text: str) -> ResolvedLocation:
        """
        Forward-geocode a free-text query.

        Args:
            text: City name or address

        Returns:
            ResolvedLocation with formatted name and coordinates

        Raises:
            ResolutionError: If nothing is found or the request fails
        """
        result = await self._lookup({"address": text}, f"'{text}'")

        location = result.get("geometry", {}).get("location", {})
        return ResolvedLocation(
            name=result["formatted_address"],
            lat=location.get("lat", 0.0),
            lng=location.get("lng", 0.0),
        )

    async def resolve_by_coordinates(self, lat: float, lng: float) -> str:
        """
        Reverse-geocode a coordinate pair to a city-level name.

        Raises:
            ResolutionError: If nothing is found or the request fails
        """
        result = await self._lookup(
            {"latlng": f"{lat},{lng}", "result_type": REVERSE_RESULT_TYPES},
            f"({lat}, {lng})",
        )
        return result["formatted_address"]

    async def _lookup(self, params: dict, label: str) -> dict:
        """Run one geocoding request and return the first usable result."""
        try:
            response = await self._request(params)
        except httpx.HTTPStatusError as e:
            raise ResolutionError(
                f"Geocoding failed for {label}: HTTP {e.response.status_code}",
                provider=self.provider,
                original_error=e,
            ) from e
        except httpx.HTTPError as e:
            raise ResolutionError(
                f"Geocoding request failed for {label}: {e}",
                provider=self.provider,
                original_error=e,
            ) from e

        try:
            data = response.json()
        except ValueError as e:
            raise ResolutionError(
                f"Geocoding returned a non-JSON body for {label}",
                provider=self.provider,
                original_error=e,
            ) from e

        status = data.get("status", "UNKNOWN")
        if status != "OK":
            detail = data.get("error_message") or status
            raise ResolutionError(
                f"No location found for {label}: {detail}",
                provider=self.provider,
            )

        for result in data.get("results", []):
            if result.get("formatted_address"):
                logger.debug(f"Geocoded {label} -> {result['formatted_address']}")
                return result

        raise ResolutionError(
            f"No location found for {label}: empty results",
            provider=self.provider,
        )

    @RETRY_DECORATOR
    async def _request(self, params: dict) -> httpx.Response:
        response = await self.http_client.get(
            self.config.base_url,
            params={**params, "key": self.config.api_key},
        )
        response.raise_for_status()
        return response
