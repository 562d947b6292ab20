"""
Construction of the production service graph from settings.

Example:
    async with ServiceContainer.from_settings(settings) as services:
        outcome = await services.orchestrator.run(request, sink)
"""

import logging

from banana_weather.config import Settings
from banana_weather.services.clients.base import BaseHTTPClient, ObjectStore
from banana_weather.services.clients.gcs_object_store import GcsObjectStore
from banana_weather.services.clients.gemini_image_client import GeminiImageClient
from banana_weather.services.clients.geocoding_client import GeocodingClient
from banana_weather.services.clients.veo_client import VeoClient
from banana_weather.services.pipeline.orchestrator import (
    OrchestratorConfig,
    WeatherOrchestrator,
)
from banana_weather.services.pipeline.video_poller import VideoPoller
from banana_weather.services.presets import PresetService
from banana_weather.services.storage.metadata_store import JsonMetadataStore, MetadataStore

logger = logging.getLogger(__name__)


class ServiceContainer:
    """
    Owns the HTTP clients and the services built on top of them.

    Attributes:
        store: Metadata store
        orchestrator: Weather pipeline
        presets: Preset management
    """

    def __init__(
        self,
        store: MetadataStore,
        orchestrator: WeatherOrchestrator,
        clients: list[BaseHTTPClient] | None = None,
    ):
        self.store = store
        self.orchestrator = orchestrator
        self.presets = PresetService(orchestrator, store)
        self._clients = clients or []

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        with_resolver: bool = True,
    ) -> "ServiceContainer":
        """
        Build all clients and services.

        Object storage and video generation are enabled only when a bucket
        is configured.

        Args:
            settings: Application settings
            with_resolver: Build the geocoding client (preset tooling
                works on explicit city queries and does not need it)

        Raises:
            ConfigError: If a client's required settings are missing
        """
        store = JsonMetadataStore(settings.data_dir)

        gemini = GeminiImageClient.from_settings(settings)
        clients: list[BaseHTTPClient] = [gemini]

        geocoding = None
        if with_resolver:
            geocoding = GeocodingClient.from_settings(settings)
            clients.append(geocoding)

        object_store = None
        veo = None
        poller = None
        if settings.genmedia_bucket:
            object_store = GcsObjectStore.from_settings(settings)
            veo = VeoClient.from_settings(settings)
            poller = VideoPoller(
                veo,
                interval=settings.video_poll_interval,
                timeout=settings.video_poll_timeout,
            )
            clients += [object_store, veo]
        else:
            logger.warning("GENMEDIA_BUCKET not set: uploads and video generation disabled")

        orchestrator = WeatherOrchestrator(
            resolver=geocoding,
            store=store,
            image_generator=gemini,
            object_store=object_store,
            video_generator=veo,
            poller=poller,
            config=OrchestratorConfig.from_settings(settings),
        )
        return cls(store, orchestrator, clients)

    @property
    def object_store(self) -> ObjectStore | None:
        return self.orchestrator.object_store

    async def check_health(self) -> dict[str, bool]:
        """Availability of each external client, keyed by provider."""
        return {client.provider: await client.check_health() for client in self._clients}

    async def close(self) -> None:
        for client in self._clients:
            await client.close()

    async def __aenter__(self) -> "ServiceContainer":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
