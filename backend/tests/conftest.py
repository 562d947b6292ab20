"""Shared fixtures."""

import pytest

from banana_weather.config import Settings, get_settings
from banana_weather.services.pipeline import (
    OrchestratorConfig,
    VideoPoller,
    WeatherOrchestrator,
)

from fakes import (
    Clock,
    FakeImageGenerator,
    FakeObjectStore,
    FakeResolver,
    FakeVideoGenerator,
    InMemoryMetadataStore,
    RecordingEventSink,
)


@pytest.fixture(autouse=True)
def clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(_env_file=None, data_dir=tmp_path / "data")


@pytest.fixture
def clock() -> Clock:
    return Clock()


@pytest.fixture
def store(clock) -> InMemoryMetadataStore:
    return InMemoryMetadataStore(clock)


@pytest.fixture
def resolver() -> FakeResolver:
    return FakeResolver({"Paris": "Paris, France"})


@pytest.fixture
def images() -> FakeImageGenerator:
    return FakeImageGenerator()


@pytest.fixture
def objects() -> FakeObjectStore:
    return FakeObjectStore()


@pytest.fixture
def videos() -> FakeVideoGenerator:
    return FakeVideoGenerator()


@pytest.fixture
def sink() -> RecordingEventSink:
    return RecordingEventSink()


@pytest.fixture
def make_orchestrator(resolver, store, images, objects, videos, clock):
    """Factory: orchestrator over the fake ports, overridable per test."""

    def build(**overrides) -> WeatherOrchestrator:
        parts = {
            "resolver": resolver,
            "store": store,
            "image_generator": images,
            "object_store": objects,
            "video_generator": videos,
            "config": OrchestratorConfig(),
            "clock": clock,
        }
        parts.update(overrides)
        if "poller" not in parts and parts["video_generator"] is not None:
            parts["poller"] = VideoPoller(parts["video_generator"], interval=0, timeout=5)
        return WeatherOrchestrator(**parts)

    return build
