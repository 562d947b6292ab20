"""Tests for settings and record IDs."""

from datetime import timedelta

import pytest

from banana_weather.config import ConfigError, Settings, get_settings
from banana_weather.models.schemas import location_id
from banana_weather.services.pipeline import OrchestratorConfig


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("San Francisco, CA", "san_francisco__ca"),
        ("san francisco, ca", "san_francisco__ca"),
        ("Paris, France", "paris__france"),
        ("São Paulo", "s_o_paulo"),
        ("abc123", "abc123"),
    ],
)
def test_location_id(name, expected):
    assert location_id(name) == expected


def test_location_id_is_idempotent():
    once = location_id("Zürich, Switzerland")
    assert location_id(once) == once


def test_defaults():
    settings = Settings(_env_file=None)

    assert settings.default_city == "San Francisco"
    assert settings.cache_ttl_hours == 3.0
    assert settings.video_poll_interval == 5.0
    assert settings.port == 8080
    assert settings.public_storage_base_url == "https://storage.googleapis.com"


def test_env_variables(monkeypatch):
    monkeypatch.setenv("GOOGLE_CLOUD_PROJECT", "banana-prod")
    monkeypatch.setenv("GENMEDIA_BUCKET", "banana-media")
    monkeypatch.setenv("CACHE_TTL_HOURS", "1.5")

    settings = get_settings()

    assert settings.google_cloud_project == "banana-prod"
    assert settings.genmedia_bucket == "banana-media"
    assert settings.cache_ttl_hours == 1.5


def test_project_id_fallback(monkeypatch):
    monkeypatch.delenv("GOOGLE_CLOUD_PROJECT", raising=False)
    monkeypatch.setenv("PROJECT_ID", "legacy-project")

    assert Settings(_env_file=None).google_cloud_project == "legacy-project"


def test_require_server_lists_missing(monkeypatch):
    for name in ("GOOGLE_CLOUD_PROJECT", "PROJECT_ID", "GENMEDIA_BUCKET", "GOOGLE_MAPS_API_KEY"):
        monkeypatch.delenv(name, raising=False)
    settings = Settings(_env_file=None, genmedia_bucket="bucket")

    with pytest.raises(ConfigError) as exc_info:
        settings.require_server()

    assert exc_info.value.missing == ["google_cloud_project", "google_maps_api_key"]
    assert "GOOGLE_MAPS_API_KEY" in exc_info.value.message


def test_orchestrator_config_from_settings():
    settings = Settings(
        _env_file=None,
        cache_ttl_hours=2,
        default_city="Oslo",
        public_storage_base_url="https://cdn.example.com",
    )

    config = OrchestratorConfig.from_settings(settings)

    assert config.cache_ttl == timedelta(hours=2)
    assert config.default_city == "Oslo"
    assert config.public_base_url == "https://cdn.example.com"
