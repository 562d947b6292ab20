"""Tests for the `banana` command-line tool."""

import asyncio
import json
from datetime import timedelta

import pytest

from banana_weather import cli
from banana_weather.models.schemas import Location, LocationStats
from banana_weather.services.container import ServiceContainer
from banana_weather.services.storage import JsonMetadataStore

from fakes import T0, FakeImageGenerator


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    path = tmp_path / "data"
    monkeypatch.setenv("DATA_DIR", str(path))
    return path


@pytest.fixture
def json_store(data_dir, clock) -> JsonMetadataStore:
    return JsonMetadataStore(data_dir, clock=clock)


@pytest.fixture
def fake_services(monkeypatch, make_orchestrator, json_store):
    """Route preset commands to fake generators over the on-disk store."""

    def install(**overrides):
        container = ServiceContainer(json_store, make_orchestrator(store=json_store, **overrides))
        monkeypatch.setattr(cli, "open_services", lambda settings: container)
        return container

    return install


class TestGenerate:
    def test_missing_required_flags_prints_usage(self, data_dir, capsys):
        assert cli.main(["generate", "--id", "x"]) == 1
        assert "Required flags for single mode" in capsys.readouterr().out

    def test_single_preset(self, fake_services, json_store, images):
        fake_services()

        code = cli.main(
            [
                "generate", "--id", "atlantis", "--name", "Atlantis", "--city", "Atlantis",
                "--context", "Sunken city", "--category", "Fantasy", "--style", "2",
            ]
        )

        assert code == 0
        record = asyncio.run(json_store.get("atlantis"))
        assert record.is_preset is True
        assert record.category == "Fantasy"
        assert record.video_url
        assert images.calls[0][1:] == ("Sunken city", 2)

    def test_single_preset_failure_exits_nonzero(self, fake_services):
        fake_services(image_generator=FakeImageGenerator(fail=True))

        assert cli.main(["generate", "--id", "a", "--name", "A", "--city", "A"]) == 1

    def test_batch(self, fake_services, json_store, tmp_path):
        fake_services(image_generator=FakeImageGenerator(fail=True))
        csv_path = tmp_path / "presets.csv"
        csv_path.write_text("id,name,city,category\nrome,Rome,Rome,Europe\n")

        # Batch mode logs row failures and still succeeds
        assert cli.main(["generate", "--csv", str(csv_path)]) == 0

    def test_invalid_style_rejected(self, data_dir):
        with pytest.raises(SystemExit) as exc_info:
            cli.main(["generate", "--style", "banana"])
        assert exc_info.value.code == 2

    def test_missing_configuration(self, data_dir, monkeypatch):
        for name in ("GOOGLE_CLOUD_PROJECT", "PROJECT_ID", "GENMEDIA_BUCKET"):
            monkeypatch.delenv(name, raising=False)

        assert cli.main(["generate", "--id", "a", "--name", "A", "--city", "A"]) == 1


class TestAdmin:
    def test_stats(self, json_store, clock, capsys):
        asyncio.run(json_store.upsert(Location(id="p", is_preset=True)))
        asyncio.run(json_store.upsert(Location(id="u")))

        assert cli.main(["admin", "stats"]) == 0

        out = capsys.readouterr().out
        assert "Total Locations  2" in out
        assert "Presets          1" in out
        assert "User Generated   1" in out

    def test_list_filters_by_type(self, json_store, clock, capsys):
        asyncio.run(json_store.upsert(Location(id="rome", name="Rome", is_preset=True)))
        asyncio.run(json_store.upsert(Location(id="paris__france", name="Paris, France")))

        assert cli.main(["admin", "list", "--type", "preset"]) == 0

        out = capsys.readouterr().out
        assert "Listing top 20 locations (type: preset)" in out
        assert "rome" in out
        assert "paris__france" not in out

    def test_refresh_requires_id(self, data_dir):
        assert cli.main(["admin", "refresh"]) == 1

    def test_refresh_unknown_id(self, fake_services):
        fake_services()
        assert cli.main(["admin", "refresh", "--id", "nowhere"]) == 1

    def test_refresh(self, fake_services, json_store, images):
        asyncio.run(json_store.upsert(Location(id="rome", name="Rome", city_query="Rome, Italy")))
        fake_services()

        assert cli.main(["admin", "refresh", "--id", "rome", "--style", "1"]) == 0
        assert images.calls[0][0] == "Rome, Italy"
        assert asyncio.run(json_store.get("rome")).video_url


class TestMigrate:
    def test_migrate_from_file(self, json_store, tmp_path):
        legacy = tmp_path / "presets.json"
        legacy.write_text(
            json.dumps([{"id": "nyc", "name": "New York", "image_url": "i", "video_url": "v"}])
        )

        assert cli.main(["migrate", "--file", str(legacy)]) == 0

        record = asyncio.run(json_store.get("nyc"))
        assert record.category == "General"
        assert record.city_query == "New York"

    def test_migrate_from_object_store(self, fake_services, json_store, objects):
        objects.objects["presets.json"] = b'[{"id": "rome", "name": "Rome", "category": "Europe"}]'
        fake_services()

        assert cli.main(["migrate"]) == 0
        assert asyncio.run(json_store.get("rome")).is_preset is True

    def test_migrate_bad_file(self, data_dir, tmp_path):
        legacy = tmp_path / "presets.json"
        legacy.write_text("{}")

        assert cli.main(["migrate", "--file", str(legacy)]) == 1


def test_format_stats():
    stats = LocationStats(total=3, presets=1, user_generated=2, last_updated=T0)

    out = cli.format_stats(stats, now=T0 + timedelta(hours=2, minutes=5, seconds=3))

    assert "(2h5m3s ago)" in out


def test_format_stats_without_activity():
    assert "never" in cli.format_stats(LocationStats())


def test_format_locations_truncates_city():
    record = Location(id="x", name="X", city_query="A" * 40, last_updated=T0)

    out = cli.format_locations([record])

    assert "A" * 27 + "..." in out
    assert "01 Jun 12:00" in out
