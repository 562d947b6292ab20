"""Tests for preset generation, batch runs, refresh and migration."""

import asyncio

import pytest

from banana_weather.models.schemas import (
    LegacyPreset,
    Location,
    PresetAction,
    PresetSpec,
    StyleMode,
)
from banana_weather.services.clients.base import GenerationError, VideoError
from banana_weather.services.presets import (
    PresetNotFoundError,
    PresetService,
    load_legacy_presets,
    parse_preset_csv,
)

from fakes import FakeImageGenerator, FakeVideoGenerator

ATLANTIS = PresetSpec(
    id="atlantis",
    name="Atlantis",
    city="Atlantis",
    category="Fantasy",
    context="Sunken city under the sea",
)


@pytest.fixture
def service(make_orchestrator, store) -> PresetService:
    return PresetService(make_orchestrator(), store)


def existing_record(**fields) -> Location:
    defaults = dict(
        id="atlantis",
        name="Old Name",
        category="Old",
        city_query="Atlantis",
        image_url="https://cdn/old.png",
        video_url="https://cdn/old.mp4",
        is_preset=False,
    )
    defaults.update(fields)
    return Location(**defaults)


class TestGenerate:
    def test_new_preset_full_media(self, service, store, images, objects):
        outcome = asyncio.run(service.generate(ATLANTIS, style=StyleMode.DRINK))

        assert outcome.action == PresetAction.GENERATED
        record = store.records["atlantis"]
        assert record.is_preset is True
        assert record.category == "Fantasy"
        assert record.city_query == "Atlantis"
        assert record.video_url == "https://storage.googleapis.com/test-bucket/videos/out.mp4"
        assert images.calls == [("Atlantis", "Sunken city under the sea", StyleMode.DRINK)]

        [name] = objects.objects
        assert name.startswith("preset_atlantis_image_") and name.endswith(".png")

    def test_existing_preset_patched_without_generation(self, service, store, images, videos):
        store.put(existing_record())

        outcome = asyncio.run(service.generate(ATLANTIS))

        assert outcome.action == PresetAction.PATCHED
        assert images.calls == []
        assert videos.submitted == []
        record = store.records["atlantis"]
        assert (record.name, record.category, record.is_preset) == ("Atlantis", "Fantasy", True)
        assert record.image_url == "https://cdn/old.png"
        assert record.video_url == "https://cdn/old.mp4"

    def test_force_regenerates(self, service, store, images):
        store.put(existing_record())

        outcome = asyncio.run(service.generate(ATLANTIS, force=True))

        assert outcome.action == PresetAction.GENERATED
        assert len(images.calls) == 1
        assert store.records["atlantis"].image_url != "https://cdn/old.png"

    def test_video_failure_is_fatal_for_presets(self, make_orchestrator, store):
        orchestrator = make_orchestrator(video_generator=FakeVideoGenerator(fail_submit=True))

        with pytest.raises(VideoError):
            asyncio.run(PresetService(orchestrator, store).generate(ATLANTIS))
        assert "atlantis" not in store.records

    def test_image_failure_is_fatal(self, make_orchestrator, store):
        orchestrator = make_orchestrator(image_generator=FakeImageGenerator(fail=True))

        with pytest.raises(GenerationError):
            asyncio.run(PresetService(orchestrator, store).generate(ATLANTIS))


class TestBatch:
    CSV = (
        "id,name,city,category,context\n"
        "tokyo,Tokyo,\"Tokyo, Japan\",Asia\n"
        "short,row\n"
        "atlantis,Atlantis,Atlantis,Fantasy,Sunken city\n"
    )

    def test_parse_csv(self, tmp_path):
        path = tmp_path / "presets.csv"
        path.write_text(self.CSV)

        specs, skipped = parse_preset_csv(path)

        assert [s.id for s in specs] == ["tokyo", "atlantis"]
        assert specs[0].city == "Tokyo, Japan"
        assert specs[0].context == ""
        assert specs[1].context == "Sunken city"
        assert skipped == 1

    def test_header_row_always_skipped(self, tmp_path):
        path = tmp_path / "presets.csv"
        path.write_text("tokyo,Tokyo,Tokyo,Asia\n")

        assert parse_preset_csv(path) == ([], 0)

    def test_empty_id_row_skipped(self, tmp_path):
        path = tmp_path / "presets.csv"
        path.write_text("id,name,city,category\n,Nameless,Somewhere,General\n")

        assert parse_preset_csv(path) == ([], 1)

    def test_run_batch_counts(self, service, store, images, tmp_path):
        path = tmp_path / "presets.csv"
        path.write_text(self.CSV)
        store.put(existing_record(id="tokyo"))

        report = asyncio.run(service.run_batch(path))

        assert report.processed == 2
        assert report.patched == 1
        assert report.generated == 1
        assert report.skipped == 1
        assert report.failed == []
        assert [call[0] for call in images.calls] == ["Atlantis"]
        assert all(call[2] == StyleMode.RANDOM for call in images.calls)

    def test_run_batch_continues_after_failure(self, make_orchestrator, store, tmp_path):
        path = tmp_path / "presets.csv"
        path.write_text(self.CSV)
        orchestrator = make_orchestrator(image_generator=FakeImageGenerator(fail=True))

        report = asyncio.run(PresetService(orchestrator, store).run_batch(path))

        assert report.failed == ["tokyo", "atlantis"]
        assert report.generated == 0


class TestRefresh:
    def test_refresh_regenerates_from_city_query(self, service, store, images, objects):
        store.put(existing_record(city_query="Atlantis, Ocean", is_preset=True))

        record = asyncio.run(service.refresh("atlantis", style=StyleMode.CLASSIC))

        assert images.calls == [("Atlantis, Ocean", "", StyleMode.CLASSIC)]
        assert record.name == "Old Name"
        assert record.category == "Old"
        assert record.is_preset is True
        assert record.image_url.startswith("https://storage.googleapis.com/test-bucket/refresh_atlantis_image_")
        assert record.video_url.endswith("/videos/out.mp4")

    def test_refresh_missing_record(self, service):
        with pytest.raises(PresetNotFoundError):
            asyncio.run(service.refresh("nowhere"))


class TestMigrate:
    def test_migrate_entries(self, store):
        entries = [
            LegacyPreset(id="nyc", name="New York", category="", image_url="i", video_url="v"),
            LegacyPreset(id="rome", name="Rome", category="Europe"),
        ]

        report = asyncio.run(PresetService(None, store).migrate(entries))

        assert report.migrated == 2
        nyc = store.records["nyc"]
        assert nyc.city_query == "New York"
        assert nyc.category == "General"
        assert nyc.is_preset is True
        assert (nyc.image_url, nyc.video_url) == ("i", "v")
        assert store.records["rome"].category == "Europe"

    def test_migrate_counts_failures(self, store):
        entries = [LegacyPreset(id="", name="Broken"), LegacyPreset(id="ok", name="Fine")]

        report = asyncio.run(PresetService(None, store).migrate(entries))

        assert report.migrated == 1
        assert report.failed == [""]

    def test_load_legacy_presets(self):
        data = b'[{"id": "nyc", "name": "New York", "image_url": "i", "video_url": "v"}]'

        [entry] = load_legacy_presets(data)

        assert entry.id == "nyc"
        assert entry.category == ""

    def test_load_legacy_presets_requires_list(self):
        with pytest.raises(ValueError):
            load_legacy_presets(b'{"id": "nyc"}')
