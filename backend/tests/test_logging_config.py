"""Tests for log formatting and setup."""

import asyncio
import logging

import pytest

from banana_weather.config import Settings
from banana_weather.logging_config import (
    JobContextFilter,
    StructuredFormatter,
    setup_logging,
    short_name,
)
from banana_weather.models.schemas import WeatherRequest


def make_record(name: str = "banana_weather.services.pipeline.orchestrator", **extra):
    return logging.makeLogRecord(
        {"name": name, "levelname": "INFO", "levelno": logging.INFO, "msg": "Cache hit", **extra}
    )


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    logging.getLogger("banana_weather.services.pipeline").setLevel(logging.NOTSET)


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("banana_weather.services.pipeline.orchestrator", "pipeline.orchestrator"),
        ("banana_weather.api.routes", "api.routes"),
        ("uvicorn.error", "uvicorn.error"),
    ],
)
def test_short_name(name, expected):
    assert short_name(name) == expected


def test_structured_format_renders_job_context():
    record = make_record(location_id="paris__france", stage="cache_hit")

    line = StructuredFormatter().format(record)

    assert line.endswith("| pipeline.orchestrator    | [paris__france cache_hit] Cache hit")


def test_structured_format_without_job_context():
    line = StructuredFormatter().format(make_record(name="banana_weather.cli"))

    assert line.endswith("| cli                      | Cache hit")


def test_filtered_record_without_job_has_no_context():
    record = make_record()
    JobContextFilter().filter(record)

    assert (record.location_id, record.stage) == ("-", "-")
    assert "[" not in StructuredFormatter().format(record)


def test_pipeline_logs_carry_job_context(make_orchestrator, sink, caplog):
    with caplog.at_level(logging.INFO, logger="banana_weather.services.pipeline"):
        asyncio.run(make_orchestrator().run(WeatherRequest(city="Paris"), sink))

    [record] = [r for r in caplog.records if r.getMessage().startswith("Video available")]
    assert record.location_id == "paris__france"
    assert record.stage == "video_ready"


def test_setup_logging_applies_area_override(restore_logging):
    setup_logging(Settings(_env_file=None, log_level="WARNING", log_level_pipeline="DEBUG"))

    root = logging.getLogger()
    assert root.level == logging.WARNING
    [handler] = root.handlers
    assert isinstance(handler.formatter, StructuredFormatter)
    assert any(isinstance(f, JobContextFilter) for f in handler.filters)
    assert logging.getLogger("banana_weather.services.pipeline").level == logging.DEBUG
    assert logging.getLogger("httpx").level == logging.WARNING


def test_setup_logging_simple_format(restore_logging):
    setup_logging(Settings(_env_file=None, log_format="simple"))

    [handler] = logging.getLogger().handlers
    record = make_record(location_id="rome", stage="done")
    handler.filter(record)

    assert handler.format(record).endswith("[rome done] Cache hit")
