"""
Logging setup for the API server and the `banana` CLI.

Pipeline log calls may carry job context through `extra=`:

    logger.info("Cache hit", extra=job.log_extra())

`location_id` and `stage` are then rendered in front of the message, so
interleaved lines of concurrent jobs can be told apart:

    2025-06-01 12:00:00 | INFO     | pipeline.orchestrator    | [paris__france cache_hit] Cache hit

Environment:
- LOG_LEVEL: root level (default INFO)
- LOG_FORMAT: structured or simple (default structured)
- LOG_LEVEL_PIPELINE / LOG_LEVEL_CLIENTS / LOG_LEVEL_STORAGE: per-area overrides
"""

import logging
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from banana_weather.config import Settings

PACKAGE = "banana_weather"

# Settings suffix -> logger of that area
AREA_LOGGERS = {
    "pipeline": f"{PACKAGE}.services.pipeline",
    "clients": f"{PACKAGE}.services.clients",
    "storage": f"{PACKAGE}.services.storage",
}

# Request logs of the HTTP clients and the server repeat what the
# pipeline already reports
QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn.access")

JOB_FIELDS = ("location_id", "stage")

SIMPLE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(location_id)s %(stage)s] %(message)s"


def short_name(name: str) -> str:
    """Strip the package prefix: banana_weather.services.pipeline.job -> pipeline.job."""
    for prefix in (f"{PACKAGE}.services.", f"{PACKAGE}."):
        if name.startswith(prefix):
            return name[len(prefix):]
    return name


def job_context(record: logging.LogRecord) -> str:
    """Render `[location_id stage]` for records logged with job extras, else ""."""
    values = [getattr(record, field, "") for field in JOB_FIELDS]
    if not any(value and value != "-" for value in values):
        return ""
    return "[" + " ".join(value or "-" for value in values) + "] "


class JobContextFilter(logging.Filter):
    """Give every record the job fields so %-style formats can reference them."""

    def filter(self, record: logging.LogRecord) -> bool:
        for field in JOB_FIELDS:
            if not getattr(record, field, ""):
                setattr(record, field, "-")
        return True


class StructuredFormatter(logging.Formatter):
    """timestamp | level | logger | [location_id stage] message"""

    def format(self, record: logging.LogRecord) -> str:
        timestamp = self.formatTime(record, "%Y-%m-%d %H:%M:%S")
        line = (
            f"{timestamp} | {record.levelname:8} | {short_name(record.name):24} | "
            f"{job_context(record)}{record.getMessage()}"
        )
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(settings: "Settings") -> None:
    """
    Install a single stdout handler on the root logger.

    Safe to call more than once: previous handlers are replaced.
    """
    root_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(JobContextFilter())
    if settings.log_format == "structured":
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(logging.Formatter(SIMPLE_FORMAT))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(root_level)

    for area, logger_name in AREA_LOGGERS.items():
        override = getattr(settings, f"log_level_{area}", "")
        if override:
            logging.getLogger(logger_name).setLevel(
                getattr(logging, override.upper(), root_level)
            )

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
