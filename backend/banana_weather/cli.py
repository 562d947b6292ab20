"""
`banana` command-line tool.

Commands:
    banana generate --id ID --name NAME --city CITY [--category C] [--context X]
                    [--style 0|1|2] [--force]
    banana generate --csv presets.csv [--force]
    banana admin stats
    banana admin list [--limit 20] [--type all|preset|user]
    banana admin refresh --id ID [--style 0|1|2]
    banana migrate [--file presets.json | --object presets.json]
    banana serve [--host 0.0.0.0] [--port 8080]
"""

import argparse
import asyncio
import inspect
import logging
import sys
from datetime import datetime
from pathlib import Path

from banana_weather import __version__
from banana_weather.config import ConfigError, Settings, get_settings
from banana_weather.logging_config import setup_logging
from banana_weather.models.schemas import (
    Location,
    LocationFilter,
    LocationStats,
    PresetSpec,
    StyleMode,
    utcnow,
)
from banana_weather.services.clients.base import ServiceError
from banana_weather.services.container import ServiceContainer
from banana_weather.services.presets import (
    PresetNotFoundError,
    PresetService,
    load_legacy_presets,
)
from banana_weather.services.storage.metadata_store import JsonMetadataStore

logger = logging.getLogger("banana_weather.cli")

SINGLE_MODE_USAGE = """\
Usage: banana generate [flags]

Required flags for single mode:
  --id       Unique identifier (e.g., 'my_preset')
  --name     Display name (e.g., 'My Preset')
  --city     City query or concept (e.g., 'Atlantis')

Optional flags:
  --category Grouping category (default: 'General')
  --context  Visual description for fictional places
  --style    Prompt style: 0=Random, 1=Classic, 2=Drink (default: 0)
  --force    Overwrite existing preset media

Or use batch mode:
  --csv      Path to CSV file (id,name,city,category,context)"""

CITY_COLUMN_WIDTH = 30


def open_services(settings: Settings) -> ServiceContainer:
    """Build the generation services for preset commands."""
    settings.require("google_cloud_project", "genmedia_bucket")
    return ServiceContainer.from_settings(settings, with_resolver=False)


def _style(value: str) -> StyleMode:
    try:
        return StyleMode(int(value))
    except ValueError:
        raise argparse.ArgumentTypeError(
            f"invalid style {value!r} (0=Random, 1=Classic, 2=Drink)"
        ) from None


def format_age(moment: datetime, now: datetime) -> str:
    """Elapsed time as e.g. '2h5m3s'."""
    seconds = max(0, int((now - moment).total_seconds()))
    hours, rest = divmod(seconds, 3600)
    minutes, seconds = divmod(rest, 60)
    if hours:
        return f"{hours}h{minutes}m{seconds}s"
    if minutes:
        return f"{minutes}m{seconds}s"
    return f"{seconds}s"


def format_stats(stats: LocationStats, now: datetime | None = None) -> str:
    """Render collection statistics as a two-column table."""
    now = now or utcnow()
    if stats.last_updated:
        activity = (
            f"{stats.last_updated.strftime('%d %b %y %H:%M %Z')} "
            f"({format_age(stats.last_updated, now)} ago)"
        )
    else:
        activity = "never"

    rows = [
        ("Metric", "Value"),
        ("------", "-----"),
        ("Total Locations", str(stats.total)),
        ("Presets", str(stats.presets)),
        ("User Generated", str(stats.user_generated)),
        ("Last Activity", activity),
    ]
    width = max(len(label) for label, _ in rows) + 2
    return "\n".join(f"{label:<{width}}{value}" for label, value in rows)


def format_locations(locations: list[Location]) -> str:
    """Render a location listing as an aligned table."""
    rows = [("ID", "Name", "Type", "City", "Updated"), ("--", "----", "----", "----", "-------")]
    for location in locations:
        city = location.city_query
        if len(city) > CITY_COLUMN_WIDTH:
            city = city[: CITY_COLUMN_WIDTH - 3] + "..."
        updated = location.last_updated.strftime("%d %b %H:%M") if location.last_updated else "-"
        rows.append(
            (
                location.id,
                location.name,
                "Preset" if location.is_preset else "User",
                city,
                updated,
            )
        )

    widths = [max(len(row[i]) for row in rows) + 2 for i in range(len(rows[0]))]
    return "\n".join(
        "".join(f"{cell:<{width}}" for cell, width in zip(row, widths)).rstrip()
        for row in rows
    )


# ═══════════════════════════════════════════════════════════════════════════
# Commands
# ═══════════════════════════════════════════════════════════════════════════


async def cmd_generate(args: argparse.Namespace, settings: Settings) -> int:
    if not args.csv and not (args.id and args.name and args.city):
        print(SINGLE_MODE_USAGE)
        return 1

    async with open_services(settings) as services:
        if args.csv:
            await services.presets.run_batch(Path(args.csv), force=args.force)
            logger.info("Done.")
            return 0

        spec = PresetSpec(
            id=args.id,
            name=args.name,
            city=args.city,
            category=args.category,
            context=args.context,
        )
        outcome = await services.presets.generate(spec, force=args.force, style=args.style)
        logger.info(f"Done: {spec.id} ({outcome.action.value})")
        return 0


async def cmd_admin_stats(args: argparse.Namespace, settings: Settings) -> int:
    store = JsonMetadataStore(settings.data_dir)
    print("Fetching stats...")
    print(format_stats(await store.aggregate_counts()))
    return 0


async def cmd_admin_list(args: argparse.Namespace, settings: Settings) -> int:
    store = JsonMetadataStore(settings.data_dir)
    print(f"Listing top {args.limit} locations (type: {args.type})...")
    locations = await store.list(limit=args.limit, filter_by=LocationFilter(args.type))
    print(format_locations(locations))
    return 0


async def cmd_admin_refresh(args: argparse.Namespace, settings: Settings) -> int:
    if not args.id:
        logger.error("id is required (use --id)")
        return 1

    async with open_services(settings) as services:
        await services.presets.refresh(args.id, style=args.style)
    return 0


async def cmd_migrate(args: argparse.Namespace, settings: Settings) -> int:
    if args.file:
        logger.info(f"Reading {args.file}...")
        data = Path(args.file).read_bytes()
        service = PresetService(None, JsonMetadataStore(settings.data_dir))
        report = await service.migrate(load_legacy_presets(data))
    else:
        async with open_services(settings) as services:
            if services.object_store is None:
                raise ConfigError("Object store not configured", ["genmedia_bucket"])
            logger.info(f"Reading {args.object} from object storage...")
            data = await services.object_store.read(args.object)
            report = await services.presets.migrate(load_legacy_presets(data))

    return 1 if report.failed else 0


def cmd_serve(args: argparse.Namespace, settings: Settings) -> int:
    from banana_weather.main import run

    run(host=args.host, port=args.port, reload=args.reload)
    return 0


# ═══════════════════════════════════════════════════════════════════════════
# Entry point
# ═══════════════════════════════════════════════════════════════════════════


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="banana",
        description="Banana Weather: manage presets, the location database and the API server.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    commands = parser.add_subparsers(dest="command", required=True)

    generate = commands.add_parser("generate", help="Generate presets or single locations")
    generate.add_argument("--csv", help="Path to CSV file (format: id,name,city,category,context)")
    generate.add_argument("--force", action="store_true", help="Force overwrite existing presets")
    generate.add_argument("--id", default="", help="Unique ID")
    generate.add_argument("--name", default="", help="Display name")
    generate.add_argument("--city", default="", help="City name")
    generate.add_argument("--category", default="General", help="Category name")
    generate.add_argument("--context", default="", help="Extra prompt context")
    generate.add_argument(
        "--style",
        type=_style,
        default=StyleMode.RANDOM,
        help="Prompt style: 0=Random, 1=Classic, 2=Drink",
    )
    generate.set_defaults(handler=cmd_generate)

    admin = commands.add_parser("admin", help="Administrative tasks")
    admin_commands = admin.add_subparsers(dest="admin_command", required=True)

    stats = admin_commands.add_parser("stats", help="Show database statistics")
    stats.set_defaults(handler=cmd_admin_stats)

    listing = admin_commands.add_parser("list", help="List locations")
    listing.add_argument("--limit", type=int, default=20, help="Max number of results")
    listing.add_argument(
        "--type",
        choices=[f.value for f in LocationFilter],
        default=LocationFilter.ALL.value,
        help="Filter by type: all, preset, user",
    )
    listing.set_defaults(handler=cmd_admin_list)

    refresh = admin_commands.add_parser("refresh", help="Refresh a location's media")
    refresh.add_argument("--id", default="", help="Location ID to refresh")
    refresh.add_argument("--style", type=_style, default=StyleMode.RANDOM)
    refresh.set_defaults(handler=cmd_admin_refresh)

    migrate = commands.add_parser("migrate", help="Migrate legacy presets")
    source = migrate.add_mutually_exclusive_group()
    source.add_argument("--file", help="Local presets.json")
    source.add_argument("--object", default="presets.json", help="Object name in the bucket")
    migrate.set_defaults(handler=cmd_migrate)

    serve = commands.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=None)
    serve.add_argument("--reload", action="store_true")
    serve.set_defaults(handler=cmd_serve)

    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point; returns the process exit code."""
    args = build_parser().parse_args(argv)
    settings = get_settings()
    setup_logging(settings)

    try:
        if inspect.iscoroutinefunction(args.handler):
            return asyncio.run(args.handler(args, settings))
        return args.handler(args, settings)
    except ConfigError as e:
        logger.error(f"Configuration error: {e.message}")
    except PresetNotFoundError as e:
        logger.error(str(e))
    except ServiceError as e:
        logger.error(f"Error: {e}")
    except (OSError, ValueError) as e:
        logger.error(f"Error: {e}")
    return 1


if __name__ == "__main__":
    sys.exit(main())
