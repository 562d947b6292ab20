"""
HTTP API routes for the weather frontend.

Provides endpoints for:
- Streaming a weather artwork job (SSE)
- Listing curated presets
"""

import asyncio
import logging
from collections.abc import AsyncGenerator

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse

from banana_weather.models.schemas import LocationFilter, WeatherRequest
from banana_weather.services.clients.base import (
    GenerationError,
    JobCancelledError,
    PersistenceError,
    ResolutionError,
)
from banana_weather.services.pipeline import (
    EventChannel,
    WeatherOrchestrator,
    format_sse,
)
from banana_weather.services.storage.metadata_store import MetadataStore

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["weather"])

# Jobs still running after their client went away (kept referenced until done)
_detached_jobs: set[asyncio.Task] = set()


def get_orchestrator(request: Request) -> WeatherOrchestrator:
    """Orchestrator of the application's service container."""
    return request.app.state.services.orchestrator


def get_store(request: Request) -> MetadataStore:
    """Metadata store of the application's service container."""
    return request.app.state.services.store


def create_sse_response(generator: AsyncGenerator[str, None]) -> StreamingResponse:
    """Create SSE StreamingResponse with proper headers."""
    return StreamingResponse(
        generator,
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",  # Disable nginx buffering
        },
    )


async def stream_weather_job(
    orchestrator: WeatherOrchestrator,
    weather_request: WeatherRequest,
) -> AsyncGenerator[str, None]:
    """
    Run a job and yield its events as SSE.

    If the consumer stops iterating (client disconnect), the job's cancel
    event is set; the job finishes in the background, keeping whatever it
    already stored.

    Yields:
        Named SSE events: status, result, video, error
    """
    channel = EventChannel()
    cancel = asyncio.Event()

    async def run_job() -> None:
        try:
            await orchestrator.run(weather_request, channel, cancel)
        except (ResolutionError, GenerationError) as e:
            logger.error(f"Weather job failed: {e}")
        except JobCancelledError:
            logger.info("Weather job cancelled by client disconnect")
        except Exception:
            logger.exception("Unexpected error in weather job")
        finally:
            channel.close()

    task = asyncio.create_task(run_job())
    drained = False

    try:
        async for event in channel:
            yield format_sse(event)
        drained = True
    finally:
        if not drained and not task.done():
            logger.info("Client disconnected, cancelling weather job")
            cancel.set()
            _detached_jobs.add(task)
            task.add_done_callback(_detached_jobs.discard)


@router.get("/weather")
async def get_weather(
    city: str = "",
    lat: float | None = None,
    lng: float | None = None,
    orchestrator: WeatherOrchestrator = Depends(get_orchestrator),
) -> StreamingResponse:
    """
    Generate (or serve cached) weather artwork with SSE progress.

    Coordinates take precedence when both lat and lng are given; with
    neither city nor coordinates the default city is used.

    Returns:
        text/event-stream of status/result/video/error events
    """
    weather_request = WeatherRequest(city=city, lat=lat, lng=lng)
    return create_sse_response(stream_weather_job(orchestrator, weather_request))


@router.get("/presets")
async def get_presets(store: MetadataStore = Depends(get_store)) -> list[dict]:
    """
    List curated preset locations, most recently updated first.

    Raises:
        500: Store could not be read
    """
    try:
        presets = await store.list(limit=0, filter_by=LocationFilter.PRESET)
    except PersistenceError as e:
        logger.error(f"Failed to get presets from store: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch presets")

    return [preset.model_dump(mode="json") for preset in presets]
