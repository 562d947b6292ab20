"""
FastAPI application for Banana Weather.

Streams weather artwork generation to the frontend over SSE and serves
the preset catalogue.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from banana_weather import __version__
from banana_weather.api import routes
from banana_weather.config import get_settings
from banana_weather.logging_config import setup_logging
from banana_weather.services.container import ServiceContainer

# Configure logging before anything else
settings = get_settings()
setup_logging(settings)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Validates configuration and builds the service container, unless one
    was installed on app.state beforehand.
    """
    logger.info("Starting Banana Weather API")
    logger.info(f"Log level: {settings.log_level}")
    logger.info(f"Data directory: {settings.data_dir}")

    owned = getattr(app.state, "services", None) is None
    if owned:
        settings.require_server()
        app.state.services = ServiceContainer.from_settings(settings)

    try:
        yield
    finally:
        if owned:
            await app.state.services.close()
            app.state.services = None
        logger.info("Shutting down Banana Weather API")


app = FastAPI(
    title="Banana Weather API",
    description="AI-generated weather artwork for any location",
    version=__version__,
    lifespan=lifespan,
)

# The frontend is served from a different origin
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(routes.router)


@app.get("/health")
async def health_check() -> dict:
    """
    Health check endpoint.

    Returns:
        Basic health status
    """
    return {"status": "ok"}


@app.get("/health/services")
async def services_health(request: Request) -> dict:
    """
    Check external services availability.

    Returns:
        Availability per provider (geocoding, gemini, gcs, veo)
    """
    services: ServiceContainer = request.app.state.services
    return await services.check_health()


def run(host: str = "0.0.0.0", port: int | None = None, reload: bool = False) -> None:
    """Serve the API with uvicorn."""
    import uvicorn

    uvicorn.run(
        "banana_weather.main:app",
        host=host,
        port=port or settings.port,
        reload=reload,
    )


if __name__ == "__main__":
    run()
