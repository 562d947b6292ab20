"""API routes for the weather artwork service."""

from banana_weather.api import routes

__all__ = ["routes"]
