"""
Banana Weather: AI-generated weather artwork for any location.

Resolves a city or coordinate pair, serves a cached illustration when one is
fresh, and otherwise generates a new image (and an animated video) while
streaming progress to the caller.
"""

__version__ = "0.3.0"
