"""
API Endpoints Package

Contains the FastAPI router for the cache service:
- cache: result lookup/write-back, weather and festival context
"""

from .cache import router as cache_router

__all__ = [
    "cache_router"
]
