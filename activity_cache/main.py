"""
Activity Cache Service - FastAPI Application
Similarity-based result cache in front of the activity-generation pipeline.

Backend:
- CACHE_BACKEND=redis: Redis, falling back to in-memory if unreachable
- CACHE_BACKEND=memory: in-process store
- CACHE_BACKEND=none: caching disabled, every lookup misses
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from .api import cache_router
from .cache import ContextCache, SmartCache, check_redis_health, connect_redis, create_context_cache, create_smart_cache
from .config import settings

# Configure logging (uvicorn and FastAPI log through the stdlib)
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)


def create_app(
    smart_cache: Optional[SmartCache] = None,
    context_cache: Optional[ContextCache] = None
) -> FastAPI:
    """
    Build the FastAPI application

    Args:
        smart_cache: Pre-built result cache (tests); built from settings if None
        context_cache: Pre-built weather/festival cache; built from settings if None
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler"""
        logger.info("=" * 50)
        logger.info("Starting Activity Cache Service")
        logger.info("=" * 50)
        logger.info(f"Environment: {settings.API_ENV}")
        logger.info(f"Cache backend: {settings.CACHE_BACKEND}")

        redis_client = None
        if smart_cache is None or context_cache is None:
            redis_client = connect_redis(settings)
            logger.info(f"Redis: {'connected' if redis_client is not None else 'not used'}")

        app.state.redis_client = redis_client
        app.state.smart_cache = smart_cache or create_smart_cache(settings, redis_client)
        app.state.context_cache = context_cache or create_context_cache(settings, redis_client)

        yield

        logger.info("Shutting down Activity Cache Service")
        if redis_client is not None:
            redis_client.close()

    app = FastAPI(
        title="Activity Cache Service",
        description="Exact and similarity-based reuse of family activity recommendations.",
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc"
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(cache_router)

    @app.get("/health")
    def health():
        """Service health"""
        redis_client = getattr(app.state, "redis_client", None)
        return {
            "status": "healthy",
            "service": "activity-cache",
            "cache_backend": settings.CACHE_BACKEND,
            "redis": check_redis_health(redis_client) if redis_client is not None else None,
            "timestamp": datetime.now(timezone.utc).isoformat()
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "activity_cache.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=settings.API_ENV == "development"
    )
