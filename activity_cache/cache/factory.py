"""
Cache wiring
Builds the stores selected by CACHE_BACKEND, falling back to memory when
Redis cannot be reached.
"""

from typing import Optional, Tuple

import redis
from loguru import logger

from ..config import Settings, settings as default_settings
from ..utils.location import LocationFeatureProvider
from .context_cache import ContextCache
from .redis_client import get_redis_client
from .redis_store import RedisCacheStore
from .smart_cache import SmartCache
from .store import CacheCapableStore, InMemoryCacheStore, NullCacheStore


def connect_redis(settings: Settings = default_settings) -> Optional[redis.Redis]:
    """Redis client when the backend is redis and reachable, else None"""
    if settings.CACHE_BACKEND.lower() != "redis":
        return None
    try:
        return get_redis_client()
    except redis.RedisError as e:
        logger.warning(f"Redis connection failed, using in-memory store: {e}")
        return None


def build_stores(
    settings: Settings = default_settings,
    redis_client: Optional[redis.Redis] = None
) -> Tuple[CacheCapableStore, Optional[CacheCapableStore]]:
    """
    Build the primary and legacy stores

    Returns:
        (primary, legacy): legacy is None when CACHE_WRITE_LEGACY is off
    """
    backend = settings.CACHE_BACKEND.lower()
    prefix = settings.REDIS_KEY_PREFIX

    if backend == "none":
        logger.info("Result caching disabled (CACHE_BACKEND=none)")
        return NullCacheStore(), None

    if redis_client is not None:
        primary = RedisCacheStore(redis_client, prefix=prefix)
        legacy = RedisCacheStore(redis_client, prefix=f"{prefix}:legacy") if settings.CACHE_WRITE_LEGACY else None
        return primary, legacy

    primary = InMemoryCacheStore()
    legacy = InMemoryCacheStore() if settings.CACHE_WRITE_LEGACY else None
    return primary, legacy


def create_smart_cache(
    settings: Settings = default_settings,
    redis_client: Optional[redis.Redis] = None,
    location_provider: Optional[LocationFeatureProvider] = None
) -> SmartCache:
    """SmartCache configured from settings"""
    primary, legacy = build_stores(settings, redis_client)
    return SmartCache(
        store=primary,
        config=settings.cache_config(),
        location_provider=location_provider,
        legacy_store=legacy
    )


def create_context_cache(
    settings: Settings = default_settings,
    redis_client: Optional[redis.Redis] = None
) -> ContextCache:
    """ContextCache sharing the result cache's Redis connection"""
    return ContextCache(
        redis_client=redis_client,
        prefix=settings.REDIS_KEY_PREFIX,
        weather_max_entries=settings.WEATHER_CACHE_MAX_ENTRIES,
        festival_max_entries=settings.FESTIVAL_CACHE_MAX_ENTRIES
    )
