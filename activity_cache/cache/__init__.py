"""
Cache Module
Similarity-based result cache with Redis or in-memory storage
"""

from .redis_client import get_redis_client, check_redis_health
from .store import CacheCapableStore, NullCacheStore, InMemoryCacheStore, LocationFilter, DateRange
from .redis_store import RedisCacheStore
from .candidate_selector import CandidateSelector, Candidate
from .smart_cache import SmartCache
from .context_cache import ContextCache
from .factory import connect_redis, build_stores, create_smart_cache, create_context_cache

__all__ = [
    "get_redis_client",
    "check_redis_health",
    "CacheCapableStore",
    "NullCacheStore",
    "InMemoryCacheStore",
    "LocationFilter",
    "DateRange",
    "RedisCacheStore",
    "CandidateSelector",
    "Candidate",
    "SmartCache",
    "ContextCache",
    "connect_redis",
    "build_stores",
    "create_smart_cache",
    "create_context_cache"
]
