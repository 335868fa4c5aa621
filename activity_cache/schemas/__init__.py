# schemas/__init__.py
"""
Pydantic Schemas Package

Contains all Pydantic v2 models for:
- Activity queries (the cache key input)
- Feature vectors
- Stored cache entries and location profiles
- API requests/responses
"""

from .cache_schemas import (
    # Versioning
    FEATURE_VERSION,
    # Enums
    HitType,
    # Query
    WeatherInfo, Festival, ActivityQuery,
    # Location
    LocationFeatures,
    # Feature vector
    LocationVector, TemporalVector, WeatherVector, DemographicVector,
    ContextVector, FeatureVector,
    # Records
    CacheEntry, LocationProfile,
    # Results & API
    CacheHit, CacheLookupResponse, CachePutRequest,
    WeatherCachePut, WeatherLookup, FestivalCachePut, FestivalLookup,
)

__all__ = [
    "FEATURE_VERSION",
    "HitType",
    "WeatherInfo", "Festival", "ActivityQuery",
    "LocationFeatures",
    "LocationVector", "TemporalVector", "WeatherVector", "DemographicVector",
    "ContextVector", "FeatureVector",
    "CacheEntry", "LocationProfile",
    "CacheHit", "CacheLookupResponse", "CachePutRequest",
    "WeatherCachePut", "WeatherLookup", "FestivalCachePut", "FestivalLookup",
]
