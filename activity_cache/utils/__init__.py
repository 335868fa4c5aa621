"""
Utilities Module
Location helpers and cache key builders
"""

from .location import (
    LocationFeatureProvider,
    NeutralLocationProvider,
    StaticLocationProvider,
    city_token,
    split_city_country,
    haversine_km
)
from .cache_keys import (
    generate_cache_key,
    generate_weather_key,
    generate_festival_key
)

__all__ = [
    "LocationFeatureProvider",
    "NeutralLocationProvider",
    "StaticLocationProvider",
    "city_token",
    "split_city_country",
    "haversine_km",
    "generate_cache_key",
    "generate_weather_key",
    "generate_festival_key"
]
