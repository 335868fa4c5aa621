"""
Location Feature Providers
Geocoding is an external capability; the cache only needs coarse features
and, when available, coordinates for the distance gate.
"""

import math
from typing import Dict, Optional, Protocol, Tuple

from loguru import logger

from ..schemas import LocationFeatures


EARTH_RADIUS_KM = 6371.0


class LocationFeatureProvider(Protocol):
    """Anything that can describe a free-text location"""

    def lookup(self, location: str) -> Optional[LocationFeatures]:
        ...


class NeutralLocationProvider:
    """
    Default provider: knows nothing.

    The normalizer falls back to neutral location features and the scorer's
    distance gate stays disabled.
    """

    def lookup(self, location: str) -> Optional[LocationFeatures]:
        return None


class StaticLocationProvider:
    """
    Table-driven provider for a fixed set of places

    Usage:
        provider = StaticLocationProvider({
            "madrid": LocationFeatures(latitude=40.4168, longitude=-3.7038,
                                       city="Madrid", country="Spain"),
        })
        provider.lookup("Madrid, Spain")  # matched on the leading city token
    """

    def __init__(self, places: Dict[str, LocationFeatures]):
        self._places = {name.lower().strip(): features for name, features in places.items()}

    def lookup(self, location: str) -> Optional[LocationFeatures]:
        normalized = location.lower().strip()
        if normalized in self._places:
            return self._places[normalized]

        city = city_token(location)
        features = self._places.get(city)
        if features is None:
            logger.debug(f"No location features for '{location}'")
        return features


def city_token(location: str) -> str:
    """
    Leading city name of a location string, lower-cased

    Example:
        >>> city_token("Madrid, Spain")
        'madrid'
    """
    return location.split(",")[0].strip().lower()


def split_city_country(location: str) -> Tuple[str, str]:
    """
    Split "City, Region, Country" into (city, country)

    A location without a comma has an unknown country.
    """
    parts = [part.strip() for part in location.split(",")]
    city = parts[0] if parts else ""
    country = parts[-1] if len(parts) > 1 else "unknown"
    return city, country


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points in kilometres"""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(a)))
