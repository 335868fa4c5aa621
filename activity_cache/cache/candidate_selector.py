"""
Candidate Selector
Narrows the cache down to a handful of plausible matches before scoring

Pre-filter (done by the store):
- Stored location equals the query location, or contains its city token
- Stored date within +/- date_range_days of the query date

Candidates come back most-recently-accessed first, capped at max_candidates.
This can miss a valid match whose location string shares no token with the
query or whose date sits outside the window.
"""

from datetime import timedelta
from typing import List, NamedTuple, Optional

from loguru import logger

from ..algorithms.feature_normalizer import parse_date
from ..schemas import ActivityQuery, CacheEntry
from ..utils.location import LocationFeatureProvider, city_token, haversine_km
from .store import CacheCapableStore, DateRange, LocationFilter


class Candidate(NamedTuple):
    """A cache entry worth scoring, with its distance when geocoding is available"""
    entry: CacheEntry
    distance_km: Optional[float]


class CandidateSelector:
    """
    Fetches scoring candidates for a query

    Usage:
        selector = CandidateSelector(store, date_range_days=14)
        for candidate in selector.find_candidates(query, max_candidates=10):
            ...
    """

    def __init__(
        self,
        store: CacheCapableStore,
        date_range_days: int = 14,
        location_provider: Optional[LocationFeatureProvider] = None
    ):
        self.store = store
        self.date_range_days = date_range_days
        self.location_provider = location_provider

    def find_candidates(self, query: ActivityQuery, max_candidates: int = 10) -> List[Candidate]:
        """
        Get cache entries that plausibly match the query

        Args:
            query: Incoming search request
            max_candidates: Upper bound on returned candidates

        Returns:
            List[Candidate]: Most recently accessed first

        Raises:
            StoreUnavailable: If the store cannot be queried
        """
        day = parse_date(query.date)
        if day is None:
            logger.debug(f"No candidates for unparseable date '{query.date}'")
            return []

        location_filter = LocationFilter(
            exact=query.location.lower().strip(),
            city=city_token(query.location)
        )
        window = timedelta(days=self.date_range_days)
        date_range = DateRange(start=day - window, end=day + window)

        entries = self.store.query_candidates(location_filter, date_range, max_candidates)

        candidates = [
            Candidate(entry=entry, distance_km=self._distance(query.location, entry.location))
            for entry in entries[:max_candidates]
        ]

        logger.debug(
            f"Found {len(candidates)} candidates for '{query.location}' "
            f"({date_range.start} to {date_range.end})"
        )
        return candidates

    def _distance(self, location1: str, location2: str) -> Optional[float]:
        """Haversine distance, or None unless both places are geocoded"""
        if self.location_provider is None:
            return None

        try:
            features1 = self.location_provider.lookup(location1)
            features2 = self.location_provider.lookup(location2)
        except Exception as e:
            logger.warning(f"Location lookup failed: {e}")
            return None

        if features1 is None or features2 is None:
            return None

        return haversine_km(
            features1.latitude, features1.longitude,
            features2.latitude, features2.longitude
        )
