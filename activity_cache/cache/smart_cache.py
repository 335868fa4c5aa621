"""
Smart Cache
Reuses AI-generated activity results for identical or "close enough" searches

Exact key first; otherwise scores a few candidates with the similarity
algorithm and reuses the best one at or above the threshold (0.90).
"""

import threading
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from loguru import logger

from ..algorithms.feature_normalizer import normalize_query
from ..algorithms.similarity_scorer import calculate_similarity, get_match_quality
from ..config import CacheConfig
from ..exceptions import CacheError, MalformedEntry
from ..schemas import (
    FEATURE_VERSION,
    ActivityQuery,
    CacheEntry,
    CacheHit,
    FeatureVector,
    HitType,
    LocationProfile,
)
from ..utils.cache_keys import generate_cache_key
from ..utils.location import LocationFeatureProvider, NeutralLocationProvider, split_city_country
from .candidate_selector import CandidateSelector
from .store import CacheCapableStore, NullCacheStore, utcnow


class SmartCache:
    """
    Similarity-based result cache

    Features:
    - Exact composite-key hits (similarity 1.0)
    - Fuzzy hits over location, weather, temporal and demographic features
    - Capacity-bounded eviction by last access time
    - Optional write-through to a legacy exact-match-only store

    How it works:
    1. Query -> exact key lookup -> hit? touch and return
    2. Else normalize query -> fetch candidates -> score each
    3. Best score >= threshold -> touch and return as fuzzy hit
    4. Else miss -> caller generates results -> cache.put(query, results)

    Usage:
        cache = SmartCache(RedisCacheStore(redis_client), settings.cache_config())

        hit = cache.get(query)
        if hit:
            return hit.result

        # Cache miss - call the AI provider
        results = generate_activities(query)
        cache.put(query, results)

    A store failure never reaches the caller: get() returns None, put()
    returns False.
    """

    def __init__(
        self,
        store: Optional[CacheCapableStore] = None,
        config: Optional[CacheConfig] = None,
        location_provider: Optional[LocationFeatureProvider] = None,
        legacy_store: Optional[CacheCapableStore] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        """
        Initialize Smart Cache

        Args:
            store: Primary store (NullCacheStore when None)
            config: Similarity and capacity settings
            location_provider: Geocoding capability (neutral when None)
            legacy_store: Exact-match-only store written alongside the primary
            clock: Time source for created/accessed timestamps
        """
        self.store = store if store is not None else NullCacheStore()
        self.config = config or CacheConfig()
        self.location_provider = location_provider or NeutralLocationProvider()
        self.legacy_store = legacy_store
        self._clock = clock or utcnow

        self.selector = CandidateSelector(
            self.store,
            date_range_days=self.config.date_range_days,
            location_provider=self.location_provider
        )

        self._stats_lock = threading.Lock()
        self._stats = {"exact_hits": 0, "fuzzy_hits": 0, "misses": 0, "errors": 0}

        logger.info(
            f"Smart Cache initialized: "
            f"threshold={self.config.min_similarity_score}, "
            f"max_entries={self.config.max_entries}, "
            f"legacy={'on' if legacy_store is not None else 'off'}"
        )

    # ============================================
    # Lookup
    # ============================================

    def get(self, query: ActivityQuery) -> Optional[CacheHit]:
        """
        Try to get a cached result for the query

        Args:
            query: Activity search request

        Returns:
            CacheHit or None:
                hit_type "exact" (similarity 1.0) or "fuzzy" (best score)
        """
        key = generate_cache_key(query)

        try:
            hit = self._exact_lookup(key)
            if hit is None:
                hit = self._fuzzy_lookup(query, key)
        except Exception as e:
            logger.error(f"Error getting from cache, treating as miss: {e}")
            self._count("errors")
            self._count("misses")
            return None

        if hit is None:
            self._count("misses")
            return None

        self._count("exact_hits" if hit.hit_type == HitType.EXACT else "fuzzy_hits")
        return hit

    def _exact_lookup(self, key: str) -> Optional[CacheHit]:
        for store in self._stores():
            try:
                entry = store.get_by_key(key)
            except MalformedEntry as e:
                logger.warning(f"Ignoring unreadable exact match: {e}")
                continue

            if entry is None:
                continue

            self._touch(store, entry.key)
            logger.info(f"[Cache Hit] exact: {key}")
            return CacheHit(
                key=entry.key,
                result=entry.result,
                hit_type=HitType.EXACT,
                similarity=1.0,
                matched_location=entry.location,
                matched_date=entry.date
            )

        return None

    def _fuzzy_lookup(self, query: ActivityQuery, key: str) -> Optional[CacheHit]:
        query_vector = normalize_query(query, self.location_provider)
        candidates = self.selector.find_candidates(query, self.config.max_candidates)

        if not candidates:
            logger.debug(f"[Cache Miss] No candidates for: {key}")
            return None

        best_similarity = 0.0
        best_entry: Optional[CacheEntry] = None

        for candidate in candidates:
            entry = candidate.entry
            vector = entry.feature_vector
            if not self._is_comparable(vector):
                logger.debug(f"Skipping candidate without a current feature vector: {entry.key}")
                continue

            breakdown = calculate_similarity(
                query_vector,
                vector,
                location_distance_km=candidate.distance_km,
                weights=self.config.weights,
                max_distance_km=self.config.max_candidate_distance_km,
                day_range=self.config.date_range_days
            )

            # Strictly greater: the most recently accessed wins a tie
            if best_entry is None or breakdown.total_score > best_similarity:
                best_similarity = breakdown.total_score
                best_entry = entry

        if best_entry is None or best_similarity < self.config.min_similarity_score:
            logger.debug(
                f"[Cache Miss] {key} | "
                f"Best similarity: {best_similarity:.3f} < {self.config.min_similarity_score}"
            )
            return None

        self._touch(self.store, best_entry.key)
        logger.info(
            f"[Cache Hit] fuzzy: {key} | "
            f"Matched: {best_entry.key} | "
            f"Similarity: {best_similarity:.3f} ({get_match_quality(best_similarity)})"
        )
        return CacheHit(
            key=best_entry.key,
            result=best_entry.result,
            hit_type=HitType.FUZZY,
            similarity=best_similarity,
            matched_location=best_entry.location,
            matched_date=best_entry.date
        )

    @staticmethod
    def _is_comparable(vector: Optional[FeatureVector]) -> bool:
        return vector is not None and vector.version == FEATURE_VERSION

    def _touch(self, store: CacheCapableStore, key: str):
        """Refresh recency; a failed touch does not cancel the hit"""
        try:
            store.touch_accessed(key, self._clock())
        except CacheError as e:
            logger.warning(f"Could not update access time for {key}: {e}")

    # ============================================
    # Write
    # ============================================

    def put(self, query: ActivityQuery, result: Any) -> bool:
        """
        Store a freshly generated result

        Args:
            query: The query the result was generated for
            result: AI-generated payload (must be JSON serializable)

        Returns:
            bool: True if the primary store accepted the entry
        """
        key = generate_cache_key(query)
        now = self._clock()

        try:
            vector = normalize_query(query, self.location_provider)
            entry = CacheEntry(
                key=key,
                location=query.location,
                date=query.date,
                feature_vector=vector,
                result=result,
                created_at=now,
                last_accessed=now
            )

            self.store.upsert(entry)
            self._upsert_location_profile(query.location, now)
            self._evict(self.store, self.config.max_entries)

            logger.debug(f"Cached result for: {key}")
        except Exception as e:
            logger.error(f"Error caching result for {key}: {e}")
            self._count("errors")
            return False

        if self.legacy_store is not None:
            self._put_legacy(entry)

        return True

    def _put_legacy(self, entry: CacheEntry):
        """Write the exact-match-only record shape"""
        try:
            self.legacy_store.upsert(entry.model_copy(update={"feature_vector": None}))
            self._evict(self.legacy_store, self.config.legacy_max_entries)
        except Exception as e:
            logger.error(f"Error writing legacy cache entry {entry.key}: {e}")
            self._count("errors")

    def _upsert_location_profile(self, location: str, now: datetime):
        city, country = split_city_country(location)
        latitude = longitude = None

        try:
            features = self.location_provider.lookup(location)
        except Exception as e:
            logger.warning(f"Location lookup failed for '{location}': {e}")
            features = None

        if features is not None:
            city = features.city or city
            country = features.country or country
            latitude = features.latitude
            longitude = features.longitude

        self.store.upsert_location_profile(LocationProfile(
            location=location,
            city=city,
            country=country,
            latitude=latitude,
            longitude=longitude,
            updated_at=now
        ))

    def _evict(self, store: CacheCapableStore, max_entries: int):
        """Delete least recently accessed entries down to max_entries"""
        overflow = store.count_entries() - max_entries
        if overflow <= 0:
            return

        oldest = store.list_oldest(overflow)
        deleted = store.delete_many(oldest)
        logger.info(f"Evicted {deleted} least recently used cache entries")

    # ============================================
    # Maintenance
    # ============================================

    def clear(self) -> bool:
        """Clear all cache entries"""
        try:
            for store in self._stores():
                store.clear()
            return True
        except Exception as e:
            logger.error(f"Error clearing cache: {e}")
            return False

    def get_stats(self) -> Dict[str, Any]:
        """
        Get cache statistics

        Returns:
            dict: Entry counts (None when the store is unreachable) and
            hit/miss counters of this process
        """
        with self._stats_lock:
            stats: Dict[str, Any] = dict(self._stats)

        stats.update({
            "threshold": self.config.min_similarity_score,
            "max_entries": self.config.max_entries,
            "total_entries": None,
            "legacy_entries": None,
        })

        try:
            stats["total_entries"] = self.store.count_entries()
            if self.legacy_store is not None:
                stats["legacy_entries"] = self.legacy_store.count_entries()
        except Exception as e:
            logger.error(f"Error getting cache stats: {e}")

        return stats

    def _stores(self):
        if self.legacy_store is None:
            return [self.store]
        return [self.store, self.legacy_store]

    def _count(self, name: str):
        with self._stats_lock:
            self._stats[name] += 1
