"""
Cache Store Adapters
The operations the similarity cache needs from a persistent store, plus the
null and in-memory implementations.

Any key-value/document store that can provide these operations is enough:
- get_by_key(key)
- upsert(entry)
- query_candidates(location_filter, date_range, limit)
- delete_many(keys)
- touch_accessed(key, at)
- count_entries()
"""

import json
import threading
from datetime import date, datetime, timezone
from typing import Dict, List, Mapping, NamedTuple, Optional, Protocol

from loguru import logger
from pydantic import ValidationError

from ..exceptions import MalformedEntry
from ..schemas import CacheEntry, FeatureVector, LocationProfile


class LocationFilter(NamedTuple):
    """Stored location must equal `exact` or contain `city`"""
    exact: str
    city: str


class DateRange(NamedTuple):
    start: date
    end: date


class CacheCapableStore(Protocol):
    """Store operations used by SmartCache"""

    def get_by_key(self, key: str) -> Optional[CacheEntry]:
        ...

    def upsert(self, entry: CacheEntry) -> None:
        ...

    def query_candidates(
        self,
        location_filter: LocationFilter,
        date_range: DateRange,
        limit: int
    ) -> List[CacheEntry]:
        ...

    def delete_many(self, keys: List[str]) -> int:
        ...

    def touch_accessed(self, key: str, at: datetime) -> None:
        ...

    def count_entries(self) -> int:
        ...

    def list_oldest(self, count: int) -> List[str]:
        ...

    def upsert_location_profile(self, profile: LocationProfile) -> None:
        ...

    def get_location_profile(self, location: str) -> Optional[LocationProfile]:
        ...

    def clear(self) -> None:
        ...


# ============================================
# Record encoding (flat string maps, Redis-hash friendly)
# ============================================

def encode_entry(entry: CacheEntry) -> Dict[str, str]:
    """Flatten an entry into string fields"""
    record = {
        "key": entry.key,
        "location": entry.location,
        "date": entry.date,
        "result": json.dumps(entry.result),
        "created_at": entry.created_at.isoformat(),
        "last_accessed": entry.last_accessed.isoformat(),
    }
    if entry.feature_vector is not None:
        record["feature_vector"] = entry.feature_vector.model_dump_json()
        record["feature_version"] = str(entry.feature_vector.version)
    return record


def decode_entry(record: Mapping[str, str]) -> CacheEntry:
    """
    Rebuild an entry from its string fields

    Raises:
        MalformedEntry: If any field fails to decode
    """
    key = record.get("key", "<unknown>")
    try:
        vector_json = record.get("feature_vector")
        feature_vector = FeatureVector.model_validate_json(vector_json) if vector_json else None

        return CacheEntry(
            key=record["key"],
            location=record["location"],
            date=record["date"],
            feature_vector=feature_vector,
            result=json.loads(record.get("result") or "null"),
            created_at=datetime.fromisoformat(record["created_at"]),
            last_accessed=datetime.fromisoformat(record["last_accessed"]),
        )
    except (KeyError, ValueError, ValidationError) as e:
        raise MalformedEntry(key, str(e)) from e


def encode_profile(profile: LocationProfile) -> Dict[str, str]:
    return {
        "location": profile.location,
        "city": profile.city,
        "country": profile.country,
        "latitude": "" if profile.latitude is None else str(profile.latitude),
        "longitude": "" if profile.longitude is None else str(profile.longitude),
        "updated_at": profile.updated_at.isoformat(),
    }


def decode_profile(record: Mapping[str, str]) -> LocationProfile:
    return LocationProfile(
        location=record["location"],
        city=record["city"],
        country=record["country"],
        latitude=float(record["latitude"]) if record.get("latitude") else None,
        longitude=float(record["longitude"]) if record.get("longitude") else None,
        updated_at=datetime.fromisoformat(record["updated_at"]),
    )


def matches_candidate(
    stored_location: str,
    stored_date: str,
    location_filter: LocationFilter,
    date_range: DateRange
) -> bool:
    """
    Cheap pre-filter applied before any scoring

    The stored location must equal the query location or contain its
    leading city token, and the stored date must fall inside the range.
    """
    location = (stored_location or "").lower().strip()
    if location != location_filter.exact and location_filter.city not in location:
        return False

    try:
        day = datetime.strptime((stored_date or "").strip()[:10], "%Y-%m-%d").date()
    except ValueError:
        return False

    return date_range.start <= day <= date_range.end


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _accessed_at(record: Mapping[str, str]) -> float:
    try:
        return datetime.fromisoformat(record["last_accessed"]).timestamp()
    except (KeyError, ValueError):
        return 0.0


# ============================================
# Null Store
# ============================================

class NullCacheStore:
    """
    Store used when no backend is configured.
    Every lookup misses and every write is dropped.
    """

    def get_by_key(self, key: str) -> Optional[CacheEntry]:
        return None

    def upsert(self, entry: CacheEntry) -> None:
        return None

    def query_candidates(self, location_filter: LocationFilter, date_range: DateRange, limit: int) -> List[CacheEntry]:
        return []

    def delete_many(self, keys: List[str]) -> int:
        return 0

    def touch_accessed(self, key: str, at: datetime) -> None:
        return None

    def count_entries(self) -> int:
        return 0

    def list_oldest(self, count: int) -> List[str]:
        return []

    def upsert_location_profile(self, profile: LocationProfile) -> None:
        return None

    def get_location_profile(self, location: str) -> Optional[LocationProfile]:
        return None

    def clear(self) -> None:
        return None


# ============================================
# In-Memory Store
# ============================================

class InMemoryCacheStore:
    """
    Process-local store, used when Redis is not available and in tests.

    Records are kept in their encoded form so that decoding behaves exactly
    like a persistent backend.
    """

    def __init__(self):
        self._records: Dict[str, Dict[str, str]] = {}
        self._profiles: Dict[str, Dict[str, str]] = {}
        self._lock = threading.Lock()

    def get_by_key(self, key: str) -> Optional[CacheEntry]:
        with self._lock:
            record = self._records.get(key)
        if record is None:
            return None
        return decode_entry(record)

    def upsert(self, entry: CacheEntry) -> None:
        with self._lock:
            self._records[entry.key] = encode_entry(entry)

    def query_candidates(
        self,
        location_filter: LocationFilter,
        date_range: DateRange,
        limit: int
    ) -> List[CacheEntry]:
        if limit <= 0:
            return []
        with self._lock:
            records = sorted(
                self._records.values(),
                key=_accessed_at,
                reverse=True
            )

        candidates = []
        for record in records:
            if not matches_candidate(record.get("location", ""), record.get("date", ""), location_filter, date_range):
                continue
            try:
                candidates.append(decode_entry(record))
            except MalformedEntry as e:
                logger.warning(f"Skipping candidate: {e}")
                continue
            if len(candidates) >= limit:
                break

        return candidates

    def delete_many(self, keys: List[str]) -> int:
        deleted = 0
        with self._lock:
            for key in keys:
                if self._records.pop(key, None) is not None:
                    deleted += 1
        return deleted

    def touch_accessed(self, key: str, at: datetime) -> None:
        with self._lock:
            record = self._records.get(key)
            if record is not None:
                record["last_accessed"] = at.isoformat()

    def count_entries(self) -> int:
        with self._lock:
            return len(self._records)

    def list_oldest(self, count: int) -> List[str]:
        if count <= 0:
            return []
        with self._lock:
            ordered = sorted(self._records.items(), key=lambda item: _accessed_at(item[1]))
        return [key for key, _ in ordered[:count]]

    def upsert_location_profile(self, profile: LocationProfile) -> None:
        with self._lock:
            self._profiles[profile.location] = encode_profile(profile)

    def get_location_profile(self, location: str) -> Optional[LocationProfile]:
        with self._lock:
            record = self._profiles.get(location)
        return decode_profile(record) if record else None

    def clear(self) -> None:
        with self._lock:
            self._records.clear()

