"""
Redis Cache Store
Persists cache entries as Redis hashes with a sorted-set recency index

Layout (prefix defaults to "activity_cache"):
- {prefix}:entry:{md5(key)}     hash with the encoded CacheEntry
- {prefix}:lru                  sorted set, member=key, score=last access time
- {prefix}:location:{location}  hash with the LocationProfile
"""

import hashlib
from datetime import datetime
from typing import List, Optional

import redis
from loguru import logger

from ..exceptions import MalformedEntry, StoreUnavailable
from ..schemas import CacheEntry, LocationProfile
from .store import (
    DateRange,
    LocationFilter,
    decode_entry,
    decode_profile,
    encode_entry,
    encode_profile,
    matches_candidate,
)


class RedisCacheStore:
    """
    CacheCapableStore backed by Redis.

    Every command failure is raised as StoreUnavailable; SmartCache decides
    whether that becomes a miss or a dropped write.

    Usage:
        store = RedisCacheStore(get_redis_client())
        store.upsert(entry)
        store.get_by_key(entry.key)
    """

    def __init__(self, redis_client: redis.Redis, prefix: str = "activity_cache"):
        """
        Args:
            redis_client: Client created with decode_responses=True
            prefix: Key namespace, so several logical caches can share a DB
        """
        self.redis = redis_client
        self.prefix = prefix
        self.lru_key = f"{prefix}:lru"

    def _entry_key(self, key: str) -> str:
        digest = hashlib.md5(key.encode("utf-8")).hexdigest()
        return f"{self.prefix}:entry:{digest}"

    def _location_key(self, location: str) -> str:
        return f"{self.prefix}:location:{location}"

    def get_by_key(self, key: str) -> Optional[CacheEntry]:
        try:
            record = self.redis.hgetall(self._entry_key(key))
        except redis.RedisError as e:
            raise StoreUnavailable(f"get_by_key failed: {e}") from e

        if not record:
            return None
        return decode_entry(record)

    def upsert(self, entry: CacheEntry) -> None:
        entry_key = self._entry_key(entry.key)
        try:
            pipe = self.redis.pipeline()
            # Replace, never merge with an older record
            pipe.delete(entry_key)
            pipe.hset(entry_key, mapping=encode_entry(entry))
            pipe.zadd(self.lru_key, {entry.key: entry.last_accessed.timestamp()})
            pipe.execute()
        except redis.RedisError as e:
            raise StoreUnavailable(f"upsert failed: {e}") from e

        logger.debug(f"Stored cache entry: {entry.key}")

    def query_candidates(
        self,
        location_filter: LocationFilter,
        date_range: DateRange,
        limit: int
    ) -> List[CacheEntry]:
        if limit <= 0:
            return []
        try:
            keys = self.redis.zrevrange(self.lru_key, 0, -1)
            if not keys:
                return []

            # First pass: only the fields the pre-filter needs
            pipe = self.redis.pipeline()
            for key in keys:
                pipe.hmget(self._entry_key(key), "location", "date")
            headers = pipe.execute()

            matched = []
            stale = []
            for key, (location, day) in zip(keys, headers):
                if location is None:
                    stale.append(key)
                elif matches_candidate(location, day, location_filter, date_range):
                    matched.append(key)

            if stale:
                # Hash gone but index member left behind
                self.redis.zrem(self.lru_key, *stale)

            # Second pass in batches: a malformed record does not use up a slot
            candidates = []
            for start in range(0, len(matched), limit):
                pipe = self.redis.pipeline()
                for key in matched[start:start + limit]:
                    pipe.hgetall(self._entry_key(key))

                for record in pipe.execute():
                    if not record:
                        continue
                    try:
                        candidates.append(decode_entry(record))
                    except MalformedEntry as e:
                        logger.warning(f"Skipping candidate: {e}")
                        continue
                    if len(candidates) >= limit:
                        return candidates
        except redis.RedisError as e:
            raise StoreUnavailable(f"query_candidates failed: {e}") from e

        return candidates

    def delete_many(self, keys: List[str]) -> int:
        if not keys:
            return 0
        try:
            pipe = self.redis.pipeline()
            pipe.delete(*[self._entry_key(key) for key in keys])
            pipe.zrem(self.lru_key, *keys)
            deleted, _ = pipe.execute()
        except redis.RedisError as e:
            raise StoreUnavailable(f"delete_many failed: {e}") from e
        return int(deleted)

    def touch_accessed(self, key: str, at: datetime) -> None:
        entry_key = self._entry_key(key)
        try:
            if not self.redis.exists(entry_key):
                return
            pipe = self.redis.pipeline()
            pipe.hset(entry_key, "last_accessed", at.isoformat())
            pipe.zadd(self.lru_key, {key: at.timestamp()}, xx=True)
            pipe.execute()
        except redis.RedisError as e:
            raise StoreUnavailable(f"touch_accessed failed: {e}") from e

    def count_entries(self) -> int:
        try:
            return int(self.redis.zcard(self.lru_key))
        except redis.RedisError as e:
            raise StoreUnavailable(f"count_entries failed: {e}") from e

    def list_oldest(self, count: int) -> List[str]:
        if count <= 0:
            return []
        try:
            return list(self.redis.zrange(self.lru_key, 0, count - 1))
        except redis.RedisError as e:
            raise StoreUnavailable(f"list_oldest failed: {e}") from e

    def upsert_location_profile(self, profile: LocationProfile) -> None:
        try:
            self.redis.hset(self._location_key(profile.location), mapping=encode_profile(profile))
        except redis.RedisError as e:
            raise StoreUnavailable(f"upsert_location_profile failed: {e}") from e

    def get_location_profile(self, location: str) -> Optional[LocationProfile]:
        try:
            record = self.redis.hgetall(self._location_key(location))
        except redis.RedisError as e:
            raise StoreUnavailable(f"get_location_profile failed: {e}") from e
        return decode_profile(record) if record else None

    def clear(self) -> None:
        """Delete every entry (location profiles are kept)"""
        try:
            entry_keys = list(self.redis.scan_iter(match=f"{self.prefix}:entry:*"))
            if entry_keys:
                self.redis.delete(*entry_keys)
            self.redis.delete(self.lru_key)
            logger.info(f"Cleared {len(entry_keys)} cache entries under '{self.prefix}'")
        except redis.RedisError as e:
            raise StoreUnavailable(f"clear failed: {e}") from e
