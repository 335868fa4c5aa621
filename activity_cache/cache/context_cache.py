"""
Weather and Festival Context Cache
Strict caching for weather data and range-based caching for festivals

- Weather: one record per (location, exact date)
- Festivals: one record per (location, search window); a lookup for a
  target date returns the most recently used window covering it

Supports Redis for persistence, falls back to in-memory.
"""

import json
import threading
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

import redis
from loguru import logger

from ..algorithms.feature_normalizer import parse_date
from ..utils.cache_keys import generate_festival_key, generate_weather_key
from .store import utcnow


class ContextCache:
    """
    Caches the weather forecast and festival lists that feed an activity query.

    Errors never propagate: lookups return None and writes return False.
    """

    def __init__(
        self,
        redis_client: Optional[redis.Redis] = None,
        prefix: str = "activity_cache",
        weather_max_entries: int = 100,
        festival_max_entries: int = 50,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.redis_client = redis_client
        self.prefix = prefix
        self.weather_max_entries = weather_max_entries
        self.festival_max_entries = festival_max_entries
        self._clock = clock or utcnow

        # In-memory storage: key -> record
        self._weather: Dict[str, Dict[str, Any]] = {}
        self._festivals: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()

        if self.redis_client is None:
            logger.info("ContextCache using in-memory store")

    def _index_key(self, kind: str) -> str:
        return f"{self.prefix}:{kind}:lru"

    def _record_key(self, key: str) -> str:
        return f"{self.prefix}:record:{key}"

    # ============================================
    # Weather
    # ============================================

    def cache_weather(self, location: str, date: str, weather: Any) -> bool:
        """Cache weather data for an exact location and date"""
        key = generate_weather_key(location, date)
        try:
            data = json.dumps(weather)
        except (TypeError, ValueError) as e:
            logger.error(f"Weather data for {key} is not JSON serializable: {e}")
            return False

        record = {"location": location, "date": date, "data": data}
        logger.debug(f"Caching weather data for: {location} {date}")
        return self._save("weather", key, record, self.weather_max_entries)

    def get_weather(self, location: str, date: str) -> Optional[Any]:
        """Get cached weather data (strict location + date match)"""
        key = generate_weather_key(location, date)
        record = self._load("weather", key)
        if record is None:
            return None

        self._touch("weather", key)
        logger.debug(f"Found cached weather data for: {location} {date}")
        return self._decode_data(key, record)

    # ============================================
    # Festivals
    # ============================================

    def cache_festivals(self, location: str, search_start_date: str, search_end_date: str, festivals: Any) -> bool:
        """Cache festival data for a location and search window"""
        key = generate_festival_key(location, search_start_date, search_end_date)
        try:
            data = json.dumps(festivals)
        except (TypeError, ValueError) as e:
            logger.error(f"Festival data for {key} is not JSON serializable: {e}")
            return False

        record = {
            "location": location,
            "search_start_date": search_start_date,
            "search_end_date": search_end_date,
            "data": data,
        }
        logger.debug(f"Caching festival data for: {location} {search_start_date} to {search_end_date}")
        return self._save("festivals", key, record, self.festival_max_entries)

    def get_festivals(self, location: str, target_date: str) -> Optional[Any]:
        """Get festival data from any cached window covering target_date"""
        target = parse_date(target_date)
        if target is None:
            return None

        for key, record in self._recent("festivals"):
            if record.get("location") != location:
                continue
            start = parse_date(record.get("search_start_date"))
            end = parse_date(record.get("search_end_date"))
            if start is None or end is None or not (start <= target <= end):
                continue

            self._touch("festivals", key)
            logger.debug(
                f"Found cached festival data for: {location} covering {target_date} "
                f"from range {start} to {end}"
            )
            return self._decode_data(key, record)

        return None

    # ============================================
    # Storage
    # ============================================

    def _memory(self, kind: str) -> Dict[str, Dict[str, Any]]:
        return self._weather if kind == "weather" else self._festivals

    def _save(self, kind: str, key: str, record: Dict[str, Any], max_entries: int) -> bool:
        now = self._clock()
        record = {**record, "key": key, "created_at": now.isoformat(), "last_accessed": now.timestamp()}

        if self.redis_client is not None:
            try:
                pipe = self.redis_client.pipeline()
                pipe.delete(self._record_key(key))
                pipe.hset(self._record_key(key), mapping={k: str(v) for k, v in record.items()})
                pipe.zadd(self._index_key(kind), {key: now.timestamp()})
                pipe.execute()
                self._evict_redis(kind, max_entries)
                return True
            except redis.RedisError as e:
                logger.error(f"Error caching {kind} data: {e}")
                return False

        with self._lock:
            store = self._memory(kind)
            store[key] = record
            overflow = len(store) - max_entries
            if overflow > 0:
                oldest = sorted(store, key=lambda k: store[k]["last_accessed"])[:overflow]
                for old_key in oldest:
                    del store[old_key]
        return True

    def _evict_redis(self, kind: str, max_entries: int):
        index = self._index_key(kind)
        overflow = self.redis_client.zcard(index) - max_entries
        if overflow <= 0:
            return
        oldest = self.redis_client.zrange(index, 0, overflow - 1)
        pipe = self.redis_client.pipeline()
        pipe.delete(*[self._record_key(key) for key in oldest])
        pipe.zrem(index, *oldest)
        pipe.execute()

    def _load(self, kind: str, key: str) -> Optional[Dict[str, Any]]:
        if self.redis_client is not None:
            try:
                record = self.redis_client.hgetall(self._record_key(key))
                return record or None
            except redis.RedisError as e:
                logger.error(f"Error retrieving cached {kind} data: {e}")
                return None

        with self._lock:
            record = self._memory(kind).get(key)
            return dict(record) if record is not None else None

    def _recent(self, kind: str) -> List[Tuple[str, Dict[str, Any]]]:
        """Records of one kind, most recently accessed first"""
        if self.redis_client is not None:
            try:
                keys = self.redis_client.zrevrange(self._index_key(kind), 0, -1)
                if not keys:
                    return []
                pipe = self.redis_client.pipeline()
                for key in keys:
                    pipe.hgetall(self._record_key(key))
                return [(key, record) for key, record in zip(keys, pipe.execute()) if record]
            except redis.RedisError as e:
                logger.error(f"Error retrieving cached {kind} data: {e}")
                return []

        with self._lock:
            items = [(key, dict(record)) for key, record in self._memory(kind).items()]
        return sorted(items, key=lambda item: item[1]["last_accessed"], reverse=True)

    def _touch(self, kind: str, key: str):
        now = self._clock().timestamp()

        if self.redis_client is not None:
            try:
                # An entry evicted since it was read must not come back as a partial hash
                if not self.redis_client.exists(self._record_key(key)):
                    return
                pipe = self.redis_client.pipeline()
                pipe.hset(self._record_key(key), "last_accessed", str(now))
                pipe.zadd(self._index_key(kind), {key: now}, xx=True)
                pipe.execute()
            except redis.RedisError as e:
                logger.warning(f"Could not update access time for {key}: {e}")
            return

        with self._lock:
            record = self._memory(kind).get(key)
            if record is not None:
                record["last_accessed"] = now

    @staticmethod
    def _decode_data(key: str, record: Dict[str, Any]) -> Optional[Any]:
        try:
            return json.loads(record["data"])
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Failed to parse cached data for {key}: {e}")
            return None
