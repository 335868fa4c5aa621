from __future__ import annotations

import threading
from unittest.mock import MagicMock

import pytest
import redis

from activity_cache.cache import ContextCache
from activity_cache.utils.cache_keys import generate_weather_key


WEATHER = {"temperature_min_c": 18, "temperature_max_c": 24, "precipitation_probability_percent": 10}


@pytest.fixture(params=["memory", "redis"])
def context_cache(request, redis_client, clock) -> ContextCache:
    client = redis_client if request.param == "redis" else None
    return ContextCache(
        redis_client=client,
        prefix="test_context",
        weather_max_entries=2,
        festival_max_entries=2,
        clock=clock
    )


# ============================================
# Weather
# ============================================

def test_weather_round_trip(context_cache) -> None:
    assert context_cache.cache_weather("Madrid, Spain", "2025-05-14", WEATHER)

    assert context_cache.get_weather("madrid, spain ", "2025-05-14") == WEATHER


def test_weather_requires_exact_date(context_cache) -> None:
    context_cache.cache_weather("Madrid, Spain", "2025-05-14", WEATHER)

    assert context_cache.get_weather("Madrid, Spain", "2025-05-15") is None
    assert context_cache.get_weather("Oslo, Norway", "2025-05-14") is None


def test_weather_eviction_keeps_recently_read(context_cache) -> None:
    context_cache.cache_weather("Madrid", "2025-05-14", {"day": 14})
    context_cache.cache_weather("Madrid", "2025-05-15", {"day": 15})
    context_cache.get_weather("Madrid", "2025-05-14")

    context_cache.cache_weather("Madrid", "2025-05-16", {"day": 16})

    assert context_cache.get_weather("Madrid", "2025-05-14") == {"day": 14}
    assert context_cache.get_weather("Madrid", "2025-05-15") is None
    assert context_cache.get_weather("Madrid", "2025-05-16") == {"day": 16}


def test_unserializable_weather_is_skipped(context_cache) -> None:
    assert context_cache.cache_weather("Madrid", "2025-05-14", {"sensor": object()}) is False
    assert context_cache.get_weather("Madrid", "2025-05-14") is None


# ============================================
# Festivals
# ============================================

def test_festival_range_covers_target_date(context_cache) -> None:
    festivals = [{"name": "San Isidro", "start_date": "2025-05-15"}]
    context_cache.cache_festivals("Madrid, Spain", "2025-05-01", "2025-05-31", festivals)

    assert context_cache.get_festivals("Madrid, Spain", "2025-05-01") == festivals
    assert context_cache.get_festivals("Madrid, Spain", "2025-05-31") == festivals
    assert context_cache.get_festivals("Madrid, Spain", "2025-06-01") is None
    assert context_cache.get_festivals("Oslo, Norway", "2025-05-15") is None
    assert context_cache.get_festivals("Madrid, Spain", "whenever") is None


def test_most_recently_used_range_wins(context_cache) -> None:
    context_cache.cache_festivals("Madrid", "2025-05-01", "2025-05-31", ["month"])
    context_cache.cache_festivals("Madrid", "2025-05-10", "2025-05-20", ["week"])

    assert context_cache.get_festivals("Madrid", "2025-05-15") == ["week"]
    # only the month range covers the 5th; reading it makes it most recent
    assert context_cache.get_festivals("Madrid", "2025-05-05") == ["month"]
    assert context_cache.get_festivals("Madrid", "2025-05-15") == ["month"]


def test_festival_eviction(context_cache) -> None:
    context_cache.cache_festivals("Madrid", "2025-05-01", "2025-05-07", ["a"])
    context_cache.cache_festivals("Madrid", "2025-05-08", "2025-05-14", ["b"])
    context_cache.cache_festivals("Madrid", "2025-05-15", "2025-05-21", ["c"])

    assert context_cache.get_festivals("Madrid", "2025-05-03") is None
    assert context_cache.get_festivals("Madrid", "2025-05-10") == ["b"]


def test_weather_and_festivals_have_separate_capacity(context_cache) -> None:
    context_cache.cache_festivals("Madrid", "2025-05-01", "2025-05-31", ["month"])
    context_cache.cache_weather("Madrid", "2025-05-14", {"day": 14})
    context_cache.cache_weather("Madrid", "2025-05-15", {"day": 15})

    assert context_cache.get_festivals("Madrid", "2025-05-14") == ["month"]


# ============================================
# Failures
# ============================================

def test_redis_errors_degrade_to_miss_and_skipped_write() -> None:
    client = MagicMock()
    client.hgetall.side_effect = redis.ConnectionError("connection refused")
    client.zrevrange.side_effect = redis.ConnectionError("connection refused")
    client.pipeline.return_value.execute.side_effect = redis.ConnectionError("connection refused")
    cache = ContextCache(redis_client=client)

    assert cache.cache_weather("Madrid", "2025-05-14", WEATHER) is False
    assert cache.get_weather("Madrid", "2025-05-14") is None
    assert cache.get_festivals("Madrid", "2025-05-14") is None


def test_touch_after_eviction_does_not_recreate_record(redis_client, clock) -> None:
    cache = ContextCache(redis_client=redis_client, prefix="test_context", clock=clock)
    cache.cache_weather("Madrid", "2025-05-14", WEATHER)
    key = generate_weather_key("Madrid", "2025-05-14")
    redis_client.delete(cache._record_key(key))
    redis_client.zrem(cache._index_key("weather"), key)

    cache._touch("weather", key)

    assert redis_client.exists(cache._record_key(key)) == 0
    assert redis_client.zcard(cache._index_key("weather")) == 0
    assert cache.get_weather("Madrid", "2025-05-14") is None


# ============================================
# Concurrency
# ============================================

def test_concurrent_writes_with_eviction() -> None:
    cache = ContextCache(weather_max_entries=5, festival_max_entries=5)
    results = []
    errors = []

    def worker(worker_id: int) -> None:
        try:
            for day in range(1, 29):
                date = f"2025-05-{day:02d}"
                results.append(cache.cache_weather(f"City {worker_id}", date, {"day": day}))
                cache.get_weather(f"City {worker_id}", date)
                cache.get_festivals(f"City {worker_id}", date)
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    assert len(results) == 8 * 28
    assert all(results)
    assert len(cache._weather) <= 5
