"""
Shared fixtures for the activity cache tests.

Provides:
- A deterministic clock (one second per call)
- In-memory and fakeredis-backed stores
- A static location provider for the distance gate
- Sample activity queries
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable

import fakeredis
import pytest

from activity_cache.cache import InMemoryCacheStore, RedisCacheStore
from activity_cache.schemas import ActivityQuery, LocationFeatures, WeatherInfo
from activity_cache.utils import StaticLocationProvider


class FakeClock:
    """Returns strictly increasing UTC datetimes"""

    def __init__(self, start: datetime | None = None, step_seconds: int = 1):
        self.now = start or datetime(2025, 5, 1, 12, 0, tzinfo=timezone.utc)
        self.step = timedelta(seconds=step_seconds)

    def __call__(self) -> datetime:
        self.now = self.now + self.step
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_store() -> InMemoryCacheStore:
    return InMemoryCacheStore()


@pytest.fixture
def redis_client():
    client = fakeredis.FakeRedis(decode_responses=True)
    yield client
    client.flushall()


@pytest.fixture
def redis_store(redis_client) -> RedisCacheStore:
    return RedisCacheStore(redis_client, prefix="test_cache")


@pytest.fixture
def location_provider() -> StaticLocationProvider:
    return StaticLocationProvider({
        "madrid, spain": LocationFeatures(latitude=40.4168, longitude=-3.7038, city="Madrid", country="Spain"),
        "madrid centro, spain": LocationFeatures(latitude=40.4200, longitude=-3.7050, city="Madrid", country="Spain"),
        "madrid, usa": LocationFeatures(latitude=41.8758, longitude=-93.8302, city="Madrid", country="USA"),
        "oslo, norway": LocationFeatures(latitude=59.9139, longitude=10.7522, city="Oslo", country="Norway"),
    })


@pytest.fixture
def make_query() -> Callable[..., ActivityQuery]:
    """Factory for a Madrid family query with overridable fields"""

    def _make(**overrides) -> ActivityQuery:
        fields = {
            "location": "Madrid, Spain",
            "date": "2025-05-14",
            "ages": [6, 9],
            "weather": WeatherInfo(
                temperature_min_c=16,
                temperature_max_c=26,
                precipitation_probability_percent=10,
                wind_speed_max_kmh=12,
            ),
        }
        fields.update(overrides)
        return ActivityQuery(**fields)

    return _make
