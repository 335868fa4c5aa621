from __future__ import annotations

import pytest

from activity_cache.algorithms.feature_normalizer import normalize_query
from activity_cache.algorithms.similarity_scorer import calculate_similarity
from activity_cache.cache import InMemoryCacheStore, SmartCache
from activity_cache.config import CacheConfig, SimilarityWeights
from activity_cache.exceptions import StoreUnavailable
from activity_cache.schemas import HitType, WeatherInfo
from activity_cache.utils import generate_cache_key


RESULT = {"activities": [{"name": "Retiro Park rowing boats"}]}


class FailingStore:
    """Every operation fails the way an unreachable backend does"""

    def __getattr__(self, name):
        def _fail(*args, **kwargs):
            raise StoreUnavailable(f"{name}: connection refused")
        return _fail


class UntouchableStore(InMemoryCacheStore):
    def touch_accessed(self, key, at):
        raise StoreUnavailable("touch failed")


@pytest.fixture
def cache(memory_store, clock) -> SmartCache:
    return SmartCache(store=memory_store, clock=clock)


@pytest.fixture
def later_query(make_query):
    """Madrid two days later with a slightly different family and forecast"""
    return make_query(
        date="2025-05-16",
        ages=[7, 9],
        weather=WeatherInfo(
            temperature_min_c=19,
            temperature_max_c=23,
            precipitation_probability_percent=8,
        ),
    )


@pytest.fixture
def first_query(make_query):
    return make_query(
        date="2025-05-14",
        ages=[6, 9],
        weather=WeatherInfo(
            temperature_min_c=18,
            temperature_max_c=24,
            precipitation_probability_percent=10,
        ),
    )


# ============================================
# Exact hits
# ============================================

def test_miss_then_exact_hit(cache, make_query) -> None:
    query = make_query()

    assert cache.get(query) is None
    assert cache.put(query, RESULT)

    hit = cache.get(query)
    assert hit.hit_type == HitType.EXACT
    assert hit.similarity == 1.0
    assert hit.result == RESULT
    assert hit.key == generate_cache_key(query)
    assert hit.matched_location == "Madrid, Spain"
    assert hit.matched_date == "2025-05-14"


def test_exact_hit_wins_over_similar_entries(cache, make_query) -> None:
    cache.put(make_query(date="2025-05-14"), {"day": 14})
    cache.put(make_query(date="2025-05-15"), {"day": 15})

    hit = cache.get(make_query(date="2025-05-14"))

    assert hit.hit_type == HitType.EXACT
    assert hit.result == {"day": 14}


def test_exact_hit_ignores_case_and_age_order(cache, make_query) -> None:
    cache.put(make_query(ages=[9, 6]), RESULT)

    hit = cache.get(make_query(location="madrid, spain ", ages=[6, 9]))

    assert hit.hit_type == HitType.EXACT


def test_unparseable_date_still_supports_exact_hits(cache, make_query) -> None:
    query = make_query(date="next weekend")

    assert cache.put(query, RESULT)
    assert cache.get(query).hit_type == HitType.EXACT
    assert cache.get(make_query(date="this weekend")) is None


# ============================================
# Fuzzy hits
# ============================================

def test_nearby_date_and_similar_family_is_a_fuzzy_hit(cache, first_query, later_query) -> None:
    cache.put(first_query, RESULT)

    hit = cache.get(later_query)

    assert hit.hit_type == HitType.FUZZY
    assert hit.similarity == pytest.approx(0.959, abs=0.002)
    assert hit.result == RESULT
    assert hit.key == generate_cache_key(first_query)
    assert hit.matched_date == "2025-05-14"


def test_other_city_misses_and_grows_cache_by_one(cache, memory_store, first_query) -> None:
    cache.put(first_query, RESULT)
    oslo = first_query.model_copy(update={"location": "Oslo, Norway"})

    assert cache.get(oslo) is None

    assert cache.put(oslo, {"activities": []})
    assert memory_store.count_entries() == 2


def test_threshold_is_inclusive(memory_store, clock, first_query, later_query) -> None:
    expected = calculate_similarity(normalize_query(later_query), normalize_query(first_query)).total_score

    at_threshold = SmartCache(memory_store, CacheConfig(min_similarity_score=expected), clock=clock)
    at_threshold.put(first_query, RESULT)
    assert at_threshold.get(later_query).similarity == expected

    above_threshold = SmartCache(memory_store, CacheConfig(min_similarity_score=expected + 1e-6), clock=clock)
    assert above_threshold.get(later_query) is None


def test_different_family_on_a_later_weekend_misses(cache, make_query) -> None:
    cache.put(make_query(ages=[2], duration_hours=2), RESULT)

    assert cache.get(make_query(date="2025-05-24", ages=[15, 17], duration_hours=10)) is None


def test_most_recent_candidate_wins_ties(cache, make_query) -> None:
    cache.put(make_query(query="parks"), {"from": "parks"})
    cache.put(make_query(query="museums"), {"from": "museums"})

    hit = cache.get(make_query(query="zoo"))

    assert hit.hit_type == HitType.FUZZY
    assert hit.result == {"from": "museums"}


def test_fuzzy_hit_refreshes_matched_entry(cache, memory_store, first_query, later_query) -> None:
    cache.put(first_query, RESULT)
    key = generate_cache_key(first_query)
    created = memory_store.get_by_key(key).last_accessed

    cache.get(later_query)

    assert memory_store.get_by_key(key).last_accessed > created


def test_malformed_candidate_is_skipped(cache, memory_store, make_query) -> None:
    cache.put(make_query(date="2025-05-14"), {"day": 14})
    cache.put(make_query(date="2025-05-15"), {"day": 15})
    memory_store._records[generate_cache_key(make_query(date="2025-05-15"))]["feature_vector"] = "{broken"

    hit = cache.get(make_query(date="2025-05-16"))

    assert hit.result == {"day": 14}


def test_malformed_candidate_does_not_block_older_match_on_redis(redis_store, clock, make_query) -> None:
    cache = SmartCache(redis_store, CacheConfig(max_candidates=1), clock=clock)
    cache.put(make_query(date="2025-05-14"), {"day": 14})
    cache.put(make_query(date="2025-05-15"), {"day": 15})
    broken_key = redis_store._entry_key(generate_cache_key(make_query(date="2025-05-15")))
    redis_store.redis.hset(broken_key, "feature_vector", "{broken")

    hit = cache.get(make_query(date="2025-05-16"))

    assert hit is not None
    assert hit.result == {"day": 14}


def test_zero_threshold_accepts_a_zero_score(memory_store, clock, make_query) -> None:
    config = CacheConfig(
        weights=SimilarityWeights(location=0, weather=0, temporal=0, demographic=0),
        min_similarity_score=0,
    )
    cache = SmartCache(memory_store, config, clock=clock)
    cache.put(make_query(date="2025-05-14"), RESULT)

    hit = cache.get(make_query(date="2025-05-15"))

    assert hit.hit_type == HitType.FUZZY
    assert hit.similarity == 0.0


def test_other_feature_version_is_never_fuzzy_matched(cache, memory_store, make_query) -> None:
    cache.put(make_query(), RESULT)
    key = generate_cache_key(make_query())
    entry = memory_store.get_by_key(key)
    memory_store.upsert(entry.model_copy(update={
        "feature_vector": entry.feature_vector.model_copy(update={"version": 2})
    }))

    assert cache.get(make_query(date="2025-05-15")) is None
    # exact hits do not depend on the vector
    assert cache.get(make_query()).hit_type == HitType.EXACT


def test_distance_gate_rejects_same_name_far_away(memory_store, clock, make_query, location_provider) -> None:
    cache = SmartCache(memory_store, location_provider=location_provider, clock=clock)
    cache.put(make_query(location="Madrid, Spain"), RESULT)

    assert cache.get(make_query(location="Madrid, USA")) is None


def test_distance_gate_accepts_nearby_place(memory_store, clock, make_query, location_provider) -> None:
    cache = SmartCache(memory_store, location_provider=location_provider, clock=clock)
    cache.put(make_query(location="Madrid Centro, Spain"), RESULT)

    hit = cache.get(make_query(location="Madrid, Spain"))

    assert hit.hit_type == HitType.FUZZY
    assert hit.similarity == pytest.approx(0.986, abs=0.002)
    assert hit.matched_location == "Madrid Centro, Spain"


# ============================================
# Writes and eviction
# ============================================

def test_eviction_removes_least_recently_accessed(memory_store, clock, make_query) -> None:
    cache = SmartCache(memory_store, CacheConfig(max_entries=3), clock=clock)
    queries = [make_query(date=f"2025-05-{day}") for day in (10, 11, 12, 13)]

    for query in queries:
        cache.put(query, RESULT)

    assert memory_store.count_entries() == 3
    assert memory_store.get_by_key(generate_cache_key(queries[0])) is None


def test_recent_access_protects_from_eviction(memory_store, clock, make_query) -> None:
    cache = SmartCache(memory_store, CacheConfig(max_entries=3), clock=clock)
    q1, q2, q3, q4 = [make_query(date=f"2025-05-{day}") for day in (10, 11, 12, 13)]

    cache.put(q1, RESULT)
    cache.put(q2, RESULT)
    cache.put(q3, RESULT)
    cache.get(q1)
    cache.put(q4, RESULT)

    assert memory_store.get_by_key(generate_cache_key(q1)) is not None
    assert memory_store.get_by_key(generate_cache_key(q2)) is None


def test_put_overwrites_same_key(cache, memory_store, make_query) -> None:
    cache.put(make_query(), {"version": 1})
    cache.put(make_query(), {"version": 2})

    assert memory_store.count_entries() == 1
    assert cache.get(make_query()).result == {"version": 2}


def test_put_records_location_profile(cache, memory_store, make_query) -> None:
    cache.put(make_query(location="Madrid, Spain"), RESULT)

    profile = memory_store.get_location_profile("Madrid, Spain")
    assert (profile.city, profile.country) == ("Madrid", "Spain")
    assert profile.latitude is None


def test_location_profile_uses_provider_coordinates(memory_store, clock, make_query, location_provider) -> None:
    cache = SmartCache(memory_store, location_provider=location_provider, clock=clock)
    cache.put(make_query(location="Madrid, Spain"), RESULT)

    assert memory_store.get_location_profile("Madrid, Spain").latitude == pytest.approx(40.4168)


# ============================================
# Failures
# ============================================

def test_store_failure_is_a_miss_and_a_skipped_write(make_query) -> None:
    cache = SmartCache(store=FailingStore())

    assert cache.get(make_query()) is None
    assert cache.put(make_query(), RESULT) is False
    assert cache.clear() is False

    stats = cache.get_stats()
    assert stats["errors"] == 2
    assert stats["misses"] == 1
    assert stats["total_entries"] is None


def test_failed_touch_does_not_cancel_hit(clock, make_query) -> None:
    cache = SmartCache(store=UntouchableStore(), clock=clock)
    cache.put(make_query(), RESULT)

    assert cache.get(make_query()).hit_type == HitType.EXACT


def test_unserializable_result_is_not_cached(cache, memory_store, make_query) -> None:
    assert cache.put(make_query(), {"when": object()}) is False
    assert memory_store.count_entries() == 0


def test_default_cache_stores_nothing(make_query) -> None:
    cache = SmartCache()

    assert cache.put(make_query(), RESULT)
    assert cache.get(make_query()) is None


# ============================================
# Legacy store
# ============================================

def test_legacy_store_gets_vectorless_copy(memory_store, clock, make_query) -> None:
    legacy = InMemoryCacheStore()
    cache = SmartCache(memory_store, legacy_store=legacy, clock=clock)

    cache.put(make_query(), RESULT)

    entry = legacy.get_by_key(generate_cache_key(make_query()))
    assert entry.feature_vector is None
    assert entry.result == RESULT


def test_exact_lookup_falls_back_to_legacy(memory_store, clock, make_query) -> None:
    legacy = InMemoryCacheStore()
    cache = SmartCache(memory_store, legacy_store=legacy, clock=clock)
    cache.put(make_query(), RESULT)
    memory_store.delete_many([generate_cache_key(make_query())])

    assert cache.get(make_query()).hit_type == HitType.EXACT
    # legacy records never serve fuzzy matches
    assert cache.get(make_query(date="2025-05-15")) is None


def test_legacy_store_has_its_own_capacity(memory_store, clock, make_query) -> None:
    legacy = InMemoryCacheStore()
    cache = SmartCache(memory_store, CacheConfig(legacy_max_entries=2), legacy_store=legacy, clock=clock)

    for day in (10, 11, 12):
        cache.put(make_query(date=f"2025-05-{day}"), RESULT)

    assert memory_store.count_entries() == 3
    assert legacy.count_entries() == 2


# ============================================
# Maintenance
# ============================================

def test_stats_count_hits_and_misses(cache, first_query, later_query, make_query) -> None:
    cache.put(first_query, RESULT)
    cache.get(first_query)
    cache.get(later_query)
    cache.get(make_query(location="Oslo, Norway"))

    stats = cache.get_stats()

    assert stats["exact_hits"] == 1
    assert stats["fuzzy_hits"] == 1
    assert stats["misses"] == 1
    assert stats["errors"] == 0
    assert stats["total_entries"] == 1
    assert stats["threshold"] == 0.90
    assert stats["legacy_entries"] is None


def test_clear(cache, memory_store, make_query) -> None:
    cache.put(make_query(), RESULT)

    assert cache.clear()
    assert memory_store.count_entries() == 0
    assert cache.get(make_query()) is None
