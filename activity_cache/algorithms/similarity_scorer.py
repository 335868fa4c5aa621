"""
Similarity Score Algorithm
Calculates how interchangeable two cached searches are (0.0-1.0)

Algorithm Components (default weights):
1. Location (20%) - Only when the distance is known; acts as a hard gate
2. Weather (40%) - Temperature, rain, suitability and wind
3. Temporal (30%) - Season, day-of-year window, weekend and holidays
4. Demographic (10%) - Age bands, average age and duration

Without a known distance the location term is dropped and the remaining
weights are renormalized.
"""

from typing import NamedTuple, Optional

import numpy as np
from loguru import logger

from ..config import SimilarityWeights
from ..schemas import (
    FeatureVector,
    WeatherVector,
    TemporalVector,
    DemographicVector,
)


DEFAULT_MAX_DISTANCE_KM = 20.0
DEFAULT_DAY_RANGE = 14

# One season step on the season/3 scale, with float slack
ADJACENT_SEASON_DIFF = 1 / 3 + 1e-9


class SimilarityBreakdown(NamedTuple):
    """
    Breakdown of similarity score components
    """
    location_score: Optional[float]  # None when distance is unknown
    weather_score: float
    temporal_score: float
    demographic_score: float
    total_score: float            # 0.0-1.0
    gated: bool                   # True when rejected by the distance cutoff

    def __repr__(self) -> str:
        location = "n/a" if self.location_score is None else f"{self.location_score:.2f}"
        return (
            f"Similarity(total={self.total_score:.3f}, "
            f"location={location}, "
            f"weather={self.weather_score:.2f}, "
            f"temporal={self.temporal_score:.2f}, "
            f"demographic={self.demographic_score:.2f}, "
            f"gated={self.gated})"
        )


def calculate_similarity(
    features1: FeatureVector,
    features2: FeatureVector,
    location_distance_km: Optional[float] = None,
    weights: Optional[SimilarityWeights] = None,
    max_distance_km: float = DEFAULT_MAX_DISTANCE_KM,
    day_range: int = DEFAULT_DAY_RANGE
) -> SimilarityBreakdown:
    """
    Calculate the weighted similarity of two feature vectors

    Args:
        features1: Feature vector of the incoming query
        features2: Feature vector of a cached entry
        location_distance_km: Distance between the two locations (None = unknown)
        weights: Dimension weights (defaults: 0.2/0.4/0.3/0.1)
        max_distance_km: Distance beyond which the score is 0
        day_range: Day-of-year window in days

    Returns:
        SimilarityBreakdown: Detailed similarity breakdown

    Example:
        >>> breakdown = calculate_similarity(vector_a, vector_b, location_distance_km=25)
        >>> breakdown.total_score
        0.0
    """
    weights = weights or SimilarityWeights()

    # ============================================
    # 1. Location gate
    # ============================================
    location_score = None
    if location_distance_km is not None:
        if location_distance_km > max_distance_km:
            breakdown = SimilarityBreakdown(
                location_score=0.0,
                weather_score=0.0,
                temporal_score=0.0,
                demographic_score=0.0,
                total_score=0.0,
                gated=True
            )
            logger.debug(f"Similarity gated at {location_distance_km:.1f} km: {breakdown}")
            return breakdown
        location_score = max(0.0, 1 - location_distance_km / max_distance_km)

    # ============================================
    # 2-4. Weather, temporal, demographic
    # ============================================
    weather_score = calculate_weather_similarity(features1.weather, features2.weather)
    temporal_score = calculate_temporal_similarity(features1.temporal, features2.temporal, day_range)
    demographic_score = calculate_demographic_similarity(features1.demographic, features2.demographic)

    # ============================================
    # Weighted total over the present dimensions
    # ============================================
    scores = [weather_score, temporal_score, demographic_score]
    dimension_weights = [weights.weather, weights.temporal, weights.demographic]
    if location_score is not None:
        scores.insert(0, location_score)
        dimension_weights.insert(0, weights.location)

    total_weight = float(np.sum(dimension_weights))
    if total_weight > 0:
        total = float(np.dot(scores, dimension_weights)) / total_weight
    else:
        total = 0.0

    breakdown = SimilarityBreakdown(
        location_score=location_score,
        weather_score=weather_score,
        temporal_score=temporal_score,
        demographic_score=demographic_score,
        total_score=float(np.clip(total, 0.0, 1.0)),
        gated=False
    )

    logger.debug(f"Similarity calculated: {breakdown}")

    return breakdown


def calculate_weather_similarity(weather1: WeatherVector, weather2: WeatherVector) -> float:
    """
    Weather similarity (0.0-1.0)

    Logic:
    - Temperature: 1 - 2*diff (40%)
    - Precipitation: 1 - 1.5*diff, at least 0.9 when both are dry (30%)
    - Suitability alignment: 1 - diff (20%)
    - Wind: 1 - diff (10%)
    """
    temp_similarity = max(0.0, 1 - abs(weather1.avg_temperature - weather2.avg_temperature) * 2)

    precip_similarity = max(0.0, 1 - abs(weather1.precipitation - weather2.precipitation) * 1.5)
    if weather1.precipitation < 0.2 and weather2.precipitation < 0.2:
        precip_similarity = max(precip_similarity, 0.9)

    suitability_similarity = max(
        0.0, 1 - abs(weather1.weather_suitability - weather2.weather_suitability)
    )
    wind_similarity = max(0.0, 1 - abs(weather1.wind_speed - weather2.wind_speed))

    return (
        temp_similarity * 0.4
        + precip_similarity * 0.3
        + suitability_similarity * 0.2
        + wind_similarity * 0.1
    )


def calculate_temporal_similarity(
    temporal1: TemporalVector,
    temporal2: TemporalVector,
    day_range: int = DEFAULT_DAY_RANGE
) -> float:
    """
    Temporal similarity (0.0-1.0)

    Logic:
    - Same or adjacent season: 1 - 1.5*diff, opposite seasons: 0.2 (40%)
    - Day of year inside the day_range window (30%)
    - Weekend/weekday match 1.0, mismatch 0.7 (20%)
    - Holiday bonus, capped at 0.1
    """
    season_diff = abs(temporal1.season - temporal2.season)
    if season_diff <= ADJACENT_SEASON_DIFF:
        season_similarity = 1 - season_diff * 1.5
    else:
        season_similarity = 0.2

    day_diff = abs(temporal1.day_of_year - temporal2.day_of_year)
    window = day_range / 365
    if window > 0:
        day_similarity = max(0.0, 1 - day_diff / window)
    else:
        day_similarity = 1.0 if day_diff == 0 else 0.0

    weekend_match = 1.0 if temporal1.is_weekend == temporal2.is_weekend else 0.7

    holiday_bonus = (temporal1.holiday_proximity + temporal2.holiday_proximity) * 0.1

    return (
        season_similarity * 0.4
        + day_similarity * 0.3
        + weekend_match * 0.2
        + min(holiday_bonus, 0.1)
    )


def calculate_demographic_similarity(demo1: DemographicVector, demo2: DemographicVector) -> float:
    """
    Demographic similarity

    Logic:
    - Each of the four age bands: same presence 1.0, one-sided 0.7 (x0.15)
    - Average age: 1 - 2*diff (30%)
    - Duration: 1 - 1.5*diff (30%)

    Not clamped: identical groups score 1.2 and the overall total is clamped.
    """
    band_matches = (
        _group_match(demo1.has_toddlers, demo2.has_toddlers)
        + _group_match(demo1.has_preschool, demo2.has_preschool)
        + _group_match(demo1.has_school_age, demo2.has_school_age)
        + _group_match(demo1.has_teens, demo2.has_teens)
    )

    age_similarity = max(0.0, 1 - abs(demo1.avg_age - demo2.avg_age) * 2)
    duration_similarity = max(0.0, 1 - abs(demo1.duration - demo2.duration) * 1.5)

    return band_matches * 0.15 + age_similarity * 0.3 + duration_similarity * 0.3


def _group_match(has1: float, has2: float) -> float:
    """1.0 when both agree, 0.7 when only one side has the age band"""
    if has1 == has2:
        return 1.0
    if has1 == 1 or has2 == 1:
        return 0.7
    return 0.0


# ============================================
# Utility Functions
# ============================================

def get_match_quality(similarity: float) -> str:
    """
    Human-readable similarity description

    Example:
        >>> get_match_quality(0.93)
        'Reusable'
    """
    if similarity >= 0.90:
        return "Reusable"
    elif similarity >= 0.75:
        return "Close"
    elif similarity >= 0.50:
        return "Related"
    else:
        return "Different"
