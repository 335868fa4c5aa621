"""
Feature Normalizer
Turns an ActivityQuery into a bounded, dimensionless FeatureVector

Sub-vectors:
1. Location - coordinates and city class (from the location provider)
2. Temporal - calendar season, day of year/week, weekend, holiday
3. Weather - temperature, rain, wind and an outdoor suitability score
4. Demographic - children's age bands and activity duration
5. Context - festivals and free-text instructions (stored, not scored)

Every numeric field lies in [0, 1] (latitude/longitude in [-1, 1]) so that
differences are comparable across dimensions. Never raises: missing or
invalid inputs degrade to neutral defaults.
"""

from datetime import date, datetime
from typing import List, Optional

from loguru import logger

from ..schemas import (
    FEATURE_VERSION,
    ActivityQuery,
    WeatherInfo,
    LocationVector,
    TemporalVector,
    WeatherVector,
    DemographicVector,
    ContextVector,
    FeatureVector,
)
from ..utils.location import LocationFeatureProvider, split_city_country


DEFAULT_TEMP_MIN_C = 15.0
DEFAULT_TEMP_MAX_C = 25.0
DEFAULT_DURATION_HOURS = 4.0


def normalize_query(
    query: ActivityQuery,
    location_provider: Optional[LocationFeatureProvider] = None
) -> FeatureVector:
    """
    Normalize a search request into a feature vector

    Args:
        query: The activity search request
        location_provider: Optional geocoding capability

    Returns:
        FeatureVector: Bounded encoding of the query

    Example:
        >>> vector = normalize_query(ActivityQuery(location="Madrid, Spain",
        ...                                        date="2025-05-14", ages=[6, 9]))
        >>> vector.temporal.season  # spring
        0.3333333333333333
    """
    return FeatureVector(
        version=FEATURE_VERSION,
        location=normalize_location(query.location, location_provider),
        temporal=normalize_temporal(query.date, query.is_public_holiday),
        weather=normalize_weather(query.weather),
        demographic=normalize_demographic(query.ages, query.duration_hours),
        context=normalize_context(len(query.nearby_festivals), query.extra_instructions),
    )


# ============================================
# Location
# ============================================

def normalize_location(
    location: str,
    location_provider: Optional[LocationFeatureProvider] = None
) -> LocationVector:
    """Location features, or the neutral midpoint without geocoding"""
    _, country = split_city_country(location)

    features = None
    if location_provider is not None:
        try:
            features = location_provider.lookup(location)
        except Exception as e:
            logger.warning(f"Location lookup failed for '{location}': {e}")

    if features is None:
        return LocationVector(country_code=country)

    return LocationVector(
        latitude=_clamp(features.latitude / 90, -1.0, 1.0),
        longitude=_clamp(features.longitude / 180, -1.0, 1.0),
        city_size=_clamp(features.city_size),
        is_coastal=1.0 if features.is_coastal else 0.0,
        population=_clamp(features.population),
        country_code=features.country or country,
    )


# ============================================
# Temporal
# ============================================

def normalize_temporal(date_str: str, is_public_holiday: bool = False) -> TemporalVector:
    """Calendar features; an unparseable date gives a neutral vector"""
    holiday = 1.0 if is_public_holiday else 0.0

    day = parse_date(date_str)
    if day is None:
        logger.warning(f"Unparseable query date '{date_str}', using neutral temporal features")
        return TemporalVector(holiday_proximity=holiday)

    # Sunday=0 .. Saturday=6
    day_of_week = (day.weekday() + 1) % 7

    return TemporalVector(
        season=astronomical_season(day) / 3,
        day_of_year=_clamp(day.timetuple().tm_yday / 365),
        day_of_week=day_of_week / 6,
        month=(day.month - 1) / 11,
        is_weekend=1.0 if day_of_week in (0, 6) else 0.0,
        holiday_proximity=holiday,
    )


def astronomical_season(day: date) -> int:
    """
    Season index from the calendar month

    Returns:
        int: 0=winter, 1=spring (Mar-May), 2=summer (Jun-Aug), 3=fall (Sep-Nov)
    """
    if 3 <= day.month <= 5:
        return 1
    if 6 <= day.month <= 8:
        return 2
    if 9 <= day.month <= 11:
        return 3
    return 0


def parse_date(value: Optional[str]) -> Optional[date]:
    """Parse YYYY-MM-DD, returning None instead of raising"""
    if not value:
        return None
    try:
        return datetime.strptime(value.strip()[:10], "%Y-%m-%d").date()
    except ValueError:
        return None


# ============================================
# Weather
# ============================================

def normalize_weather(weather: Optional[WeatherInfo]) -> WeatherVector:
    """Weather features; missing temperatures default to a 15-25 C day"""
    weather = weather or WeatherInfo()

    temp_min = weather.temperature_min_c if weather.temperature_min_c is not None else DEFAULT_TEMP_MIN_C
    temp_max = weather.temperature_max_c if weather.temperature_max_c is not None else DEFAULT_TEMP_MAX_C
    precipitation = weather.precipitation_probability_percent or 0.0
    wind = weather.wind_speed_max_kmh or 0.0
    avg_temp = (temp_min + temp_max) / 2

    return WeatherVector(
        avg_temperature=normalize_temperature(avg_temp),
        temp_range=_clamp((temp_max - temp_min) / 30),
        precipitation=_clamp(precipitation / 100),
        wind_speed=_clamp(wind / 50),
        weather_suitability=calculate_weather_suitability(avg_temp, precipitation),
        season=season_from_temperature(avg_temp) / 3,
    )


def normalize_temperature(temp_c: float) -> float:
    """0 C -> 0.0, 30 C -> 1.0"""
    return _clamp(temp_c / 30)


def calculate_weather_suitability(avg_temp_c: float, precipitation_percent: float) -> float:
    """
    How suitable the day is for outdoor family activities (0.0-1.0)

    Logic:
    - Base score 0.5
    - 15-25 C: +0.3, else 10-30 C: +0.1, else below 5 or above 35 C: -0.2
    - Rain chance under 20%: +0.2, over 60%: -0.3
    """
    score = 0.5

    if 15 <= avg_temp_c <= 25:
        score += 0.3
    elif 10 <= avg_temp_c <= 30:
        score += 0.1
    elif avg_temp_c < 5 or avg_temp_c > 35:
        score -= 0.2

    if precipitation_percent < 20:
        score += 0.2
    elif precipitation_percent > 60:
        score -= 0.3

    return _clamp(score)


def season_from_temperature(avg_temp_c: float) -> int:
    """Temperature bucket: 0 (<=5 C), 1 (<=15 C), 2 (<=25 C), 3 (hotter)"""
    if avg_temp_c <= 5:
        return 0
    if avg_temp_c <= 15:
        return 1
    if avg_temp_c <= 25:
        return 2
    return 3


# ============================================
# Demographic
# ============================================

def normalize_demographic(
    ages: Optional[List[int]],
    duration_hours: Optional[float] = None
) -> DemographicVector:
    """Age bands and duration; no ages gives a neutral midpoint"""
    hours = duration_hours if duration_hours is not None else DEFAULT_DURATION_HOURS
    duration = _clamp(hours / 12)

    valid_ages = [age for age in (ages or []) if age is not None and age >= 0]
    if not valid_ages:
        return DemographicVector(avg_age=0.5, age_range=0.0, duration=duration)

    avg_age = sum(valid_ages) / len(valid_ages)

    return DemographicVector(
        avg_age=_clamp(avg_age / 18),
        age_range=_clamp((max(valid_ages) - min(valid_ages)) / 15),
        has_toddlers=_flag(any(age <= 3 for age in valid_ages)),
        has_preschool=_flag(any(4 <= age <= 6 for age in valid_ages)),
        has_school_age=_flag(any(7 <= age <= 12 for age in valid_ages)),
        has_teens=_flag(any(age >= 13 for age in valid_ages)),
        duration=duration,
    )


# ============================================
# Context
# ============================================

def normalize_context(festival_count: int, extra_instructions: Optional[str]) -> ContextVector:
    """Festival and free-text features kept for future matching"""
    instructions = (extra_instructions or "").strip()

    return ContextVector(
        has_festivals=_flag(festival_count > 0),
        festival_count=_clamp(festival_count / 5),
        has_extra_instructions=_flag(bool(instructions)),
        instructions_hash=(instruction_hash(instructions) % 1000) / 1000 if instructions else 0.0,
    )


def instruction_hash(text: str) -> int:
    """
    Stable 31-multiplier string hash over UTF-16 code units

    Same value on every run and every process, unlike the built-in hash().
    """
    encoded = text.encode("utf-16-le")
    value = 0
    for i in range(0, len(encoded), 2):
        unit = encoded[i] | (encoded[i + 1] << 8)
        value = ((value << 5) - value + unit) & 0xFFFFFFFF

    if value >= 0x80000000:
        value -= 0x100000000
    return abs(value)


# ============================================
# Helpers
# ============================================

def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, float(value)))


def _flag(condition: bool) -> float:
    return 1.0 if condition else 0.0
