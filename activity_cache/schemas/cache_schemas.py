# schemas/cache_schemas.py
"""
Pydantic v2 schemas for the activity result cache
Queries, feature vectors, stored entries and lookup results
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List, Any
from datetime import datetime
from enum import Enum


# Bump whenever normalization or scoring formulas change. Stored vectors with
# another version are never fuzzy-matched.
FEATURE_VERSION = 1


# ============================================
# Enums
# ============================================

class HitType(str, Enum):
    EXACT = "exact"
    FUZZY = "fuzzy"


# ============================================
# Query (cache key input)
# ============================================

class WeatherInfo(BaseModel):
    """Forecast for the activity day; every field may be missing"""
    temperature_min_c: Optional[float] = None
    temperature_max_c: Optional[float] = None
    precipitation_probability_percent: Optional[float] = None
    wind_speed_max_kmh: Optional[float] = None


class Festival(BaseModel):
    """A festival or event happening near the location"""
    name: str
    start_date: Optional[str] = None
    end_date: Optional[str] = None


class ActivityQuery(BaseModel):
    """
    A family-activity search request.

    Kept lenient: an unparseable date or an empty age list still produces
    a usable feature vector.
    """
    location: str
    date: str  # YYYY-MM-DD
    duration_hours: Optional[float] = None
    ages: List[int] = Field(default_factory=list)
    weather: WeatherInfo = Field(default_factory=WeatherInfo)
    is_public_holiday: bool = False
    nearby_festivals: List[Festival] = Field(default_factory=list)
    extra_instructions: Optional[str] = None
    query: Optional[str] = None
    provider_identity: str = "gemini"


# ============================================
# Location features (geocoding collaborator)
# ============================================

class LocationFeatures(BaseModel):
    """Coarse geographic data for a location string"""
    latitude: float  # degrees
    longitude: float  # degrees
    city_size: float = 0.5  # 0=small town, 1=major metro
    is_coastal: bool = False
    population: float = 0.5  # normalized population tier
    city: Optional[str] = None
    country: Optional[str] = None


# ============================================
# Feature vector
# ============================================

class LocationVector(BaseModel):
    model_config = ConfigDict(frozen=True)

    latitude: float = 0.0  # lat / 90
    longitude: float = 0.0  # lon / 180
    city_size: float = 0.5
    is_coastal: float = 0.0
    population: float = 0.5
    country_code: str = "unknown"


class TemporalVector(BaseModel):
    model_config = ConfigDict(frozen=True)

    season: float = 0.5
    day_of_year: float = 0.5
    day_of_week: float = 0.5
    month: float = 0.5
    is_weekend: float = 0.0
    holiday_proximity: float = 0.0


class WeatherVector(BaseModel):
    model_config = ConfigDict(frozen=True)

    avg_temperature: float
    temp_range: float
    precipitation: float
    wind_speed: float
    weather_suitability: float
    season: float  # temperature bucket / 3, not the calendar season


class DemographicVector(BaseModel):
    model_config = ConfigDict(frozen=True)

    avg_age: float = 0.5
    age_range: float = 0.0
    has_toddlers: float = 0.0  # 0-3
    has_preschool: float = 0.0  # 4-6
    has_school_age: float = 0.0  # 7-12
    has_teens: float = 0.0  # 13+
    duration: float = 0.0


class ContextVector(BaseModel):
    """Stored with every entry but not part of the default score"""
    model_config = ConfigDict(frozen=True)

    has_festivals: float = 0.0
    festival_count: float = 0.0
    has_extra_instructions: float = 0.0
    instructions_hash: float = 0.0


class FeatureVector(BaseModel):
    """Normalized, bounded encoding of an ActivityQuery"""
    model_config = ConfigDict(frozen=True)

    version: int = FEATURE_VERSION
    location: LocationVector
    temporal: TemporalVector
    weather: WeatherVector
    demographic: DemographicVector
    context: ContextVector


# ============================================
# Stored records
# ============================================

class CacheEntry(BaseModel):
    """
    One cached result.

    feature_vector is None for the legacy record shape, which only supports
    exact-key lookups.
    """
    key: str
    location: str
    date: str
    feature_vector: Optional[FeatureVector] = None
    result: Any = None
    created_at: datetime
    last_accessed: datetime


class LocationProfile(BaseModel):
    """Coarse metadata remembered per raw location string"""
    location: str
    city: str
    country: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    updated_at: datetime


# ============================================
# Lookup results
# ============================================

class CacheHit(BaseModel):
    """A reusable cached result"""
    key: str
    result: Any = None
    hit_type: HitType
    similarity: float
    matched_location: str
    matched_date: str


class CacheLookupResponse(BaseModel):
    """HTTP view of a lookup"""
    hit: bool
    hit_type: Optional[HitType] = None
    similarity: Optional[float] = None
    matched_location: Optional[str] = None
    matched_date: Optional[str] = None
    result: Any = None


class CachePutRequest(BaseModel):
    """Write-back of a freshly generated result"""
    query: ActivityQuery
    result: Any


class WeatherCachePut(BaseModel):
    location: str
    date: str
    weather: Any


class FestivalCachePut(BaseModel):
    location: str
    search_start_date: str
    search_end_date: str
    festivals: Any


class FestivalLookup(BaseModel):
    location: str
    target_date: str


class WeatherLookup(BaseModel):
    location: str
    date: str
