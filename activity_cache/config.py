"""
Activity Cache Configuration
Loads settings from environment variables
"""

import os
from typing import List, Optional
from dotenv import load_dotenv
from pydantic import BaseModel, Field

# Load environment variables
load_dotenv()


class SimilarityWeights(BaseModel):
    """Per-dimension weights of the similarity score (sum to 1.0 by default)"""
    location: float = Field(default=0.2, ge=0)
    weather: float = Field(default=0.4, ge=0)
    temporal: float = Field(default=0.3, ge=0)
    demographic: float = Field(default=0.1, ge=0)


class CacheConfig(BaseModel):
    """
    Tuning knobs for one logical similarity cache.

    Passed into SmartCache at construction time; nothing in the cache core
    reads the process-wide settings object directly.
    """
    weights: SimilarityWeights = Field(default_factory=SimilarityWeights)
    min_similarity_score: float = Field(default=0.90, ge=0, le=1)
    max_entries: int = Field(default=30, ge=1)
    legacy_max_entries: int = Field(default=20, ge=1)
    date_range_days: int = Field(default=14, ge=0)
    max_candidate_distance_km: float = Field(default=20.0, gt=0)
    max_candidates: int = Field(default=10, ge=1)


class Settings:
    """Application settings loaded from environment"""

    # Redis Configuration
    REDIS_HOST: str = os.getenv("REDIS_HOST", "localhost")
    REDIS_PORT: int = int(os.getenv("REDIS_PORT", "6379"))
    REDIS_DB: int = int(os.getenv("REDIS_DB", "0"))
    REDIS_PASSWORD: Optional[str] = os.getenv("REDIS_PASSWORD") or None
    REDIS_KEY_PREFIX: str = os.getenv("REDIS_KEY_PREFIX", "activity_cache")

    # Cache backend: "redis", "memory" or "none"
    CACHE_BACKEND: str = os.getenv("CACHE_BACKEND", "redis")
    CACHE_WRITE_LEGACY: bool = os.getenv("CACHE_WRITE_LEGACY", "true").lower() == "true"

    # Similarity tuning (adjustable without a redeploy)
    CACHE_WEIGHT_LOCATION: float = float(os.getenv("CACHE_WEIGHT_LOCATION", "0.2"))
    CACHE_WEIGHT_WEATHER: float = float(os.getenv("CACHE_WEIGHT_WEATHER", "0.4"))
    CACHE_WEIGHT_TEMPORAL: float = float(os.getenv("CACHE_WEIGHT_TEMPORAL", "0.3"))
    CACHE_WEIGHT_DEMOGRAPHIC: float = float(os.getenv("CACHE_WEIGHT_DEMOGRAPHIC", "0.1"))
    CACHE_MIN_SIMILARITY: float = float(os.getenv("CACHE_MIN_SIMILARITY", "0.90"))
    CACHE_MAX_ENTRIES: int = int(os.getenv("CACHE_MAX_ENTRIES", "30"))
    CACHE_LEGACY_MAX_ENTRIES: int = int(os.getenv("CACHE_LEGACY_MAX_ENTRIES", "20"))
    CACHE_DATE_RANGE_DAYS: int = int(os.getenv("CACHE_DATE_RANGE_DAYS", "14"))
    CACHE_MAX_DISTANCE_KM: float = float(os.getenv("CACHE_MAX_DISTANCE_KM", "20"))
    CACHE_MAX_CANDIDATES: int = int(os.getenv("CACHE_MAX_CANDIDATES", "10"))

    # Weather / festival context cache capacities
    WEATHER_CACHE_MAX_ENTRIES: int = int(os.getenv("WEATHER_CACHE_MAX_ENTRIES", "100"))
    FESTIVAL_CACHE_MAX_ENTRIES: int = int(os.getenv("FESTIVAL_CACHE_MAX_ENTRIES", "50"))

    # API Configuration
    API_HOST: str = os.getenv("API_HOST", "0.0.0.0")
    API_PORT: int = int(os.getenv("API_PORT", "8000"))
    API_ENV: str = os.getenv("API_ENV", "development")

    # CORS Configuration
    CORS_ORIGINS: str = os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:5173")

    @property
    def cors_origins_list(self) -> List[str]:
        """Get CORS origins as a list"""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]

    @property
    def redis_url(self) -> str:
        """Get Redis connection URL"""
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"

    def cache_config(self) -> CacheConfig:
        """
        Build the similarity cache configuration

        Returns:
            CacheConfig populated from the CACHE_* variables
        """
        return CacheConfig(
            weights=SimilarityWeights(
                location=self.CACHE_WEIGHT_LOCATION,
                weather=self.CACHE_WEIGHT_WEATHER,
                temporal=self.CACHE_WEIGHT_TEMPORAL,
                demographic=self.CACHE_WEIGHT_DEMOGRAPHIC,
            ),
            min_similarity_score=self.CACHE_MIN_SIMILARITY,
            max_entries=self.CACHE_MAX_ENTRIES,
            legacy_max_entries=self.CACHE_LEGACY_MAX_ENTRIES,
            date_range_days=self.CACHE_DATE_RANGE_DAYS,
            max_candidate_distance_km=self.CACHE_MAX_DISTANCE_KM,
            max_candidates=self.CACHE_MAX_CANDIDATES,
        )


# Global settings instance
settings = Settings()
