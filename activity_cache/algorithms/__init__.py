"""
Cache Algorithms Module
Feature normalization and similarity scoring for fuzzy cache matches
"""

from .feature_normalizer import normalize_query, astronomical_season, parse_date
from .similarity_scorer import calculate_similarity, SimilarityBreakdown, get_match_quality

__all__ = [
    "normalize_query",
    "astronomical_season",
    "parse_date",
    "calculate_similarity",
    "SimilarityBreakdown",
    "get_match_quality"
]
