# activity_cache/__init__.py
"""
Activity Cache Package

Result cache for AI-generated family activity recommendations:
- Exact reuse of results for identical requests
- Similarity-based reuse for nearby places and dates with comparable
  weather and family makeup
- Weather and festival context caching

A near-match is only served when its similarity clears a configurable
threshold (0.90 by default), so families never get advice meant for
a different place, season or age group.
"""

__version__ = "1.0.0"

# Package structure:
# activity_cache/
# ├── __init__.py           <- This file
# ├── main.py               <- FastAPI application entry
# ├── config.py             <- Configuration settings
# ├── exceptions.py         <- Cache error types
# │
# ├── algorithms/           <- Scoring
# │   ├── feature_normalizer.py  <- Query -> feature vector
# │   └── similarity_scorer.py   <- Weighted similarity between vectors
# │
# ├── cache/                <- Storage and coordination
# │   ├── redis_client.py   <- Redis connection
# │   ├── store.py          <- Store protocol, memory and null stores
# │   ├── redis_store.py    <- Redis-backed store
# │   ├── candidate_selector.py  <- Pre-filter for fuzzy matching
# │   ├── smart_cache.py    <- Exact/fuzzy lookup, write-back, eviction
# │   ├── context_cache.py  <- Weather and festival cache
# │   └── factory.py        <- Store wiring from settings
# │
# ├── api/                  <- FastAPI Routers
# │   └── cache.py          <- /api/cache
# │
# ├── schemas/              <- Pydantic models
# │   └── cache_schemas.py
# │
# └── utils/
#     ├── cache_keys.py     <- Composite key generation
#     └── location.py       <- Location parsing, geocoding hook, distance
