# api/cache.py
"""
Cache API
Lets the activity-generation service look up and write back results
"""

from typing import Any, Dict

from fastapi import APIRouter, HTTPException, Request
from loguru import logger

from ..cache import ContextCache, SmartCache
from ..schemas import (
    ActivityQuery,
    CacheLookupResponse,
    CachePutRequest,
    FestivalCachePut,
    FestivalLookup,
    WeatherCachePut,
    WeatherLookup,
)


# ============================================
# Dependencies
# ============================================

def get_smart_cache(request: Request) -> SmartCache:
    return request.app.state.smart_cache


def get_context_cache(request: Request) -> ContextCache:
    return request.app.state.context_cache


# ============================================
# FastAPI Router
# ============================================

# Handlers are plain functions: FastAPI runs them in its threadpool, so a
# slow store call never blocks the event loop.
router = APIRouter(prefix="/api/cache", tags=["Activity Cache"])


@router.post("/lookup", response_model=CacheLookupResponse)
def lookup(query: ActivityQuery, request: Request):
    """
    Look up a cached result for an activity query.

    Returns hit=false on a miss; the caller then generates results and
    writes them back with PUT /api/cache.
    """
    hit = get_smart_cache(request).get(query)
    if hit is None:
        return CacheLookupResponse(hit=False)

    return CacheLookupResponse(
        hit=True,
        hit_type=hit.hit_type,
        similarity=hit.similarity,
        matched_location=hit.matched_location,
        matched_date=hit.matched_date,
        result=hit.result
    )


@router.put("")
def store_result(body: CachePutRequest, request: Request) -> Dict[str, Any]:
    """Cache a freshly generated result"""
    cached = get_smart_cache(request).put(body.query, body.result)
    return {"status": "cached" if cached else "skipped"}


@router.get("/stats")
def stats(request: Request) -> Dict[str, Any]:
    """Cache statistics"""
    return get_smart_cache(request).get_stats()


@router.delete("")
def clear(request: Request) -> Dict[str, Any]:
    """Drop every cached result"""
    cleared = get_smart_cache(request).clear()
    logger.info(f"Cache clear requested (success={cleared})")
    return {"status": "cleared" if cleared else "failed"}


# ============================================
# Weather & Festivals
# ============================================

@router.post("/weather/lookup")
def lookup_weather(body: WeatherLookup, request: Request) -> Dict[str, Any]:
    """Cached weather for an exact location and date"""
    weather = get_context_cache(request).get_weather(body.location, body.date)
    if weather is None:
        raise HTTPException(status_code=404, detail="Weather not cached")
    return {"location": body.location, "date": body.date, "weather": weather}


@router.put("/weather")
def store_weather(body: WeatherCachePut, request: Request) -> Dict[str, Any]:
    cached = get_context_cache(request).cache_weather(body.location, body.date, body.weather)
    return {"status": "cached" if cached else "skipped"}


@router.post("/festivals/lookup")
def lookup_festivals(body: FestivalLookup, request: Request) -> Dict[str, Any]:
    """Cached festivals from any search window covering the target date"""
    festivals = get_context_cache(request).get_festivals(body.location, body.target_date)
    if festivals is None:
        raise HTTPException(status_code=404, detail="Festivals not cached")
    return {"location": body.location, "target_date": body.target_date, "festivals": festivals}


@router.put("/festivals")
def store_festivals(body: FestivalCachePut, request: Request) -> Dict[str, Any]:
    cached = get_context_cache(request).cache_festivals(
        body.location,
        body.search_start_date,
        body.search_end_date,
        body.festivals
    )
    return {"status": "cached" if cached else "skipped"}
