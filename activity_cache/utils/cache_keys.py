"""
Cache key builders

Keys are plain strings so the same query always lands on the same record,
regardless of letter case, surrounding whitespace or the order of ages.
"""

from typing import Optional

from ..schemas import ActivityQuery


DEFAULT_PROVIDER = "gemini"


def _normalize_text(value: Optional[str]) -> str:
    return (value or "").lower().strip()


def _format_duration(duration_hours: Optional[float]) -> str:
    if not duration_hours:
        return ""
    if float(duration_hours).is_integer():
        return str(int(duration_hours))
    return str(duration_hours)


def generate_cache_key(query: ActivityQuery) -> str:
    """
    Build the exact-match key for a query

    Example:
        >>> generate_cache_key(ActivityQuery(location=" Madrid, Spain", date="2025-05-14", ages=[8, 5]))
        'madrid, spain-2025-05-14--5,8---gemini'
    """
    ages = ",".join(str(age) for age in sorted(query.ages))
    provider = _normalize_text(query.provider_identity) or DEFAULT_PROVIDER

    return "-".join([
        _normalize_text(query.location),
        query.date.strip(),
        _format_duration(query.duration_hours),
        ages,
        _normalize_text(query.query),
        _normalize_text(query.extra_instructions),
        provider,
    ])


def generate_weather_key(location: str, date: str) -> str:
    """Weather data is cached per location and exact date"""
    return f"weather-{_normalize_text(location)}-{date}"


def generate_festival_key(location: str, start_date: str, end_date: str) -> str:
    """Festival data is cached per location and search window"""
    return f"festivals-{_normalize_text(location)}-{start_date}-{end_date}"
