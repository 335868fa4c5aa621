"""
Cache error types

None of these reach the caller of SmartCache: lookups degrade to a miss and
writes degrade to a logged no-op.
"""


class CacheError(Exception):
    """Base class for cache failures"""


class StoreUnavailable(CacheError):
    """The backing store cannot be reached or rejected the command"""


class MalformedEntry(CacheError):
    """A stored record cannot be decoded into a CacheEntry"""

    def __init__(self, key: str, reason: str):
        super().__init__(f"Malformed cache entry '{key}': {reason}")
        self.key = key
        self.reason = reason
