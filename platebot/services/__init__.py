"""
Service layer infrastructure - protection for the upstream lookup API.

Provides:
- ResultCache: TTL + LRU cache for lookup results
- RateLimiter: Per-user sliding-window admission control
- SearchGuard: Rejects duplicate concurrent searches
- ResilientFetcher: HTTP lookup with retry and failure classification
"""

from platebot.services.errors import (
    ErrorClassification,
    ErrorCode,
    ErrorKind,
    InvalidIdentifierError,
    InvalidResponseError,
    LookupFailedError,
    ServiceError,
    Severity,
    classify_error,
)
from platebot.services.cache import CacheEntry, CacheResult, ResultCache
from platebot.services.rate_limiter import RateLimiter, RateLimitResult
from platebot.services.guard import SearchGuard
from platebot.services.fetcher import ResilientFetcher

__all__ = [
    # Errors
    "ServiceError",
    "InvalidIdentifierError",
    "InvalidResponseError",
    "LookupFailedError",
    "ErrorClassification",
    "ErrorCode",
    "ErrorKind",
    "Severity",
    "classify_error",
    # Cache
    "ResultCache",
    "CacheEntry",
    "CacheResult",
    # Admission
    "RateLimiter",
    "RateLimitResult",
    # Guard
    "SearchGuard",
    # Fetcher
    "ResilientFetcher",
]
