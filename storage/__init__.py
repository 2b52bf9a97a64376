"""
Storage Module
Persisted rate-limit windows.
"""
from .rate_limiter import (
    DEFAULT_LIMITS,
    PersistentRateLimiter,
    create_rate_limit_engine,
    rate_limits,
)

__all__ = [
    "DEFAULT_LIMITS",
    "PersistentRateLimiter",
    "create_rate_limit_engine",
    "rate_limits",
]
