from valsim.core.base import (
    ResolvedConfig,
    RuntimeConfig,
    ValuationContext,
)
from valsim.core.cache import SessionCache, TTLCache
from valsim.core.rate_limit import RateLimiter, RateLimitError, RateLimitStats
from valsim.core.retry import with_retry

__all__ = [
    "ResolvedConfig",
    "RuntimeConfig",
    "ValuationContext",
    "SessionCache",
    "TTLCache",
    "RateLimitError",
    "RateLimiter",
    "RateLimitStats",
    "with_retry",
]
