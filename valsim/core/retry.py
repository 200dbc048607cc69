import asyncio
from collections.abc import Awaitable, Callable
from functools import wraps
from typing import ParamSpec, TypeVar

import httpx
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt, wait_exponential

from valsim.core.rate_limit import RateLimitError
from valsim.utils.logging import get_logger

logger = get_logger(__name__)

P = ParamSpec("P")
R = TypeVar("R")

RETRYABLE_EXCEPTIONS: tuple[type[BaseException], ...] = (
    httpx.TransportError,
    httpx.HTTPStatusError,
    asyncio.TimeoutError,
    RateLimitError,
)


def is_retryable(exc: BaseException) -> bool:
    """Transport failures, timeouts, local rate limits and upstream 5xx; never 4xx."""
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code >= 500
    return isinstance(exc, RETRYABLE_EXCEPTIONS)


def _log_attempt(func_name: str, max_attempts: int) -> Callable[[RetryCallState], None]:
    def log(state: RetryCallState) -> None:
        exc = state.outcome.exception() if state.outcome else None
        logger.warning(f"Attempt {state.attempt_number}/{max_attempts} failed for {func_name}: {exc!r}")

    return log


def with_retry(
    max_attempts: int = 3,
    min_wait: float = 1.0,
    max_wait: float = 10.0,
    retryable: Callable[[BaseException], bool] = is_retryable,
) -> Callable[[Callable[P, Awaitable[R]]], Callable[P, Awaitable[R]]]:
    def decorator(func: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            retrying = AsyncRetrying(
                stop=stop_after_attempt(max_attempts),
                wait=wait_exponential(min=min_wait, max=max_wait),
                retry=retry_if_exception(retryable),
                after=_log_attempt(func.__name__, max_attempts),
                reraise=True,
            )
            return await retrying(func, *args, **kwargs)

        return wrapper

    return decorator
