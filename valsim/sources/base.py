from __future__ import annotations

from collections.abc import Mapping
from typing import ClassVar

import httpx

from valsim.core.base import ValuationContext
from valsim.core.rate_limit import RateLimiter, RateLimitError
from valsim.core.retry import with_retry
from valsim.utils.constants import CONNECT_TIMEOUT_SECONDS, KEEPALIVE_EXPIRY_SECONDS
from valsim.utils.logging import get_logger
from valsim.utils.types import QueryParams

logger = get_logger(__name__)

# Finance sites reject non-browser agents
BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
)


class HttpSource:
    """Shared client, rate limiting and retry handling for one upstream host."""

    name: ClassVar[str] = "http"
    rate_limit: ClassVar[dict[str, int]] = {"max_requests": 20, "window_seconds": 10}

    def __init__(self, context: ValuationContext, transport: httpx.AsyncBaseTransport | None = None):
        self.context = context
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._rate_limiter: RateLimiter | None = None

    async def _get_rate_limiter(self) -> RateLimiter:
        if self._rate_limiter is None:
            self._rate_limiter = await RateLimiter.shared(
                name=self.name,
                max_requests=self.rate_limit["max_requests"],
                window_seconds=self.rate_limit["window_seconds"],
            )
        return self._rate_limiter

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.context.http_timeout, connect=CONNECT_TIMEOUT_SECONDS),
                http2=True,
                limits=httpx.Limits(keepalive_expiry=KEEPALIVE_EXPIRY_SECONDS),
                headers={"User-Agent": BROWSER_USER_AGENT, "Accept": "application/json"},
                transport=self._transport,
            )
        return self._client

    @with_retry(max_attempts=3, min_wait=1.0, max_wait=10.0)
    async def _request(
        self,
        url: str,
        params: QueryParams | None = None,
        headers: Mapping[str, str] | None = None,
        follow_redirects: bool = True,
    ) -> httpx.Response:
        """GET ``url``; 429 and 5xx are retried, other statuses are returned to the caller."""
        limiter = await self._get_rate_limiter()
        await limiter.acquire()

        client = await self._get_client()
        resp = await client.get(url, params=params, headers=headers, follow_redirects=follow_redirects)

        if resp.status_code == 429:
            logger.warning(f"{self.name}: rate limited upstream (429)")
            raise RateLimitError(f"{self.name} returned 429")
        if resp.status_code >= 500:
            resp.raise_for_status()

        logger.debug(f"GET {resp.request.url} -> {resp.status_code} [{limiter.stats()}]")
        return resp

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "HttpSource":
        _ = await self._get_client()
        return self

    async def __aexit__(
        self,
        _exc_type: type[BaseException] | None,
        _exc_val: BaseException | None,
        _exc_tb: object,
    ) -> None:
        await self.close()
