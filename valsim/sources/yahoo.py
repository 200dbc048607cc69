from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, cast
from urllib.parse import quote

from valsim.core.rate_limit import YAHOO_RATE_LIMIT
from valsim.models.stock import PricePoint
from valsim.sources.base import HttpSource
from valsim.utils.logging import get_logger
from valsim.utils.time import seconds_to_datetime
from valsim.utils.types import JsonDict

logger = get_logger(__name__)

CHART_BASE = "https://query1.finance.yahoo.com/v8/finance/chart"
QUOTE_SUMMARY_BASE = "https://query2.finance.yahoo.com/v10/finance/quoteSummary"
COOKIE_URL = "https://fc.yahoo.com/"
CRUMB_URL = "https://query2.finance.yahoo.com/v1/test/getcrumb"

SUMMARY_MODULES = "price,summaryDetail,defaultKeyStatistics,earnings,financialData,incomeStatementHistory"


@dataclass(frozen=True)
class YahooSession:
    crumb: str
    cookies: str


@dataclass
class ChartData:
    prices: list[PricePoint] = field(default_factory=list)
    meta: JsonDict | None = None


def _cookie_pairs(set_cookie_headers: list[str]) -> list[str]:
    return [header.split(";")[0] for header in set_cookie_headers if header]


def parse_chart(payload: Any) -> ChartData:
    """Monthly closes from a v8 chart response, skipping null closes."""
    try:
        result = payload["chart"]["result"][0]
    except (KeyError, IndexError, TypeError):
        return ChartData()
    if not isinstance(result, dict):
        return ChartData()

    timestamps = result.get("timestamp") or []
    quotes = (result.get("indicators") or {}).get("quote") or [{}]
    closes = quotes[0].get("close") or []
    volumes = quotes[0].get("volume") or []

    prices: list[PricePoint] = []
    for i, ts in enumerate(timestamps):
        close = closes[i] if i < len(closes) else None
        if close is None:
            continue
        volume = volumes[i] if i < len(volumes) and volumes[i] is not None else 0
        prices.append(
            PricePoint(
                date=seconds_to_datetime(ts).isoformat().replace("+00:00", "Z"),
                close=float(close),
                volume=float(volume),
            )
        )
    return ChartData(prices=prices, meta=cast(JsonDict, result.get("meta")) if result.get("meta") else None)


class YahooFinance(HttpSource):
    """Historical prices (v8 chart) and best-effort fundamentals (v10 quoteSummary)."""

    name = "yahoo"
    rate_limit = YAHOO_RATE_LIMIT

    async def fetch_chart(self, ticker: str, range_: str = "10y", interval: str = "1mo") -> ChartData:
        url = f"{CHART_BASE}/{quote(ticker, safe='')}"
        resp = await self._request(
            url,
            params={"range": range_, "interval": interval},
            headers={"Accept": "*/*", "Accept-Language": "en-US,en;q=0.9"},
        )
        if not resp.is_success:
            logger.warning(f"Yahoo chart API returned {resp.status_code} for {ticker}")
            return ChartData()
        return parse_chart(resp.json())

    async def get_session(self) -> YahooSession | None:
        """Cookie + crumb handshake, reused until the context's session cache expires."""
        cache = self.context.session_cache
        cached = cache.get()
        if cached is not None:
            return cast(YahooSession, cached)

        init = await self._request(COOKIE_URL, follow_redirects=False)
        cookies = _cookie_pairs(init.headers.get_list("set-cookie"))

        crumb_resp = await self._request(CRUMB_URL, headers={"Cookie": "; ".join(cookies)})
        if not crumb_resp.is_success:
            logger.warning(f"Yahoo crumb request returned {crumb_resp.status_code}")
            return None

        cookies.extend(_cookie_pairs(crumb_resp.headers.get_list("set-cookie")))
        session = YahooSession(crumb=crumb_resp.text.strip(), cookies="; ".join(cookies))
        cache.set(session)
        logger.debug("Established Yahoo session")
        return session

    async def fetch_quote_summary(self, ticker: str) -> JsonDict | None:
        session = await self.get_session()
        if session is None:
            return None

        url = f"{QUOTE_SUMMARY_BASE}/{quote(ticker, safe='')}"
        resp = await self._request(
            url,
            params={"modules": SUMMARY_MODULES, "crumb": session.crumb},
            headers={"Cookie": session.cookies},
        )
        if not resp.is_success:
            logger.debug(f"Yahoo quoteSummary returned {resp.status_code} for {ticker}")
            return None

        payload: Any = resp.json()
        try:
            result = payload["quoteSummary"]["result"][0]
        except (KeyError, IndexError, TypeError):
            return None
        return cast(JsonDict, result) if isinstance(result, dict) else None
