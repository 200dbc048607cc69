from __future__ import annotations

import re
from typing import Any, cast

from valsim.core.rate_limit import MONEYCONTROL_RATE_LIMIT
from valsim.sources.base import HttpSource
from valsim.utils.logging import get_logger
from valsim.utils.types import JsonDict

logger = get_logger(__name__)

SEARCH_URL = "https://www.moneycontrol.com/mccode/common/autosuggestion_solr.php"
PRICE_FEED_BASE = "https://priceapi.moneycontrol.com/pricefeed"

_EXCHANGE_SUFFIX = re.compile(r"\.(NS|BO)$", re.IGNORECASE)


def strip_exchange_suffix(ticker: str) -> str:
    return _EXCHANGE_SUFFIX.sub("", ticker)


def exchange_for_ticker(ticker: str) -> str:
    return "bse" if ticker.upper().endswith(".BO") else "nse"


class Moneycontrol(HttpSource):
    """Fundamentals (price, trailing EPS, P/E, shares) for NSE/BSE listings."""

    name = "moneycontrol"
    rate_limit = MONEYCONTROL_RATE_LIMIT

    async def search(self, ticker: str) -> JsonDict | None:
        """Look up the Moneycontrol ``sc_id`` record for a ticker."""
        params = {
            "classic": "true",
            "query": strip_exchange_suffix(ticker),
            "type": 1,
            "format": "json",
            "callback": "",
        }
        resp = await self._request(SEARCH_URL, params=params)
        if not resp.is_success:
            logger.debug(f"Moneycontrol search for {ticker} returned {resp.status_code}")
            return None

        data: Any = resp.json()
        if not isinstance(data, list) or not data:
            return None

        for item in data:
            if isinstance(item, dict) and item.get("sc_id"):
                return cast(JsonDict, item)
        first = data[0]
        return cast(JsonDict, first) if isinstance(first, dict) else None

    async def fetch_quote(self, sc_id: str, exchange: str = "nse") -> JsonDict | None:
        resp = await self._request(f"{PRICE_FEED_BASE}/{exchange}/equitycash/{sc_id}")
        if not resp.is_success:
            logger.debug(f"Moneycontrol price feed for {sc_id} returned {resp.status_code}")
            return None

        payload: Any = resp.json()
        if not isinstance(payload, dict) or payload.get("code") != "200" or not payload.get("data"):
            return None
        return cast(JsonDict, payload["data"])

    async def fetch_fundamentals(self, ticker: str) -> tuple[JsonDict | None, JsonDict | None]:
        """Search then fetch the quote; returns ``(search_hit, quote)``."""
        hit = await self.search(ticker)
        if hit is None or not hit.get("sc_id"):
            return hit, None
        quote = await self.fetch_quote(str(hit["sc_id"]), exchange_for_ticker(ticker))
        return hit, quote
