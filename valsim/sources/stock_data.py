"""Assemble price, EPS history and P/E history for one ticker.

Fundamentals come from Moneycontrol first, then Yahoo quoteSummary, then the
Yahoo chart metadata. Where real EPS history is too short, a labelled
synthetic history is derived from scaled price returns or a default growth
path so the estimators always have something to work with.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from typing import Any

import httpx

from valsim.core.base import ValuationContext
from valsim.core.rate_limit import RateLimitError
from valsim.errors import DataUnavailableError
from valsim.models.stock import PricePoint, StockData
from valsim.models.valuation import EpsHistoryEntry
from valsim.sources.moneycontrol import Moneycontrol
from valsim.sources.yahoo import ChartData, YahooFinance
from valsim.stats.estimators import compute_eps_growth_distribution, compute_pe_distribution
from valsim.utils.constants import MONTHS_PER_YEAR, PE_VALID_MAX, PE_VALID_MIN
from valsim.utils.logging import get_logger
from valsim.utils.time import utc, utc_iso, year_of
from valsim.utils.types import JsonDict

logger = get_logger(__name__)

# EPS growth is taken as ~70% of the price return when proxying from prices
PRICE_RETURN_SCALE = 0.7
MAX_SYNTHETIC_YEARS = 8
DEFAULT_GROWTH_PATH = (0.08, 0.15, 0.05, 0.12, -0.02)
MIN_EPS_HISTORY = 3
MIN_PE_HISTORY = 5

ESTIMATED_EPS_WARNING = "EPS history estimated from price returns (scaled). Actual EPS growth may differ."
DEFAULT_EPS_WARNING = (
    "Using default EPS growth assumptions (~10% avg). Override via Distribution Overrides for better results."
)
CHART_ONLY_WARNING = "Limited data available. Using chart metadata only."

_SOURCE_ERRORS = (httpx.HTTPError, RateLimitError, ValueError)


def raw_value(field: Any) -> float | None:
    """Unwrap Yahoo's ``{"raw": x, "fmt": "..."}`` number objects."""
    if field is None or isinstance(field, bool):
        return None
    if isinstance(field, (int, float)):
        return float(field)
    if isinstance(field, dict) and "raw" in field:
        return raw_value(field["raw"])
    return None


def first_number(*values: Any) -> float | None:
    """First value that parses to a non-zero finite float."""
    for value in values:
        if isinstance(value, dict):
            value = raw_value(value)
        if value is None or isinstance(value, bool):
            continue
        try:
            number = float(value)
        except (TypeError, ValueError):
            continue
        if number and math.isfinite(number):
            return number
    return None


def chart_range(lookback_years: int) -> str:
    if lookback_years <= 5:
        return "5y"
    if lookback_years <= 10:
        return "10y"
    return "max"


def annual_returns(prices: Sequence[PricePoint]) -> list[float]:
    """Year-over-year returns from a monthly series (every 12th close)."""
    if len(prices) <= MONTHS_PER_YEAR:
        return []
    returns: list[float] = []
    for i in range(MONTHS_PER_YEAR, len(prices), MONTHS_PER_YEAR):
        prev = prices[i - MONTHS_PER_YEAR].close
        curr = prices[i].close
        if prev > 0:
            returns.append((curr - prev) / prev)
    return returns


def eps_from_income_statements(summary: JsonDict | None, shares_outstanding: float | None) -> list[EpsHistoryEntry]:
    if not summary or not shares_outstanding:
        return []
    statements = (summary.get("incomeStatementHistory") or {}).get("incomeStatementHistory") or []  # type: ignore[union-attr]
    entries: list[EpsHistoryEntry] = []
    for stmt in statements:
        if not isinstance(stmt, dict):
            continue
        net_income = raw_value(stmt.get("netIncome"))
        end_date = stmt.get("endDate")
        date_str = end_date.get("fmt") if isinstance(end_date, dict) else end_date
        year = year_of(str(date_str)) if date_str else None
        if net_income and year is not None:
            entries.append(EpsHistoryEntry(date=str(date_str), eps=net_income / shares_outstanding, year=year))
    return entries


def eps_from_earnings_chart(summary: JsonDict | None, shares_outstanding: float | None) -> list[EpsHistoryEntry]:
    if not summary:
        return []
    yearly = ((summary.get("earnings") or {}).get("earningsChart") or {}).get("yearly") or []  # type: ignore[union-attr]
    entries: list[EpsHistoryEntry] = []
    for row in yearly:
        if not isinstance(row, dict):
            continue
        earnings = raw_value(row.get("earnings"))
        try:
            year = int(row.get("date"))  # type: ignore[arg-type]
        except (TypeError, ValueError):
            continue
        if earnings:
            eps = earnings / shares_outstanding if shares_outstanding else earnings
            entries.append(EpsHistoryEntry(date=f"{year}-12-31", eps=eps, year=year))
    return entries


def synthesize_eps_from_returns(
    trailing_eps: float, returns: Sequence[float], current_year: int
) -> list[EpsHistoryEntry]:
    """Back out past EPS by discounting trailing EPS with scaled annual price returns."""
    entries: list[EpsHistoryEntry] = []
    for i in range(min(len(returns), MAX_SYNTHETIC_YEARS), 0, -1):
        idx = len(returns) - i
        compounded = math.prod(1 + r * PRICE_RETURN_SCALE for r in returns[idx:])
        past_eps = trailing_eps / compounded if compounded else math.inf
        if past_eps > 0 and math.isfinite(past_eps):
            entries.append(EpsHistoryEntry(date=f"{current_year - i}-12-31", eps=past_eps, year=current_year - i))
    return entries


def synthesize_eps_from_defaults(trailing_eps: float, current_year: int) -> list[EpsHistoryEntry]:
    entries: list[EpsHistoryEntry] = []
    n = len(DEFAULT_GROWTH_PATH)
    for i in range(n, 0, -1):
        compounded = math.prod(1 + g for g in DEFAULT_GROWTH_PATH[n - i :])
        past_eps = trailing_eps / compounded
        if past_eps > 0 and math.isfinite(past_eps):
            entries.append(EpsHistoryEntry(date=f"{current_year - i}-12-31", eps=past_eps, year=current_year - i))
    return entries


def find_nearest_eps(eps_history: Sequence[EpsHistoryEntry], year: int) -> float | None:
    nearest: float | None = None
    min_diff = math.inf
    for entry in eps_history:
        diff = abs(entry.year - year)
        if diff < min_diff:
            min_diff = diff
            nearest = entry.eps
    return nearest


def _valid_pe(pe: float | None) -> bool:
    return pe is not None and PE_VALID_MIN < pe < PE_VALID_MAX


def build_pe_history(
    prices: Sequence[PricePoint],
    eps_history: Sequence[EpsHistoryEntry],
    trailing_pe: float | None = None,
    forward_pe: float | None = None,
    industry_pe: float | None = None,
) -> list[float]:
    """Year-end price over nearest-year EPS, followed by the current multiples."""
    pe_history: list[float] = []

    if prices and eps_history:
        year_end: dict[int, tuple[int, float]] = {}
        for point in prices:
            dt = _parse_point_date(point.date)
            if dt is None:
                continue
            year, month = dt
            if year not in year_end or month >= year_end[year][0]:
                year_end[year] = (month, point.close)

        for year, (_, close) in year_end.items():
            eps = find_nearest_eps(eps_history, year)
            if eps is not None and eps > 0:
                pe = close / eps
                if _valid_pe(pe):
                    pe_history.append(pe)

    for pe in (trailing_pe, forward_pe, industry_pe):
        if _valid_pe(pe):
            pe_history.append(float(pe))  # type: ignore[arg-type]

    return pe_history


def _parse_point_date(date_str: str) -> tuple[int, int] | None:
    parts = date_str[:7].split("-")
    if len(parts) != 2 or not all(p.isdigit() for p in parts):
        return None
    return int(parts[0]), int(parts[1])


def _dedupe(warnings: Sequence[str]) -> list[str]:
    return [w for w in dict.fromkeys(warnings) if w]


class StockDataFetcher:
    def __init__(
        self,
        context: ValuationContext,
        yahoo: YahooFinance | None = None,
        moneycontrol: Moneycontrol | None = None,
    ):
        self.context = context
        self.yahoo = yahoo or YahooFinance(context)
        self.moneycontrol = moneycontrol or Moneycontrol(context)

    async def close(self) -> None:
        await self.yahoo.close()
        await self.moneycontrol.close()

    async def __aenter__(self) -> "StockDataFetcher":
        return self

    async def __aexit__(self, *_exc: object) -> None:
        await self.close()

    async def _moneycontrol(self, ticker: str) -> tuple[JsonDict | None, JsonDict | None]:
        try:
            return await self.moneycontrol.fetch_fundamentals(ticker)
        except _SOURCE_ERRORS as e:
            logger.warning(f"Moneycontrol lookup failed for {ticker}: {e}")
            return None, None

    async def _yahoo_summary(self, ticker: str) -> JsonDict | None:
        try:
            return await self.yahoo.fetch_quote_summary(ticker)
        except _SOURCE_ERRORS as e:
            logger.warning(f"Yahoo quoteSummary failed for {ticker}: {e}")
            return None

    async def _yahoo_chart(self, ticker: str, lookback_years: int) -> ChartData:
        try:
            return await self.yahoo.fetch_chart(ticker, chart_range(lookback_years), "1mo")
        except _SOURCE_ERRORS as e:
            logger.warning(f"Yahoo chart failed for {ticker}: {e}")
            return ChartData()

    async def fetch(self, ticker: str, lookback_years: int | None = None) -> StockData:
        lookback_years = lookback_years or self.context.lookback_years
        logger.info(f"Fetching stock data: ticker={ticker}, lookback={lookback_years}y")

        warnings: list[str] = []
        mc_hit, mc_data = await self._moneycontrol(ticker)
        summary = await self._yahoo_summary(ticker)
        chart = await self._yahoo_chart(ticker, lookback_years)

        current_price: float | None = None
        trailing_eps: float | None = None
        trailing_pe: float | None = None
        forward_pe: float | None = None
        shares: float | None = None
        company_name = ticker
        currency: str | None = None
        exchange: str | None = None
        market_state: str | None = None
        source = "moneycontrol"

        if mc_data:
            current_price = first_number(mc_data.get("pricecurrent"), mc_data.get("LP"))
            trailing_eps = first_number(mc_data.get("SC_TTM"), mc_data.get("sc_ttm_cons"))
            trailing_pe = first_number(mc_data.get("PE"), mc_data.get("PECONS"))
            forward_pe = first_number(mc_data.get("PECONS"))
            shares = first_number(mc_data.get("SHRS"))
            company_name = str(mc_data.get("SC_FULLNM") or (mc_hit or {}).get("stock_name") or ticker)
            currency = "INR"
            exchange = "BSE" if mc_data.get("exchange") == "B" else "NSE"
            market_state = str(mc_data.get("market_state") or "")
            source = "moneycontrol"
        elif summary:
            price = _section(summary, "price")
            detail = _section(summary, "summaryDetail")
            stats = _section(summary, "defaultKeyStatistics")
            financial = _section(summary, "financialData")

            current_price = first_number(
                price.get("regularMarketPrice"), financial.get("currentPrice"), detail.get("previousClose")
            )
            trailing_eps = first_number(stats.get("trailingEps"), financial.get("trailingEps"))
            trailing_pe = first_number(detail.get("trailingPE"), price.get("trailingPE"))
            forward_pe = first_number(detail.get("forwardPE"), stats.get("forwardPE"))
            shares = first_number(stats.get("sharesOutstanding"), price.get("sharesOutstanding"))
            company_name = str(price.get("shortName") or price.get("longName") or ticker)
            currency = str(price.get("currency") or "INR")
            exchange = str(price.get("exchangeName") or price.get("exchange") or "")
            market_state = str(price.get("marketState") or "")
            source = "yahoo"
        elif chart.meta:
            meta = chart.meta
            current_price = first_number(meta.get("regularMarketPrice"), meta.get("previousClose"))
            company_name = str(meta.get("shortName") or meta.get("longName") or ticker)
            currency = str(meta.get("currency") or "INR")
            exchange = str(meta.get("exchangeName") or "")
            market_state = ""
            source = "yahoo-chart"
            warnings.append(CHART_ONLY_WARNING)

        if not current_price:
            raise DataUnavailableError("Could not determine current price from any data source.")

        if not trailing_pe and trailing_eps and trailing_eps > 0:
            trailing_pe = current_price / trailing_eps

        if not trailing_eps:
            raise DataUnavailableError("Trailing EPS not available. Please provide manual EPS input.")

        current_year = utc().year
        eps_history = eps_from_income_statements(summary, shares)
        if len(eps_history) < 2:
            eps_history.extend(eps_from_earnings_chart(summary, shares))

        if not any(entry.year >= current_year - 1 for entry in eps_history):
            eps_history.append(EpsHistoryEntry(date=utc_iso(), eps=trailing_eps, year=current_year))
        eps_history.sort(key=lambda e: e.year)

        price_returns = annual_returns(chart.prices)

        if len(eps_history) < MIN_EPS_HISTORY:
            if len(price_returns) >= 2:
                eps_history = synthesize_eps_from_returns(trailing_eps, price_returns, current_year) + eps_history
                warnings.append(ESTIMATED_EPS_WARNING)
                logger.info(f"{ticker}: EPS history estimated from {len(price_returns)} annual price returns")

            if len(eps_history) < MIN_EPS_HISTORY:
                eps_history = synthesize_eps_from_defaults(trailing_eps, current_year) + eps_history
                warnings.append(DEFAULT_EPS_WARNING)
                logger.info(f"{ticker}: EPS history padded with default growth path")

        eps_history.sort(key=lambda e: e.year)

        industry_pe = first_number(mc_data.get("IND_PE")) if mc_data else None
        pe_history = build_pe_history(chart.prices, eps_history, trailing_pe, forward_pe, industry_pe)

        growth_dist = compute_eps_growth_distribution(eps_history)
        pe_dist = compute_pe_distribution(pe_history)

        if growth_dist.warning:
            warnings.append(growth_dist.warning)
        if pe_dist.warning:
            warnings.append(pe_dist.warning)
        if len(eps_history) < MIN_EPS_HISTORY:
            warnings.append("Limited EPS history. Growth estimates may be less reliable.")
        if len(pe_history) < MIN_PE_HISTORY:
            warnings.append("Limited P/E history. P/E distribution may be less reliable.")

        logger.info(
            f"{ticker}: price={current_price:.2f}, eps={trailing_eps:.2f}, source={source}, "
            f"eps_points={len(eps_history)}, pe_points={len(pe_history)}"
        )

        return StockData(
            ticker=ticker,
            current_price=current_price,
            trailing_eps=trailing_eps,
            trailing_pe=trailing_pe,
            forward_pe=forward_pe,
            shares_outstanding=shares,
            company_name=company_name,
            currency=currency,
            exchange=exchange,
            market_state=market_state,
            source=source,
            fetch_timestamp=utc_iso(),
            eps_history=eps_history,
            pe_history=pe_history,
            historical_prices=chart.prices,
            price_returns=price_returns,
            growth_distribution=growth_dist,
            pe_distribution=pe_dist,
            warnings=_dedupe(warnings),
        )


def _section(summary: JsonDict, name: str) -> dict[str, Any]:
    value = summary.get(name)
    return value if isinstance(value, dict) else {}
