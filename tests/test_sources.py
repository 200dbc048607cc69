from __future__ import annotations

import httpx
import pytest

from valsim.core.base import ValuationContext
from valsim.core.rate_limit import RateLimitError
from valsim.sources.moneycontrol import Moneycontrol, exchange_for_ticker, strip_exchange_suffix
from valsim.sources.yahoo import YahooFinance, YahooSession, parse_chart

# 2020-01-01, 2020-02-01, 2020-03-01 UTC
TIMESTAMPS = [1577836800, 1580515200, 1583020800]


def chart_payload(closes: list[float | None]) -> dict:
    return {
        "chart": {
            "result": [
                {
                    "meta": {"currency": "INR", "regularMarketPrice": 1500.0, "exchangeName": "NSI"},
                    "timestamp": TIMESTAMPS[: len(closes)],
                    "indicators": {"quote": [{"close": closes, "volume": [10, None, 30][: len(closes)]}]},
                }
            ]
        }
    }


@pytest.fixture(autouse=True)
def _no_backoff(monkeypatch: pytest.MonkeyPatch) -> None:
    async def no_sleep(_seconds: float) -> None:
        return None

    monkeypatch.setattr("asyncio.sleep", no_sleep)


def test_exchange_helpers() -> None:
    assert strip_exchange_suffix("RELIANCE.NS") == "RELIANCE"
    assert strip_exchange_suffix("tcs.bo") == "tcs"
    assert strip_exchange_suffix("AAPL") == "AAPL"
    assert exchange_for_ticker("TCS.BO") == "bse"
    assert exchange_for_ticker("TCS.NS") == "nse"
    assert exchange_for_ticker("TCS") == "nse"


def test_parse_chart_skips_null_closes() -> None:
    chart = parse_chart(chart_payload([100.0, None, 120.0]))
    assert [p.close for p in chart.prices] == [100.0, 120.0]
    assert chart.prices[0].date == "2020-01-01T00:00:00Z"
    assert chart.prices[0].volume == 10.0
    assert chart.meta is not None and chart.meta["currency"] == "INR"


@pytest.mark.parametrize("payload", [{}, {"chart": {"result": []}}, {"chart": {"result": None}}, None])
def test_parse_chart_tolerates_malformed_payloads(payload) -> None:
    chart = parse_chart(payload)
    assert chart.prices == []
    assert chart.meta is None


@pytest.mark.asyncio
async def test_fetch_chart(context: ValuationContext) -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=chart_payload([100.0, 110.0, 121.0]))

    async with YahooFinance(context, transport=httpx.MockTransport(handler)) as yahoo:
        chart = await yahoo.fetch_chart("INFY.NS", "5y", "1mo")

    assert len(chart.prices) == 3
    assert seen[0].url.path == "/v8/finance/chart/INFY.NS"
    assert seen[0].url.params["range"] == "5y"
    assert seen[0].url.params["interval"] == "1mo"
    assert "Mozilla" in seen[0].headers["user-agent"]


@pytest.mark.asyncio
async def test_fetch_chart_non_success_is_empty(context: ValuationContext) -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(404, json={}))
    async with YahooFinance(context, transport=transport) as yahoo:
        chart = await yahoo.fetch_chart("NOPE.NS")
    assert chart.prices == []


@pytest.mark.asyncio
async def test_request_retries_server_errors(context: ValuationContext) -> None:
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        if calls < 3:
            return httpx.Response(503)
        return httpx.Response(200, json=chart_payload([100.0]))

    async with YahooFinance(context, transport=httpx.MockTransport(handler)) as yahoo:
        chart = await yahoo.fetch_chart("INFY.NS")

    assert calls == 3
    assert len(chart.prices) == 1


@pytest.mark.asyncio
async def test_request_gives_up_on_persistent_429(context: ValuationContext) -> None:
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(429)

    async with YahooFinance(context, transport=httpx.MockTransport(handler)) as yahoo:
        with pytest.raises(RateLimitError):
            await yahoo.fetch_chart("INFY.NS")
    assert calls == 3


@pytest.mark.asyncio
async def test_yahoo_session_is_cached(context: ValuationContext) -> None:
    crumb_calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal crumb_calls
        if request.url.host == "fc.yahoo.com":
            return httpx.Response(404, headers=[("set-cookie", "A1=abc; Path=/"), ("set-cookie", "A3=def; Path=/")])
        if request.url.path.endswith("/getcrumb"):
            crumb_calls += 1
            assert request.headers["cookie"] == "A1=abc; A3=def"
            return httpx.Response(200, text="crumb123\n")
        if "quoteSummary" in request.url.path:
            assert request.url.params["crumb"] == "crumb123"
            return httpx.Response(
                200, json={"quoteSummary": {"result": [{"price": {"regularMarketPrice": {"raw": 10.0}}}]}}
            )
        return httpx.Response(500)

    async with YahooFinance(context, transport=httpx.MockTransport(handler)) as yahoo:
        first = await yahoo.fetch_quote_summary("INFY.NS")
        second = await yahoo.fetch_quote_summary("INFY.NS")

    assert first == second == {"price": {"regularMarketPrice": {"raw": 10.0}}}
    assert crumb_calls == 1
    assert context.session_cache.get() == YahooSession(crumb="crumb123", cookies="A1=abc; A3=def")


@pytest.mark.asyncio
async def test_yahoo_summary_without_crumb(context: ValuationContext) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/getcrumb"):
            return httpx.Response(401, text="Unauthorized")
        return httpx.Response(200)

    async with YahooFinance(context, transport=httpx.MockTransport(handler)) as yahoo:
        assert await yahoo.fetch_quote_summary("INFY.NS") is None


@pytest.mark.asyncio
async def test_moneycontrol_fundamentals(context: ValuationContext) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if "autosuggestion" in request.url.path:
            assert request.url.params["query"] == "TCS"
            return httpx.Response(200, json=[{"link_src": "x"}, {"sc_id": "TCS", "stock_name": "Tata Consultancy"}])
        if request.url.path == "/pricefeed/bse/equitycash/TCS":
            return httpx.Response(200, json={"code": "200", "data": {"pricecurrent": "3500.5", "SC_TTM": "120"}})
        return httpx.Response(404)

    async with Moneycontrol(context, transport=httpx.MockTransport(handler)) as mc:
        hit, quote = await mc.fetch_fundamentals("TCS.BO")

    assert hit == {"sc_id": "TCS", "stock_name": "Tata Consultancy"}
    assert quote == {"pricecurrent": "3500.5", "SC_TTM": "120"}


@pytest.mark.asyncio
async def test_moneycontrol_rejects_failed_feed(context: ValuationContext) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if "autosuggestion" in request.url.path:
            return httpx.Response(200, json=[{"sc_id": "XYZ"}])
        return httpx.Response(200, json={"code": "404", "data": None})

    async with Moneycontrol(context, transport=httpx.MockTransport(handler)) as mc:
        hit, quote = await mc.fetch_fundamentals("XYZ.NS")

    assert hit == {"sc_id": "XYZ"}
    assert quote is None


@pytest.mark.asyncio
async def test_moneycontrol_search_no_results(context: ValuationContext) -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json=[]))
    async with Moneycontrol(context, transport=transport) as mc:
        assert await mc.fetch_fundamentals("NONE.NS") == (None, None)
