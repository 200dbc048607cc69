from __future__ import annotations

from pydantic import BaseModel, Field

from valsim.models.valuation import EpsHistoryEntry, GrowthDistribution, PEDistribution


class PricePoint(BaseModel):
    date: str
    close: float
    volume: float = 0.0

    model_config = {"frozen": True, "extra": "ignore"}


class StockData(BaseModel):
    ticker: str
    current_price: float = Field(alias="currentPrice")
    trailing_eps: float = Field(alias="trailingEps")
    trailing_pe: float | None = Field(default=None, alias="trailingPE")
    forward_pe: float | None = Field(default=None, alias="forwardPE")
    shares_outstanding: float | None = Field(default=None, alias="sharesOutstanding")
    company_name: str = Field(alias="companyName")
    currency: str | None = None
    exchange: str | None = None
    market_state: str | None = Field(default=None, alias="marketState")
    source: str
    fetch_timestamp: str = Field(alias="fetchTimestamp")
    eps_history: list[EpsHistoryEntry] = Field(default_factory=list, alias="epsHistory")
    pe_history: list[float] = Field(default_factory=list, alias="peHistory")
    historical_prices: list[PricePoint] = Field(default_factory=list, alias="historicalPrices")
    price_returns: list[float] = Field(default_factory=list, alias="priceReturns")
    growth_distribution: GrowthDistribution = Field(alias="growthDistribution")
    pe_distribution: PEDistribution = Field(alias="peDistribution")
    warnings: list[str] = Field(default_factory=list)

    model_config = {"frozen": True, "populate_by_name": True}

    def to_payload(self) -> dict[str, object]:
        return self.model_dump(by_alias=True)

    def to_json(self, indent: int | None = None) -> str:
        return self.model_dump_json(by_alias=True, indent=indent)
