"""Historical inputs and the fitted distributions derived from them."""

from pydantic import BaseModel, Field


class EpsHistoryEntry(BaseModel):
    date: str = ""
    eps: float | None
    year: int

    model_config = {"frozen": True, "extra": "ignore"}


class GrowthDistribution(BaseModel):
    mean_growth: float = Field(alias="meanGrowth")
    sigma_growth: float = Field(alias="sigmaGrowth")
    growth_rates: list[float] = Field(default_factory=list, alias="growthRates")
    data_points: int = Field(default=0, alias="dataPoints")
    warning: str | None = None

    model_config = {"frozen": True, "populate_by_name": True}


class PEDistribution(BaseModel):
    mean_pe: float = Field(alias="meanPE")
    sigma_pe: float = Field(alias="sigmaPE")
    pe_values: list[float] = Field(default_factory=list, alias="peValues")
    data_points: int = Field(default=0, alias="dataPoints")
    warning: str | None = None

    model_config = {"frozen": True, "populate_by_name": True}
