"""Simulation inputs, per-trial records and the aggregated result."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

import numpy as np
from pydantic import BaseModel, Field, ValidationError, model_validator

from valsim.errors import InvalidParametersError

_RESULT_CONFIG = {"frozen": True, "populate_by_name": True, "ser_json_inf_nan": "null"}


class SimulationParams(BaseModel):
    price0: float = Field(gt=0)
    eps0: float
    pe0: float | None = None
    years: int = Field(default=5, gt=0)
    num_simulations: int = Field(default=20_000, gt=0, alias="numSimulations")
    fd_rate: float = Field(default=0.07, gt=-1, alias="fdRate")
    mean_growth: float = Field(alias="meanGrowth")
    sigma_growth: float = Field(ge=0, alias="sigmaGrowth")
    mean_pe: float = Field(alias="meanPE")
    sigma_pe: float = Field(ge=0, alias="sigmaPE")
    growth_min: float = Field(default=-0.20, gt=-1, alias="growthMin")
    growth_max: float = Field(default=0.40, alias="growthMax")
    pe_min: float = Field(default=5.0, ge=0, alias="peMin")
    pe_max: float = Field(default=60.0, alias="peMax")

    model_config = {"frozen": True, "populate_by_name": True, "allow_inf_nan": False, "extra": "ignore"}

    @model_validator(mode="before")
    @classmethod
    def default_pe0(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("pe0") is None:
            price0, eps0 = data.get("price0"), data.get("eps0")
            if isinstance(price0, (int, float)) and isinstance(eps0, (int, float)) and eps0 != 0:
                data = {**data, "pe0": price0 / eps0}
        return data

    @model_validator(mode="after")
    def check_consistency(self) -> "SimulationParams":
        if self.eps0 == 0:
            raise ValueError("eps0 must be non-zero")
        if self.growth_min > self.growth_max:
            raise ValueError(f"growth_min ({self.growth_min}) must not exceed growth_max ({self.growth_max})")
        if self.pe_min > self.pe_max:
            raise ValueError(f"pe_min ({self.pe_min}) must not exceed pe_max ({self.pe_max})")
        return self

    @classmethod
    def parse(cls, data: Mapping[str, Any]) -> "SimulationParams":
        """Validate a mapping (snake_case or camelCase keys), raising ``InvalidParametersError``."""
        try:
            return cls.model_validate(dict(data))
        except ValidationError as e:
            raise InvalidParametersError(_describe(e)) from e


def _describe(error: ValidationError) -> str:
    parts = []
    for err in error.errors():
        loc = ".".join(str(p) for p in err["loc"]) or "params"
        parts.append(f"{loc}: {err['msg']}")
    return "Invalid simulation parameters: " + "; ".join(parts)


class SimulationTrial(BaseModel):
    g: float
    pe_t: float = Field(alias="peT")
    eps_t: float = Field(alias="epsT")
    price_t: float = Field(alias="priceT")
    cagr: float
    beats_fd: bool = Field(alias="beatsFD")
    is_loss: bool = Field(alias="isLoss")

    model_config = _RESULT_CONFIG


@dataclass(frozen=True)
class TrialSet:
    """Columnar storage for every trial of one run, index-aligned."""

    growth: np.ndarray
    pe: np.ndarray
    eps: np.ndarray
    price: np.ndarray
    cagr: np.ndarray
    beats_fd: np.ndarray
    is_loss: np.ndarray

    def __len__(self) -> int:
        return int(self.growth.size)

    def trial(self, i: int) -> SimulationTrial:
        return SimulationTrial(
            g=float(self.growth[i]),
            pe_t=float(self.pe[i]),
            eps_t=float(self.eps[i]),
            price_t=float(self.price[i]),
            cagr=float(self.cagr[i]),
            beats_fd=bool(self.beats_fd[i]),
            is_loss=bool(self.is_loss[i]),
        )

    def strided(self, step: int) -> list[SimulationTrial]:
        return [self.trial(i) for i in range(0, len(self), step)]


class PercentileSummary(BaseModel):
    p10: float
    p25: float
    p50: float
    p75: float
    p90: float
    mean: float

    model_config = _RESULT_CONFIG


class SimulationSummary(BaseModel):
    price: PercentileSummary
    cagr: PercentileSummary
    prob_beats_fd: float = Field(alias="probBeatsFD")
    prob_loss: float = Field(alias="probLoss")
    fd_target: float = Field(alias="fdTarget")
    fd_rate: float = Field(alias="fdRate")
    years: int
    num_simulations: int = Field(alias="numSimulations")

    model_config = _RESULT_CONFIG


class Scenario(BaseModel):
    growth_label: str = Field(alias="growthLabel")
    growth_value: float = Field(alias="growthValue")
    pe_label: str = Field(alias="peLabel")
    pe_value: float = Field(alias="peValue")
    eps_t: float = Field(alias="epsT")
    price_t: float = Field(alias="priceT")
    cagr: float

    model_config = _RESULT_CONFIG


class Sensitivity(BaseModel):
    growth_contribution: float = Field(alias="growthContribution")
    pe_contribution: float = Field(alias="peContribution")
    var_growth: float = Field(alias="varGrowth")
    var_pe: float = Field(alias="varPE")

    model_config = _RESULT_CONFIG


class HistogramBin(BaseModel):
    bin_start: float = Field(alias="binStart")
    bin_end: float = Field(alias="binEnd")
    bin_mid: float = Field(alias="binMid")
    count: int
    frequency: float

    model_config = _RESULT_CONFIG


class Distributions(BaseModel):
    price: list[HistogramBin]
    cagr: list[HistogramBin]
    growth: list[HistogramBin]
    pe: list[HistogramBin]

    model_config = _RESULT_CONFIG


class SimulationResult(BaseModel):
    summary: SimulationSummary
    scenarios: list[Scenario]
    sensitivity: Sensitivity
    distributions: Distributions
    input_params: SimulationParams = Field(alias="inputParams")
    sampled_results: list[SimulationTrial] = Field(alias="sampledResults")
    trials: TrialSet = Field(exclude=True, repr=False)

    model_config = {**_RESULT_CONFIG, "arbitrary_types_allowed": True}

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)

    def to_json(self, indent: int | None = None) -> str:
        """JSON text; non-finite floats (NaN CAGR for loss-making EPS) are written as null."""
        return self.model_dump_json(by_alias=True, indent=indent)
