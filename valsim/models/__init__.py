"""Data models for valsim."""

from valsim.models.simulation import (
    Distributions,
    HistogramBin,
    PercentileSummary,
    Scenario,
    Sensitivity,
    SimulationParams,
    SimulationResult,
    SimulationSummary,
    SimulationTrial,
    TrialSet,
)
from valsim.models.stock import PricePoint, StockData
from valsim.models.valuation import EpsHistoryEntry, GrowthDistribution, PEDistribution

__all__ = [
    # Historical inputs
    "EpsHistoryEntry",
    "GrowthDistribution",
    "PEDistribution",
    "PricePoint",
    "StockData",
    # Simulation models
    "SimulationParams",
    "SimulationTrial",
    "TrialSet",
    "PercentileSummary",
    "SimulationSummary",
    "Scenario",
    "Sensitivity",
    "HistogramBin",
    "Distributions",
    "SimulationResult",
]
