"""Fit (mean, sigma) pairs for EPS growth and P/E from noisy history.

Neither estimator raises for thin data: both fall back to fixed defaults and
attach a warning so callers can flag the numbers as approximate.
"""

from __future__ import annotations

from collections.abc import Sequence

from valsim.models.valuation import EpsHistoryEntry, GrowthDistribution, PEDistribution
from valsim.stats.robust import median, robust_sigma
from valsim.utils.constants import PE_VALID_MAX, PE_VALID_MIN
from valsim.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_MEAN_GROWTH = 0.10
DEFAULT_SIGMA_GROWTH = 0.15
MIN_SIGMA_GROWTH = 0.10
MIN_EPS_ENTRIES = 2
MIN_GROWTH_RATES = 2

DEFAULT_MEAN_PE = 25.0
DEFAULT_SIGMA_PE = 8.0
MIN_SIGMA_PE = 3.0
MIN_PE_ENTRIES = 3


def growth_rates_from_history(eps_history: Sequence[EpsHistoryEntry]) -> list[float]:
    """Year-over-year relative EPS growth, skipping pairs whose prior EPS is not positive."""
    rates: list[float] = []
    for prev, curr in zip(eps_history, eps_history[1:]):
        if prev.eps is not None and prev.eps > 0 and curr.eps is not None:
            rates.append((curr.eps - prev.eps) / abs(prev.eps))
    return rates


def compute_eps_growth_distribution(eps_history: Sequence[EpsHistoryEntry] | None) -> GrowthDistribution:
    if not eps_history or len(eps_history) < MIN_EPS_ENTRIES:
        logger.warning("Insufficient EPS history, using default growth assumptions")
        return GrowthDistribution(
            mean_growth=DEFAULT_MEAN_GROWTH,
            sigma_growth=DEFAULT_SIGMA_GROWTH,
            growth_rates=[],
            data_points=0,
            warning="Insufficient EPS history. Using default growth assumptions (10% ± 15%).",
        )

    rates = growth_rates_from_history(eps_history)

    if len(rates) < MIN_GROWTH_RATES:
        logger.warning(f"Only {len(rates)} valid growth rate(s), using default growth assumptions")
        return GrowthDistribution(
            mean_growth=DEFAULT_MEAN_GROWTH,
            sigma_growth=DEFAULT_SIGMA_GROWTH,
            growth_rates=rates,
            data_points=len(rates),
            warning="Too few valid growth data points. Using default assumptions.",
        )

    computed_sigma = robust_sigma(rates)
    warning = None
    if computed_sigma < MIN_SIGMA_GROWTH:
        warning = (
            f"Computed growth volatility ({computed_sigma * 100:.1f}%) was too low; "
            f"floored to {MIN_SIGMA_GROWTH * 100:.0f}%."
        )
        logger.debug(warning)

    return GrowthDistribution(
        mean_growth=median(rates),
        sigma_growth=max(computed_sigma, MIN_SIGMA_GROWTH),
        growth_rates=rates,
        data_points=len(rates),
        warning=warning,
    )


def compute_pe_distribution(pe_history: Sequence[float] | None) -> PEDistribution:
    if not pe_history or len(pe_history) < MIN_PE_ENTRIES:
        logger.warning("Insufficient P/E history, using default P/E assumptions")
        return PEDistribution(
            mean_pe=DEFAULT_MEAN_PE,
            sigma_pe=DEFAULT_SIGMA_PE,
            pe_values=[],
            data_points=0,
            warning="Insufficient P/E history. Using default P/E assumptions (25 ± 8).",
        )

    valid = [float(pe) for pe in pe_history if PE_VALID_MIN < pe < PE_VALID_MAX]

    if len(valid) < MIN_PE_ENTRIES:
        logger.warning(f"Only {len(valid)} P/E value(s) within range, using default P/E assumptions")
        return PEDistribution(
            mean_pe=DEFAULT_MEAN_PE,
            sigma_pe=DEFAULT_SIGMA_PE,
            pe_values=valid,
            data_points=len(valid),
            warning="Too few valid P/E data points. Using default assumptions.",
        )

    computed_sigma = robust_sigma(valid)
    warning = None
    if computed_sigma < MIN_SIGMA_PE:
        warning = f"Computed P/E volatility ({computed_sigma:.1f}) was too low; floored to {MIN_SIGMA_PE}."
        logger.debug(warning)

    return PEDistribution(
        mean_pe=median(valid),
        sigma_pe=max(computed_sigma, MIN_SIGMA_PE),
        pe_values=valid,
        data_points=len(valid),
        warning=warning,
    )
