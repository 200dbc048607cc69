from __future__ import annotations

from collections.abc import Sequence

import numpy as np

from valsim.models.simulation import HistogramBin, PercentileSummary, Scenario, Sensitivity, TrialSet
from valsim.stats.robust import mean, percentile, population_variance

PRICE_BINS = 50
CAGR_BINS = 50
GROWTH_BINS = 30
PE_BINS = 30

SCENARIO_PERCENTILES: tuple[tuple[str, float], ...] = (("p25", 25), ("p50", 50), ("p75", 75))


def build_histogram(values: Sequence[float] | np.ndarray, num_bins: int) -> list[HistogramBin]:
    arr = np.asarray(values, dtype=float)
    if arr.size == 0:
        return []
    lo = float(arr.min())
    hi = float(arr.max())
    bin_width = (hi - lo) / num_bins

    if bin_width == 0:
        return [HistogramBin(bin_start=lo, bin_end=lo, bin_mid=lo, count=int(arr.size), frequency=1.0)]

    idx = np.floor((arr - lo) / bin_width).astype(int)
    idx = np.clip(idx, 0, num_bins - 1)
    counts = np.bincount(idx, minlength=num_bins)

    total = arr.size
    return [
        HistogramBin(
            bin_start=lo + i * bin_width,
            bin_end=lo + (i + 1) * bin_width,
            bin_mid=lo + (i + 0.5) * bin_width,
            count=int(counts[i]),
            frequency=float(counts[i]) / total,
        )
        for i in range(num_bins)
    ]


def percentile_summary(values: np.ndarray) -> PercentileSummary:
    return PercentileSummary(
        p10=percentile(values, 10),
        p25=percentile(values, 25),
        p50=percentile(values, 50),
        p75=percentile(values, 75),
        p90=percentile(values, 90),
        mean=mean(values),
    )


def terminal_point(eps0: float, price0: float, years: int, growth: float, pe: float) -> tuple[float, float, float]:
    """Deterministic (epsT, priceT, cagr) for one growth/P-E pair."""
    eps_t = eps0 * (1 + growth) ** years
    price_t = eps_t * pe
    with np.errstate(invalid="ignore"):
        cagr = float(np.power(price_t / price0, 1 / years) - 1)
    return eps_t, price_t, cagr


def build_scenarios(trials: TrialSet, eps0: float, price0: float, years: int) -> list[Scenario]:
    """3x3 cross of trial growth and P/E percentiles, growth-major order."""
    growth_points = [(label, percentile(trials.growth, p)) for label, p in SCENARIO_PERCENTILES]
    pe_points = [(label, percentile(trials.pe, p)) for label, p in SCENARIO_PERCENTILES]

    scenarios: list[Scenario] = []
    for g_label, g_value in growth_points:
        for pe_label, pe_value in pe_points:
            eps_t, price_t, cagr = terminal_point(eps0, price0, years, g_value, pe_value)
            scenarios.append(
                Scenario(
                    growth_label=g_label,
                    growth_value=g_value,
                    pe_label=pe_label,
                    pe_value=pe_value,
                    eps_t=eps_t,
                    price_t=price_t,
                    cagr=cagr,
                )
            )
    return scenarios


def variance_decomposition(trials: TrialSet, eps0: float, years: int) -> Sensitivity:
    """Split price variance between growth and P/E by holding the other at its median."""
    median_growth = percentile(trials.growth, 50)
    median_pe = percentile(trials.pe, 50)

    prices_vary_growth = eps0 * np.power(1 + trials.growth, years) * median_pe
    prices_vary_pe = eps0 * (1 + median_growth) ** years * trials.pe

    var_growth = population_variance(prices_vary_growth)
    var_pe = population_variance(prices_vary_pe)
    total = var_growth + var_pe

    if total > 0:
        growth_share = var_growth / total
        pe_share = var_pe / total
    else:
        growth_share = pe_share = 0.5

    return Sensitivity(
        growth_contribution=growth_share,
        pe_contribution=pe_share,
        var_growth=var_growth,
        var_pe=var_pe,
    )


def stride_step(num_trials: int, target: int = 2000) -> int:
    return max(1, num_trials // target)
