from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import numpy as np

from valsim.models.simulation import (
    Distributions,
    SimulationParams,
    SimulationResult,
    SimulationSummary,
    TrialSet,
)
from valsim.sims.aggregate import (
    CAGR_BINS,
    GROWTH_BINS,
    PE_BINS,
    PRICE_BINS,
    build_histogram,
    build_scenarios,
    percentile_summary,
    stride_step,
    variance_decomposition,
)
from valsim.sims.sampler import UniformSource, default_source, truncated_normal
from valsim.utils.logging import get_logger

logger = get_logger(__name__)


def draw_trials(params: SimulationParams, source: UniformSource) -> TrialSet:
    n = params.num_simulations
    growth = np.empty(n, dtype=float)
    pe = np.empty(n, dtype=float)

    # Growth then P/E for each trial, so a seeded source replays identically
    for i in range(n):
        growth[i] = truncated_normal(params.mean_growth, params.sigma_growth, params.growth_min, params.growth_max, source)
        pe[i] = truncated_normal(params.mean_pe, params.sigma_pe, params.pe_min, params.pe_max, source)

    fd_target = fd_target_price(params)
    eps = params.eps0 * np.power(1 + growth, params.years)
    price = eps * pe
    with np.errstate(invalid="ignore"):
        cagr = np.power(price / params.price0, 1 / params.years) - 1

    return TrialSet(
        growth=growth,
        pe=pe,
        eps=eps,
        price=price,
        cagr=cagr,
        beats_fd=price > fd_target,
        is_loss=price < params.price0,
    )


def fd_target_price(params: SimulationParams) -> float:
    return params.price0 * (1 + params.fd_rate) ** params.years


class MonteCarloSimulator:
    def __init__(self, source: UniformSource | None = None, sample_target: int = 2000):
        self.source = source or default_source()
        self.sample_target = sample_target

    def simulate(self, params: SimulationParams) -> SimulationResult:
        logger.info(
            f"Running Monte Carlo: trials={params.num_simulations}, years={params.years}, "
            f"growth={params.mean_growth:.4f}±{params.sigma_growth:.4f}, "
            f"pe={params.mean_pe:.2f}±{params.sigma_pe:.2f}"
        )

        trials = draw_trials(params, self.source)
        n = len(trials)
        fd_target = fd_target_price(params)

        summary = SimulationSummary(
            price=percentile_summary(trials.price),
            cagr=percentile_summary(trials.cagr),
            prob_beats_fd=int(trials.beats_fd.sum()) / n,
            prob_loss=int(trials.is_loss.sum()) / n,
            fd_target=fd_target,
            fd_rate=params.fd_rate,
            years=params.years,
            num_simulations=n,
        )

        result = SimulationResult(
            summary=summary,
            scenarios=build_scenarios(trials, params.eps0, params.price0, params.years),
            sensitivity=variance_decomposition(trials, params.eps0, params.years),
            distributions=Distributions(
                price=build_histogram(trials.price, PRICE_BINS),
                cagr=build_histogram(trials.cagr, CAGR_BINS),
                growth=build_histogram(trials.growth, GROWTH_BINS),
                pe=build_histogram(trials.pe, PE_BINS),
            ),
            input_params=params,
            sampled_results=trials.strided(stride_step(n, self.sample_target)),
            trials=trials,
        )

        logger.info(
            f"Simulation complete: median_price={summary.price.p50:.2f}, "
            f"median_cagr={summary.cagr.p50:.2%}, "
            f"prob_beats_fd={summary.prob_beats_fd:.2%}, prob_loss={summary.prob_loss:.2%}"
        )

        return result


def run_simulation(
    params: SimulationParams | Mapping[str, Any],
    source: UniformSource | None = None,
) -> SimulationResult:
    """Run one Monte Carlo valuation.

    ``params`` may be a ``SimulationParams`` or a mapping with snake_case or
    camelCase keys; mappings are validated first and raise
    ``InvalidParametersError`` on bad input.
    """
    if not isinstance(params, SimulationParams):
        params = SimulationParams.parse(params)
    return MonteCarloSimulator(source=source).simulate(params)
