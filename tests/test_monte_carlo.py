from __future__ import annotations

import numpy as np
import pytest

from valsim.errors import InvalidParametersError
from valsim.models.simulation import SimulationParams
from valsim.sims.monte_carlo import MonteCarloSimulator, run_simulation
from valsim.sims.sampler import NumpyUniformSource

BASE_PARAMS = {
    "price0": 100,
    "eps0": 5,
    "pe0": 20,
    "years": 5,
    "numSimulations": 10_000,
    "fdRate": 0.07,
    "meanGrowth": 0.10,
    "sigmaGrowth": 0.10,
    "meanPE": 20,
    "sigmaPE": 3,
    "growthMin": -0.2,
    "growthMax": 0.4,
    "peMin": 5,
    "peMax": 60,
}


@pytest.fixture(scope="module")
def result():
    return run_simulation(BASE_PARAMS, source=NumpyUniformSource(seed=2024))


def test_end_to_end_median_price(result) -> None:
    expected = 5 * 1.10**5 * 20
    assert result.summary.num_simulations == 10_000
    assert result.summary.price.p50 == pytest.approx(expected, rel=0.15)


def test_trial_identities_hold(result) -> None:
    trials = result.trials
    assert len(trials) == 10_000
    np.testing.assert_array_equal(trials.price, trials.eps * trials.pe)
    np.testing.assert_allclose(trials.cagr, (trials.price / 100) ** (1 / 5) - 1, rtol=1e-12)
    np.testing.assert_allclose(trials.eps, 5 * (1 + trials.growth) ** 5, rtol=1e-12)


def test_trials_respect_truncation_bounds(result) -> None:
    trials = result.trials
    assert trials.growth.min() >= -0.2
    assert trials.growth.max() <= 0.4
    assert trials.pe.min() >= 5
    assert trials.pe.max() <= 60


def test_summary_probabilities(result) -> None:
    trials = result.trials
    fd_target = 100 * 1.07**5
    summary = result.summary
    assert summary.fd_target == pytest.approx(fd_target)
    assert summary.prob_beats_fd == pytest.approx(float(np.mean(trials.price > fd_target)))
    assert summary.prob_loss == pytest.approx(float(np.mean(trials.price < 100)))
    assert summary.fd_rate == 0.07
    assert summary.years == 5
    assert summary.price.p10 <= summary.price.p25 <= summary.price.p50 <= summary.price.p75 <= summary.price.p90


def test_histograms_cover_every_trial(result) -> None:
    dists = result.distributions
    assert len(dists.price) == 50
    assert len(dists.cagr) == 50
    assert len(dists.growth) == 30
    assert len(dists.pe) == 30
    for bins in (dists.price, dists.cagr, dists.growth, dists.pe):
        assert sum(b.count for b in bins) == 10_000


def test_scenarios_and_sensitivity(result) -> None:
    assert len(result.scenarios) == 9
    prices = [s.price_t for s in result.scenarios]
    # higher growth and higher P/E can only raise the deterministic scenario price
    assert prices[0] <= prices[4] <= prices[8]
    sens = result.sensitivity
    assert sens.growth_contribution + sens.pe_contribution == pytest.approx(1.0)


def test_sampled_results_use_fixed_stride(result) -> None:
    sampled = result.sampled_results
    step = 10_000 // 2000
    assert len(sampled) == 2000
    assert sampled[1].g == result.trials.growth[step]
    assert sampled[1].price_t == result.trials.price[step]


def test_seeded_runs_are_identical() -> None:
    params = {**BASE_PARAMS, "numSimulations": 500}
    first = run_simulation(params, source=NumpyUniformSource(seed=7))
    second = run_simulation(params, source=NumpyUniformSource(seed=7))
    assert first.to_payload() == second.to_payload()
    np.testing.assert_array_equal(first.trials.price, second.trials.price)


def test_different_seeds_differ() -> None:
    params = {**BASE_PARAMS, "numSimulations": 200}
    first = run_simulation(params, source=NumpyUniformSource(seed=1))
    second = run_simulation(params, source=NumpyUniformSource(seed=2))
    assert not np.array_equal(first.trials.price, second.trials.price)


def test_zero_sigma_collapses_to_point_estimate() -> None:
    params = {**BASE_PARAMS, "numSimulations": 100, "sigmaGrowth": 0, "sigmaPE": 0}
    res = run_simulation(params, source=NumpyUniformSource(seed=0))
    assert len(res.distributions.price) == 1
    assert res.distributions.price[0].count == 100
    assert res.sensitivity.growth_contribution == 0.5
    assert res.summary.price.p50 == pytest.approx(5 * 1.1**5 * 20)


def test_payload_uses_camel_case_keys(result) -> None:
    payload = result.to_payload()
    assert set(payload) == {"summary", "scenarios", "sensitivity", "distributions", "inputParams", "sampledResults"}
    assert {"probBeatsFD", "probLoss", "fdTarget", "numSimulations"} <= set(payload["summary"])
    assert set(payload["sampledResults"][0]) == {"g", "peT", "epsT", "priceT", "cagr", "beatsFD", "isLoss"}
    assert set(payload["distributions"]["price"][0]) == {"binStart", "binEnd", "binMid", "count", "frequency"}
    assert payload["inputParams"]["meanPE"] == 20
    assert payload["inputParams"]["growthMin"] == -0.2


def test_simulator_accepts_validated_params() -> None:
    params = SimulationParams.parse({**BASE_PARAMS, "numSimulations": 50})
    res = MonteCarloSimulator(source=NumpyUniformSource(seed=3), sample_target=10).simulate(params)
    assert len(res.sampled_results) == 10


@pytest.mark.parametrize(
    "override",
    [
        {"price0": 0},
        {"price0": -10},
        {"eps0": 0},
        {"years": 0},
        {"numSimulations": 0},
        {"sigmaGrowth": -0.1},
        {"sigmaPE": -1},
        {"growthMin": 0.5},
        {"peMin": 70},
        {"meanGrowth": float("nan")},
        {"price0": float("inf")},
    ],
)
def test_invalid_parameters_fail_fast(override: dict[str, float]) -> None:
    with pytest.raises(InvalidParametersError):
        run_simulation({**BASE_PARAMS, **override})
