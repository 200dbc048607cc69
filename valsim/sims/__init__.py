from .export import simulation_to_csv, trials_frame
from .monte_carlo import MonteCarloSimulator, run_simulation
from .sampler import NumpyUniformSource, UniformSource, standard_normal, truncated_normal

__all__ = [
    "MonteCarloSimulator",
    "NumpyUniformSource",
    "UniformSource",
    "run_simulation",
    "simulation_to_csv",
    "standard_normal",
    "trials_frame",
    "truncated_normal",
]
