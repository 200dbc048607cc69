from .estimators import compute_eps_growth_distribution, compute_pe_distribution
from .robust import (
    iqr_sigma,
    mad_sigma,
    mean,
    median,
    median_absolute_deviation,
    percentile,
    population_variance,
    robust_sigma,
)

__all__ = [
    "compute_eps_growth_distribution",
    "compute_pe_distribution",
    "iqr_sigma",
    "mad_sigma",
    "mean",
    "median",
    "median_absolute_deviation",
    "percentile",
    "population_variance",
    "robust_sigma",
]
