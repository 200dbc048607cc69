"""Outlier-resistant summary statistics over numeric series.

Every function accepts any sequence of numbers (lists, tuples, numpy arrays)
and returns a plain ``float``. Empty input raises ``EmptySeriesError``.
"""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np

from valsim.errors import EmptySeriesError

# MAD * 1.4826 is a consistent estimator of the standard deviation under normality
MAD_TO_SIGMA = 1.4826
# Interquartile range of a standard normal distribution
IQR_TO_SIGMA = 1.349

Series = Sequence[float] | np.ndarray


def _as_array(values: Series) -> np.ndarray:
    arr = np.asarray(values, dtype=float)
    if arr.size == 0:
        raise EmptySeriesError("Cannot compute a statistic over an empty series")
    return arr


def median(values: Series) -> float:
    arr = np.sort(_as_array(values))
    mid = arr.size // 2
    if arr.size % 2:
        return float(arr[mid])
    return float((arr[mid - 1] + arr[mid]) / 2)


def median_absolute_deviation(values: Series) -> float:
    arr = _as_array(values)
    return median(np.abs(arr - median(arr)))


def mad_sigma(values: Series) -> float:
    return median_absolute_deviation(values) * MAD_TO_SIGMA


def percentile(values: Series, p: float) -> float:
    """Linear-interpolation percentile, ``p`` in ``[0, 100]``.

    The fractional rank is ``(p / 100) * (n - 1)``; a whole rank returns that
    element, anything else interpolates between its floor and ceiling
    neighbours.
    """
    if not 0 <= p <= 100:
        raise ValueError(f"Percentile must be within [0, 100], got {p}")
    arr = np.sort(_as_array(values))
    idx = (p / 100) * (arr.size - 1)
    lower = int(np.floor(idx))
    upper = int(np.ceil(idx))
    if lower == upper:
        return float(arr[lower])
    return float(arr[lower] + (arr[upper] - arr[lower]) * (idx - lower))


def iqr_sigma(values: Series) -> float:
    arr = _as_array(values)
    return (percentile(arr, 75) - percentile(arr, 25)) / IQR_TO_SIGMA


def robust_sigma(values: Series) -> float:
    """The smaller of the MAD and IQR sigma estimates."""
    arr = _as_array(values)
    return min(mad_sigma(arr), iqr_sigma(arr))


def mean(values: Series) -> float:
    return float(np.mean(_as_array(values)))


def population_variance(values: Series) -> float:
    arr = _as_array(values)
    if np.all(arr == arr[0]):
        return 0.0
    return float(np.mean((arr - arr.mean()) ** 2))
