"""Gaussian draws built on a pluggable uniform source.

The engine only ever asks for uniforms through ``UniformSource``, so a seeded
source makes whole simulation runs reproducible.
"""

from __future__ import annotations

import math
from typing import Protocol, runtime_checkable

import numpy as np

MAX_ATTEMPTS = 100


@runtime_checkable
class UniformSource(Protocol):
    def next_uniform(self) -> float:
        """Return a float in ``[0, 1)``."""
        ...


class NumpyUniformSource:
    """Uniform draws from a ``numpy.random.Generator``.

    Uniforms are pulled from the generator in blocks; the sequence handed out
    is the same as drawing one at a time, so a given seed always replays the
    same run.
    """

    def __init__(self, seed: int | None = None, block_size: int = 4096):
        self.seed = seed
        self._rng = np.random.default_rng(seed)
        self._block_size = block_size
        self._block: list[float] = []
        self._pos = 0

    def next_uniform(self) -> float:
        if self._pos >= len(self._block):
            self._block = self._rng.random(self._block_size).tolist()
            self._pos = 0
        value = self._block[self._pos]
        self._pos += 1
        return value


_default_source: UniformSource | None = None


def default_source() -> UniformSource:
    """Process-wide unseeded source used when callers do not inject one."""
    global _default_source
    if _default_source is None:
        _default_source = NumpyUniformSource()
    return _default_source


def standard_normal(source: UniformSource | None = None) -> float:
    """Box-Muller transform of two uniforms."""
    source = source or default_source()
    u1 = source.next_uniform()
    while u1 == 0.0:
        u1 = source.next_uniform()
    u2 = source.next_uniform()
    return math.sqrt(-2.0 * math.log(u1)) * math.cos(2.0 * math.pi * u2)


def clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def truncated_normal(
    mean: float,
    sigma: float,
    lo: float,
    hi: float,
    source: UniformSource | None = None,
) -> float:
    """Rejection-sample ``N(mean, sigma)`` restricted to ``[lo, hi]``.

    After ``MAX_ATTEMPTS`` rejected draws the clamped mean is returned, which
    biases towards ``mean`` only when ``sigma`` dwarfs the window.
    """
    source = source or default_source()
    for _ in range(MAX_ATTEMPTS):
        value = mean + sigma * standard_normal(source)
        if lo <= value <= hi:
            return value
    return clamp(mean, lo, hi)
