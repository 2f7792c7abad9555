"""Latency statistics over an already collected sample.

Every function works on a private copy of the sample and returns ``None``
("no data") for an empty sample instead of NaN.
"""

from __future__ import annotations

import math
from typing import Iterable, Sequence

import numpy as np

DEFAULT_PERCENTILES: tuple[float, ...] = (50.0, 90.0, 95.0, 99.0)


def percentile(latencies: Sequence[float], p: float) -> float | None:
    """Nearest-rank percentile: ``sorted[floor(n * p / 100)]`` clamped to the last index."""
    if not 0.0 <= p <= 100.0:
        msg = f"Percentile must be within [0, 100], got {p}"
        raise ValueError(msg)
    n = len(latencies)
    if n == 0:
        return None
    ordered = np.sort(np.asarray(latencies, dtype=float))
    index = min(math.floor(n * p / 100.0), n - 1)
    return float(ordered[index])


def percentiles(latencies: Sequence[float], ps: Iterable[float] = DEFAULT_PERCENTILES) -> dict[float, float | None]:
    return {p: percentile(latencies, p) for p in ps}


def mean(latencies: Sequence[float]) -> float | None:
    if len(latencies) == 0:
        return None
    return float(np.mean(np.asarray(latencies, dtype=float)))


def std_deviation(latencies: Sequence[float]) -> float | None:
    """Population standard deviation (divides by n, not n - 1)."""
    if len(latencies) == 0:
        return None
    return float(np.std(np.asarray(latencies, dtype=float), ddof=0))
