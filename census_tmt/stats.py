"""Summary statistics over a sequence of channel intensities.

All functions accept any sequence of numbers (lists, tuples, numpy arrays).
Undefined results (empty input, zero mean) are returned as NaN, or -inf for max,
instead of raising.
"""

from typing import Sequence

import numpy as np


def _as_array(values: Sequence[float]) -> np.ndarray:
    return np.asarray(values, dtype=np.float64)


def sum(values: Sequence[float]) -> float:
    return float(np.sum(_as_array(values)))


def mean(values: Sequence[float]) -> float:
    values = _as_array(values)
    if values.size == 0:
        return np.nan
    return float(np.mean(values))


def max(values: Sequence[float]) -> float:
    """Returns the maximum value, or -inf for an empty sequence."""
    values = _as_array(values)
    if values.size == 0:
        return -np.inf
    return float(np.max(values))


def stddev(values: Sequence[float]) -> float:
    """Population standard deviation (ddof=0)."""
    values = _as_array(values)
    if values.size == 0:
        return np.nan
    return float(np.std(values))


def stderr(values: Sequence[float]) -> float:
    """Standard error of the mean, based on the population standard deviation."""
    values = _as_array(values)
    if values.size == 0:
        return np.nan
    return float(stddev(values) / np.sqrt(values.size))


def cv(values: Sequence[float]) -> float:
    """Coefficient of variation, stddev / mean.

    Returns NaN for an empty sequence. A zero mean follows IEEE division,
    i.e. NaN if all values are zero.
    """
    values = _as_array(values)
    if values.size == 0:
        return np.nan
    with np.errstate(divide="ignore", invalid="ignore"):
        return float(np.float64(stddev(values)) / np.float64(mean(values)))
