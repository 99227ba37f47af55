"""
Mean-squared-displacement statistics of an ensemble of walks.

For every lag ``j = 1 .. T-1`` (``T`` = walk length) the analysis table holds

    column 0    ensemble-average MSD       <|r(j) - r(0)|^2>
    column 1    ensemble-time-average MSD  <TAMSD(t=j, delta=1)>
    column 2    ergodicity breaking        Var(TAMSD(j)) / <TAMSD(j)>^2 / j
    column 3+i  TAMSD(t=T, delta=j) of walk i

with ``TAMSD(t, delta) = 1/(t - delta) * sum_{k < t - delta} |r(k + delta) - r(k)|^2``.
Empty averaging windows and zero-variance ratios are reported as 0.

Reference: Metzler, Jeon, Cherstvy & Barkai, "Anomalous diffusion models and
their properties", Phys. Chem. Chem. Phys. 16, 24128 (2014).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numba
import numpy as np
from numba import njit, prange
from scipy.stats import linregress

EA_MSD = 0
EATA_MSD = 1
ERGODICITY = 2
FIRST_TAMSD = 3


@njit(cache=True)
def squared_distance(x1: float, x2: float, y1: float, y2: float) -> float:
    a = x1 - x2
    b = y1 - y2
    return a * a + b * b


@njit(cache=True)
def tamsd(walk: np.ndarray, t: int, delta: int) -> float:
    """Time-averaged MSD of one ``(steps, 2)`` trajectory prefix of length ``t``."""
    diff = t - delta
    if diff <= 0:
        return 0.0
    integral = 0.0
    for i in range(diff):
        integral += squared_distance(
            walk[i + delta, 0], walk[i, 0], walk[i + delta, 1], walk[i, 1]
        )
    return integral / diff


@njit(cache=True, parallel=True)
def _per_walk_msd(
    walks: np.ndarray,
    walk_length: int,
    ea_all: np.ndarray,
    ta_all: np.ndarray,
    eata_all: np.ndarray,
) -> None:
    for i in prange(walks.shape[0]):
        walk = walks[i]
        x0 = walk[0, 0]
        y0 = walk[0, 1]
        for j in range(1, walk_length):
            ea_all[j - 1, i] = squared_distance(walk[j, 0], x0, walk[j, 1], y0)
            ta_all[j - 1, i] = tamsd(walk, walk_length, j)

        # tamsd(walk, j, 1) as a running mean of one-step increments
        eata_all[0, i] = 0.0
        running = 0.0
        for j in range(2, walk_length):
            running += squared_distance(
                walk[j - 1, 0], walk[j - 2, 0], walk[j - 1, 1], walk[j - 2, 1]
            )
            eata_all[j - 1, i] = running / (j - 1)


def ergodicity_breaking(ta_msd: np.ndarray) -> np.ndarray:
    """
    EB parameter per lag from a ``(lags, n_walks)`` TAMSD matrix, divided by
    the lag. Non-finite values are set to 0.
    """
    ta_msd = np.asarray(ta_msd, dtype=np.float64)
    lags = np.arange(1, ta_msd.shape[0] + 1, dtype=np.float64)
    if ta_msd.shape[1] == 0:
        return np.zeros(ta_msd.shape[0])
    with np.errstate(divide="ignore", invalid="ignore"):
        mean_sq = np.mean(ta_msd, axis=1) ** 2
        mean_of_sq = np.mean(ta_msd**2, axis=1)
        eb = (mean_of_sq - mean_sq) / mean_sq
    eb[~np.isfinite(eb)] = 0.0
    return eb / lags


def analyze_msd(
    walk_coords: np.ndarray,
    walk_length: Optional[int] = None,
    n_walks: Optional[int] = None,
    n_jobs: Optional[int] = None,
) -> np.ndarray:
    """
    Build the ``(walk_length - 1, n_walks + 3)`` analysis table.

    ``walk_coords`` has shape ``(n_walks, walk_length, 2)``. The per-walk loop
    runs on numba threads; ``n_jobs`` caps the thread count.
    """
    walk_coords = np.asarray(walk_coords)
    if walk_coords.ndim != 3 or walk_coords.shape[2] != 2:
        raise ValueError(
            f"Expected walk coordinates of shape (n_walks, walk_length, 2), got {walk_coords.shape}"
        )
    if walk_length is None:
        walk_length = walk_coords.shape[1]
    if n_walks is None:
        n_walks = walk_coords.shape[0]
    if walk_coords.shape[:2] != (n_walks, walk_length):
        raise ValueError(
            f"walk_coords shape {walk_coords.shape} does not match "
            f"n_walks={n_walks}, walk_length={walk_length}"
        )
    if walk_length < 1:
        raise ValueError(f"walk_length must be > 0, got {walk_length}")

    table = np.zeros((walk_length - 1, n_walks + 3), dtype=np.float64)
    if n_walks == 0 or walk_length < 2:
        return table

    if n_jobs is not None:
        numba.set_num_threads(max(1, min(int(n_jobs), numba.config.NUMBA_NUM_THREADS)))

    ea_all = np.zeros((walk_length - 1, n_walks), dtype=np.float64)
    ta_all = np.zeros((walk_length - 1, n_walks), dtype=np.float64)
    eata_all = np.zeros((walk_length - 1, n_walks), dtype=np.float64)
    _per_walk_msd(np.ascontiguousarray(walk_coords), walk_length, ea_all, ta_all, eata_all)

    for block in (ea_all, ta_all, eata_all):
        block[~np.isfinite(block)] = 0.0

    table[:, EA_MSD] = ea_all.mean(axis=1)
    table[:, EATA_MSD] = eata_all.mean(axis=1)
    table[:, ERGODICITY] = ergodicity_breaking(ta_all)
    table[:, FIRST_TAMSD:] = ta_all
    return table


@dataclass
class MSDFit:
    """Power-law fit ``MSD(t) = coefficient * t**alpha``."""

    alpha: float
    coefficient: float
    intercept: float
    r_squared: float
    n_points: int


def fit_msd_exponent(
    msd: np.ndarray, lag_min: int = 1, lag_max: Optional[int] = None
) -> MSDFit:
    """
    Log-log least squares fit of an MSD column (row ``r`` <-> lag ``r + 1``)
    over ``lag_min <= lag <= lag_max``.

    alpha < 1 indicates subdiffusion, alpha == 1 normal diffusion.
    """
    msd = np.asarray(msd, dtype=np.float64)
    lags = np.arange(1, msd.shape[0] + 1, dtype=np.float64)
    if lag_max is None:
        lag_max = msd.shape[0]
    window = (lags >= lag_min) & (lags <= lag_max) & np.isfinite(msd) & (msd > 0)
    if np.count_nonzero(window) < 2:
        raise ValueError("Too few positive MSD values in the fitting window.")

    res = linregress(np.log(lags[window]), np.log(msd[window]))
    return MSDFit(
        alpha=float(res.slope),
        coefficient=float(np.exp(res.intercept)),
        intercept=float(res.intercept),
        r_squared=float(res.rvalue**2),
        n_points=int(np.count_nonzero(window)),
    )


__all__ = [
    "EA_MSD",
    "EATA_MSD",
    "ERGODICITY",
    "FIRST_TAMSD",
    "MSDFit",
    "analyze_msd",
    "ergodicity_breaking",
    "fit_msd_exponent",
    "tamsd",
]
