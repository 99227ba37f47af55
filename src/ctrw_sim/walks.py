"""
Random walks on percolation clusters with CTRW subordination.

Each walk is generated in four stages:

1.  **Lattice walk:** pick a start site with at least one occupied neighbor,
    then hop uniformly among the occupied neighbors for ``sim_length`` steps.
    Revisits are allowed.
2.  **Boundary tagging:** every hop that wraps across the periodic boundary
    is tagged so the trajectory can be unwrapped into the plane.
3.  **Subordination:** waiting times ``tau0 * exp(E)`` with ``E ~ Exp(beta)``
    are Pareto distributed; their cumulative sum gives the event times of a
    continuous-time random walk. Physical step ``j`` shows the lattice
    position after all events with time ``<= j``. ``beta == 0`` gives the
    unit grid ``1, 2, 3, ...`` and leaves the lattice walk untouched.
4.  **Unwrapping:** lattice coordinates plus the accumulated number of unit
    cells crossed on each axis, with optional Gaussian localisation noise.

Walks are independent, so the batch is split into contiguous chunks served
by a thread pool. Each chunk owns its own ``numpy.random.Generator``; the
kernels release the GIL.
"""

from __future__ import annotations

import math
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

import numpy as np
from numba import njit

from . import utils
from .lattice import LatticeCoords
from .neighbors import NeighborTable
from .percolation import OccupancyResult

###############################################################################
# Constants
###############################################################################

NO_CROSSING = 0
CROSS_TOP = 1
CROSS_BOTTOM = 2
CROSS_RIGHT = 3
CROSS_LEFT = 4

WALK_ANY = "any"
WALK_LARGEST = "largest"
WALK_MODES = (WALK_ANY, WALK_LARGEST)

MIN_START_ATTEMPTS = 100_000
MAX_START_ATTEMPTS = 100_000_000


@dataclass
class WalkParams:
    """Random-walk and CTRW settings."""

    n_walks: int = 100
    walk_length: int = 1000
    beta: float = 0.0
    tau0: float = 1.0
    noise: float = 0.0
    walk_mode: str = WALK_ANY
    max_start_attempts: int | None = None

    def validate(self) -> None:
        if self.n_walks < 0:
            raise ValueError(f"n_walks must be >= 0, got {self.n_walks}")
        if self.walk_length < 1:
            raise ValueError(f"walk_length must be > 0, got {self.walk_length}")
        if self.beta < 0.0:
            raise ValueError(f"beta must be >= 0, got {self.beta}")
        if self.tau0 <= 0.0:
            raise ValueError(f"tau0 must be > 0, got {self.tau0}")
        if self.noise < 0.0:
            raise ValueError(f"noise must be >= 0, got {self.noise}")
        if self.walk_mode not in WALK_MODES:
            raise ValueError(
                f"walk_mode must be one of {', '.join(WALK_MODES)}, got {self.walk_mode!r}"
            )


def simulation_length(walk_length: int, tau0: float) -> int:
    """Raw hop count: stretched by ``1 / tau0`` when ``tau0 < 1``."""
    if tau0 < 1.0:
        return int(walk_length / tau0)
    return int(walk_length)


def start_attempt_budget(n_sites: int) -> int:
    return min(max(n_sites, MIN_START_ATTEMPTS), MAX_START_ATTEMPTS)


def start_pool(occupancy: OccupancyResult, walk_mode: str = WALK_ANY) -> np.ndarray:
    """Candidate start sites: all occupied sites or the largest cluster only."""
    if walk_mode == WALK_LARGEST:
        return occupancy.largest_cluster_sites()
    return np.flatnonzero(occupancy.occupied())


###############################################################################
# Lattice walk kernels
###############################################################################


@njit(cache=True, nogil=True)
def _occupied_neighbors(
    nn: np.ndarray, lattice: np.ndarray, empty: int, pos: int, out: np.ndarray
) -> int:
    count = 0
    for k in range(nn.shape[1]):
        s = nn[pos, k]
        if lattice[s] != empty:
            out[count] = s
            count += 1
    return count


@njit(cache=True, nogil=True)
def lattice_walk(
    pool: np.ndarray,
    nn: np.ndarray,
    lattice: np.ndarray,
    empty: int,
    max_attempts: int,
    steps: np.ndarray,
    rng: np.random.Generator,
) -> bool:
    """
    Fill ``steps`` with a nearest-neighbor walk on occupied sites.

    Returns True when no start site with an occupied neighbor was found in
    ``max_attempts`` draws; the walk then stays on the last drawn site.
    """
    buf = np.empty(nn.shape[1], dtype=np.int64)
    pos = pool[0]
    n_free = 0
    attempts = 0
    while True:
        pos = pool[rng.integers(0, pool.shape[0])]
        n_free = _occupied_neighbors(nn, lattice, empty, pos, buf)
        if n_free > 0 or attempts >= max_attempts:
            break
        attempts += 1

    if n_free == 0:
        steps[:] = pos
        return True

    steps[0] = pos
    for j in range(1, steps.shape[0]):
        n_free = _occupied_neighbors(nn, lattice, empty, pos, buf)
        pos = buf[rng.integers(0, n_free)]
        steps[j] = pos
    return False


@njit(cache=True, nogil=True)
def boundary_tags(
    steps: np.ndarray,
    first_row: np.ndarray,
    last_row: np.ndarray,
    grid_size: int,
    tags: np.ndarray,
) -> None:
    """
    Tag the hops of ``steps`` that wrap across the periodic boundary.

    ``first_row``/``last_row`` are boolean site masks of the top and bottom
    bands. Horizontal wraps jump between the first column (``pos < L``) and
    the last column (``pos >= N - L``).
    """
    low = grid_size
    high = first_row.shape[0] - grid_size
    tags[0] = NO_CROSSING
    for j in range(1, steps.shape[0]):
        prev = steps[j - 1]
        pos = steps[j]
        if first_row[prev] and last_row[pos]:
            tags[j] = CROSS_TOP
        elif last_row[prev] and first_row[pos]:
            tags[j] = CROSS_BOTTOM
        elif prev >= high and pos < low:
            tags[j] = CROSS_RIGHT
        elif prev < low and pos >= high:
            tags[j] = CROSS_LEFT
        else:
            tags[j] = NO_CROSSING


###############################################################################
# CTRW kernels
###############################################################################


@njit(cache=True, nogil=True)
def ctrw_times(
    sim_length: int, walk_length: int, beta: float, tau0: float, rng: np.random.Generator
) -> np.ndarray:
    """
    Event times of the CTRW clock, cut at the first time ``>= walk_length``.

    The cut entry is clamped to exactly ``walk_length``. With ``beta == 0``
    the clock is the deterministic grid ``1..sim_length``.
    """
    times = np.empty(sim_length, dtype=np.float64)
    if beta > 0.0:
        total = 0.0
        for i in range(sim_length):
            total += tau0 * math.exp(rng.exponential(1.0 / beta))
            times[i] = total
    else:
        for i in range(sim_length):
            times[i] = i + 1.0

    n_keep = sim_length
    for i in range(sim_length):
        if times[i] >= walk_length:
            n_keep = i + 1
            break
    kept = times[:n_keep].copy()
    kept[n_keep - 1] = walk_length
    return kept


@njit(cache=True, nogil=True)
def subordinate(times: np.ndarray, walk_length: int, index: np.ndarray) -> None:
    """
    ``index[j]`` = number of event times ``<= j``, i.e. the lattice step in
    effect at physical step ``j``.
    """
    counter = 0
    last = times.shape[0] - 1
    for j in range(walk_length):
        while counter < last and times[counter] <= j:
            counter += 1
        index[j] = counter


@njit(cache=True, nogil=True)
def unwrap(
    steps: np.ndarray,
    tags: np.ndarray,
    index: np.ndarray,
    coords: np.ndarray,
    unit_cell: np.ndarray,
    out: np.ndarray,
) -> None:
    """Write the real-space positions of the subordinated walk into ``out``."""
    n = steps.shape[0]
    cells_x = np.empty(n, dtype=np.int64)
    cells_y = np.empty(n, dtype=np.int64)
    nx = 0
    ny = 0
    for k in range(n):
        tag = tags[k]
        if tag == CROSS_TOP:
            ny += 1
        elif tag == CROSS_BOTTOM:
            ny -= 1
        elif tag == CROSS_RIGHT:
            nx += 1
        elif tag == CROSS_LEFT:
            nx -= 1
        cells_x[k] = nx
        cells_y[k] = ny

    for j in range(index.shape[0]):
        c = index[j]
        site = steps[c]
        out[j, 0] = coords[site, 0] + cells_x[c] * unit_cell[0]
        out[j, 1] = coords[site, 1] + cells_y[c] * unit_cell[1]


@njit(cache=True, nogil=True)
def add_localization_noise(
    walk_coords: np.ndarray, noise: float, rng: np.random.Generator
) -> None:
    """Add N(0, noise^2) to every coordinate in place; no-op for noise <= 0."""
    if noise <= 0.0:
        return
    for w in range(walk_coords.shape[0]):
        for j in range(walk_coords.shape[1]):
            for d in range(walk_coords.shape[2]):
                walk_coords[w, j, d] += rng.normal(0.0, noise)


@njit(cache=True, nogil=True)
def _simulate_chunk(
    out: np.ndarray,
    first: int,
    last: int,
    pool: np.ndarray,
    nn: np.ndarray,
    lattice: np.ndarray,
    empty: int,
    first_row: np.ndarray,
    last_row: np.ndarray,
    grid_size: int,
    coords: np.ndarray,
    unit_cell: np.ndarray,
    sim_length: int,
    beta: float,
    tau0: float,
    noise: float,
    max_attempts: int,
    rng: np.random.Generator,
) -> None:
    walk_length = out.shape[1]
    steps = np.empty(sim_length, dtype=np.int64)
    tags = np.zeros(sim_length, dtype=np.int64)
    index = np.empty(walk_length, dtype=np.int64)
    for w in range(first, last):
        frozen = lattice_walk(pool, nn, lattice, empty, max_attempts, steps, rng)
        if frozen:
            tags[:] = NO_CROSSING
        else:
            boundary_tags(steps, first_row, last_row, grid_size, tags)
        times = ctrw_times(sim_length, walk_length, beta, tau0, rng)
        subordinate(times, walk_length, index)
        unwrap(steps, tags, index, coords, unit_cell, out[w])
        add_localization_noise(out[w : w + 1], noise, rng)


###############################################################################
# Public API
###############################################################################


def simulate_walks(
    params: WalkParams,
    table: NeighborTable,
    occupancy: OccupancyResult,
    lattice: LatticeCoords,
    seed: int | np.random.SeedSequence | None = None,
    n_jobs: int = 1,
    dtype=np.float64,
) -> np.ndarray:
    """
    Simulate ``params.n_walks`` independent walks.

    Returns an array of shape ``(n_walks, walk_length, 2)``. Walks are split
    into ``n_jobs`` contiguous chunks and chunk ``k`` draws from generator
    ``k`` spawned from ``seed``. Results are reproducible for a fixed seed
    and a fixed ``n_jobs``; changing ``n_jobs`` reassigns walks to streams
    and changes the output.
    """
    params.validate()
    if n_jobs < 1:
        raise ValueError(f"n_jobs must be >= 1, got {n_jobs}")
    if isinstance(dtype, str):
        dtype = np.dtype(dtype).type

    out = np.zeros((params.n_walks, params.walk_length, 2), dtype=dtype)
    if params.n_walks == 0:
        return out

    pool = start_pool(occupancy, params.walk_mode)
    if pool.size == 0:
        raise ValueError("no occupied sites to start a walk from")

    sim_length = simulation_length(params.walk_length, params.tau0)
    max_attempts = params.max_start_attempts
    if max_attempts is None:
        max_attempts = start_attempt_budget(table.n_sites)

    rngs = utils.spawn_generators(seed, n_jobs)
    bounds = np.linspace(0, params.n_walks, n_jobs + 1).astype(np.int64)
    shared = (
        pool,
        table.nn,
        occupancy.lattice,
        occupancy.empty,
        table.first_row_mask(),
        table.last_row_mask(),
        table.grid_size,
        lattice.coords,
        lattice.unit_cell,
        sim_length,
        float(params.beta),
        float(params.tau0),
        float(params.noise),
        int(max_attempts),
    )

    if n_jobs == 1:
        _simulate_chunk(out, 0, params.n_walks, *shared, rngs[0])
        return out

    with ThreadPoolExecutor(max_workers=n_jobs) as executor:
        futures = [
            executor.submit(
                _simulate_chunk, out, int(bounds[k]), int(bounds[k + 1]), *shared, rngs[k]
            )
            for k in range(n_jobs)
        ]
        for future in futures:
            future.result()
    return out


__all__ = [
    "WalkParams",
    "WALK_ANY",
    "WALK_LARGEST",
    "NO_CROSSING",
    "CROSS_TOP",
    "CROSS_BOTTOM",
    "CROSS_RIGHT",
    "CROSS_LEFT",
    "add_localization_noise",
    "boundary_tags",
    "ctrw_times",
    "lattice_walk",
    "simulate_walks",
    "simulation_length",
    "start_pool",
    "subordinate",
    "unwrap",
]
