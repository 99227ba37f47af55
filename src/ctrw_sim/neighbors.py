"""
Nearest-neighbor tables for periodic square and honeycomb lattices.

Sites are addressed by a flat integer index. Each table row lists the fixed
number of neighbors of one site (4 on the square lattice, 3 on the honeycomb
lattice) with periodic wraparound on every edge.

Square lattice (``N = L * L``):
    Site ``i = x * L + y``. Neighbor order is ``[y + 1, y - 1, x + 1, x - 1]``.

Honeycomb lattice (``N = 4 * L * L``):
    ``4L`` columns of ``L`` sites each, stored column after column. A column
    belongs to one of four sub-lattice classes ``(i // L) % 4`` and the first
    site in a column (``i % L == 0``) is the top row.

Besides the adjacency, the table records the top ("first row") and bottom
("last row") bands. A hop from the first row straight into the last row is a
wrap across the top edge and vice versa; the walk simulator uses these bands
to unwrap trajectories into the plane.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from numba import njit

###############################################################################
# Constants
###############################################################################

SQUARE = "square"
HONEYCOMB = "honeycomb"
TOPOLOGIES = (SQUARE, HONEYCOMB)

DEGREE = {SQUARE: 4, HONEYCOMB: 3}

INDEX_DTYPES = {"int32": np.int32, "int64": np.int64}


def n_sites(topology: str, grid_size: int) -> int:
    """Number of lattice sites for a topology and linear size."""
    if topology == SQUARE:
        return grid_size * grid_size
    return 4 * grid_size * grid_size


def check_topology(topology: str, grid_size: int) -> None:
    if topology not in TOPOLOGIES:
        raise ValueError(
            f"Unknown topology {topology!r}; expected one of {', '.join(TOPOLOGIES)}"
        )
    if int(grid_size) != grid_size or grid_size <= 1:
        raise ValueError(f"grid_size must be an integer > 1, got {grid_size}")


###############################################################################
# Kernels
###############################################################################


@njit(cache=True)
def _fill_square(nn: np.ndarray, grid_size: int) -> None:
    n = nn.shape[0]
    for i in range(n):
        nn[i, 0] = (i + 1) % n
        nn[i, 1] = (i + n - 1) % n
        nn[i, 2] = (i + grid_size) % n
        nn[i, 3] = (i + n - grid_size) % n
        # wrap y inside the current x-column
        if i % grid_size == 0:
            nn[i, 1] = i + grid_size - 1
        if (i + 1) % grid_size == 0:
            nn[i, 0] = i - grid_size + 1


@njit(cache=True)
def _fill_honeycomb(nn: np.ndarray, grid_size: int) -> None:
    """
    Explicit index algebra for the brick-wall honeycomb.

    Column classes 0 and 3 sit half a row above classes 1 and 2, so the top
    row of classes 0/3 wraps onto the bottom row of classes 1/2.
    """
    n = nn.shape[0]
    L = grid_size
    for i in range(n):
        col_class = (i // L) % 4
        k = i % L
        if i == 0:  # first site
            nn[i, 0] = i + L
            nn[i, 1] = i + 2 * L - 1
            nn[i, 2] = i + n - L
        elif i == n - L:  # top right-hand corner
            nn[i, 0] = i - 1
            nn[i, 1] = i - L
            nn[i, 2] = i - n + L
        elif i == n - L - 1:  # bottom right-hand corner
            nn[i, 0] = i - L
            nn[i, 1] = i + L
            nn[i, 2] = i + 1
        elif i < L:  # first column
            nn[i, 0] = i + L - 1
            nn[i, 1] = i + L
            nn[i, 2] = i + n - L
        elif i > n - L:  # last column
            nn[i, 0] = i - L - 1
            nn[i, 1] = i - L
            nn[i, 2] = i - n + L
        elif col_class == 0:
            if k == 0:
                nn[i, 0] = i - L
                nn[i, 1] = i + L
                nn[i, 2] = i + 2 * L - 1
            else:
                nn[i, 0] = i - L
                nn[i, 1] = i + L - 1
                nn[i, 2] = i + L
        elif col_class == 1:
            if k == L - 1:
                nn[i, 0] = i - L
                nn[i, 1] = i + L
                nn[i, 2] = i - 2 * L + 1
            else:
                nn[i, 0] = i - L
                nn[i, 1] = i - L + 1
                nn[i, 2] = i + L
        elif col_class == 2:
            if k == L - 1:
                nn[i, 0] = i - L
                nn[i, 1] = i + L
                nn[i, 2] = i + 1
            else:
                nn[i, 0] = i - L
                nn[i, 1] = i + L
                nn[i, 2] = i + L + 1
        else:
            if k == 0:
                nn[i, 0] = i - 1
                nn[i, 1] = i - L
                nn[i, 2] = i + L
            else:
                nn[i, 0] = i - L - 1
                nn[i, 1] = i - L
                nn[i, 2] = i + L


def _honeycomb_rows(grid_size: int) -> tuple[np.ndarray, np.ndarray]:
    """
    Heads of the class 0/3 columns form the top band, tails of the class 1/2
    columns form the bottom band. Both have ``2L`` entries.
    """
    L = grid_size
    columns = np.arange(4 * L)
    col_class = columns % 4
    top_cols = columns[(col_class == 0) | (col_class == 3)]
    bottom_cols = columns[(col_class == 1) | (col_class == 2)]
    return top_cols * L, bottom_cols * L + (L - 1)


def _square_rows(grid_size: int) -> tuple[np.ndarray, np.ndarray]:
    L = grid_size
    columns = np.arange(L)
    return columns * L + (L - 1), columns * L


###############################################################################
# Public API
###############################################################################


@dataclass
class NeighborTable:
    """Fixed-degree periodic adjacency plus the boundary bands."""

    topology: str
    grid_size: int
    nn: np.ndarray
    first_row: np.ndarray
    last_row: np.ndarray

    @property
    def n_sites(self) -> int:
        return int(self.nn.shape[0])

    @property
    def degree(self) -> int:
        return int(self.nn.shape[1])

    def first_row_mask(self) -> np.ndarray:
        mask = np.zeros(self.n_sites, dtype=np.bool_)
        mask[self.first_row] = True
        return mask

    def last_row_mask(self) -> np.ndarray:
        mask = np.zeros(self.n_sites, dtype=np.bool_)
        mask[self.last_row] = True
        return mask

    def neighbors(self, site: int) -> np.ndarray:
        return self.nn[site]


def build_neighbor_table(
    topology: str, grid_size: int, index_dtype=np.int64
) -> NeighborTable:
    """
    Build the periodic neighbor table for ``topology`` at linear size
    ``grid_size``. Raises ValueError for an unknown topology or ``L <= 1``.
    """
    check_topology(topology, grid_size)
    grid_size = int(grid_size)
    if isinstance(index_dtype, str):
        index_dtype = INDEX_DTYPES[index_dtype]

    nn = np.empty((n_sites(topology, grid_size), DEGREE[topology]), dtype=index_dtype)
    if topology == SQUARE:
        _fill_square(nn, grid_size)
        first_row, last_row = _square_rows(grid_size)
    else:
        _fill_honeycomb(nn, grid_size)
        first_row, last_row = _honeycomb_rows(grid_size)

    return NeighborTable(
        topology=topology,
        grid_size=grid_size,
        nn=nn,
        first_row=first_row.astype(index_dtype),
        last_row=last_row.astype(index_dtype),
    )


__all__ = [
    "SQUARE",
    "HONEYCOMB",
    "TOPOLOGIES",
    "NeighborTable",
    "build_neighbor_table",
    "n_sites",
]
