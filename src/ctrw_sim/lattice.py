from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from numba import njit

from .neighbors import HONEYCOMB, SQUARE, check_topology, n_sites
from .percolation import OccupancyResult

SQRT3 = 1.7320508075688772
SQRT3_2 = 0.8660254037844386

# x offset of each honeycomb sub-lattice inside a super-column of width 3
HONEYCOMB_X_OFFSETS = np.array([0.0, 0.5, 1.5, 2.0])
HONEYCOMB_Y_OFFSETS = np.array([SQRT3_2, 0.0, 0.0, SQRT3_2])

UNIT_CELL_MARGIN = {
    SQUARE: (1.0, 1.0),
    HONEYCOMB: (1.5, SQRT3_2),
}

FLOAT_DTYPES = {"float32": np.float32, "float64": np.float64}


@dataclass
class LatticeCoords:
    """Per-site ``(x, y, label)`` rows and the periodic translation vector."""

    coords: np.ndarray
    unit_cell: np.ndarray

    @property
    def xy(self) -> np.ndarray:
        return self.coords[:, :2]

    @property
    def labels(self) -> np.ndarray:
        return self.coords[:, 2]


@njit(cache=True)
def _square_coords(coords: np.ndarray, grid_size: int) -> None:
    count = 0
    for i in range(grid_size):
        for j in range(grid_size):
            coords[count, 0] = i
            coords[count, 1] = j
            count += 1


@njit(cache=True)
def _honeycomb_coords(
    coords: np.ndarray, grid_size: int, x_offsets: np.ndarray, y_offsets: np.ndarray
) -> None:
    count = 0
    for i in range(4 * grid_size):
        sub = i % 4
        x0 = 0.75 * (i - sub)
        # the first site of a column is its top row
        for row in range(grid_size - 1, -1, -1):
            coords[count, 0] = x0 + x_offsets[sub]
            coords[count, 1] = row * SQRT3 + y_offsets[sub]
            count += 1


def build_lattice_coords(
    topology: str, grid_size: int, occupancy: OccupancyResult, dtype=np.float64
) -> LatticeCoords:
    """
    Real-space coordinates for every site.

    Empty sites keep their position with label 0; occupied sites carry their
    cluster root + 1 in the third column. The unit cell is the per-axis
    maximum coordinate plus a topology-dependent margin.
    """
    check_topology(topology, grid_size)
    if isinstance(dtype, str):
        dtype = FLOAT_DTYPES[dtype]

    n = n_sites(topology, grid_size)
    if occupancy.n_sites != n:
        raise ValueError(
            f"occupancy has {occupancy.n_sites} sites, expected {n} for {topology} L={grid_size}"
        )
    coords = np.zeros((n, 3), dtype=dtype)
    if topology == SQUARE:
        _square_coords(coords, grid_size)
    else:
        _honeycomb_coords(coords, grid_size, HONEYCOMB_X_OFFSETS, HONEYCOMB_Y_OFFSETS)
    coords[:, 2] = occupancy.labels()

    unit_cell = coords[:, :2].max(axis=0).astype(np.float64)
    unit_cell += UNIT_CELL_MARGIN[topology]
    return LatticeCoords(coords=coords, unit_cell=unit_cell)


__all__ = ["LatticeCoords", "build_lattice_coords", "SQRT3", "SQRT3_2"]
