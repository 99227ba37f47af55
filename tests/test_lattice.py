"""
Unit tests for lattice coordinates and the periodic unit cell.
"""

import math

import numpy as np
import pytest

from ctrw_sim.lattice import SQRT3, SQRT3_2, build_lattice_coords
from ctrw_sim.neighbors import HONEYCOMB, SQUARE, build_neighbor_table
from ctrw_sim.percolation import random_permutation, run_percolation


def _percolated(topology, grid_size, threshold=1.0, seed=0):
    table = build_neighbor_table(topology, grid_size)
    perm = random_permutation(table.n_sites, np.random.default_rng(seed))
    return table, run_percolation(table, perm, threshold)


def test_square_coordinates_and_unit_cell():
    table, occ = _percolated(SQUARE, 3)
    lattice = build_lattice_coords(SQUARE, 3, occ)

    assert lattice.coords.shape == (9, 3)
    for i in range(9):
        assert tuple(lattice.xy[i]) == (i // 3, i % 3)
    np.testing.assert_allclose(lattice.unit_cell, [3.0, 3.0])


def test_honeycomb_coordinates_and_unit_cell():
    table, occ = _percolated(HONEYCOMB, 2)
    lattice = build_lattice_coords(HONEYCOMB, 2, occ)
    xy = lattice.xy

    assert xy.shape == (16, 2)
    # first column, top row first
    np.testing.assert_allclose(xy[0], [0.0, SQRT3 + SQRT3_2])
    np.testing.assert_allclose(xy[1], [0.0, SQRT3_2])
    np.testing.assert_allclose(xy[2], [0.5, SQRT3])
    np.testing.assert_allclose(xy[4], [1.5, SQRT3])
    np.testing.assert_allclose(xy[6], [2.0, SQRT3 + SQRT3_2])
    # next super-column starts three units to the right
    np.testing.assert_allclose(xy[8], [3.0, SQRT3 + SQRT3_2])
    np.testing.assert_allclose(lattice.unit_cell, [5.0 + 1.5, 2 * SQRT3])


@pytest.mark.parametrize("topology, grid_size", [(SQUARE, 6), (HONEYCOMB, 4)])
def test_unwrapped_neighbors_are_unit_distance(topology, grid_size):
    """Every bond that does not cross the boundary has length 1."""
    table, occ = _percolated(topology, grid_size)
    xy = build_lattice_coords(topology, grid_size, occ).xy

    n_bonds = 0
    for a in range(table.n_sites):
        for b in table.nn[a]:
            d = math.dist(xy[a], xy[b])
            if d < 2.0:
                assert d == pytest.approx(1.0)
                n_bonds += 1
    assert n_bonds > table.n_sites


def test_labels_follow_clusters():
    table, occ = _percolated(SQUARE, 10, threshold=0.5, seed=4)
    lattice = build_lattice_coords(SQUARE, 10, occ)
    labels = lattice.labels

    occupied = occ.occupied()
    assert np.all(labels[~occupied] == 0)
    assert np.all(labels[occupied] > 0)
    np.testing.assert_array_equal(labels[occupied], occ.roots()[occupied] + 1)
    # neighbors that are both occupied carry the same label
    for a in np.flatnonzero(occupied):
        for b in table.nn[a]:
            if occupied[b]:
                assert labels[a] == labels[b]


def test_float32_coordinates():
    _, occ = _percolated(SQUARE, 4)
    lattice = build_lattice_coords(SQUARE, 4, occ, dtype="float32")
    assert lattice.coords.dtype == np.float32
    assert lattice.unit_cell.dtype == np.float64


def test_mismatched_occupancy_raises():
    _, occ = _percolated(SQUARE, 4)
    with pytest.raises(ValueError):
        build_lattice_coords(SQUARE, 5, occ)
    with pytest.raises(ValueError):
        build_lattice_coords("kagome", 4, occ)
