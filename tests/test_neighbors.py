"""
Unit tests for the periodic neighbor tables.
"""

import numpy as np
import pytest

from ctrw_sim.neighbors import HONEYCOMB, SQUARE, build_neighbor_table


def _assert_symmetric(table):
    nn = table.nn
    for a in range(table.n_sites):
        for b in nn[a]:
            assert a in nn[b], f"site {a} lists {b} but {b} does not list {a}"


@pytest.mark.parametrize("grid_size", [2, 3, 4, 7])
def test_square_table_is_symmetric(grid_size):
    table = build_neighbor_table(SQUARE, grid_size)
    assert table.nn.shape == (grid_size**2, 4)
    _assert_symmetric(table)


@pytest.mark.parametrize("grid_size", [2, 3, 4, 5])
def test_honeycomb_table_is_symmetric(grid_size):
    table = build_neighbor_table(HONEYCOMB, grid_size)
    assert table.nn.shape == (4 * grid_size**2, 3)
    _assert_symmetric(table)


def test_square_four_by_four():
    """Sixteen sites of degree four with wraparound on both axes."""
    table = build_neighbor_table(SQUARE, 4)
    assert table.n_sites == 16
    assert table.degree == 4
    np.testing.assert_array_equal(table.nn[0], [1, 3, 4, 12])
    np.testing.assert_array_equal(table.nn[3], [0, 2, 7, 15])
    np.testing.assert_array_equal(table.nn[15], [12, 14, 3, 11])
    assert np.all((table.nn >= 0) & (table.nn < 16))


def test_honeycomb_neighbors_are_distinct():
    table = build_neighbor_table(HONEYCOMB, 4)
    for row in table.nn:
        assert len(set(row.tolist())) == 3


def test_honeycomb_boundary_rows_match_closed_form():
    """Top/bottom bands follow the closed-form index sequences."""
    L = 3
    table = build_neighbor_table(HONEYCOMB, L)
    first = [
        int(1 - 0.5 * (3 * L) + 0.5 * ((-1) ** i * L) + 2 * i * L - 1)
        for i in range(1, 2 * L + 1)
    ]
    last = [
        int(0.5 * L * (4 * i + (-1) ** (i + 1) - 1) - 1) for i in range(1, 2 * L + 1)
    ]
    np.testing.assert_array_equal(table.first_row, first)
    np.testing.assert_array_equal(table.last_row, last)
    assert len(table.first_row) == 2 * L


def test_square_boundary_rows():
    table = build_neighbor_table(SQUARE, 4)
    np.testing.assert_array_equal(table.first_row, [3, 7, 11, 15])
    np.testing.assert_array_equal(table.last_row, [0, 4, 8, 12])
    assert table.first_row_mask().sum() == 4
    assert table.last_row_mask()[8]


def test_index_dtype_is_configurable():
    table = build_neighbor_table(SQUARE, 5, index_dtype="int32")
    assert table.nn.dtype == np.int32
    reference = build_neighbor_table(SQUARE, 5, index_dtype=np.int64)
    np.testing.assert_array_equal(table.nn, reference.nn)


@pytest.mark.parametrize(
    "topology, grid_size",
    [("triangular", 4), (SQUARE, 1), (SQUARE, 0), (HONEYCOMB, -3), (SQUARE, 2.5)],
)
def test_invalid_configuration_raises(topology, grid_size):
    with pytest.raises(ValueError):
        build_neighbor_table(topology, grid_size)
