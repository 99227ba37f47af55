"""
Unit tests for the Newman-Ziff percolation engine.
"""

import numpy as np
import pytest
from scipy.sparse import coo_matrix
from scipy.sparse.csgraph import connected_components

from ctrw_sim.neighbors import HONEYCOMB, SQUARE, build_neighbor_table
from ctrw_sim.percolation import (
    HONEYCOMB_THRESHOLD,
    SQUARE_THRESHOLD,
    activation_count,
    find_root,
    random_permutation,
    run_percolation,
)


def _components(table, occupied):
    """Connected components of the occupied subgraph via scipy."""
    src = np.repeat(np.arange(table.n_sites), table.degree)
    dst = table.nn.reshape(-1)
    keep = occupied[src] & occupied[dst]
    graph = coo_matrix(
        (np.ones(keep.sum()), (src[keep], dst[keep])), shape=(table.n_sites, table.n_sites)
    )
    _, labels = connected_components(graph, directed=False)
    return labels


def _order(first, n_sites):
    rest = [i for i in range(n_sites) if i not in first]
    return np.array(list(first) + rest)


def test_four_by_four_full_threshold():
    """threshold=1.0 on 16 sites occupies floor(16 * 1.0) - 1 = 15 sites."""
    table = build_neighbor_table(SQUARE, 4)
    perm = random_permutation(16, np.random.default_rng(7))
    occ = run_percolation(table, perm, 1.0)

    assert occ.n_active == 15
    assert occ.occupied().sum() == 15
    assert occ.empty == -17
    # the last site in the permutation is the one left empty
    assert occ.lattice[perm[-1]] == occ.empty
    # a torus minus one site stays connected
    assert occ.largest_cluster_size == 15


def test_activation_count_keeps_newman_ziff_offset():
    assert activation_count(16, 1.0) == 15
    assert activation_count(100, 0.5) == 49
    assert activation_count(100, 0.599) == 58
    assert activation_count(10, 0.1) == 0


@pytest.mark.parametrize("topology, grid_size", [(SQUARE, 12), (HONEYCOMB, 6)])
def test_union_find_matches_connected_components(topology, grid_size):
    table = build_neighbor_table(topology, grid_size)
    perm = random_permutation(table.n_sites, np.random.default_rng(3))
    threshold = SQUARE_THRESHOLD if topology == SQUARE else HONEYCOMB_THRESHOLD
    occ = run_percolation(table, perm, threshold)

    occupied = occ.occupied()
    roots = occ.roots()
    labels = _components(table, occupied)
    for comp in np.unique(labels[occupied]):
        members = occupied & (labels == comp)
        assert len(np.unique(roots[members])) == 1, "one root per component"
    # distinct components never share a root
    assert len(np.unique(roots[occupied])) == len(np.unique(labels[occupied]))

    sizes = np.bincount(labels[occupied])
    assert occ.largest_cluster_size == sizes.max()


def test_cluster_sizes_sum_to_activated_sites():
    table = build_neighbor_table(SQUARE, 10)
    perm = random_permutation(table.n_sites, np.random.default_rng(11))
    occ = run_percolation(table, perm, 0.55)

    sizes = occ.cluster_sizes()
    assert sum(sizes.values()) == occ.n_active
    assert max(sizes.values()) == occ.largest_cluster_size
    assert len(occ.largest_cluster_sites()) == occ.largest_cluster_size


def test_find_root_is_idempotent():
    table = build_neighbor_table(HONEYCOMB, 5)
    perm = random_permutation(table.n_sites, np.random.default_rng(5))
    occ = run_percolation(table, perm, 0.75)

    lattice = occ.lattice.copy()
    for site in np.flatnonzero(occ.occupied()):
        root = find_root(lattice, site)
        assert lattice[root] < 0
        assert find_root(lattice, site) == root
        assert find_root(lattice, root) == root
        # full path compression: the site now points straight at its root
        assert site == root or lattice[site] == root
    # the compressed copy describes the same clusters
    np.testing.assert_array_equal(occ.roots()[occ.occupied()], [
        find_root(lattice, s) for s in np.flatnonzero(occ.occupied())
    ])


def test_percolation_is_deterministic():
    table = build_neighbor_table(SQUARE, 16)
    perm = random_permutation(table.n_sites, np.random.default_rng(42))
    first = run_percolation(table, perm, 0.6)
    second = run_percolation(table, perm.copy(), 0.6)

    np.testing.assert_array_equal(first.lattice, second.lattice)
    np.testing.assert_array_equal(first.labels(), second.labels())
    assert first.largest_cluster_size == second.largest_cluster_size


def test_tie_attaches_neighbor_root_under_active_root():
    """Equal sizes: the neighbor's root is hung under the new site's root."""
    table = build_neighbor_table(SQUARE, 4)
    # 0 and 2 are isolated singletons until 1 joins them
    occ = run_percolation(table, _order([0, 2, 1], 16), 0.25)

    assert occ.n_active == 3
    assert occ.lattice[1] == -3
    assert occ.lattice[0] == 1
    assert occ.lattice[2] == 1
    assert occ.largest_cluster_size == 3


def test_smaller_cluster_attaches_under_larger():
    table = build_neighbor_table(SQUARE, 4)
    occ = run_percolation(table, _order([0, 4, 1], 16), 0.25)

    assert occ.lattice[4] == -3
    assert occ.lattice[0] == 4
    assert occ.lattice[1] == 4


def test_int32_lattice():
    table = build_neighbor_table(SQUARE, 8, index_dtype="int32")
    perm = random_permutation(table.n_sites, np.random.default_rng(1), dtype=np.int32)
    occ = run_percolation(table, perm, 0.6)
    assert occ.lattice.dtype == np.int32

    reference = run_percolation(build_neighbor_table(SQUARE, 8), perm.astype(np.int64), 0.6)
    np.testing.assert_array_equal(occ.lattice, reference.lattice)


@pytest.mark.parametrize("threshold", [0.0, -0.2, 1.5, 0.05])
def test_invalid_threshold_raises(threshold):
    table = build_neighbor_table(SQUARE, 4)
    with pytest.raises(ValueError):
        run_percolation(table, np.arange(16), threshold)


def test_invalid_permutation_raises():
    table = build_neighbor_table(SQUARE, 4)
    with pytest.raises(ValueError):
        run_percolation(table, np.zeros(16, dtype=np.int64), 0.5)
    with pytest.raises(ValueError):
        run_percolation(table, np.arange(15), 0.5)
