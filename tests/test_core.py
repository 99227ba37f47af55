# tests/test_core.py
from ctrw_sim import CTRWConfig, run_model


def test_small_run():
    result = run_model(CTRWConfig(grid_size=10, n_walks=5, walk_length=30, seed=0, verbose=False))
    assert result.lattice.shape == (100, 3)
    assert (result.lattice[:, 2] > 0).sum() >= 10
    assert result.analysis.shape == (29, 8)
