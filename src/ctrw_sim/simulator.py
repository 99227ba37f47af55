"""
Percolation cluster + CTRW simulator.

Runs the full pipeline on one randomly percolated lattice:

1.  **Neighbor search:** periodic adjacency table for the topology.
2.  **Occupation order:** a random permutation of the sites.
3.  **Percolation:** Newman-Ziff union-find up to the occupation threshold.
4.  **Lattice:** real-space coordinates, cluster labels and the unit cell.
5.  **Walks:** ``n_walks`` random walks on the occupied sites, subordinated to
    a CTRW clock and unwrapped across the periodic boundary.
6.  **Analysis:** ensemble/time-averaged MSD and ergodicity breaking.

The RNG streams are derived from a single seed: one stream for the occupation
order and one per walk worker. A fixed seed and fixed ``n_jobs`` reproduce a
run exactly.
"""

from __future__ import annotations

import time
from dataclasses import asdict, dataclass, fields
from typing import Any, Callable, Dict, Optional

import numpy as np

from . import utils
from .analysis import analyze_msd
from .lattice import FLOAT_DTYPES, LatticeCoords, build_lattice_coords
from .neighbors import INDEX_DTYPES, TOPOLOGIES, NeighborTable, build_neighbor_table, n_sites
from .percolation import (
    CRITICAL_THRESHOLDS,
    OccupancyResult,
    activation_count,
    random_permutation,
    run_percolation,
)
from .walks import WALK_ANY, WALK_MODES, WalkParams, simulate_walks


@dataclass
class CTRWConfig:
    """Defines the lattice, the walks and the run environment."""

    grid_size: int = 64
    topology: str = "square"
    threshold: Optional[float] = None
    n_walks: int = 10
    walk_length: int = 1000
    beta: float = 0.0
    tau0: float = 1.0
    noise: float = 0.0
    walk_mode: str = WALK_ANY
    n_jobs: int = 1
    seed: Optional[int] = None
    index_dtype: str = "int64"
    float_dtype: str = "float64"
    verbose: bool = True

    @classmethod
    def from_dict(cls, params: Dict[str, Any]) -> "CTRWConfig":
        known = {f.name for f in fields(cls)}
        unknown = set(params) - known
        if unknown:
            raise ValueError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")
        return cls(**params)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @property
    def effective_threshold(self) -> float:
        if self.threshold is None:
            return CRITICAL_THRESHOLDS[self.topology]
        return float(self.threshold)

    def walk_params(self) -> WalkParams:
        return WalkParams(
            n_walks=self.n_walks,
            walk_length=self.walk_length,
            beta=self.beta,
            tau0=self.tau0,
            noise=self.noise,
            walk_mode=self.walk_mode,
        )

    def validate(self) -> None:
        """Raise ValueError for any setting the simulation cannot start with."""
        if self.topology not in TOPOLOGIES:
            raise ValueError(
                f"topology must be one of {', '.join(TOPOLOGIES)}, got {self.topology!r}"
            )
        if int(self.grid_size) != self.grid_size or self.grid_size <= 1:
            raise ValueError(f"grid_size must be an integer > 1, got {self.grid_size}")
        threshold = self.effective_threshold
        if not 0.0 < threshold <= 1.0:
            raise ValueError(f"threshold must lie in (0, 1], got {threshold}")
        if activation_count(n_sites(self.topology, self.grid_size), threshold) < 1:
            raise ValueError(
                f"threshold {threshold} occupies no sites at grid_size={self.grid_size}"
            )
        if self.walk_mode not in WALK_MODES:
            raise ValueError(
                f"walk_mode must be one of {', '.join(WALK_MODES)}, got {self.walk_mode!r}"
            )
        if self.n_jobs < 1:
            raise ValueError(f"n_jobs must be >= 1, got {self.n_jobs}")
        if self.index_dtype not in INDEX_DTYPES:
            raise ValueError(f"index_dtype must be int32 or int64, got {self.index_dtype!r}")
        if self.float_dtype not in FLOAT_DTYPES:
            raise ValueError(
                f"float_dtype must be float32 or float64, got {self.float_dtype!r}"
            )
        if self.index_dtype == "int32" and n_sites(self.topology, self.grid_size) >= 2**31 - 1:
            raise ValueError("lattice too large for int32 site indices")
        self.walk_params().validate()


class CTRWSimulator:
    """
    Owns one simulation run.

    The neighbor table is built on construction; ``run()`` does everything
    else. Tables, occupancy and coordinates are read-only once built.
    """

    def __init__(self, config: CTRWConfig | None = None) -> None:
        self.config = config or CTRWConfig()
        self.config.validate()

        root = utils.seed_sequence(self.config.seed)
        self._order_seed, self._walk_seed = root.spawn(2)
        self.entropy = root.entropy

        self.table: NeighborTable = self._timed(
            "Searching neighbors...",
            build_neighbor_table,
            self.config.topology,
            self.config.grid_size,
            INDEX_DTYPES[self.config.index_dtype],
        )

        self.permutation: Optional[np.ndarray] = None
        self.occupancy: Optional[OccupancyResult] = None
        self.lattice: Optional[LatticeCoords] = None
        self.walk_coords: Optional[np.ndarray] = None
        self.analysis: Optional[np.ndarray] = None

    def _timed(self, label: str, func: Callable, *args, **kwargs):
        t_start = time.perf_counter()
        value = func(*args, **kwargs)
        if self.config.verbose:
            print(f"{label:<28}{time.perf_counter() - t_start:.6f} s")
        return value

    # ------------------------------------------------------------------ public
    def run(self) -> None:
        """Runs percolation, lattice construction, walks and analysis."""
        cfg = self.config
        if cfg.verbose:
            print(
                f"Running CTRW on {cfg.topology} lattice: L={cfg.grid_size}, "
                f"N={self.table.n_sites}, p={cfg.effective_threshold}, "
                f"walks={cfg.n_walks}x{cfg.walk_length}"
            )

        self.permutation = self._timed(
            "Randomizing occupations...",
            random_permutation,
            self.table.n_sites,
            np.random.default_rng(self._order_seed),
            self.table.nn.dtype,
        )
        self.occupancy = self._timed(
            "Running percolation...",
            run_percolation,
            self.table,
            self.permutation,
            cfg.effective_threshold,
        )
        self.lattice = self._timed(
            "Building lattice...",
            build_lattice_coords,
            cfg.topology,
            cfg.grid_size,
            self.occupancy,
            FLOAT_DTYPES[cfg.float_dtype],
        )

        if cfg.n_walks == 0:
            self.walk_coords = np.zeros((0, cfg.walk_length, 2), dtype=cfg.float_dtype)
            self.analysis = np.zeros((cfg.walk_length - 1, 3), dtype=np.float64)
            return

        label = "Simulating random walks..."
        if cfg.noise > 0.0:
            label = "Simulating noisy walks..."
        self.walk_coords = self._timed(
            label,
            simulate_walks,
            cfg.walk_params(),
            self.table,
            self.occupancy,
            self.lattice,
            self._walk_seed,
            cfg.n_jobs,
            FLOAT_DTYPES[cfg.float_dtype],
        )
        self.analysis = self._timed(
            "Analysing random walks...",
            analyze_msd,
            self.walk_coords,
            cfg.walk_length,
            cfg.n_walks,
            cfg.n_jobs,
        )

    def result(self) -> utils.SimulationResult:
        if self.lattice is None:
            raise RuntimeError("Simulation has not been run. Call run() first.")
        meta = self.config.to_dict()
        meta.update(
            {
                "model": "ctrw",
                "n_sites": self.table.n_sites,
                "threshold": self.config.effective_threshold,
                "n_occupied": self.occupancy.n_active,
                "largest_cluster_size": self.occupancy.largest_cluster_size,
                "unit_cell": self.lattice.unit_cell.tolist(),
                "entropy": str(self.entropy),
            }
        )
        return utils.SimulationResult(
            lattice=self.lattice.coords,
            walks=self.walk_coords,
            analysis=self.analysis,
            meta=meta,
        )


def run_model(config: CTRWConfig | dict | None = None) -> utils.SimulationResult:
    """
    Run a full simulation and return a SimulationResult.
    """
    if config is None:
        config = CTRWConfig()
    elif isinstance(config, dict):
        config = CTRWConfig.from_dict(config)

    sim = CTRWSimulator(config)
    sim.run()
    return sim.result()


__all__ = ["CTRWConfig", "CTRWSimulator", "run_model"]
