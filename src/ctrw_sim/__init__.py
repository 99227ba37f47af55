"""
CTRW Simulation Library - Anomalous Diffusion on Percolation Clusters

This package provides the pipeline stages and a driver that runs them:
- build_neighbor_table: periodic square / honeycomb adjacency
- run_percolation: Newman-Ziff union-find site percolation
- build_lattice_coords: real-space site coordinates and unit cell
- simulate_walks: random walks subordinated to a CTRW clock
- analyze_msd: MSD statistics and ergodicity breaking
- CTRWSimulator: runs all of the above from a CTRWConfig
"""

from .neighbors import NeighborTable, build_neighbor_table
from .percolation import OccupancyResult, run_percolation
from .lattice import LatticeCoords, build_lattice_coords
from .walks import WalkParams, simulate_walks
from .analysis import analyze_msd, fit_msd_exponent
from .simulator import CTRWConfig, CTRWSimulator, run_model
from . import utils

__all__ = [
    # Pipeline
    "build_neighbor_table",
    "run_percolation",
    "build_lattice_coords",
    "simulate_walks",
    "analyze_msd",
    "fit_msd_exponent",
    # Driver
    "CTRWSimulator",
    "run_model",
    # Data / configuration classes
    "CTRWConfig",
    "WalkParams",
    "NeighborTable",
    "OccupancyResult",
    "LatticeCoords",
    # Utilities
    "utils",
]
