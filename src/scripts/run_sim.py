#!/usr/bin/env python3
"""
Single CTRW Simulation Runner

Grows one percolation cluster, runs the random walks on it and saves the
lattice coordinates, walk coordinates and MSD analysis table.
"""

import argparse
import sys
import time
from pathlib import Path

# Add project root to path
ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from src.ctrw_sim import CTRWConfig, CTRWSimulator, utils


def build_config(args: argparse.Namespace) -> CTRWConfig:
    """Merge an optional parameter file with explicit command-line flags."""
    params = utils.load_params(args.params) if args.params else {}
    overrides = {
        "grid_size": args.grid_size,
        "topology": args.topology,
        "threshold": args.threshold,
        "n_walks": args.walks,
        "walk_length": args.length,
        "beta": args.beta,
        "tau0": args.tau0,
        "noise": args.noise,
        "walk_mode": args.walk_mode,
        "n_jobs": args.jobs,
        "seed": args.seed,
    }
    params.update({k: v for k, v in overrides.items() if v is not None})
    if args.quiet:
        params["verbose"] = False
    return CTRWConfig.from_dict(params)


def main():
    parser = argparse.ArgumentParser(
        description="Run a CTRW simulation on a percolation cluster",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--params", type=str, default=None, help="JSON/TOML parameter file")
    parser.add_argument("--grid-size", type=int, default=None, help="Linear lattice size L")
    parser.add_argument(
        "--topology", choices=["square", "honeycomb"], default=None, help="Lattice type"
    )
    parser.add_argument(
        "--threshold",
        type=float,
        default=None,
        help="Occupation fraction (default: critical threshold of the lattice)",
    )
    parser.add_argument("--walks", type=int, default=None, help="Number of random walks")
    parser.add_argument("--length", type=int, default=None, help="Steps per walk")
    parser.add_argument("--beta", type=float, default=None, help="CTRW rate (0 disables)")
    parser.add_argument("--tau0", type=float, default=None, help="CTRW base waiting time")
    parser.add_argument("--noise", type=float, default=None, help="Localisation noise std")
    parser.add_argument(
        "--walk-mode",
        choices=["any", "largest"],
        default=None,
        help="Start walks on any occupied site or on the largest cluster",
    )
    parser.add_argument("--jobs", type=int, default=None, help="Worker threads")
    parser.add_argument(
        "--seed", type=int, default=None, help="Random seed (negative: nondeterministic)"
    )
    parser.add_argument(
        "--out",
        type=str,
        default=None,
        help="Output path (.npz file, or a prefix for raw dumps with --raw)",
    )
    parser.add_argument(
        "--raw",
        action="store_true",
        help="Write headerless .cluster/.walks/.data binary dumps instead of .npz",
    )
    parser.add_argument("--quiet", action="store_true", help="Suppress stage timings")

    args = parser.parse_args()
    config = build_config(args)

    start_time = time.time()
    simulator = CTRWSimulator(config)
    simulator.run()
    result = simulator.result()
    elapsed_time = time.time() - start_time

    if args.out is None:
        output_dir = Path("results")
        output_dir.mkdir(exist_ok=True)
        stem = f"{config.topology}_L{config.grid_size}_W{config.n_walks}_{utils.now_str()}"
        args.out = str(output_dir / (stem if args.raw else stem + ".npz"))

    if args.raw:
        written = utils.save_raw(args.out, result)
        outputs = ", ".join(str(p) for p in written.values())
    else:
        utils.save_result(args.out, result)
        outputs = args.out

    print(f"\nSimulation completed in {elapsed_time:.2f} seconds")
    print(f"   Occupied sites: {result.meta['n_occupied']}")
    print(f"   Largest cluster: {result.meta['largest_cluster_size']}")
    print(f"   Output saved to: {outputs}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
