# src/scripts/plot_walks.py
"""
Plot a saved CTRW run: the percolation cluster with a few walks on top, and
the MSD curves with a fitted anomalous exponent.
"""
import argparse
import sys
from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.append(str(ROOT))

from src.ctrw_sim import utils  # type: ignore[import]
from src.ctrw_sim.analysis import EA_MSD, EATA_MSD, ERGODICITY, FIRST_TAMSD, fit_msd_exponent  # type: ignore[import]


def format_title(meta):
    if not meta:
        return None
    parts = [
        f"{meta.get('topology', '?')} L={meta.get('grid_size', '?')}",
        f"p={meta.get('threshold', '?'):.4f}" if "threshold" in meta else "p=?",
        f"beta={meta.get('beta', '?')}",
        f"seed={meta.get('seed')}",
    ]
    return ", ".join(parts)


def plot_cluster(ax, lattice, walks, max_walks):
    occupied = lattice[:, 2] > 0
    ax.scatter(
        lattice[~occupied, 0], lattice[~occupied, 1], s=1, c="0.9", marker="s", linewidths=0
    )
    ax.scatter(
        lattice[occupied, 0],
        lattice[occupied, 1],
        s=2,
        c=lattice[occupied, 2],
        cmap="tab20",
        marker="s",
        linewidths=0,
    )
    if walks is not None:
        for walk in walks[:max_walks]:
            ax.plot(walk[:, 0], walk[:, 1], lw=0.6)
    ax.set_aspect("equal")
    ax.set_xlabel("x")
    ax.set_ylabel("y")


def plot_msd(ax, analysis, fit_range):
    lags = np.arange(1, analysis.shape[0] + 1)
    for col in range(FIRST_TAMSD, analysis.shape[1]):
        ax.loglog(lags, analysis[:, col], c="0.75", lw=0.5)
    ax.loglog(lags, analysis[:, EA_MSD], c="C0", lw=2, label="EA-MSD")
    ax.loglog(lags, analysis[:, EATA_MSD], c="C1", lw=2, ls="--", label="EA-TA-MSD")

    try:
        fit = fit_msd_exponent(analysis[:, EA_MSD], *fit_range)
        ax.loglog(
            lags,
            fit.coefficient * lags**fit.alpha,
            c="k",
            ls=":",
            label=f"fit alpha={fit.alpha:.3f} (R²={fit.r_squared:.3f})",
        )
    except ValueError as exc:
        print(f"Skipping MSD fit: {exc}")
    ax.set_xlabel("lag")
    ax.set_ylabel("MSD")
    ax.legend(fontsize=8)


def main():
    parser = argparse.ArgumentParser(description="Plot a saved CTRW simulation")
    parser.add_argument("path", help=".npz file written by run_sim.py")
    parser.add_argument("--walks", type=int, default=5, help="Walks to draw on the cluster")
    parser.add_argument("--fit-min", type=int, default=1, help="Smallest lag in the fit")
    parser.add_argument("--fit-max", type=int, default=None, help="Largest lag in the fit")
    parser.add_argument("--out", default=None, help="Image path (default: show window)")
    args = parser.parse_args()

    result = utils.load_result(args.path)
    if result.lattice is None:
        raise ValueError(f"{args.path} has no lattice coordinates")

    n_panels = 3 if result.analysis is not None and result.analysis.shape[1] > 3 else 1
    fig, axes = plt.subplots(1, n_panels, figsize=(5 * n_panels, 5), squeeze=False)
    plot_cluster(axes[0, 0], result.lattice, result.walks, args.walks)
    if n_panels == 3:
        plot_msd(axes[0, 1], result.analysis, (args.fit_min, args.fit_max))
        lags = np.arange(1, result.analysis.shape[0] + 1)
        axes[0, 2].semilogx(lags, result.analysis[:, ERGODICITY])
        axes[0, 2].set_xlabel("lag")
        axes[0, 2].set_ylabel("EB")

    title = format_title(result.meta)
    if title:
        fig.suptitle(title)
    fig.tight_layout()

    if args.out:
        fig.savefig(args.out, dpi=200)
        print(f"Saved figure to {args.out}")
    else:
        plt.show()


if __name__ == "__main__":
    main()
