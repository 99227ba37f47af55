# src/ctrw_sim/utils.py
from __future__ import annotations

import json
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import numpy as np

try:  # Python 3.11+
    import tomllib
except ModuleNotFoundError:  # pragma: no cover
    tomllib = None  # type: ignore


@dataclass
class SimulationResult:
    """Common container for the three output arrays of a run."""

    lattice: Optional[np.ndarray] = None
    walks: Optional[np.ndarray] = None
    analysis: Optional[np.ndarray] = None
    meta: Optional[Dict[str, Any]] = None

    def ensure_meta(self) -> Dict[str, Any]:
        if self.meta is None:
            self.meta = {}
        return self.meta


def seed_sequence(seed: int | np.random.SeedSequence | None = None) -> np.random.SeedSequence:
    """
    Root SeedSequence of a run. ``None`` or a negative seed draws fresh
    entropy from the OS.
    """
    if isinstance(seed, np.random.SeedSequence):
        return seed
    if seed is None or seed < 0:
        return np.random.SeedSequence()
    return np.random.SeedSequence(int(seed))


def spawn_generators(
    seed: int | np.random.SeedSequence | None, n: int
) -> list[np.random.Generator]:
    """``n`` independent generators; generator ``k`` is child ``k`` of ``seed``."""
    children = seed_sequence(seed).spawn(n)
    return [np.random.default_rng(child) for child in children]


def now_str() -> str:
    return time.strftime("%Y%m%d-%H%M%S")


def save_result(
    path: str | os.PathLike[str], result: SimulationResult, *, overwrite: bool = True
) -> None:
    """Serialize a SimulationResult to a compressed .npz file."""
    out_dir = Path(path).parent
    out_dir.mkdir(parents=True, exist_ok=True)
    out: Dict[str, Any] = {}
    if result.lattice is not None:
        out["lattice"] = np.asarray(result.lattice)
    if result.walks is not None:
        out["walks"] = np.asarray(result.walks)
    if result.analysis is not None:
        out["analysis"] = np.asarray(result.analysis)
    out["meta"] = np.array(result.meta or {}, dtype=object)

    if not overwrite and Path(path).exists():
        raise FileExistsError(f"{path} already exists")
    np.savez_compressed(path, **out)


def load_result(path: str | os.PathLike[str]) -> SimulationResult:
    """Load a .npz written by save_result."""
    data = np.load(path, allow_pickle=True)
    meta = None
    if "meta" in data:
        meta_raw = data["meta"]
        try:
            meta = meta_raw.item()
        except ValueError:
            meta = meta_raw
    return SimulationResult(
        lattice=data["lattice"] if "lattice" in data else None,
        walks=data["walks"] if "walks" in data else None,
        analysis=data["analysis"] if "analysis" in data else None,
        meta=meta,
    )


def save_raw(prefix: str | os.PathLike[str], result: SimulationResult) -> Dict[str, Path]:
    """
    Headerless binary dumps ``<prefix>.cluster``, ``<prefix>.walks`` and
    ``<prefix>.data``.

    Arrays are written column-major with respect to the shapes
    ``3 x N``, ``2 x walk_length x n_walks`` and ``(walk_length - 1) x (n_walks + 3)``.
    Shapes are not stored; readers need the run parameters.
    """
    prefix = Path(prefix)
    prefix.parent.mkdir(parents=True, exist_ok=True)
    written: Dict[str, Path] = {}
    if result.lattice is not None:
        # (N, 3) C-order == (3, N) column-major
        path = prefix.with_name(prefix.name + ".cluster")
        np.ascontiguousarray(result.lattice).tofile(path)
        written["cluster"] = path
    if result.walks is not None:
        # (n_walks, walk_length, 2) C-order == (2, walk_length, n_walks) column-major
        path = prefix.with_name(prefix.name + ".walks")
        np.ascontiguousarray(result.walks).tofile(path)
        written["walks"] = path
    if result.analysis is not None:
        path = prefix.with_name(prefix.name + ".data")
        np.ascontiguousarray(np.asarray(result.analysis).T).tofile(path)
        written["data"] = path
    return written


def load_params(path: str | os.PathLike[str]) -> Dict[str, Any]:
    """
    Load simulation parameters from JSON or TOML.
    """
    path = str(path)
    with open(path, "rb") as fh:
        data = fh.read()
    suffix = Path(path).suffix.lower()
    if suffix in {".json", ""}:
        return json.loads(data.decode("utf-8"))
    if suffix in {".toml", ".tml"}:
        if tomllib is None:
            raise RuntimeError("tomllib is unavailable; cannot parse TOML files")
        return tomllib.loads(data.decode("utf-8"))
    raise ValueError(f"Unsupported parameter file format: {suffix}")
