"""
sky_io.matrix
=============

Flat numeric matrix files for sky maps.

File format
-----------
1) A commented metadata block (lines starting with ``#``), ``# key: value``.
2) One line per declination bin, north (highest declination) first; values
   separated by single spaces, right ascension ascending left to right.

Integer matrices are written as integers. Fractional matrices (the fake map
divided by K with the "exact" policy) use six decimals.

Overwrites are atomic on POSIX: the file is written to ``path + ".tmp"`` and
then replaced via ``os.replace``.
"""

from __future__ import annotations

import os
from typing import Any, Dict, Optional

import numpy as np

__all__ = ["write_skymap_matrix", "read_skymap_matrix", "read_matrix_metadata"]


def write_skymap_matrix(
    path: str,
    matrix: np.ndarray,
    metadata: Optional[Dict[str, Any]] = None,
) -> None:
    """Write a 2D sky map with an optional commented metadata block."""
    m = np.asarray(matrix)
    if m.ndim != 2:
        raise ValueError(f"Sky map must be 2D, got shape {m.shape}")
    fmt = "%d" if np.issubdtype(m.dtype, np.integer) else "%.6f"

    lines = [f"{k}: {v}" for k, v in (metadata or {}).items()]
    lines.append(f"shape: {m.shape[0]} x {m.shape[1]}")
    lines.append("rows: declination descending; columns: right ascension ascending")

    os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
    tmp = path + ".tmp"
    with open(tmp, "w", encoding="utf-8") as f:
        np.savetxt(f, m, fmt=fmt, delimiter=" ", header="\n".join(lines), comments="# ")
    os.replace(tmp, path)


def read_skymap_matrix(path: str) -> np.ndarray:
    """Read a matrix written by :func:`write_skymap_matrix`."""
    m = np.loadtxt(path, comments="#", ndmin=2)
    if np.all(m == np.round(m)):
        return m.astype(np.int64)
    return m


def read_matrix_metadata(path: str) -> Dict[str, str]:
    """Return the ``# key: value`` block of a matrix file."""
    meta: Dict[str, str] = {}
    with open(path, "r", encoding="utf-8") as f:
        for ln in f:
            if not ln.startswith("#"):
                break
            body = ln[1:].strip()
            if ":" in body:
                k, v = body.split(":", 1)
                meta[k.strip()] = v.strip()
    return meta
