from __future__ import annotations

"""
histogram.py
============

Fixed-resolution 2D counter over (declination, right ascension).

Declination is shifted into [0, 180) by adding 90°, right ascension is kept
in [0, 360). With the default 0.5° bins the grid is 360 × 720. Values that
fall outside the grid (including NaN) are counted as anomalies and skipped;
the grid is never indexed out of bounds.
"""

import math
from typing import Tuple

import numpy as np

__all__ = ["SkyHistogram"]


class SkyHistogram:
    """Binned sky map of event counts."""

    def __init__(self, bin_width_deg: float = 0.5) -> None:
        if not (bin_width_deg > 0.0) or not math.isfinite(bin_width_deg):
            raise ValueError(f"bin_width_deg must be positive, got {bin_width_deg}")
        n_dec = 180.0 / bin_width_deg
        if abs(n_dec - round(n_dec)) > 1e-9:
            raise ValueError(
                f"bin_width_deg must divide 180 evenly, got {bin_width_deg}"
            )
        self.bin_width_deg = float(bin_width_deg)
        self.shape: Tuple[int, int] = (int(round(n_dec)), 2 * int(round(n_dec)))
        self.counts = np.zeros(self.shape, dtype=np.int64)
        self.anomalies = 0

    def bin_index(self, dec, ra):
        """
        Return ``(dec_bin, ra_bin, valid)`` arrays for the given positions.
        Invalid entries have undefined indices.
        """
        dec_shift = np.asarray(dec, dtype=float) + 90.0
        ra = np.asarray(ra, dtype=float)
        valid = (
            np.isfinite(dec_shift)
            & np.isfinite(ra)
            & (dec_shift >= 0.0)
            & (dec_shift < 180.0)
            & (ra >= 0.0)
            & (ra < 360.0)
        )
        with np.errstate(invalid="ignore"):
            dec_bin = np.floor(np.where(valid, dec_shift, 0.0) / self.bin_width_deg)
            ra_bin = np.floor(np.where(valid, ra, 0.0) / self.bin_width_deg)
        dec_bin = dec_bin.astype(np.int64)
        ra_bin = ra_bin.astype(np.int64)
        valid &= (dec_bin < self.shape[0]) & (ra_bin < self.shape[1])
        return dec_bin, ra_bin, valid

    def increment(self, dec: float, ra: float) -> bool:
        """Add one count at (dec, ra); return False and count an anomaly if off-grid."""
        dec_bin, ra_bin, valid = self.bin_index(dec, ra)
        if not bool(valid):
            self.anomalies += 1
            return False
        self.counts[int(dec_bin), int(ra_bin)] += 1
        return True

    def increment_many(self, dec, ra) -> int:
        """Vectorized :meth:`increment`; returns the number of values binned."""
        dec_bin, ra_bin, valid = self.bin_index(np.ravel(dec), np.ravel(ra))
        n_ok = int(np.count_nonzero(valid))
        self.anomalies += int(valid.size - n_ok)
        if n_ok:
            np.add.at(self.counts, (dec_bin[valid], ra_bin[valid]), 1)
        return n_ok

    def merge(self, other: "SkyHistogram") -> None:
        """Add the counts and anomalies of a histogram with the same geometry."""
        if other.shape != self.shape or other.bin_width_deg != self.bin_width_deg:
            raise ValueError(
                f"Cannot merge histograms with shapes {self.shape} and {other.shape}"
            )
        self.counts += other.counts
        self.anomalies += other.anomalies

    @property
    def total(self) -> int:
        return int(self.counts.sum())

    def export(self) -> np.ndarray:
        """Rows from the highest declination bin to the lowest (north on top)."""
        return self.counts[::-1].copy()
