from __future__ import annotations

"""
background.py
=============

Time-scrambling background estimator.

Accepted events are binned into the *real* sky map and copied into a
fixed-capacity batch arena (zenith, azimuth, Julian day). When the arena is
full every buffered event spawns ``K`` synthetic events that keep its
detector direction but borrow the Julian day of a batch member drawn
uniformly with replacement. Each synthetic event is re-transformed to
equatorial coordinates and binned into the *fake* sky map. The direction
distribution (detector acceptance) is preserved while the arrival times are
isotropized, so ``fake / K`` estimates the expected background per bin.

Random source
-------------
Any object with ``integers(low, high, size)`` can be injected; by default a
``numpy.random.default_rng(seed)`` is used so runs are reproducible.

End of stream
-------------
:meth:`BackgroundEstimator.finish` either scrambles the trailing partial batch
(``flush=True``) or drops it. Dropped events are counted in
``dropped_events`` so the loss is visible in the run summary.
"""

from typing import Optional, Protocol

import numpy as np

from .coordinates import horizontal_to_equatorial_jd
from .histogram import SkyHistogram
from .model import KASCADE_SITE, Site

__all__ = ["RandomSource", "BackgroundEstimator", "ROUNDING_POLICIES"]

ROUNDING_POLICIES = ("exact", "floor", "round")


class RandomSource(Protocol):
    """Uniform integer source in [low, high)."""

    def integers(self, low: int, high: int, size=None): ...


class BackgroundEstimator:
    def __init__(
        self,
        *,
        capacity: int = 100_000,
        scramble_factor: int = 20,
        bin_width_deg: float = 0.5,
        site: Site = KASCADE_SITE,
        rng: Optional[RandomSource] = None,
        seed: int = 12345,
        chunk_events: int = 10_000,
    ) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        if scramble_factor < 1:
            raise ValueError(f"scramble_factor must be >= 1, got {scramble_factor}")
        if chunk_events < 1:
            raise ValueError(f"chunk_events must be >= 1, got {chunk_events}")
        self.capacity = int(capacity)
        self.scramble_factor = int(scramble_factor)
        self.site = site
        self.chunk_events = int(chunk_events)
        self.rng = rng if rng is not None else np.random.default_rng(seed)

        self.real = SkyHistogram(bin_width_deg)
        self.fake = SkyHistogram(bin_width_deg)

        # Batch arena
        self._zenith = np.empty(self.capacity, dtype=float)
        self._azimuth = np.empty(self.capacity, dtype=float)
        self._jd = np.empty(self.capacity, dtype=float)
        self._size = 0

        self.batches_processed = 0
        self.events_seen = 0
        self.dropped_events = 0
        self.synthetic_events = 0
        self.finished = False

    @property
    def pending(self) -> int:
        """Events waiting in the current, incomplete batch."""
        return self._size

    def add(self, zenith: float, azimuth: float, jd: float, ra: float, dec: float) -> None:
        """Bin one transformed event and queue it for scrambling."""
        self.add_many([zenith], [azimuth], [jd], [ra], [dec])

    def add_many(self, zenith, azimuth, jd, ra, dec) -> None:
        if self.finished:
            raise RuntimeError("BackgroundEstimator already finished")
        zenith = np.asarray(zenith, dtype=float).ravel()
        azimuth = np.asarray(azimuth, dtype=float).ravel()
        jd = np.asarray(jd, dtype=float).ravel()
        ra = np.asarray(ra, dtype=float).ravel()
        dec = np.asarray(dec, dtype=float).ravel()
        n = zenith.size
        if not (azimuth.size == jd.size == ra.size == dec.size == n):
            raise ValueError("zenith, azimuth, jd, ra and dec must have the same length")

        self.real.increment_many(dec, ra)
        self.events_seen += n

        start = 0
        while start < n:
            room = self.capacity - self._size
            stop = min(n, start + room)
            sl = slice(self._size, self._size + (stop - start))
            self._zenith[sl] = zenith[start:stop]
            self._azimuth[sl] = azimuth[start:stop]
            self._jd[sl] = jd[start:stop]
            self._size += stop - start
            start = stop
            if self._size == self.capacity:
                self._scramble_batch()

    def _scramble_batch(self) -> None:
        n = self._size
        k = self.scramble_factor
        jd_pool = self._jd[:n]
        for lo in range(0, n, self.chunk_events):
            hi = min(n, lo + self.chunk_events)
            picks = np.asarray(self.rng.integers(0, n, size=(hi - lo, k)))
            zen = np.repeat(self._zenith[lo:hi], k)
            azi = np.repeat(self._azimuth[lo:hi], k)
            jd = jd_pool[picks.ravel()]
            ra, dec = horizontal_to_equatorial_jd(zen, azi, jd, site=self.site)
            self.fake.increment_many(dec, ra)
            self.synthetic_events += zen.size
        self.batches_processed += 1
        self._size = 0

    def finish(self, flush: bool = True) -> None:
        """Handle the trailing partial batch and close the estimator."""
        if self.finished:
            return
        if self._size:
            if flush:
                self._scramble_batch()
            else:
                self.dropped_events += self._size
                self._size = 0
        self.finished = True

    def export_real(self) -> np.ndarray:
        return self.real.export()

    def export_fake(self, rounding: str = "exact") -> np.ndarray:
        """
        Fake counts divided by ``K``.

        ``rounding`` is ``"exact"`` (float), ``"floor"`` (integer truncation, as
        the legacy export did) or ``"round"`` (half up).
        """
        raw = self.fake.export()
        if rounding == "exact":
            return raw / float(self.scramble_factor)
        if rounding == "floor":
            return raw // self.scramble_factor
        if rounding == "round":
            return (2 * raw + self.scramble_factor) // (2 * self.scramble_factor)
        raise ValueError(
            f"Unsupported rounding '{rounding}'. Use one of {ROUNDING_POLICIES}."
        )
