from __future__ import annotations

"""
pipeline.py
===========

Pipeline state for one sky map run: energy selection, coordinate transforms
and the background estimator, with an explicit lifecycle::

    pipe = SkyMapPipeline(cfg)
    for frame in frames:
        pipe.feed_frame(frame)       # or pipe.feed(record) per record
    summary = pipe.finish()
    real, fake = pipe.export_real(), pipe.export_fake()

Frames keep the column names of the input table; the names of the energy,
zenith, azimuth, date, time and (optional) nanoseconds columns come from
``config.columns``.

The module also provides :func:`annotate_frame`, which adds sky coordinates
to every record of a frame for the annotated-table output.
"""

from dataclasses import dataclass
from typing import List, Optional

import numpy as np
import pandas as pd

from .background import ROUNDING_POLICIES, BackgroundEstimator, RandomSource
from .coordinates import (
    equatorial_to_galactic,
    horizontal_to_equatorial_jd,
    scaled_offset_deg,
    to_180_range,
)
from .model import (
    EquatorialPosition,
    Event,
    EventRecord,
    GalacticPosition,
    RecordColumns,
    SkyMapConfig,
)
from .timescale import julian_day

__all__ = [
    "RunSummary",
    "SkyMapPipeline",
    "energy_mask",
    "annotate_frame",
]


@dataclass
class RunSummary:
    records_seen: int = 0
    rejected_energy: int = 0
    accepted: int = 0
    real_anomalies: int = 0
    fake_anomalies: int = 0
    batches_processed: int = 0
    synthetic_events: int = 0
    dropped_events: int = 0
    scramble_factor: int = 1

    def warnings(self) -> List[str]:
        """Human-readable data-quality warnings; empty when nothing to report."""
        out: List[str] = []
        if self.real_anomalies:
            out.append(
                f"{self.real_anomalies} accepted events fell outside the sky grid "
                "and were not binned in the real map"
            )
        if self.fake_anomalies:
            out.append(
                f"{self.fake_anomalies} synthetic events fell outside the sky grid "
                "and were not binned in the fake map"
            )
        if self.dropped_events:
            out.append(
                f"Trailing partial batch dropped: {self.dropped_events} events have "
                "no background contribution"
            )
        return out


def energy_mask(energy, energy_min: Optional[float], energy_max: Optional[float]):
    """Boolean mask of energies inside the inclusive window (None = open)."""
    e = np.asarray(energy, dtype=float)
    mask = np.isfinite(e)
    if energy_min is not None:
        mask &= e >= energy_min
    if energy_max is not None:
        mask &= e <= energy_max
    return mask


def _frame_julian_day(df: pd.DataFrame, cols: RecordColumns):
    nanos = df[cols.nanoseconds].to_numpy() if cols.nanoseconds in df else 0
    return julian_day(
        df[cols.date].to_numpy(dtype=np.int64),
        df[cols.time].to_numpy(dtype=np.int64),
        nanos,
    )


class SkyMapPipeline:
    """Owns the real/fake sky maps and the scrambling batch of one run."""

    def __init__(self, config: SkyMapConfig, rng: Optional[RandomSource] = None) -> None:
        if config.fake_rounding not in ROUNDING_POLICIES:
            raise ValueError(
                f"Unsupported fake_rounding '{config.fake_rounding}'. "
                f"Use one of {ROUNDING_POLICIES}."
            )
        self.config = config
        self.estimator = BackgroundEstimator(
            capacity=config.batch_capacity,
            scramble_factor=config.scramble_factor,
            bin_width_deg=config.bin_width_deg,
            site=config.site,
            rng=rng,
            seed=config.seed,
            chunk_events=config.chunk_events,
        )
        self.records_seen = 0
        self.rejected_energy = 0
        self._finished = False

    def _check_open(self) -> None:
        if self._finished:
            raise RuntimeError("Pipeline already finished; create a new one")

    def accepts(self, energy: float) -> bool:
        return bool(energy_mask(energy, self.config.energy_min, self.config.energy_max))

    def feed(self, record: EventRecord) -> Optional[Event]:
        """Process one record; return the transformed event or None if rejected."""
        self._check_open()
        self.records_seen += 1
        if not self.accepts(record.energy):
            self.rejected_energy += 1
            return None

        jd = record.epoch.julian_day()
        direction = record.direction
        ra, dec = horizontal_to_equatorial_jd(
            direction.zenith_deg, direction.azimuth_deg, jd, site=self.config.site
        )
        lon, lat = equatorial_to_galactic(ra, dec)
        self.estimator.add(direction.zenith_deg, direction.azimuth_deg, jd, ra, dec)
        return Event(
            record=record,
            julian_day=jd,
            equatorial=EquatorialPosition(float(ra), float(dec)),
            galactic=GalacticPosition(float(lon), float(lat)),
        )

    def feed_frame(self, df: pd.DataFrame) -> int:
        """Process a frame of input records; return the number accepted."""
        self._check_open()
        cols = self.config.columns
        n = len(df)
        self.records_seen += n
        if n == 0:
            return 0
        mask = energy_mask(
            df[cols.energy].to_numpy(), self.config.energy_min, self.config.energy_max
        )
        self.rejected_energy += int(n - np.count_nonzero(mask))
        sel = df.loc[mask]
        if sel.empty:
            return 0

        jd = _frame_julian_day(sel, cols)
        zenith = sel[cols.zenith].to_numpy(dtype=float)
        azimuth = sel[cols.azimuth].to_numpy(dtype=float)
        ra, dec = horizontal_to_equatorial_jd(zenith, azimuth, jd, site=self.config.site)
        self.estimator.add_many(zenith, azimuth, jd, ra, dec)
        return len(sel)

    def finish(self) -> RunSummary:
        """Close the stream: flush or drop the partial batch, return the summary."""
        if not self._finished:
            self.estimator.finish(flush=self.config.flush_partial_batch)
            self._finished = True
        return self.summary()

    def summary(self) -> RunSummary:
        est = self.estimator
        return RunSummary(
            records_seen=self.records_seen,
            rejected_energy=self.rejected_energy,
            accepted=est.events_seen,
            real_anomalies=est.real.anomalies,
            fake_anomalies=est.fake.anomalies,
            batches_processed=est.batches_processed,
            synthetic_events=est.synthetic_events,
            dropped_events=est.dropped_events,
            scramble_factor=est.scramble_factor,
        )

    def _check_finished(self) -> None:
        if not self._finished:
            raise RuntimeError("Call finish() before exporting sky maps")

    def export_real(self) -> np.ndarray:
        self._check_finished()
        return self.estimator.export_real()

    def export_fake(self) -> np.ndarray:
        self._check_finished()
        return self.estimator.export_fake(self.config.fake_rounding)


def annotate_frame(df: pd.DataFrame, config: SkyMapConfig) -> pd.DataFrame:
    """
    Return a copy of ``df`` with RA, DEC, LON, LAT, JDAYS and DIST columns.

    RA and LON are signed (-180, 180]. DIST is the scaled offset from the
    configured reference position; when ``config.max_distance_deg > 0`` rows
    farther than that are removed. The energy window is not applied here.
    """
    cols = config.columns
    jd = _frame_julian_day(df, cols)
    ra, dec = horizontal_to_equatorial_jd(
        df[cols.zenith].to_numpy(dtype=float),
        df[cols.azimuth].to_numpy(dtype=float),
        jd,
        site=config.site,
    )
    lon, lat = equatorial_to_galactic(ra, dec)
    ra_signed = to_180_range(ra)

    out = df.copy()
    out["RA"] = np.atleast_1d(ra_signed)
    out["DEC"] = np.atleast_1d(dec)
    out["LON"] = np.atleast_1d(to_180_range(lon))
    out["LAT"] = np.atleast_1d(lat)
    out["JDAYS"] = np.atleast_1d(jd)
    out["DIST"] = np.atleast_1d(
        scaled_offset_deg(ra_signed, dec, config.reference_ra_deg, config.reference_dec_deg)
    )
    if config.max_distance_deg > 0.0:
        out = out.loc[out["DIST"] <= config.max_distance_deg]
    return out
