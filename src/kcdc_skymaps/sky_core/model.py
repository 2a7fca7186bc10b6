from __future__ import annotations

"""
model.py
========
Data models shared across the sky map pipeline.

This module is intentionally small and stable. Transforms, the background
estimator and the drivers rely on a consistent API without importing runners
or I/O details.

All angles are in decimal degrees unless a name says otherwise.
"""

from dataclasses import dataclass, field
from typing import Optional


# A site where events are detected.
@dataclass(frozen=True)
class Site:
    # Human readable site name.
    name: str
    # Latitude in decimal degrees (south negative).
    latitude_deg: float
    # Longitude in decimal degrees (east positive).
    longitude_deg: float
    # Elevation above mean sea level in meters.
    elevation_m: float = 0.0


KASCADE_SITE = Site(
    name="KASCADE (Karlsruhe)",
    latitude_deg=49.0994,
    longitude_deg=8.4378,
    elevation_m=110.0,
)

# North galactic pole and galactic longitude of the ascending node (J2000).
GAL_N_POLE_RA_DEG = 192.859508
GAL_N_POLE_DEC_DEG = 27.128336
GAL_LON0_DEG = 122.932


# Calendar date and time of day of a detection, as stored in KCDC tables.
@dataclass(frozen=True)
class Epoch:
    # Date as integer YYYYMMDD.
    date: int
    # Time of day as integer HHMMSS.
    time: int
    # Sub-second part in nanoseconds.
    nanoseconds: int = 0

    def julian_day(self) -> float:
        from .timescale import julian_day

        return float(julian_day(self.date, self.time, self.nanoseconds))


@dataclass(frozen=True)
class HorizontalDirection:
    # Angle from overhead.
    zenith_deg: float
    # Detector azimuth convention (half a turn from the astronomical one).
    azimuth_deg: float

    @property
    def altitude_deg(self) -> float:
        return 90.0 - self.zenith_deg


@dataclass(frozen=True)
class EquatorialPosition:
    # Right ascension in [0, 360).
    ra_deg: float
    # Declination in [-90, 90].
    dec_deg: float

    @property
    def signed_ra_deg(self) -> float:
        from .coordinates import to_180_range

        return float(to_180_range(self.ra_deg))


@dataclass(frozen=True)
class GalacticPosition:
    lon_deg: float
    lat_deg: float

    @property
    def signed_lon_deg(self) -> float:
        from .coordinates import to_180_range

        return float(to_180_range(self.lon_deg))


# One parsed input record.
@dataclass(frozen=True)
class EventRecord:
    energy: float
    zenith_deg: float
    azimuth_deg: float
    date: int
    time: int
    nanoseconds: int = 0

    @property
    def epoch(self) -> Epoch:
        return Epoch(self.date, self.time, self.nanoseconds)

    @property
    def direction(self) -> HorizontalDirection:
        return HorizontalDirection(self.zenith_deg, self.azimuth_deg)


# An accepted record with its derived sky position.
@dataclass(frozen=True)
class Event:
    record: EventRecord
    julian_day: float
    equatorial: EquatorialPosition
    galactic: GalacticPosition


# Column names of the KCDC table mapped to record fields.
@dataclass(frozen=True)
class RecordColumns:
    energy: str = "E"
    zenith: str = "ZE"
    azimuth: str = "AZ"
    date: str = "YMD"
    time: str = "HMS"
    # Optional: absent in the public KCDC exports.
    nanoseconds: str = "MMN"


@dataclass(frozen=True)
class SkyMapConfig:
    # Observing location.
    site: Site = KASCADE_SITE
    # Histogram resolution in degrees; must divide 180 evenly.
    bin_width_deg: float = 0.5
    # Scrambling window size (events per batch).
    batch_capacity: int = 100_000
    # Synthetic background events generated per real event (K).
    scramble_factor: int = 20
    # Seed of the default random generator.
    seed: int = 12345
    # Scramble the trailing partial batch instead of dropping it.
    flush_partial_batch: bool = True
    # Policy for dividing fake counts by K: "exact", "floor" or "round".
    fake_rounding: str = "exact"
    # Events re-transformed per vectorized step while scrambling.
    chunk_events: int = 10_000
    # Inclusive energy acceptance window; None leaves a side open.
    energy_min: Optional[float] = None
    energy_max: Optional[float] = None
    # Annotation mode distance cut around the reference position (0 = off).
    max_distance_deg: float = 0.0
    reference_ra_deg: float = -52.0
    reference_dec_deg: float = 40.95
    # Input table layout.
    columns: RecordColumns = field(default_factory=RecordColumns)
    chunksize: int = 200_000


__all__ = [
    "Site",
    "KASCADE_SITE",
    "GAL_N_POLE_RA_DEG",
    "GAL_N_POLE_DEC_DEG",
    "GAL_LON0_DEG",
    "Epoch",
    "HorizontalDirection",
    "EquatorialPosition",
    "GalacticPosition",
    "EventRecord",
    "Event",
    "RecordColumns",
    "SkyMapConfig",
]
