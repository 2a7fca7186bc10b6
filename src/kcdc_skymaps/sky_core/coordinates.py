from __future__ import annotations

"""
coordinates.py
==============

Horizontal → equatorial → galactic transforms for a fixed detector site.

All public functions take and return **degrees** and accept Python floats or
numpy arrays (elementwise). They never raise for finite input and perform no
range validation: NaN in, NaN out. Callers that bin the results must treat
non-finite or out-of-range values as anomalies.

Conventions
-----------
- Zenith angle: 0 = overhead; altitude = 90 − zenith.
- Detector azimuth: shifted by +180° before use (0 = south, 90 = west in the
  astronomical convention used by the hour-angle formula).
- Right ascension is returned in [0, 360). Use :func:`to_180_range` only for
  display or distance selection, never inside the transform chain.
"""

import numpy as np

from .model import (
    GAL_LON0_DEG,
    GAL_N_POLE_DEC_DEG,
    GAL_N_POLE_RA_DEG,
    KASCADE_SITE,
    Site,
)
from .timescale import greenwich_sidereal_time, julian_day, sidereal_seconds_to_radians

__all__ = [
    "normalize_angle_deg",
    "to_180_range",
    "horizontal_to_equatorial",
    "horizontal_to_equatorial_jd",
    "equatorial_to_galactic",
    "hammer_aitoff",
    "scaled_offset_deg",
]

DEG2RAD = np.pi / 180.0
RAD2DEG = 180.0 / np.pi


def normalize_angle_deg(angle):
    """Wrap angle in degrees to [0, 360), rounding toward negative infinity."""
    a = np.asarray(angle, dtype=float)
    out = a - 360.0 * np.floor(a / 360.0)
    # -1e-17 wraps to 360.0; negative subnormals underflow a/360 to 0 and stay negative
    return np.where((out >= 360.0) | (out < 0.0), 0.0, out)[()]


def to_180_range(angle):
    """
    Map [0, 360) onto (-180, 180]: values above 180 lose a full turn.

    Exactly 180 stays +180. The KCDC program maps it to -180, which falls
    outside the half-open range.
    """
    a = np.asarray(angle, dtype=float)
    return np.where(a > 180.0, a - 360.0, a)[()]


def horizontal_to_equatorial_jd(zenith, azimuth, jd, site: Site = KASCADE_SITE):
    """
    Convert detector (zenith, azimuth) observed at Julian day ``jd`` to
    equatorial (ra, dec) in degrees.
    """
    height = (90.0 - np.asarray(zenith, dtype=float)) * DEG2RAD
    az = normalize_angle_deg(np.asarray(azimuth, dtype=float) + 180.0) * DEG2RAD
    lat = site.latitude_deg * DEG2RAD
    lon = site.longitude_deg * DEG2RAD

    hour_angle = np.arctan2(
        np.sin(az), np.cos(az) * np.sin(lat) + np.tan(height) * np.cos(lat)
    )
    gst = sidereal_seconds_to_radians(greenwich_sidereal_time(jd))

    ra = normalize_angle_deg((gst - hour_angle - lon) * RAD2DEG)
    dec = np.arcsin(
        np.sin(lat) * np.sin(height) - np.cos(lat) * np.cos(height) * np.cos(az)
    ) * RAD2DEG
    return ra, dec[()]


def horizontal_to_equatorial(
    zenith,
    azimuth,
    date,
    time,
    nanoseconds=0,
    site: Site = KASCADE_SITE,
):
    """
    Convert a detector direction at a KCDC timestamp to (ra, dec) in degrees.

    Parameters
    ----------
    zenith, azimuth : float or array_like
        Detector angles in degrees (detector azimuth convention).
    date, time : int or array_like
        ``YYYYMMDD`` and ``HHMMSS`` (UT).
    nanoseconds : int or array_like
        Sub-second part of the timestamp.
    site : Site
        Observing location.
    """
    jd = julian_day(date, time, nanoseconds)
    return horizontal_to_equatorial_jd(zenith, azimuth, jd, site=site)


def equatorial_to_galactic(ra, dec):
    """Convert equatorial (ra, dec) to galactic (lon, lat), degrees, lon in [0, 360)."""
    ra = np.asarray(ra, dtype=float)
    dec = np.asarray(dec, dtype=float) * DEG2RAD
    pole_dec = GAL_N_POLE_DEC_DEG * DEG2RAD
    d_ra = (GAL_N_POLE_RA_DEG - ra) * DEG2RAD

    x = np.arctan2(
        np.sin(d_ra),
        np.cos(d_ra) * np.sin(pole_dec) - np.tan(dec) * np.cos(pole_dec),
    )
    lat = np.arcsin(
        np.sin(dec) * np.sin(pole_dec) + np.cos(dec) * np.cos(pole_dec) * np.cos(d_ra)
    ) * RAD2DEG
    lon = np.mod(np.pi + GAL_LON0_DEG * DEG2RAD - x, 2.0 * np.pi) * RAD2DEG
    return lon[()], lat[()]


def hammer_aitoff(lon, lat):
    """
    Hammer–Aitoff equal-area projection.

    ``lon`` in [-180, 180] and ``lat`` in [-90, 90] degrees map to
    x in [-180, 180] and y in [-90, 90].
    """
    lon = np.asarray(lon, dtype=float) * DEG2RAD
    lat = np.asarray(lat, dtype=float) * DEG2RAD
    z = np.sqrt(1.0 + np.cos(lat) * np.cos(lon / 2.0))
    x = 180.0 * np.cos(lat) * np.sin(lon / 2.0) / z
    y = 90.0 * np.sin(lat) / z
    return x[()], y[()]


def scaled_offset_deg(ra_signed, dec, ref_ra_deg: float, ref_dec_deg: float):
    """
    Distance of (ra, dec) from a reference position as used by the KCDC
    annotation output: ``sqrt(d_dec**2 + d_ra**2 / cos(ref_dec)**2)``.

    ``ra_signed`` is expected in (-180, 180] like ``ref_ra_deg``.
    """
    d_dec = np.asarray(dec, dtype=float) - ref_dec_deg
    d_ra = np.asarray(ra_signed, dtype=float) - ref_ra_deg
    scale = np.cos(ref_dec_deg * DEG2RAD) ** 2
    return np.sqrt(d_dec**2 + d_ra**2 / scale)[()]
