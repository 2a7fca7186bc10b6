from __future__ import annotations

"""
timescale.py
============

Julian day and Greenwich mean sidereal time for KCDC event timestamps.

KCDC tables store the detection instant as two integers, a date ``YYYYMMDD``
and a time of day ``HHMMSS`` (UT). Both functions accept Python scalars or
numpy arrays and work elementwise; no calendar validation is performed, so
garbage dates produce garbage day numbers rather than exceptions.

The Julian day follows the Gregorian algorithm of Meeus (Astronomical
Algorithms, ch. 7). Sidereal time uses the IAU 1982 polynomial for the mean
sidereal time at 0h UT.
"""

import numpy as np

__all__ = [
    "J2000_DAY_START",
    "SIDEREAL_RATE",
    "julian_day",
    "greenwich_sidereal_time",
    "sidereal_seconds_to_radians",
]

# Integer part of (JD + 0.5) at J2000.0 noon, plus one half day.
J2000_DAY_START = 2451545.5
DAYS_PER_CENTURY = 36525.0
SECONDS_PER_DAY = 86400.0
# Sidereal seconds per solar second.
SIDEREAL_RATE = 1.00273790935
# Mean sidereal time at 0h UT in seconds, ascending powers of T.
_GMST0_COEFFS = (24110.54841, 8640184.812866, 0.093104, 0.0000062)


def _split_date(date):
    date = np.asarray(date, dtype=np.int64)
    year = np.floor_divide(date, 10000)
    month = np.floor_divide(date - year * 10000, 100)
    day = date - year * 10000 - month * 100
    return year, month, day


def _split_time(hms):
    hms = np.asarray(hms, dtype=np.int64)
    hours = np.floor_divide(hms, 10000)
    minutes = np.floor_divide(hms - hours * 10000, 100)
    seconds = hms - hours * 10000 - minutes * 100
    return hours, minutes, seconds


def julian_day(date, time, nanoseconds=0):
    """
    Return the Julian day of a KCDC timestamp.

    Parameters
    ----------
    date : int or array_like
        Calendar date as ``YYYYMMDD``.
    time : int or array_like
        Time of day as ``HHMMSS``.
    nanoseconds : int, float or array_like
        Sub-second part added to the seconds.

    Returns
    -------
    float or ndarray
        Julian day (days since -4712-01-01 12:00).

    Notes
    -----
    January and February count as months 13 and 14 of the previous year so
    that the leap day sits at the end of the counting year.
    """
    year, month, day = _split_date(date)
    hours, minutes, seconds = _split_time(time)

    early = month <= 2
    month = np.where(early, month + 12, month).astype(float)
    year = np.where(early, year - 1, year).astype(float)

    secs = seconds + np.asarray(nanoseconds, dtype=float) * 1e-9
    frac_day = (hours + (minutes + secs / 60.0) / 60.0) / 24.0
    day = day + frac_day

    century = np.floor(year / 100.0)
    b = 2.0 - century + np.floor(century / 4.0)

    return (
        np.floor(365.25 * np.floor(year + 4716.0))
        + np.floor(306.0 * (month + 1.0) / 10.0)
        + b
        + day
        - 1524.5
    )


def greenwich_sidereal_time(jd):
    """
    Return Greenwich mean sidereal time in **seconds** for a Julian day.

    The result is not reduced to one day; convert with
    :func:`sidereal_seconds_to_radians` and normalize the angle afterwards.
    """
    shifted = np.asarray(jd, dtype=float) + 0.5
    day_fraction, day_part = np.modf(shifted)
    t = (day_part - J2000_DAY_START) / DAYS_PER_CENTURY

    # Horner evaluation, highest power first.
    gmst0 = _GMST0_COEFFS[-1]
    for coeff in reversed(_GMST0_COEFFS[:-1]):
        gmst0 = gmst0 * t + coeff
    return gmst0 + day_fraction * SIDEREAL_RATE * SECONDS_PER_DAY


def sidereal_seconds_to_radians(seconds):
    return np.asarray(seconds, dtype=float) * np.pi / 43200.0
