"""
sky_io.records
==============

Readers for KCDC event tables.

File format
-----------
A KCDC export is a whitespace-separated text table with one header line,
for example::

         E          YC          XC          ZE          AZ  ...         YMD         HMS  ...
   15.0428     43.7400     79.5148     44.2007      7.4743  ...    19980702      145647  ...

Only the columns named by :class:`~kcdc_skymaps.sky_core.model.RecordColumns`
are required (energy, zenith, azimuth, date, time). The nanoseconds column is
optional and defaults to 0; the public exports do not provide it.

Malformed records
-----------------
A row whose required fields are not numeric (or are missing) is a malformed
record. Frame readers drop such rows and count them in :class:`ReadStats`;
the line parser raises :class:`MalformedRecordError`. Lines with more fields
than the header are skipped by the table parser. Malformed data never reaches
the coordinate transforms.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, List, Sequence

import numpy as np
import pandas as pd

from kcdc_skymaps.sky_core.model import EventRecord, RecordColumns

__all__ = [
    "MalformedRecordError",
    "ReadStats",
    "read_header",
    "iter_record_frames",
    "parse_record_line",
]


class MalformedRecordError(ValueError):
    """Raised when a record line cannot be parsed into numeric fields."""


@dataclass
class ReadStats:
    # Data lines read (valid or not).
    lines: int = 0
    # Lines dropped because a required field was not numeric.
    malformed: int = 0


def _required(columns: RecordColumns) -> List[str]:
    return [columns.energy, columns.zenith, columns.azimuth, columns.date, columns.time]


def read_header(path: str) -> List[str]:
    """Return the column names of a KCDC table."""
    with open(path, "r", encoding="utf-8") as f:
        line = f.readline()
    names = line.split()
    if not names:
        raise ValueError(f"Empty header in '{path}'")
    return names


def _check_columns(names: Sequence[str], columns: RecordColumns, path: str) -> None:
    missing = [c for c in _required(columns) if c not in names]
    if missing:
        raise ValueError(
            f"Missing required columns {missing} in '{path}'. "
            f"Found columns: {list(names)}"
        )


def iter_record_frames(
    path: str,
    columns: RecordColumns = RecordColumns(),
    chunksize: int = 200_000,
    stats: ReadStats | None = None,
) -> Iterator[pd.DataFrame]:
    """
    Stream a KCDC table as DataFrames of at most ``chunksize`` rows.

    All original columns are kept. Required columns are coerced to numbers;
    rows where that fails are dropped and counted in ``stats.malformed``.
    Date and time columns are returned as int64.
    """
    names = read_header(path)
    _check_columns(names, columns, path)
    required = _required(columns)
    if stats is None:
        stats = ReadStats()

    reader = pd.read_csv(
        path,
        sep=r"\s+",
        skiprows=1,
        header=None,
        names=names,
        dtype=str,
        chunksize=chunksize,
        on_bad_lines="skip",
    )
    for chunk in reader:
        stats.lines += len(chunk)
        for name in chunk.columns:
            chunk[name] = pd.to_numeric(chunk[name], errors="coerce")
        ok = chunk[required].notna().all(axis=1).to_numpy()
        ok = ok & np.isfinite(chunk[required].to_numpy(dtype=float)).all(axis=1)
        stats.malformed += int(len(chunk) - np.count_nonzero(ok))
        frame = chunk.loc[ok].copy()
        frame[columns.date] = frame[columns.date].astype(np.int64)
        frame[columns.time] = frame[columns.time].astype(np.int64)
        if columns.nanoseconds in frame:
            frame[columns.nanoseconds] = frame[columns.nanoseconds].fillna(0)
        yield frame


def parse_record_line(
    line: str,
    header: Sequence[str],
    columns: RecordColumns = RecordColumns(),
) -> EventRecord:
    """Parse one whitespace-separated data line into an :class:`EventRecord`."""
    parts = line.split()
    if len(parts) < len(header):
        raise MalformedRecordError(
            f"Expected {len(header)} fields, got {len(parts)}: {line.strip()!r}"
        )
    row = dict(zip(header, parts))

    def field(name: str, conv):
        try:
            return conv(row[name])
        except KeyError:
            raise MalformedRecordError(f"Missing column '{name}'") from None
        except ValueError:
            raise MalformedRecordError(
                f"Non-numeric value {row[name]!r} in column '{name}'"
            ) from None

    def as_int(s: str) -> int:
        return int(float(s)) if "." in s else int(s)

    return EventRecord(
        energy=field(columns.energy, float),
        zenith_deg=field(columns.zenith, float),
        azimuth_deg=field(columns.azimuth, float),
        date=field(columns.date, as_int),
        time=field(columns.time, as_int),
        nanoseconds=field(columns.nanoseconds, as_int) if columns.nanoseconds in row else 0,
    )
