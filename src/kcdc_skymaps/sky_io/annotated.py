"""
sky_io.annotated
================

Fixed-width writer for KCDC tables annotated with sky coordinates.

Each output line repeats the input columns and appends

    RA  DEC  LON  LAT  JDAYS  DIST

where RA and LON are signed degrees in (-180, 180], JDAYS is the Julian day
and DIST the scaled offset from the reference position (see
``kcdc_skymaps.sky_core.coordinates.scaled_offset_deg``).

Layout
------
- Every column is right-aligned in a 12 character field, JDAYS in a 20
  character field.
- Columns that hold integers in the first frame written (dates, times, counts)
  are printed without decimals in every later frame too; all other values use
  four decimals, JDAYS six.

The writer streams frames into ``path + ".tmp"`` and moves it into place on
close, so an interrupted run never leaves a truncated table behind.
"""

from __future__ import annotations

import os
from typing import List, Optional, Sequence

import numpy as np
import pandas as pd

__all__ = ["ADDED_COLUMNS", "AnnotatedTableWriter"]

ADDED_COLUMNS = ("RA", "DEC", "LON", "LAT", "JDAYS", "DIST")
_WIDTH = 12
_JD_WIDTH = 20


class AnnotatedTableWriter:
    """Stream annotated frames to a fixed-width text table."""

    def __init__(self, path: str, input_columns: Sequence[str]) -> None:
        self.path = path
        self.input_columns = list(input_columns)
        self.columns = self.input_columns + [
            c for c in ADDED_COLUMNS if c not in self.input_columns
        ]
        self.rows_written = 0
        self._formats: Optional[List[str]] = None
        os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
        self._tmp = path + ".tmp"
        self._fh = open(self._tmp, "w", encoding="utf-8")
        self._fh.write(self._header_line() + "\n")

    def _header_line(self) -> str:
        cells = []
        for name in self.columns:
            width = _JD_WIDTH if name == "JDAYS" else _WIDTH
            cells.append(f"{name:>{width}}")
        return "".join(cells)

    def _resolve_formats(self, df: pd.DataFrame) -> List[str]:
        fmts = []
        for name in self.columns:
            if name == "JDAYS":
                fmts.append(f"{{:{_JD_WIDTH}.6f}}")
            elif name not in ADDED_COLUMNS and np.issubdtype(df[name].dtype, np.integer):
                fmts.append(f"{{:{_WIDTH}.0f}}")
            else:
                fmts.append(f"{{:{_WIDTH}.4f}}")
        return fmts

    def write_frame(self, df: pd.DataFrame) -> int:
        """Append the rows of an annotated frame; return the number written."""
        missing = [c for c in self.columns if c not in df.columns]
        if missing:
            raise ValueError(f"Frame lacks columns {missing}")
        if self._formats is None:
            self._formats = self._resolve_formats(df)
        values = df[self.columns].to_numpy(dtype=float)
        for row in values:
            line = "".join(fmt.format(v) for fmt, v in zip(self._formats, row))
            self._fh.write(line + "\n")
        self.rows_written += len(values)
        return len(values)

    def close(self) -> None:
        if self._fh.closed:
            return
        self._fh.close()
        os.replace(self._tmp, self.path)

    def __enter__(self) -> "AnnotatedTableWriter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            self.close()
        else:
            self._fh.close()
            os.remove(self._tmp)
