from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest

from kcdc_skymaps.sky_core.model import EventRecord, SkyMapConfig

# ---------- Shared data ----------

KCDC_HEADER = (
    "         E          YC          XC          ZE          AZ          NE"
    "         NMU     ESUMHAD        NHAD           T           P          GT"
    "          MT         YMD         HMS           R          EV         AGE"
)


def kcdc_line(e, ze, az, ymd, hms, ev=10007):
    """Format one KCDC data line with fixed filler values."""
    return (
        f"{e:10.4f}{43.74:12.4f}{79.5148:12.4f}{ze:12.4f}{az:12.4f}"
        f"{3.9608:12.4f}{3.8254:12.4f}{-1.0:12.4f}{-1:12d}{20.28:12.4f}"
        f"{1001.3107:12.4f}{899391407:12d}{756894400:12d}{ymd:12d}{hms:12d}"
        f"{1000:12d}{ev:12d}{1.1117:12.4f}"
    )


@pytest.fixture
def write_kcdc(tmp_path: Path):
    """Return a helper that writes a KCDC table and returns its path."""

    def _write(rows, name="events.txt", extra_lines=()):
        lines = [KCDC_HEADER] + [kcdc_line(*r) for r in rows] + list(extra_lines)
        p = tmp_path / name
        p.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return p

    return _write


@pytest.fixture
def reference_record() -> EventRecord:
    """The first record of the public KCDC example table."""
    return EventRecord(
        energy=15.0428,
        zenith_deg=44.2007,
        azimuth_deg=7.4743,
        date=19980702,
        time=145647,
    )


@pytest.fixture
def small_config() -> SkyMapConfig:
    """Reference site with a tiny batch so tests exercise scrambling."""
    return SkyMapConfig(batch_capacity=10, scramble_factor=4, seed=7, chunk_events=3)


class ConstantRandom:
    """Random source stub that always draws the same batch index."""

    def __init__(self, index: int = 0):
        self.index = index
        self.calls = []

    def integers(self, low, high, size=None):
        self.calls.append((low, high, size))
        return np.full(size, self.index, dtype=np.int64)


@pytest.fixture
def constant_random():
    return ConstantRandom


@pytest.fixture
def kcdc_columns():
    return KCDC_HEADER.split()


@pytest.fixture
def make_line():
    return kcdc_line
