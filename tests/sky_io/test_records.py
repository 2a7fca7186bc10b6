from __future__ import annotations

import numpy as np
import pytest

from kcdc_skymaps.sky_core.model import RecordColumns
from kcdc_skymaps.sky_io.records import (
    MalformedRecordError,
    ReadStats,
    iter_record_frames,
    parse_record_line,
    read_header,
)

ROWS = [
    (15.0428, 44.2007, 7.4743, 19980702, 145647),
    (14.8123, 12.5012, 203.1187, 19980702, 145713),
    (16.2211, 28.0044, 310.5521, 19980702, 145822),
]


@pytest.fixture
def bad_line(make_line):
    def _bad(index: int, value: str) -> str:
        parts = make_line(15.0, 10.0, 10.0, 19980702, 150000).split()
        parts[index] = value
        return " ".join(parts)

    return _bad


def test_read_header(write_kcdc):
    p = write_kcdc(ROWS)
    names = read_header(str(p))
    assert names[:5] == ["E", "YC", "XC", "ZE", "AZ"]
    assert len(names) == 18


def test_read_header_empty_file(tmp_path):
    p = tmp_path / "empty.txt"
    p.write_text("", encoding="utf-8")
    with pytest.raises(ValueError):
        read_header(str(p))


def test_frames_keep_all_columns_and_types(write_kcdc, kcdc_columns):
    p = write_kcdc(ROWS)
    stats = ReadStats()
    frames = list(iter_record_frames(str(p), stats=stats))
    assert len(frames) == 1
    df = frames[0]
    assert list(df.columns) == kcdc_columns
    assert df["YMD"].dtype == np.int64
    assert df["HMS"].tolist() == [145647, 145713, 145822]
    assert df["ZE"].tolist() == pytest.approx([44.2007, 12.5012, 28.0044])
    assert stats.lines == 3
    assert stats.malformed == 0


def test_frames_respect_chunksize(write_kcdc):
    rows = [(15.0, 10.0 + i, 20.0, 19980702, 120000 + i) for i in range(7)]
    p = write_kcdc(rows)
    sizes = [len(f) for f in iter_record_frames(str(p), chunksize=3)]
    assert sizes == [3, 3, 1]


def test_malformed_rows_are_dropped_and_counted(write_kcdc, bad_line):
    extra = [
        bad_line(3, "abc"),  # zenith not numeric
        bad_line(13, "nan"),  # date not finite
        "15.0 44.0 79.0",  # truncated record
    ]
    p = write_kcdc(ROWS, extra_lines=extra)
    stats = ReadStats()
    df = next(iter_record_frames(str(p), stats=stats))
    assert len(df) == 3
    assert stats.lines == 6
    assert stats.malformed == 3


def test_lines_with_extra_fields_are_skipped(write_kcdc, make_line):
    p = write_kcdc(ROWS, extra_lines=[make_line(15.0, 10.0, 10.0, 19980702, 150000) + " 99"])
    df = next(iter_record_frames(str(p)))
    assert len(df) == 3


def test_missing_required_column(tmp_path):
    p = tmp_path / "bad.txt"
    p.write_text("E ZE AZ YMD\n15.0 10.0 20.0 19980702\n", encoding="utf-8")
    with pytest.raises(ValueError, match="HMS"):
        list(iter_record_frames(str(p)))


def test_custom_column_names(tmp_path):
    p = tmp_path / "custom.txt"
    p.write_text(
        "LGE THETA PHI DATE TIME NS\n"
        "15.0428 44.2007 7.4743 19980702 145647 250000000\n",
        encoding="utf-8",
    )
    cols = RecordColumns(
        energy="LGE", zenith="THETA", azimuth="PHI", date="DATE", time="TIME", nanoseconds="NS"
    )
    df = next(iter_record_frames(str(p), columns=cols))
    assert df["NS"].tolist() == [250000000]
    assert df["TIME"].dtype == np.int64


def test_parse_record_line(kcdc_columns, make_line):
    rec = parse_record_line(make_line(*ROWS[0]), kcdc_columns)
    assert rec.energy == pytest.approx(15.0428)
    assert rec.zenith_deg == pytest.approx(44.2007)
    assert rec.azimuth_deg == pytest.approx(7.4743)
    assert rec.date == 19980702
    assert rec.time == 145647
    assert rec.nanoseconds == 0


def test_parse_record_line_reads_nanoseconds():
    header = ["E", "ZE", "AZ", "YMD", "HMS", "MMN"]
    rec = parse_record_line("15.0 10.0 20.0 19980702 145647 500", header)
    assert rec.nanoseconds == 500


def test_parse_record_line_truncated(kcdc_columns):
    with pytest.raises(MalformedRecordError):
        parse_record_line("15.0 44.0 79.0", kcdc_columns)


@pytest.mark.parametrize("index,value", [(3, "abc"), (14, "12:00:00")])
def test_parse_record_line_non_numeric(kcdc_columns, bad_line, index, value):
    with pytest.raises(MalformedRecordError):
        parse_record_line(bad_line(index, value), kcdc_columns)


def test_malformed_record_error_is_value_error():
    assert issubclass(MalformedRecordError, ValueError)
