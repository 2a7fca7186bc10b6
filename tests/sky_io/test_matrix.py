from __future__ import annotations

import numpy as np
import pytest

from kcdc_skymaps.sky_io.matrix import (
    read_matrix_metadata,
    read_skymap_matrix,
    write_skymap_matrix,
)


def test_integer_matrix_layout(tmp_path):
    m = np.arange(12, dtype=np.int64).reshape(3, 4)
    p = tmp_path / "out" / "real.txt"
    write_skymap_matrix(str(p), m, {"map": "real", "events": 66})

    lines = p.read_text(encoding="utf-8").splitlines()
    data = [ln for ln in lines if not ln.startswith("#")]
    assert data == ["0 1 2 3", "4 5 6 7", "8 9 10 11"]
    assert np.array_equal(read_skymap_matrix(str(p)), m)
    assert not (tmp_path / "out" / "real.txt.tmp").exists()


def test_metadata_block(tmp_path):
    p = tmp_path / "fake.txt"
    write_skymap_matrix(str(p), np.zeros((2, 4), dtype=np.int64), {"map": "fake", "seed": 7})
    meta = read_matrix_metadata(str(p))
    assert meta["map"] == "fake"
    assert meta["seed"] == "7"
    assert meta["shape"] == "2 x 4"


def test_fractional_matrix_uses_six_decimals(tmp_path):
    m = np.array([[0.0, 0.25], [1.5, 2.0]])
    p = tmp_path / "fake.txt"
    write_skymap_matrix(str(p), m)
    data = [ln for ln in p.read_text(encoding="utf-8").splitlines() if not ln.startswith("#")]
    assert data[0] == "0.000000 0.250000"
    back = read_skymap_matrix(str(p))
    assert back.dtype == float
    assert np.allclose(back, m)


def test_full_size_sky_map(tmp_path):
    m = np.zeros((360, 720), dtype=np.int64)
    m[12, 513] = 3
    p = tmp_path / "real.txt"
    write_skymap_matrix(str(p), m)
    back = read_skymap_matrix(str(p))
    assert back.shape == (360, 720)
    assert back[12, 513] == 3


def test_overwrite_replaces_content(tmp_path):
    p = tmp_path / "real.txt"
    write_skymap_matrix(str(p), np.ones((2, 2), dtype=np.int64))
    write_skymap_matrix(str(p), np.full((2, 2), 5, dtype=np.int64))
    assert read_skymap_matrix(str(p)).tolist() == [[5, 5], [5, 5]]


def test_rejects_non_2d(tmp_path):
    with pytest.raises(ValueError):
        write_skymap_matrix(str(tmp_path / "x.txt"), np.zeros(5))
