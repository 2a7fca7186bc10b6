from __future__ import annotations

import numpy as np
import pytest

from kcdc_skymaps.sky_core.background import BackgroundEstimator
from kcdc_skymaps.sky_core.coordinates import horizontal_to_equatorial_jd
from kcdc_skymaps.sky_core.histogram import SkyHistogram
from kcdc_skymaps.sky_core.timescale import julian_day


def _events(n, seed=0):
    """n events with varied directions and times over one night."""
    rng = np.random.default_rng(seed)
    zen = rng.uniform(0.0, 40.0, n)
    az = rng.uniform(0.0, 360.0, n)
    jd = julian_day(19980702, 200000) + rng.uniform(0.0, 0.4, n)
    ra, dec = horizontal_to_equatorial_jd(zen, az, jd)
    return zen, az, jd, ra, dec


def _expected_bins(ra, dec):
    h = SkyHistogram()
    h.increment_many(dec, ra)
    return h.counts


def test_identical_events_fill_one_fake_bin():
    capacity, k = 50, 20
    est = BackgroundEstimator(capacity=capacity, scramble_factor=k, seed=1)
    jd = julian_day(19980702, 145647)
    ra, dec = horizontal_to_equatorial_jd(44.2007, 7.4743, jd)
    for _ in range(capacity):
        est.add(44.2007, 7.4743, jd, ra, dec)

    assert est.batches_processed == 1
    assert est.pending == 0
    raw = est.fake.export()
    assert np.count_nonzero(raw) == 1
    assert raw.max() == capacity * k
    assert est.synthetic_events == capacity * k

    fake = est.export_fake("exact")
    assert fake.max() == pytest.approx(capacity)
    real = est.export_real()
    assert np.array_equal(np.nonzero(real), np.nonzero(fake))
    assert real.max() == capacity


def test_injected_random_source_controls_time_draws(constant_random):
    zen, az, jd, ra, dec = _events(8)
    rng = constant_random(index=3)
    est = BackgroundEstimator(capacity=8, scramble_factor=5, rng=rng, chunk_events=3)
    est.add_many(zen, az, jd, ra, dec)

    # Every synthetic event borrowed the time of event 3.
    ra3, dec3 = horizontal_to_equatorial_jd(zen, az, np.full(8, jd[3]))
    assert np.array_equal(est.fake.counts, 5 * _expected_bins(ra3, dec3))
    # Chunked draws: 3 + 3 + 2 events, K columns each.
    assert [c[2] for c in rng.calls] == [(3, 5), (3, 5), (2, 5)]
    assert all(c[:2] == (0, 8) for c in rng.calls)


def test_real_map_counts_each_event_once():
    zen, az, jd, ra, dec = _events(37)
    est = BackgroundEstimator(capacity=10, scramble_factor=3, seed=4)
    est.add_many(zen, az, jd, ra, dec)
    assert est.real.total == 37
    assert np.array_equal(est.real.counts, _expected_bins(ra, dec))


def test_partial_batch_is_flushed_by_default():
    zen, az, jd, ra, dec = _events(25)
    est = BackgroundEstimator(capacity=10, scramble_factor=4, seed=2)
    est.add_many(zen, az, jd, ra, dec)
    assert est.batches_processed == 2
    assert est.pending == 5

    est.finish()
    assert est.batches_processed == 3
    assert est.dropped_events == 0
    assert est.synthetic_events == 25 * 4
    assert est.fake.total + est.fake.anomalies == 25 * 4


def test_partial_batch_can_be_dropped_and_is_reported():
    zen, az, jd, ra, dec = _events(25)
    est = BackgroundEstimator(capacity=10, scramble_factor=4, seed=2)
    est.add_many(zen, az, jd, ra, dec)
    est.finish(flush=False)
    assert est.batches_processed == 2
    assert est.dropped_events == 5
    assert est.synthetic_events == 20 * 4
    # Real map still holds every event.
    assert est.real.total == 25


def test_add_after_finish_raises():
    est = BackgroundEstimator(capacity=5)
    est.finish()
    with pytest.raises(RuntimeError):
        est.add(10.0, 10.0, 2451545.0, 10.0, 10.0)


def test_seed_makes_runs_reproducible():
    data = _events(60, seed=9)
    maps = []
    for seed in (11, 11, 12):
        est = BackgroundEstimator(capacity=20, scramble_factor=6, seed=seed)
        est.add_many(*data)
        est.finish()
        maps.append(est.fake.counts.copy())
    assert np.array_equal(maps[0], maps[1])
    assert not np.array_equal(maps[0], maps[2])


def test_scrambling_preserves_declination_profile_for_fixed_direction():
    # A single direction seen at many times traces one declination band.
    n = 40
    jd = julian_day(19980702, 0) + np.linspace(0.0, 0.9, n)
    zen = np.full(n, 20.0)
    az = np.full(n, 90.0)
    ra, dec = horizontal_to_equatorial_jd(zen, az, jd)
    est = BackgroundEstimator(capacity=n, scramble_factor=10, seed=5)
    est.add_many(zen, az, jd, ra, dec)
    rows = np.nonzero(est.fake.counts.sum(axis=1))[0]
    assert set(rows) == set(np.nonzero(est.real.counts.sum(axis=1))[0])


@pytest.mark.parametrize(
    "rounding,expected",
    [("exact", [0.0, 0.25, 0.5, 0.75, 1.0]), ("floor", [0, 0, 0, 0, 1]), ("round", [0, 0, 1, 1, 1])],
)
def test_export_fake_rounding(rounding, expected):
    est = BackgroundEstimator(capacity=5, scramble_factor=4, bin_width_deg=45.0)
    est.fake.counts[0, :5] = [0, 1, 2, 3, 4]
    out = est.export_fake(rounding)
    assert np.allclose(out[-1, :5], expected)


def test_export_fake_rejects_unknown_rounding():
    est = BackgroundEstimator(capacity=5)
    with pytest.raises(ValueError):
        est.export_fake("ceil")


@pytest.mark.parametrize("drop", ["zenith", "azimuth", "jd", "ra", "dec"])
def test_add_many_rejects_mismatched_lengths(drop):
    data = dict(zip(("zenith", "azimuth", "jd", "ra", "dec"), _events(4)))
    data[drop] = data[drop][:3]
    est = BackgroundEstimator(capacity=10)
    with pytest.raises(ValueError, match="same length"):
        est.add_many(**data)
    # nothing was binned or buffered
    assert est.real.total == 0
    assert est.pending == 0


@pytest.mark.parametrize("kwargs", [{"capacity": 0}, {"scramble_factor": 0}, {"chunk_events": 0}])
def test_invalid_parameters(kwargs):
    with pytest.raises(ValueError):
        BackgroundEstimator(**kwargs)
