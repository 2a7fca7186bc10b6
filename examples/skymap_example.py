"""
skymap_example.py
=================

Purpose
-------
Minimal example showing how to use the `kcdc_skymaps` library without the
command-line drivers: transform a few KCDC records to sky coordinates, build
the real and background sky maps, and write them as flat matrices.

Requirements
------------
- Install the project (``pip install -e .``) or put ``src/`` on PYTHONPATH.
- Run from the repository root so ``data/example.data.txt`` is found.

What this example does
----------------------
1) Reads the example KCDC table frame by frame.
2) Feeds every frame to a `SkyMapPipeline` with a small scrambling batch.
3) Prints the sky position of the first record.
4) Writes ``output/example_real.txt`` and ``output/example_fake.txt``.

Usage
-----

    python examples/skymap_example.py
"""

from kcdc_skymaps.sky_core.model import EventRecord, SkyMapConfig
from kcdc_skymaps.sky_core.pipeline import SkyMapPipeline
from kcdc_skymaps.sky_io.matrix import write_skymap_matrix
from kcdc_skymaps.sky_io.records import ReadStats, iter_record_frames

# A batch of 4 events keeps the example small; real runs use 100 000.
cfg = SkyMapConfig(batch_capacity=4, scramble_factor=10, seed=1)
pipe = SkyMapPipeline(cfg)

stats = ReadStats()
for frame in iter_record_frames("data/example.data.txt", cfg.columns, stats=stats):
    pipe.feed_frame(frame)

# Single records can be fed as well; this one is the first line of the table.
probe = SkyMapPipeline(cfg)
ev = probe.feed(
    EventRecord(energy=15.0428, zenith_deg=44.2007, azimuth_deg=7.4743, date=19980702, time=145647)
)
print(f"JD {ev.julian_day:.6f}")
print(f"RA {ev.equatorial.signed_ra_deg:.4f}  DEC {ev.equatorial.dec_deg:.4f}")
print(f"LON {ev.galactic.signed_lon_deg:.4f}  LAT {ev.galactic.lat_deg:.4f}")

summary = pipe.finish()
print(f"Records read: {stats.lines}, accepted: {summary.accepted}")
for w in summary.warnings():
    print(f"[WARN] {w}")

write_skymap_matrix("output/example_real.txt", pipe.export_real(), {"map": "real"})
write_skymap_matrix(
    "output/example_fake.txt",
    pipe.export_fake(),
    {"map": "fake", "scramble_factor": cfg.scramble_factor},
)
print("Wrote output/example_real.txt and output/example_fake.txt")
