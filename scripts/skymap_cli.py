"""
skymap_cli.py
=============

Build the real and time-scrambled background sky maps from KCDC tables.

Every record inside the energy window is transformed to equatorial
coordinates and binned into the real map; batches of accepted events are
time-scrambled into the fake map (see
``kcdc_skymaps.sky_core.background``). At the end both maps are written as
flat numeric matrices, the fake map already divided by the scramble factor.

Examples
--------
Reference configuration, one input table:

    python scripts/skymap_cli.py data/example.data.txt

Custom configuration with overrides and a PNG preview:

    python scripts/skymap_cli.py data/*.txt --config config/kascade.toml \\
        --set selection.energy_min=15.0 --set background.scramble_factor=10 \\
        --plot

Outputs
-------
``<out_dir>/<real_name>`` and ``<out_dir>/<fake_name>`` (``output/`` by
default), optionally ``<out_dir>/skymaps.png``, and a run log in ``logs/``.
"""

from __future__ import annotations

import argparse
import os
from datetime import datetime, timezone

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt  # noqa: E402
import numpy as np  # noqa: E402

from kcdc_skymaps.sky_core.config_loader import (  # noqa: E402
    build_skymap_config,
    dump_effective_config,
    load_run_config,
)
from kcdc_skymaps.sky_core.pipeline import SkyMapPipeline  # noqa: E402
from kcdc_skymaps.sky_io.matrix import write_skymap_matrix  # noqa: E402
from kcdc_skymaps.sky_io.records import ReadStats, iter_record_frames  # noqa: E402
from kcdc_skymaps.sky_io.runlog import (  # noqa: E402
    ProgressReporter,
    init_run_log,
    log_header,
)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="skymap_cli",
        description="Build real and time-scrambled background sky maps.",
    )
    p.add_argument("inputs", nargs="*", help="KCDC event tables (whitespace separated).")
    p.add_argument("--config", help="Configuration file (TOML).")
    p.add_argument(
        "--set",
        action="append",
        default=[],
        help="Override config key=value, e.g. background.seed=7 (repeatable).",
    )
    p.add_argument(
        "--dump-effective-config",
        action="store_true",
        help="Print final merged config and exit.",
    )
    p.add_argument("--out-dir", help="Output directory (overrides output.out_dir).")
    p.add_argument(
        "--log-dir",
        default="logs",
        help="Directory where the run log will be created.",
    )
    p.add_argument(
        "--plot",
        action="store_true",
        help="Also save a PNG with the real, background and excess maps.",
    )
    return p


def _plot_skymaps(path: str, real: np.ndarray, fake: np.ndarray, title: str) -> None:
    extent = (0.0, 360.0, -90.0, 90.0)
    excess = real - fake
    fig, axes = plt.subplots(3, 1, figsize=(8, 11))
    panels = (
        ("Observed events", real, "viridis"),
        ("Time-scrambled background", fake, "viridis"),
        ("Excess (observed - background)", excess, "coolwarm"),
    )
    for ax, (label, data, cmap) in zip(axes, panels):
        if cmap == "coolwarm":
            lim = float(np.max(np.abs(data))) or 1.0
            im = ax.imshow(data, extent=extent, aspect="auto", cmap=cmap, vmin=-lim, vmax=lim)
        else:
            im = ax.imshow(data, extent=extent, aspect="auto", cmap=cmap)
        ax.set_title(label, fontsize=9)
        ax.set_xlabel("Right ascension [deg]")
        ax.set_ylabel("Declination [deg]")
        fig.colorbar(im, ax=ax, fraction=0.046, pad=0.02)
    fig.suptitle(title, fontsize=8)
    fig.tight_layout()
    fig.savefig(path, dpi=150, bbox_inches="tight")
    plt.close(fig)


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        cfg, paths = load_run_config(args.config, args.set)
        skycfg, cfg_warnings = build_skymap_config(cfg)
    except (FileNotFoundError, ValueError) as e:
        print(f"ERROR: {e}")
        return 2

    if args.dump_effective_config:
        print(dump_effective_config(cfg).rstrip())
        return 0

    if not args.inputs:
        parser.error("at least one input table is required")

    log_path, log = init_run_log(args.log_dir)
    log_header(log, "Sky map run", paths, cfg)
    print(f"Log file: {log_path}")

    def say(msg: str) -> None:
        print(msg)
        log(msg)

    for w in cfg_warnings:
        say(f"[WARN] {w}")

    out_cfg = cfg.get("output", {})
    out_dir = args.out_dir or out_cfg.get("out_dir", "output")
    real_path = os.path.join(out_dir, out_cfg.get("real_name", "skymap_real.txt"))
    fake_path = os.path.join(out_dir, out_cfg.get("fake_name", "skymap_fake.txt"))

    pipe = SkyMapPipeline(skycfg)
    stats = ReadStats()
    progress = ProgressReporter()
    for path in args.inputs:
        say(f"[INFO] Processing input ({path})")
        try:
            for frame in iter_record_frames(path, skycfg.columns, skycfg.chunksize, stats):
                pipe.feed_frame(frame)
                progress.advance(len(frame))
        except (FileNotFoundError, ValueError) as e:
            print()
            say(f"ERROR: {e}")
            return 2
    print()

    summary = pipe.finish()
    say(f"[INFO] Records read: {stats.lines} (malformed: {stats.malformed})")
    say(
        f"[INFO] Accepted: {summary.accepted}, rejected by energy: "
        f"{summary.rejected_energy}"
    )
    say(
        f"[INFO] Batches scrambled: {summary.batches_processed}, synthetic events: "
        f"{summary.synthetic_events}"
    )
    if stats.malformed:
        say(f"[WARN] {stats.malformed} malformed records skipped")
    for w in summary.warnings():
        say(f"[WARN] {w}")

    created = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
    common = {
        "site": skycfg.site.name,
        "bin_width_deg": skycfg.bin_width_deg,
        "created_at": created,
    }
    real = pipe.export_real()
    fake = pipe.export_fake()
    write_skymap_matrix(real_path, real, {"map": "real", **common, "events": summary.accepted})
    write_skymap_matrix(
        fake_path,
        fake,
        {
            "map": "fake",
            **common,
            "scramble_factor": skycfg.scramble_factor,
            "rounding": skycfg.fake_rounding,
            "seed": skycfg.seed,
        },
    )
    say(f"[INFO] Real map: {real_path}")
    say(f"[INFO] Fake map: {fake_path}")

    if args.plot:
        png = os.path.join(out_dir, "skymaps.png")
        _plot_skymaps(
            png,
            real.astype(float),
            np.asarray(fake, dtype=float),
            f"{skycfg.site.name}: {summary.accepted} events, K={skycfg.scramble_factor}",
        )
        say(f"[INFO] Saved plot: {png}")

    say("Complete!")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
