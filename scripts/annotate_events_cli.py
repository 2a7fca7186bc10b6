"""
annotate_events_cli.py
======================

Append sky coordinates to every record of a KCDC table.

The output repeats the input columns and adds

    RA  DEC  LON  LAT  JDAYS  DIST

(RA and LON signed in (-180, 180], degrees). With ``--max-distance`` only
records whose scaled offset from the reference position
(``selection.reference_ra_deg`` / ``selection.reference_dec_deg``) is at most
that value are written; 0 keeps every record.

Example
-------

    python scripts/annotate_events_cli.py data/example.data.txt \\
        data/example.out.txt --max-distance 6.0
"""

from __future__ import annotations

import argparse

from kcdc_skymaps.sky_core.config_loader import build_skymap_config, load_run_config
from kcdc_skymaps.sky_core.pipeline import annotate_frame
from kcdc_skymaps.sky_io.annotated import AnnotatedTableWriter
from kcdc_skymaps.sky_io.records import ReadStats, iter_record_frames, read_header
from kcdc_skymaps.sky_io.runlog import ProgressReporter, init_run_log, log_header


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="annotate_events_cli",
        description="Add RA, DEC, LON, LAT, JDAYS and DIST columns to a KCDC table.",
    )
    p.add_argument("input", help="KCDC event table.")
    p.add_argument("output", help="Annotated output table.")
    p.add_argument("--config", help="Configuration file (TOML).")
    p.add_argument(
        "--set",
        action="append",
        default=[],
        help="Override config key=value (repeatable).",
    )
    p.add_argument(
        "--max-distance",
        type=float,
        default=None,
        help="Keep records with DIST <= value (overrides selection.max_distance_deg).",
    )
    p.add_argument(
        "--log-dir",
        default="logs",
        help="Directory where the run log will be created.",
    )
    return p


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    sets = list(args.set)
    if args.max_distance is not None:
        sets.append(f"selection.max_distance_deg={float(args.max_distance)}")
    try:
        cfg, paths = load_run_config(args.config, sets)
        skycfg, cfg_warnings = build_skymap_config(cfg)
        header = read_header(args.input)
    except (FileNotFoundError, ValueError) as e:
        print(f"ERROR: {e}")
        return 2

    log_path, log = init_run_log(args.log_dir)
    log_header(log, "Annotation run", {**paths, "input": args.input, "output": args.output}, cfg)

    def say(msg: str) -> None:
        print(msg)
        log(msg)

    for w in cfg_warnings:
        say(f"[WARN] {w}")

    msg = f"Processing input ({args.input}) output ({args.output})"
    if skycfg.max_distance_deg > 0.0:
        msg += f" using max distance ({skycfg.max_distance_deg})"
    say(msg)

    stats = ReadStats()
    progress = ProgressReporter()
    try:
        with AnnotatedTableWriter(args.output, header) as writer:
            for frame in iter_record_frames(args.input, skycfg.columns, skycfg.chunksize, stats):
                writer.write_frame(annotate_frame(frame, skycfg))
                progress.advance(len(frame))
    except (OSError, ValueError) as e:
        print()
        say(f"ERROR: {e}")
        return 2
    print()

    say(f"[INFO] Records read: {stats.lines}, written: {writer.rows_written}")
    if stats.malformed:
        say(f"[WARN] {stats.malformed} malformed records skipped")
    say("Complete!")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
