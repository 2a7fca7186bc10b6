"""
sky_io.runlog
=============

Run log and progress reporting shared by the command-line drivers.

Messages go to stdout and are appended to ``<log_dir>/run_<UTC stamp>.log``.
Record progress is shown as a dot every 50 000 records and a running count
every 1 000 000 records.
"""

from __future__ import annotations

import os
import sys
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Tuple

from kcdc_skymaps.sky_core.config_loader import dump_effective_config

__all__ = ["init_run_log", "log_header", "ProgressReporter"]

LogFn = Callable[[str], None]


def init_run_log(log_dir: str) -> Tuple[str, LogFn]:
    os.makedirs(log_dir, exist_ok=True)
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S_%fZ")
    path = os.path.join(log_dir, f"run_{stamp}.log")

    def _log(msg: str) -> None:
        with open(path, "a", encoding="utf-8") as f:
            f.write(msg.rstrip() + "\n")

    return path, _log


def log_header(log: LogFn, title: str, paths: Dict[str, Any], cfg: Dict[str, Any]) -> None:
    now = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
    log(f"[{now}] {title} started")
    for key, value in paths.items():
        if value:
            log(f"{key}: {value}")
    log("")
    log("----- Effective configuration -----")
    log(dump_effective_config(cfg).rstrip())
    log("-----------------------------------")
    log("")


class ProgressReporter:
    """Print progress marks as the record count crosses fixed steps."""

    def __init__(self, dot_every: int = 50_000, count_every: int = 1_000_000, stream=None):
        self.dot_every = dot_every
        self.count_every = count_every
        self.stream = stream if stream is not None else sys.stdout
        self.records = 0

    def advance(self, n: int) -> None:
        before = self.records
        self.records += n
        for mark in range(before // self.dot_every + 1, self.records // self.dot_every + 1):
            value = mark * self.dot_every
            if value % self.count_every == 0:
                self.stream.write(f" {value} records processed\n")
            else:
                self.stream.write(".")
        self.stream.flush()
