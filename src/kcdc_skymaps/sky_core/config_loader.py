from __future__ import annotations

import math
import os
from dataclasses import asdict, fields
from typing import Any, Dict, Iterable, List, Optional, Tuple

import tomli_w

try:
    import tomllib as toml  # py311+
except ImportError:
    import tomli as toml  # older interpreters

from .background import ROUNDING_POLICIES
from .model import KASCADE_SITE, RecordColumns, Site, SkyMapConfig

# TOML table -> SkyMapConfig field names accepted in that table.
_SECTIONS: Dict[str, Tuple[str, ...]] = {
    "histogram": ("bin_width_deg",),
    "background": (
        "batch_capacity",
        "scramble_factor",
        "seed",
        "flush_partial_batch",
        "fake_rounding",
        "chunk_events",
    ),
    "selection": (
        "energy_min",
        "energy_max",
        "max_distance_deg",
        "reference_ra_deg",
        "reference_dec_deg",
    ),
}
_INPUT_COLUMN_KEYS = {f"{f.name}_column": f.name for f in fields(RecordColumns)}
_KNOWN_TABLES = set(_SECTIONS) | {"site", "input", "output"}


def load_toml(path: str) -> Dict[str, Any]:
    with open(path, "rb") as f:
        return toml.load(f)


def merge_dicts(a: Dict[str, Any], b: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(a)
    for k, v in b.items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = merge_dicts(out[k], v)
        else:
            out[k] = v
    return out


def apply_sets(cfg: Dict[str, Any], sets: Iterable[str]) -> Dict[str, Any]:
    for item in sets:
        if "=" not in item:
            raise ValueError(f"--set requires key=value, got: {item}")
        key, val = item.split("=", 1)
        path = key.strip().split(".")
        cursor = cfg
        for p in path[:-1]:
            if p not in cursor or not isinstance(cursor[p], dict):
                cursor[p] = {}
            cursor = cursor[p]
        cursor[path[-1]] = parse_scalar(val.strip())
    return cfg


def parse_scalar(s: str):
    sl = s.lower()
    if sl in ("true", "false"):
        return sl == "true"
    try:
        if "." in s or "e" in sl:
            return float(s)
        return int(s)
    except ValueError:
        return s


def default_config_dict() -> Dict[str, Any]:
    """Reference configuration as a nested dict (the layout of the TOML file)."""
    cfg = SkyMapConfig()
    return {
        "site": asdict(cfg.site),
        "histogram": {"bin_width_deg": cfg.bin_width_deg},
        "background": {k: getattr(cfg, k) for k in _SECTIONS["background"]},
        "selection": {
            k: getattr(cfg, k)
            for k in _SECTIONS["selection"]
            if getattr(cfg, k) is not None
        },
        "input": {
            **{key: getattr(cfg.columns, name) for key, name in _INPUT_COLUMN_KEYS.items()},
            "chunksize": cfg.chunksize,
        },
        "output": {
            "out_dir": "output",
            "real_name": "skymap_real.txt",
            "fake_name": "skymap_fake.txt",
        },
    }


def load_run_config(
    config_path: Optional[str],
    set_overrides: Iterable[str] = (),
) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """Load config by layering the reference defaults, the file, and --set.
    Returns (effective_cfg, summary_paths).
    summary_paths contains the key: config_path.
    """
    summary: Dict[str, Any] = {"config_path": None}
    cfg = default_config_dict()

    if config_path:
        if not os.path.exists(config_path):
            raise FileNotFoundError(f"Config file not found: {config_path}")
        cfg = merge_dicts(cfg, load_toml(config_path))
        summary["config_path"] = os.path.abspath(config_path)

    # Apply --set overrides last
    cfg = apply_sets(cfg, set_overrides)
    return cfg, summary


def _number(section: str, key: str, value: Any, *, integer: bool = False):
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"[{section}] {key} must be a number, got {value!r}")
    if integer:
        if int(value) != value:
            raise ValueError(f"[{section}] {key} must be an integer, got {value!r}")
        return int(value)
    return float(value)


def build_skymap_config(cfg: Dict[str, Any]) -> Tuple[SkyMapConfig, List[str]]:
    """
    Turn an effective config dict into a validated ``SkyMapConfig``.

    Returns the config and a list of warnings for unknown keys. Invalid values
    raise ``ValueError`` naming the table and key.
    """
    warnings: List[str] = []
    for table in cfg:
        if table not in _KNOWN_TABLES:
            warnings.append(f"Unknown config table ignored: [{table}]")

    site_cfg = dict(cfg.get("site", {}))
    base = asdict(KASCADE_SITE)
    for k in site_cfg:
        if k not in base:
            warnings.append(f"Unknown config key ignored: site.{k}")
    site = Site(
        name=str(site_cfg.get("name", base["name"])),
        latitude_deg=_number("site", "latitude_deg", site_cfg.get("latitude_deg", base["latitude_deg"])),
        longitude_deg=_number("site", "longitude_deg", site_cfg.get("longitude_deg", base["longitude_deg"])),
        elevation_m=_number("site", "elevation_m", site_cfg.get("elevation_m", base["elevation_m"])),
    )
    if not -90.0 <= site.latitude_deg <= 90.0:
        raise ValueError(f"[site] latitude_deg out of range: {site.latitude_deg}")

    kwargs: Dict[str, Any] = {"site": site}
    integer_keys = {"batch_capacity", "scramble_factor", "seed", "chunk_events"}
    for section, keys in _SECTIONS.items():
        table = cfg.get(section, {})
        for k, v in table.items():
            if k not in keys:
                warnings.append(f"Unknown config key ignored: {section}.{k}")
                continue
            if k == "flush_partial_batch":
                if not isinstance(v, bool):
                    raise ValueError(f"[{section}] {k} must be true or false, got {v!r}")
                kwargs[k] = v
            elif k == "fake_rounding":
                kwargs[k] = str(v)
            else:
                kwargs[k] = _number(section, k, v, integer=k in integer_keys)

    inp = cfg.get("input", {})
    col_kwargs = {}
    for k, v in inp.items():
        if k in _INPUT_COLUMN_KEYS:
            col_kwargs[_INPUT_COLUMN_KEYS[k]] = str(v)
        elif k == "chunksize":
            kwargs["chunksize"] = _number("input", k, v, integer=True)
        else:
            warnings.append(f"Unknown config key ignored: input.{k}")
    kwargs["columns"] = RecordColumns(**col_kwargs)

    out = SkyMapConfig(**kwargs)
    for k in ("batch_capacity", "scramble_factor", "chunk_events", "chunksize"):
        if getattr(out, k) < 1:
            raise ValueError(f"{k} must be >= 1, got {getattr(out, k)}")
    if out.seed < 0:
        raise ValueError(f"[background] seed must be >= 0, got {out.seed}")
    if out.fake_rounding not in ROUNDING_POLICIES:
        raise ValueError(
            f"[background] fake_rounding must be one of {ROUNDING_POLICIES}, "
            f"got {out.fake_rounding!r}"
        )
    width = out.bin_width_deg
    if not (width > 0.0) or not math.isfinite(width):
        raise ValueError(f"[histogram] bin_width_deg must be positive, got {width}")
    if abs(180.0 / width - round(180.0 / width)) > 1e-9:
        raise ValueError(f"[histogram] bin_width_deg must divide 180 evenly, got {width}")
    if out.energy_min is not None and out.energy_max is not None:
        if out.energy_min > out.energy_max:
            raise ValueError(
                f"energy_min ({out.energy_min}) is larger than energy_max ({out.energy_max})"
            )
    return out, warnings


def dump_effective_config(cfg: Dict[str, Any]) -> str:
    return tomli_w.dumps(cfg)
