# heliocal/utils/config.py
import os
import yaml

from heliocal.core.assembler import CalendarConfig
from heliocal.core.ephemeris_adapter import Config as EphemerisConfig


class AttrDict(dict):
    """Dict that also supports attribute access: cfg.ephemeris and cfg['ephemeris'] both work."""
    def __getattr__(self, item):
        try:
            return self[item]
        except KeyError as e:
            raise AttributeError(item) from e
    def __setattr__(self, key, value):
        self[key] = value

def _to_attr(obj):
    if isinstance(obj, dict):
        return AttrDict({k: _to_attr(v) for k, v in obj.items()})
    if isinstance(obj, list):
        return [_to_attr(x) for x in obj]
    return obj

# env var -> (section, key, cast)
_ENV_OVERRIDES = {
    "HELIOCAL_EPHEMERIS": ("ephemeris", "kernel_path", str),
    "HELIOCAL_DATA_DIR": ("ephemeris", "data_dir", str),
    "HELIOCAL_FRAME": ("ephemeris", "frame", str),
    "HELIOCAL_APSIS_STEP_DAYS": ("ephemeris", "apsis_step_days", float),
    "HELIOCAL_DEGREE_PRECISION": ("calendar", "degree_precision", float),
    "HELIOCAL_MAX_SEARCH_ITERATIONS": ("calendar", "max_search_iterations", int),
    "HELIOCAL_BOUNDARY_HOUR_ANGLE_HOURS": ("calendar", "boundary_hour_angle_hours", float),
    "HELIOCAL_PROGRESS_EVERY_DAYS": ("calendar", "progress_every_days", int),
}

def load_config(path: str):
    """
    Load YAML config from `path`; HELIOCAL_* env vars override the file.
    Returns an AttrDict with (at least) `ephemeris` and `calendar` sections.
    """
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    data["ephemeris"] = data.get("ephemeris") or {}
    data["calendar"] = data.get("calendar") or {}
    for env, (section, key, cast) in _ENV_OVERRIDES.items():
        raw = os.getenv(env)
        if raw:
            data[section][key] = cast(raw)

    allow = os.getenv("HELIOCAL_ALLOW_DOWNLOAD")
    if allow:
        data["ephemeris"]["allow_download"] = allow.lower() in ("1", "true", "yes", "on")

    return _to_attr(data)

def _pick(section, fields):
    section = section or {}
    return {k: section[k] for k in fields if section.get(k) is not None}

def ephemeris_config(cfg) -> EphemerisConfig:
    """Adapter Config from the `ephemeris` section; unknown keys are ignored."""
    return EphemerisConfig(**_pick(cfg.get("ephemeris"), EphemerisConfig.__dataclass_fields__))

def calendar_config(cfg) -> CalendarConfig:
    return CalendarConfig(**_pick(cfg.get("calendar"), CalendarConfig.__dataclass_fields__))
