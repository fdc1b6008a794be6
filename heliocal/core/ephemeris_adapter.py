# heliocal/core/ephemeris_adapter.py
# -----------------------------------------------------------------------------
# Ephemeris Adapter (Skyfield + pyERFA)
#
# Highlights
# • EphemerisProvider protocol: the only surface the calendar engine consumes
# • Deterministic, testable Config (env defaults) + SkyfieldEphemeris class
# • Heliocentric ecliptic longitude of Earth (J2000 via ERFA obliquity, or of-date)
# • Seasons, apsides, hour-angle crossings and lunar phase via Skyfield search
# • Clean error taxonomy (EphemerisError with stage + context); no silent fallbacks
# • Thread-safe kernel bootstrap; kernels are read-only once loaded
# -----------------------------------------------------------------------------
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Protocol, Tuple
import logging
import math
import os
import threading

import erfa  # pyERFA
from skyfield import almanac
from skyfield.api import Loader, load, wgs84
from skyfield.searchlib import find_discrete, find_maxima, find_minima

from heliocal.core.civil_time import format_utc, truncate_ms
from heliocal.core.models import Observer

log = logging.getLogger(__name__)

__all__ = [
    "EphemerisError",
    "Config",
    "SeasonalEvents",
    "Apsis",
    "EphemerisProvider",
    "SkyfieldEphemeris",
    "resolve_kernel_path",
]

# ─────────────────────────────────────────────────────────────────────────────
# Constants / environment (bounded; converted into Config defaults)
# ─────────────────────────────────────────────────────────────────────────────
EPHEMERIS_NAME_DEFAULT = "de421.bsp"

DE421_JD_MIN = float(os.getenv("HELIOCAL_DE421_JD_MIN", "2414992.5"))  # 1899-12-31
DE421_JD_MAX = float(os.getenv("HELIOCAL_DE421_JD_MAX", "2469807.5"))  # 2053-10-09
ENFORCE_JD_RANGE = os.getenv("HELIOCAL_ENFORCE_JD_RANGE", "1").lower() in ("1", "true", "yes", "on")

_FRAME_ENV = os.getenv("HELIOCAL_FRAME", "ecliptic-j2000").strip().lower()
_ALLOW_DOWNLOAD_ENV = os.getenv("HELIOCAL_ALLOW_DOWNLOAD", "0").lower() in ("1", "true", "yes", "on")
_DATA_DIR_ENV = os.getenv("HELIOCAL_DATA_DIR", os.path.join(os.getcwd(), "data"))

# Search steps (days): must be shorter than the spacing of the events searched for
_APSIS_STEP_DAYS_ENV = float(os.getenv("HELIOCAL_APSIS_STEP_DAYS", "20.0"))
_APSIS_WINDOW_DAYS_ENV = float(os.getenv("HELIOCAL_APSIS_WINDOW_DAYS", "400.0"))
# next apsis search skips 11% of the orbital period past the previous one
_APSIS_SKIP_DAYS_ENV = float(os.getenv("HELIOCAL_APSIS_SKIP_DAYS", str(0.11 * 365.256)))
_HOUR_ANGLE_STEP_DAYS_ENV = float(os.getenv("HELIOCAL_HOUR_ANGLE_STEP_DAYS", "0.2"))
_HOUR_ANGLE_WINDOW_DAYS_ENV = float(os.getenv("HELIOCAL_HOUR_ANGLE_WINDOW_DAYS", "1.5"))

_ABS_ZERO_TOL_DEG_ENV = float(os.getenv("HELIOCAL_ABS_ZERO_TOL_DEG", "1e-13"))

_J2000_JD = 2451545.0

# ─────────────────────────────────────────────────────────────────────────────
# Exceptions
# ─────────────────────────────────────────────────────────────────────────────
class EphemerisError(RuntimeError):
    """Categorized error for adapter callers."""
    def __init__(self, stage: str, message: str, **context: Any):
        super().__init__(f"{stage}: {message}")
        self.stage = stage
        self.message = message
        self.context = context

# ─────────────────────────────────────────────────────────────────────────────
# Adapter configuration & results
# ─────────────────────────────────────────────────────────────────────────────
@dataclass(frozen=True)
class Config:
    frame: str = _FRAME_ENV                # "ecliptic-j2000" | "ecliptic-of-date"
    kernel_path: Optional[str] = None      # explicit path wins over env/data_dir
    data_dir: str = _DATA_DIR_ENV
    allow_download: bool = _ALLOW_DOWNLOAD_ENV

    apsis_step_days: float = _APSIS_STEP_DAYS_ENV
    apsis_window_days: float = _APSIS_WINDOW_DAYS_ENV
    apsis_skip_days: float = _APSIS_SKIP_DAYS_ENV
    hour_angle_step_days: float = _HOUR_ANGLE_STEP_DAYS_ENV
    hour_angle_window_days: float = _HOUR_ANGLE_WINDOW_DAYS_ENV

    abs_zero_tol_deg: float = _ABS_ZERO_TOL_DEG_ENV

    enforce_jd_range: bool = ENFORCE_JD_RANGE
    jd_min: float = DE421_JD_MIN
    jd_max: float = DE421_JD_MAX


@dataclass(frozen=True)
class SeasonalEvents:
    spring_equinox: datetime
    summer_solstice: datetime
    autumn_equinox: datetime
    winter_solstice: datetime


@dataclass(frozen=True)
class Apsis:
    kind: str           # "aphelion" | "perihelion"
    instant: datetime
    distance_au: float = float("nan")


class EphemerisProvider(Protocol):
    """Everything the calendar engine asks of an ephemeris. Instants are aware UTC datetimes."""

    def heliocentric_longitude(self, instant: datetime) -> float: ...

    def seasonal_events(self, year: int) -> SeasonalEvents: ...

    def apsis(self, search_start: datetime) -> Apsis: ...

    def next_apsis(self, apsis: Apsis) -> Apsis: ...

    def hour_angle_crossing(
        self,
        observer: Observer,
        target_hour_angle_deg: float,
        around: datetime,
        direction: int = 1,
    ) -> datetime: ...

    def lunar_phase_angle(self, instant: datetime) -> float: ...

# ─────────────────────────────────────────────────────────────────────────────
# Process-wide, read-only kernels (loaded once per path)
# ─────────────────────────────────────────────────────────────────────────────
_TS = None                          # Skyfield timescale
_KERNELS: Dict[str, Any] = {}       # path -> SpiceKernel
_LOCK_KERNEL = threading.Lock()

# ─────────────────────────────────────────────────────────────────────────────
# Math helpers
# ─────────────────────────────────────────────────────────────────────────────
def _wrap360(x: float, *, abs_zero_tol_deg: float) -> float:
    v = float(x) % 360.0
    # treat near-zero as zero; avoid exact equality comparisons
    return 0.0 if math.isclose(v, 0.0, abs_tol=abs_zero_tol_deg) else v

def _atan2deg(y: float, x: float, *, abs_zero_tol_deg: float) -> float:
    return _wrap360(math.degrees(math.atan2(y, x)), abs_zero_tol_deg=abs_zero_tol_deg)

def _rotate_to_ecliptic_j2000(x: float, y: float, z: float) -> Tuple[float, float, float]:
    """Rotate ICRS/J2000 equatorial -> J2000 mean ecliptic (ERFA IAU 2006 obliquity)."""
    eps = float(erfa.obl06(_J2000_JD, 0.0))
    ce, se = math.cos(eps), math.sin(eps)
    return x, y*ce + z*se, -y*se + z*ce

# ─────────────────────────────────────────────────────────────────────────────
# Kernel I/O
# ─────────────────────────────────────────────────────────────────────────────
def resolve_kernel_path(config: Optional[Config] = None) -> Optional[str]:
    """Explicit config path → HELIOCAL_EPHEMERIS → <data_dir>/de421.bsp; None if absent."""
    cfg = config or Config()
    for path in (cfg.kernel_path, os.getenv("HELIOCAL_EPHEMERIS")):
        if path and os.path.isfile(path):
            return path
    fallback = os.path.join(cfg.data_dir, EPHEMERIS_NAME_DEFAULT)
    return fallback if os.path.isfile(fallback) else None

def _looks_like_lfs_pointer(path: str) -> bool:
    try:
        if os.path.getsize(path) <= 512:
            with open(path, "rb") as f:
                head = f.read(128)
            return head.startswith(b"version https://git-lfs.github.com/spec/v1")
    except OSError as e:
        log.debug("LFS pointer probe failed for %s: %s", path, e)
    return False

def _get_timescale():
    global _TS
    if _TS is not None:
        return _TS
    with _LOCK_KERNEL:
        if _TS is None:
            _TS = load.timescale()
    return _TS

def _get_kernel(cfg: Config):
    """Thread-safe lazy load of the planetary kernel."""
    path = resolve_kernel_path(cfg)
    key = path or os.path.join(cfg.data_dir, EPHEMERIS_NAME_DEFAULT)
    kernel = _KERNELS.get(key)
    if kernel is not None:
        return kernel

    with _LOCK_KERNEL:
        kernel = _KERNELS.get(key)
        if kernel is not None:
            return kernel

        if path is None:
            if not cfg.allow_download:
                raise EphemerisError(
                    "kernel",
                    "No local DE421 found (set HELIOCAL_EPHEMERIS, place data/de421.bsp, "
                    "or enable HELIOCAL_ALLOW_DOWNLOAD)",
                    data_dir=cfg.data_dir,
                )
            log.info("Downloading %s into %s", EPHEMERIS_NAME_DEFAULT, cfg.data_dir)
            try:
                kernel = Loader(cfg.data_dir)(EPHEMERIS_NAME_DEFAULT)
            except Exception as e:
                raise EphemerisError("kernel", "Skyfield failed to download kernel", error=str(e)) from e
        else:
            if _looks_like_lfs_pointer(path):
                raise EphemerisError("kernel", f"Kernel looks like a Git LFS pointer: {path}")
            try:
                kernel = load(path)
            except Exception as e:
                raise EphemerisError("kernel", f"Skyfield failed to load kernel: {path}", error=str(e)) from e

        _KERNELS[key] = kernel
        log.info("Ephemeris kernel ready: %s", key)
    return kernel

# ─────────────────────────────────────────────────────────────────────────────
# Adapter
# ─────────────────────────────────────────────────────────────────────────────
class SkyfieldEphemeris:
    """EphemerisProvider backed by Skyfield (DE421) with ERFA frame rotation."""

    def __init__(self, config: Optional[Config] = None):
        self.config = config or Config()
        if self.config.frame not in ("ecliptic-j2000", "ecliptic-of-date"):
            raise EphemerisError("frame", f"Unsupported frame '{self.config.frame}'")
        self._kernel = None

    # ── plumbing ────────────────────────────────────────────────────────────
    @property
    def ts(self):
        return _get_timescale()

    @property
    def kernel(self):
        # resolved once per adapter; _get_kernel probes the filesystem
        if self._kernel is None:
            self._kernel = _get_kernel(self.config)
        return self._kernel

    def _time(self, instant: datetime):
        t = self.ts.from_datetime(instant)
        if self.config.enforce_jd_range and not (self.config.jd_min <= float(t.tt) <= self.config.jd_max):
            raise EphemerisError(
                "range", "instant outside DE421 coverage",
                instant=format_utc(instant), jd_tt=float(t.tt),
            )
        return t

    def _shift(self, t, days: float):
        return self.ts.tt_jd(t.tt + days)

    @staticmethod
    def _to_utc(t) -> datetime:
        dt = t.utc_datetime()
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return truncate_ms(dt)

    def _helio_vector(self):
        eph = self.kernel
        return eph["earth"] - eph["sun"]

    # ── EphemerisProvider ───────────────────────────────────────────────────
    def heliocentric_longitude(self, instant: datetime) -> float:
        t = self._time(instant)
        vec = self._helio_vector()
        try:
            geo = vec.at(t)
            if self.config.frame == "ecliptic-of-date":
                from skyfield import framelib
                _lat, lon, _ = geo.frame_latlon(framelib.ecliptic_frame)
                lon_deg = _wrap360(lon.degrees, abs_zero_tol_deg=self.config.abs_zero_tol_deg)
            else:
                x, y, z = (float(v) for v in geo.position.au)
                x2, y2, _z2 = _rotate_to_ecliptic_j2000(x, y, z)
                lon_deg = _atan2deg(y2, x2, abs_zero_tol_deg=self.config.abs_zero_tol_deg)
        except Exception as e:
            raise EphemerisError("longitude", "heliocentric longitude failed",
                                 instant=format_utc(instant), error=str(e)) from e
        if not math.isfinite(lon_deg):
            raise EphemerisError("longitude", "non-finite heliocentric longitude", instant=format_utc(instant))
        return lon_deg

    def seasonal_events(self, year: int) -> SeasonalEvents:
        ts = self.ts
        t0, t1 = ts.utc(year, 1, 1), ts.utc(year + 1, 1, 1)
        try:
            times, codes = find_discrete(t0, t1, almanac.seasons(self.kernel))
        except EphemerisError:
            raise
        except Exception as e:
            raise EphemerisError("seasons", f"season search failed for {year}", year=year, error=str(e)) from e

        found: Dict[int, datetime] = {}
        for t, code in zip(times, codes):
            found.setdefault(int(code), self._to_utc(t))
        missing = [c for c in range(4) if c not in found]
        if missing:
            raise EphemerisError("seasons", f"missing season codes {missing} for {year}", year=year)
        return SeasonalEvents(
            spring_equinox=found[0],
            summer_solstice=found[1],
            autumn_equinox=found[2],
            winter_solstice=found[3],
        )

    def apsis(self, search_start: datetime) -> Apsis:
        """First aphelion or perihelion of Earth after search_start."""
        t0 = self._time(search_start)
        t1 = self._shift(t0, self.config.apsis_window_days)
        vec = self._helio_vector()

        def distance_au(t):
            return vec.at(t).distance().au
        distance_au.step_days = self.config.apsis_step_days

        try:
            max_t, max_v = find_maxima(t0, t1, distance_au)
            min_t, min_v = find_minima(t0, t1, distance_au)
        except Exception as e:
            raise EphemerisError("apsis", "apsis search failed",
                                 instant=format_utc(search_start), error=str(e)) from e

        candidates: List[Tuple[float, str, Any, float]] = []
        candidates.extend((float(t.tt), "aphelion", t, float(v)) for t, v in zip(max_t, max_v))
        candidates.extend((float(t.tt), "perihelion", t, float(v)) for t, v in zip(min_t, min_v))
        candidates = [c for c in candidates if c[0] > float(t0.tt)]
        if not candidates:
            raise EphemerisError("apsis", "no apsis found in search window", instant=format_utc(search_start))
        _tt, kind, t, dist = min(candidates, key=lambda c: c[0])
        return Apsis(kind=kind, instant=self._to_utc(t), distance_au=dist)

    def next_apsis(self, apsis: Apsis) -> Apsis:
        return self.apsis(apsis.instant + timedelta(days=self.config.apsis_skip_days))

    def hour_angle_crossing(
        self,
        observer: Observer,
        target_hour_angle_deg: float,
        around: datetime,
        direction: int = 1,
    ) -> datetime:
        """Instant the Sun's local hour angle passes target, searching forward (+1) or backward (-1)."""
        if direction not in (1, -1):
            raise ValueError("direction must be +1 or -1")
        eph = self.kernel
        sun = eph["sun"]
        place = eph["earth"] + wgs84.latlon(
            latitude_degrees=observer.latitude,
            longitude_degrees=observer.longitude,
            elevation_m=observer.elevation_m,
        )
        target_h = (float(target_hour_angle_deg) / 15.0) % 24.0

        def past_target(t):
            ha, _dec, _dist = place.at(t).observe(sun).apparent().hadec()
            return ((ha.hours - target_h) % 24.0) < 12.0
        past_target.step_days = self.config.hour_angle_step_days

        t_around = self._time(around)
        if direction > 0:
            t0, t1 = t_around, self._shift(t_around, self.config.hour_angle_window_days)
        else:
            t0, t1 = self._shift(t_around, -self.config.hour_angle_window_days), t_around

        try:
            times, values = find_discrete(t0, t1, past_target)
        except Exception as e:
            raise EphemerisError("hour_angle", "hour-angle search failed",
                                 instant=format_utc(around), error=str(e)) from e

        crossings = [t for t, v in zip(times, values) if bool(v)]
        if not crossings:
            raise EphemerisError("hour_angle", f"no crossing of {target_hour_angle_deg}° found",
                                 instant=format_utc(around), direction=direction)
        return self._to_utc(crossings[0] if direction > 0 else crossings[-1])

    def lunar_phase_angle(self, instant: datetime) -> float:
        t = self._time(instant)
        eph = self.kernel
        try:
            phase = almanac.moon_phase(eph, t)
        except Exception as e:
            raise EphemerisError("moon_phase", "lunar phase failed",
                                 instant=format_utc(instant), error=str(e)) from e
        return _wrap360(phase.degrees, abs_zero_tol_deg=self.config.abs_zero_tol_deg)
