# heliocal/core/validators.py
from __future__ import annotations

import os
import re
from datetime import date, datetime
from typing import Any, Dict, List, Optional, TypedDict, Union

from heliocal.core.civil_time import resolve_zone

# ───────────────────────── bounds ─────────────────────────

YEAR_MIN = int(os.getenv("HELIOCAL_YEAR_MIN", "1900"))
YEAR_MAX = int(os.getenv("HELIOCAL_YEAR_MAX", "2050"))
# A birth before the March equinox measures from the previous year's equinox, which
# for YEAR_MIN would fall before the start of DE421 (1899-07-29).
BIRTH_DATE_MIN = date(YEAR_MIN, 3, 22)
BIRTH_DATE_MAX = date(YEAR_MAX, 12, 31)
ELEVATION_MIN_M = -500.0
ELEVATION_MAX_M = 10_000.0

# ───────────────────────── errors ─────────────────────────

class ValidationError(ValueError):
    """Structured parameter error (has .errors(), a list of {loc, msg, type})."""
    def __init__(self, details: Union[str, Dict[str, Any], List[Dict[str, Any]]]):
        if isinstance(details, str):
            self._details = [{"loc": [], "msg": details, "type": "value_error"}]
            super().__init__(details)
        elif isinstance(details, dict):
            self._details = [details]
            super().__init__(details.get("msg", "validation_error"))
        else:
            self._details = list(details)
            super().__init__(self._details[0]["msg"] if self._details else "validation_error")

    def errors(self) -> List[Dict[str, Any]]:
        return list(self._details)


# ───────────────────────── helpers ─────────────────────────

def _err(loc: List[str] | str, msg: str, typ: str = "value_error") -> Dict[str, Any]:
    return {"loc": [loc] if isinstance(loc, str) else loc, "msg": msg, "type": typ}

def _as_float(v: Any) -> Optional[float]:
    if v is None or isinstance(v, bool):
        return None
    try:
        x = float(v)
    except (TypeError, ValueError):
        return None
    if x != x or x in (float("inf"), float("-inf")):
        return None
    return x

def _as_int(v: Any) -> Optional[int]:
    if isinstance(v, bool):
        return None
    if isinstance(v, int):
        return v
    if isinstance(v, str) and v.strip().lstrip("-").isdigit():
        return int(v.strip())
    if isinstance(v, float) and v.is_integer():
        return int(v)
    return None


# ───────────────────────── atomic checks ─────────────────────────

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_TIME_RE = re.compile(r"^(?P<h>\d{1,2}):(?P<m>\d{2})(?::(?P<s>\d{2}))?$")

def _check_year(v: Any, errors: List[Dict[str, Any]]) -> Optional[int]:
    year = _as_int(v)
    if year is None:
        errors.append(_err("year", "year must be an integer", "type_error.integer"))
        return None
    if not (YEAR_MIN <= year <= YEAR_MAX):
        errors.append(_err("year", f"year must be between {YEAR_MIN} and {YEAR_MAX}"))
        return None
    return year

def _check_date(v: Any, errors: List[Dict[str, Any]]) -> Optional[str]:
    s = v.strip() if isinstance(v, str) else ""
    if not _DATE_RE.match(s):
        errors.append(_err("birth_date", "birth_date must be 'YYYY-MM-DD'", "value_error.date"))
        return None
    try:
        parsed = datetime.strptime(s, "%Y-%m-%d").date()
    except ValueError:
        errors.append(_err("birth_date", "birth_date is not a calendar date", "value_error.date"))
        return None
    if not (BIRTH_DATE_MIN <= parsed <= BIRTH_DATE_MAX):
        errors.append(_err(
            "birth_date",
            f"birth_date must be between {BIRTH_DATE_MIN.isoformat()} and {BIRTH_DATE_MAX.isoformat()}",
            "value_error.date_range",
        ))
        return None
    return s

def _check_time(v: Any, errors: List[Dict[str, Any]]) -> Optional[str]:
    s = v.strip() if isinstance(v, str) else ""
    m = _TIME_RE.match(s)
    if not m:
        errors.append(_err("birth_time", "birth_time must be 'HH:MM' or 'HH:MM:SS'", "value_error.time"))
        return None
    hh, mm, ss = int(m.group("h")), int(m.group("m")), int(m.group("s") or 0)
    if not (0 <= hh <= 23 and 0 <= mm <= 59 and 0 <= ss <= 59):
        errors.append(_err("birth_time", "birth_time fields out of range", "value_error.time"))
        return None
    return f"{hh:02d}:{mm:02d}:{ss:02d}"

def _check_zone(v: Any, errors: List[Dict[str, Any]]) -> Optional[str]:
    s = v.strip() if isinstance(v, str) else ""
    try:
        if not s:
            raise ValueError("empty zone")
        resolve_zone(s)
    except ValueError:
        errors.append(_err("timezone", "must be a valid IANA zone like 'America/New_York'"))
        return None
    return s

def _check_range(key: str, v: Any, lo: float, hi: float, errors: List[Dict[str, Any]]) -> Optional[float]:
    x = _as_float(v)
    if x is None:
        errors.append(_err(key, f"{key} must be a finite number", "type_error.float"))
        return None
    if not (lo <= x <= hi):
        errors.append(_err(key, f"{key} must be between {lo:g} and {hi:g}"))
        return None
    return x


# ───────────────────────── generation parameters ─────────────────────────

class GenerationParams(TypedDict):
    year: int
    birth_date: str
    birth_time: str     # canonical 'HH:MM:SS'
    timezone: str
    latitude: float
    longitude: float
    elevation: float

def validate_generation_params(
    year: Any,
    birth_date: Any,
    birth_time: Any,
    timezone: Any,
    latitude: Any,
    longitude: Any,
    elevation: Any = 0.0,
) -> GenerationParams:
    """
    Check every calendar generation input; all problems are reported together.
    Elevation may be None (treated as 0 m).
    """
    errors: List[Dict[str, Any]] = []
    y = _check_year(year, errors)
    d = _check_date(birth_date, errors)
    t = _check_time(birth_time, errors)
    tz = _check_zone(timezone, errors)
    lat = _check_range("latitude", latitude, -90.0, 90.0, errors)
    lon = _check_range("longitude", longitude, -180.0, 180.0, errors)
    elev = _check_range("elevation", 0.0 if elevation is None else elevation,
                        ELEVATION_MIN_M, ELEVATION_MAX_M, errors)
    if errors:
        raise ValidationError(errors)
    return {
        "year": y, "birth_date": d, "birth_time": t, "timezone": tz,
        "latitude": lat, "longitude": lon, "elevation": elev,
    }  # type: ignore[typeddict-item]

def parse_calendar_payload(body: Any) -> GenerationParams:
    """Normalize a POST /api/calendar JSON body."""
    if not isinstance(body, dict):
        raise ValidationError("payload must be an object")
    missing = [k for k in ("year", "birth_date", "birth_time", "timezone", "latitude", "longitude")
               if body.get(k) is None]
    if missing:
        raise ValidationError([_err(k, "field required", "value_error.missing") for k in missing])
    return validate_generation_params(
        body.get("year"),
        body.get("birth_date"),
        body.get("birth_time"),
        body.get("timezone"),
        body.get("latitude"),
        body.get("longitude"),
        body.get("elevation", body.get("elevation_m")),
    )


__all__ = [
    "ValidationError",
    "GenerationParams",
    "validate_generation_params",
    "parse_calendar_payload",
    "YEAR_MIN",
    "YEAR_MAX",
    "BIRTH_DATE_MIN",
    "BIRTH_DATE_MAX",
]
