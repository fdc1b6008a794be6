# heliocal/core/civil_time.py
# -----------------------------------------------------------------------------
# Civil time helpers (zoneinfo aligned; millisecond instants)
#
# Public API:
#   parse_local_instant(date_str, time_str, tz_name) -> LocalInstant
#   to_millis(dt) / from_millis(ms)                  -> epoch-ms <-> UTC datetime
#   truncate_ms(dt)                                  -> UTC datetime at ms resolution
#   memo_key(dt)                                     -> canonical ISO-8601 (ms) key
#   format_utc(dt) / format_local_time(dt, tz)       -> display strings
#
# Guarantees:
#   • Every instant leaving this module is tz-aware UTC at millisecond resolution.
#   • DST ambiguity (fold) and non-existent local times are flagged, not hidden.
#   • Unknown IANA zones raise ValueError.
# -----------------------------------------------------------------------------

from __future__ import annotations

from dataclasses import dataclass, asdict, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
import re

__all__ = [
    "LocalInstant",
    "parse_local_instant",
    "resolve_zone",
    "to_millis",
    "from_millis",
    "truncate_ms",
    "memo_key",
    "format_utc",
    "format_local_time",
]

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# ───────────────────────────── Dataclass ─────────────────────────────

@dataclass(frozen=True)
class LocalInstant:
    utc: datetime
    tz_offset_seconds: int
    timezone: str
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["utc"] = format_utc(self.utc)
        return d

# ───────────────────────────── Parsing helpers ─────────────────────────────

_DATE_RE = re.compile(r"^\s*(\d{4})-(\d{2})-(\d{2})\s*$")
_TIME_RE = re.compile(r"^\s*(?P<h>\d{1,2}):(?P<m>\d{2})(?::(?P<s>\d{2}))?\s*$")

def _parse_date_str(date_str: str) -> Tuple[int, int, int]:
    """Parse YYYY-MM-DD and return (iy, im, id)."""
    m = _DATE_RE.match(date_str or "")
    if not m:
        raise ValueError(f"Invalid date_str '{date_str}': expected YYYY-MM-DD")
    iy, im, iday = int(m.group(1)), int(m.group(2)), int(m.group(3))
    datetime(iy, im, iday)  # existence check
    return iy, im, iday

def _parse_time(time_str: str) -> Tuple[int, int, int]:
    """Parse HH:MM[:SS] and return (ih, im, isec)."""
    m = _TIME_RE.match(time_str or "")
    if not m:
        raise ValueError(f"Invalid time_str '{time_str}': expected HH:MM[:SS]")
    ih = int(m.group("h")); im = int(m.group("m")); isec = int(m.group("s") or 0)
    if not (0 <= ih <= 23 and 0 <= im <= 59 and 0 <= isec <= 59):
        raise ValueError(f"Invalid time fields: hh={ih}, mm={im}, ss={isec}")
    return ih, im, isec

def resolve_zone(tz_name: str) -> ZoneInfo:
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError, TypeError) as e:
        raise ValueError(f"Unknown IANA time zone '{tz_name}'") from e

# ───────────────────────────── Time zone helpers ─────────────────────────────

def _fold_offsets(z: ZoneInfo, naive_local: datetime) -> Tuple[int, List[str]]:
    """
    Compute tz offset seconds for a naive local datetime.
    Detect DST ambiguity (fold) and gaps; prefer fold=0 as the answer.
    """
    warnings: List[str] = []
    aware0 = naive_local.replace(tzinfo=z, fold=0)
    off0 = aware0.utcoffset()
    if off0 is None:
        raise ValueError("Timezone returned None utcoffset()")
    aware1 = naive_local.replace(tzinfo=z, fold=1)
    off1 = aware1.utcoffset()
    if off1 is not None and off1 != off0:
        # Same wall time, two offsets: either repeated (fall back) or skipped (spring forward)
        roundtrip = aware0.astimezone(timezone.utc).astimezone(z).replace(tzinfo=None)
        warnings.append("dst_ambiguous" if roundtrip == naive_local else "dst_nonexistent")
    return int(off0.total_seconds()), warnings

# ───────────────────────────── Public API ─────────────────────────────

def parse_local_instant(date_str: str, time_str: str, tz_name: str) -> LocalInstant:
    """Resolve a local civil date + time in an IANA zone to a UTC instant."""
    iy, im, iday = _parse_date_str(date_str)
    ih, imin, isec = _parse_time(time_str)
    z = resolve_zone(tz_name)

    naive = datetime(iy, im, iday, ih, imin, isec)
    tz_off, warnings = _fold_offsets(z, naive)
    utc = naive.replace(tzinfo=z, fold=0).astimezone(timezone.utc)

    return LocalInstant(
        utc=truncate_ms(utc),
        tz_offset_seconds=tz_off,
        timezone=str(tz_name),
        warnings=warnings,
    )

def to_millis(dt: datetime) -> int:
    """Whole epoch milliseconds of an aware datetime (floor)."""
    if dt.tzinfo is None:
        raise ValueError("datetime must be timezone-aware")
    delta = dt - _EPOCH
    return (delta.days * 86_400 + delta.seconds) * 1000 + delta.microseconds // 1000

def from_millis(ms: int) -> datetime:
    return _EPOCH + timedelta(milliseconds=int(ms))

def truncate_ms(dt: datetime) -> datetime:
    return from_millis(to_millis(dt))

def memo_key(dt: datetime) -> str:
    """Canonical cache key: ISO-8601 UTC with millisecond resolution."""
    return truncate_ms(dt).isoformat(timespec="milliseconds")

def format_utc(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")

def format_local_time(dt: datetime, tz_name: str) -> str:
    """Short local clock time, e.g. '12:56 PM'."""
    local = dt.astimezone(resolve_zone(tz_name))
    hour = local.hour % 12 or 12
    return f"{hour}:{local.minute:02d} {'AM' if local.hour < 12 else 'PM'}"
