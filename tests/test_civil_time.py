# tests/test_civil_time.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from heliocal.core.civil_time import (
    format_local_time,
    format_utc,
    from_millis,
    memo_key,
    parse_local_instant,
    resolve_zone,
    to_millis,
    truncate_ms,
)

UTC = timezone.utc

TZS = [
    "UTC",
    "Asia/Kolkata",         # +05:30 no DST
    "Australia/Eucla",      # +08:45 quarter-hour
    "America/New_York",     # DST region
    "America/St_Johns",     # -03:30
    "Pacific/Kiritimati",   # +14:00 extreme positive
]


def test_birth_instant_new_york() -> None:
    li = parse_local_instant("2000-02-04", "10:00", "America/New_York")
    assert li.utc == datetime(2000, 2, 4, 15, 0, tzinfo=UTC)
    assert li.tz_offset_seconds == -5 * 3600
    assert li.warnings == []


@pytest.mark.parametrize("tz", TZS)
def test_offset_roundtrip(tz: str, ensure_tzdata) -> None:
    li = parse_local_instant("2021-01-15", "08:30:15", tz)
    local = li.utc.astimezone(resolve_zone(tz))
    assert (local.hour, local.minute, local.second) == (8, 30, 15)
    assert li.utc.utcoffset() == timedelta(0)


def test_dst_gap_is_flagged() -> None:
    li = parse_local_instant("2025-03-09", "02:30", "America/New_York")
    assert "dst_nonexistent" in li.warnings


def test_dst_fold_is_flagged_and_first_offset_wins() -> None:
    li = parse_local_instant("2025-11-02", "01:30", "America/New_York")
    assert "dst_ambiguous" in li.warnings
    assert li.tz_offset_seconds == -4 * 3600


@pytest.mark.parametrize(
    "date_s, time_s, tz",
    [
        ("2000-02-30", "10:00", "UTC"),
        ("2000/02/04", "10:00", "UTC"),
        ("2000-02-04", "24:00", "UTC"),
        ("2000-02-04", "10", "UTC"),
        ("2000-02-04", "10:00", "Mars/Olympus_Mons"),
    ],
)
def test_bad_inputs_raise(date_s: str, time_s: str, tz: str) -> None:
    with pytest.raises(ValueError):
        parse_local_instant(date_s, time_s, tz)


def test_millis_helpers() -> None:
    dt = datetime(2025, 3, 20, 9, 1, 2, 345_999, tzinfo=UTC)
    ms = to_millis(dt)
    assert from_millis(ms) == datetime(2025, 3, 20, 9, 1, 2, 345_000, tzinfo=UTC)
    assert truncate_ms(dt) == from_millis(ms)
    assert from_millis(0) == datetime(1970, 1, 1, tzinfo=UTC)
    assert to_millis(datetime(1969, 12, 31, 23, 59, 59, 999_000, tzinfo=UTC)) == -1


def test_to_millis_rejects_naive() -> None:
    with pytest.raises(ValueError):
        to_millis(datetime(2025, 1, 1))


def test_memo_key_is_canonical_utc() -> None:
    dt = datetime(2025, 3, 20, 5, 1, 0, 123_456, tzinfo=timezone(timedelta(hours=-4)))
    assert memo_key(dt) == "2025-03-20T09:01:00.123+00:00"


def test_formatting() -> None:
    dt = datetime(2025, 6, 1, 16, 56, 7, tzinfo=UTC)
    assert format_utc(dt) == "2025-06-01 16:56:07"
    assert format_local_time(dt, "America/New_York") == "12:56 PM"
    assert format_local_time(datetime(2025, 6, 1, 4, 5, tzinfo=UTC), "America/New_York") == "12:05 AM"
    assert format_local_time(datetime(2025, 6, 1, 13, 5, tzinfo=UTC), "America/New_York") == "9:05 AM"
