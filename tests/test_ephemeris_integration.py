# tests/test_ephemeris_integration.py
"""Real DE421 run of the reference example. Skipped unless a local kernel is present."""
from __future__ import annotations

from datetime import datetime, timezone

import pytest

from heliocal.core.assembler import generate_calendar
from heliocal.core.ephemeris_adapter import Config, SkyfieldEphemeris, resolve_kernel_path
from heliocal.core.models import Observer

pytestmark = [
    pytest.mark.slow,
    pytest.mark.skipif(resolve_kernel_path() is None, reason="no local de421.bsp (set HELIOCAL_EPHEMERIS)"),
]

UTC = timezone.utc
OBSERVER = Observer(41.454380, -74.430420, 0.0, "America/New_York")


@pytest.fixture(scope="module")
def provider() -> SkyfieldEphemeris:
    return SkyfieldEphemeris(Config())


def test_seasons_2025(provider) -> None:
    s = provider.seasonal_events(2025)
    assert s.spring_equinox.date().isoformat() == "2025-03-20"
    assert s.summer_solstice.date().isoformat() == "2025-06-21"
    assert s.autumn_equinox.date().isoformat() == "2025-09-22"
    assert s.winter_solstice.date().isoformat() == "2025-12-21"


def test_longitude_at_equinox_is_near_180(provider) -> None:
    s = provider.seasonal_events(2025)
    lon = provider.heliocentric_longitude(s.spring_equinox)
    # opposite the Sun; J2000 ecliptic lags the equinox of date by ~0.35° of precession
    assert abs(lon - 180.0) < 0.5


def test_apsides_2025(provider) -> None:
    first = provider.apsis(datetime(2025, 5, 1, tzinfo=UTC))
    second = provider.next_apsis(first)
    assert first.kind == "aphelion" and first.instant.month == 7
    assert second.kind == "perihelion" and second.instant.year == 2026 and second.instant.month == 1


def test_solar_noon_and_lower_culminations(provider) -> None:
    noon = provider.hour_angle_crossing(OBSERVER, 0.0, datetime(2025, 6, 1, 4, 0, tzinfo=UTC), 1)
    start = provider.hour_angle_crossing(OBSERVER, 180.0, noon, -1)
    end = provider.hour_angle_crossing(OBSERVER, 180.0, noon, 1)
    # local apparent noon near 74.43°W is ~16:56 UTC in June
    assert noon.hour == 16
    assert start < noon < end
    assert abs((end - start).total_seconds() - 86_400) < 60


def test_reference_example_year() -> None:
    cal = generate_calendar(2025, "2000-02-04", "10:00", "America/New_York", 41.454380, -74.430420, 0)
    assert len(cal) == 12
    assert cal.total_days in (365, 366)
    assert len(cal.find_event("BirthOrbit")) == 1
    seasonal = [e.name for d in cal.days() for e in d.events if e.name != "BirthOrbit"]
    assert sorted(seasonal) == sorted(
        ["Spring Equinox", "Summer Solstice", "Autumn Equinox", "Winter Solstice", "Aphelion", "Perihelion"]
    )
    assert all(len(d.events) <= 1 for d in cal.days())
