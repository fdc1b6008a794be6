# tests/fakes.py
"""
Deterministic EphemerisProvider doubles.

FakeEphemeris models a circular orbit: heliocentric longitude grows linearly
from 180° at the spring equinox `base` (2025-03-20 09:01 UTC by default),
seasons fall on exact quarter years, solar noon is 12:00 UTC and solar-day
boundaries are 00:00 UTC everywhere. With `drift_seconds` set, every hour-angle
crossing is shifted by a sinusoidal equation of time of that amplitude.
"""
from __future__ import annotations

import math
from datetime import date, datetime, time, timedelta, timezone
from typing import List, Optional, Tuple

from heliocal.core.civil_time import truncate_ms
from heliocal.core.ephemeris_adapter import Apsis, EphemerisError, SeasonalEvents
from heliocal.core.models import Observer

UTC = timezone.utc
BASE_EQUINOX = datetime(2025, 3, 20, 9, 1, tzinfo=UTC)
YEAR_DAYS = 365.2422
SYNODIC_MONTH_DAYS = 29.530588
APHELION_OFFSET_DAYS = 106.0
PERIHELION_OFFSET_DAYS = 289.0


class FakeEphemeris:
    def __init__(self, base: datetime = BASE_EQUINOX, drift_seconds: float = 0.0) -> None:
        self.base = base
        self.drift_seconds = drift_seconds
        self.longitude_calls = 0
        self.crossing_calls: List[Tuple[float, datetime, int]] = []

    def _days(self, instant: datetime) -> float:
        return (instant - self.base).total_seconds() / 86_400.0

    def _at(self, days: float) -> datetime:
        return truncate_ms(self.base + timedelta(days=days))

    def heliocentric_longitude(self, instant: datetime) -> float:
        self.longitude_calls += 1
        return (180.0 + 360.0 * self._days(instant) / YEAR_DAYS) % 360.0

    def seasonal_events(self, year: int) -> SeasonalEvents:
        start = (year - self.base.year) * YEAR_DAYS
        quarter = YEAR_DAYS / 4.0
        return SeasonalEvents(
            spring_equinox=self._at(start),
            summer_solstice=self._at(start + quarter),
            autumn_equinox=self._at(start + 2 * quarter),
            winter_solstice=self._at(start + 3 * quarter),
        )

    def apsis(self, search_start: datetime) -> Apsis:
        d = self._days(search_start)
        cycle = int(d // YEAR_DAYS) - 1
        candidates = []
        for k in range(cycle, cycle + 3):
            candidates.append(("aphelion", k * YEAR_DAYS + APHELION_OFFSET_DAYS))
            candidates.append(("perihelion", k * YEAR_DAYS + PERIHELION_OFFSET_DAYS))
        kind, days = min((c for c in candidates if c[1] > d), key=lambda c: c[1])
        return Apsis(kind=kind, instant=self._at(days))

    def next_apsis(self, apsis: Apsis) -> Apsis:
        return self.apsis(apsis.instant + timedelta(days=1))

    def _crossing_on(self, target_hour_angle_deg: float, day: date) -> datetime:
        # hour angle 0 → 12:00 UTC, 180 → 00:00 UTC, plus the drift
        clock = timedelta(hours=((target_hour_angle_deg / 15.0) + 12.0) % 24.0)
        nominal = datetime.combine(day, time(0), tzinfo=UTC) + clock
        drift = self.drift_seconds * math.sin(2.0 * math.pi * self._days(nominal) / YEAR_DAYS)
        return truncate_ms(nominal + timedelta(seconds=drift))

    def hour_angle_crossing(
        self,
        observer: Observer,
        target_hour_angle_deg: float,
        around: datetime,
        direction: int = 1,
    ) -> datetime:
        self.crossing_calls.append((target_hour_angle_deg, around, direction))
        day = around.astimezone(UTC).date()
        candidates = [self._crossing_on(target_hour_angle_deg, day + timedelta(days=k)) for k in range(-2, 3)]
        if direction > 0:
            return min(c for c in candidates if c > around)
        return max(c for c in candidates if c < around)

    def lunar_phase_angle(self, instant: datetime) -> float:
        return (360.0 * self._days(instant) / SYNODIC_MONTH_DAYS) % 360.0


class DriftingNoonEphemeris(FakeEphemeris):
    """Noon wobbles ±120 s around 12:00 UTC; the equinox falls half a minute after noon."""

    def __init__(self) -> None:
        super().__init__(base=datetime(2025, 3, 20, 12, 0, 30, tzinfo=UTC), drift_seconds=120.0)


class SwappedApsisEphemeris(FakeEphemeris):
    """First apsis after 1 May is a perihelion (as if the orbit were rotated)."""

    def apsis(self, search_start: datetime) -> Apsis:
        found = super().apsis(search_start)
        kind = "perihelion" if found.kind == "aphelion" else "aphelion"
        return Apsis(kind=kind, instant=found.instant)


class FailingEphemeris(FakeEphemeris):
    """Raises from hour_angle_crossing once the sweep reaches `fail_after`."""

    def __init__(self, fail_after: Optional[datetime] = None, stage: str = "hour_angle") -> None:
        super().__init__()
        self.fail_after = fail_after or BASE_EQUINOX + timedelta(days=40)
        self.stage = stage

    def hour_angle_crossing(self, observer, target_hour_angle_deg, around, direction=1):
        if around >= self.fail_after:
            raise EphemerisError(self.stage, "no crossing found", instant=around.strftime("%Y-%m-%d %H:%M:%S"))
        return super().hour_angle_crossing(observer, target_hour_angle_deg, around, direction)
