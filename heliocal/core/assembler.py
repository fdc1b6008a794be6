# heliocal/core/assembler.py
# -----------------------------------------------------------------------------
# Orbital calendar assembly
#
# One pass from the spring equinox of the requested year to the next one:
#   • one SolarDayWindow per UTC calendar day, resolved from that date's 00:00 UTC
#   • month bucket = floor(noon degree / 30), 12 → 0
#   • orbital birthday via TargetLocator (latest match wins, birth instant fallback)
#   • BirthOrbit tag has priority over equinox/solstice/apsis tags on the same day
#
# Everything mutable (memo, buckets, tracker) lives inside one assemble() call;
# the CalendarYear is only built after the whole pass succeeds.
# -----------------------------------------------------------------------------
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any, List, Optional, Sequence, Tuple
import logging
import os

from heliocal.core.civil_time import format_utc, parse_local_instant
from heliocal.core.constants import (
    BIRTH_ORBIT_DESCRIPTION,
    BIRTH_ORBIT_EVENT,
    BOUNDARY_HOUR_ANGLE_HOURS,
    DEGREE_PRECISION,
    MAX_BINARY_SEARCH_ITERATIONS,
    MONTHS_IN_YEAR,
    SEASONAL_EVENT_INFO,
    ZODIAC_MONTHS,
)
from heliocal.core.ephemeris_adapter import EphemerisError, EphemerisProvider, SkyfieldEphemeris
from heliocal.core.events import birth_degree, build_event_set, outside_year
from heliocal.core.longitude_cache import LongitudeMemo
from heliocal.core.models import (
    AstronomicalEventSet,
    CalendarYear,
    DayRecord,
    EventTag,
    MonthRecord,
    Observer,
)
from heliocal.core.orbital_search import BirthdayTracker, TargetLocator
from heliocal.core.reference_frame import month_index, normalize
from heliocal.core.solar_day import SolarDayResolver, day_anchor
from heliocal.core.validators import validate_generation_params

log = logging.getLogger(__name__)

__all__ = [
    "CalendarConfig",
    "CalendarGenerationError",
    "CalendarAssembler",
    "day_events",
    "generate_calendar",
]

# ─────────────────────────────────────────────────────────────────────────────
# Config / errors
# ─────────────────────────────────────────────────────────────────────────────
@dataclass(frozen=True)
class CalendarConfig:
    degree_precision: float = float(os.getenv("HELIOCAL_DEGREE_PRECISION", str(DEGREE_PRECISION)))
    max_search_iterations: int = int(os.getenv("HELIOCAL_MAX_SEARCH_ITERATIONS", str(MAX_BINARY_SEARCH_ITERATIONS)))
    boundary_hour_angle_hours: float = float(
        os.getenv("HELIOCAL_BOUNDARY_HOUR_ANGLE_HOURS", str(BOUNDARY_HOUR_ANGLE_HOURS))
    )
    progress_every_days: int = int(os.getenv("HELIOCAL_PROGRESS_EVERY_DAYS", "30"))


class CalendarGenerationError(RuntimeError):
    """An ephemeris failure aborted a generation pass."""
    def __init__(self, year: int, instant: Optional[str], stage: str, message: str = ""):
        super().__init__(f"calendar {year} failed at {instant or 'setup'} ({stage}): {message}")
        self.year = year
        self.instant = instant
        self.stage = stage
        self.message = message

    def to_dict(self) -> dict:
        return {"year": self.year, "instant": self.instant, "stage": self.stage, "message": self.message}

# ─────────────────────────────────────────────────────────────────────────────
# Events per day
# ─────────────────────────────────────────────────────────────────────────────
def _utc_date(instant: datetime) -> date:
    return instant.astimezone(timezone.utc).date()


def day_events(day: date, birthday: datetime, events: AstronomicalEventSet) -> Tuple[EventTag, ...]:
    """Tags for one UTC day: the birthday alone if it lands here, else any seasonal/apsis events."""
    if _utc_date(birthday) == day:
        return (EventTag(BIRTH_ORBIT_EVENT, BIRTH_ORBIT_DESCRIPTION, birthday),)
    tags: List[EventTag] = []
    for field_name, (name, description) in SEASONAL_EVENT_INFO.items():
        instant = getattr(events, field_name)
        if _utc_date(instant) == day:
            tags.append(EventTag(name, description, instant))
    return tuple(tags)

# ─────────────────────────────────────────────────────────────────────────────
# Assembler
# ─────────────────────────────────────────────────────────────────────────────
class CalendarAssembler:
    def __init__(
        self,
        provider: EphemerisProvider,
        observer: Observer,
        config: Optional[CalendarConfig] = None,
    ):
        self.provider = provider
        self.observer = observer
        self.config = config or CalendarConfig()

    def assemble(self, year: int, birth: datetime, warnings: Sequence[str] = ()) -> CalendarYear:
        """Build the full orbital year; raises CalendarGenerationError on any ephemeris failure."""
        civil: Optional[date] = None
        try:
            memo = LongitudeMemo(self.provider)
            events = build_event_set(year, birth, self.provider)
            reference = memo.longitude_at(events.spring_equinox)
            target = birth_degree(birth, self.provider, memo)

            resolver = SolarDayResolver(self.provider, self.observer, self.config.boundary_hour_angle_hours)
            locator = TargetLocator(
                memo, reference, target,
                precision=self.config.degree_precision,
                max_iterations=self.config.max_search_iterations,
            )
            tracker = BirthdayTracker(birth)
            buckets: List[List[DayRecord]] = [[] for _ in range(MONTHS_IN_YEAR)]

            log.info(
                "Assembling orbital year %d: %s → %s, target %.2f°",
                year, format_utc(events.spring_equinox), format_utc(events.next_spring_equinox), target,
            )

            civil = _utc_date(events.spring_equinox)
            last_day = _utc_date(events.next_spring_equinox)
            count = 0
            while civil < last_day:
                window = resolver.resolve(civil)
                tracker.record(locator.locate(window))

                degree = normalize(memo.longitude_at(window.noon), reference)
                bucket = buckets[month_index(degree)]
                bucket.append(DayRecord(
                    number_in_month=len(bucket) + 1,
                    civil_date=civil,
                    solar_start=window.start,
                    solar_noon=window.noon,
                    solar_end=window.end,
                    moon_phase_label=window.moon_phase_label,
                    length_delta_seconds=window.length_delta_seconds,
                    orbital_degree=degree,
                    events=day_events(civil, tracker.instant, events),
                ))

                count += 1
                if self.config.progress_every_days and count % self.config.progress_every_days == 0:
                    log.debug("Orbital year %d: %d days assembled (memo %d entries, %d hits)",
                              year, count, len(memo), memo.hits)
                civil = civil + timedelta(days=1)
        except EphemerisError as e:
            instant = e.context.get("instant") or (format_utc(day_anchor(civil)) if civil is not None else None)
            raise CalendarGenerationError(year, instant, e.stage, e.message) from e

        notes = list(warnings)
        if tracker.fallback_used:
            log.warning("No orbital birthday match in %d; using birth instant %s", year, format_utc(birth))
            notes.append("birthday_fallback")
        notes.extend(f"{name}_outside_year" for name in outside_year(events))

        months = tuple(
            MonthRecord(
                month_index=i + 1,
                zodiac_name=ZODIAC_MONTHS[i],
                total_days=len(days),
                days=tuple(days),
            )
            for i, days in enumerate(buckets)
        )
        log.info("Orbital year %d assembled: %d days, birthday %s", year, count, format_utc(tracker.instant))
        return CalendarYear(
            year=year,
            months=months,
            events=events,
            observer=self.observer,
            birth_degree=target,
            birthday=tracker.instant,
            birthday_fallback=tracker.fallback_used,
            warnings=tuple(notes),
        )

# ─────────────────────────────────────────────────────────────────────────────
# Entry point
# ─────────────────────────────────────────────────────────────────────────────
def generate_calendar(
    year: Any,
    birth_date: Any,
    birth_time: Any,
    timezone: Any,
    latitude: Any,
    longitude: Any,
    elevation: Any = 0.0,
    *,
    provider: Optional[EphemerisProvider] = None,
    config: Optional[CalendarConfig] = None,
) -> CalendarYear:
    """
    Generate the orbital calendar for `year` for someone born at the given local
    civil date/time, observed from (latitude, longitude, elevation).

    Raises ValidationError before any computation, or CalendarGenerationError.
    A fresh longitude memo is built for every call.
    """
    params = validate_generation_params(year, birth_date, birth_time, timezone, latitude, longitude, elevation)
    local = parse_local_instant(params["birth_date"], params["birth_time"], params["timezone"])
    observer = Observer(
        latitude=params["latitude"],
        longitude=params["longitude"],
        elevation_m=params["elevation"],
        timezone=params["timezone"],
    )
    if provider is None:
        try:
            provider = SkyfieldEphemeris()
        except EphemerisError as e:
            raise CalendarGenerationError(params["year"], None, e.stage, e.message) from e
    return CalendarAssembler(provider, observer, config).assemble(params["year"], local.utc, local.warnings)
