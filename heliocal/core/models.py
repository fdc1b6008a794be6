# heliocal/core/models.py
"""Data records of the orbital calendar. Immutable once built; to_dict() at the edge."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple

from heliocal.core.civil_time import format_local_time, format_utc

__all__ = [
    "Observer",
    "SolarDayWindow",
    "AstronomicalEventSet",
    "EventTag",
    "DayRecord",
    "MonthRecord",
    "CalendarYear",
    "format_delta",
]


def format_delta(seconds: float) -> str:
    """Signed seconds with explicit sign: '+12.5', '-3.25', '+0.0'."""
    sign = "+" if seconds >= 0 else "-"
    return f"{sign}{abs(round(seconds, 3))}"


@dataclass(frozen=True)
class Observer:
    latitude: float
    longitude: float
    elevation_m: float = 0.0
    timezone: str = "UTC"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "elevation_m": self.elevation_m,
            "timezone": self.timezone,
        }


@dataclass(frozen=True)
class SolarDayWindow:
    start: datetime
    noon: datetime
    end: datetime
    moon_phase_label: str
    length_delta_seconds: float

    @property
    def length_seconds(self) -> float:
        return (self.end - self.start).total_seconds()


@dataclass(frozen=True)
class AstronomicalEventSet:
    spring_equinox: datetime
    summer_solstice: datetime
    autumn_equinox: datetime
    winter_solstice: datetime
    next_spring_equinox: datetime
    aphelion: datetime
    perihelion: datetime
    birth: datetime

    def to_dict(self) -> Dict[str, str]:
        return {
            "spring_equinox": format_utc(self.spring_equinox),
            "summer_solstice": format_utc(self.summer_solstice),
            "autumn_equinox": format_utc(self.autumn_equinox),
            "winter_solstice": format_utc(self.winter_solstice),
            "next_spring_equinox": format_utc(self.next_spring_equinox),
            "aphelion": format_utc(self.aphelion),
            "perihelion": format_utc(self.perihelion),
            "birth": format_utc(self.birth),
        }


@dataclass(frozen=True)
class EventTag:
    name: str
    description: str
    instant: datetime

    def to_dict(self) -> Dict[str, str]:
        return {"name": self.name, "description": self.description, "date": format_utc(self.instant)}


@dataclass(frozen=True)
class DayRecord:
    number_in_month: int
    civil_date: date
    solar_start: datetime
    solar_noon: datetime
    solar_end: datetime
    moon_phase_label: str
    length_delta_seconds: float
    orbital_degree: float
    events: Tuple[EventTag, ...] = ()

    def to_dict(self, tz_name: str = "UTC") -> Dict[str, Any]:
        return {
            "number": self.number_in_month,
            "date": self.civil_date.isoformat(),
            "solar_start": format_utc(self.solar_start),
            "solar_noon": format_local_time(self.solar_noon, tz_name),
            "solar_end": format_utc(self.solar_end),
            "moon_phase": self.moon_phase_label,
            "delta": format_delta(self.length_delta_seconds),
            "solar_degree": self.orbital_degree,
            "events": [e.to_dict() for e in self.events],
        }


@dataclass(frozen=True)
class MonthRecord:
    month_index: int
    zodiac_name: str
    total_days: int
    days: Tuple[DayRecord, ...]

    def to_dict(self, tz_name: str = "UTC") -> Dict[str, Any]:
        return {
            "month": self.month_index,
            "name": self.zodiac_name,
            "total_days": self.total_days,
            "days": [d.to_dict(tz_name) for d in self.days],
        }


@dataclass(frozen=True)
class CalendarYear:
    year: int
    months: Tuple[MonthRecord, ...]
    events: AstronomicalEventSet
    observer: Observer
    birth_degree: float
    birthday: datetime
    birthday_fallback: bool
    warnings: Tuple[str, ...] = field(default_factory=tuple)

    def __len__(self) -> int:
        return len(self.months)

    def __iter__(self):
        return iter(self.months)

    def __getitem__(self, i: int) -> MonthRecord:
        return self.months[i]

    @property
    def total_days(self) -> int:
        return sum(m.total_days for m in self.months)

    def days(self) -> List[DayRecord]:
        return [d for m in self.months for d in m.days]

    def find_event(self, name: str) -> List[DayRecord]:
        return [d for d in self.days() if any(e.name == name for e in d.events)]

    def day_for(self, civil_date: date) -> Optional[DayRecord]:
        for d in self.days():
            if d.civil_date == civil_date:
                return d
        return None

    def to_dict(self) -> Dict[str, Any]:
        tz_name = self.observer.timezone
        return {
            "year": self.year,
            "observer": self.observer.to_dict(),
            "events": self.events.to_dict(),
            "birth_degree": self.birth_degree,
            "birthday": format_utc(self.birthday),
            "birthday_fallback": self.birthday_fallback,
            "total_days": self.total_days,
            "months": [m.to_dict(tz_name) for m in self.months],
            "warnings": list(self.warnings),
        }
