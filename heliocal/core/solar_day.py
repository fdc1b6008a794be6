# heliocal/core/solar_day.py
"""
Solar day windows.

A solar day is bracketed by two consecutive lower culminations of the Sun
(hour angle 12 h) around local solar noon (hour angle 0). Its deviation from
86 400 s is reported signed and never clamped.
"""
from __future__ import annotations

from datetime import date, datetime, time, timezone

from heliocal.core.civil_time import to_millis
from heliocal.core.constants import (
    BOUNDARY_HOUR_ANGLE_HOURS,
    DEGREES_IN_CIRCLE,
    MILLISECONDS_PER_DAY,
    MOON_PHASE_BINS,
    NOON_HOUR_ANGLE_DEG,
)
from heliocal.core.ephemeris_adapter import EphemerisProvider
from heliocal.core.models import Observer, SolarDayWindow

__all__ = ["moon_phase_label", "length_delta_seconds", "day_anchor", "SolarDayResolver"]


def moon_phase_label(phase_angle_deg: float) -> str:
    """Label for a lunar phase angle; half-open 45° bins, the last one closed at 360°."""
    angle = float(phase_angle_deg)
    if not (0.0 <= angle <= DEGREES_IN_CIRCLE):
        raise ValueError(f"lunar phase angle out of range: {angle}")
    for upper, label in MOON_PHASE_BINS:
        if angle < upper:
            return label
    return MOON_PHASE_BINS[-1][1]


def length_delta_seconds(start: datetime, end: datetime) -> float:
    return (to_millis(end) - to_millis(start) - MILLISECONDS_PER_DAY) / 1000.0


def day_anchor(day: date) -> datetime:
    """00:00 UTC of a civil date; the noon search for that date starts here."""
    return datetime.combine(day, time(0), tzinfo=timezone.utc)


class SolarDayResolver:
    """Resolves the solar day window around the solar noon of a civil (UTC) date."""

    def __init__(
        self,
        provider: EphemerisProvider,
        observer: Observer,
        boundary_hour_angle_hours: float = BOUNDARY_HOUR_ANGLE_HOURS,
    ):
        self.provider = provider
        self.observer = observer
        self.boundary_hour_angle_deg = float(boundary_hour_angle_hours) * 15.0

    def resolve(self, day: date) -> SolarDayWindow:
        # first noon after 00:00 UTC of the date itself
        noon = self.provider.hour_angle_crossing(self.observer, NOON_HOUR_ANGLE_DEG, day_anchor(day), 1)
        start = self.provider.hour_angle_crossing(self.observer, self.boundary_hour_angle_deg, noon, -1)
        end = self.provider.hour_angle_crossing(self.observer, self.boundary_hour_angle_deg, noon, 1)
        phase = self.provider.lunar_phase_angle(noon)
        return SolarDayWindow(
            start=start,
            noon=noon,
            end=end,
            moon_phase_label=moon_phase_label(phase),
            length_delta_seconds=length_delta_seconds(start, end),
        )
