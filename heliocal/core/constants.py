# heliocal/core/constants.py
# -*- coding: utf-8 -*-
"""
Heliocal: core constants

Purpose
-------
Single source of truth for:
- circle / month geometry of the orbital calendar
- orbital-birthday search precision
- solar-day boundary hour angle
- moon phase bins & labels
- zodiac month names (orbital buckets, not civil months)
- astronomical event names & descriptions

Design
------
- Pure-Python, no external dependencies.
- Safe to import from any core module.
- Constants are immutable by convention.
"""

from __future__ import annotations
from typing import Dict, Tuple

__all__ = [
    # geometry
    "DEGREES_IN_CIRCLE", "DEGREES_PER_MONTH", "MONTHS_IN_YEAR", "DISPLAY_DECIMALS",
    # time
    "MILLISECONDS_PER_DAY",
    # search
    "DEGREE_PRECISION", "MAX_BINARY_SEARCH_ITERATIONS",
    # solar day
    "NOON_HOUR_ANGLE_DEG", "BOUNDARY_HOUR_ANGLE_HOURS",
    # moon
    "MOON_PHASE_BINS",
    # months & events
    "ZODIAC_MONTHS", "BIRTH_ORBIT_EVENT", "BIRTH_ORBIT_DESCRIPTION", "SEASONAL_EVENT_INFO",
]

# ── circle / month geometry ──────────────────────────────────────────────────
DEGREES_IN_CIRCLE: float = 360.0
DEGREES_PER_MONTH: float = 30.0
MONTHS_IN_YEAR: int = 12

# Normalized degrees are rounded for display & month classification only.
DISPLAY_DECIMALS: int = 2

# ── time ──────────────────────────────────────────────────────────────────────
MILLISECONDS_PER_DAY: int = 86_400_000

# ── orbital-birthday search ──────────────────────────────────────────────────
# 0.001° of heliocentric longitude ≈ 4 s of time
DEGREE_PRECISION: float = 0.001
MAX_BINARY_SEARCH_ITERATIONS: int = 100

# ── solar day ─────────────────────────────────────────────────────────────────
NOON_HOUR_ANGLE_DEG: float = 0.0
# Solar day boundaries: Sun hour angle of 12 sidereal hours (lower culmination).
BOUNDARY_HOUR_ANGLE_HOURS: float = 12.0

# ── moon phase bins ──────────────────────────────────────────────────────────
# (upper bound exclusive, label); the last bin is closed at 360°.
MOON_PHASE_BINS: Tuple[Tuple[float, str], ...] = (
    (45.0, "New Moon"),
    (90.0, "Waxing Cres."),
    (135.0, "First Quarter"),
    (180.0, "Waxing Gibb."),
    (225.0, "Full Moon"),
    (270.0, "Waning Gibb."),
    (315.0, "Third Quarter"),
    (360.0, "Waning Cres."),
)

# ── orbital months ───────────────────────────────────────────────────────────
# Index 0 starts at the spring equinox (0°–30°).
ZODIAC_MONTHS: Tuple[str, ...] = (
    "Aries",        # 0°–30°   spring equinox
    "Taurus",       # 30°–60°
    "Gemini",       # 60°–90°
    "Cancer",       # 90°–120° summer solstice
    "Leo",          # 120°–150°
    "Virgo",        # 150°–180°
    "Libra",        # 180°–210° autumn equinox
    "Scorpio",      # 210°–240°
    "Sagittarius",  # 240°–270°
    "Capricorn",    # 270°–300° winter solstice
    "Aquarius",     # 300°–330°
    "Pisces",       # 330°–360°
)

# ── events ────────────────────────────────────────────────────────────────────
BIRTH_ORBIT_EVENT: str = "BirthOrbit"
BIRTH_ORBIT_DESCRIPTION: str = "Birthday"

# AstronomicalEventSet field -> (event name, description); order is display order.
SEASONAL_EVENT_INFO: Dict[str, Tuple[str, str]] = {
    "spring_equinox": ("Spring Equinox", "The beginning of Spring."),
    "summer_solstice": ("Summer Solstice", "The longest day of the year."),
    "autumn_equinox": ("Autumn Equinox", "The beginning of Autumn."),
    "winter_solstice": ("Winter Solstice", "The shortest day of the year."),
    "aphelion": ("Aphelion", "Earth is farthest away from the Sun."),
    "perihelion": ("Perihelion", "The Earth is closest to the Sun."),
}
