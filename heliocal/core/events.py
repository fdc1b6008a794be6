# heliocal/core/events.py
"""
Astronomical event set for one orbital year, and the birth degree.

The event set is composed from EphemerisProvider results:
  • equinoxes/solstices of the generation year (+ next year's spring equinox)
  • the first apsis after 1 May of the generation year and the one after it
  • the birth instant

Apsides are assigned by kind, so the pair is correct even when the first apsis
found is a perihelion.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import List
import logging

from heliocal.core.civil_time import format_utc
from heliocal.core.ephemeris_adapter import EphemerisError, EphemerisProvider
from heliocal.core.longitude_cache import LongitudeMemo
from heliocal.core.models import AstronomicalEventSet
from heliocal.core.reference_frame import normalize

log = logging.getLogger(__name__)

__all__ = ["APSIS_SEARCH_MONTH", "build_event_set", "outside_year", "reference_equinox", "birth_degree"]

# Apsis search starts here so the first hit is the July aphelion.
APSIS_SEARCH_MONTH = 5


def build_event_set(year: int, birth: datetime, provider: EphemerisProvider) -> AstronomicalEventSet:
    seasons = provider.seasonal_events(year)
    following = provider.seasonal_events(year + 1)

    first = provider.apsis(datetime(year, APSIS_SEARCH_MONTH, 1, tzinfo=timezone.utc))
    second = provider.next_apsis(first)
    by_kind = {first.kind: first.instant, second.kind: second.instant}
    if set(by_kind) != {"aphelion", "perihelion"}:
        raise EphemerisError(
            "apsis", "consecutive apsides are not an aphelion/perihelion pair",
            year=year, kinds=[first.kind, second.kind],
        )

    events = AstronomicalEventSet(
        spring_equinox=seasons.spring_equinox,
        summer_solstice=seasons.summer_solstice,
        autumn_equinox=seasons.autumn_equinox,
        winter_solstice=seasons.winter_solstice,
        next_spring_equinox=following.spring_equinox,
        aphelion=by_kind["aphelion"],
        perihelion=by_kind["perihelion"],
        birth=birth,
    )
    if not events.spring_equinox < events.next_spring_equinox:
        raise EphemerisError(
            "seasons", "spring equinox does not precede the next one",
            year=year, instant=format_utc(events.spring_equinox),
        )
    for name in outside_year(events):
        log.warning("%s %s falls outside orbital year %d", name,
                    format_utc(getattr(events, name)), year)
    return events


def outside_year(events: AstronomicalEventSet) -> List[str]:
    """Names of the six astronomical instants not in [spring_equinox, next_spring_equinox)."""
    names = ("spring_equinox", "summer_solstice", "autumn_equinox",
             "winter_solstice", "aphelion", "perihelion")
    lo, hi = events.spring_equinox, events.next_spring_equinox
    return [n for n in names if not (lo <= getattr(events, n) < hi)]


def reference_equinox(birth: datetime, provider: EphemerisProvider) -> datetime:
    """Spring equinox the birth is measured from: its own year's, or the previous one if born earlier."""
    year = birth.astimezone(timezone.utc).year
    equinox = provider.seasonal_events(year).spring_equinox
    if birth < equinox:
        equinox = provider.seasonal_events(year - 1).spring_equinox
    return equinox


def birth_degree(birth: datetime, provider: EphemerisProvider, memo: LongitudeMemo) -> float:
    equinox = reference_equinox(birth, provider)
    degree = normalize(memo.longitude_at(birth), memo.longitude_at(equinox))
    log.debug("Birth %s measured from equinox %s: %.2f°", format_utc(birth), format_utc(equinox), degree)
    return degree
