# heliocal/core/orbital_search.py
# -*- coding: utf-8 -*-
"""
Orbital target locator: find the instant Earth reaches a target reference degree.

Algorithm
---------
1) Day filter: a solar day [start, end) is a candidate when its start/end degrees
   bracket the target, allowing for the 360°→0° seam (covers_target).
2) Bisection on integer epoch milliseconds inside a candidate day, up to
   MAX_BINARY_SEARCH_ITERATIONS probes; success when |D_mid − T| < DEGREE_PRECISION.
   Direction comes from search_later(), which inverts the plain numeric comparison
   when the probe and the target sit on opposite sides of the seam.
3) Year policy (BirthdayTracker): the raw birth instant is the fallback; every match
   replaces the current answer, so the latest-processed match wins.

All degrees here are unrounded (offset_exact); the 2-decimal normalizer is never
used for a search comparison.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional
import logging

from heliocal.core.civil_time import format_utc, from_millis, to_millis
from heliocal.core.constants import DEGREE_PRECISION, MAX_BINARY_SEARCH_ITERATIONS
from heliocal.core.longitude_cache import LongitudeMemo
from heliocal.core.models import SolarDayWindow
from heliocal.core.reference_frame import offset_exact

log = logging.getLogger(__name__)

__all__ = [
    "covers_target",
    "search_later",
    "SearchResult",
    "bisect_window",
    "TargetLocator",
    "BirthdayTracker",
]


# ── seam-aware comparisons (pure) ─────────────────────────────────────────────
def covers_target(d_start: float, d_end: float, target: float) -> bool:
    """True when the degree range [d_start, d_end] contains target, wrapping at 360°."""
    if d_start <= d_end:
        return d_start <= target <= d_end
    return target >= d_start or target <= d_end


def search_later(d_mid: float, target: float, d_start: float, d_end: float) -> bool:
    """
    Whether the crossing lies after the probe.

    Plain comparison says "later" when d_mid < target. In a day that straddles the
    seam (d_start > d_end) a probe already past 0° with a pre-seam target is too late,
    and a probe still before 360° with a post-seam target is too early.
    """
    wraps = d_start > d_end
    if d_mid < target:
        if wraps and d_mid < d_end and target > d_start:
            return False
        return True
    if wraps and d_mid > d_start and target < d_end:
        return True
    return False


# ── bisection ─────────────────────────────────────────────────────────────────
@dataclass(frozen=True)
class SearchResult:
    instant: Optional[datetime]
    degree: Optional[float]
    iterations: int

    @property
    def converged(self) -> bool:
        return self.instant is not None


def bisect_window(
    start: datetime,
    end: datetime,
    target: float,
    degree_at: Callable[[datetime], float],
    *,
    d_start: Optional[float] = None,
    d_end: Optional[float] = None,
    precision: float = DEGREE_PRECISION,
    max_iterations: int = MAX_BINARY_SEARCH_ITERATIONS,
) -> SearchResult:
    """Bisect [start, end] (ms resolution) for the instant whose degree is within precision of target."""
    if d_start is None:
        d_start = degree_at(start)
    if d_end is None:
        d_end = degree_at(end)

    low, high = to_millis(start), to_millis(end)
    iterations = 0
    while low <= high and iterations < max_iterations:
        iterations += 1
        mid = low + (high - low) // 2
        probe = from_millis(mid)
        d_mid = degree_at(probe)

        if abs(d_mid - target) < precision:
            return SearchResult(instant=probe, degree=d_mid, iterations=iterations)
        if search_later(d_mid, target, d_start, d_end):
            low = mid + 1
        else:
            high = mid - 1

    return SearchResult(instant=None, degree=None, iterations=iterations)


class TargetLocator:
    """Checks solar day windows against a constant target degree for one generation run."""

    def __init__(
        self,
        memo: LongitudeMemo,
        reference_longitude: float,
        target: float,
        *,
        precision: float = DEGREE_PRECISION,
        max_iterations: int = MAX_BINARY_SEARCH_ITERATIONS,
    ):
        self.memo = memo
        self.reference_longitude = float(reference_longitude)
        self.target = float(target)
        self.precision = precision
        self.max_iterations = max_iterations

    def degree_at(self, instant: datetime) -> float:
        return offset_exact(self.memo.longitude_at(instant), self.reference_longitude)

    def locate(self, window: SolarDayWindow) -> Optional[SearchResult]:
        """SearchResult for a candidate day (converged or not); None if the day cannot contain the target."""
        d_start = self.degree_at(window.start)
        d_end = self.degree_at(window.end)
        if not covers_target(d_start, d_end, self.target):
            return None

        result = bisect_window(
            window.start,
            window.end,
            self.target,
            self.degree_at,
            d_start=d_start,
            d_end=d_end,
            precision=self.precision,
            max_iterations=self.max_iterations,
        )
        if result.converged:
            log.info(
                "Orbital birthday found at %s (degree %.6f, target %.6f, %d iterations)",
                format_utc(result.instant), result.degree, self.target, result.iterations,
            )
        else:
            log.debug(
                "Candidate day %s..%s did not converge after %d iterations",
                format_utc(window.start), format_utc(window.end), result.iterations,
            )
        return result


class BirthdayTracker:
    """Running answer for the year: starts at the birth instant; the latest match wins."""

    def __init__(self, fallback: datetime):
        self.fallback = fallback
        self.instant = fallback
        self.matches = 0

    def record(self, result: Optional[SearchResult]) -> None:
        if result is None or not result.converged:
            return
        if self.matches:
            log.warning(
                "Orbital birthday matched again at %s; replacing %s",
                format_utc(result.instant), format_utc(self.instant),
            )
        self.instant = result.instant
        self.matches += 1

    @property
    def fallback_used(self) -> bool:
        return self.matches == 0
