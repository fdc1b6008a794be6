# heliocal/core/reference_frame.py
"""
Reference-frame normalization: heliocentric longitude → offset from a spring
equinox reference, wrapped to [0, 360).

Two precisions:
  normalize()     : rounded to DISPLAY_DECIMALS; month buckets, display, birth target
  offset_exact()  : full precision; every comparison inside the birthday search
"""
from __future__ import annotations

import math

from heliocal.core.constants import DEGREES_IN_CIRCLE, DEGREES_PER_MONTH, DISPLAY_DECIMALS, MONTHS_IN_YEAR

__all__ = ["offset_exact", "normalize", "month_index"]


def offset_exact(longitude: float, reference_longitude: float) -> float:
    """Unrounded (longitude − reference) wrapped to [0, 360)."""
    v = math.fmod(float(longitude) - float(reference_longitude) + DEGREES_IN_CIRCLE, DEGREES_IN_CIRCLE)
    if v < 0.0:
        v += DEGREES_IN_CIRCLE
    # fmod of a tiny negative can land exactly on 360.0 after the correction
    return 0.0 if v >= DEGREES_IN_CIRCLE else v


def normalize(longitude: float, reference_longitude: float) -> float:
    """Offset from the reference, rounded to 2 decimals, strictly inside [0, 360)."""
    v = round(offset_exact(longitude, reference_longitude), DISPLAY_DECIMALS)
    return 0.0 if v >= DEGREES_IN_CIRCLE else v


def month_index(degree: float) -> int:
    """0-based orbital month bucket for a normalized degree; 12 wraps back to 0."""
    idx = int(math.floor(degree / DEGREES_PER_MONTH))
    if idx >= MONTHS_IN_YEAR:
        idx = 0
    return idx
