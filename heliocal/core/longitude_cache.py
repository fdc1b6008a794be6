# heliocal/core/longitude_cache.py
from __future__ import annotations

from datetime import datetime
from typing import Dict
import logging

from heliocal.core.civil_time import memo_key
from heliocal.core.ephemeris_adapter import EphemerisProvider

log = logging.getLogger(__name__)

__all__ = ["LongitudeMemo"]


class LongitudeMemo:
    """
    Per-run memo of heliocentric longitude lookups.

    Keys are canonical ISO-8601 UTC strings at millisecond resolution, so two
    instants 1 ms apart are distinct entries. One instance belongs to exactly one
    calendar generation; it is unbounded for the life of that run.
    """

    def __init__(self, provider: EphemerisProvider):
        self.provider = provider
        self.store: Dict[str, float] = {}
        self.hits = 0
        self.misses = 0

    def longitude_at(self, instant: datetime) -> float:
        key = memo_key(instant)
        cached = self.store.get(key)
        if cached is not None:
            self.hits += 1
            return cached
        self.misses += 1
        value = float(self.provider.heliocentric_longitude(instant))
        self.store[key] = value
        return value

    def clear(self) -> None:
        self.store.clear()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self.store)

    def __contains__(self, instant: datetime) -> bool:
        return memo_key(instant) in self.store
