# tests/conftest.py
from __future__ import annotations

"""
Pytest configuration for the heliocal suite.

- Registers Hypothesis profiles for local dev and CI.
- Freezes the process TZ to UTC (we always pass IANA zones explicitly).
- Provides the deterministic fake ephemeris and the reference birth parameters (Middletown, NY).
- Adds a 'slow' marker for the real-kernel run.
"""

import os
import pytest
from hypothesis import settings, HealthCheck

from fakes import FakeEphemeris


# ──────────────────────────────────────────────────────────────────────────────
# Hypothesis profiles
# ──────────────────────────────────────────────────────────────────────────────
settings.register_profile(
    "dev",
    settings(
        deadline=None,           # avoid flaky timeouts on slower runners
        max_examples=60,         # fast local runs
        suppress_health_check=[HealthCheck.too_slow],
    ),
)
settings.register_profile(
    "ci",
    settings(
        deadline=None,
        max_examples=120,        # a bit more coverage in CI
        suppress_health_check=[HealthCheck.too_slow],
    ),
)

_profile = (
    "ci"
    if (os.getenv("CI") or os.getenv("GITHUB_ACTIONS"))
    else os.getenv("HYPOTHESIS_PROFILE", "dev")
)
settings.load_profile(_profile)


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "slow: mark test as slow")
    config.addinivalue_line("filterwarnings", "ignore::DeprecationWarning")


def pytest_report_header(config: pytest.Config) -> str:
    return f"Hypothesis profile: '{_profile}'"


# ──────────────────────────────────────────────────────────────────────────────
# Global fixtures
# ──────────────────────────────────────────────────────────────────────────────

@pytest.fixture(scope="session", autouse=True)
def freeze_tz_env():
    """Ensure the process TZ is UTC so nothing depends on the runner's local zone."""
    prev = os.environ.get("TZ")
    os.environ["TZ"] = "UTC"
    try:
        yield
    finally:
        if prev is None:
            os.environ.pop("TZ", None)
        else:
            os.environ["TZ"] = prev


@pytest.fixture(scope="session")
def ensure_tzdata():
    """Sanity-check that the IANA zones used by the suite resolve on this machine."""
    from zoneinfo import ZoneInfo
    for name in ("UTC", "America/New_York", "Europe/Berlin"):
        ZoneInfo(name)


@pytest.fixture
def fake_provider() -> FakeEphemeris:
    return FakeEphemeris()


@pytest.fixture
def birth_params():
    """Birth 2000-02-04 10:00 America/New_York, observed from Middletown, NY."""
    return {
        "birth_date": "2000-02-04",
        "birth_time": "10:00",
        "timezone": "America/New_York",
        "latitude": 41.454380,
        "longitude": -74.430420,
        "elevation": 0.0,
    }
