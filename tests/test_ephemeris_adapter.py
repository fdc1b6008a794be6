# tests/test_ephemeris_adapter.py
from __future__ import annotations

import pytest

import heliocal.core.ephemeris_adapter as adapter
from heliocal.core.ephemeris_adapter import Config, EphemerisError, SkyfieldEphemeris


def test_kernel_is_resolved_once_per_adapter(monkeypatch) -> None:
    calls = []
    sentinel = object()

    def fake_get_kernel(cfg):
        calls.append(cfg)
        return sentinel

    monkeypatch.setattr(adapter, "_get_kernel", fake_get_kernel)
    eph = SkyfieldEphemeris(Config())
    assert calls == []
    for _ in range(5):
        assert eph.kernel is sentinel
    assert len(calls) == 1


def test_kernel_failure_is_not_cached(monkeypatch) -> None:
    attempts = []

    def missing_kernel(cfg):
        attempts.append(cfg)
        raise EphemerisError("kernel", "No local DE421 found")

    monkeypatch.setattr(adapter, "_get_kernel", missing_kernel)
    eph = SkyfieldEphemeris(Config())
    for _ in range(2):
        with pytest.raises(EphemerisError):
            eph.kernel
    assert len(attempts) == 2


def test_unknown_frame_rejected() -> None:
    with pytest.raises(EphemerisError) as ei:
        SkyfieldEphemeris(Config(frame="galactic"))
    assert ei.value.stage == "frame"
