# tests/test_config.py
from __future__ import annotations

from heliocal.core.assembler import CalendarConfig
from heliocal.core.ephemeris_adapter import Config
from heliocal.utils.config import calendar_config, ephemeris_config, load_config


def _write(tmp_path, text: str) -> str:
    p = tmp_path / "heliocal.yaml"
    p.write_text(text, encoding="utf-8")
    return str(p)


def test_yaml_sections_become_dataclass_configs(tmp_path) -> None:
    path = _write(tmp_path, """
ephemeris:
  frame: ecliptic-of-date
  kernel_path: null
  unknown_key: 1
calendar:
  max_search_iterations: 60
  progress_every_days: 7
""")
    cfg = load_config(path)
    assert cfg.ephemeris.frame == "ecliptic-of-date"

    eph = ephemeris_config(cfg)
    assert isinstance(eph, Config)
    assert eph.frame == "ecliptic-of-date"
    assert eph.kernel_path is None

    cal = calendar_config(cfg)
    assert isinstance(cal, CalendarConfig)
    assert cal.max_search_iterations == 60
    assert cal.progress_every_days == 7
    assert cal.degree_precision == CalendarConfig().degree_precision


def test_env_overrides_file(tmp_path, monkeypatch) -> None:
    path = _write(tmp_path, "calendar:\n  degree_precision: 0.01\n")
    monkeypatch.setenv("HELIOCAL_DEGREE_PRECISION", "0.0005")
    monkeypatch.setenv("HELIOCAL_ALLOW_DOWNLOAD", "yes")
    cfg = load_config(path)
    assert calendar_config(cfg).degree_precision == 0.0005
    assert ephemeris_config(cfg).allow_download is True


def test_empty_file_gives_defaults(tmp_path) -> None:
    cfg = load_config(_write(tmp_path, ""))
    assert calendar_config(cfg) == CalendarConfig()
    assert cfg["ephemeris"] == {}
