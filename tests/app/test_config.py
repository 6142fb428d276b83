from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from adapters.layout.serpentine import LayoutConfig
from app.config import AppSettings, LayoutSettings, load_settings
from domain.models import Size


def _write_yaml(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "flowmap.yaml"
    path.write_text(text, encoding="utf-8")
    return path


def test_yaml_file_is_loaded(tmp_path: Path) -> None:
    path = _write_yaml(
        tmp_path,
        "layout:\n  columns: 5\n  gap_x: 80\napi:\n  title: Ops Maps\n  log_level: debug\n",
    )

    settings = load_settings(path)

    assert settings.layout.columns == 5
    assert settings.layout.gap_x == 80
    assert settings.api.title == "Ops Maps"
    assert settings.api.log_level == "DEBUG"


def test_env_overrides_yaml(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = _write_yaml(tmp_path, "layout:\n  columns: 5\n")
    monkeypatch.setenv("FLOWMAP_LAYOUT__COLUMNS", "6")

    assert load_settings(path).layout.columns == 6


def test_config_path_from_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = _write_yaml(tmp_path, "layout:\n  max_columns: 6\n")
    monkeypatch.setenv("FLOWMAP_CONFIG_PATH", str(path))

    assert load_settings().layout.max_columns == 6


def test_missing_config_file_is_an_error(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_settings(tmp_path / "missing.yaml")


def test_auto_columns_mean_computed() -> None:
    assert LayoutSettings(columns="auto").columns is None


def test_inverted_ranges_are_rejected() -> None:
    with pytest.raises(ValidationError, match="min_columns"):
        LayoutSettings(min_columns=9, max_columns=3)
    with pytest.raises(ValidationError, match="min_font_size"):
        LayoutSettings(min_font_size=16, max_font_size=12)


def test_settings_build_layout_config() -> None:
    config = LayoutSettings(node_width=200, columns=4, label_max_nudges=2).to_layout_config()

    assert isinstance(config, LayoutConfig)
    assert config.node_size == Size(200, 72)
    assert config.columns == 4
    assert config.label_max_nudges == 2


def test_defaults_without_yaml() -> None:
    settings = AppSettings()

    assert settings.layout.columns is None
    assert settings.api.title == "Process Flow Layout"
