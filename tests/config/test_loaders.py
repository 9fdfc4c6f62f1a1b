"""
Tests for loading engine settings from YAML.
"""
import pytest

from comp_grading.config.loaders import (
    CONFIG_ENV_VAR,
    ConfigLoadError,
    load_settings,
    load_yaml_config,
    settings_from_dict,
)
from comp_grading.config.models import EngineSettings

pytestmark = [pytest.mark.config, pytest.mark.unit]


def test_defaults_without_config(monkeypatch):
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    settings = load_settings()
    assert settings == EngineSettings()
    assert settings.comparison_capacity == 4
    assert settings.debounce_seconds == 0.5


def test_load_from_path(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "grading:\n"
        "  debounce_seconds: 0.1\n"
        "  comparison_capacity: 3\n"
        "  risk_thresholds:\n"
        "    vertical_high: 30\n"
        "other_section:\n"
        "  anything: goes\n",
        encoding="utf-8",
    )
    settings = load_settings(path)
    assert settings.debounce_seconds == 0.1
    assert settings.comparison_capacity == 3
    assert settings.risk_thresholds.vertical_high == 30
    assert settings.risk_thresholds.horizontal_high == 15


def test_load_from_environment(tmp_path, monkeypatch):
    path = tmp_path / "env.yaml"
    path.write_text("grading:\n  skip_unchanged_recalculation: false\n", encoding="utf-8")
    monkeypatch.setenv(CONFIG_ENV_VAR, str(path))
    assert load_settings().skip_unchanged_recalculation is False


def test_empty_file_gives_defaults(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("", encoding="utf-8")
    assert load_yaml_config(path) == {}
    assert load_settings(path) == EngineSettings()


def test_missing_file(tmp_path):
    with pytest.raises(ConfigLoadError, match="not found"):
        load_yaml_config(tmp_path / "missing.yaml")


def test_invalid_yaml(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("grading: [unclosed\n", encoding="utf-8")
    with pytest.raises(ConfigLoadError):
        load_yaml_config(path)


def test_schema_violation():
    with pytest.raises(ConfigLoadError, match="validation failed"):
        settings_from_dict({"grading": {"comparison_capacity": 0}})


def test_wrong_type():
    with pytest.raises(ConfigLoadError):
        settings_from_dict({"grading": {"debounce_seconds": "soon"}})


def test_inconsistent_thresholds():
    with pytest.raises(ConfigLoadError, match="Invalid grading settings"):
        settings_from_dict({"grading": {"risk_thresholds": {"vertical_medium": 40, "vertical_high": 30}}})
