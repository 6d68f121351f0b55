"""Tests for config loading with JSON and YAML support."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

import choreo.core.config.loader as config_loader
from choreo.core.config import AppConfig


@pytest.fixture(autouse=True)
def _reset_cache():
    config_loader.clear_app_config_cache()
    yield
    config_loader.clear_app_config_cache()


@pytest.fixture
def sample_config_data() -> dict:
    """Sample configuration data for testing."""
    return {
        "timing": {"default_duration_ms": 250, "frame_interval_ms": 20},
        "sync": {"cascade_offset_ms": 80},
        "state_machine": {"history_limit": 10},
        "logging": {"level": "DEBUG"},
    }


def test_detect_format() -> None:
    """Format detection by extension."""
    assert config_loader.detect_format("scene.json") == "json"
    assert config_loader.detect_format(Path("scene.yaml")) == "yaml"
    assert config_loader.detect_format("scene.YML") == "yaml"


def test_detect_format_invalid() -> None:
    with pytest.raises(ValueError) as exc_info:
        config_loader.detect_format("scene.txt")

    assert "Unsupported config format" in str(exc_info.value)


def test_load_config_json(tmp_path: Path, sample_config_data: dict) -> None:
    config_file = tmp_path / "choreo.json"
    config_file.write_text(json.dumps(sample_config_data))

    assert config_loader.load_config(config_file) == sample_config_data


def test_load_config_yaml(tmp_path: Path, sample_config_data: dict) -> None:
    config_file = tmp_path / "choreo.yaml"
    config_file.write_text(yaml.safe_dump(sample_config_data))

    assert config_loader.load_config(config_file) == sample_config_data


def test_load_config_empty_yaml(tmp_path: Path) -> None:
    config_file = tmp_path / "empty.yaml"
    config_file.write_text("")

    assert config_loader.load_config(config_file) == {}


def test_load_config_missing(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        config_loader.load_config(tmp_path / "nope.yaml")


def test_load_config_invalid_json(tmp_path: Path) -> None:
    config_file = tmp_path / "broken.json"
    config_file.write_text("{not json")

    with pytest.raises(ValueError, match="Invalid JSON"):
        config_loader.load_config(config_file)


def test_load_config_invalid_yaml(tmp_path: Path) -> None:
    config_file = tmp_path / "broken.yaml"
    config_file.write_text("timing: [unclosed")

    with pytest.raises(ValueError, match="Invalid YAML"):
        config_loader.load_config(config_file)


def test_load_app_config_validates(tmp_path: Path, sample_config_data: dict) -> None:
    config_file = tmp_path / "choreo.yaml"
    config_file.write_text(yaml.safe_dump(sample_config_data))

    config = config_loader.load_app_config(config_file)

    assert config.timing.default_duration_ms == 250
    assert config.sync.cascade_offset_ms == 80
    assert config.state_machine.history_limit == 10
    assert config.stagger.delay_ms == 50.0


def test_load_app_config_rejects_unknown_keys(tmp_path: Path) -> None:
    config_file = tmp_path / "choreo.json"
    config_file.write_text(json.dumps({"timing": {"warp_factor": 9}}))

    with pytest.raises(ValidationError):
        config_loader.load_app_config(config_file)


def test_load_app_config_missing_file_uses_defaults(tmp_path: Path) -> None:
    config = config_loader.load_app_config(tmp_path / "absent.yaml")
    assert config == AppConfig()


def test_default_path_is_cached(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    (tmp_path / "choreo.yaml").write_text("sync:\n  cascade_offset_ms: 10\n")

    first = config_loader.load_app_config()
    (tmp_path / "choreo.yaml").write_text("sync:\n  cascade_offset_ms: 99\n")

    assert config_loader.load_app_config() is first
    config_loader.clear_app_config_cache()
    assert config_loader.load_app_config().sync.cascade_offset_ms == 99


def test_configure_logging_from_config() -> None:
    config = AppConfig.model_validate({"logging": {"level": "WARNING"}})

    config_loader.configure_logging_from_config(config)

    assert logging.getLogger().level == logging.WARNING


def test_logging_level_is_validated() -> None:
    with pytest.raises(ValidationError):
        AppConfig.model_validate({"logging": {"level": "LOUD"}})
