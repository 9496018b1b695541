"""
Unit tests for engine configuration module.
"""

import pytest
import json
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from visionbridge.config import (
    EngineConfig,
    ScanSettings,
    create_default_config,
    load_config_from_json,
    load_settings_from_json,
    save_config_to_json,
    parse_size,
)
from visionbridge.data_model import LightingCondition


def write_json(path: Path, data) -> str:
    path.write_text(json.dumps(data))
    return str(path)


class TestEngineConfig:
    """Tests for EngineConfig dataclass."""

    def test_default_thresholds(self):
        """Thresholds loosen as lighting worsens."""
        config = EngineConfig()
        assert config.threshold_for(LightingCondition.GOOD) == 0.7
        assert config.threshold_for(LightingCondition.LOW) == 0.6
        assert config.threshold_for(LightingCondition.POOR) == 0.5

    def test_default_parameters(self):
        config = create_default_config()
        assert config.vertical_fov_degrees == 60.0
        assert config.history_size == 3
        assert config.stability_ratio == 0.6
        assert config.min_distance == 0.5
        assert config.max_distance == 50.0
        assert config.dangerous_classes == {"car", "truck", "bus", "motorcycle", "bicycle"}

    def test_invalid_history_size(self):
        with pytest.raises(ValueError):
            create_default_config(history_size=0)

    def test_invalid_threshold(self):
        config = EngineConfig(confidence_thresholds={"good": 1.5, "low": 0.6, "poor": 0.5})
        with pytest.raises(ValueError):
            config.validate()

    def test_missing_threshold(self):
        config = EngineConfig(confidence_thresholds={"good": 0.7})
        with pytest.raises(ValueError):
            config.validate()

    def test_invalid_distance_clamp(self):
        config = EngineConfig(min_distance=10.0, max_distance=5.0)
        with pytest.raises(ValueError):
            config.validate()


class TestConfigLoading:
    """Tests for configuration loading and saving."""

    def test_load_partial_config(self, tmp_path):
        """Keys in the file override defaults, the rest stay default."""
        path = write_json(tmp_path / "config.json", {
            "vertical_fov_degrees": 70.0,
            "confidence_thresholds": {"poor": 0.4},
            "reference_heights": {"Stroller": 1.0},
        })

        config = load_config_from_json(path)

        assert config.vertical_fov_degrees == 70.0
        assert config.threshold_for(LightingCondition.POOR) == 0.4
        assert config.threshold_for(LightingCondition.GOOD) == 0.7
        assert config.reference_heights == {"stroller": 1.0}
        assert config.history_size == 3

    def test_load_engine_section(self, tmp_path):
        path = write_json(tmp_path / "config.json", {
            "engine": {"history_size": 5, "dangerous_classes": ["car", "train"]},
            "session": {"capture_interval": 1.5},
        })

        config = load_config_from_json(path)

        assert config.history_size == 5
        assert config.dangerous_classes == frozenset({"car", "train"})

    def test_load_missing_file(self):
        with pytest.raises(FileNotFoundError):
            load_config_from_json("/nonexistent/path/config.json")

    def test_load_unknown_field(self, tmp_path):
        path = write_json(tmp_path / "config.json", {"focal_length": 700})
        with pytest.raises(ValueError):
            load_config_from_json(path)

    def test_load_invalid_value(self, tmp_path):
        path = write_json(tmp_path / "config.json", {"stability_ratio": 1.5})
        with pytest.raises(ValueError):
            load_config_from_json(path)

    def test_load_non_object(self, tmp_path):
        path = write_json(tmp_path / "config.json", [1, 2, 3])
        with pytest.raises(ValueError):
            load_config_from_json(path)

    def test_dangerous_classes_lowercased(self, tmp_path):
        path = write_json(tmp_path / "config.json", {"dangerous_classes": ["Car", " Train "]})
        config = load_config_from_json(path)
        assert config.dangerous_classes == frozenset({"car", "train"})

    def test_numeric_strings_coerced(self, tmp_path):
        path = write_json(tmp_path / "config.json", {
            "history_size": "4",
            "vertical_fov_degrees": "55",
            "confidence_thresholds": {"good": "0.8"},
        })
        config = load_config_from_json(path)
        assert config.history_size == 4
        assert isinstance(config.history_size, int)
        assert config.vertical_fov_degrees == 55.0
        assert config.threshold_for(LightingCondition.GOOD) == 0.8

    @pytest.mark.parametrize("data", [
        {"history_size": "three"},
        {"history_size": 2.5},
        {"history_size": True},
        {"min_distance": None},
        {"dangerous_classes": "car"},
        {"reference_heights": {"stroller": "tall"}},
        {"confidence_thresholds": [0.7, 0.6, 0.5]},
        {"engine": [1, 2]},
    ])
    def test_wrong_types_raise_value_error(self, tmp_path, data):
        path = write_json(tmp_path / "config.json", data)
        with pytest.raises(ValueError):
            load_config_from_json(path)

    def test_save_and_load_config(self, tmp_path):
        """Saved configuration loads back with the same values."""
        original = create_default_config(vertical_fov_degrees=55.0, history_size=4)
        original.reference_heights = {"stroller": 1.0}
        settings = ScanSettings(capture_interval=2.0, vibration_enabled=False)
        path = str(tmp_path / "saved.json")

        save_config_to_json(original, path, settings)
        loaded = load_config_from_json(path)
        loaded_settings = load_settings_from_json(path)

        assert loaded.vertical_fov_degrees == 55.0
        assert loaded.history_size == 4
        assert loaded.dangerous_classes == original.dangerous_classes
        assert loaded.reference_heights == {"stroller": 1.0}
        assert loaded_settings.capture_interval == 2.0
        assert loaded_settings.vibration_enabled is False


class TestScanSettings:
    """Tests for scan session settings."""

    def test_defaults(self):
        settings = ScanSettings()
        assert settings.continuous_mode
        assert settings.capture_interval == 3.0
        assert settings.initial_delay == 1.0
        assert settings.vibration_enabled

    def test_missing_session_section(self, tmp_path):
        path = write_json(tmp_path / "config.json", {"history_size": 3})
        settings = load_settings_from_json(path)
        assert settings == ScanSettings()

    def test_invalid_interval(self, tmp_path):
        path = write_json(tmp_path / "config.json", {"session": {"capture_interval": 0}})
        with pytest.raises(ValueError):
            load_settings_from_json(path)

    def test_unknown_session_field(self, tmp_path):
        path = write_json(tmp_path / "config.json", {"session": {"speech_rate": 1.0}})
        with pytest.raises(ValueError):
            load_settings_from_json(path)

    def test_manual_mode_from_json(self, tmp_path):
        path = write_json(tmp_path / "config.json", {
            "session": {"continuous_mode": False, "history_limit": "10"}
        })
        settings = load_settings_from_json(path)
        assert settings.continuous_mode is False
        assert settings.history_limit == 10

    @pytest.mark.parametrize("session", [
        {"continuous_mode": "no"},
        {"capture_interval": "soon"},
        [1, 2],
    ])
    def test_wrong_session_types(self, tmp_path, session):
        path = write_json(tmp_path / "config.json", {"session": session})
        with pytest.raises(ValueError):
            load_settings_from_json(path)


class TestParseSize:
    """Tests for WIDTHxHEIGHT parsing."""

    def test_valid_size(self):
        assert parse_size("1280x720") == (1280, 720)
        assert parse_size("640X480") == (640, 480)

    @pytest.mark.parametrize("value", ["1280", "axb", "0x720", "1280x720x3"])
    def test_invalid_size(self, value):
        with pytest.raises(ValueError):
            parse_size(value)
