"""
Tests for config_loader module.

Tests defaults, JSON merging, validation and dotted lookups.
"""
import json
import tempfile
from pathlib import Path

import pytest

import config_loader


def write_config(data) -> Path:
    with tempfile.NamedTemporaryFile(mode="w", suffix=".json", delete=False) as tmp:
        if isinstance(data, str):
            tmp.write(data)
        else:
            json.dump(data, tmp)
        return Path(tmp.name)


class TestDefaults:
    """Test default configuration."""

    def test_defaults_valid(self):
        """Test the default configuration passes validation."""
        is_valid, error = config_loader.validate_config(config_loader.get_default_config())

        assert is_valid, error

    def test_missing_file_uses_defaults(self):
        """Test a missing file returns the defaults."""
        config = config_loader.load_config(Path("/nonexistent/config.json"))

        assert config == config_loader.get_default_config()


class TestLoadConfig:
    """Test loading and merging."""

    def test_partial_override_merged(self):
        """Test a partial file overrides only what it names."""
        path = write_config({"classification": {"echo_db_drop": 15.0}})
        try:
            config = config_loader.load_config(path)
        finally:
            path.unlink()

        assert config["classification"]["echo_db_drop"] == 15.0
        assert config["classification"]["running_interval_sec"] == 0.15
        assert config["audio"]["sample_rate"] == 44100

    def test_invalid_json(self):
        """Test malformed JSON raises ValueError."""
        path = write_config("{not json")
        try:
            with pytest.raises(ValueError):
                config_loader.load_config(path)
        finally:
            path.unlink()

    @pytest.mark.parametrize("override", [
        {"spectrum": {"fft_size": 1000}},
        {"audio": {"sample_rate": 0}},
        {"ambient": {"min_readings": 500}},
        {"classification": {"min_impact_ratio": 1.5}},
        {"event_detection": {"min_threshold": 0.5, "max_threshold": 0.1}},
    ])
    def test_invalid_values(self, override):
        """Test structurally invalid values raise ValueError."""
        path = write_config(override)
        try:
            with pytest.raises(ValueError):
                config_loader.load_config(path)
        finally:
            path.unlink()

    def test_missing_section_invalid(self):
        """Test validation reports missing sections."""
        config = config_loader.get_default_config()
        del config["ambient"]

        is_valid, error = config_loader.validate_config(config)

        assert not is_valid
        assert "ambient" in error


class TestGetConfigValue:
    """Test dotted-path lookup."""

    def test_nested_value(self):
        """Test reading a nested value."""
        config = config_loader.get_default_config()

        assert config_loader.get_config_value(config, "spectrum.fft_size") == 2048

    def test_missing_value_default(self):
        """Test a missing path returns the default."""
        config = config_loader.get_default_config()

        assert config_loader.get_config_value(config, "spectrum.nope", 7) == 7
