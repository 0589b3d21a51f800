"""
Tests for footstep.settings module.

Tests clamping, sensitivity labels, snapshots and the analysis context.
"""
import logging
from dataclasses import FrozenInstanceError

import pytest

from footstep.settings import SensitivitySettings, SensitivityConfig, AnalysisContext


class TestSetters:
    """Test clamping setters."""

    def test_offset_clamped(self):
        """Test sensitivity offset clamps to [-10, +10]."""
        settings = SensitivitySettings()

        assert settings.set_sensitivity_offset(15.0) == 10.0
        assert settings.set_sensitivity_offset(-15.0) == -10.0
        assert settings.set_sensitivity_offset(3.0) == 3.0
        assert settings.offset_db == 3.0

    def test_calibration_clamped(self):
        """Test calibration offset clamps to [-20, +20]."""
        settings = SensitivitySettings()

        assert settings.set_calibration_offset(25.0) == 20.0
        assert settings.set_calibration_offset(-30.0) == -20.0

    def test_sensitivity_clamped(self):
        """Test sensitivity clamps to [0, 1]."""
        settings = SensitivitySettings()

        assert settings.set_sensitivity(1.5) == 1.0
        assert settings.set_sensitivity(-0.5) == 0.0

    def test_clamp_logs_warning(self, caplog):
        """Test out-of-range values are logged."""
        settings = SensitivitySettings()
        with caplog.at_level(logging.WARNING):
            settings.set_sensitivity_offset(50.0)

        assert any("clamped" in record.getMessage() for record in caplog.records)

    def test_config_defaults_clamped(self, default_config):
        """Test out-of-range config values are clamped, not rejected."""
        default_config["sensitivity"]["offset_db"] = 40.0
        settings = SensitivitySettings(default_config)

        assert settings.offset_db == 10.0


class TestSensitivity:
    """Test derived sensitivity values."""

    @pytest.mark.parametrize("value,expected", [
        (0.0, 0.012),
        (0.5, 0.0075),
        (1.0, 0.003),
    ])
    def test_detection_threshold(self, value, expected):
        """Test higher sensitivity lowers the RMS threshold."""
        settings = SensitivitySettings()
        settings.set_sensitivity(value)

        assert settings.detection_threshold == pytest.approx(expected)

    @pytest.mark.parametrize("value,label", [
        (0.1, "Low"),
        (0.3, "Medium-Low"),
        (0.5, "Medium-High"),
        (0.9, "High"),
    ])
    def test_labels(self, value, label):
        """Test sensitivity labels."""
        settings = SensitivitySettings()
        settings.set_sensitivity(value)

        assert settings.sensitivity_label == label


class TestResetAndSnapshot:
    """Test resets and immutable snapshots."""

    def test_reset_sensitivity_keeps_calibration(self):
        """Test reset_sensitivity leaves calibration alone."""
        settings = SensitivitySettings()
        settings.set_sensitivity_offset(5.0)
        settings.set_sensitivity(0.9)
        settings.set_calibration_offset(4.0)
        settings.reset_sensitivity()

        assert settings.offset_db == 0.0
        assert settings.sensitivity == 0.5
        assert settings.calibration_db == 4.0

    def test_reset_all(self):
        """Test reset_all restores every default."""
        settings = SensitivitySettings()
        settings.set_sensitivity_offset(5.0)
        settings.set_calibration_offset(4.0)
        settings.reset_all()

        assert settings.snapshot() == SensitivityConfig()

    def test_snapshot_not_retroactive(self):
        """Test later changes do not alter an earlier snapshot."""
        settings = SensitivitySettings()
        snapshot = settings.snapshot()
        settings.set_sensitivity_offset(-5.0)

        assert snapshot.offset_db == 0.0
        assert settings.snapshot().offset_db == -5.0

    def test_snapshot_frozen(self):
        """Test snapshots are immutable."""
        snapshot = SensitivitySettings().snapshot()

        with pytest.raises(FrozenInstanceError):
            snapshot.offset_db = 1.0


class TestAnalysisContext:
    """Test the per-session context."""

    def test_contexts_are_independent(self):
        """Test two contexts share no state."""
        first = AnalysisContext()
        second = AnalysisContext()
        first.ambient.prime(50.0)
        first.sensitivity.set_sensitivity_offset(4.0)

        assert not second.ambient.is_calibrated
        assert second.sensitivity.offset_db == 0.0

    def test_resets(self):
        """Test context resets delegate to its parts."""
        context = AnalysisContext.from_config({})
        context.ambient.prime(50.0)
        context.sensitivity.set_sensitivity(0.9)
        context.reset_ambient()
        context.reset_sensitivity()

        assert not context.ambient.is_calibrated
        assert context.sensitivity.sensitivity == 0.5
