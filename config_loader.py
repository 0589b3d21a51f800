#!/usr/bin/env python3
"""Configuration loader for the footstep noise analyzer."""
import json
from pathlib import Path
from typing import Dict, Any, Optional, Tuple

from logger import get_logger

log = get_logger(__name__)


def get_default_config() -> Dict[str, Any]:
    """Return default configuration values."""
    return {
        "audio": {
            "sample_rate": 44100,
            "buffer_size": 4096
        },
        "decibels": {
            "base_spl_offset_db": 75.0,
            "min_spl_db": 0.0,
            "max_spl_db": 130.0
        },
        "ambient": {
            "window_size": 100,
            "min_readings": 20,
            "upper_percentile": 0.10,
            "default_level_db": 30.0
        },
        "spectrum": {
            "fft_size": 2048,
            "min_frequency_hz": 20.0,
            "bands": {
                "impact": [20.0, 100.0],
                "low_mid": [100.0, 300.0],
                "mid": [300.0, 1000.0],
                "high_mid": [1000.0, 3000.0],
                "high": [3000.0, 8000.0]
            }
        },
        "event_detection": {
            "min_event_interval_sec": 0.1,
            "peak_window_size": 512,
            "min_peak_prominence": 0.1,
            "min_threshold": 0.003,
            "max_threshold": 0.012
        },
        "classification": {
            "low_frequency_cutoff_hz": 65.0,
            "min_impact_ratio": 0.70,
            "boundary_low_hz": 60.0,
            "boundary_high_hz": 70.0,
            "boundary_loud_db": 43.0,
            "boundary_moderate_db": 38.0,
            "boundary_max_impact_ratio": 0.57,
            "tier_step_db": 5.0,
            "running_interval_sec": 0.15,
            "echo_window_sec": 0.5,
            "echo_db_drop": 12.0
        },
        "sensitivity": {
            "offset_db": 0.0,
            "calibration_db": 0.0,
            "sensitivity": 0.5
        },
        "analysis": {
            "background": False,
            "keep_clips": False
        },
        "logging": {
            "level": "INFO",
            "file": None
        }
    }


def validate_config(config: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """
    Validate configuration structure and values.

    Only structural problems are reported here. Sensitivity values outside
    their documented ranges are clamped later by SensitivitySettings.
    """
    defaults = get_default_config()

    for key in defaults.keys():
        if key not in config:
            return False, f"Missing required config section: {key}"

    audio = config.get("audio", {})
    if not isinstance(audio.get("sample_rate"), int) or audio.get("sample_rate") <= 0:
        return False, "audio.sample_rate must be a positive integer"
    if not isinstance(audio.get("buffer_size"), int) or audio.get("buffer_size") <= 0:
        return False, "audio.buffer_size must be a positive integer"

    ambient = config.get("ambient", {})
    if ambient.get("window_size", 0) <= 0:
        return False, "ambient.window_size must be positive"
    if not 0 < ambient.get("min_readings", 0) <= ambient.get("window_size", 0):
        return False, "ambient.min_readings must be between 1 and ambient.window_size"
    if not 0 <= ambient.get("upper_percentile", -1) <= 1:
        return False, "ambient.upper_percentile must be between 0 and 1"

    fft_size = config.get("spectrum", {}).get("fft_size")
    if not isinstance(fft_size, int) or fft_size < 2 or fft_size & (fft_size - 1):
        return False, "spectrum.fft_size must be a power of two"
    for name, edges in config["spectrum"].get("bands", {}).items():
        if len(edges) != 2 or not 0 <= edges[0] < edges[1]:
            return False, f"spectrum.bands.{name} must be [low_hz, high_hz] with low < high"

    detection = config.get("event_detection", {})
    if detection.get("min_event_interval_sec", -1) < 0:
        return False, "event_detection.min_event_interval_sec must be non-negative"
    if detection.get("peak_window_size", 0) <= 0:
        return False, "event_detection.peak_window_size must be positive"
    if not 0 <= detection.get("min_threshold", -1) <= detection.get("max_threshold", -1) <= 1:
        return False, "event_detection thresholds must satisfy 0 <= min_threshold <= max_threshold <= 1"

    classification = config.get("classification", {})
    for key in ("min_impact_ratio", "boundary_max_impact_ratio"):
        if not 0 <= classification.get(key, -1) <= 1:
            return False, f"classification.{key} must be between 0 and 1"
    if classification.get("boundary_low_hz", 0) > classification.get("boundary_high_hz", 0):
        return False, "classification.boundary_low_hz must not exceed boundary_high_hz"
    for key in ("running_interval_sec", "echo_window_sec", "echo_db_drop", "tier_step_db"):
        if classification.get(key, -1) < 0:
            return False, f"classification.{key} must be non-negative"

    return True, None


def load_config(config_path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load configuration from JSON file, merging with defaults.

    Args:
        config_path: Path to config file. If None, looks for config.json in current directory.

    Returns:
        Merged configuration dictionary.

    Raises:
        ValueError: If the file is not valid JSON or the merged config is invalid.
    """
    defaults = get_default_config()

    if config_path is None:
        config_path = Path("config.json")

    if not config_path.exists():
        log.info(f"Config file {config_path} not found, using defaults")
        return defaults

    try:
        with config_path.open() as f:
            config = json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in config file {config_path}: {e}")

    merged = _deep_merge(defaults, config)

    is_valid, error_msg = validate_config(merged)
    if not is_valid:
        raise ValueError(f"Invalid configuration: {error_msg}")

    log.info(f"Loaded configuration from {config_path}")
    return merged


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Deep merge two dictionaries, with override taking precedence."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def get_config_value(config: Dict[str, Any], path: str, default: Any = None) -> Any:
    """
    Get nested config value using dot notation.

    Example: get_config_value(config, "classification.echo_window_sec")
    """
    keys = path.split(".")
    value = config
    for key in keys:
        if isinstance(value, dict) and key in value:
            value = value[key]
        else:
            return default
    return value
