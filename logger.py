#!/usr/bin/env python3
"""
Centralized logging for the footstep noise analyzer.

Analysis modules log through named loggers so a host application (recorder,
UI, report generator) decides where the output goes. Use this instead of
print() inside the pipeline.

Usage:
    from logger import get_logger
    log = get_logger(__name__)
    log.info("Session started")
    log.debug("Rejected candidate at %.2fs as echo", timestamp)
"""
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


class ColoredFormatter(logging.Formatter):
    """Color-coded log formatter for terminal output."""

    COLORS = {
        'DEBUG': '\033[36m',      # Cyan
        'INFO': '\033[32m',       # Green
        'WARNING': '\033[33m',    # Yellow
        'ERROR': '\033[31m',      # Red
        'CRITICAL': '\033[35m',   # Magenta
        'RESET': '\033[0m'
    }

    def format(self, record):
        if sys.stdout.isatty():
            color = self.COLORS.get(record.levelname, '')
            reset = self.COLORS['RESET']
            # Work on a copy so file handlers keep the plain level name
            record = logging.makeLogRecord(record.__dict__)
            record.levelname = f"{color}{record.levelname}{reset}"
        return super().format(record)


def setup_logging(
    log_file: Optional[Path] = None,
    level: str = "INFO",
    debug: bool = False
) -> logging.Logger:
    """
    Set up logging configuration.

    Args:
        log_file: Path to log file (if None, only console logging)
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        debug: If True, enable DEBUG level regardless of ``level``

    Returns:
        Root logger
    """
    if debug:
        level = "DEBUG"

    log_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(ColoredFormatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    root_logger.addHandler(console_handler)

    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setLevel(log_level)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        root_logger.addHandler(file_handler)

    return root_logger


def setup_logging_from_config(config: Dict[str, Any], debug: bool = False) -> logging.Logger:
    """Set up logging from the ``logging`` section of a loaded config."""
    section = config.get("logging", {})
    log_file = section.get("file")
    return setup_logging(
        log_file=Path(log_file) if log_file else None,
        level=section.get("level", "INFO"),
        debug=debug,
    )


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for a module.

    Args:
        name: Module name (typically __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


def log_analysis_settings(logger: logging.Logger, config: Dict[str, Any]) -> None:
    """Log the active analysis configuration for debugging."""
    audio = config["audio"]
    classification = config["classification"]
    sensitivity = config["sensitivity"]

    logger.info("=" * 60)
    logger.info("ANALYSIS SETTINGS")
    logger.info("=" * 60)
    logger.info(f"Sample rate: {audio['sample_rate']} Hz, buffer: {audio['buffer_size']} samples")
    logger.info(f"FFT size: {config['spectrum']['fft_size']}")
    logger.info(
        f"Footstep cutoff: {classification['low_frequency_cutoff_hz']:.0f} Hz, "
        f"min impact ratio: {classification['min_impact_ratio']:.2f}"
    )
    logger.info(
        f"Echo window: {classification['echo_window_sec']:.2f}s / "
        f"{classification['echo_db_drop']:.0f} dB drop, "
        f"running interval: {classification['running_interval_sec']:.2f}s"
    )
    logger.info(
        f"Sensitivity: {sensitivity['sensitivity']:.2f}, "
        f"offset: {sensitivity['offset_db']:+.1f} dB, "
        f"calibration: {sensitivity['calibration_db']:+.1f} dB"
    )
    logger.info("=" * 60)
