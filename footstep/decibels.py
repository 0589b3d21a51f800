"""
Decibel calculations.

Single Responsibility: Convert sample amplitude to dBFS and to an approximate
dB SPL scale. Every function here is pure and returns finite values.
"""
from typing import Optional, Dict, Any

import numpy as np

# dBFS to dB SPL offset. A quiet room (~-45 dBFS) reads ~30 dB SPL and
# normal conversation (~-25 dBFS) reads ~50 dB SPL.
BASE_SPL_OFFSET_DB = 75.0

MIN_SPL_DB = 0.0
MAX_SPL_DB = 130.0

MIN_DBFS = -160.0
MAX_DBFS = 0.0

# Smallest amplitude considered, keeps log10 away from zero
MIN_AMPLITUDE = 1e-8

# Display range for normalized SPL meters
DISPLAY_MIN_SPL_DB = 30.0
DISPLAY_MAX_SPL_DB = 100.0


def calculate_rms(samples: np.ndarray) -> float:
    """RMS amplitude of ``samples``; 0.0 for empty or non-finite input."""
    if samples is None or len(samples) == 0:
        return 0.0
    data = np.asarray(samples, dtype=np.float64)
    rms = float(np.sqrt(np.mean(data ** 2)))
    return rms if np.isfinite(rms) else 0.0


def calculate_peak(samples: np.ndarray) -> float:
    """Peak absolute amplitude; 0.0 for empty or non-finite input."""
    if samples is None or len(samples) == 0:
        return 0.0
    peak = float(np.max(np.abs(np.asarray(samples, dtype=np.float64))))
    return peak if np.isfinite(peak) else 0.0


def rms_to_dbfs(rms: float) -> float:
    """Convert linear amplitude (0.0-1.0) to dBFS, clamped to [-160, 0]."""
    if not np.isfinite(rms):
        return MIN_DBFS
    clamped = max(abs(rms), MIN_AMPLITUDE)
    db = 20.0 * float(np.log10(clamped))
    return max(MIN_DBFS, min(MAX_DBFS, db))


def decibels_to_amplitude(dbfs: float) -> float:
    """Convert dBFS back to linear amplitude."""
    if not np.isfinite(dbfs):
        return 0.0
    clamped = max(MIN_DBFS, min(MAX_DBFS, dbfs))
    return float(10.0 ** (clamped / 20.0))


def dbfs_to_spl(
    dbfs: float,
    calibration_db: float = 0.0,
    base_offset_db: float = BASE_SPL_OFFSET_DB,
    min_spl_db: float = MIN_SPL_DB,
    max_spl_db: float = MAX_SPL_DB
) -> float:
    """Approximate dB SPL from dBFS (uncalibrated microphone + user delta)."""
    if not np.isfinite(dbfs):
        return min_spl_db
    spl = dbfs + base_offset_db + calibration_db
    return max(min_spl_db, min(max_spl_db, spl))


def spl_to_dbfs(
    spl: float,
    calibration_db: float = 0.0,
    base_offset_db: float = BASE_SPL_OFFSET_DB
) -> float:
    return spl - base_offset_db - calibration_db


def normalize_decibels_spl(spl: float) -> float:
    """Map dB SPL onto [0, 1] over the 30-100 dB indoor display range."""
    if not np.isfinite(spl):
        return 0.0
    normalized = (spl - DISPLAY_MIN_SPL_DB) / (DISPLAY_MAX_SPL_DB - DISPLAY_MIN_SPL_DB)
    return max(0.0, min(1.0, normalized))


class DecibelCalculator:
    """
    Calibrated dB SPL calculator.

    Holds the base offset and clamp range from the ``decibels`` config
    section; the user calibration delta is passed per call so changes apply
    to subsequent buffers only.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        """
        Initialize decibel calculator.

        Args:
            config: Configuration dictionary (defaults used when None)
        """
        section = (config or {}).get("decibels", {})
        self.base_offset_db = float(section.get("base_spl_offset_db", BASE_SPL_OFFSET_DB))
        self.min_spl_db = float(section.get("min_spl_db", MIN_SPL_DB))
        self.max_spl_db = float(section.get("max_spl_db", MAX_SPL_DB))

    def to_spl(self, dbfs: float, calibration_db: float = 0.0) -> float:
        return dbfs_to_spl(
            dbfs,
            calibration_db=calibration_db,
            base_offset_db=self.base_offset_db,
            min_spl_db=self.min_spl_db,
            max_spl_db=self.max_spl_db,
        )

    def calculate_decibels_spl(self, samples: np.ndarray, calibration_db: float = 0.0) -> float:
        """
        Approximate dB SPL of a block of samples.

        Zero-length input yields the floor value.
        """
        if samples is None or len(samples) == 0:
            return self.min_spl_db
        return self.to_spl(rms_to_dbfs(calculate_rms(samples)), calibration_db)

    def calculate_peak_decibels_spl(self, samples: np.ndarray, calibration_db: float = 0.0) -> float:
        """Approximate dB SPL of the loudest sample."""
        if samples is None or len(samples) == 0:
            return self.min_spl_db
        return self.to_spl(rms_to_dbfs(calculate_peak(samples)), calibration_db)
