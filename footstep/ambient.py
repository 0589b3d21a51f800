"""
Ambient noise level tracking.

Single Responsibility: Maintain the rolling window of dB readings and the
ambient (noise floor) estimate derived from it.
"""
import threading
from collections import deque
from dataclasses import dataclass
from typing import Optional, Dict, Any, Tuple

import numpy as np

from logger import get_logger

log = get_logger(__name__)

DEFAULT_AMBIENT_LEVEL_DB = 30.0


@dataclass(frozen=True)
class AmbientState:
    """Snapshot of the tracker, replaced whole on every update."""
    ambient_level: float = DEFAULT_AMBIENT_LEVEL_DB
    calibrated: bool = False
    reading_count: int = 0


class AmbientLevelTracker:
    """
    Tracks the ambient noise floor in dB SPL.

    The estimate is the mean of the sorted readings from the 0th up to the
    ``upper_percentile`` index (inclusive), recomputed on every reading once
    ``min_readings`` are available. Writers and readers may live on
    different threads; readers always get a complete AmbientState.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        """
        Initialize ambient tracker.

        Args:
            config: Configuration dictionary (defaults used when None)
        """
        section = (config or {}).get("ambient", {})
        self.window_size = int(section.get("window_size", 100))
        self.min_readings = int(section.get("min_readings", 20))
        self.upper_percentile = float(section.get("upper_percentile", 0.10))
        self.default_level = float(section.get("default_level_db", DEFAULT_AMBIENT_LEVEL_DB))

        self._lock = threading.Lock()
        self._readings = deque(maxlen=self.window_size)
        self._state = AmbientState(ambient_level=self.default_level)

    def add_reading(self, db_level: float) -> None:
        """
        Add a dB SPL reading to the rolling window.

        Non-finite readings are ignored.
        """
        if not np.isfinite(db_level):
            return

        with self._lock:
            self._readings.append(float(db_level))
            count = len(self._readings)

            if count < self.min_readings:
                self._state = AmbientState(self._state.ambient_level, False, count)
                return

            was_calibrated = self._state.calibrated
            state = AmbientState(self._estimate_locked(), True, count)
            self._state = state

        if not was_calibrated:
            log.info(f"Ambient level calibrated at {state.ambient_level:.1f} dB after {count} readings")

    def _estimate_locked(self) -> float:
        ordered = sorted(self._readings)
        upper_index = int(len(ordered) * self.upper_percentile)
        upper_index = min(upper_index, len(ordered) - 1)
        return float(np.mean(ordered[:upper_index + 1]))

    def reset(self) -> None:
        """Clear all readings and return to the uncalibrated default."""
        with self._lock:
            self._readings.clear()
            self._state = AmbientState(ambient_level=self.default_level)

    def prime(self, level: float, count: Optional[int] = None) -> None:
        """
        Seed the window with ``count`` identical readings.

        Used for sessions that start from a known ambient level.
        """
        if count is None:
            count = self.min_readings
        with self._lock:
            self._readings.clear()
        for _ in range(count):
            self.add_reading(level)

    def snapshot(self) -> AmbientState:
        """Latest fully computed state."""
        return self._state

    @property
    def ambient_level(self) -> float:
        return self._state.ambient_level

    @property
    def is_calibrated(self) -> bool:
        return self._state.calibrated

    def get_thresholds(self, sensitivity_offset: float = 0.0) -> Tuple[float, float, float, float]:
        """
        Tier floors relative to the ambient level.

        Returns:
            Tuple of (mild, medium, hard, extreme) thresholds in dB SPL
        """
        base = self._state.ambient_level + sensitivity_offset
        return base + 5.0, base + 10.0, base + 15.0, base + 20.0
