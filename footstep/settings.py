"""
User-adjustable analysis settings and the per-session analysis context.

Single Responsibility: Hold sensitivity/calibration values, clamp them to
their documented ranges, and bundle them with the ambient tracker so that
independent sessions never share hidden state.
"""
import threading
from dataclasses import dataclass, field
from typing import Optional, Dict, Any

from logger import get_logger
from .ambient import AmbientLevelTracker

log = get_logger(__name__)

SENSITIVITY_OFFSET_RANGE = (-10.0, 10.0)
CALIBRATION_OFFSET_RANGE = (-20.0, 20.0)
SENSITIVITY_RANGE = (0.0, 1.0)

DEFAULT_SENSITIVITY = 0.5

# Detection threshold (RMS amplitude) at sensitivity 1.0 and 0.0
MIN_DETECTION_THRESHOLD = 0.003
MAX_DETECTION_THRESHOLD = 0.012


def _clamp(name: str, value: float, bounds) -> float:
    low, high = bounds
    clamped = max(low, min(high, float(value)))
    if clamped != value:
        log.warning(f"{name} {value} outside [{low}, {high}], clamped to {clamped}")
    return clamped


@dataclass(frozen=True)
class SensitivityConfig:
    """Immutable snapshot of the sensitivity settings for one classification."""
    offset_db: float = 0.0
    calibration_db: float = 0.0
    sensitivity: float = DEFAULT_SENSITIVITY
    min_detection_threshold: float = MIN_DETECTION_THRESHOLD
    max_detection_threshold: float = MAX_DETECTION_THRESHOLD

    @property
    def detection_threshold(self) -> float:
        """
        RMS amplitude a buffer must exceed to become a candidate.

        Higher sensitivity gives a lower threshold.
        """
        span = self.max_detection_threshold - self.min_detection_threshold
        return self.max_detection_threshold - self.sensitivity * span


class SensitivitySettings:
    """
    Mutable, thread-safe sensitivity settings.

    Every setter clamps instead of rejecting. Consumers take a
    ``snapshot()`` per buffer so changes never apply retroactively.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        config = config or {}
        section = config.get("sensitivity", {})
        detection = config.get("event_detection", {})

        self._lock = threading.Lock()
        self._min_threshold = float(detection.get("min_threshold", MIN_DETECTION_THRESHOLD))
        self._max_threshold = float(detection.get("max_threshold", MAX_DETECTION_THRESHOLD))
        self._default_offset = _clamp("sensitivity.offset_db", section.get("offset_db", 0.0), SENSITIVITY_OFFSET_RANGE)
        self._default_calibration = _clamp(
            "sensitivity.calibration_db", section.get("calibration_db", 0.0), CALIBRATION_OFFSET_RANGE
        )
        self._default_sensitivity = _clamp(
            "sensitivity.sensitivity", section.get("sensitivity", DEFAULT_SENSITIVITY), SENSITIVITY_RANGE
        )

        self._offset_db = self._default_offset
        self._calibration_db = self._default_calibration
        self._sensitivity = self._default_sensitivity

    def set_sensitivity_offset(self, db: float) -> float:
        """Set the tier offset in dB (clamped to [-10, +10]); returns the applied value."""
        value = _clamp("Sensitivity offset", db, SENSITIVITY_OFFSET_RANGE)
        with self._lock:
            self._offset_db = value
        return value

    def set_calibration_offset(self, db: float) -> float:
        """Set the microphone calibration delta in dB (clamped to [-20, +20])."""
        value = _clamp("Calibration offset", db, CALIBRATION_OFFSET_RANGE)
        with self._lock:
            self._calibration_db = value
        return value

    def set_sensitivity(self, sensitivity: float) -> float:
        """Set detector sensitivity (clamped to [0, 1])."""
        value = _clamp("Sensitivity", sensitivity, SENSITIVITY_RANGE)
        with self._lock:
            self._sensitivity = value
        return value

    def reset_sensitivity(self) -> None:
        """Restore the configured sensitivity and sensitivity offset."""
        with self._lock:
            self._offset_db = self._default_offset
            self._sensitivity = self._default_sensitivity

    def reset_calibration(self) -> None:
        with self._lock:
            self._calibration_db = self._default_calibration

    def reset_all(self) -> None:
        self.reset_sensitivity()
        self.reset_calibration()

    @property
    def offset_db(self) -> float:
        return self._offset_db

    @property
    def calibration_db(self) -> float:
        return self._calibration_db

    @property
    def sensitivity(self) -> float:
        return self._sensitivity

    @property
    def detection_threshold(self) -> float:
        return self.snapshot().detection_threshold

    @property
    def sensitivity_label(self) -> str:
        """Human-readable sensitivity label."""
        value = self._sensitivity
        if value < 0.25:
            return "Low"
        if value < 0.5:
            return "Medium-Low"
        if value < 0.75:
            return "Medium-High"
        return "High"

    def snapshot(self) -> SensitivityConfig:
        with self._lock:
            return SensitivityConfig(
                offset_db=self._offset_db,
                calibration_db=self._calibration_db,
                sensitivity=self._sensitivity,
                min_detection_threshold=self._min_threshold,
                max_detection_threshold=self._max_threshold,
            )


@dataclass
class AnalysisContext:
    """
    Everything an orchestrator needs that outlives a single buffer.

    One context per analysis session keeps parallel sessions (and tests)
    independent of each other.
    """
    config: Dict[str, Any] = field(default_factory=dict)
    ambient: Optional[AmbientLevelTracker] = None
    sensitivity: Optional[SensitivitySettings] = None

    def __post_init__(self):
        if self.ambient is None:
            self.ambient = AmbientLevelTracker(self.config)
        if self.sensitivity is None:
            self.sensitivity = SensitivitySettings(self.config)

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "AnalysisContext":
        return cls(config=config)

    def reset_ambient(self) -> None:
        self.ambient.reset()

    def reset_sensitivity(self) -> None:
        self.sensitivity.reset_sensitivity()
