"""
Classifier interface and the heuristic footstep classifier.

Open/Closed Principle: Open for extension (new classifier types),
closed for modification (the orchestrator only sees ``Classifier``).

Single Responsibility: All footstep classification logic is contained here.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Dict, Any, NamedTuple, Tuple

import numpy as np

from logger import get_logger
from .decibels import DecibelCalculator
from .detector import CandidateEvent
from .settings import SensitivityConfig
from .spectrum import FrequencySpectrum

log = get_logger(__name__)

UNKNOWN_CONFIDENCE = 0.3
MAX_CONFIDENCE = 0.95
RUNNING_CONFIDENCE_BOOST = 0.1

# (start, end) confidence for mild, medium and hard tiers
TIER_CONFIDENCE = ((0.70, 0.75), (0.75, 0.82), (0.82, 0.88))
EXTREME_CONFIDENCE = (0.88, 0.95)
# dB above the extreme floor at which confidence saturates
EXTREME_SATURATION_DB = 20.0


class FootstepType(str, Enum):
    """Kinds of impact sound the classifier reports."""
    MILD = "mild"
    MEDIUM = "medium"
    HARD = "hard"
    EXTREME = "extreme"
    RUNNING = "running"
    UNKNOWN = "unknown"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]

    @property
    def is_footstep(self) -> bool:
        return self is not FootstepType.UNKNOWN


_DISPLAY_NAMES = {
    FootstepType.MILD: "Mild Stomping",
    FootstepType.MEDIUM: "Medium Stomping",
    FootstepType.HARD: "Hard Stomping",
    FootstepType.EXTREME: "Extreme Stomping",
    FootstepType.RUNNING: "Running",
    FootstepType.UNKNOWN: "Unknown",
}


class EventMark(NamedTuple):
    """Time and level of an earlier event in the session."""
    timestamp: float
    decibel_level: float


@dataclass(frozen=True)
class Classification:
    """Result of classifying one candidate."""
    type: FootstepType
    confidence: float
    decibel_level: float
    dominant_frequency: float
    interval_from_previous: Optional[float] = None
    impact_ratio: float = 0.0

    @property
    def is_footstep(self) -> bool:
        return self.type.is_footstep


class ClassificationStatus(str, Enum):
    CLASSIFIED = "classified"
    INVALID_BUFFER = "invalid_buffer"
    BELOW_THRESHOLD = "below_threshold"
    ECHO = "echo"


@dataclass(frozen=True)
class ClassificationOutcome:
    """
    Classification plus the reason when there is none.

    ``classification`` is set only for CLASSIFIED (which includes UNKNOWN
    sounds); the other statuses mean "no event".
    """
    status: ClassificationStatus
    classification: Optional[Classification] = None


@dataclass(frozen=True)
class ClassifierConfig:
    """Thresholds for the heuristic classifier."""
    low_frequency_cutoff_hz: float = 65.0
    min_impact_ratio: float = 0.70
    boundary_low_hz: float = 60.0
    boundary_high_hz: float = 70.0
    boundary_loud_db: float = 43.0
    boundary_moderate_db: float = 38.0
    boundary_max_impact_ratio: float = 0.57
    tier_step_db: float = 5.0
    running_interval_sec: float = 0.15
    echo_window_sec: float = 0.5
    echo_db_drop: float = 12.0

    @classmethod
    def from_config(cls, config: Optional[Dict[str, Any]]) -> "ClassifierConfig":
        """Build from the ``classification`` config section, ignoring unknown keys."""
        section = (config or {}).get("classification", {})
        known = {name: float(section[name]) for name in cls.__dataclass_fields__ if name in section}
        return cls(**known)


class Classifier(ABC):
    """
    Abstract base class for footstep classifiers.

    Interface Segregation: Small, focused interface.
    Dependency Inversion: The orchestrator depends on this abstraction.
    """

    @abstractmethod
    def evaluate(
        self,
        candidate: CandidateEvent,
        spectrum: Optional[FrequencySpectrum],
        ambient_level: float,
        sensitivity: SensitivityConfig,
        last_confirmed: Optional[EventMark] = None,
        last_loud: Optional[EventMark] = None,
        now: Optional[float] = None
    ) -> ClassificationOutcome:
        """
        Classify a candidate event.

        Args:
            candidate: Buffer flagged by the event detector
            spectrum: Spectrum of the candidate buffer
            ambient_level: Current ambient estimate in dB SPL
            sensitivity: Sensitivity snapshot for this buffer
            last_confirmed: Previous emitted footstep, if any
            last_loud: Reference event for echo suppression, if any
            now: Event time (defaults to candidate.timestamp)

        Returns:
            ClassificationOutcome; never raises
        """
        pass

    def classify(self, *args, **kwargs) -> Optional[Classification]:
        """Same as ``evaluate`` but returns only the classification."""
        return self.evaluate(*args, **kwargs).classification


class HeuristicClassifier(Classifier):
    """
    Ambient-relative, impact-ratio-gated footstep classifier.

    Single Responsibility: Footstep decision procedure.
    Liskov Substitution: Can be used anywhere Classifier is expected.
    """

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        classifier_config: Optional[ClassifierConfig] = None,
        decibel_calculator: Optional[DecibelCalculator] = None
    ):
        self.classifier_config = classifier_config or ClassifierConfig.from_config(config)
        self.decibels = decibel_calculator or DecibelCalculator(config)

    def evaluate(
        self,
        candidate: CandidateEvent,
        spectrum: Optional[FrequencySpectrum],
        ambient_level: float,
        sensitivity: SensitivityConfig,
        last_confirmed: Optional[EventMark] = None,
        last_loud: Optional[EventMark] = None,
        now: Optional[float] = None
    ) -> ClassificationOutcome:
        try:
            return self._evaluate(candidate, spectrum, ambient_level, sensitivity, last_confirmed, last_loud, now)
        except Exception:
            log.exception("Classification failed; treating buffer as invalid")
            return ClassificationOutcome(ClassificationStatus.INVALID_BUFFER)

    def _evaluate(self, candidate, spectrum, ambient_level, sensitivity, last_confirmed, last_loud, now):
        cfg = self.classifier_config

        if candidate is None or candidate.buffer is None or candidate.buffer.frame_count == 0 or spectrum is None:
            return ClassificationOutcome(ClassificationStatus.INVALID_BUFFER)

        if now is None:
            now = candidate.timestamp

        decibel_level = self.decibels.calculate_decibels_spl(candidate.buffer.samples, sensitivity.calibration_db)

        base = ambient_level + sensitivity.offset_db
        mild_floor = base + cfg.tier_step_db
        if decibel_level < mild_floor:
            log.debug(f"Candidate at {now:.2f}s below threshold ({decibel_level:.1f} < {mild_floor:.1f} dB)")
            return ClassificationOutcome(ClassificationStatus.BELOW_THRESHOLD)

        if self._is_echo(decibel_level, last_loud, now):
            log.debug(f"Candidate at {now:.2f}s rejected as echo of {last_loud.decibel_level:.1f} dB event")
            return ClassificationOutcome(ClassificationStatus.ECHO)

        nyquist = candidate.buffer.nyquist
        dominant = _finite(spectrum.dominant_frequency)
        dominant = max(0.0, min(nyquist, dominant)) if nyquist > 0 else 0.0
        impact_ratio = _finite(spectrum.impact_ratio)

        interval = None
        if last_confirmed is not None:
            interval = now - last_confirmed.timestamp

        if not self.is_footstep_candidate(dominant, impact_ratio, decibel_level):
            return ClassificationOutcome(
                ClassificationStatus.CLASSIFIED,
                Classification(
                    type=FootstepType.UNKNOWN,
                    confidence=UNKNOWN_CONFIDENCE,
                    decibel_level=decibel_level,
                    dominant_frequency=dominant,
                    interval_from_previous=interval,
                    impact_ratio=impact_ratio,
                ),
            )

        footstep_type, confidence = self.tier_for_level(decibel_level, base)

        if interval is not None and interval <= cfg.running_interval_sec:
            footstep_type = FootstepType.RUNNING
            confidence = min(MAX_CONFIDENCE, confidence + RUNNING_CONFIDENCE_BOOST)

        return ClassificationOutcome(
            ClassificationStatus.CLASSIFIED,
            Classification(
                type=footstep_type,
                confidence=max(0.0, min(1.0, confidence)),
                decibel_level=decibel_level,
                dominant_frequency=dominant,
                interval_from_previous=interval,
                impact_ratio=impact_ratio,
            ),
        )

    def _is_echo(self, decibel_level: float, last_loud: Optional[EventMark], now: float) -> bool:
        if last_loud is None:
            return False
        cfg = self.classifier_config
        elapsed = now - last_loud.timestamp
        drop = last_loud.decibel_level - decibel_level
        return elapsed <= cfg.echo_window_sec and drop >= cfg.echo_db_drop

    def is_footstep_candidate(self, dominant_frequency: float, impact_ratio: float, decibel_level: float) -> bool:
        """
        Decide whether the spectrum looks like a footstep impact.

        Dominant frequencies in the boundary band are judged on level: very
        loud sounds always qualify, moderately loud ones only with a spread
        (non-tonal) spectrum. Elsewhere the dominant frequency must be under
        the cutoff with most energy in the impact band.
        """
        cfg = self.classifier_config
        if cfg.boundary_low_hz <= dominant_frequency <= cfg.boundary_high_hz:
            if decibel_level >= cfg.boundary_loud_db:
                return True
            return decibel_level >= cfg.boundary_moderate_db and impact_ratio < cfg.boundary_max_impact_ratio

        return dominant_frequency <= cfg.low_frequency_cutoff_hz and impact_ratio >= cfg.min_impact_ratio

    def tier_for_level(self, decibel_level: float, base: float) -> Tuple[FootstepType, float]:
        """
        Pick the stomping tier for a level and interpolate its confidence.

        Args:
            decibel_level: Event level in dB SPL
            base: Ambient level plus sensitivity offset

        Returns:
            Tuple of (FootstepType, confidence)
        """
        step = self.classifier_config.tier_step_db
        tiers = (FootstepType.MILD, FootstepType.MEDIUM, FootstepType.HARD)

        for index, (footstep_type, (low_conf, high_conf)) in enumerate(zip(tiers, TIER_CONFIDENCE)):
            floor = base + step * (index + 1)
            ceiling = floor + step
            if decibel_level < ceiling:
                position = (decibel_level - floor) / step if step > 0 else 0.0
                position = max(0.0, min(1.0, position))
                return footstep_type, low_conf + position * (high_conf - low_conf)

        extreme_floor = base + step * 4
        low_conf, high_conf = EXTREME_CONFIDENCE
        position = max(0.0, min(1.0, (decibel_level - extreme_floor) / EXTREME_SATURATION_DB))
        return FootstepType.EXTREME, low_conf + position * (high_conf - low_conf)


def _finite(value: float) -> float:
    return float(value) if np.isfinite(value) else 0.0


def create_classifier(config: Optional[Dict[str, Any]] = None) -> Classifier:
    """
    Factory function for the default classifier.

    Dependency Inversion: Returns abstraction, not concrete class.
    """
    return HeuristicClassifier(config)
