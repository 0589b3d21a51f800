"""
Candidate event detection.

Single Responsibility: Cheap, buffer-local gating that flags buffers which
may contain an impact, before any spectral analysis is spent on them.
"""
from dataclasses import dataclass
from typing import Optional, Dict, Any

import numpy as np

from .audio import AudioBuffer
from .decibels import calculate_rms


@dataclass(frozen=True)
class CandidateEvent:
    """A buffer that passed the detector gate."""
    timestamp: float
    rms_amplitude: float
    buffer: AudioBuffer


class EventDetector:
    """
    Flags buffers that look like impacts.

    A buffer becomes a candidate when its RMS exceeds the detection
    threshold, it has a prominent peak, and at least
    ``min_event_interval_sec`` has passed since the previous candidate.
    """

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        detection_threshold: float = 0.0075
    ):
        """
        Initialize event detector.

        Args:
            config: Configuration dictionary (defaults used when None)
            detection_threshold: Initial RMS threshold (lower = more sensitive)
        """
        section = (config or {}).get("event_detection", {})
        self.min_event_interval = float(section.get("min_event_interval_sec", 0.1))
        self.peak_window_size = int(section.get("peak_window_size", 512))
        self.min_peak_prominence = float(section.get("min_peak_prominence", 0.1))

        self._detection_threshold = 0.0
        self.set_detection_threshold(detection_threshold)

        # State
        self._last_event_time: Optional[float] = None

    @property
    def detection_threshold(self) -> float:
        return self._detection_threshold

    def set_detection_threshold(self, threshold: float) -> None:
        """Set RMS threshold, clamped to [0, 1]."""
        self._detection_threshold = max(0.0, min(1.0, float(threshold)))

    @property
    def last_event_time(self) -> Optional[float]:
        return self._last_event_time

    def process_buffer(self, buffer: AudioBuffer, timestamp: Optional[float] = None) -> Optional[CandidateEvent]:
        """
        Run the detector gate on one buffer.

        Args:
            buffer: Audio buffer to inspect
            timestamp: Seconds since session start (defaults to buffer.timestamp)

        Returns:
            CandidateEvent if the buffer qualifies, None otherwise
        """
        if buffer is None or buffer.frame_count == 0:
            return None

        if timestamp is None:
            timestamp = buffer.timestamp

        rms = calculate_rms(buffer.samples)

        meets_threshold = rms > self._detection_threshold
        meets_interval = (
            self._last_event_time is None
            or timestamp - self._last_event_time >= self.min_event_interval
        )
        if not (meets_threshold and meets_interval):
            return None

        if not self.has_peak(buffer.samples):
            return None

        self._last_event_time = timestamp
        return CandidateEvent(timestamp=timestamp, rms_amplitude=rms, buffer=buffer)

    def has_peak(self, samples: np.ndarray) -> bool:
        """
        Check for a transient peak in the samples.

        Buffers of at least one peak window are split into whole windows;
        prominence is the largest window maximum minus the smallest window
        minimum of the absolute samples. Shorter buffers only need one sample
        above the detection threshold.
        """
        magnitudes = np.abs(np.nan_to_num(np.asarray(samples, dtype=np.float64)))

        if len(magnitudes) < self.peak_window_size:
            return bool(np.any(magnitudes > self._detection_threshold))

        window_count = len(magnitudes) // self.peak_window_size
        windows = magnitudes[:window_count * self.peak_window_size].reshape(window_count, self.peak_window_size)

        max_peak = float(np.max(windows.max(axis=1)))
        min_valley = float(np.min(windows.min(axis=1)))

        prominence = max_peak - min_valley
        return prominence >= self.min_peak_prominence and max_peak > self._detection_threshold

    def reset(self) -> None:
        """Forget the previous candidate (called at session start)."""
        self._last_event_time = None
