"""
Tests for footstep.detector module.

Tests the RMS gate, peak prominence check and minimum event spacing.
"""
import pytest
import numpy as np

from footstep.detector import EventDetector, CandidateEvent
from tests.conftest import (
    create_sine_samples,
    make_buffer,
    quiet_buffer,
    thud_buffer,
    TEST_SAMPLE_RATE,
)


class TestDetectionGate:
    """Test candidate flagging."""

    def test_loud_thud_is_candidate(self):
        """Test a loud low-frequency buffer becomes a candidate."""
        detector = EventDetector()
        buffer = thud_buffer(70.0, timestamp=1.5)
        candidate = detector.process_buffer(buffer)

        assert isinstance(candidate, CandidateEvent)
        assert candidate.timestamp == 1.5
        assert candidate.buffer is buffer
        # 70 dB SPL is -5 dBFS
        assert candidate.rms_amplitude == pytest.approx(10 ** (-5 / 20), rel=0.03)

    def test_quiet_buffer_rejected(self):
        """Test buffers under the RMS threshold are not candidates."""
        assert EventDetector().process_buffer(quiet_buffer()) is None

    def test_empty_buffer(self):
        """Test empty buffers are ignored."""
        assert EventDetector().process_buffer(make_buffer(np.array([], dtype=np.float32))) is None

    def test_timestamp_override(self):
        """Test an explicit timestamp takes precedence over the buffer's."""
        candidate = EventDetector().process_buffer(thud_buffer(70.0, timestamp=1.0), timestamp=7.0)

        assert candidate.timestamp == 7.0

    def test_threshold_follows_setting(self):
        """Test raising the threshold rejects a moderate buffer."""
        detector = EventDetector(detection_threshold=0.0075)
        buffer = make_buffer(create_sine_samples(60.0, 0.2))
        assert detector.process_buffer(buffer) is not None

        detector.reset()
        detector.set_detection_threshold(0.5)
        assert detector.process_buffer(buffer) is None

    def test_threshold_clamped(self):
        """Test thresholds are clamped to [0, 1]."""
        detector = EventDetector()
        detector.set_detection_threshold(5.0)
        assert detector.detection_threshold == 1.0
        detector.set_detection_threshold(-1.0)
        assert detector.detection_threshold == 0.0


class TestEventSpacing:
    """Test minimum interval between candidates."""

    def test_second_candidate_too_soon(self):
        """Test candidates closer than 0.1 s are suppressed."""
        detector = EventDetector()
        assert detector.process_buffer(thud_buffer(70.0, timestamp=0.0)) is not None
        assert detector.process_buffer(thud_buffer(70.0, timestamp=0.05)) is None
        assert detector.process_buffer(thud_buffer(70.0, timestamp=0.1)) is not None

    def test_rejected_buffer_does_not_move_reference(self):
        """Test only accepted candidates update the last event time."""
        detector = EventDetector()
        detector.process_buffer(thud_buffer(70.0, timestamp=0.0))
        detector.process_buffer(thud_buffer(70.0, timestamp=0.05))

        assert detector.last_event_time == 0.0

    def test_reset(self):
        """Test reset forgets the previous candidate."""
        detector = EventDetector()
        detector.process_buffer(thud_buffer(70.0, timestamp=0.0))
        detector.reset()

        assert detector.last_event_time is None
        assert detector.process_buffer(thud_buffer(70.0, timestamp=0.01)) is not None


class TestPeakProminence:
    """Test transient peak detection."""

    def test_flat_signal_has_no_peak(self):
        """Test a constant (DC) signal is rejected despite its RMS."""
        detector = EventDetector()
        buffer = make_buffer(np.full(4096, 0.3, dtype=np.float32))

        assert not detector.has_peak(buffer.samples)
        assert detector.process_buffer(buffer) is None

    def test_impulse_has_peak(self):
        """Test a single spike in silence is prominent."""
        samples = np.zeros(4096, dtype=np.float32)
        samples[2000:2040] = 0.9

        assert EventDetector().has_peak(samples)

    def test_short_buffer_uses_threshold(self):
        """Test buffers shorter than one window only need a sample above threshold."""
        detector = EventDetector()
        samples = create_sine_samples(200.0, 0.05, duration=256 / TEST_SAMPLE_RATE)

        assert detector.has_peak(samples)
        assert not detector.has_peak(np.zeros(256, dtype=np.float32))

    def test_config_values(self, default_config):
        """Test detector reads the event_detection config section."""
        default_config["event_detection"]["min_event_interval_sec"] = 0.5
        detector = EventDetector(default_config)

        assert detector.min_event_interval == 0.5
        assert detector.peak_window_size == 512
