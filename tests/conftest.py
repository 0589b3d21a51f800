"""
Pytest configuration and shared fixtures.

This module provides:
- Common fixtures for test configuration
- Helper functions for synthetic audio (tones, thuds, noise, exact-dB buffers)
- Constants used across tests
"""
import sys
import tempfile
import wave
from pathlib import Path
from typing import Tuple, List

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import config_loader
import pytest
import numpy as np

from footstep.audio import AudioBuffer, INT16_FULL_SCALE
from footstep.spectrum import FrequencySpectrum

# Test constants
TEST_SAMPLE_RATE = 44100
TEST_BUFFER_SIZE = 4096
THUD_FREQUENCY = 60  # Hz
BASE_SPL_OFFSET_DB = 75.0


@pytest.fixture
def project_root_path():
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def config(project_root_path):
    """Load configuration for testing."""
    config_path = project_root_path / "config.json"
    return config_loader.load_config(config_path if config_path.exists() else None)


@pytest.fixture
def default_config():
    """Default configuration, independent of any config.json on disk."""
    return config_loader.get_default_config()


# Helper functions for test data creation

def create_sine_samples(
    frequency: float = THUD_FREQUENCY,
    amplitude: float = 0.5,
    duration: float = TEST_BUFFER_SIZE / TEST_SAMPLE_RATE,
    sample_rate: int = TEST_SAMPLE_RATE
) -> np.ndarray:
    """
    Create a float32 sine wave.

    Args:
        frequency: Frequency in Hz
        amplitude: Peak amplitude (0.0 to 1.0)
        duration: Duration in seconds
        sample_rate: Sample rate in Hz

    Returns:
        float32 array of samples
    """
    t = np.arange(int(round(sample_rate * duration))) / sample_rate
    return (np.sin(2 * np.pi * frequency * t) * amplitude).astype(np.float32)


def make_buffer(samples, sample_rate: int = TEST_SAMPLE_RATE, timestamp: float = 0.0) -> AudioBuffer:
    return AudioBuffer(samples=np.asarray(samples, dtype=np.float32), sample_rate=sample_rate, timestamp=timestamp)


def sine_amplitude_for_spl(db: float) -> float:
    """Peak amplitude of a sine that reads ``db`` dB SPL (uncalibrated)."""
    return float(np.sqrt(2.0) * 10 ** ((db - BASE_SPL_OFFSET_DB) / 20.0))


def thud_buffer(
    db: float = 70.0,
    timestamp: float = 0.0,
    frequency: float = THUD_FREQUENCY,
    frames: int = TEST_BUFFER_SIZE
) -> AudioBuffer:
    """Low-frequency tone buffer at roughly ``db`` dB SPL."""
    samples = create_sine_samples(
        frequency=frequency,
        amplitude=sine_amplitude_for_spl(db),
        duration=frames / TEST_SAMPLE_RATE,
    )
    return make_buffer(samples, timestamp=timestamp)


def level_buffer(db: float, frames: int = TEST_BUFFER_SIZE, timestamp: float = 0.0) -> AudioBuffer:
    """Constant-amplitude buffer whose RMS reads exactly ``db`` dB SPL."""
    amplitude = 10 ** ((db - BASE_SPL_OFFSET_DB) / 20.0)
    return make_buffer(np.full(frames, amplitude, dtype=np.float32), timestamp=timestamp)


def quiet_buffer(timestamp: float = 0.0, std: float = 0.0005, seed: int = 0) -> AudioBuffer:
    """Low-level noise, well under the detection threshold."""
    rng = np.random.default_rng(seed)
    return make_buffer(rng.normal(0.0, std, TEST_BUFFER_SIZE).astype(np.float32), timestamp=timestamp)


def footstep_spectrum(
    dominant_frequency: float = 50.0,
    impact_ratio: float = 0.8,
    centroid: float = 80.0
) -> FrequencySpectrum:
    """FrequencySpectrum with the requested impact ratio (total energy 1.0)."""
    rest = (1.0 - impact_ratio) / 4.0
    return FrequencySpectrum(
        impact_energy=impact_ratio,
        low_mid_energy=rest,
        mid_energy=rest,
        high_mid_energy=rest,
        high_energy=rest,
        dominant_frequency=dominant_frequency,
        spectral_centroid=centroid,
    )


def thud_sequence(thud_times: List[float], total_sec: float = 4.0, thud_db: float = 65.0) -> List[AudioBuffer]:
    """
    Consecutive buffers of quiet noise with thuds at the given times.

    Each thud replaces the buffer whose start time is closest at or after it.
    """
    buffer_sec = TEST_BUFFER_SIZE / TEST_SAMPLE_RATE
    count = int(total_sec / buffer_sec)
    pending = sorted(thud_times)
    buffers = []
    for index in range(count):
        timestamp = index * buffer_sec
        if pending and timestamp >= pending[0]:
            pending.pop(0)
            buffers.append(thud_buffer(thud_db, timestamp=timestamp))
        else:
            buffers.append(quiet_buffer(timestamp=timestamp, seed=index))
    return buffers


def write_wav(path: Path, samples: np.ndarray, sample_rate: int = TEST_SAMPLE_RATE, channels: int = 1) -> Path:
    """Write float samples (frames x channels for stereo) as 16-bit PCM."""
    pcm = np.clip(np.asarray(samples) * INT16_FULL_SCALE, -32768, 32767).astype("<i2")
    with wave.open(str(path), "wb") as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(2)
        wf.setframerate(sample_rate)
        wf.writeframes(pcm.tobytes())
    return path


def create_test_wav_file(
    sample_rate: int = TEST_SAMPLE_RATE,
    duration: float = 1.0,
    frequency: float = THUD_FREQUENCY,
    amplitude: float = 0.5
) -> Tuple[Path, int]:
    """
    Create a temporary WAV file with a test tone.

    Returns:
        Tuple of (file_path, sample_rate)
    """
    with tempfile.NamedTemporaryFile(suffix=".wav", delete=False) as tmp:
        tmp_path = Path(tmp.name)

    write_wav(tmp_path, create_sine_samples(frequency, amplitude, duration, sample_rate), sample_rate)
    return tmp_path, sample_rate
