"""
Audio buffer model and helpers.

Single Responsibility: Represent the mono audio handed to the analysis
pipeline, and turn PCM bytes or WAV files into such buffers.
"""
import wave
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Tuple

import numpy as np

# Constant for int16 to float32 conversion (2^15)
INT16_FULL_SCALE = 32768.0
BYTES_PER_SAMPLE = 2


@dataclass(frozen=True, eq=False)
class AudioBuffer:
    """
    Immutable chunk of mono audio.

    ``samples`` is stored as a read-only float32 array. A 2-D array of shape
    (frames, channels) is reduced to channel 0.
    """
    samples: np.ndarray
    sample_rate: float
    timestamp: float = 0.0  # Seconds since session start
    _frame_count: int = field(init=False, repr=False, default=0)

    def __post_init__(self):
        samples = np.asarray(self.samples, dtype=np.float32)
        if samples.ndim == 2:
            samples = samples[:, 0]
        elif samples.ndim != 1:
            samples = samples.reshape(-1)
        samples = np.array(samples, dtype=np.float32, copy=True)
        samples.setflags(write=False)
        object.__setattr__(self, "samples", samples)
        object.__setattr__(self, "_frame_count", int(samples.shape[0]))

    @property
    def frame_count(self) -> int:
        """Number of samples in the buffer."""
        return self._frame_count

    @property
    def duration_sec(self) -> float:
        """Duration of buffer in seconds."""
        if self.sample_rate <= 0:
            return 0.0
        return self._frame_count / self.sample_rate

    @property
    def nyquist(self) -> float:
        return self.sample_rate / 2.0

    @property
    def peak(self) -> float:
        """Peak absolute amplitude."""
        if self._frame_count == 0:
            return 0.0
        return float(np.max(np.abs(self.samples)))

    @property
    def is_empty(self) -> bool:
        return self._frame_count == 0

    def __len__(self) -> int:
        return self._frame_count


def buffer_from_pcm_bytes(
    data: bytes,
    sample_rate: float,
    timestamp: float = 0.0,
    channels: int = 1
) -> AudioBuffer:
    """
    Build an AudioBuffer from raw little-endian int16 PCM bytes.

    Interleaved multi-channel data is reduced to channel 0.
    """
    usable = len(data) - (len(data) % (BYTES_PER_SAMPLE * channels))
    samples = np.frombuffer(data[:usable], dtype="<i2").astype(np.float32) / INT16_FULL_SCALE
    if channels > 1:
        samples = samples.reshape(-1, channels)
    return AudioBuffer(samples=samples, sample_rate=sample_rate, timestamp=timestamp)


def load_mono_wav(path: Path) -> Tuple[np.ndarray, int]:
    """
    Load a 16-bit WAV file as a mono float32 array.

    Args:
        path: Path to WAV file

    Returns:
        Tuple of (samples, sample_rate)
        - samples: float32 array in range [-1.0, 1.0), channel 0 only
        - sample_rate: Sample rate in Hz
    """
    with wave.open(str(path), "rb") as wf:
        nch = wf.getnchannels()
        sr = wf.getframerate()
        sampwidth = wf.getsampwidth()
        frames = wf.readframes(wf.getnframes())

    if sampwidth != BYTES_PER_SAMPLE:
        raise ValueError(f"Unsupported sample width {sampwidth * 8} bits in {path}; expected 16-bit PCM")

    samples = np.frombuffer(frames, dtype="<i2").astype(np.float32) / INT16_FULL_SCALE

    if nch > 1:
        samples = samples.reshape(-1, nch)[:, 0]

    return samples, sr


def split_into_buffers(
    samples: np.ndarray,
    sample_rate: float,
    buffer_size: int = 4096,
    start_time: float = 0.0
) -> Iterator[AudioBuffer]:
    """
    Split a long recording into consecutive buffers.

    The final buffer may be shorter than ``buffer_size``. Timestamps are the
    offset of each buffer's first sample plus ``start_time``.
    """
    if buffer_size <= 0:
        raise ValueError("buffer_size must be positive")

    for start in range(0, len(samples), buffer_size):
        yield AudioBuffer(
            samples=samples[start:start + buffer_size],
            sample_rate=sample_rate,
            timestamp=start_time + start / sample_rate,
        )
