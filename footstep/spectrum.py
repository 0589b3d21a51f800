"""
Spectral analysis of audio buffers.

This module computes the frequency-domain measures used to tell footstep
impacts apart from other sounds: energy in five bands, the dominant
frequency and the spectral centroid.

Single Responsibility: FFT-based feature extraction for a single buffer.
"""
from dataclasses import dataclass
from typing import Optional, Dict, Any, Tuple

import numpy as np

from .audio import AudioBuffer

DEFAULT_FFT_SIZE = 2048

# Band edges in Hz
DEFAULT_BANDS = {
    "impact": (20.0, 100.0),      # sub-bass thud of a heel or stomp
    "low_mid": (100.0, 300.0),    # heel strikes
    "mid": (300.0, 1000.0),
    "high_mid": (1000.0, 3000.0), # shuffling/scraping
    "high": (3000.0, 8000.0),     # transients
}


@dataclass(frozen=True)
class FrequencySpectrum:
    """Band energies (amplitude RMS per band) and spectral shape of a buffer."""
    impact_energy: float
    low_mid_energy: float
    mid_energy: float
    high_mid_energy: float
    high_energy: float
    dominant_frequency: float
    spectral_centroid: float

    @property
    def total_energy(self) -> float:
        return (
            self.impact_energy
            + self.low_mid_energy
            + self.mid_energy
            + self.high_mid_energy
            + self.high_energy
        )

    @property
    def impact_ratio(self) -> float:
        """Share of the summed band energy that sits in the impact band."""
        total = self.total_energy
        if total <= 0 or not np.isfinite(total):
            return 0.0
        return self.impact_energy / total

    def band_ratios(self) -> Dict[str, float]:
        total = self.total_energy
        energies = {
            "impact": self.impact_energy,
            "low_mid": self.low_mid_energy,
            "mid": self.mid_energy,
            "high_mid": self.high_mid_energy,
            "high": self.high_energy,
        }
        if total <= 0:
            return {name: 0.0 for name in energies}
        return {name: value / total for name, value in energies.items()}


class SpectrumAnalyzer:
    """
    Windowed FFT analyzer for a fixed sample rate.

    Only the first ``fft_size`` samples of a buffer are analyzed; shorter
    buffers are zero-padded.
    """

    def __init__(
        self,
        sample_rate: float = 44100.0,
        fft_size: int = DEFAULT_FFT_SIZE,
        min_frequency_hz: float = 20.0,
        bands: Optional[Dict[str, Tuple[float, float]]] = None
    ):
        if fft_size < 2 or fft_size & (fft_size - 1):
            raise ValueError(f"fft_size must be a power of two, got {fft_size}")
        if not np.isfinite(sample_rate) or sample_rate <= 0:
            raise ValueError(f"sample_rate must be positive, got {sample_rate}")

        self.sample_rate = float(sample_rate)
        self.fft_size = fft_size
        self.min_frequency_hz = min_frequency_hz
        self.frequency_resolution = self.sample_rate / fft_size
        self.bands = dict(DEFAULT_BANDS)
        if bands:
            self.bands.update({name: (float(lo), float(hi)) for name, (lo, hi) in bands.items()})

        self._window = np.hanning(fft_size)
        self._frequencies = np.arange(fft_size // 2) * self.frequency_resolution

    @classmethod
    def from_config(cls, config: Dict[str, Any], sample_rate: Optional[float] = None) -> "SpectrumAnalyzer":
        """Create an analyzer from the ``spectrum`` config section."""
        section = config.get("spectrum", {})
        if sample_rate is None:
            sample_rate = config.get("audio", {}).get("sample_rate", 44100)
        return cls(
            sample_rate=sample_rate,
            fft_size=section.get("fft_size", DEFAULT_FFT_SIZE),
            min_frequency_hz=section.get("min_frequency_hz", 20.0),
            bands=section.get("bands"),
        )

    def amplitude_spectrum(self, samples: np.ndarray) -> np.ndarray:
        """
        Single-sided amplitude spectrum of the first ``fft_size`` samples.

        Returns ``fft_size // 2`` bins scaled by 2/N.
        """
        analysis_size = min(len(samples), self.fft_size)
        frame = np.zeros(self.fft_size, dtype=np.float64)
        frame[:analysis_size] = np.nan_to_num(
            np.asarray(samples[:analysis_size], dtype=np.float64),
            nan=0.0, posinf=0.0, neginf=0.0,
        )
        frame *= self._window

        spec = np.abs(np.fft.rfft(frame))[:self.fft_size // 2]
        return spec * (2.0 / self.fft_size)

    def analyze(self, buffer: AudioBuffer) -> Optional[FrequencySpectrum]:
        """
        Analyze an audio buffer.

        Returns:
            FrequencySpectrum, or None if the buffer has no frames
        """
        if buffer is None or buffer.frame_count == 0:
            return None
        return self.analyze_samples(buffer.samples)

    def analyze_samples(self, samples: np.ndarray) -> Optional[FrequencySpectrum]:
        if samples is None or len(samples) == 0:
            return None

        amplitudes = self.amplitude_spectrum(samples)

        return FrequencySpectrum(
            impact_energy=self.band_energy(amplitudes, *self.bands["impact"]),
            low_mid_energy=self.band_energy(amplitudes, *self.bands["low_mid"]),
            mid_energy=self.band_energy(amplitudes, *self.bands["mid"]),
            high_mid_energy=self.band_energy(amplitudes, *self.bands["high_mid"]),
            high_energy=self.band_energy(amplitudes, *self.bands["high"]),
            dominant_frequency=self.dominant_frequency(amplitudes),
            spectral_centroid=self.spectral_centroid(amplitudes),
        )

    def band_energy(self, amplitudes: np.ndarray, low_hz: float, high_hz: float) -> float:
        """RMS of the amplitudes of the bins covering [low_hz, high_hz]."""
        low_bin = max(0, int(low_hz / self.frequency_resolution))
        high_bin = min(len(amplitudes) - 1, int(high_hz / self.frequency_resolution))

        if low_bin >= high_bin:
            return 0.0

        band = amplitudes[low_bin:high_bin + 1]
        return float(np.sqrt(np.mean(band ** 2)))

    def dominant_frequency(self, amplitudes: np.ndarray) -> float:
        """Frequency of the strongest bin, ignoring DC and sub-20 Hz rumble."""
        start_bin = max(1, int(self.min_frequency_hz / self.frequency_resolution))
        if start_bin >= len(amplitudes):
            return 0.0

        search = amplitudes[start_bin:]
        peak_idx = int(np.argmax(search))
        if search[peak_idx] <= 0:
            return 0.0
        return float((start_bin + peak_idx) * self.frequency_resolution)

    def spectral_centroid(self, amplitudes: np.ndarray) -> float:
        """Amplitude-weighted mean frequency; 0 for a silent spectrum."""
        total = float(np.sum(amplitudes))
        if total <= 0:
            return 0.0
        return float(np.sum(self._frequencies[:len(amplitudes)] * amplitudes) / total)
