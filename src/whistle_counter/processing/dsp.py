"""Digital Signal Processing (DSP) layer for audio analysis."""

import logging
from typing import Optional

import numpy as np

logger = logging.getLogger(__name__)


class SpectrumAnalyser:
    """Converts raw audio chunks into byte-scaled magnitude spectra.

    Produces the same kind of frame a browser analyser node hands out:
    Blackman-windowed FFT, magnitudes smoothed over time, converted to
    decibels and mapped linearly from [min_decibels, max_decibels] onto
    [0, 255]. The feature thresholds (peak floor, training floor, profile
    amplitude floor) are expressed on this scale.
    """

    def __init__(
        self,
        sample_rate: int,
        fft_size: int = 2048,
        smoothing: float = 0.8,
        min_decibels: float = -100.0,
        max_decibels: float = -30.0,
    ):
        """Initialize the spectrum analyser.

        Args:
            sample_rate: Audio sample rate in Hz
            fft_size: Number of samples per chunk (spectrum has fft_size / 2 bins)
            smoothing: Weight of the previous spectrum in the running average (0-1)
            min_decibels: Level mapped to 0
            max_decibels: Level mapped to 255
        """
        if not 0.0 <= smoothing < 1.0:
            raise ValueError(f"smoothing must be in [0, 1), got {smoothing}")
        if min_decibels >= max_decibels:
            raise ValueError("min_decibels must be below max_decibels")

        self.sample_rate = sample_rate
        self.fft_size = fft_size
        self.smoothing = smoothing
        self.min_decibels = min_decibels
        self.max_decibels = max_decibels
        self.window = np.blackman(fft_size)

        self._previous: Optional[np.ndarray] = None

    @property
    def num_bins(self) -> int:
        return self.fft_size // 2

    def process(self, audio_chunk: np.ndarray) -> Optional[np.ndarray]:
        """Analyse one audio chunk.

        Args:
            audio_chunk: Raw audio samples (int16 PCM or float in [-1, 1])

        Returns:
            float array of fft_size / 2 magnitudes in [0, 255], or None for
            a chunk of the wrong length
        """
        # Handle partial chunks
        if len(audio_chunk) != self.fft_size:
            logger.debug(f"Skipping chunk of {len(audio_chunk)} samples (need {self.fft_size})")
            return None

        # Normalize and window
        if np.issubdtype(audio_chunk.dtype, np.integer):
            float_chunk = audio_chunk.astype(np.float64) / 32768.0
        else:
            float_chunk = audio_chunk.astype(np.float64)
        windowed = float_chunk * self.window

        # FFT, scaled by the frame length, Nyquist bin dropped
        spectrum = np.abs(np.fft.rfft(windowed))[: self.num_bins] / self.fft_size

        # -- Temporal smoothing --
        if self._previous is not None:
            spectrum = self.smoothing * self._previous + (1.0 - self.smoothing) * spectrum
        self._previous = spectrum

        # -- Decibel mapping --
        with np.errstate(divide="ignore"):
            decibels = 20.0 * np.log10(spectrum)
        scale = 255.0 / (self.max_decibels - self.min_decibels)
        magnitudes = (decibels - self.min_decibels) * scale
        return np.clip(np.nan_to_num(magnitudes, neginf=0.0), 0.0, 255.0)

    def reset(self) -> None:
        """Forget the smoothing history."""
        self._previous = None
