"""Spectrum feature extraction.

Turns one frequency-magnitude frame into a `FeatureRecord`: the dominant
peak inside the whistle band plus the band energies the classifier needs.
"""

import time
from typing import Optional, Sequence, Union

import numpy as np

from ..config import DetectionConfig
from ..models import DominantPeak, FeatureRecord

_DEFAULT_CONFIG = DetectionConfig()


def bin_frequencies(num_bins: int, sample_rate: float) -> np.ndarray:
    """Return the frequency (Hz) of each bin of a `num_bins` long spectrum.

    The bins span 0 to Nyquist, so bin `i` sits at `i * (sample_rate / 2) / num_bins`.
    """
    if num_bins <= 0 or sample_rate <= 0:
        return np.zeros(0)
    resolution = (sample_rate / 2.0) / num_bins
    return np.arange(num_bins) * resolution


def extract_features(
    magnitudes: Union[np.ndarray, Sequence[float]],
    sample_rate: float,
    timestamp: Optional[float] = None,
    config: Optional[DetectionConfig] = None,
) -> FeatureRecord:
    """Extract the whistle features of one spectrum frame.

    Args:
        magnitudes: Frequency magnitudes, low to high frequency.
        sample_rate: Sample rate of the audio the spectrum came from (Hz).
        timestamp: Capture time in monotonic seconds (defaults to now).
        config: Detection thresholds (defaults to DetectionConfig()).

    Returns:
        A FeatureRecord. A degenerate frame (no bins or no sample rate)
        yields zero energies and no dominant peak.
    """
    config = config or _DEFAULT_CONFIG
    if timestamp is None:
        timestamp = time.monotonic()

    mags = np.asarray(magnitudes, dtype=np.float64).ravel()
    freqs = bin_frequencies(len(mags), sample_rate)
    if len(freqs) == 0:
        return FeatureRecord(
            dominant_peak=None,
            total_energy=0.0,
            whistle_energy=0.0,
            noise_energy=0.0,
            signal_to_noise_ratio=0.0,
            timestamp=timestamp,
        )

    power = mags * mags
    whistle = config.whistle_band
    low_noise = config.low_noise_band
    high_noise = config.high_noise_band

    in_band = (freqs >= whistle.min) & (freqs <= whistle.max)
    in_noise = ((freqs >= low_noise.min) & (freqs < low_noise.max)) | (
        (freqs > high_noise.min) & (freqs <= high_noise.max)
    )

    # -- Dominant peak --
    dominant_peak = None
    band_indices = np.flatnonzero(in_band)
    if len(band_indices) > 0:
        # argmax keeps the lowest bin on ties
        peak_index = int(band_indices[np.argmax(mags[band_indices])])
        peak_amplitude = float(mags[peak_index])
        if peak_amplitude > config.peak_floor:
            dominant_peak = DominantPeak(
                frequency=float(freqs[peak_index]),
                amplitude=peak_amplitude,
                bin_index=peak_index,
            )

    # -- Energies --
    whistle_energy = float(power[in_band].sum())
    noise_energy = float(power[in_noise].sum())
    total_energy = float(power.sum())

    return FeatureRecord(
        dominant_peak=dominant_peak,
        total_energy=total_energy,
        whistle_energy=whistle_energy,
        noise_energy=noise_energy,
        signal_to_noise_ratio=whistle_energy / max(noise_energy, 1.0),
        timestamp=timestamp,
    )
