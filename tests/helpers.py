"""Shared builders for synthetic spectra, feature records and audio."""

from typing import Optional

import numpy as np

from whistle_counter.models import DominantPeak, FeatureRecord, WhistleProfile

SAMPLE_RATE = 44100
FFT_SIZE = 2048
NUM_BINS = FFT_SIZE // 2
BIN_WIDTH = (SAMPLE_RATE / 2) / NUM_BINS


def bin_for(frequency: float) -> int:
    return int(round(frequency / BIN_WIDTH))


def make_spectrum(
    peak_frequency: Optional[float] = 2500.0,
    peak_amplitude: float = 160.0,
    floor: float = 0.0,
    num_bins: int = NUM_BINS,
) -> np.ndarray:
    """A flat spectrum at `floor` with one peak bin."""
    spectrum = np.full(num_bins, floor, dtype=np.float64)
    if peak_frequency is not None:
        spectrum[bin_for(peak_frequency)] = peak_amplitude
    return spectrum


def make_record(
    timestamp: float = 0.0,
    frequency: Optional[float] = 2000.0,
    amplitude: float = 150.0,
    snr: float = 10.0,
    energy_ratio: float = 0.8,
) -> FeatureRecord:
    """A feature record with the given peak, SNR and in-band energy share."""
    peak = None
    if frequency is not None:
        peak = DominantPeak(frequency=frequency, amplitude=amplitude, bin_index=bin_for(frequency))
    whistle_energy = amplitude * amplitude
    return FeatureRecord(
        dominant_peak=peak,
        total_energy=whistle_energy / energy_ratio,
        whistle_energy=whistle_energy,
        noise_energy=whistle_energy / snr,
        signal_to_noise_ratio=snr,
        timestamp=timestamp,
    )


def silent_record(timestamp: float = 0.0) -> FeatureRecord:
    return make_record(timestamp=timestamp, frequency=None)


def make_profile(
    target: float = 2000.0,
    tolerance: float = 80.0,
    min_amplitude: float = 105.0,
) -> WhistleProfile:
    return WhistleProfile(
        target_frequency=target,
        min_frequency=target - tolerance,
        max_frequency=target + tolerance,
        min_amplitude=min_amplitude,
        max_amplitude=min_amplitude * 2.0,
        sample_count=3,
    )


def generate_tone(
    frequency: float,
    num_samples: int = FFT_SIZE,
    amplitude: float = 0.01,
    sample_rate: int = SAMPLE_RATE,
    offset: int = 0,
) -> np.ndarray:
    """A sine chunk as int16 PCM; `offset` keeps the phase continuous across chunks."""
    t = (np.arange(num_samples) + offset) / sample_rate
    return (np.sin(2 * np.pi * frequency * t) * amplitude * 32767).astype(np.int16)


def generate_silence(num_samples: int = FFT_SIZE) -> np.ndarray:
    return np.zeros(num_samples, dtype=np.int16)
