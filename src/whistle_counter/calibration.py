"""Calibration: turns training recordings into a whistle profile.

Each training recording is a short burst of feature records. The frames
with a strong in-band peak are bucketed by frequency and the loudest,
most consistent bucket becomes one `CalibrationSample`. Two or more
samples are then aggregated into a `WhistleProfile`.
"""

import logging
import math
import time
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence

from .config import CalibrationConfig, DetectionConfig
from .errors import InsufficientCalibrationData, InvalidFrequency, NoSignalDetected
from .models import CalibrationSample, FeatureRecord, WhistleProfile

logger = logging.getLogger(__name__)

_DEFAULT_CONFIG = CalibrationConfig()
_DEFAULT_BAND = DetectionConfig().whistle_band

# Values used for a sample typed in by hand instead of recorded
MANUAL_AMPLITUDE = 150.0
MANUAL_CONSISTENCY = 20
MANUAL_MAX_AMPLITUDE = 200.0


@dataclass
class FrequencyBucket:
    """Peaks that rounded to the same frequency during one recording."""

    frequency: float
    frequencies: List[float]
    amplitudes: List[float]

    @property
    def count(self) -> int:
        return len(self.amplitudes)

    @property
    def average_amplitude(self) -> float:
        return sum(self.amplitudes) / len(self.amplitudes)

    @property
    def score(self) -> float:
        return self.average_amplitude * self.count


def _bucket_frequency(frequency: float, width: float) -> float:
    # Half-way values round up
    return math.floor(frequency / width + 0.5) * width


def bucket_peaks(
    records: Iterable[FeatureRecord],
    config: Optional[CalibrationConfig] = None,
) -> Dict[float, FrequencyBucket]:
    """Group the strong in-band peaks of a recording by rounded frequency.

    Args:
        records: Feature records of one training recording.
        config: Calibration settings.

    Returns:
        Buckets keyed by rounded frequency, in first-seen order.
    """
    config = config or _DEFAULT_CONFIG
    buckets: Dict[float, FrequencyBucket] = {}

    for record in records:
        peak = record.dominant_peak
        if peak is None:
            continue
        if peak.amplitude <= config.training_floor or not _DEFAULT_BAND.contains(peak.frequency):
            continue

        key = _bucket_frequency(peak.frequency, config.bucket_width)
        bucket = buckets.get(key)
        if bucket is None:
            bucket = buckets[key] = FrequencyBucket(frequency=key, frequencies=[], amplitudes=[])
        bucket.frequencies.append(peak.frequency)
        bucket.amplitudes.append(peak.amplitude)

    return buckets


def extract_calibration_sample(
    records: Sequence[FeatureRecord],
    config: Optional[CalibrationConfig] = None,
    timestamp: Optional[float] = None,
) -> CalibrationSample:
    """Find the whistle tone in one training recording.

    Args:
        records: Feature records captured during the recording.
        config: Calibration settings.
        timestamp: Sample time (defaults to now).

    Returns:
        The CalibrationSample of the best-scoring bucket.

    Raises:
        NoSignalDetected: If no bucket has enough supporting frames.
    """
    config = config or _DEFAULT_CONFIG
    logger.debug(f"Analyzing recording: {len(records)} frames")

    buckets = bucket_peaks(records, config)
    if logger.isEnabledFor(logging.DEBUG):
        top = sorted(buckets.values(), key=lambda b: b.count, reverse=True)[:5]
        logger.debug(
            "Top frequencies: "
            + ", ".join(f"{b.frequency:.0f}Hz x{b.count} (avg {b.average_amplitude:.1f})" for b in top)
        )

    best: Optional[FrequencyBucket] = None
    for bucket in buckets.values():
        if bucket.count < config.min_bucket_frames:
            continue
        if best is None or bucket.score > best.score:
            best = bucket

    if best is None:
        raise NoSignalDetected(
            f"No sustained whistle tone in {len(records)} frames "
            f"(need {config.min_bucket_frames} frames above amplitude {config.training_floor})"
        )

    sample = CalibrationSample(
        frequency=sum(best.frequencies) / best.count,
        amplitude=best.average_amplitude,
        consistency=best.count,
        max_amplitude=max(best.amplitudes),
        timestamp=time.monotonic() if timestamp is None else timestamp,
    )
    logger.info(
        f"Calibration sample: {sample.frequency:.1f}Hz, amplitude {sample.amplitude:.1f} "
        f"({sample.consistency} frames)"
    )
    return sample


def manual_sample(frequency: float, timestamp: Optional[float] = None) -> CalibrationSample:
    """Build a calibration sample from a frequency entered by hand.

    Raises:
        InvalidFrequency: If the frequency is outside the whistle band.
    """
    if not _DEFAULT_BAND.contains(frequency):
        raise InvalidFrequency(
            f"Frequency {frequency}Hz out of valid range "
            f"({_DEFAULT_BAND.min:.0f}-{_DEFAULT_BAND.max:.0f} Hz)"
        )
    return CalibrationSample(
        frequency=float(frequency),
        amplitude=MANUAL_AMPLITUDE,
        consistency=MANUAL_CONSISTENCY,
        max_amplitude=MANUAL_MAX_AMPLITUDE,
        timestamp=time.monotonic() if timestamp is None else timestamp,
    )


def build_profile(
    samples: Sequence[CalibrationSample],
    config: Optional[CalibrationConfig] = None,
) -> WhistleProfile:
    """Aggregate calibration samples into a whistle profile.

    The band is centered on the mean sample frequency with a half-width of
    `tolerance_factor` standard deviations, never narrower than
    `min_tolerance`. The amplitude floor is a fraction of the mean sample
    amplitude, never below `min_amplitude_floor`.

    Args:
        samples: At least `min_samples` calibration samples.
        config: Calibration settings.

    Returns:
        The new WhistleProfile.

    Raises:
        InsufficientCalibrationData: If there are too few samples.
    """
    config = config or _DEFAULT_CONFIG
    if len(samples) < config.min_samples:
        raise InsufficientCalibrationData(
            f"Need at least {config.min_samples} calibration samples, got {len(samples)}"
        )

    frequencies = [s.frequency for s in samples]
    amplitudes = [s.amplitude for s in samples]

    avg_frequency = sum(frequencies) / len(frequencies)
    avg_amplitude = sum(amplitudes) / len(amplitudes)

    variance = sum((f - avg_frequency) ** 2 for f in frequencies) / len(frequencies)
    tolerance = max(math.sqrt(variance) * config.tolerance_factor, config.min_tolerance)

    min_amplitude = max(avg_amplitude * config.min_amplitude_factor, config.min_amplitude_floor)
    # The ceiling stays above the floor even for quiet samples
    max_amplitude = max(
        avg_amplitude * config.max_amplitude_factor,
        min_amplitude * config.max_amplitude_factor,
    )

    profile = WhistleProfile(
        target_frequency=avg_frequency,
        min_frequency=avg_frequency - tolerance,
        max_frequency=avg_frequency + tolerance,
        min_amplitude=min_amplitude,
        max_amplitude=max_amplitude,
        sample_count=len(samples),
    )
    logger.info(f"Whistle profile created: {profile}")
    return profile


class CalibrationRecording:
    """A timed training recording.

    Buffers feature records from `start()` until `stop()` is called or a
    frame arrives once `duration` seconds have elapsed.
    """

    def __init__(self, duration: float = 5.0, config: Optional[CalibrationConfig] = None):
        self.duration = duration
        self.config = config or _DEFAULT_CONFIG
        self.records: List[FeatureRecord] = []
        self.start_time: Optional[float] = None
        self._active = False

    @property
    def is_active(self) -> bool:
        return self._active

    def start(self, now: Optional[float] = None) -> None:
        self.records = []
        self.start_time = time.monotonic() if now is None else now
        self._active = True
        logger.info(f"Recording started ({self.duration:.1f}s max)")

    def remaining(self, now: float) -> float:
        if self.start_time is None:
            return 0.0
        return max(0.0, self.duration - (now - self.start_time))

    def add(self, record: FeatureRecord) -> bool:
        """Add a frame; returns False once the recording has stopped."""
        if not self._active:
            return False
        if record.timestamp - self.start_time >= self.duration:
            logger.info(f"Auto-stopping recording after {self.duration:.1f} seconds")
            self.stop()
            return False
        self.records.append(record)
        return True

    def stop(self) -> None:
        self._active = False

    def finish(self, timestamp: Optional[float] = None) -> CalibrationSample:
        """Stop the recording and extract its calibration sample.

        Raises:
            NoSignalDetected: If the recording holds no usable whistle.
        """
        self.stop()
        return extract_calibration_sample(self.records, self.config, timestamp)
