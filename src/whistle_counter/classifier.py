"""Per-frame whistle classification against a calibrated profile."""

import logging
from typing import Optional, Sequence

from .config import DetectionConfig
from .models import FeatureRecord, WhistleProfile

logger = logging.getLogger(__name__)

_DEFAULT_CONFIG = DetectionConfig()


def frame_matches(
    profile: WhistleProfile,
    record: FeatureRecord,
    config: Optional[DetectionConfig] = None,
) -> bool:
    """Check whether one frame looks like the profiled whistle.

    A frame matches only if all of these hold:
    1. It has a dominant peak.
    2. The peak lies inside the profile's frequency band.
    3. The peak reaches `amplitude_factor` of the profile's min amplitude
       (live audio is noisier than calibration, so the floor is relaxed).
    4. The signal-to-noise ratio exceeds `min_snr`.
    5. The whistle band holds more than `min_energy_ratio` of the total energy.

    The profile's max amplitude is not checked here.
    """
    config = config or _DEFAULT_CONFIG
    peak = record.dominant_peak

    if peak is None:
        logger.debug("No dominant peak")
        return False

    if not profile.min_frequency <= peak.frequency <= profile.max_frequency:
        logger.debug(
            f"Frequency mismatch: {peak.frequency:.1f} not in range "
            f"{profile.min_frequency:.1f}-{profile.max_frequency:.1f}"
        )
        return False

    amplitude_floor = profile.min_amplitude * config.amplitude_factor
    if peak.amplitude < amplitude_floor:
        logger.debug(f"Amplitude too low: {peak.amplitude:.1f} < {amplitude_floor:.1f}")
        return False

    if not record.signal_to_noise_ratio > config.min_snr:
        logger.debug(f"SNR too low: {record.signal_to_noise_ratio:.2f} <= {config.min_snr}")
        return False

    energy_ratio = record.energy_ratio
    if not energy_ratio > config.min_energy_ratio:
        logger.debug(f"Energy ratio too low: {energy_ratio:.3f} <= {config.min_energy_ratio}")
        return False

    return True


def pattern_matches(
    profile: WhistleProfile,
    records: Sequence[FeatureRecord],
    config: Optional[DetectionConfig] = None,
) -> bool:
    """Majority filter over the most recent frames.

    Returns True when at least `pattern_min_matches` of the last
    `pattern_frames` records match the profile. Fewer records than
    `pattern_frames` never match.
    """
    config = config or _DEFAULT_CONFIG
    if len(records) < config.pattern_frames:
        return False

    recent = list(records)[-config.pattern_frames :]
    matching = sum(1 for record in recent if frame_matches(profile, record, config))
    return matching >= config.pattern_min_matches
