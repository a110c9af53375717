"""Configuration for the whistle counter.

This module centralizes the tuning constants of the feature extractor,
the calibration aggregator and the detector, together with audio,
storage and logging settings. Everything can be loaded from a single
YAML file via `GlobalConfig.load`.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from .models import Range

logger = logging.getLogger(__name__)

# Whistle band and flanking noise bands (Hz)
WHISTLE_BAND = (1000.0, 6000.0)
LOW_NOISE_BAND = (100.0, 1000.0)
HIGH_NOISE_BAND = (6000.0, 10000.0)

# Minimum time between two counted whistles (seconds)
DEFAULT_MINIMUM_GAP = 30.0


@dataclass
class DetectionConfig:
    """Thresholds for feature extraction, frame classification and detection.

    Attributes:
        whistle_band: Target band scanned for the dominant peak (inclusive).
        low_noise_band: Lower noise band, [min, max).
        high_noise_band: Upper noise band, (min, max].
        peak_floor: A peak must exceed this magnitude to count as dominant.
        amplitude_factor: Live peaks need this fraction of the profile's min amplitude.
        min_snr: Whistle/noise energy ratio a frame must exceed.
        min_energy_ratio: Fraction of total energy the whistle band must exceed.
        buffer_size: Number of recent frames kept by the detector.
        pattern_frames: Frames examined by the majority filter.
        pattern_min_matches: Matching frames needed among `pattern_frames`.
        required_sustained_frames: Sustained pattern count that confirms a whistle.
        sustained_decay: Amount subtracted from the sustained count when the pattern breaks.
        minimum_gap: Seconds that must pass between two counted whistles.
    """

    whistle_band: Range = field(default_factory=lambda: Range(*WHISTLE_BAND))
    low_noise_band: Range = field(default_factory=lambda: Range(*LOW_NOISE_BAND))
    high_noise_band: Range = field(default_factory=lambda: Range(*HIGH_NOISE_BAND))
    peak_floor: float = 20.0
    amplitude_factor: float = 0.5
    min_snr: float = 2.0
    min_energy_ratio: float = 0.15
    buffer_size: int = 15
    pattern_frames: int = 3
    pattern_min_matches: int = 2
    required_sustained_frames: int = 8
    sustained_decay: int = 2
    minimum_gap: float = DEFAULT_MINIMUM_GAP


@dataclass
class CalibrationConfig:
    """Settings for turning training recordings into a whistle profile.

    Attributes:
        training_floor: Peaks must exceed this amplitude to be bucketed.
        bucket_width: Peak frequencies are rounded to multiples of this (Hz).
        min_bucket_frames: Frames a bucket needs before it can win.
        min_samples: Calibration samples needed to build a profile.
        samples_per_calibration: Samples the guided calibration asks for.
        tolerance_factor: Band half-width as a multiple of the frequency std-dev.
        min_tolerance: Lower bound on the band half-width (Hz).
        min_amplitude_factor: Profile floor as a fraction of the mean amplitude.
        min_amplitude_floor: Absolute lower bound on the profile floor.
        max_amplitude_factor: Profile ceiling as a multiple of the mean amplitude.
        recording_duration: Seconds after which a training recording stops by itself.
    """

    training_floor: float = 30.0
    bucket_width: float = 20.0
    min_bucket_frames: int = 5
    min_samples: int = 2
    samples_per_calibration: int = 3
    tolerance_factor: float = 1.5
    min_tolerance: float = 80.0
    min_amplitude_factor: float = 0.7
    min_amplitude_floor: float = 100.0
    max_amplitude_factor: float = 2.0
    recording_duration: float = 5.0


@dataclass
class SystemConfig:
    """System-level configuration settings.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional path to a log file.
    """

    log_level: str = "INFO"
    log_file: Optional[str] = None


@dataclass
class AudioSettings:
    """Audio capture and spectrum analysis settings.

    Attributes:
        sample_rate: Audio sampling rate in Hz.
        fft_size: Samples per analysed chunk; the spectrum has fft_size / 2 bins.
        smoothing: Exponential smoothing between consecutive spectra (0-1).
        min_decibels: Level mapped to magnitude 0.
        max_decibels: Level mapped to magnitude 255.
        device_index: Specific audio device index (None for default).
        channels: Number of audio channels (usually 1 for mono).
    """

    sample_rate: int = 44100
    fft_size: int = 2048
    smoothing: float = 0.8
    min_decibels: float = -100.0
    max_decibels: float = -30.0
    device_index: Optional[int] = None
    channels: int = 1


@dataclass
class StorageSettings:
    """Where saved whistle profiles live.

    Attributes:
        profiles_path: YAML file holding the saved profiles (None keeps them in memory).
    """

    profiles_path: Optional[str] = None


@dataclass
class CountingSettings:
    """Counting session settings.

    Attributes:
        target_whistles: Whistle count that completes a cooking run.
    """

    target_whistles: int = 3


@dataclass
class GlobalConfig:
    """Unified configuration for the entire application.

    Loads system, audio, detection, calibration, counting and storage
    settings from a single YAML file.
    """

    system: SystemConfig = field(default_factory=SystemConfig)
    audio: AudioSettings = field(default_factory=AudioSettings)
    detection: DetectionConfig = field(default_factory=DetectionConfig)
    calibration: CalibrationConfig = field(default_factory=CalibrationConfig)
    counting: CountingSettings = field(default_factory=CountingSettings)
    storage: StorageSettings = field(default_factory=StorageSettings)

    @classmethod
    def load(cls, path: Union[str, Path]) -> "GlobalConfig":
        """Load the global configuration from a YAML file.

        The YAML file may contain any of the following sections:
        ```yaml
        system:
          log_level: INFO
        audio:
          sample_rate: 44100
          fft_size: 2048
        detection:
          minimum_gap: 30
          whistle_band: [1000, 6000]
        calibration:
          recording_duration: 5
        counting:
          target_whistles: 3
        storage:
          profiles_path: profiles.yaml
        ```

        Relative `profiles_path` values are resolved against the config file.

        Args:
            path: Path to the configuration YAML file.

        Returns:
            A GlobalConfig object populated with the settings.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}

        # 1. Plain sections
        system_config = _build(SystemConfig, data.get("system"))
        audio_config = _build(AudioSettings, data.get("audio"))
        calibration_config = _build(CalibrationConfig, data.get("calibration"))
        counting_config = _build(CountingSettings, data.get("counting"))

        # 2. Detection: bands are given as [min, max] pairs
        detection_data = dict(data.get("detection") or {})
        for band in ("whistle_band", "low_noise_band", "high_noise_band"):
            if band in detection_data:
                detection_data[band] = _parse_band(detection_data[band])
        detection_config = _build(DetectionConfig, detection_data)

        # 3. Storage path relative to the config file
        storage_config = _build(StorageSettings, data.get("storage"))
        if storage_config.profiles_path:
            profiles_path = Path(storage_config.profiles_path).expanduser()
            if not profiles_path.is_absolute():
                profiles_path = path.parent / profiles_path
            storage_config.profiles_path = str(profiles_path)

        return cls(
            system=system_config,
            audio=audio_config,
            detection=detection_config,
            calibration=calibration_config,
            counting=counting_config,
            storage=storage_config,
        )


def _build(config_cls, data: Optional[Dict[str, Any]]):
    """Instantiate a config dataclass from a YAML mapping, ignoring unknown keys."""
    data = data or {}
    known = config_cls.__dataclass_fields__
    unknown = sorted(set(data) - set(known))
    if unknown:
        logger.warning(f"Ignoring unknown {config_cls.__name__} keys: {unknown}")
    return config_cls(**{k: v for k, v in data.items() if k in known})


def _parse_band(value: Any) -> Range:
    if isinstance(value, Range):
        return value
    if isinstance(value, dict):
        low, high = value["min"], value["max"]
    else:
        low, high = value
    if float(low) >= float(high):
        raise ValueError(f"Invalid band [{low}, {high}]")
    return Range(float(low), float(high))


def setup_logging(system: Optional[SystemConfig] = None) -> logging.Logger:
    """Configure the root logger from the system settings.

    Args:
        system: System settings; defaults to INFO on the console only.

    Returns:
        The root logger.
    """
    system = system or SystemConfig()
    handlers = [logging.StreamHandler()]
    if system.log_file:
        log_path = Path(system.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path))

    logging.basicConfig(
        level=getattr(logging, system.log_level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%H:%M:%S",
        handlers=handlers,
        force=True,
    )
    return logging.getLogger()
