"""Whistle Counter - pressure-cooker whistle detection and counting.

Calibrates a whistle profile from a few training recordings, then counts
sustained whistle blasts in a live audio stream and reports when a target
count is reached.

Usage:
    from whistle_counter import WhistleCounter, GlobalConfig

    counter = WhistleCounter(GlobalConfig.load("whistle.yaml"), on_whistle=print)
    counter.load_profile("Kitchen cooker")
    counter.start_detection(target=3)
    counter.start()
"""

__version__ = "1.0.0"

# Core exports
from whistle_counter.models import (
    CalibrationSample,
    DominantPeak,
    FeatureRecord,
    FrameDiagnostics,
    NamedProfile,
    Range,
    WhistleEvent,
    WhistleProfile,
)
from whistle_counter.errors import (
    InsufficientCalibrationData,
    InvalidFrequency,
    NoActiveProfile,
    NoSignalDetected,
    ProfileNameRequired,
    ProfileNotFound,
    StoreUnavailable,
    WhistleCounterError,
)
from whistle_counter.config import (
    AudioSettings,
    CalibrationConfig,
    DetectionConfig,
    GlobalConfig,
    setup_logging,
)
from whistle_counter.processing import SpectrumAnalyser, extract_features
from whistle_counter.calibration import (
    CalibrationRecording,
    build_profile,
    extract_calibration_sample,
    manual_sample,
)
from whistle_counter.classifier import frame_matches, pattern_matches
from whistle_counter.detector import DetectionState, WhistleDetector
from whistle_counter.store import MemoryProfileStore, ProfileStore, YamlProfileStore
from whistle_counter.listener import AudioListener
from whistle_counter.engine import WhistleCounter

__all__ = [
    # Version
    "__version__",
    # Core classes
    "WhistleCounter",
    "WhistleDetector",
    "DetectionState",
    "SpectrumAnalyser",
    "AudioListener",
    "CalibrationRecording",
    # Functions
    "extract_features",
    "extract_calibration_sample",
    "manual_sample",
    "build_profile",
    "frame_matches",
    "pattern_matches",
    "setup_logging",
    # Configuration
    "GlobalConfig",
    "AudioSettings",
    "CalibrationConfig",
    "DetectionConfig",
    # Models
    "CalibrationSample",
    "DominantPeak",
    "FeatureRecord",
    "FrameDiagnostics",
    "NamedProfile",
    "Range",
    "WhistleEvent",
    "WhistleProfile",
    # Profile storage
    "ProfileStore",
    "MemoryProfileStore",
    "YamlProfileStore",
    # Errors
    "WhistleCounterError",
    "NoSignalDetected",
    "InsufficientCalibrationData",
    "InvalidFrequency",
    "NoActiveProfile",
    "ProfileNotFound",
    "ProfileNameRequired",
    "StoreUnavailable",
]
