"""Data models for whistle features, calibration and profiles."""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from whistle_counter.errors import ProfileNameRequired


@dataclass
class Range:
    """A numeric range (min, max)."""

    min: float
    max: float

    def contains(self, value: float) -> bool:
        """Check if value falls within this range."""
        return self.min <= value <= self.max

    def __repr__(self) -> str:
        return f"Range({self.min}, {self.max})"


@dataclass(frozen=True)
class DominantPeak:
    """The strongest spectrum bin inside the whistle band for one frame."""

    frequency: float
    amplitude: float
    bin_index: int


@dataclass(frozen=True)
class FeatureRecord:
    """Compact description of one analyzed spectrum frame.

    Attributes:
        dominant_peak: Strongest in-band bin, or None if nothing cleared the peak floor
        total_energy: Sum of squared magnitudes over the whole spectrum
        whistle_energy: Sum of squared magnitudes over the whistle band
        noise_energy: Sum of squared magnitudes over the two flanking noise bands
        signal_to_noise_ratio: whistle_energy / max(noise_energy, 1)
        timestamp: Monotonic capture time in seconds
    """

    dominant_peak: Optional[DominantPeak]
    total_energy: float
    whistle_energy: float
    noise_energy: float
    signal_to_noise_ratio: float
    timestamp: float

    @property
    def energy_ratio(self) -> float:
        """Fraction of the total energy concentrated in the whistle band."""
        return self.whistle_energy / max(self.total_energy, 1.0)


@dataclass(frozen=True)
class CalibrationSample:
    """The whistle tone extracted from one training recording.

    Attributes:
        frequency: Mean peak frequency of the winning bucket (Hz)
        amplitude: Mean peak amplitude of the winning bucket
        consistency: Number of frames supporting this frequency
        max_amplitude: Loudest peak seen in the winning bucket
        timestamp: Monotonic time the sample was taken
    """

    frequency: float
    amplitude: float
    consistency: int
    max_amplitude: float
    timestamp: float


@dataclass(frozen=True)
class WhistleProfile:
    """Calibrated frequency band and amplitude bounds of one cooker's whistle."""

    target_frequency: float
    min_frequency: float
    max_frequency: float
    min_amplitude: float
    max_amplitude: float
    sample_count: int

    @property
    def frequency_range(self) -> Range:
        return Range(self.min_frequency, self.max_frequency)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "target_frequency": float(self.target_frequency),
            "min_frequency": float(self.min_frequency),
            "max_frequency": float(self.max_frequency),
            "min_amplitude": float(self.min_amplitude),
            "max_amplitude": float(self.max_amplitude),
            "sample_count": int(self.sample_count),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WhistleProfile":
        """Build a profile from its serialized form.

        Raises:
            KeyError: If a field is missing.
            ValueError: If the band or amplitude bounds are inconsistent.
        """
        profile = cls(
            target_frequency=float(data["target_frequency"]),
            min_frequency=float(data["min_frequency"]),
            max_frequency=float(data["max_frequency"]),
            min_amplitude=float(data["min_amplitude"]),
            max_amplitude=float(data["max_amplitude"]),
            sample_count=int(data.get("sample_count", 0)),
        )
        if not profile.min_frequency < profile.target_frequency < profile.max_frequency:
            raise ValueError(
                f"Invalid frequency band {profile.min_frequency}-{profile.max_frequency}Hz "
                f"around {profile.target_frequency}Hz"
            )
        if profile.min_amplitude < 0:
            raise ValueError(f"Negative minimum amplitude: {profile.min_amplitude}")
        return profile

    def __str__(self) -> str:
        return (
            f"WhistleProfile({self.target_frequency:.1f}Hz "
            f"[{self.min_frequency:.1f}-{self.max_frequency:.1f}], "
            f"amp {self.min_amplitude:.1f}-{self.max_amplitude:.1f}, "
            f"{self.sample_count} samples)"
        )


@dataclass(frozen=True)
class NamedProfile:
    """A whistle profile stored under a user-chosen name."""

    name: str
    profile: WhistleProfile

    def __post_init__(self):
        if not self.name or not self.name.strip():
            raise ProfileNameRequired("Profile name must not be empty")

    @property
    def key(self) -> str:
        """Case-insensitive lookup key."""
        return profile_key(self.name)


def profile_key(name: str) -> str:
    return name.strip().casefold()


@dataclass(frozen=True)
class WhistleEvent:
    """A confirmed whistle emitted by the detector.

    Attributes:
        timestamp: Time of the frame that confirmed the whistle
        frequency: Peak frequency of that frame (0.0 if it had no peak)
        count: Running whistle count, stamped by the counter (0 from the bare detector)
    """

    timestamp: float
    frequency: float
    count: int = 0


@dataclass(frozen=True)
class FrameDiagnostics:
    """Per-frame view of the detector's decision, for debug displays."""

    timestamp: float
    peak_frequency: Optional[float]
    peak_amplitude: Optional[float]
    signal_to_noise_ratio: float
    energy_ratio: float
    frame_match: bool
    pattern_match: bool
    sustained_frames: int
    required_sustained_frames: int
