"""Main WhistleCounter class - orchestrates calibration and counting sessions."""

import logging
import threading
import time
from dataclasses import replace
from typing import Callable, List, Optional, Sequence

import numpy as np

from .calibration import CalibrationRecording, build_profile, manual_sample
from .config import GlobalConfig
from .detector import WhistleDetector
from .errors import NoActiveProfile, NoSignalDetected, ProfileNotFound, StoreUnavailable
from .listener import AudioListener
from .models import CalibrationSample, FrameDiagnostics, NamedProfile, WhistleEvent, WhistleProfile
from .processing.dsp import SpectrumAnalyser
from .processing.features import extract_features
from .store import MemoryProfileStore, ProfileStore, YamlProfileStore

logger = logging.getLogger(__name__)


class WhistleCounter:
    """Pressure-cooker whistle counter.

    Orchestrates the full pipeline:
    Audio Input → Spectrum → Features → (Calibration | Detection) → Callbacks

    Calibration and detection are mutually exclusive sessions: starting one
    stops the other. Results reach the caller only through the callbacks.

    Example:
        >>> from whistle_counter import WhistleCounter, GlobalConfig
        >>>
        >>> counter = WhistleCounter(
        ...     config=GlobalConfig.load("whistle.yaml"),
        ...     on_whistle=lambda count: print(f"Whistle {count}"),
        ...     on_target_reached=lambda count: print("Cooker ready!"),
        ... )
        >>> counter.load_profile("Kitchen cooker")
        >>> counter.start_detection(target=3)
        >>> counter.start()  # Blocking
    """

    def __init__(
        self,
        config: Optional[GlobalConfig] = None,
        store: Optional[ProfileStore] = None,
        on_whistle: Optional[Callable[[int], None]] = None,
        on_sample: Optional[Callable[[Optional[CalibrationSample]], None]] = None,
        on_target_reached: Optional[Callable[[int], None]] = None,
        on_frame: Optional[Callable[[FrameDiagnostics], None]] = None,
    ):
        """Initialize the whistle counter.

        Args:
            config: Application settings (uses defaults if None)
            store: Profile store; built from `config.storage` if None
            on_whistle: Called with the running count after every whistle
            on_sample: Called after each calibration recording with the sample, or None
            on_target_reached: Called with the final count when the target is reached
            on_frame: Called with per-frame diagnostics while detecting
        """
        self.config = config or GlobalConfig()
        self.store = store if store is not None else self._open_store()
        self.on_whistle = on_whistle
        self.on_sample = on_sample
        self.on_target_reached = on_target_reached
        self.on_frame = on_frame

        # Active profile
        self._profile: Optional[WhistleProfile] = None
        self._profile_name: Optional[str] = None

        # Calibration
        self.calibration_samples: List[CalibrationSample] = []
        self._recording: Optional[CalibrationRecording] = None

        # Counting
        self.target_whistles = self.config.counting.target_whistles
        self.current_count = 0
        self.whistle_events: List[WhistleEvent] = []
        self._detector: Optional[WhistleDetector] = None

        # Audio
        audio = self.config.audio
        self._analyser = SpectrumAnalyser(
            audio.sample_rate,
            audio.fft_size,
            smoothing=audio.smoothing,
            min_decibels=audio.min_decibels,
            max_decibels=audio.max_decibels,
        )
        self._listener: Optional[AudioListener] = None
        self._running = False

        logger.info(f"Whistle counter initialized with {len(self.store)} saved profile(s)")

    def _open_store(self) -> ProfileStore:
        path = self.config.storage.profiles_path
        if path:
            return YamlProfileStore(path)
        return MemoryProfileStore()

    # ------------------------------------------------------------------
    # Active profile
    # ------------------------------------------------------------------

    @property
    def profile(self) -> Optional[WhistleProfile]:
        return self._profile

    @property
    def profile_name(self) -> Optional[str]:
        return self._profile_name

    def set_profile(
        self,
        profile: Optional[WhistleProfile],
        name: Optional[str] = None,
        now: Optional[float] = None,
    ) -> None:
        """Make a profile active; a running detection restarts with it.

        An unnamed profile identical to a saved one takes that profile's name.
        """
        if profile is not None and name is None:
            name = self.store.find(profile)
        self._profile = profile
        self._profile_name = name
        if self._detector is not None:
            if profile is None:
                self.stop_detection()
            else:
                self._detector.set_profile(profile, now)

    # ------------------------------------------------------------------
    # Calibration
    # ------------------------------------------------------------------

    def start_calibration(self) -> None:
        """Begin a new calibration: clears samples and the active profile."""
        self.stop_detection()
        self._recording = None
        self.calibration_samples = []
        self.set_profile(None)
        logger.info(
            f"Calibration started ({self.config.calibration.samples_per_calibration} samples)"
        )

    def start_recording(self, now: Optional[float] = None) -> None:
        """Start recording one calibration sample."""
        self.stop_detection()
        self._recording = CalibrationRecording(
            duration=self.config.calibration.recording_duration,
            config=self.config.calibration,
        )
        self._recording.start(now)

    @property
    def is_recording(self) -> bool:
        return self._recording is not None and self._recording.is_active

    def stop_recording(self) -> Optional[CalibrationSample]:
        """Stop the current recording and turn it into a calibration sample.

        Returns:
            The new sample, or None if no whistle was found (the user should retry).
        """
        recording = self._recording
        if recording is None:
            return None
        self._recording = None

        try:
            sample = recording.finish()
        except NoSignalDetected as e:
            logger.warning(f"No clear whistle detected, please try again: {e}")
            sample = None
        else:
            self.calibration_samples.append(sample)
            logger.info(f"Sample {len(self.calibration_samples)} recorded successfully")

        self._notify(self.on_sample, sample)
        return sample

    def add_manual_sample(self, frequency: float) -> CalibrationSample:
        """Add a calibration sample from a frequency entered by hand.

        Raises:
            InvalidFrequency: If the frequency is outside the whistle band.
        """
        sample = manual_sample(frequency)
        self.calibration_samples.append(sample)
        logger.info(f"Manual sample added: {frequency}Hz")
        self._notify(self.on_sample, sample)
        return sample

    @property
    def calibration_complete(self) -> bool:
        return len(self.calibration_samples) >= self.config.calibration.samples_per_calibration

    def finish_calibration(self) -> WhistleProfile:
        """Build the profile from the collected samples and make it active.

        Raises:
            InsufficientCalibrationData: If fewer than two samples were collected.
        """
        profile = build_profile(self.calibration_samples, self.config.calibration)
        self.set_profile(profile)
        return profile

    # ------------------------------------------------------------------
    # Saved profiles
    # ------------------------------------------------------------------

    def profiles(self) -> List[NamedProfile]:
        return self.store.list()

    def save_profile(self, name: str) -> bool:
        """Save the active profile under a name (replacing one with the same name).

        Returns:
            False if the store could not persist the collection.

        Raises:
            NoActiveProfile: If there is nothing to save.
            ProfileNameRequired: If the name is blank.
        """
        if self._profile is None:
            raise NoActiveProfile("No whistle profile to save. Please calibrate first.")
        try:
            self.store.put(name, self._profile)
        except StoreUnavailable as e:
            logger.error(f"Error saving profile: {e}")
            return False
        self._profile_name = name.strip()
        return True

    def load_profile(self, name: str) -> WhistleProfile:
        """Make a saved profile active.

        Raises:
            ProfileNotFound: If no profile has that name.
        """
        profile = self.store.get(name)
        if profile is None:
            raise ProfileNotFound(f"Profile \"{name}\" not found")
        self.set_profile(profile, name.strip())
        logger.info(f"Profile \"{name}\" loaded: {profile}")
        return profile

    def delete_profile(self, name: str) -> bool:
        """Delete a saved profile; the active profile is cleared if it was this one.

        Returns:
            True if a profile was deleted.
        """
        try:
            deleted = self.store.delete(name)
        except StoreUnavailable as e:
            logger.error(f"Error deleting profile: {e}")
            return False

        if deleted and self._profile_name and self._profile_name.casefold() == name.strip().casefold():
            self.set_profile(None)
        return deleted

    # ------------------------------------------------------------------
    # Detection
    # ------------------------------------------------------------------

    def start_detection(self, target: Optional[int] = None, now: Optional[float] = None) -> None:
        """Start counting whistles with the active profile.

        Args:
            target: Whistle count that completes the run (keeps the current target if None)
            now: Monotonic start time (defaults to now)

        Raises:
            NoActiveProfile: If no profile is calibrated or loaded.
        """
        if self._profile is None:
            raise NoActiveProfile(
                "No whistle profile available. Please calibrate first or load a saved profile."
            )
        if target is not None:
            self.target_whistles = max(1, int(target))

        # Detection and calibration never run together
        if self._recording is not None:
            self._recording.stop()
            self._recording = None

        self._detector = WhistleDetector(
            self._profile,
            self.config.detection,
            on_detection=self._on_detection,
            on_frame=self._on_frame if self.on_frame else None,
        )
        self._detector.start(now)
        logger.info(f"Counting whistles... Target: {self.target_whistles}")

    def stop_detection(self) -> None:
        if self._detector is not None:
            self._detector.stop()
            self._detector = None

    @property
    def is_detecting(self) -> bool:
        return self._detector is not None and self._detector.is_armed

    def reset_counter(self) -> None:
        self.current_count = 0
        self.whistle_events = []
        logger.info("Counter reset")

    def _on_detection(self, event: WhistleEvent) -> None:
        self.current_count += 1
        self.whistle_events.append(replace(event, count=self.current_count))
        logger.info(f"Whistle detected! Count: {self.current_count}/{self.target_whistles}")
        self._notify(self.on_whistle, self.current_count)

        if self.current_count >= self.target_whistles:
            logger.info(f"Target reached! {self.current_count} whistles detected.")
            self.stop_detection()
            self._notify(self.on_target_reached, self.current_count)

    def _on_frame(self, diagnostics: FrameDiagnostics) -> None:
        self._notify(self.on_frame, diagnostics)

    def _notify(self, callback: Optional[Callable], value) -> None:
        if callback is None:
            return
        try:
            callback(value)
        except Exception as e:
            logger.error(f"Error in {getattr(callback, '__name__', 'callback')}: {e}", exc_info=True)

    # ------------------------------------------------------------------
    # Audio processing
    # ------------------------------------------------------------------

    def process_spectrum(
        self,
        magnitudes: Sequence[float],
        sample_rate: float,
        now: Optional[float] = None,
    ) -> bool:
        """Route one spectrum frame to the active session.

        This can be called directly if you're handling audio capture yourself.

        Args:
            magnitudes: Frequency magnitudes, low to high frequency
            sample_rate: Sample rate the spectrum was computed at
            now: Monotonic capture time (defaults to now)

        Returns:
            True if a whistle was counted on this frame
        """
        if self._recording is None and self._detector is None:
            return False

        now = time.monotonic() if now is None else now
        record = extract_features(magnitudes, sample_rate, now, self.config.detection)

        if self._recording is not None:
            if not self._recording.add(record):
                # Auto-stopped: the recording window has elapsed
                self.stop_recording()
            return False

        return self._detector.process(record) is not None

    def process_chunk(self, audio_chunk: np.ndarray, now: Optional[float] = None) -> bool:
        """Process a raw audio chunk (int16, mono, `fft_size` samples).

        Returns:
            True if a whistle was counted on this chunk
        """
        magnitudes = self._analyser.process(audio_chunk)
        if magnitudes is None:
            return False
        return self.process_spectrum(magnitudes, self.config.audio.sample_rate, now)

    def start(self) -> None:
        """Start microphone capture (blocking) until stop() is called."""
        if self._running:
            logger.warning("Whistle counter is already running")
            return

        self._listener = AudioListener(self.config.audio, self.process_chunk)

        if not self._listener.setup():
            logger.error("Failed to setup audio listener")
            return

        self._running = True
        self._analyser.reset()

        try:
            self._listener.start()
        except KeyboardInterrupt:
            logger.info("Keyboard interrupt received")
        finally:
            self.stop()

    def start_async(self) -> threading.Thread:
        """Start microphone capture in a background thread.

        Returns:
            The background thread (already started)
        """
        thread = threading.Thread(target=self.start, daemon=True)
        thread.start()
        return thread

    def stop(self) -> None:
        """Stop all sessions and release audio resources."""
        self._running = False
        self.stop_detection()
        if self._recording is not None:
            self._recording.stop()
            self._recording = None

        if self._listener:
            self._listener.stop()
            self._listener.cleanup()
            self._listener = None

        logger.info("Whistle counter stopped")

    @property
    def is_running(self) -> bool:
        return self._running
