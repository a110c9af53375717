"""Detection state machine for sustained whistle tones.

The detector keeps a short sliding window of feature records and a
sustained-match counter:

1. Every frame is appended to a bounded buffer.
2. A 2-of-3 majority filter over the newest frames decides whether the
   whistle pattern is present.
3. A present pattern adds one to the sustained counter; a broken pattern
   subtracts two (brief dropouts are tolerated, flicker is not).
4. On a frame where the pattern holds, once the counter reaches the
   required number of frames and the minimum gap since the last whistle
   has elapsed, one whistle is emitted.

One continuous blast therefore counts exactly once, however long it lasts.
"""

import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Deque, Optional

from .classifier import frame_matches, pattern_matches
from .config import DetectionConfig
from .models import FeatureRecord, FrameDiagnostics, WhistleEvent, WhistleProfile

logger = logging.getLogger(__name__)


@dataclass
class DetectionState:
    """Mutable state of one detection session.

    Attributes:
        buffer: Most recent feature records, oldest evicted first
        sustained_frames: Sustained pattern strength
        last_event_time: Time of the last emitted whistle
    """

    buffer: Deque[FeatureRecord] = field(default_factory=deque)
    sustained_frames: int = 0
    last_event_time: float = 0.0

    @classmethod
    def armed(cls, now: float, config: DetectionConfig) -> "DetectionState":
        """Fresh state that lets the very first whistle fire immediately."""
        return cls(
            buffer=deque(maxlen=config.buffer_size),
            sustained_frames=0,
            last_event_time=now - config.minimum_gap,
        )


class WhistleDetector:
    """Turns a stream of feature records into whistle events.

    Must be driven by a single sequential loop; records are expected in
    temporal order and each record's timestamp is used as the current time.
    """

    def __init__(
        self,
        profile: WhistleProfile,
        config: Optional[DetectionConfig] = None,
        on_detection: Optional[Callable[[WhistleEvent], None]] = None,
        on_frame: Optional[Callable[[FrameDiagnostics], None]] = None,
    ):
        """Initialize the detector (idle until `start()`).

        Args:
            profile: Whistle profile to match against
            config: Detection thresholds
            on_detection: Called with each emitted WhistleEvent
            on_frame: Called with FrameDiagnostics after every processed frame
        """
        self.profile = profile
        self.config = config or DetectionConfig()
        self.on_detection = on_detection
        self.on_frame = on_frame
        self.state: Optional[DetectionState] = None

    @property
    def is_armed(self) -> bool:
        return self.state is not None

    def start(self, now: Optional[float] = None) -> None:
        """Arm the detector with a fresh state."""
        now = time.monotonic() if now is None else now
        self.state = DetectionState.armed(now, self.config)
        logger.info(
            f"Detection armed: {self.profile.min_frequency:.1f}-"
            f"{self.profile.max_frequency:.1f}Hz, gap {self.config.minimum_gap:.0f}s"
        )

    def stop(self) -> None:
        """Disarm the detector and discard its state."""
        if self.state is not None:
            logger.info("Detection stopped")
        self.state = None

    def set_profile(self, profile: WhistleProfile, now: Optional[float] = None) -> None:
        """Switch to another profile, resetting the state if armed."""
        self.profile = profile
        if self.state is not None:
            logger.info("Profile changed, resetting detection state")
            self.start(now)

    def process(self, record: FeatureRecord) -> Optional[WhistleEvent]:
        """Consume one feature record.

        Args:
            record: The next frame's features

        Returns:
            A WhistleEvent if this frame confirmed a whistle, otherwise None.
            Frames are ignored while the detector is idle.
        """
        state = self.state
        if state is None:
            return None
        config = self.config

        state.buffer.append(record)

        event = None
        pattern = pattern_matches(self.profile, state.buffer, config)
        if not pattern:
            state.sustained_frames = max(0, state.sustained_frames - config.sustained_decay)
        else:
            state.sustained_frames = min(state.sustained_frames + 1, config.buffer_size)
            event = self._check_fire(state, record)

        if self.on_frame:
            self._emit_frame(record, pattern)
        if event and self.on_detection:
            self.on_detection(event)

        return event

    def _check_fire(self, state: DetectionState, record: FeatureRecord) -> Optional[WhistleEvent]:
        # Only called on frames where the pattern holds
        config = self.config
        now = record.timestamp
        event = None
        if state.sustained_frames >= config.required_sustained_frames:
            if now - state.last_event_time > config.minimum_gap:
                peak = record.dominant_peak
                event = WhistleEvent(
                    timestamp=now,
                    frequency=peak.frequency if peak else 0.0,
                )
                state.sustained_frames = 0
                state.last_event_time = now
                logger.info(f"Whistle detected at {now:.2f}s ({event.frequency:.0f}Hz)")
            else:
                logger.debug(
                    f"Suppressing whistle: {now - state.last_event_time:.1f}s since last "
                    f"(< {config.minimum_gap:.0f}s)"
                )
        return event

    def _emit_frame(self, record: FeatureRecord, pattern: bool) -> None:
        peak = record.dominant_peak
        diagnostics = FrameDiagnostics(
            timestamp=record.timestamp,
            peak_frequency=peak.frequency if peak else None,
            peak_amplitude=peak.amplitude if peak else None,
            signal_to_noise_ratio=record.signal_to_noise_ratio,
            energy_ratio=record.energy_ratio,
            frame_match=frame_matches(self.profile, record, self.config),
            pattern_match=pattern,
            sustained_frames=self.state.sustained_frames,
            required_sustained_frames=self.config.required_sustained_frames,
        )
        self.on_frame(diagnostics)
