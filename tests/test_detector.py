"""Tests for the detection state machine.

Timestamps advance in steps of 0.25 s so every comparison against the
30 second gap is exact.
"""

import numpy as np
import pytest

from whistle_counter.config import DetectionConfig
from whistle_counter.detector import DetectionState, WhistleDetector

from helpers import make_profile, make_record, silent_record

STEP = 0.25
PROFILE = make_profile(target=2000.0)


def feed(detector, records):
    """Feed records and return the emitted events."""
    events = []
    for record in records:
        event = detector.process(record)
        if event:
            events.append(event)
    return events


def matching(start_index: int, count: int):
    return [make_record((start_index + i) * STEP) for i in range(count)]


def armed_detector(**kwargs) -> WhistleDetector:
    detector = WhistleDetector(PROFILE, **kwargs)
    detector.start(now=0.0)
    return detector


class TestDetectionState:
    def test_armed_state_allows_immediate_detection(self):
        config = DetectionConfig()
        state = DetectionState.armed(100.0, config)

        assert state.last_event_time == 70.0
        assert state.sustained_frames == 0
        assert state.buffer.maxlen == 15

    def test_buffer_evicts_oldest(self):
        detector = armed_detector()
        feed(detector, matching(1, 20))

        assert len(detector.state.buffer) == 15
        assert detector.state.buffer[0].timestamp == 6 * STEP


class TestSustainedDetection:
    def test_fires_on_eighth_pattern_match(self):
        detector = armed_detector()
        records = matching(1, 10)

        # The first pattern match needs three frames, so the eighth lands on frame 10
        assert feed(detector, records[:9]) == []
        assert detector.state.sustained_frames == 7

        events = feed(detector, records[9:])
        assert len(events) == 1
        assert events[0].timestamp == 10 * STEP
        assert events[0].frequency == 2000.0
        assert detector.state.sustained_frames == 0
        assert detector.state.last_event_time == 10 * STEP

    def test_second_burst_inside_gap_is_suppressed(self):
        detector = armed_detector()

        events = feed(detector, matching(1, 10))
        events += feed(detector, matching(11, 8))

        assert len(events) == 1

    def test_continuous_whistle_respects_minimum_gap(self):
        detector = armed_detector()

        events = feed(detector, matching(1, 400))

        times = [e.timestamp for e in events]
        assert times == [2.5, 32.75, 63.0, 93.25]
        for earlier, later in zip(times, times[1:]):
            assert later - earlier > 30.0

    def test_first_whistle_needs_time_past_start(self):
        detector = WhistleDetector(PROFILE)
        detector.start(now=10.0)

        # now - last_event_time == gap exactly: not yet
        assert feed(detector, [make_record(10.0) for _ in range(10)]) == []
        assert len(feed(detector, [make_record(10.25)])) == 1

    def test_custom_gap(self):
        detector = WhistleDetector(PROFILE, DetectionConfig(minimum_gap=5.0))
        detector.start(now=0.0)

        events = feed(detector, matching(1, 60))

        assert [e.timestamp for e in events] == [2.5, 7.75, 13.0]


class TestPatternDecay:
    def test_frames_without_peak_never_count(self):
        detector = armed_detector()

        feed(detector, [silent_record(i * STEP) for i in range(1, 30)])

        assert detector.state.sustained_frames == 0

    def test_broken_pattern_decays_by_two(self):
        detector = armed_detector()
        feed(detector, matching(1, 7))
        assert detector.state.sustained_frames == 5

        # [match, match, silent] still holds the pattern
        feed(detector, [silent_record(8 * STEP)])
        assert detector.state.sustained_frames == 6

        # [match, silent, silent] breaks it
        feed(detector, [silent_record(9 * STEP)])
        assert detector.state.sustained_frames == 4

    def test_decay_stops_at_zero(self):
        detector = armed_detector()
        feed(detector, matching(1, 3))
        assert detector.state.sustained_frames == 1

        feed(detector, [silent_record(i * STEP) for i in range(4, 8)])
        assert detector.state.sustained_frames == 0

    def test_whistle_ending_at_gap_boundary_does_not_fire_on_silence(self):
        frames = []
        detector = armed_detector(on_frame=frames.append)

        # Fires at 2.5 s, then saturates the counter for the rest of the gap
        events = feed(detector, matching(1, 129))
        assert [e.timestamp for e in events] == [2.5]
        assert detector.state.sustained_frames == 15

        # Silence from 32.5 s: the gap runs out while the counter is still high
        silence = [silent_record(i * STEP) for i in range(130, 160)]
        assert feed(detector, silence) == []
        assert detector.state.sustained_frames == 0

        broken = [f for f in frames if f.timestamp > 30.0 and not f.pattern_match]
        assert broken[0].timestamp == 32.75
        assert broken[0].sustained_frames == 13

    def test_flicker_never_fires(self):
        detector = armed_detector()
        records = []
        for i in range(1, 200):
            t = i * STEP
            records.append(make_record(t) if i % 3 == 0 else silent_record(t))

        assert feed(detector, records) == []


class TestStreamProperties:
    def _random_stream(self, seed: int, count: int = 2000):
        rng = np.random.default_rng(seed)
        return [
            make_record(i * STEP) if rng.random() < 0.7 else silent_record(i * STEP)
            for i in range(1, count)
        ]

    def test_same_stream_same_events(self):
        stream = self._random_stream(seed=7)

        first = feed(armed_detector(), stream)
        second = feed(armed_detector(), stream)

        assert first == second
        assert len(first) > 0

    def test_sustained_frames_stay_bounded(self):
        detector = armed_detector()

        for record in self._random_stream(seed=11):
            detector.process(record)
            assert 0 <= detector.state.sustained_frames <= detector.config.buffer_size

    def test_events_respect_gap(self):
        events = feed(armed_detector(), self._random_stream(seed=3))

        for earlier, later in zip(events, events[1:]):
            assert later.timestamp - earlier.timestamp > 30.0

    def test_events_only_on_pattern_frames(self):
        frames = []
        detector = armed_detector(on_frame=frames.append)
        fired_on = []
        detector.on_detection = lambda event: fired_on.append(frames[-1])

        feed(detector, self._random_stream(seed=5))

        assert fired_on
        assert all(frame.pattern_match for frame in fired_on)


class TestLifecycle:
    def test_idle_detector_ignores_frames(self):
        detector = WhistleDetector(PROFILE)

        assert not detector.is_armed
        assert feed(detector, matching(1, 20)) == []

    def test_stop_discards_state(self):
        detector = armed_detector()
        feed(detector, matching(1, 5))

        detector.stop()

        assert detector.state is None
        assert detector.process(make_record(2.0)) is None

    def test_profile_change_resets_state(self):
        detector = armed_detector()
        feed(detector, matching(1, 7))

        other = make_profile(target=3000.0)
        detector.set_profile(other, now=2.0)

        assert detector.profile is other
        assert detector.state.sustained_frames == 0
        assert len(detector.state.buffer) == 0
        # Old-profile frames no longer match
        assert feed(detector, matching(9, 20)) == []

    def test_profile_change_while_idle_stays_idle(self):
        detector = WhistleDetector(PROFILE)

        detector.set_profile(make_profile(target=3000.0))

        assert not detector.is_armed

    def test_callbacks(self):
        detections, frames = [], []
        detector = armed_detector(on_detection=detections.append, on_frame=frames.append)

        feed(detector, matching(1, 10))

        assert len(detections) == 1
        assert len(frames) == 10
        assert frames[0].pattern_match is False
        assert frames[0].frame_match is True
        assert frames[2].pattern_match is True
        assert frames[8].sustained_frames == 7
        assert frames[9].sustained_frames == 0
        assert frames[9].peak_frequency == 2000.0
        assert frames[0].required_sustained_frames == 8


@pytest.mark.parametrize("frames_before_gap", [0, 5])
def test_short_noise_before_whistle_does_not_block_detection(frames_before_gap):
    detector = armed_detector()
    noise = [silent_record(i * STEP) for i in range(1, frames_before_gap + 1)]
    whistle = matching(frames_before_gap + 1, 10)

    assert len(feed(detector, noise + whistle)) == 1
