"""Run the full pipeline on synthetic audio mixed with noise.

This test:
1. Generates a synthetic cooker whistle as raw PCM chunks
2. Mixes it with background noise or clatter
3. Verifies each whistle is counted exactly once and noise never is
"""

import numpy as np
import pytest

from whistle_counter.config import AudioSettings, GlobalConfig
from whistle_counter.engine import WhistleCounter
from whistle_counter.store import MemoryProfileStore

from helpers import (
    BIN_WIDTH,
    FFT_SIZE,
    SAMPLE_RATE,
    bin_for,
    generate_silence,
    generate_tone,
    make_profile,
)

CHUNK_SECONDS = FFT_SIZE / SAMPLE_RATE
WHISTLE_FREQ = 2500.0
WHISTLE_HZ = bin_for(WHISTLE_FREQ) * BIN_WIDTH


def tone_chunks(frequency: float, count: int, start: int = 0):
    """Phase-continuous tone split into FFT-sized chunks."""
    return [generate_tone(frequency, offset=(start + i) * FFT_SIZE) for i in range(count)]


def silence_chunks(count: int):
    return [generate_silence() for _ in range(count)]


def add_noise(chunks, sigma: float, seed: int = 0):
    """Mix white noise (sigma in full-scale units) into int16 chunks."""
    rng = np.random.default_rng(seed)
    noisy = []
    for chunk in chunks:
        mixed = chunk.astype(np.float64) + rng.normal(0.0, sigma * 32767, size=len(chunk))
        noisy.append(np.clip(mixed, -32768, 32767).astype(np.int16))
    return noisy


def run_pipeline(counter: WhistleCounter, chunks, start_time: float = 0.0) -> int:
    """Feed chunks at real-time spacing and return how many whistles were counted."""
    counted = 0
    for i, chunk in enumerate(chunks):
        if counter.process_chunk(chunk, now=start_time + i * CHUNK_SECONDS):
            counted += 1
    return counted


def detecting_counter(audio: AudioSettings = None) -> WhistleCounter:
    config = GlobalConfig()
    if audio is not None:
        config.audio = audio
    counter = WhistleCounter(config, store=MemoryProfileStore())
    counter.set_profile(make_profile(target=WHISTLE_HZ))
    counter.start_detection(target=10, now=0.0)
    return counter


def test_clean_whistle_counted_once():
    counter = detecting_counter()
    audio = silence_chunks(20) + tone_chunks(WHISTLE_FREQ, 200) + silence_chunks(20)

    assert run_pipeline(counter, audio) == 1
    assert counter.current_count == 1


def test_whistle_in_background_noise_counted_once():
    counter = detecting_counter()
    audio = add_noise(
        silence_chunks(20) + tone_chunks(WHISTLE_FREQ, 200) + silence_chunks(20),
        sigma=0.001,
        seed=42,
    )

    assert run_pipeline(counter, audio) == 1


def test_background_noise_alone_is_never_counted():
    counter = detecting_counter()
    audio = add_noise(silence_chunks(300), sigma=0.001, seed=7)

    assert run_pipeline(counter, audio) == 0


def test_tone_outside_profile_band_is_ignored():
    counter = detecting_counter()

    assert run_pipeline(counter, tone_chunks(4000.0, 200)) == 0


def test_short_bursts_are_never_counted():
    # Without smoothing each chunk stands alone, like clattering lids
    counter = detecting_counter(AudioSettings(smoothing=0.0))
    audio = []
    for burst in range(20):
        audio += tone_chunks(WHISTLE_FREQ, 3, start=burst * 13) + silence_chunks(10)

    assert run_pipeline(counter, audio) == 0


def test_two_whistles_need_the_cooldown_between_them():
    counter = detecting_counter()
    gap = int(35 / CHUNK_SECONDS)
    audio = (
        tone_chunks(WHISTLE_FREQ, 100)
        + silence_chunks(gap)
        + tone_chunks(WHISTLE_FREQ, 100)
    )

    assert run_pipeline(counter, audio) == 2


def test_calibrate_then_count_from_audio():
    samples = []
    counter = WhistleCounter(store=MemoryProfileStore(), on_sample=samples.append)
    counter.start_calibration()

    clock = 0.0
    for _ in range(3):
        counter.start_recording(now=clock)
        run_pipeline(counter, tone_chunks(WHISTLE_FREQ, 60), start_time=clock)
        counter.stop_recording()
        clock += 10.0

    profile = counter.finish_calibration()

    assert len(samples) == 3
    assert profile.target_frequency == pytest.approx(WHISTLE_HZ)
    assert profile.min_amplitude > 100.0

    counter.start_detection(target=1, now=clock)
    assert run_pipeline(counter, tone_chunks(WHISTLE_FREQ, 40), start_time=clock) == 1
    assert not counter.is_detecting
