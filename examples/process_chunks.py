#!/usr/bin/env python3
"""Example: Calibrate and count without microphone capture.

This example shows how to feed audio data directly to the counter,
useful for:
- Processing audio files
- Custom audio sources
- Testing and simulation
"""

import numpy as np

from whistle_counter import GlobalConfig, WhistleCounter


def generate_tone(frequency: float, duration: float, sample_rate: int) -> np.ndarray:
    """Generate a synthetic whistle."""
    t = np.arange(int(sample_rate * duration)) / sample_rate
    signal = np.sin(2 * np.pi * frequency * t) * 0.01
    # Convert to int16
    return (signal * 32767).astype(np.int16)


def generate_silence(duration: float, sample_rate: int) -> np.ndarray:
    """Generate silence."""
    return np.zeros(int(sample_rate * duration), dtype=np.int16)


def feed(counter: WhistleCounter, audio: np.ndarray, start_time: float) -> float:
    """Feed audio chunk by chunk on a simulated clock; returns the end time."""
    chunk_size = counter.config.audio.fft_size
    sample_rate = counter.config.audio.sample_rate
    now = start_time
    for i in range(0, len(audio) - chunk_size + 1, chunk_size):
        counter.process_chunk(audio[i : i + chunk_size], now=now)
        now += chunk_size / sample_rate
    return now


def main():
    config = GlobalConfig()
    sample_rate = config.audio.sample_rate

    whistles = []
    counter = WhistleCounter(
        config,
        on_whistle=lambda count: whistles.append(count),
        on_sample=lambda sample: print(f"  Sample: {sample}"),
        on_target_reached=lambda count: print(f"🍚 Target reached: {count} whistles"),
    )

    print("Calibrating with three synthetic whistles...")
    counter.start_calibration()
    clock = 0.0
    for _ in range(3):
        counter.start_recording(now=clock)
        clock = feed(counter, generate_tone(2600, 3.0, sample_rate), clock)
        counter.stop_recording()
        clock += 1.0

    profile = counter.finish_calibration()
    print(f"Profile: {profile}")

    # Two whistles 40 seconds apart
    audio = np.concatenate(
        [
            generate_tone(2600, 4.0, sample_rate),
            generate_silence(40.0, sample_rate),
            generate_tone(2600, 4.0, sample_rate),
        ]
    )
    print(f"Total audio length: {len(audio) / sample_rate:.2f}s")
    print("Counting...")

    counter.start_detection(target=2, now=clock)
    feed(counter, audio, clock)

    print(f"\nWhistles counted: {len(whistles)}")


if __name__ == "__main__":
    main()
