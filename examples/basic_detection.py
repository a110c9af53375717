#!/usr/bin/env python3
"""Example: Basic whistle counting.

This example shows how to use the Whistle Counter to count pressure-cooker
whistles from microphone input with a previously saved profile.
"""

import logging

from whistle_counter import GlobalConfig, WhistleCounter

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s | %(levelname)-8s | %(message)s", datefmt="%H:%M:%S"
)


def on_whistle(count: int):
    """Callback after every counted whistle."""
    print(f"\n🔔 Whistle {count}\n")


def main():
    config = GlobalConfig()
    config.storage.profiles_path = "profiles.yaml"

    counter = WhistleCounter(config, on_whistle=on_whistle)

    def on_target_reached(count: int):
        print(f"\n🍚 Cooker ready after {count} whistles!\n")
        # Here you could:
        # - Send a notification
        # - Switch off a smart plug
        counter.stop()

    counter.on_target_reached = on_target_reached

    # Load the profile saved by a previous calibration
    counter.load_profile("Kitchen cooker")
    counter.start_detection(target=3)

    print("🎤 Listening for whistles...")
    print("   Press Ctrl+C to stop\n")

    # Start listening (blocking)
    counter.start()


if __name__ == "__main__":
    main()
