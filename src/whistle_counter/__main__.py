"""Count cooker whistles from the microphone with a saved profile.

Usage:
    python -m whistle_counter --config whistle.yaml --profile "Kitchen cooker" --target 3
    python -m whistle_counter --config whistle.yaml --list
"""

import argparse
import logging
import sys

from whistle_counter.config import GlobalConfig, setup_logging
from whistle_counter.engine import WhistleCounter
from whistle_counter.errors import NoActiveProfile, ProfileNotFound

logger = logging.getLogger("whistle_counter")


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Count pressure-cooker whistles.")
    parser.add_argument("--config", "-c", help="Path to the configuration YAML file")
    parser.add_argument("--profiles", help="Saved profiles YAML file (overrides the config)")
    parser.add_argument("--profile", "-p", help="Name of the saved profile to count with")
    parser.add_argument("--target", "-t", type=int, help="Number of whistles to wait for")
    parser.add_argument("--list", "-l", action="store_true", help="List saved profiles and exit")
    parser.add_argument("--verbose", "-v", action="store_true", help="Show detailed debug output")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)

    config = GlobalConfig.load(args.config) if args.config else GlobalConfig()
    if args.profiles:
        config.storage.profiles_path = args.profiles
    if args.verbose:
        config.system.log_level = "DEBUG"
    setup_logging(config.system)

    def on_whistle(count: int) -> None:
        event = counter.whistle_events[-1]
        print(f"Whistle {event.count}/{counter.target_whistles} ({event.frequency:.0f}Hz)")

    def on_target_reached(count: int) -> None:
        print(f"Cooker ready! {count} whistles completed.")
        counter.stop()

    counter = WhistleCounter(config, on_whistle=on_whistle, on_target_reached=on_target_reached)

    if counter.store.load_error:
        print(f"Warning: saved profiles unavailable ({counter.store.load_error})")

    if args.list:
        for entry in counter.profiles():
            print(f"{entry.name}: {entry.profile}")
        return 0

    if not args.profile:
        print("Error: --profile is required (use --list to see saved profiles)")
        return 1

    try:
        counter.load_profile(args.profile)
        counter.start_detection(target=args.target)
    except ProfileNotFound as e:
        print(f"Error: {e}")
        print(f"Saved profiles: {', '.join(counter.store.names()) or 'none'}")
        return 1
    except NoActiveProfile as e:
        print(f"Error: {e}")
        return 1

    print(f"Listening for whistles (target {counter.target_whistles}). Press Ctrl+C to stop.")
    counter.start()
    return 0


if __name__ == "__main__":
    sys.exit(main())
