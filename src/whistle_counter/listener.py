"""Audio listener component for capturing microphone input."""

import logging
from typing import Callable, Optional

import numpy as np

from .config import AudioSettings

try:
    import pyaudio

    HAS_PYAUDIO = True
except ImportError:
    HAS_PYAUDIO = False

logger = logging.getLogger(__name__)


class AudioListener:
    """Handles audio capture from microphone input.

    Reads `fft_size` samples at a time and hands each chunk to a callback,
    from a single blocking loop.
    """

    def __init__(self, settings: AudioSettings, on_audio_chunk: Callable[[np.ndarray], None]):
        """Initialize the audio listener.

        Args:
            settings: Audio capture settings
            on_audio_chunk: Callback function to receive int16 audio chunks
        """
        if not HAS_PYAUDIO:
            raise ImportError(
                "PyAudio is required for audio capture. Install it with: pip install pyaudio"
            )

        self.settings = settings
        self.on_audio_chunk = on_audio_chunk
        self._pyaudio: Optional["pyaudio.PyAudio"] = None
        self._stream = None
        self._running = False

    def setup(self) -> bool:
        """Initialize PyAudio and open the audio stream.

        Returns:
            True if successful, False otherwise
        """
        try:
            logger.info("Initializing PyAudio...")
            self._pyaudio = pyaudio.PyAudio()

            if self.settings.device_index is not None:
                if not self._validate_device(self.settings.device_index):
                    self._list_devices()
                    return False
                logger.info(f"Using audio device index: {self.settings.device_index}")
            else:
                logger.info("Using default audio device")

            self._stream = self._pyaudio.open(
                format=pyaudio.paInt16,
                channels=self.settings.channels,
                rate=self.settings.sample_rate,
                input=True,
                input_device_index=self.settings.device_index,
                frames_per_buffer=self.settings.fft_size,
            )
            logger.info("Audio stream opened successfully")
            return True

        except Exception as e:
            # PortAudio reports a missing or busy microphone as a plain OSError
            logger.error(f"Failed to initialize audio: {e}")
            self._list_devices()
            return False

    def _validate_device(self, device_index: int) -> bool:
        """Validate that a device index is usable for input."""
        try:
            dev_info = self._pyaudio.get_device_info_by_host_api_device_index(0, device_index)
        except (IOError, ValueError) as e:
            logger.error(f"Invalid device index {device_index}: {e}")
            return False

        if dev_info.get("maxInputChannels", 0) == 0:
            logger.error(f"Device index {device_index} has no input channels!")
            return False
        logger.info(f"Device: {dev_info.get('name')} (Inputs: {dev_info.get('maxInputChannels')})")
        return True

    def _list_devices(self) -> None:
        """Log all available audio input devices."""
        if not self._pyaudio:
            return

        logger.info("-" * 40)
        logger.info("AVAILABLE AUDIO DEVICES:")
        info = self._pyaudio.get_host_api_info_by_index(0)
        num_devices = info.get("deviceCount", 0)

        if num_devices == 0:
            logger.warning("No audio devices found!")

        for i in range(num_devices):
            device_info = self._pyaudio.get_device_info_by_host_api_device_index(0, i)
            if device_info.get("maxInputChannels", 0) > 0:
                logger.info(
                    f"  Index {i}: {device_info.get('name')} "
                    f"(Inputs: {device_info.get('maxInputChannels')})"
                )
        logger.info("-" * 40)

    def start(self) -> None:
        """Start the audio capture loop (blocking)."""
        if not self._stream:
            logger.error("Audio stream not initialized. Call setup() first.")
            return

        self._running = True
        logger.info("Listener started - capturing audio...")

        while self._running:
            audio_data = self._stream.read(self.settings.fft_size, exception_on_overflow=False)
            audio_chunk = np.frombuffer(audio_data, dtype=np.int16)
            if self.settings.channels > 1:
                audio_chunk = (
                    audio_chunk.reshape(-1, self.settings.channels).mean(axis=1).astype(np.int16)
                )
            self.on_audio_chunk(audio_chunk)

    def stop(self) -> None:
        """Stop the audio capture loop."""
        self._running = False
        logger.info("Listener stopping...")

    def cleanup(self) -> None:
        """Release audio resources."""
        logger.info("Cleaning up audio resources...")

        if self._stream:
            try:
                self._stream.stop_stream()
                self._stream.close()
            except OSError as e:
                logger.warning(f"Error closing audio stream: {e}")
            self._stream = None

        if self._pyaudio:
            self._pyaudio.terminate()
            self._pyaudio = None

        logger.info("Audio cleanup complete")
