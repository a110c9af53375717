"""Exceptions raised by the whistle counter.

All of them are recoverable: the caller is expected to report the condition
and let the user retry, calibrate or pick another profile.
"""


class WhistleCounterError(Exception):
    """Base class for all whistle counter errors."""


class NoSignalDetected(WhistleCounterError):
    """A calibration recording contained no usable whistle tone."""


class InsufficientCalibrationData(WhistleCounterError):
    """Too few calibration samples to build a profile."""


class InvalidFrequency(WhistleCounterError, ValueError):
    """A manually entered whistle frequency lies outside the whistle band."""


class NoActiveProfile(WhistleCounterError):
    """Detection or saving requested without a calibrated or loaded profile."""


class ProfileNotFound(WhistleCounterError, KeyError):
    """No stored profile has the requested name."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the plain message
        return str(self.args[0]) if self.args else ""


class ProfileNameRequired(WhistleCounterError, ValueError):
    """A profile operation was called with a missing or blank name."""


class StoreUnavailable(WhistleCounterError):
    """The profile store could not be read or written."""
