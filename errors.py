"""Error types shared by the companion core."""
from __future__ import annotations


class CompanionError(Exception):
    """Base class for errors raised by the companion core."""


class InputError(CompanionError, ValueError):
    """Malformed input such as a bad time string or an out-of-range coordinate."""


class PermissionDenied(CompanionError):
    """The user refused access to a platform resource (location)."""


class SensorUnavailable(CompanionError):
    """The compass sensor is missing or could not be subscribed to."""


class SchedulingFailure(CompanionError):
    """A single notification could not be scheduled."""

    def __init__(self, prayer: str, reason: str) -> None:
        super().__init__(f"Failed to schedule {prayer}: {reason}")
        self.prayer = prayer
        self.reason = reason


class ConversionError(CompanionError):
    """A Hijri/Gregorian conversion was requested outside the supported range."""
