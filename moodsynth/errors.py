from __future__ import annotations


class MoodSynthError(Exception):
    """Base error for the moodsynth audio engine."""


class InvalidConfigError(MoodSynthError):
    """Raised when a setting or label cannot be parsed or validated."""


class UnknownSoundError(MoodSynthError, KeyError):
    """Raised by strict lookups when a sound name is not in the library."""


class PlaybackError(MoodSynthError):
    """Raised when an output backend cannot open or accept audio."""
