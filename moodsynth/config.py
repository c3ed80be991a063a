from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Any, Literal, Mapping, get_args

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .audio import SAMPLE_RATE
from .errors import InvalidConfigError

_LOGGER = logging.getLogger("moodsynth.config")

WaveformKind = Literal["sine", "square", "triangle", "filtered_noise"]
EnvelopeKind = Literal["none", "fade", "loop", "percussive", "breakpoints", "lub_dub", "sine_squared"]
VolumeCategory = Literal["music", "sfx", "footsteps", "slide"]

VOLUME_CATEGORIES: tuple[VolumeCategory, ...] = get_args(VolumeCategory)

_WAVEFORM_ALIASES: Mapping[str, WaveformKind] = MappingProxyType(
    {
        "sine": "sine",
        "square": "square",
        "triangle": "triangle",
        "filtered_noise": "filtered_noise",
        "filterednoise": "filtered_noise",
        "noise": "filtered_noise",
    }
)


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, float(value)))


def volume_category(value: str) -> VolumeCategory:
    """Parse a category label, case-insensitively."""
    label = value.strip().lower()
    for category in VOLUME_CATEGORIES:
        if category == label:
            return category
    raise InvalidConfigError(f"Unknown volume category: {value!r}. Valid: {list(VOLUME_CATEGORIES)}")


def waveform_kind(value: str) -> WaveformKind:
    try:
        return _WAVEFORM_ALIASES[value.strip().lower()]
    except KeyError as exc:
        raise InvalidConfigError(f"Unknown waveform: {value!r}") from exc


# -----------------------------------------------------------------------------
# Synthesis specs
# -----------------------------------------------------------------------------


class Harmonic(BaseModel):
    """One partial of a chord or detuned stack: frequency multiplier and weight."""

    multiplier: float = Field(gt=0.0)
    weight: float = 1.0

    model_config = ConfigDict(frozen=True, extra="forbid")


class OscillatorSpec(BaseModel):
    kind: WaveformKind = "sine"
    frequency: float = Field(default=440.0, ge=0.0)
    harmonics: tuple[Harmonic, ...] = ()
    # Only used by filtered_noise: one-pole coefficient and number of cascaded stages.
    noise_alpha: float = Field(default=0.85, ge=0.0, lt=1.0)
    noise_poles: int = Field(default=1, ge=1, le=4)

    model_config = ConfigDict(frozen=True, extra="forbid")

    @field_validator("kind", mode="before")
    @classmethod
    def _normalize_kind(cls, value: object) -> object:
        if isinstance(value, str):
            return waveform_kind(value)
        return value

    @classmethod
    def chord(
        cls, frequencies: tuple[float, ...], kind: WaveformKind = "sine"
    ) -> "OscillatorSpec":
        """Equal-weight chord rooted at the first frequency."""
        if not frequencies:
            return cls(kind=kind, frequency=0.0)
        root = frequencies[0]
        if root <= 0:
            raise InvalidConfigError("chord root frequency must be positive")
        return cls(
            kind=kind,
            frequency=root,
            harmonics=tuple(Harmonic(multiplier=f / root) for f in frequencies),
        )


class EnvelopeSpec(BaseModel):
    """Amplitude shape over normalized progress.

    ``attack`` and ``release`` are fractions of the sound length. ``decay`` is
    the exponential constant ``k`` for percussive tails. ``points`` holds
    ``(progress, level)`` breakpoints for multi-segment envelopes.
    """

    kind: EnvelopeKind = "fade"
    attack: float = Field(default=0.05, ge=0.0, le=1.0)
    release: float = Field(default=0.2, ge=0.0, le=1.0)
    decay: float = Field(default=18.0, ge=0.0)
    points: tuple[tuple[float, float], ...] = ()

    model_config = ConfigDict(frozen=True, extra="forbid")

    @model_validator(mode="after")
    def _check_segments(self) -> "EnvelopeSpec":
        if self.attack + self.release > 1.0 + 1e-9:
            raise ValueError(
                f"attack + release must be <= 1 (got {self.attack} + {self.release})"
            )
        if self.kind == "breakpoints":
            if len(self.points) < 2:
                raise ValueError("breakpoint envelopes need at least two points")
            positions = [p for p, _ in self.points]
            if positions != sorted(positions):
                raise ValueError("breakpoint positions must be ascending")
            if any(not 0.0 <= p <= 1.0 for p in positions):
                raise ValueError("breakpoint positions must lie in [0, 1]")
        return self

    @classmethod
    def fade(cls, fade_in_end: float = 0.05, fade_start: float = 0.8) -> "EnvelopeSpec":
        return cls(kind="fade", attack=fade_in_end, release=1.0 - fade_start)

    @classmethod
    def loop(cls, fade: float = 0.1) -> "EnvelopeSpec":
        return cls(kind="loop", attack=fade, release=fade)

    @classmethod
    def percussive(cls, decay: float, attack: float = 0.02) -> "EnvelopeSpec":
        return cls(kind="percussive", attack=attack, release=0.0, decay=decay)

    @classmethod
    def breakpoints(cls, *points: tuple[float, float]) -> "EnvelopeSpec":
        return cls(kind="breakpoints", attack=0.0, release=0.0, points=tuple(points))


# -----------------------------------------------------------------------------
# Mixer / mapper settings
# -----------------------------------------------------------------------------


class VolumeSettings(BaseModel):
    """Per-category master volumes applied at the mixer boundary."""

    music: float = 0.45
    sfx: float = 0.5
    footsteps: float = 0.28
    slide: float = 0.4

    model_config = ConfigDict(extra="ignore", validate_assignment=True)

    @field_validator("music", "sfx", "footsteps", "slide", mode="before")
    @classmethod
    def _clamp_volume(cls, value: object) -> object:
        if isinstance(value, (int, float)):
            return _clamp(value, 0.0, 1.0)
        return value

    def get(self, category: VolumeCategory) -> float:
        return float(getattr(self, category))

    def set(self, category: VolumeCategory, value: float) -> None:
        setattr(self, category, value)


class SmoothingSettings(BaseModel):
    volume_rate: float = Field(default=8.0, gt=0.0)
    pitch_rate: float = Field(default=6.0, gt=0.0)
    silence_threshold: float = Field(default=0.01, ge=0.0)

    model_config = ConfigDict(frozen=True, extra="ignore")


class SlideVoiceTuning(BaseModel):
    """Timbre of one looping slide texture."""

    base_pitch: float = Field(gt=0.0)
    filter_coeff: float = Field(ge=0.0, lt=1.0)
    filter_poles: int = Field(default=2, ge=1, le=4)
    noise_mix: float = 0.4
    gain: float = 0.35
    shimmer: float = 0.0
    # (multiplier, weight) partials added on top of the noise bed.
    partials: tuple[tuple[float, float], ...] = ((1.0, 0.2),)

    model_config = ConfigDict(frozen=True, extra="forbid")


class SlideTuning(BaseModel):
    player: SlideVoiceTuning = SlideVoiceTuning(
        base_pitch=65.0,
        filter_coeff=0.92,
        filter_poles=3,
        noise_mix=0.4,
        gain=0.35,
        partials=((1.0, 0.2), (0.5, 0.15), (2.0, 0.03)),
    )
    other: SlideVoiceTuning = SlideVoiceTuning(
        base_pitch=180.0,
        filter_coeff=0.85,
        filter_poles=2,
        noise_mix=0.35,
        gain=0.3,
        shimmer=0.015,
        partials=((1.0, 0.1), (1.5, 0.05), (0.5, 0.08)),
    )
    loop_seconds: float = Field(default=0.5, gt=0.0)
    max_volume: float = Field(default=0.4, ge=0.0, le=1.0)
    min_pitch: float = Field(default=0.7, gt=0.0)
    max_pitch: float = Field(default=1.4, gt=0.0)
    other_volume_multiplier: float = Field(default=0.7, ge=0.0, le=1.0)
    other_max_speed: float = Field(default=60.0, ge=0.0)
    other_pitch_floor_scale: float = 0.9
    falloff_inner: float = Field(default=100.0, ge=0.0)
    falloff_outer: float = Field(default=300.0, ge=0.0)

    model_config = ConfigDict(frozen=True, extra="ignore")

    @model_validator(mode="after")
    def _check_ranges(self) -> "SlideTuning":
        if self.min_pitch > self.max_pitch:
            raise ValueError("min_pitch must not exceed max_pitch")
        if self.falloff_inner > self.falloff_outer:
            raise ValueError("falloff_inner must not exceed falloff_outer")
        return self

    @classmethod
    def airy(cls) -> "SlideTuning":
        """Brighter alternate tuning: lighter filtering, higher base pitches."""
        return cls(
            player=SlideVoiceTuning(
                base_pitch=80.0,
                filter_coeff=0.7,
                filter_poles=2,
                noise_mix=0.6,
                gain=0.3,
                partials=((1.0, 0.15), (0.5, 0.1), (2.0, 0.05)),
            ),
            other=SlideVoiceTuning(
                base_pitch=220.0,
                filter_coeff=0.6,
                filter_poles=1,
                noise_mix=0.5,
                gain=0.25,
                shimmer=0.03,
                partials=((1.0, 0.12), (1.5, 0.06), (0.5, 0.05)),
            ),
        )


class EngineSettings(BaseModel):
    sample_rate: int = Field(default=SAMPLE_RATE, gt=0)
    seed: int | None = None
    volumes: VolumeSettings = Field(default_factory=VolumeSettings)
    smoothing: SmoothingSettings = SmoothingSettings()
    slide: SlideTuning = SlideTuning()
    min_pitch: float = Field(default=0.1, gt=0.0)
    max_pitch: float = Field(default=4.0, gt=0.0)
    min_bpm: float = Field(default=20.0, gt=0.0)
    max_bpm: float = Field(default=300.0, gt=0.0)

    model_config = ConfigDict(extra="ignore")

    @model_validator(mode="after")
    def _check_bounds(self) -> "EngineSettings":
        if self.min_pitch > self.max_pitch:
            raise ValueError("min_pitch must not exceed max_pitch")
        if self.min_bpm > self.max_bpm:
            raise ValueError("min_bpm must not exceed max_bpm")
        return self

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "EngineSettings":
        """Create settings from a plain mapping (e.g., parsed JSON)."""
        _LOGGER.debug("Loading engine settings keys: %s", sorted(data))
        return cls.model_validate(dict(data))
