# pyright: reportUnknownVariableType=false
# pyright: reportUnknownMemberType=false

"""Named sound recipes and the lazily-built sound library.

Every recipe is a function ``(rng, sr) -> SoundBuffer``; the parameterized
generators below (drone layers, heartbeat, notes, percussion) are also used
directly by the music subsystems.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Hashable, Mapping
from dataclasses import dataclass
from functools import partial
from types import MappingProxyType
from typing import Literal, TypeAlias, get_args

import numpy as np

from .audio import SAMPLE_RATE, SoundBuffer
from .config import (
    EnvelopeSpec,
    OscillatorSpec,
    SlideVoiceTuning,
    VolumeCategory,
    WaveformKind,
)
from .errors import UnknownSoundError
from .synth import (
    Float64Array,
    TWO_PI,
    breakpoint_envelope,
    cascade_lowpass,
    exp_decay,
    filtered_noise,
    layered_noise,
    loop_envelope,
    lub_dub_envelope,
    percussive_envelope,
    progress_axis,
    sample_count,
    sine_squared_envelope,
    synthesize,
    to_buffer,
    white_noise,
)

_LOGGER = logging.getLogger("moodsynth.sounds")

SoundName = Literal[
    "success",
    "partial",
    "reject",
    "stabilize",
    "destabilize",
    "blip",
    "ui_navigate",
    "ui_select",
    "ui_back",
    "ui_adjust",
    "coin",
    "thunk",
    "click",
    "reward_pop",
    "reward_slam",
    "drumroll",
    "whir",
    "drone",
    "ending",
    "footstep1",
    "footstep2",
    "footstep3",
    "footstep4",
]
PercussionKind = Literal["kick", "snare", "hihat", "click"]
Recipe: TypeAlias = Callable[[np.random.Generator, int], SoundBuffer]

SOUND_NAMES: tuple[SoundName, ...] = get_args(SoundName)
FOOTSTEP_NAMES: tuple[SoundName, ...] = ("footstep1", "footstep2", "footstep3", "footstep4")


def _axes(duration: float, sr: int) -> tuple[Float64Array, Float64Array]:
    count = sample_count(duration, sr)
    return np.arange(count, dtype=np.float64) / sr, progress_axis(count)


# =============================================================================
# PART 1: TONAL ONE-SHOTS
# =============================================================================


def tone(
    freq: float,
    duration: float,
    volume: float = 0.3,
    kind: WaveformKind = "sine",
    *,
    rng: np.random.Generator,
    sr: int = SAMPLE_RATE,
) -> SoundBuffer:
    """Single tone, 5% fade in and fade out over the last 20%."""
    return synthesize(
        OscillatorSpec(kind=kind, frequency=freq),
        EnvelopeSpec.fade(0.05, 0.8),
        duration,
        sr,
        volume=volume,
        rng=rng,
    )


def chord(
    freqs: tuple[float, ...],
    duration: float,
    volume: float = 0.3,
    kind: WaveformKind = "sine",
    *,
    rng: np.random.Generator,
    sr: int = SAMPLE_RATE,
) -> SoundBuffer:
    """Equal-weight chord; longer release than :func:`tone`."""
    return synthesize(
        OscillatorSpec.chord(freqs, kind),
        EnvelopeSpec.fade(0.05, 0.7),
        duration,
        sr,
        volume=volume,
        rng=rng,
    )


def tone_layer(
    freqs: tuple[float, ...],
    duration: float,
    volume: float,
    *,
    sr: int = SAMPLE_RATE,
) -> SoundBuffer:
    """Sustained harmony tone with a faint 1.002x detuned copy of each partial."""
    t, p = _axes(duration, sr)
    if not freqs or t.size == 0:
        return SoundBuffer.empty(sr)
    env = breakpoint_envelope(p, ((0.0, 0.0), (0.1, 1.0), (0.7, 1.0), (1.0, 0.0)))
    signal = np.zeros_like(t)
    for freq in freqs:
        signal += np.sin(TWO_PI * freq * t)
        signal += np.sin(TWO_PI * freq * 1.002 * t) * 0.3
    return to_buffer(signal * (volume / len(freqs)) * env, sr)


def note(
    freq: float,
    duration: float = 0.8,
    volume: float = 0.3,
    attack: float = 0.02,
    decay: float = 0.4,
    *,
    sr: int = SAMPLE_RATE,
) -> SoundBuffer:
    """Soft sine note with 2nd/3rd harmonics.

    ``attack`` is in seconds; ``decay`` is the fraction of the note spent fading out.
    """
    t, p = _axes(duration, sr)
    if t.size == 0:
        return SoundBuffer.empty(sr)
    env = np.ones_like(t)
    if attack > 0:
        env = np.minimum(env, t / attack)
    if decay > 0:
        env = np.minimum(env, (1.0 - p) / decay)
    signal = (
        np.sin(TWO_PI * freq * t) * 0.7
        + np.sin(TWO_PI * freq * 2 * t) * 0.2
        + np.sin(TWO_PI * freq * 3 * t) * 0.1
    )
    return to_buffer(signal * volume * np.clip(env, 0.0, 1.0), sr)


def heartbeat(pitch: float, warmth: float, *, sr: int = SAMPLE_RATE) -> SoundBuffer:
    """Lub-dub thump; warmth adds 2nd and 3rd harmonics."""
    t, p = _axes(0.35, sr)
    warmth = float(np.clip(warmth, 0.0, 1.0))
    signal = (
        np.sin(TWO_PI * pitch * t)
        + np.sin(TWO_PI * pitch * 2 * t) * 0.3 * warmth
        + np.sin(TWO_PI * pitch * 3 * t) * 0.15 * warmth
    )
    return to_buffer(signal * lub_dub_envelope(p) * 0.4, sr, f"heartbeat:{pitch:.1f}")


# =============================================================================
# PART 2: NOISE IMPACTS
# =============================================================================


def footstep(
    pitch: float,
    duration: float,
    volume: float = 0.1,
    *,
    rng: np.random.Generator,
    sr: int = SAMPLE_RATE,
) -> SoundBuffer:
    t, p = _axes(duration, sr)
    env = breakpoint_envelope(p, ((0.0, 0.0), (0.05, 1.0), (0.15, 0.4), (1.0, 0.0)))
    thump = np.sin(TWO_PI * pitch * t) * 0.6
    noise = white_noise(t.size, rng) * 0.4
    signal = thump + noise * env * 0.5
    return to_buffer(signal * volume * env, sr)


def atonal_thunk(
    duration: float, volume: float = 0.35, *, rng: np.random.Generator, sr: int = SAMPLE_RATE
) -> SoundBuffer:
    _, p = _axes(duration, sr)
    env = percussive_envelope(p, decay=18.0, attack=0.02)
    body = layered_noise(p, ((50.0, 0.4), (20.0, 0.5), (8.0, 0.4)), rng)
    return to_buffer(body * volume * env, sr)


def click(
    duration: float, volume: float = 0.25, *, rng: np.random.Generator, sr: int = SAMPLE_RATE
) -> SoundBuffer:
    t, p = _axes(duration, sr)
    transient = np.where(p < 0.1, white_noise(t.size, rng) * (1.0 - p * 10.0), 0.0)
    body = np.sin(TWO_PI * 2000.0 * t) * 0.3 * exp_decay(p, 60.0)
    return to_buffer((transient + body) * volume * exp_decay(p, 40.0), sr)


def reward_pop(
    duration: float, volume: float = 0.3, *, rng: np.random.Generator, sr: int = SAMPLE_RATE
) -> SoundBuffer:
    _, p = _axes(duration, sr)
    # snap / body / tail
    signal = layered_noise(p, ((80.0, 0.5), (25.0, 0.4), (15.0, 0.09)), rng)
    return to_buffer(signal * volume * exp_decay(p, 35.0), sr)


def reward_slam(
    duration: float, volume: float = 0.4, *, rng: np.random.Generator, sr: int = SAMPLE_RATE
) -> SoundBuffer:
    _, p = _axes(duration, sr)
    crack = np.where(p < 0.05, white_noise(p.size, rng) * (1.0 - p / 0.05), 0.0)
    body = white_noise(p.size, rng) * 0.6
    layers = layered_noise(p, ((30.0, 0.4), (10.0, 0.3)), rng)
    signal = crack * 0.7 + body * 0.3 + layers
    return to_buffer(signal * volume * exp_decay(p, 20.0), sr)


def drumroll(
    duration: float, volume: float = 0.3, *, rng: np.random.Generator, sr: int = SAMPLE_RATE
) -> SoundBuffer:
    """Rapid snare-like hits (30/s); meant to loop."""
    t, p = _axes(duration, sr)
    hit_env = np.exp(-np.mod(t * 30.0, 1.0) * 8.0)
    variation = np.sin(t * 127.0) * 0.3 + np.sin(t * 83.0) * 0.2
    overall = 1.0 - p * 0.3
    signal = white_noise(t.size, rng) * hit_env * (0.6 + variation * 0.4) * overall
    return to_buffer(signal * volume * loop_envelope(p, 0.05), sr)


def whir(
    duration: float, volume: float = 0.3, *, rng: np.random.Generator, sr: int = SAMPLE_RATE
) -> SoundBuffer:
    """Smooth spinning noise followed by a 0.1 s atonal thunk."""
    t, p = _axes(duration, sr)
    spin_rate = 25.0 + p * 15.0
    modulation = 0.7 + np.sin(TWO_PI * spin_rate * t) * 0.3
    spin = filtered_noise(t.size, rng, alpha=0.85) * modulation * sine_squared_envelope(p)

    _, tp = _axes(0.1, sr)
    tail = layered_noise(tp, ((60.0, 0.5), (20.0, 0.6), (8.0, 0.3)), rng)
    thunk = tail * 1.3 * exp_decay(tp, 20.0)
    return to_buffer(np.concatenate((spin, thunk)) * volume, sr)


def percussion(
    kind: PercussionKind,
    duration: float,
    volume: float,
    *,
    rng: np.random.Generator,
    sr: int = SAMPLE_RATE,
) -> SoundBuffer:
    t, p = _axes(duration, sr)
    env = exp_decay(p, 15.0)
    match kind:
        case "kick":
            # pitch falls from 45 Hz toward 15 Hz over the hit
            freq = 15.0 * (1.0 + (1.0 - p) * 2.0)
            signal = np.sin(TWO_PI * freq * t) * env
            signal += np.where(p < 0.05, white_noise(t.size, rng) * (1.0 - p / 0.05) * 0.5, 0.0)
        case "snare":
            body = np.sin(TWO_PI * 180.0 * t) * 0.3
            signal = (body + white_noise(t.size, rng) * 0.7) * env
        case "hihat":
            signal = cascade_lowpass(white_noise(t.size, rng), 0.1, 1) * exp_decay(p, 30.0)
        case "click":
            signal = np.sin(TWO_PI * 1000.0 * t) * exp_decay(p, 50.0)
            signal += np.where(p < 0.02, white_noise(t.size, rng) * (1.0 - p / 0.02), 0.0)
        case _:
            return SoundBuffer.empty(sr)
    return to_buffer(signal * volume, sr, f"perc:{kind}")


# =============================================================================
# PART 3: LOOPING TEXTURES
# =============================================================================


def drone_layer(
    base_freq: float,
    duration: float,
    volume: float,
    detune: float = 0.0,
    *,
    rng: np.random.Generator,
    sr: int = SAMPLE_RATE,
) -> SoundBuffer:
    """Harmonic drone with slow amplitude drift; edges fade for seamless looping."""
    t, p = _axes(duration, sr)
    partials = (
        (1.0 + detune * 0.01, 0.4),
        (2.01, 0.2),
        (3.005, 0.1),
        (0.5, 0.3),
    )
    signal = np.zeros_like(t)
    for mult, weight in partials:
        signal += np.sin(TWO_PI * base_freq * mult * t) * weight
    signal += white_noise(t.size, rng) * 0.02
    amp_mod = 0.85 + 0.15 * np.sin(t * 0.3)
    return to_buffer(signal * volume * loop_envelope(p, 0.1) * amp_mod, sr, f"drone:{base_freq}")


def pad_layer(
    base_freq: float, duration: float, volume: float, *, sr: int = SAMPLE_RATE
) -> SoundBuffer:
    """Triangle pad whose upper partials cross-fade on a slow sweep."""
    t, p = _axes(duration, sr)
    sweep = np.sin(t * 0.1) * 0.5 + 0.5

    def tri(mult: float) -> Float64Array:
        return 4.0 * np.abs(np.mod(t * base_freq * mult, 1.0) - 0.5) - 1.0

    signal = tri(1.0) * 0.5 + tri(1.5) * 0.2 * sweep + tri(2.0) * 0.15 * (1.0 - sweep)
    return to_buffer(signal * volume * loop_envelope(p, 0.15), sr, f"pad:{base_freq}")


def slide_texture(
    tuning: SlideVoiceTuning,
    duration: float,
    *,
    rng: np.random.Generator,
    sr: int = SAMPLE_RATE,
) -> SoundBuffer:
    """Looping slide/whoosh bed: cascaded low-passed noise under soft partials."""
    t, p = _axes(duration, sr)
    bed = filtered_noise(t.size, rng, tuning.filter_coeff, tuning.filter_poles)
    wobble = 1.0 + np.sin(t * 2.0) * tuning.shimmer
    pitched = np.zeros_like(t)
    for index, (mult, weight) in enumerate(tuning.partials):
        # shimmer only bends the fundamental
        bend = wobble if index == 0 else 1.0
        pitched += np.sin(TWO_PI * tuning.base_pitch * mult * bend * t) * weight
    signal = (bed * tuning.noise_mix + pitched) * loop_envelope(p, 0.1) * tuning.gain
    return to_buffer(signal, sr, f"slide:{tuning.base_pitch}")


# =============================================================================
# PART 4: REGISTRY
# =============================================================================


@dataclass(frozen=True)
class SoundDef:
    name: SoundName
    recipe: Recipe
    category: VolumeCategory = "sfx"
    loop: bool = False


def _tone(freq: float, duration: float, volume: float, kind: WaveformKind = "sine") -> Recipe:
    return lambda rng, sr: tone(freq, duration, volume, kind, rng=rng, sr=sr)


def _chord(freqs: tuple[float, ...], duration: float, volume: float, kind: WaveformKind = "sine") -> Recipe:
    return lambda rng, sr: chord(freqs, duration, volume, kind, rng=rng, sr=sr)


def _noise(fn: Callable[..., SoundBuffer], *args: float) -> Recipe:
    bound = partial(fn, *args)
    return lambda rng, sr: bound(rng=rng, sr=sr)


SOUND_LIBRARY: Mapping[SoundName, SoundDef] = MappingProxyType(
    {
        # C5 E5 G5
        "success": SoundDef("success", _chord((523.25, 659.25, 783.99), 0.4, 0.25)),
        # F4 A4, suspended
        "partial": SoundDef("partial", _chord((349.23, 440.00), 0.5, 0.2, "triangle")),
        "reject": SoundDef("reject", _tone(220.0, 0.3, 0.2, "triangle")),
        "stabilize": SoundDef("stabilize", _chord((261.63, 329.63, 392.00), 0.6, 0.2)),
        # Bb3 B3 semitone clash
        "destabilize": SoundDef("destabilize", _chord((233.08, 246.94), 0.4, 0.15, "triangle")),
        "blip": SoundDef("blip", _tone(880.0, 0.08, 0.15)),
        "ui_navigate": SoundDef("ui_navigate", _tone(660.0, 0.04, 0.12)),
        "ui_select": SoundDef("ui_select", _chord((523.25, 659.25), 0.12, 0.18)),
        "ui_back": SoundDef("ui_back", _tone(392.0, 0.1, 0.12, "triangle")),
        "ui_adjust": SoundDef("ui_adjust", _tone(550.0, 0.03, 0.08)),
        "coin": SoundDef("coin", _chord((987.77, 1318.51), 0.15, 0.2)),
        "thunk": SoundDef("thunk", _noise(atonal_thunk, 0.15, 0.35)),
        "click": SoundDef("click", _noise(click, 0.03, 0.25)),
        "reward_pop": SoundDef("reward_pop", _noise(reward_pop, 0.1, 0.3)),
        "reward_slam": SoundDef("reward_slam", _noise(reward_slam, 0.2, 0.4)),
        "drumroll": SoundDef("drumroll", _noise(drumroll, 0.5, 0.25), loop=True),
        "whir": SoundDef("whir", _noise(whir, 0.25, 0.3)),
        # C2 G2
        "drone": SoundDef("drone", _chord((65.41, 98.00), 2.0, 0.08)),
        "ending": SoundDef("ending", _chord((261.63, 392.00, 523.25), 1.5, 0.15)),
        "footstep1": SoundDef("footstep1", _noise(footstep, 60.0, 0.12, 0.15), "footsteps"),
        "footstep2": SoundDef("footstep2", _noise(footstep, 55.0, 0.11, 0.14), "footsteps"),
        "footstep3": SoundDef("footstep3", _noise(footstep, 65.0, 0.13, 0.13), "footsteps"),
        "footstep4": SoundDef("footstep4", _noise(footstep, 58.0, 0.12, 0.15), "footsteps"),
    }
)


def lookup(name: str) -> SoundDef | None:
    """Registry lookup with an explicit miss path."""
    return SOUND_LIBRARY.get(name)  # type: ignore[call-overload]


class SoundLibrary:
    """Lazily synthesizes and caches buffers.

    Named sounds are built on first use. :meth:`memo` caches any other buffer
    under a caller-chosen key, so parameterized sounds are synthesized once per
    distinct parameter set.
    """

    def __init__(self, rng: np.random.Generator | None = None, sample_rate: int = SAMPLE_RATE) -> None:
        self._rng = rng if rng is not None else np.random.default_rng()
        self.sample_rate = sample_rate
        self._named: dict[SoundName, SoundBuffer] = {}
        self._memo: dict[Hashable, SoundBuffer] = {}

    @property
    def rng(self) -> np.random.Generator:
        return self._rng

    def names(self) -> tuple[SoundName, ...]:
        return SOUND_NAMES

    def definition(self, name: str) -> SoundDef | None:
        return lookup(name)

    def get(self, name: str) -> SoundBuffer | None:
        sound = lookup(name)
        if sound is None:
            _LOGGER.debug("Unknown sound %r", name)
            return None
        cached = self._named.get(sound.name)
        if cached is None:
            cached = sound.recipe(self._rng, self.sample_rate)
            self._named[sound.name] = cached
            _LOGGER.debug("Synthesized %s (%d samples)", sound.name, len(cached))
        return cached

    def build(self, name: str) -> SoundBuffer:
        buffer = self.get(name)
        if buffer is None:
            raise UnknownSoundError(name)
        return buffer

    def memo(self, key: Hashable, factory: Callable[[], SoundBuffer]) -> SoundBuffer:
        cached = self._memo.get(key)
        if cached is None:
            cached = factory()
            self._memo[key] = cached
        return cached

    def warm(self) -> None:
        """Synthesize every named sound up front."""
        for name in SOUND_NAMES:
            self.get(name)

    def clear(self) -> None:
        self._named.clear()
        self._memo.clear()

    def __len__(self) -> int:
        return len(self._named) + len(self._memo)
