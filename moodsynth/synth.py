# pyright: reportUnknownVariableType=false
# pyright: reportUnknownMemberType=false
# pyright: reportUnknownArgumentType=false

"""
Architecture:

1. Waveforms: sine/square/triangle oscillators and filtered noise
2. Envelopes: fade, loop, percussive, breakpoint, lub-dub shapes over progress in [0, 1]
3. Filters: one-pole recursive low-pass and its cascades
4. Engine: spec -> SoundBuffer, plus the small helpers recipes compose with
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from functools import lru_cache
from types import MappingProxyType
from typing import Callable, Literal, TypeAlias

import numpy as np
from numpy.typing import NDArray
from scipy.signal import lfilter  # type: ignore[import]

from .audio import SAMPLE_RATE, FloatArray, SoundBuffer
from .config import EnvelopeSpec, OscillatorSpec, WaveformKind
from .errors import InvalidConfigError

_LOGGER = logging.getLogger("moodsynth.synth")

TWO_PI = 2.0 * np.pi
# Largest coefficient accepted by the recursive filter; keeps the pole inside the unit circle.
MAX_FILTER_COEFF = 0.999999

Float64Array: TypeAlias = NDArray[np.float64]
ToneFn: TypeAlias = Callable[[Float64Array, float], Float64Array]
ToneKind: TypeAlias = Literal["sine", "square", "triangle"]


# =============================================================================
# PART 1: WAVEFORMS
# =============================================================================


def sample_times(duration: float, sr: int = SAMPLE_RATE, t_offset: float = 0.0) -> Float64Array:
    """Sample instants for ``duration`` seconds; empty for non-positive durations."""
    count = sample_count(duration, sr)
    return t_offset + np.arange(count, dtype=np.float64) / sr


def sample_count(duration: float, sr: int = SAMPLE_RATE) -> int:
    if duration <= 0 or sr <= 0:
        return 0
    return int(sr * duration)


def sine_wave(t: Float64Array, freq: float) -> Float64Array:
    return np.sin(TWO_PI * freq * t)


def square_wave(t: Float64Array, freq: float) -> Float64Array:
    # Half amplitude keeps square loudness near a sine of the same level.
    return np.where(np.sin(TWO_PI * freq * t) > 0.0, 0.5, -0.5)


def triangle_wave(t: Float64Array, freq: float) -> Float64Array:
    phase = np.mod(t * freq, 1.0)
    return 4.0 * np.abs(phase - 0.5) - 1.0


TONE_FUNCTIONS: Mapping[str, ToneFn] = MappingProxyType(
    {
        "sine": sine_wave,
        "square": square_wave,
        "triangle": triangle_wave,
    }
)


def white_noise(count: int, rng: np.random.Generator) -> Float64Array:
    """Uniform noise in [-1, 1]."""
    return rng.uniform(-1.0, 1.0, max(0, count))


def filtered_noise(
    count: int,
    rng: np.random.Generator,
    alpha: float = 0.85,
    poles: int = 1,
) -> Float64Array:
    return cascade_lowpass(white_noise(count, rng), alpha, poles)


def waveform_sample(kind: ToneKind, t: float, freq: float) -> float:
    """One sample of a tonal waveform at time ``t``.

    Noise has no per-instant value, so ``filtered_noise`` is rejected with
    :class:`InvalidConfigError`; render it as a block with :func:`generate_waveform`.
    """
    tone_fn = TONE_FUNCTIONS.get(kind)
    if tone_fn is None:
        raise InvalidConfigError(f"No per-sample value for waveform {kind!r}")
    return float(tone_fn(np.asarray([t], dtype=np.float64), freq)[0])


def generate_waveform(
    kind: WaveformKind,
    freq: float,
    duration: float,
    sr: int = SAMPLE_RATE,
    *,
    rng: np.random.Generator | None = None,
    noise_alpha: float = 0.85,
    noise_poles: int = 1,
    t_offset: float = 0.0,
) -> Float64Array:
    """Render ``duration`` seconds of one waveform at unit amplitude."""
    t = sample_times(duration, sr, t_offset)
    if kind == "filtered_noise":
        local_rng = rng if rng is not None else np.random.default_rng()
        return filtered_noise(t.size, local_rng, noise_alpha, noise_poles)
    tone_fn = TONE_FUNCTIONS.get(kind, sine_wave)
    return tone_fn(t, freq)


# =============================================================================
# PART 2: ENVELOPES
# =============================================================================


def progress_axis(count: int) -> Float64Array:
    """Normalized position ``i / count`` of each sample."""
    if count <= 0:
        return np.zeros(0, dtype=np.float64)
    return np.arange(count, dtype=np.float64) / count


def fade_envelope(progress: Float64Array, fade_in_end: float, fade_start: float) -> Float64Array:
    """Linear fade in over ``[0, fade_in_end]`` and fade out over ``[fade_start, 1]``."""
    p = np.clip(progress, 0.0, 1.0)
    env = np.ones_like(p)
    if fade_in_end > 0:
        env = np.minimum(env, p / fade_in_end)
    if fade_start < 1.0:
        env = np.minimum(env, (1.0 - p) / (1.0 - fade_start))
    return np.clip(env, 0.0, 1.0)


def loop_envelope(progress: Float64Array, fade: float = 0.1) -> Float64Array:
    """Symmetric edge fades so a looping buffer starts and ends at silence."""
    return fade_envelope(progress, fade, 1.0 - fade)


def percussive_envelope(
    progress: Float64Array, decay: float, attack: float = 0.02
) -> Float64Array:
    """Fast linear attack followed by ``exp(-(p - attack) * decay)``."""
    p = np.clip(progress, 0.0, 1.0)
    if attack <= 0:
        return np.exp(-p * decay)
    rise = p / attack
    tail = np.exp(-(p - attack) * decay)
    return np.where(p < attack, rise, tail)


def exp_decay(progress: Float64Array, k: float) -> Float64Array:
    return np.exp(-np.clip(progress, 0.0, 1.0) * k)


def breakpoint_envelope(
    progress: Float64Array, points: Sequence[tuple[float, float]]
) -> Float64Array:
    """Piecewise-linear envelope through ``(position, level)`` breakpoints."""
    if not points:
        return np.ones_like(progress)
    xs = np.asarray([x for x, _ in points], dtype=np.float64)
    ys = np.asarray([y for _, y in points], dtype=np.float64)
    return np.clip(np.interp(np.clip(progress, 0.0, 1.0), xs, ys), 0.0, 1.0)


def lub_dub_envelope(progress: Float64Array) -> Float64Array:
    """Two sine-shaped bumps: a full "lub" then a softer "dub"."""
    p = np.clip(progress, 0.0, 1.0)
    env = np.zeros_like(p)
    lub = p < 0.15
    env[lub] = np.sin(p[lub] / 0.15 * np.pi)
    dub = (p > 0.25) & (p < 0.4)
    env[dub] = np.sin((p[dub] - 0.25) / 0.15 * np.pi) * 0.7
    return env


def sine_squared_envelope(progress: Float64Array) -> Float64Array:
    return np.sin(np.clip(progress, 0.0, 1.0) * np.pi) ** 2


def evaluate_envelope(spec: EnvelopeSpec, progress: Float64Array) -> Float64Array:
    """Evaluate an :class:`EnvelopeSpec` over progress values."""
    match spec.kind:
        case "none":
            return np.ones_like(progress)
        case "fade":
            return fade_envelope(progress, spec.attack, 1.0 - spec.release)
        case "loop":
            return fade_envelope(progress, spec.attack, 1.0 - spec.release)
        case "percussive":
            return percussive_envelope(progress, spec.decay, spec.attack)
        case "breakpoints":
            return breakpoint_envelope(progress, spec.points)
        case "lub_dub":
            return lub_dub_envelope(progress)
        case "sine_squared":
            return sine_squared_envelope(progress)
    return np.ones_like(progress)


def envelope_at(spec: EnvelopeSpec, progress: float) -> float:
    """Scalar convenience around :func:`evaluate_envelope`."""
    return float(evaluate_envelope(spec, np.asarray([progress], dtype=np.float64))[0])


# =============================================================================
# PART 3: RECURSIVE NOISE FILTER
# =============================================================================


def _clamp_coeff(alpha: float) -> float:
    return float(min(max(alpha, 0.0), MAX_FILTER_COEFF))


@lru_cache(maxsize=256)
def _one_pole_coeffs(alpha: float) -> tuple[Float64Array, Float64Array]:
    b = np.asarray([1.0 - alpha], dtype=np.float64)
    a = np.asarray([1.0, -alpha], dtype=np.float64)
    b.setflags(write=False)
    a.setflags(write=False)
    return b, a


def one_pole_lowpass(signal: Float64Array, alpha: float) -> Float64Array:
    """``y[n] = alpha * y[n-1] + (1 - alpha) * x[n]`` with ``y[-1] = 0``.

    Each output is a convex combination of past inputs, so the output never
    exceeds the input's peak for ``alpha`` in [0, 1).
    """
    x = np.asarray(signal, dtype=np.float64)
    if x.size == 0:
        return x.copy()
    coeff = _clamp_coeff(alpha)
    if coeff == 0.0:
        return x.copy()
    b, a = _one_pole_coeffs(coeff)
    return np.asarray(lfilter(b, a, x), dtype=np.float64)


def cascade_lowpass(signal: Float64Array, alpha: float, poles: int = 2) -> Float64Array:
    """Chain ``poles`` one-pole stages for a steeper roll-off."""
    out = np.asarray(signal, dtype=np.float64)
    for _ in range(max(1, poles)):
        out = one_pole_lowpass(out, alpha)
    return out


# =============================================================================
# PART 4: SYNTHESIS ENGINE
# =============================================================================


def oscillate(
    spec: OscillatorSpec,
    t: Float64Array,
    rng: np.random.Generator | None = None,
) -> Float64Array:
    """Render an oscillator spec at the given instants.

    Harmonic stacks are summed with their weights and divided by the number of
    partials to keep the peak bounded.
    """
    if spec.kind == "filtered_noise":
        local_rng = rng if rng is not None else np.random.default_rng()
        return filtered_noise(t.size, local_rng, spec.noise_alpha, spec.noise_poles)
    tone_fn = TONE_FUNCTIONS.get(spec.kind, sine_wave)
    if not spec.harmonics:
        return tone_fn(t, spec.frequency)
    out = np.zeros_like(t)
    for partial in spec.harmonics:
        out += tone_fn(t, spec.frequency * partial.multiplier) * partial.weight
    return out / len(spec.harmonics)


def synthesize(
    oscillator: OscillatorSpec,
    envelope: EnvelopeSpec,
    duration: float,
    sample_rate: int = SAMPLE_RATE,
    *,
    volume: float = 1.0,
    rng: np.random.Generator | None = None,
    label: str = "",
) -> SoundBuffer:
    """Combine oscillator, envelope and gain into a fixed-length buffer.

    Non-positive durations produce an empty buffer.
    """
    count = sample_count(duration, sample_rate)
    if count == 0:
        _LOGGER.debug("Degenerate duration %.4fs for %r; returning empty buffer", duration, label)
        return SoundBuffer.empty(sample_rate, label)
    t = np.arange(count, dtype=np.float64) / sample_rate
    signal = oscillate(oscillator, t, rng)
    signal = signal * evaluate_envelope(envelope, progress_axis(count)) * volume
    return to_buffer(signal, sample_rate, label)


def to_buffer(signal: Float64Array, sample_rate: int = SAMPLE_RATE, label: str = "") -> SoundBuffer:
    return SoundBuffer(np.clip(signal, -1.0, 1.0).astype(np.float32), sample_rate, label)


def layered_noise(
    progress: Float64Array,
    layers: Sequence[tuple[float, float]],
    rng: np.random.Generator,
) -> Float64Array:
    """Sum independent noise bursts, each ``(decay_k, weight)``.

    Distinct decay constants give the snap/body/tail layering of impacts.
    """
    out = np.zeros_like(progress)
    for k, weight in layers:
        out += white_noise(progress.size, rng) * exp_decay(progress, k) * weight
    return out


def loop_seam(buffer: SoundBuffer) -> float:
    """Amplitude jump between the last and first sample when looping."""
    if len(buffer) < 2:
        return 0.0
    return abs(float(buffer.samples[0]) - float(buffer.samples[-1]))


def count_zero_crossings(samples: NDArray[np.floating]) -> int:
    signs = np.signbit(np.asarray(samples))
    return int(np.count_nonzero(signs[1:] != signs[:-1]))
