"""Adaptive parameter mapping: gameplay scalars -> smoothed layer volume/pitch.

One smoothing rule serves every consumer (slide textures, music layers,
heartbeat tempo and warmth):

    current += (target - current) * min(1, dt * rate)

The step factor is capped at 1: a long frame lands on the target without
overshooting it.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, NamedTuple

from .config import SmoothingSettings

if TYPE_CHECKING:
    from .mixer import Mixer

_LOGGER = logging.getLogger("moodsynth.mapper")


def clamp(value: float, low: float, high: float) -> float:
    if math.isnan(value):
        return low
    return max(low, min(high, value))


def smooth_toward(current: float, target: float, dt: float, rate: float) -> float:
    if dt <= 0 or rate <= 0:
        return current
    step = min(1.0, dt * rate)
    return current + (target - current) * step


def safe_ratio(numerator: float | None, denominator: float | None) -> float:
    """``numerator / denominator`` clamped to [0, 1]; 0 when undefined."""
    if numerator is None or denominator is None or denominator <= 0:
        return 0.0
    return clamp(numerator / denominator, 0.0, 1.0)


def distance_falloff(distance: float | None, inner: float, outer: float) -> float:
    """1 inside ``inner``, linear down to 0 at ``outer``, 0 beyond it.

    A missing distance means "no distance gating" and yields 1.
    """
    if distance is None:
        return 1.0
    if distance >= outer:
        return 0.0
    if distance <= inner:
        return 1.0
    span = outer - inner
    if span <= 0:
        return 0.0
    return clamp(1.0 - (distance - inner) / span, 0.0, 1.0)


def lerp(a: float, b: float, t: float) -> float:
    return a + (b - a) * t


def gate(volume: float, threshold: float) -> float:
    """Hard-zero volumes at or below ``threshold``."""
    return volume if volume > threshold else 0.0


@dataclass
class SmoothedValue:
    """A value chasing a target at a fixed exponential rate, within bounds."""

    current: float
    rate: float
    low: float = -math.inf
    high: float = math.inf
    target: float = field(default=math.nan)

    def __post_init__(self) -> None:
        self.current = clamp(self.current, self.low, self.high)
        if math.isnan(self.target):
            self.target = self.current
        else:
            self.target = clamp(self.target, self.low, self.high)

    def set_target(self, value: float) -> None:
        self.target = clamp(value, self.low, self.high)

    def snap(self, value: float) -> None:
        self.current = self.target = clamp(value, self.low, self.high)

    def step(self, dt: float) -> float:
        self.current = clamp(smooth_toward(self.current, self.target, dt, self.rate), self.low, self.high)
        return self.current

    @property
    def settled(self) -> bool:
        return abs(self.current - self.target) <= 1e-6


class LayerOutput(NamedTuple):
    volume: float
    pitch: float


@dataclass
class Layer:
    """Smoothing state of one continuously remixed voice."""

    name: str
    volume: SmoothedValue
    pitch: SmoothedValue

    @property
    def current_volume(self) -> float:
        return self.volume.current

    @property
    def target_volume(self) -> float:
        return self.volume.target

    @property
    def current_pitch(self) -> float:
        return self.pitch.current

    @property
    def target_pitch(self) -> float:
        return self.pitch.target


class ParameterMapper:
    """Owns the smoothing state of every adaptive layer.

    Callers compute targets from gameplay state with the response-curve helpers
    above, hand them to :meth:`set_target`, then :meth:`step` once per frame and
    :meth:`push` the gated results into the mixer.
    """

    def __init__(
        self,
        settings: SmoothingSettings | None = None,
        *,
        min_pitch: float = 0.1,
        max_pitch: float = 4.0,
    ) -> None:
        self.settings = settings or SmoothingSettings()
        self.min_pitch = min_pitch
        self.max_pitch = max_pitch
        self._layers: dict[str, Layer] = {}

    def add_layer(
        self,
        name: str,
        *,
        volume: float = 0.0,
        pitch: float = 1.0,
        min_pitch: float | None = None,
        max_pitch: float | None = None,
        volume_rate: float | None = None,
        pitch_rate: float | None = None,
    ) -> Layer:
        layer = Layer(
            name=name,
            volume=SmoothedValue(volume, volume_rate or self.settings.volume_rate, 0.0, 1.0),
            pitch=SmoothedValue(
                pitch,
                pitch_rate or self.settings.pitch_rate,
                self.min_pitch if min_pitch is None else min_pitch,
                self.max_pitch if max_pitch is None else max_pitch,
            ),
        )
        self._layers[name] = layer
        return layer

    def layer(self, name: str) -> Layer | None:
        return self._layers.get(name)

    def names(self) -> tuple[str, ...]:
        return tuple(self._layers)

    def remove_layer(self, name: str) -> None:
        self._layers.pop(name, None)

    def clear(self) -> None:
        self._layers.clear()

    def set_target(self, name: str, *, volume: float | None = None, pitch: float | None = None) -> None:
        layer = self._layers.get(name)
        if layer is None:
            _LOGGER.debug("set_target on unknown layer %r ignored", name)
            return
        if volume is not None:
            layer.volume.set_target(volume)
        if pitch is not None:
            layer.pitch.set_target(pitch)

    def step(self, dt: float) -> None:
        for layer in self._layers.values():
            layer.volume.step(dt)
            layer.pitch.step(dt)

    def output(self, name: str) -> LayerOutput | None:
        layer = self._layers.get(name)
        if layer is None:
            return None
        return LayerOutput(
            gate(layer.volume.current, self.settings.silence_threshold),
            layer.pitch.current,
        )

    def outputs(self) -> dict[str, LayerOutput]:
        return {name: out for name in self._layers if (out := self.output(name)) is not None}

    def push(self, mixer: "Mixer", gain: float = 1.0) -> None:
        """Send volumes (times ``gain``, then gated) and pitches to same-named mixer voices."""
        threshold = self.settings.silence_threshold
        for name, layer in self._layers.items():
            volume = gate(layer.volume.current * gain, threshold)
            mixer.set_voice(name, volume=volume, pitch=layer.pitch.current)

    def __len__(self) -> int:
        return len(self._layers)

    def __contains__(self, name: object) -> bool:
        return name in self._layers
