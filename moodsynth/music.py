"""Looping drone/pad ambience, one style at a time."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Literal, get_args

from .audio import SoundBuffer
from .mapper import ParameterMapper
from .mixer import Mixer
from .sounds import SoundLibrary, drone_layer, pad_layer

_LOGGER = logging.getLogger("moodsynth.music")

MusicStyle = Literal["fog", "disorientation", "calm", "tense"]
MUSIC_STYLES: tuple[MusicStyle, ...] = get_args(MusicStyle)


@dataclass(frozen=True)
class LayerDef:
    """``kind`` is ``drone`` or ``pad``; ``volume`` is both baked in and the base gain."""

    kind: Literal["drone", "pad"]
    base_freq: float
    duration: float
    volume: float
    detune: float = 0.0


_FOG = (
    LayerDef("drone", 55.0, 8.0, 0.25),  # low A
    LayerDef("drone", 82.5, 10.0, 0.15, 2.0),
    LayerDef("pad", 110.0, 12.0, 0.12),
)

STYLE_LAYERS: Mapping[MusicStyle, tuple[LayerDef, ...]] = MappingProxyType(
    {
        "fog": _FOG,
        "disorientation": _FOG,
        "calm": (
            LayerDef("drone", 65.41, 10.0, 0.2),  # C2
            LayerDef("drone", 98.0, 12.0, 0.15, 1.0),  # G2
            LayerDef("pad", 130.81, 14.0, 0.1),  # C3
        ),
        "tense": (
            LayerDef("drone", 58.27, 8.0, 0.2, 3.0),  # Bb1
            LayerDef("drone", 61.74, 10.0, 0.18, -2.0),  # B1, semitone clash
            LayerDef("pad", 116.54, 12.0, 0.1),  # Bb2
        ),
    }
)


def music_style(value: str) -> MusicStyle | None:
    label = value.strip().lower()
    for style in MUSIC_STYLES:
        if style == label:
            return style
    return None


@dataclass
class _Fade:
    duration: float
    elapsed: float = 0.0


class MusicLayerManager:
    """Plays the 2-4 looping layers of one style through the shared mixer.

    Layer volumes go through a :class:`ParameterMapper`, so :meth:`modulate`
    glides instead of stepping. The category master volume ("music") lives in
    the mixer; :meth:`fade_out` ramps a separate fade gain so the user's music
    volume is untouched once the fade completes.
    """

    def __init__(
        self,
        mixer: Mixer,
        library: SoundLibrary,
        mapper: ParameterMapper | None = None,
        *,
        prefix: str = "music",
    ) -> None:
        self._mixer = mixer
        self._library = library
        self._mapper = mapper if mapper is not None else ParameterMapper()
        self._prefix = prefix
        self._style: MusicStyle | None = None
        self._layers: list[tuple[str, LayerDef]] = []
        self._fade: _Fade | None = None
        self._fade_gain = 1.0
        self.factor = 0.0

    @property
    def style(self) -> MusicStyle | None:
        return self._style

    @property
    def layer_keys(self) -> tuple[str, ...]:
        return tuple(key for key, _ in self._layers)

    @property
    def fading(self) -> bool:
        return self._fade is not None

    def _buffer(self, layer: LayerDef) -> SoundBuffer:
        sr = self._library.sample_rate
        rng = self._library.rng
        key = (layer.kind, layer.base_freq, layer.duration, layer.volume, layer.detune, sr)
        if layer.kind == "pad":
            return self._library.memo(key, lambda: pad_layer(layer.base_freq, layer.duration, layer.volume, sr=sr))
        return self._library.memo(
            key,
            lambda: drone_layer(layer.base_freq, layer.duration, layer.volume, layer.detune, rng=rng, sr=sr),
        )

    def play(self, style: str = "fog") -> None:
        """Stop the current style and start ``style``'s layers. Unknown styles only stop."""
        self.stop()
        resolved = music_style(style)
        if resolved is None:
            _LOGGER.warning("Unknown music style %r; music stopped", style)
            return
        self._style = resolved
        self._fade = None
        self._fade_gain = 1.0
        self.factor = 0.0
        for index, layer in enumerate(STYLE_LAYERS[resolved]):
            key = f"{self._prefix}:{index}"
            self._mapper.add_layer(key, volume=layer.volume)
            self._mixer.play(key, self._buffer(layer), layer.volume, category="music", loop=True)
            self._layers.append((key, layer))
        _LOGGER.info("Music style %s started (%d layers)", resolved, len(self._layers))

    def stop(self) -> None:
        for key, _ in self._layers:
            self._mixer.stop(key)
            self._mapper.remove_layer(key)
        self._layers.clear()
        self._style = None
        self._fade = None

    def modulate(self, factor: float) -> None:
        """Scale every layer after the first by ``0.7 + factor * 0.6``."""
        self.factor = max(0.0, min(1.0, factor))
        for index, (key, layer) in enumerate(self._layers):
            target = layer.volume
            if index > 0:
                target *= 0.7 + self.factor * 0.6
            self._mapper.set_target(key, volume=target)

    def fade_out(self, duration: float = 2.0) -> None:
        if not self._layers:
            return
        if duration <= 0:
            self.stop()
            return
        self._fade = _Fade(duration)

    def update(self, dt: float) -> None:
        if self._fade is not None:
            self._fade.elapsed += max(dt, 0.0)
            progress = self._fade.elapsed / self._fade.duration
            if progress >= 1.0:
                self.stop()
                self._fade_gain = 1.0
                return
            self._fade_gain = 1.0 - progress
        self._mapper.step(dt)
        self._mapper.push(self._mixer, gain=self._fade_gain)

    def set_volume(self, volume: float) -> None:
        self._mixer.set_volume("music", volume)

    def get_volume(self) -> float:
        return self._mixer.get_volume("music")

    def is_playing(self) -> bool:
        return bool(self._layers)
