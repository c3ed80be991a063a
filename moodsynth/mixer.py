"""Keyed voice mixer.

At most one voice exists per key: playing under a key that is already sounding
replaces the old voice. Category master volumes are applied when mixing, so a
category change is heard on every live voice immediately.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, field

import numpy as np

from .audio import SAMPLE_RATE, FloatArray, SoundBuffer
from .config import VolumeCategory, VolumeSettings

_LOGGER = logging.getLogger("moodsynth.mixer")


def _unit(value: float) -> float:
    return max(0.0, min(1.0, float(value)))


@dataclass
class Voice:
    """A playing instance of a buffer with its own volume, pitch and cursor."""

    key: str
    buffer: SoundBuffer
    volume: float = 1.0
    pitch: float = 1.0
    category: VolumeCategory = "sfx"
    loop: bool = False
    position: float = 0.0
    playing: bool = True
    # buffer samples consumed per output sample at pitch 1
    rate_ratio: float = field(default=1.0)

    def render(self, frames: int) -> FloatArray:
        """Resample ``frames`` output samples at the current pitch and advance."""
        out = np.zeros(frames, dtype=np.float32)
        length = len(self.buffer)
        if frames <= 0 or not self.playing or length == 0:
            return out

        step = self.pitch * self.rate_ratio
        index = self.position + np.arange(frames, dtype=np.float64) * step
        samples = self.buffer.samples

        if self.loop:
            index = np.mod(index, length)
            lo = index.astype(np.int64)
            hi = (lo + 1) % length
            frac = index - lo
            out[:] = samples[lo] * (1.0 - frac) + samples[hi] * frac
        else:
            valid = index < length
            count = int(np.count_nonzero(valid))
            if count:
                idx = index[:count]
                lo = idx.astype(np.int64)
                hi = np.minimum(lo + 1, length - 1)
                frac = idx - lo
                out[:count] = samples[lo] * (1.0 - frac) + samples[hi] * frac

        self.advance(frames)
        return out * self.volume

    def advance(self, frames: int) -> None:
        """Move the cursor as if ``frames`` samples were rendered, without resampling."""
        length = len(self.buffer)
        if frames <= 0 or not self.playing or length == 0:
            return
        self.position += frames * self.pitch * self.rate_ratio
        if self.loop:
            self.position = float(self.position % length)
        elif self.position >= length:
            self.playing = False

    @property
    def finished(self) -> bool:
        return not self.playing


class Mixer:
    def __init__(
        self,
        volumes: VolumeSettings | None = None,
        *,
        sample_rate: int = SAMPLE_RATE,
        min_pitch: float = 0.1,
        max_pitch: float = 4.0,
    ) -> None:
        self.volumes = volumes if volumes is not None else VolumeSettings()
        self.sample_rate = sample_rate
        self.min_pitch = min_pitch
        self.max_pitch = max_pitch
        self._voices: dict[str, Voice] = {}
        self._anonymous = itertools.count()

    def _pitch(self, value: float) -> float:
        return max(self.min_pitch, min(self.max_pitch, float(value)))

    def play(
        self,
        key: str | None,
        buffer: SoundBuffer | None,
        volume: float = 1.0,
        pitch: float = 1.0,
        *,
        category: VolumeCategory = "sfx",
        loop: bool = False,
    ) -> Voice | None:
        """Start ``buffer`` under ``key``, replacing any voice already there.

        ``key=None`` plays an anonymous one-shot that never replaces anything.
        Empty buffers are ignored.
        """
        if buffer is None or buffer.is_empty:
            _LOGGER.debug("Ignoring play of empty buffer under %r", key)
            return None
        if key is None:
            key = f"~{next(self._anonymous)}"
        previous = self._voices.pop(key, None)
        if previous is not None:
            previous.playing = False
        voice = Voice(
            key=key,
            buffer=buffer,
            volume=_unit(volume),
            pitch=self._pitch(pitch),
            category=category,
            loop=loop,
            rate_ratio=buffer.sample_rate / self.sample_rate,
        )
        self._voices[key] = voice
        return voice

    def stop(self, key: str) -> None:
        voice = self._voices.pop(key, None)
        if voice is not None:
            voice.playing = False

    def stop_all(self) -> None:
        for voice in self._voices.values():
            voice.playing = False
        self._voices.clear()

    def voice(self, key: str) -> Voice | None:
        return self._voices.get(key)

    def is_playing(self, key: str) -> bool:
        voice = self._voices.get(key)
        return voice is not None and voice.playing

    def active_keys(self) -> tuple[str, ...]:
        return tuple(key for key, voice in self._voices.items() if voice.playing)

    def set_voice(self, key: str, *, volume: float | None = None, pitch: float | None = None) -> bool:
        """Adjust a live voice; returns False (and does nothing) for unknown keys."""
        voice = self._voices.get(key)
        if voice is None:
            return False
        if volume is not None:
            voice.volume = _unit(volume)
        if pitch is not None:
            voice.pitch = self._pitch(pitch)
        return True

    def set_volume(self, category: VolumeCategory, value: float) -> None:
        self.volumes.set(category, value)

    def get_volume(self, category: VolumeCategory) -> float:
        return self.volumes.get(category)

    def render(self, frames: int) -> FloatArray:
        """Mix ``frames`` samples from every live voice and drop finished one-shots."""
        mix = np.zeros(max(frames, 0), dtype=np.float32)
        if frames <= 0:
            return mix
        finished: list[str] = []
        for key, voice in self._voices.items():
            gain = self.volumes.get(voice.category)
            if gain > 0.0 and voice.volume > 0.0:
                mix += voice.render(frames) * gain
            else:
                # silent voices only move their cursor
                voice.advance(frames)
            if voice.finished:
                finished.append(key)
        for key in finished:
            self._voices.pop(key, None)
        return np.clip(mix, -1.0, 1.0)

    def __len__(self) -> int:
        return len(self._voices)

    def __contains__(self, key: object) -> bool:
        return key in self._voices
