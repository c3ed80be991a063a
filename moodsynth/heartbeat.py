"""Heartbeat-driven music whose tempo and harmony follow a mood."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Literal, get_args

import numpy as np

from .audio import SoundBuffer
from .mapper import SmoothedValue
from .mixer import Mixer
from .scheduler import BeatScheduler, ChordSet, TimbreCache
from .sounds import SoundLibrary, heartbeat, tone_layer

_LOGGER = logging.getLogger("moodsynth.heartbeat")

Mood = Literal["guarded", "attuning", "open", "withdrawn"]
MOOD_NAMES: tuple[Mood, ...] = get_args(Mood)

BASE_BPM = 60.0
Chord = tuple[float, ...]


@dataclass(frozen=True)
class MoodProfile:
    bpm: float
    warmth: float
    # added to warmth per unit of intimacy
    intimacy_warmth: float
    intensity: float

    def target_warmth(self, intimacy: float) -> float:
        return self.warmth + max(0.0, min(1.0, intimacy)) * self.intimacy_warmth


MOODS: Mapping[Mood, MoodProfile] = MappingProxyType(
    {
        "guarded": MoodProfile(55.0, 0.2, 0.0, 0.4),
        "attuning": MoodProfile(72.0, 0.6, 0.2, 0.6),
        "open": MoodProfile(58.0, 0.8, 0.2, 0.7),
        "withdrawn": MoodProfile(80.0, 0.1, 0.0, 0.5),
    }
)

WARM_CHORDS: tuple[Chord, ...] = (
    (130.81, 164.81, 196.00),  # C3 major
    (146.83, 185.00, 220.00),  # D3 major
    (164.81, 207.65, 246.94),  # E3 major
)
COLD_CHORDS: tuple[Chord, ...] = (
    (130.81, 155.56, 196.00),  # C3 minor
    (123.47, 146.83, 185.00),
    (138.59, 164.81, 207.65),  # C#3 minor
)

HEARTBEAT_ACCENTS = (1.0, 0.8, 0.9, 0.8)


def heartbeat_pitch(warmth: float) -> float:
    return 50.0 + warmth * 15.0


class HeartbeatMusic:
    def __init__(
        self,
        mixer: Mixer,
        library: SoundLibrary,
        *,
        rng: np.random.Generator | None = None,
        smoothing_rate: float = 0.8,
        min_bpm: float = 20.0,
        max_bpm: float = 300.0,
        key: str = "heartbeat",
    ) -> None:
        self._mixer = mixer
        self._library = library
        self._rng = rng if rng is not None else library.rng
        self._smoothing_rate = smoothing_rate
        self._min_bpm = min_bpm
        self._max_bpm = max_bpm
        self.beat_key = key
        self.tone_key = f"{key}:tone"
        self._init_state()

    def _init_state(self) -> None:
        self.scheduler = BeatScheduler(
            BASE_BPM,
            smoothing_rate=self._smoothing_rate,
            min_bpm=self._min_bpm,
            max_bpm=self._max_bpm,
            accents=HEARTBEAT_ACCENTS,
            rng=self._rng,
        )
        self._warmth = SmoothedValue(0.5, self._smoothing_rate, 0.0, 1.0)
        self.intensity = 0.5
        self.mood: Mood | None = None
        self.chords: ChordSet[Chord] = ChordSet(WARM_CHORDS, COLD_CHORDS)
        self.timbre: TimbreCache[SoundBuffer] = TimbreCache(0.1)
        self._tone_timer = 0.0
        self.tone_interval = 2.0

    @property
    def current_bpm(self) -> float:
        return self.scheduler.bpm

    @property
    def warmth(self) -> float:
        return self._warmth.current

    def _build_heartbeat(self, warmth: float) -> SoundBuffer:
        return heartbeat(heartbeat_pitch(warmth), warmth, sr=self._library.sample_rate)

    def set_mood(self, mood: str, intimacy: float = 0.0) -> None:
        profile = MOODS.get(mood)  # type: ignore[call-overload]
        if profile is None:
            _LOGGER.debug("Unknown mood %r; keeping previous targets", mood)
            return
        if mood != self.mood:
            _LOGGER.debug("Mood %s -> %s", self.mood, mood)
        self.mood = mood  # type: ignore[assignment]
        self.scheduler.set_target(profile.bpm)
        self._warmth.set_target(profile.target_warmth(intimacy))
        self.intensity = profile.intensity

    def update(self, dt: float, mood: str, intimacy: float = 0.0) -> None:
        if dt <= 0:
            return
        self.set_mood(mood, intimacy)
        self._warmth.step(dt)

        for event in self.scheduler.tick(dt):
            buffer = self.timbre.get(self.warmth, self._build_heartbeat)
            self._mixer.play(
                self.beat_key,
                buffer,
                self.intensity * 0.5 * event.volume,
                category="music",
            )

        self._tone_timer += dt
        if self._tone_timer >= self.tone_interval:
            self._tone_timer = 0.0
            chord = self.chords.advance(self.warmth)
            tone = tone_layer(
                chord,
                self.tone_interval * 0.9,
                self.intensity * 0.15,
                sr=self._library.sample_rate,
            )
            self._mixer.play(self.tone_key, tone, 1.0, category="music")
            self.tone_interval = 1.8 + float(self._rng.random()) * 0.8

    def stop(self) -> None:
        self._mixer.stop(self.beat_key)
        self._mixer.stop(self.tone_key)

    def reset(self) -> None:
        self.stop()
        self._init_state()
