"""Movement-driven effects: slide textures and footstep cadence."""

from __future__ import annotations

import logging
from typing import TypedDict

import numpy as np

from .audio import SoundBuffer
from .config import SlideTuning, SlideVoiceTuning, SmoothingSettings
from .mapper import ParameterMapper, distance_falloff, lerp, safe_ratio
from .mixer import Mixer
from .sounds import FOOTSTEP_NAMES, SoundLibrary, slide_texture

_LOGGER = logging.getLogger("moodsynth.sfx")


class SlideDebugInfo(TypedDict):
    player_volume: float
    other_volume: float
    player_pitch: float
    other_pitch: float
    max_volume: float


class SlideSfx:
    """Two looping slide textures (player and Other) remixed from movement.

    Player: volume follows ``speed_ratio ** 2``, pitch rises linearly with
    speed. Other: volume follows its own speed ratio times a linear distance
    falloff, then an extra multiplier keeps it under the player.
    """

    PLAYER_KEY = "slide:player"
    OTHER_KEY = "slide:other"

    def __init__(
        self,
        mixer: Mixer,
        library: SoundLibrary,
        tuning: SlideTuning | None = None,
        smoothing: SmoothingSettings | None = None,
        *,
        rng: np.random.Generator | None = None,
    ) -> None:
        self._mixer = mixer
        self._library = library
        self._rng = rng if rng is not None else library.rng
        self.tuning = tuning or SlideTuning()
        self._mapper = ParameterMapper(smoothing, min_pitch=mixer.min_pitch, max_pitch=mixer.max_pitch)
        self.other_volume_multiplier = self.tuning.other_volume_multiplier
        self.active = False

    def _texture(self, voice: SlideVoiceTuning) -> SoundBuffer:
        sr = self._library.sample_rate
        key = ("slide", voice, self.tuning.loop_seconds, sr)
        return self._library.memo(
            key, lambda: slide_texture(voice, self.tuning.loop_seconds, rng=self._rng, sr=sr)
        )

    def start(self) -> None:
        """Start both loops at zero volume and pitch 1."""
        if self.active:
            return
        for key, voice in ((self.PLAYER_KEY, self.tuning.player), (self.OTHER_KEY, self.tuning.other)):
            self._mapper.add_layer(key, volume=0.0, pitch=1.0)
            self._mixer.play(key, self._texture(voice), 0.0, category="slide", loop=True)
        self.active = True
        _LOGGER.debug("Slide textures started")

    def targets(
        self,
        player_speed: float | None,
        max_player_speed: float | None,
        other_speed: float | None = None,
        other_distance: float | None = None,
    ) -> tuple[float, float, float, float]:
        """Return ``(player_volume, player_pitch, other_volume, other_pitch)`` targets."""
        t = self.tuning
        speed_ratio = safe_ratio(player_speed, max_player_speed)
        player_volume = speed_ratio * speed_ratio * t.max_volume
        player_pitch = lerp(t.min_pitch, t.max_pitch, speed_ratio)

        other_ratio = safe_ratio(other_speed, t.other_max_speed)
        falloff = distance_falloff(other_distance, t.falloff_inner, t.falloff_outer)
        other_volume = other_ratio * falloff * t.max_volume * self.other_volume_multiplier
        floor = t.min_pitch * t.other_pitch_floor_scale
        other_pitch = lerp(floor, t.max_pitch, other_ratio)
        return player_volume, player_pitch, other_volume, other_pitch

    def update(
        self,
        dt: float,
        player_speed: float | None,
        max_player_speed: float | None,
        other_speed: float | None = None,
        other_distance: float | None = None,
    ) -> None:
        if not self.active:
            return
        player_volume, player_pitch, other_volume, other_pitch = self.targets(
            player_speed, max_player_speed, other_speed, other_distance
        )
        self._mapper.set_target(self.PLAYER_KEY, volume=player_volume, pitch=player_pitch)
        self._mapper.set_target(self.OTHER_KEY, volume=other_volume, pitch=other_pitch)
        self._mapper.step(dt)
        self._mapper.push(self._mixer)

    def set_other_volume_multiplier(self, multiplier: float) -> None:
        self.other_volume_multiplier = max(0.0, min(1.0, multiplier))

    def debug_info(self) -> SlideDebugInfo:
        player = self._mapper.layer(self.PLAYER_KEY)
        other = self._mapper.layer(self.OTHER_KEY)
        return SlideDebugInfo(
            player_volume=player.current_volume if player else 0.0,
            other_volume=other.current_volume if other else 0.0,
            player_pitch=player.current_pitch if player else 1.0,
            other_pitch=other.current_pitch if other else 1.0,
            max_volume=self.tuning.max_volume,
        )

    def stop(self) -> None:
        """Silence both loops; a later :meth:`start` brings them back at zero volume."""
        self._mixer.stop(self.PLAYER_KEY)
        self._mixer.stop(self.OTHER_KEY)
        self._mapper.clear()
        self.active = False

    def reset(self) -> None:
        self.stop()
        self.other_volume_multiplier = self.tuning.other_volume_multiplier


class Footsteps:
    """Cycles the four footstep variants at a speed-dependent cadence.

    The base step volume is the "footsteps" category master in the mixer;
    ``volume`` here is an extra per-step gain.
    """

    KEY = "footstep"

    def __init__(
        self,
        mixer: Mixer,
        library: SoundLibrary,
        *,
        interval: float = 0.28,
        volume: float = 1.0,
    ) -> None:
        self._mixer = mixer
        self._library = library
        self.interval = interval
        self.volume = volume
        self._timer = 0.0
        self._last = -1
        self.steps = 0

    def set_params(self, interval: float | None = None, volume: float | None = None) -> None:
        if interval is not None and interval > 0:
            self.interval = interval
        if volume is not None:
            self.volume = max(0.0, min(1.0, volume))

    def current_interval(self, speed_factor: float | None = 1.0) -> float:
        factor = 1.0 if speed_factor is None else max(0.2, speed_factor)
        return self.interval / factor

    def update(self, dt: float, is_moving: bool, speed_factor: float | None = 1.0) -> None:
        interval = self.current_interval(speed_factor)
        if not is_moving:
            # half-charged so the first step lands quickly once movement starts
            self._timer = interval * 0.5
            return
        self._timer += dt
        if self._timer >= interval:
            self._timer = 0.0
            self._last = (self._last + 1) % len(FOOTSTEP_NAMES)
            name = FOOTSTEP_NAMES[self._last]
            self._mixer.play(self.KEY, self._library.get(name), self.volume, category="footsteps")
            self.steps += 1

    def reset(self) -> None:
        self._mixer.stop(self.KEY)
        self._timer = 0.0
        self._last = -1
        self.steps = 0
