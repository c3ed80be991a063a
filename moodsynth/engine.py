"""The audio engine context object.

One :class:`AudioEngine` owns the sound library, the mixer, every adaptive
subsystem and the output backend. Lifecycle::

    engine = AudioEngine(EngineSettings(seed=7))
    engine.init()                    # uninitialized -> ready
    engine.start("fog")
    while running:
        engine.heartbeat.update(dt, mood, intimacy)
        engine.update(dt)            # mix and write dt seconds of audio
    engine.reset()                   # ready -> uninitialized

Gameplay code drives the stateful subsystems (``heartbeat``, ``slide``,
``footsteps``, ``efficiency``) itself, then calls :meth:`update` once per frame.
Ambient music fades need no gameplay input and are advanced by :meth:`update`.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Literal

import numpy as np

from .audio import FloatArray, SoundBuffer
from .config import EngineSettings, VolumeSettings, volume_category
from .efficiency import EfficiencyMusic
from .errors import InvalidConfigError, PlaybackError
from .heartbeat import HeartbeatMusic
from .logging_utils import log_exception
from .mapper import ParameterMapper
from .mixer import Mixer
from .music import MusicLayerManager
from .playback import BackendKind, PlaybackBackend, capture_backend, null_backend, resolve_backend
from .sfx import Footsteps, SlideSfx
from .sounds import SoundLibrary

_LOGGER = logging.getLogger("moodsynth.engine")

EngineState = Literal["uninitialized", "ready"]
FrameStep = Callable[["AudioEngine", float, float], None]


class AudioEngine:
    def __init__(
        self,
        settings: EngineSettings | None = None,
        *,
        backend: PlaybackBackend | BackendKind = "null",
        rng: np.random.Generator | None = None,
    ) -> None:
        self.settings = settings or EngineSettings()
        self._backend_choice = backend
        self._backend: PlaybackBackend = null_backend()
        self._rng = rng if rng is not None else np.random.default_rng(self.settings.seed)
        self._state: EngineState = "uninitialized"
        self._frame_remainder = 0.0
        self._build()

    def _build(self) -> None:
        s = self.settings
        self.library = SoundLibrary(self._rng, s.sample_rate)
        self.mixer = Mixer(
            VolumeSettings.model_validate(s.volumes.model_dump()),
            sample_rate=s.sample_rate,
            min_pitch=s.min_pitch,
            max_pitch=s.max_pitch,
        )
        self.mapper = ParameterMapper(s.smoothing, min_pitch=s.min_pitch, max_pitch=s.max_pitch)
        self.music = MusicLayerManager(self.mixer, self.library, self.mapper)
        self.heartbeat = HeartbeatMusic(
            self.mixer,
            self.library,
            rng=self._rng,
            min_bpm=s.min_bpm,
            max_bpm=s.max_bpm,
        )
        self.slide = SlideSfx(self.mixer, self.library, s.slide, s.smoothing, rng=self._rng)
        self.footsteps = Footsteps(self.mixer, self.library)
        self.efficiency = EfficiencyMusic(self.mixer, self.library, rng=self._rng)

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def ready(self) -> bool:
        return self._state == "ready"

    @property
    def sample_rate(self) -> int:
        return self.settings.sample_rate

    @property
    def backend_name(self) -> str:
        return self._backend.name

    def init(self) -> None:
        """Open the output backend and synthesize the named sound catalog."""
        if self.ready:
            return
        choice = self._backend_choice
        if isinstance(choice, PlaybackBackend):
            self._backend = choice
        else:
            try:
                self._backend = resolve_backend(choice, sample_rate=self.sample_rate)
            except PlaybackError as exc:
                log_exception("opening playback backend", exc)
                _LOGGER.warning("Playback unavailable (%s); continuing silently", exc)
                self._backend = null_backend()
        self.library.warm()
        self._frame_remainder = 0.0
        self._state = "ready"
        _LOGGER.info(
            "Audio engine ready (sr=%d, backend=%s, sounds=%d)",
            self.sample_rate,
            self._backend.name,
            len(self.library),
        )

    def _ensure_ready(self) -> None:
        if not self.ready:
            self.init()

    def reset(self) -> None:
        """Stop everything, drop cached buffers and return to uninitialized."""
        self.stop_all()
        self.heartbeat.reset()
        self.slide.reset()
        self.footsteps.reset()
        self.efficiency.reset()
        self.mapper.clear()
        self.library.clear()
        self._close_backend()
        self._frame_remainder = 0.0
        self._state = "uninitialized"
        _LOGGER.debug("Audio engine reset")

    def _close_backend(self) -> None:
        try:
            self._backend.close()
        except Exception as exc:
            log_exception("closing playback backend", exc)
            _LOGGER.warning("Failed to close backend %s: %s", self._backend.name, exc)
        self._backend = null_backend()

    # ------------------------------------------------------------------
    # collaborator surface
    # ------------------------------------------------------------------

    def start(self, style: str = "fog") -> None:
        self._ensure_ready()
        self.music.play(style)

    def play(self, name: str, volume: float = 1.0, pitch: float = 1.0) -> None:
        """Fire a named sound; unknown names are ignored."""
        self._ensure_ready()
        definition = self.library.definition(name)
        if definition is None:
            _LOGGER.debug("play(%r): unknown sound ignored", name)
            return
        self.mixer.play(
            definition.name,
            self.library.get(definition.name),
            volume,
            pitch,
            category=definition.category,
            loop=definition.loop,
        )

    def stop(self, name: str) -> None:
        self.mixer.stop(name)

    def stop_all(self) -> None:
        self.music.stop()
        self.heartbeat.stop()
        self.slide.stop()
        self.efficiency.stop()
        self.mixer.stop_all()

    def set_volume(self, category: str, volume: float) -> None:
        try:
            resolved = volume_category(category)
        except InvalidConfigError as exc:
            _LOGGER.debug("set_volume ignored: %s", exc)
            return
        self.mixer.set_volume(resolved, volume)

    def get_volume(self, category: str) -> float:
        try:
            resolved = volume_category(category)
        except InvalidConfigError as exc:
            _LOGGER.debug("get_volume defaulted: %s", exc)
            return 0.0
        return self.mixer.get_volume(resolved)

    def update(self, dt: float) -> FloatArray:
        """Advance ``dt`` seconds: mix, write to the backend and return the block."""
        if not self.ready or dt <= 0:
            return np.zeros(0, dtype=np.float32)
        self.music.update(dt)

        exact = dt * self.sample_rate + self._frame_remainder
        frames = int(exact)
        self._frame_remainder = exact - frames
        block = self.mixer.render(frames)
        try:
            self._backend.write(block)
        except PlaybackError as exc:
            log_exception("writing audio block", exc)
            _LOGGER.warning("Backend %s failed; switching to silent output", self._backend.name)
            self._close_backend()
        return block

    def render_offline(
        self,
        seconds: float,
        *,
        frame_dt: float = 1.0 / 60.0,
        step: FrameStep | None = None,
    ) -> SoundBuffer:
        """Drive the engine for ``seconds`` and return everything it mixed.

        ``step(engine, t, dt)`` runs before each frame so callers can feed
        gameplay state. The live backend is restored afterwards.
        """
        self._ensure_ready()
        capture, sink = capture_backend()
        previous, self._backend = self._backend, capture
        try:
            elapsed = 0.0
            while elapsed < seconds - 1e-9:
                dt = min(frame_dt, seconds - elapsed)
                if step is not None:
                    step(self, elapsed, dt)
                self.update(dt)
                elapsed += dt
        finally:
            self._backend = previous
        return SoundBuffer(sink.samples(), self.sample_rate, "offline")

    def close(self) -> None:
        self._close_backend()
