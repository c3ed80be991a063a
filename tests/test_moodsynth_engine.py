from __future__ import annotations

import logging
from pathlib import Path

import numpy as np
import pytest

import moodsynth.playback as playback
from moodsynth.audio import FloatArray
from moodsynth.config import EngineSettings
from moodsynth.engine import AudioEngine
from moodsynth.errors import PlaybackError
from moodsynth.logging_utils import get_log_path
from moodsynth.playback import PlaybackBackend, capture_backend

SR = 8_000


def _engine(**kwargs) -> AudioEngine:
    return AudioEngine(EngineSettings(sample_rate=SR, seed=3), **kwargs)


def _failing_backend() -> PlaybackBackend:
    def _write(block: FloatArray) -> None:
        raise PlaybackError("device unplugged")

    return PlaybackBackend(name="flaky", write=_write, close=lambda: None)


class TestLifecycle:
    def test_init_and_reset(self) -> None:
        engine = _engine()
        assert engine.state == "uninitialized"
        assert engine.update(0.1).size == 0
        engine.init()
        assert engine.ready
        assert engine.backend_name == "null"
        assert len(engine.library) > 0
        engine.start("fog")
        engine.reset()
        assert engine.state == "uninitialized"
        assert len(engine.mixer) == 0
        assert len(engine.library) == 0
        assert not engine.music.is_playing()

    def test_play_initializes_lazily(self) -> None:
        engine = _engine()
        engine.play("blip")
        assert engine.ready
        assert "blip" in engine.mixer

    def test_init_is_idempotent(self) -> None:
        engine = _engine()
        engine.init()
        cached = len(engine.library)
        engine.init()
        assert len(engine.library) == cached


class TestCollaboratorSurface:
    def test_unknown_sound_is_noop(self) -> None:
        engine = _engine()
        engine.init()
        engine.play("does-not-exist")
        assert len(engine.mixer) == 0

    def test_slide_restarts_after_stop_all(self) -> None:
        engine = _engine()
        engine.slide.start()
        engine.stop_all()
        engine.slide.start()
        for _ in range(60):
            engine.slide.update(1 / 60, 80.0, 80.0, 40.0, 50.0)
        assert "slide:player" in engine.mixer.active_keys()
        voice = engine.mixer.voice("slide:player")
        assert voice is not None and voice.volume > 0.0

    def test_play_twice_leaves_one_voice(self) -> None:
        engine = _engine()
        engine.init()
        engine.play("coin")
        engine.play("coin", volume=0.5, pitch=1.5)
        assert engine.mixer.active_keys() == ("coin",)
        voice = engine.mixer.voice("coin")
        assert voice is not None
        assert voice.volume == pytest.approx(0.5)
        assert voice.pitch == pytest.approx(1.5)
        assert voice.category == "sfx"

    def test_looping_sounds_keep_their_flag(self) -> None:
        engine = _engine()
        engine.play("drumroll")
        voice = engine.mixer.voice("drumroll")
        assert voice is not None and voice.loop
        engine.stop("drumroll")
        assert "drumroll" not in engine.mixer

    def test_volume_categories(self) -> None:
        engine = _engine()
        engine.set_volume("Music", 0.2)
        assert engine.get_volume("music") == pytest.approx(0.2)
        engine.set_volume("slide", 3.0)
        assert engine.get_volume("slide") == 1.0
        engine.set_volume("voices", 0.5)
        assert engine.get_volume("voices") == 0.0
        assert engine.settings.volumes.music == pytest.approx(0.45)

    def test_stop_all_silences_every_subsystem(self) -> None:
        engine = _engine()
        engine.start("calm")
        engine.slide.start()
        engine.play("drumroll")
        engine.stop_all()
        assert len(engine.mixer) == 0
        assert np.allclose(engine.update(0.05), 0.0)


class TestUpdate:
    def test_frame_remainder_is_carried(self) -> None:
        engine = _engine()
        engine.init()
        sizes = [engine.update(1.0 / 60.0).size for _ in range(60)]
        assert set(sizes) <= {133, 134}
        assert abs(sum(sizes) - SR) <= 1

    def test_non_positive_dt(self) -> None:
        engine = _engine()
        engine.init()
        assert engine.update(0.0).size == 0
        assert engine.update(-1.0).size == 0

    def test_blocks_reach_the_backend(self) -> None:
        backend, sink = capture_backend()
        engine = _engine(backend=backend)
        engine.play("success")
        block = engine.update(0.1)
        assert len(sink) == block.size == 800
        assert np.abs(sink.samples()).max() > 0.0

    def test_failing_backend_switches_to_silent(
        self,
        tmp_path: Path,
        monkeypatch: pytest.MonkeyPatch,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        monkeypatch.setenv("MOODSYNTH_LOG_DIR", str(tmp_path))
        caplog.set_level(logging.WARNING, logger="moodsynth.engine")
        engine = _engine(backend=_failing_backend())
        engine.init()
        assert engine.backend_name == "flaky"
        block = engine.update(0.1)
        assert block.size == 800
        assert engine.backend_name == "null"
        assert "switching to silent output" in caplog.text
        assert "device unplugged" in get_log_path().read_text(encoding="utf-8")
        assert engine.update(0.1).size == 800

    def test_missing_device_falls_back_to_null(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MOODSYNTH_LOG_DIR", str(tmp_path))
        monkeypatch.setattr(playback, "_load_sounddevice", lambda sample_rate: None)
        engine = _engine(backend="sounddevice")
        engine.init()
        assert engine.ready
        assert engine.backend_name == "null"


class TestRenderOffline:
    def test_length_and_backend_restored(self) -> None:
        engine = _engine()
        engine.init()
        buffer = engine.render_offline(1.0)
        assert abs(len(buffer) - SR) <= 1
        assert buffer.sample_rate == SR
        assert engine.backend_name == "null"

    def test_step_drives_gameplay(self) -> None:
        engine = _engine()
        calls: list[float] = []

        def step(eng: AudioEngine, t: float, dt: float) -> None:
            calls.append(t)
            eng.heartbeat.update(dt, "withdrawn", 0.0)

        buffer = engine.render_offline(2.0, step=step)
        assert len(calls) == 120
        assert calls[0] == 0.0
        assert buffer.peak > 0.0

    def test_engine_advances_music_fades(self) -> None:
        engine = _engine()
        engine.start("calm")
        engine.music.fade_out(0.5)
        engine.render_offline(1.0)
        assert not engine.music.is_playing()
        assert engine.get_volume("music") == pytest.approx(0.45)

    def test_seeded_engines_render_identically(self) -> None:
        def scene(eng: AudioEngine, t: float, dt: float) -> None:
            eng.heartbeat.update(dt, "attuning", 0.5)
            eng.footsteps.update(dt, True)

        a = _engine().render_offline(1.5, step=scene)
        b = _engine().render_offline(1.5, step=scene)
        assert np.array_equal(a.samples, b.samples)
