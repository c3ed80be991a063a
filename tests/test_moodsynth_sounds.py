import numpy as np
import pytest

from moodsynth.config import SlideTuning
from moodsynth.errors import UnknownSoundError
from moodsynth.sounds import (
    FOOTSTEP_NAMES,
    SOUND_LIBRARY,
    SOUND_NAMES,
    SoundLibrary,
    drone_layer,
    heartbeat,
    lookup,
    note,
    pad_layer,
    percussion,
    slide_texture,
)
from moodsynth.synth import loop_seam

SR = 22_050


def test_registry_covers_every_name() -> None:
    assert set(SOUND_LIBRARY) == set(SOUND_NAMES)
    assert all(SOUND_LIBRARY[name].category == "footsteps" for name in FOOTSTEP_NAMES)
    assert SOUND_LIBRARY["drumroll"].loop is True
    assert SOUND_LIBRARY["success"].category == "sfx"


def test_lookup_miss_is_explicit() -> None:
    assert lookup("does-not-exist") is None
    assert lookup("coin") is SOUND_LIBRARY["coin"]


class TestSoundLibrary:
    def test_get_is_lazy_and_cached(self) -> None:
        library = SoundLibrary(np.random.default_rng(0), SR)
        assert len(library) == 0
        first = library.get("blip")
        second = library.get("blip")
        assert first is not None
        assert first is second
        assert len(library) == 1

    def test_unknown_get_returns_none_build_raises(self) -> None:
        library = SoundLibrary(np.random.default_rng(0), SR)
        assert library.get("nope") is None
        with pytest.raises(UnknownSoundError):
            library.build("nope")
        with pytest.raises(KeyError):
            library.build("nope")

    def test_every_sound_synthesizes_in_range(self) -> None:
        library = SoundLibrary(np.random.default_rng(1), SR)
        library.warm()
        for name in SOUND_NAMES:
            buffer = library.build(name)
            assert len(buffer) > 0, name
            assert buffer.peak <= 1.0, name
            assert buffer.sample_rate == SR

    def test_memo_builds_once(self) -> None:
        library = SoundLibrary(np.random.default_rng(0), SR)
        calls: list[int] = []

        def factory():
            calls.append(1)
            return note(220.0, sr=SR)

        a = library.memo(("note", 220.0), factory)
        b = library.memo(("note", 220.0), factory)
        assert a is b
        assert len(calls) == 1
        library.clear()
        assert len(library) == 0

    def test_seeded_libraries_match(self) -> None:
        a = SoundLibrary(np.random.default_rng(42), SR).build("thunk")
        b = SoundLibrary(np.random.default_rng(42), SR).build("thunk")
        assert np.array_equal(a.samples, b.samples)


class TestLoopingTextures:
    def test_drone_and_pad_loop_seamlessly(self) -> None:
        rng = np.random.default_rng(2)
        assert loop_seam(drone_layer(55.0, 2.0, 0.25, 2.0, rng=rng, sr=SR)) < 1e-3
        assert loop_seam(pad_layer(110.0, 2.0, 0.12, sr=SR)) < 1e-3

    def test_slide_textures_loop_seamlessly(self) -> None:
        rng = np.random.default_rng(3)
        for tuning in (SlideTuning(), SlideTuning.airy()):
            for voice in (tuning.player, tuning.other):
                buffer = slide_texture(voice, tuning.loop_seconds, rng=rng, sr=SR)
                assert len(buffer) == int(SR * tuning.loop_seconds)
                assert loop_seam(buffer) < 1e-3

    def test_drumroll_loops_seamlessly(self) -> None:
        library = SoundLibrary(np.random.default_rng(4), SR)
        assert loop_seam(library.build("drumroll")) < 1e-3


def test_heartbeat_warmth_adds_harmonics() -> None:
    cold = heartbeat(50.0, 0.0, sr=SR)
    warm = heartbeat(50.0, 1.0, sr=SR)
    assert len(cold) == len(warm) == int(SR * 0.35)
    assert not np.allclose(cold.samples, warm.samples)
    assert cold.samples[0] == 0.0


def test_percussion_kinds() -> None:
    rng = np.random.default_rng(5)
    for kind, duration in (("kick", 1.0), ("snare", 0.2), ("hihat", 0.3), ("click", 0.08)):
        buffer = percussion(kind, duration, 0.5, rng=rng, sr=SR)
        assert len(buffer) == int(SR * duration)
        assert 0.0 < buffer.peak <= 1.0
    assert percussion("cowbell", 0.2, 0.5, rng=rng, sr=SR).is_empty  # type: ignore[arg-type]


def test_note_envelope_starts_silent() -> None:
    buffer = note(440.0, 0.8, 0.3, sr=SR)
    assert buffer.samples[0] == 0.0
    assert abs(float(buffer.samples[-1])) < 0.01
