import numpy as np
import pytest

from moodsynth.audio import SoundBuffer
from moodsynth.config import VolumeSettings
from moodsynth.mixer import Mixer, Voice

SR = 8_000


def _dc(value: float, frames: int, sr: int = SR) -> SoundBuffer:
    return SoundBuffer(np.full(frames, value, dtype=np.float32), sr)


def _ramp(frames: int) -> SoundBuffer:
    return SoundBuffer(np.linspace(0.0, 1.0, frames, dtype=np.float32), SR)


def _mixer(**volumes: float) -> Mixer:
    return Mixer(VolumeSettings(music=1.0, sfx=1.0, footsteps=1.0, slide=1.0, **volumes), sample_rate=SR)


class TestVoices:
    def test_play_twice_keeps_one_voice(self) -> None:
        mixer = _mixer()
        first = mixer.play("x", _dc(0.5, 100))
        second = mixer.play("x", _dc(0.5, 100))
        assert len(mixer) == 1
        assert mixer.voice("x") is second
        assert first is not None and not first.playing
        assert np.allclose(mixer.render(10), 0.5)

    def test_anonymous_voices_do_not_replace(self) -> None:
        mixer = _mixer()
        mixer.play(None, _dc(0.2, 50))
        mixer.play(None, _dc(0.2, 50))
        assert len(mixer) == 2
        assert np.allclose(mixer.render(10), 0.4)

    def test_empty_buffer_is_noop(self) -> None:
        mixer = _mixer()
        assert mixer.play("x", SoundBuffer.empty(SR)) is None
        assert mixer.play("y", None) is None
        assert len(mixer) == 0

    def test_unknown_key_operations_are_noops(self) -> None:
        mixer = _mixer()
        mixer.stop("ghost")
        assert mixer.set_voice("ghost", volume=0.5) is False
        assert mixer.voice("ghost") is None
        assert not mixer.is_playing("ghost")

    def test_one_shot_finishes_and_is_removed(self) -> None:
        mixer = _mixer()
        mixer.play("x", _dc(0.5, 30))
        block = mixer.render(50)
        assert np.allclose(block[:30], 0.5)
        assert np.allclose(block[30:], 0.0)
        assert "x" not in mixer

    def test_loop_wraps(self) -> None:
        mixer = _mixer()
        mixer.play("x", _dc(0.25, 30), loop=True)
        assert np.allclose(mixer.render(100), 0.25)
        assert mixer.is_playing("x")

    def test_silent_loop_advances_without_resampling(self, monkeypatch: pytest.MonkeyPatch) -> None:
        mixer = _mixer()
        ramp = _ramp(100)
        voice = mixer.play("x", ramp, 0.0, pitch=1.5, loop=True)
        assert voice is not None

        def _fail(self: Voice, frames: int) -> None:
            raise AssertionError("silent voice was resampled")

        with monkeypatch.context() as patch:
            patch.setattr(Voice, "render", _fail)
            assert np.allclose(mixer.render(80), 0.0)
        assert voice.position == pytest.approx(20.0)  # 120 % 100

        mixer.set_voice("x", volume=1.0)
        assert mixer.render(1)[0] == pytest.approx(ramp.samples[20])

    def test_muted_category_still_finishes_one_shots(self) -> None:
        mixer = _mixer()
        mixer.set_volume("sfx", 0.0)
        mixer.play("x", _dc(0.5, 30))
        assert np.allclose(mixer.render(50), 0.0)
        assert "x" not in mixer

    def test_stop_all(self) -> None:
        mixer = _mixer()
        mixer.play("a", _dc(0.1, 100), loop=True)
        mixer.play("b", _dc(0.1, 100))
        mixer.stop_all()
        assert len(mixer) == 0
        assert np.allclose(mixer.render(10), 0.0)


class TestClamping:
    def test_volume_clamped(self) -> None:
        mixer = _mixer()
        voice = mixer.play("x", _dc(0.5, 100), volume=3.0)
        assert voice is not None and voice.volume == 1.0
        mixer.set_voice("x", volume=-2.0)
        assert voice.volume == 0.0

    def test_pitch_clamped(self) -> None:
        mixer = Mixer(sample_rate=SR, min_pitch=0.5, max_pitch=2.0)
        voice = mixer.play("x", _dc(0.5, 100), pitch=10.0)
        assert voice is not None and voice.pitch == 2.0
        mixer.set_voice("x", pitch=0.0)
        assert voice.pitch == 0.5

    def test_output_clipped(self) -> None:
        mixer = _mixer()
        for key in "abc":
            mixer.play(key, _dc(0.9, 100))
        assert mixer.render(10).max() <= 1.0


class TestPitch:
    def test_double_pitch_halves_duration(self) -> None:
        mixer = _mixer()
        mixer.play("x", _ramp(100), pitch=2.0)
        block = mixer.render(100)
        assert np.count_nonzero(block[1:]) == pytest.approx(49, abs=1)
        assert block[10] == pytest.approx(20 / 99, abs=1e-4)

    def test_half_pitch_interpolates(self) -> None:
        mixer = _mixer()
        mixer.play("x", _ramp(101), pitch=0.5)
        block = mixer.render(5)
        assert np.allclose(block, np.arange(5) * 0.5 / 100, atol=1e-5)

    def test_buffer_sample_rate_is_respected(self) -> None:
        mixer = _mixer()
        mixer.play("x", _dc(0.5, 200, sr=SR * 2))
        block = mixer.render(150)
        assert np.count_nonzero(block) == 100


class TestCategories:
    def test_category_volume_applies_at_mix_time(self) -> None:
        mixer = _mixer()
        mixer.play("m", _dc(0.5, 1000), category="music", loop=True)
        mixer.play("s", _dc(0.5, 1000), category="sfx", loop=True)
        assert np.allclose(mixer.render(10), 1.0)
        mixer.set_volume("music", 0.0)
        assert np.allclose(mixer.render(10), 0.5)
        mixer.set_volume("sfx", 0.5)
        assert np.allclose(mixer.render(10), 0.25)
        assert mixer.get_volume("sfx") == 0.5

    def test_category_volume_clamped(self) -> None:
        mixer = _mixer()
        mixer.set_volume("slide", 4.0)
        assert mixer.get_volume("slide") == 1.0
        mixer.set_volume("slide", -1.0)
        assert mixer.get_volume("slide") == 0.0

    def test_default_volumes(self) -> None:
        mixer = Mixer()
        assert mixer.get_volume("music") == pytest.approx(0.45)
        assert mixer.get_volume("footsteps") == pytest.approx(0.28)
