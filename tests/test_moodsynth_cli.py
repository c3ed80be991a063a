from pathlib import Path

import pytest
import soundfile as sf

from moodsynth.cli import SCENES, build_parser, main


@pytest.fixture(autouse=True)
def _log_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MOODSYNTH_LOG_DIR", str(tmp_path / "logs"))


def test_list_prints_catalog(capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["list"]) == 0
    out = capsys.readouterr().out
    assert "footstep1" in out
    assert "drumroll" in out


def test_render_writes_wav(tmp_path: Path) -> None:
    target = tmp_path / "blip.wav"
    assert main(["render", "blip", "--output", str(target), "--seed", "1"]) == 0
    info = sf.info(target)
    assert info.samplerate == 44_100
    assert info.frames == int(44_100 * 0.08)


def test_render_unknown_sound_fails(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["render", "kazoo", "--output", str(tmp_path / "x.wav")]) == 1
    assert "kazoo" in capsys.readouterr().out
    assert not (tmp_path / "x.wav").exists()
    assert (tmp_path / "logs" / "moodsynth.log").exists()


@pytest.mark.parametrize("scene", ["hold", "ledger", "fog"])
def test_demo_renders_scene(tmp_path: Path, scene: str) -> None:
    target = tmp_path / f"{scene}.wav"
    assert main(["demo", "--scene", scene, "--duration", "0.5", "--output", str(target), "--seed", "2"]) == 0
    info = sf.info(target)
    assert abs(info.frames - 22_050) <= 1


def test_demo_rejects_unknown_scene() -> None:
    with pytest.raises(SystemExit):
        build_parser().parse_args(["demo", "--scene", "nowhere"])
    assert set(SCENES) == {"fog", "calm", "tense", "hold", "ledger"}


def test_doctor(capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["doctor"]) == 0
    out = capsys.readouterr().out
    assert "Log file" in out
    assert "sounddevice" in out
