from __future__ import annotations

import argparse
import logging
import math
import os
from collections.abc import Callable, Mapping
from types import MappingProxyType

import numpy as np
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .audio import SAMPLE_RATE, SoundBuffer, write_wav
from .config import EngineSettings
from .engine import AudioEngine, FrameStep
from .errors import PlaybackError
from .logging_utils import configure_logging, get_log_path, log_exception
from .playback import resolve_backend
from .sounds import SOUND_LIBRARY, SoundLibrary

_LOGGER = logging.getLogger("moodsynth.cli")
_CONSOLE = Console()


# -----------------------------------------------------------------------------
# Demo scenes: each returns a per-frame step that feeds fake gameplay state.
# -----------------------------------------------------------------------------


def _ambient_scene(style: str) -> Callable[[AudioEngine, float], FrameStep]:
    def setup(engine: AudioEngine, duration: float) -> FrameStep:
        engine.start(style)
        engine.slide.start()

        def step(eng: AudioEngine, t: float, dt: float) -> None:
            progress = t / duration if duration > 0 else 0.0
            eng.music.modulate(progress)
            # walk for a while, pause, walk again
            moving = (t % 4.0) < 3.0
            eng.footsteps.update(dt, moving, 0.6 + 0.4 * progress)
            speed = 80.0 * max(0.0, math.sin(t * 0.8))
            eng.slide.update(dt, speed, 80.0, 40.0, 350.0 - 250.0 * progress)
            if duration - t <= 2.0 and not eng.music.fading:
                eng.music.fade_out(2.0)

        return step

    return setup


def _hold_scene(engine: AudioEngine, duration: float) -> FrameStep:
    engine.slide.start()
    moods = ("guarded", "attuning", "open", "withdrawn")

    def step(eng: AudioEngine, t: float, dt: float) -> None:
        progress = t / duration if duration > 0 else 0.0
        mood = moods[min(len(moods) - 1, int(progress * len(moods)))]
        eng.heartbeat.update(dt, mood, progress)
        eng.slide.update(dt, 30.0 + 30.0 * math.sin(t), 60.0, 25.0, 120.0)

    return step


def _ledger_scene(engine: AudioEngine, duration: float) -> FrameStep:
    engine.efficiency.init()

    def step(eng: AudioEngine, t: float, dt: float) -> None:
        efficiency = t / duration if duration > 0 else 0.0
        eng.efficiency.update(dt, efficiency)

    return step


SCENES: Mapping[str, Callable[[AudioEngine, float], FrameStep]] = MappingProxyType(
    {
        "fog": _ambient_scene("fog"),
        "calm": _ambient_scene("calm"),
        "tense": _ambient_scene("tense"),
        "hold": _hold_scene,
        "ledger": _ledger_scene,
    }
)


def render_error(context: str, exc: BaseException) -> None:
    _CONSOLE.print(Panel(f"{type(exc).__name__}: {exc}", title=f"{context} failed", style="red"))


def _play_now(buffer: SoundBuffer) -> None:
    backend = resolve_backend("sounddevice", sample_rate=buffer.sample_rate)
    try:
        backend.write(buffer.samples)
    finally:
        backend.close()


def _doctor_lines() -> list[str]:
    try:
        import sounddevice  # type: ignore[import]  # noqa: F401

        device = "installed"
    except (ImportError, OSError) as exc:
        _LOGGER.info("sounddevice unavailable: %s", exc)
        device = f"unavailable ({type(exc).__name__})"
    return [
        f"Sample rate: {SAMPLE_RATE}",
        f"Named sounds: {len(SOUND_LIBRARY)}",
        f"sounddevice: {device}",
        f"Log file: {get_log_path()}",
        "Hints:",
        "- Install playback support with `pip install moodsynth[playback]`.",
        "- Set MOODSYNTH_DEBUG=1 for verbose console logs.",
    ]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="moodsynth")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("list", help="List the named sounds.")

    render = sub.add_parser("render", help="Synthesize one named sound to a wav file.")
    render.add_argument("name", type=str)
    render.add_argument("--output", type=str, default=None)
    render.add_argument("--seed", type=int, default=None)

    demo = sub.add_parser("demo", help="Simulate a scene offline and write the mix.")
    demo.add_argument("--scene", choices=sorted(SCENES), default="fog")
    demo.add_argument("--duration", type=float, default=8.0)
    demo.add_argument("--output", type=str, default="demo.wav")
    demo.add_argument("--seed", type=int, default=None)
    demo.add_argument("--play", action="store_true", help="Also play the result on the audio device.")

    sub.add_parser("doctor", help="Check playback support and log paths.")
    return parser


def main(argv: list[str] | None = None) -> int:
    configure_logging()
    try:
        parser = build_parser()
        args = parser.parse_args(argv)

        if args.command == "list":
            table = Table(title="moodsynth sounds")
            table.add_column("name")
            table.add_column("category")
            table.add_column("loop")
            for name, sound in SOUND_LIBRARY.items():
                table.add_row(name, sound.category, "yes" if sound.loop else "")
            _CONSOLE.print(table)
            return 0

        if args.command == "render":
            library = SoundLibrary(np.random.default_rng(args.seed))
            buffer = library.build(args.name)
            path = write_wav(args.output or f"{args.name}.wav", buffer)
            _CONSOLE.print(f"Wrote {args.name} to {path} ({buffer.duration:.2f}s, sr={buffer.sample_rate})")
            return 0

        if args.command == "demo":
            engine = AudioEngine(EngineSettings(seed=args.seed))
            engine.init()
            step = SCENES[args.scene](engine, args.duration)
            with _CONSOLE.status(f"Rendering {args.scene} scene"):
                buffer = engine.render_offline(args.duration, step=step)
            engine.reset()
            path = write_wav(args.output, buffer)
            _CONSOLE.print(f"Wrote {args.scene} demo to {path} ({buffer.duration:.2f}s, peak={buffer.peak:.2f})")
            if args.play:
                try:
                    _play_now(buffer)
                except PlaybackError as exc:
                    _LOGGER.warning("Playback failed: %s", exc)
                    render_error("playback", exc)
                    return 1
            return 0

        if args.command == "doctor":
            for line in _doctor_lines():
                _CONSOLE.print(line)
            return 0

        parser.print_help()
        return 1
    except Exception as exc:
        debug = bool(os.environ.get("MOODSYNTH_DEBUG"))
        _LOGGER.warning("moodsynth CLI failed: %s", exc, exc_info=debug)
        log_exception("moodsynth CLI", exc)
        render_error("moodsynth CLI", exc)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
