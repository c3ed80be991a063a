from __future__ import annotations

import logging
from typing import Any, Callable, Literal

import numpy as np
from pydantic import BaseModel, ConfigDict

from .audio import FloatArray, clip_mono
from .errors import PlaybackError

_LOGGER = logging.getLogger("moodsynth.playback")

BackendKind = Literal["auto", "sounddevice", "capture", "null"]


class PlaybackBackend(BaseModel):
    """Sink for mixed output blocks."""

    name: str
    write: Callable[[FloatArray], None]
    close: Callable[[], None]

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        arbitrary_types_allowed=True,
    )


def _noop_close() -> None:
    return None


def null_backend() -> PlaybackBackend:
    """Discards everything; used headless and after a device failure."""

    def _write(block: FloatArray) -> None:
        return None

    return PlaybackBackend(name="null", write=_write, close=_noop_close)


class CaptureSink:
    """Keeps every written block so offline renders can be saved or inspected."""

    def __init__(self) -> None:
        self._blocks: list[FloatArray] = []

    def write(self, block: FloatArray) -> None:
        self._blocks.append(np.array(block, dtype=np.float32, copy=True))

    def samples(self) -> FloatArray:
        if not self._blocks:
            return np.zeros(0, dtype=np.float32)
        return np.concatenate(self._blocks)

    def clear(self) -> None:
        self._blocks.clear()

    def __len__(self) -> int:
        return sum(int(block.size) for block in self._blocks)


def capture_backend(sink: CaptureSink | None = None) -> tuple[PlaybackBackend, CaptureSink]:
    target = sink if sink is not None else CaptureSink()
    return PlaybackBackend(name="capture", write=target.write, close=_noop_close), target


def _load_sounddevice(sample_rate: int) -> PlaybackBackend | None:
    try:
        import sounddevice as sd_module  # type: ignore[import]
    except (ImportError, OSError) as exc:
        # OSError: the module imports but PortAudio itself is missing
        _LOGGER.info("sounddevice not available: %s", exc, exc_info=True)
        return None
    sd: Any = sd_module

    try:
        stream = sd.OutputStream(samplerate=sample_rate, channels=1, dtype="float32")
        stream.start()
    except Exception as exc:
        _LOGGER.info("Could not open an output stream: %s", exc, exc_info=True)
        return None

    def _write(block: FloatArray) -> None:
        if block.size == 0:
            return
        normalized = clip_mono(block)
        try:
            stream.write(normalized.reshape(-1, 1))
        except Exception as exc:
            raise PlaybackError(f"Audio device write failed: {exc}") from exc

    def _close() -> None:
        try:
            stream.stop()
        finally:
            stream.close()

    return PlaybackBackend(name="sounddevice", write=_write, close=_close)


def resolve_backend(kind: BackendKind = "auto", *, sample_rate: int) -> PlaybackBackend:
    """Pick an output backend.

    ``auto`` tries the audio device and falls back to the null backend;
    asking for ``sounddevice`` explicitly raises when no device can be opened.
    """
    match kind:
        case "null":
            return null_backend()
        case "capture":
            backend, _ = capture_backend()
            return backend
        case "sounddevice":
            backend = _load_sounddevice(sample_rate)
            if backend is None:
                raise PlaybackError(
                    "Playback requires sounddevice and a working audio device. "
                    "Install it with `pip install moodsynth[playback]` or render to a file."
                )
            return backend
        case "auto":
            device = _load_sounddevice(sample_rate)
            if device is None:
                _LOGGER.info("No audio device; continuing with the null backend.")
                return null_backend()
            return device
        case _:
            raise PlaybackError(f"Unknown playback backend: {kind!r}")
