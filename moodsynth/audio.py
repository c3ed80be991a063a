from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import numpy as np
import soundfile as sf  # type: ignore[import]
from numpy.typing import NDArray

from .errors import InvalidConfigError

FloatArray = NDArray[np.float32]

SAMPLE_RATE = 44_100


def clip_mono(samples: NDArray[np.floating[Any]] | FloatArray) -> FloatArray:
    """Flatten to mono float32 and hard-clip to [-1, 1]."""
    return np.clip(np.asarray(samples, dtype=np.float32).reshape(-1), -1.0, 1.0)


@dataclass(frozen=True, eq=False)
class SoundBuffer:
    """Immutable block of mono samples produced by the synthesis engine.

    Samples are clipped to [-1, 1] and the backing array is marked read-only,
    so a buffer can be shared by every voice that references it.
    """

    samples: FloatArray
    sample_rate: int = SAMPLE_RATE
    label: str = field(default="", compare=False)

    def __post_init__(self) -> None:
        data = clip_mono(self.samples)
        data.setflags(write=False)
        object.__setattr__(self, "samples", data)
        if self.sample_rate <= 0:
            raise InvalidConfigError(f"sample_rate must be positive, got {self.sample_rate}")

    @classmethod
    def empty(cls, sample_rate: int = SAMPLE_RATE, label: str = "") -> "SoundBuffer":
        return cls(np.zeros(0, dtype=np.float32), sample_rate, label)

    def __len__(self) -> int:
        return int(self.samples.size)

    @property
    def duration(self) -> float:
        return len(self) / self.sample_rate

    @property
    def is_empty(self) -> bool:
        return self.samples.size == 0

    @property
    def peak(self) -> float:
        if self.is_empty:
            return 0.0
        return float(np.max(np.abs(self.samples)))


def write_wav(
    path: str | Path,
    audio: SoundBuffer | NDArray[np.floating[Any]],
    *,
    sample_rate: int = SAMPLE_RATE,
) -> Path:
    """Write a buffer (at its own rate) or a raw array (at ``sample_rate``) to a wav file."""
    target = Path(path)
    match audio:
        case SoundBuffer(samples=samples, sample_rate=rate):
            pass
        case np.ndarray():
            samples, rate = clip_mono(audio), sample_rate
        case _:
            raise InvalidConfigError(f"Cannot write {type(audio).__name__} as audio")
    sf.write(target, samples, rate)
    return target
