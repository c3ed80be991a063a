"""Continuous tempo -> discrete beat events.

The scheduler keeps a smoothed BPM, accumulates frame time and fires one
:class:`BeatEvent` per elapsed beat interval. Overshoot is carried into the
next interval.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Generic, TypeVar

import numpy as np

from .mapper import SmoothedValue

_LOGGER = logging.getLogger("moodsynth.scheduler")

# strong on 0, medium on 2, light otherwise
DEFAULT_ACCENTS: tuple[float, ...] = (1.0, 0.55, 0.75, 0.55)

T = TypeVar("T")


@dataclass(frozen=True)
class SchedulerState:
    beat_interval: float
    elapsed_since_beat: float
    subdivision_index: int


@dataclass(frozen=True)
class BeatEvent:
    subdivision: int
    accent: float
    volume: float
    # how far past the beat boundary the tick ended, in seconds
    lateness: float


class BeatScheduler:
    def __init__(
        self,
        bpm: float,
        *,
        smoothing_rate: float = 0.8,
        min_bpm: float = 20.0,
        max_bpm: float = 300.0,
        subdivisions: int = 4,
        accents: Sequence[float] = DEFAULT_ACCENTS,
        jitter: float = 0.1,
        rng: np.random.Generator | None = None,
    ) -> None:
        self._bpm = SmoothedValue(bpm, smoothing_rate, max(min_bpm, 1e-3), max_bpm)
        self.subdivisions = max(1, int(subdivisions))
        self.accents = tuple(accents) or (1.0,)
        self.jitter = max(0.0, jitter)
        self._rng = rng if rng is not None else np.random.default_rng()
        self._elapsed = 0.0
        self._index = 0
        self.beats_fired = 0

    @property
    def bpm(self) -> float:
        return self._bpm.current

    @property
    def target_bpm(self) -> float:
        return self._bpm.target

    @property
    def beat_interval(self) -> float:
        return 60.0 / self._bpm.current

    @property
    def subdivision_index(self) -> int:
        return self._index

    @property
    def elapsed(self) -> float:
        return self._elapsed

    def state(self) -> SchedulerState:
        return SchedulerState(self.beat_interval, self._elapsed, self._index)

    def set_target(self, bpm: float) -> None:
        self._bpm.set_target(bpm)

    def set_bpm(self, bpm: float) -> None:
        """Jump to ``bpm`` with no smoothing."""
        self._bpm.snap(bpm)

    def reset(self) -> None:
        self._elapsed = 0.0
        self._index = 0
        self.beats_fired = 0

    def tick(self, dt: float) -> list[BeatEvent]:
        """Advance by ``dt`` seconds and return the beats that became due."""
        if dt <= 0:
            return []
        self._bpm.step(dt)
        interval = self.beat_interval
        self._elapsed += dt
        events: list[BeatEvent] = []
        while self._elapsed >= interval:
            self._elapsed -= interval
            slot = self._index
            self._index = (self._index + 1) % self.subdivisions
            accent = self.accents[slot % len(self.accents)]
            humanize = 1.0 + float(self._rng.uniform(-self.jitter, self.jitter)) if self.jitter else 1.0
            events.append(
                BeatEvent(
                    subdivision=slot,
                    accent=accent,
                    volume=min(1.0, max(0.0, accent * humanize)),
                    lateness=self._elapsed,
                )
            )
        self.beats_fired += len(events)
        if len(events) > 1:
            _LOGGER.debug("Frame of %.3fs fired %d beats", dt, len(events))
        return events


class ChordSet(Generic[T]):
    """Warm and cold progressions, each advanced round-robin.

    The cursor is shared, so switching between warm and cold keeps moving
    forward instead of restarting either progression.
    """

    def __init__(self, warm: Sequence[T], cold: Sequence[T], *, threshold: float = 0.5) -> None:
        if not warm or not cold:
            raise ValueError("ChordSet needs at least one warm and one cold chord")
        self.warm = tuple(warm)
        self.cold = tuple(cold)
        self.threshold = threshold
        self._cursor = 0

    def bucket(self, warmth: float) -> tuple[T, ...]:
        return self.warm if warmth > self.threshold else self.cold

    def advance(self, warmth: float) -> T:
        chords = self.bucket(warmth)
        self._cursor = (self._cursor + 1) % len(chords)
        return chords[self._cursor]

    def reset(self) -> None:
        self._cursor = 0


class TimbreCache(Generic[T]):
    """Holds one synthesized value and rebuilds it only on significant drift.

    A rebuild happens when nothing is cached yet or when ``param`` has moved more
    than ``threshold`` from the value used for the last build.
    """

    def __init__(self, threshold: float = 0.1) -> None:
        self.threshold = threshold
        self._value: T | None = None
        self._param: float | None = None
        self.rebuilds = 0

    @property
    def param(self) -> float | None:
        return self._param

    def needs_rebuild(self, param: float) -> bool:
        return self._value is None or self._param is None or abs(param - self._param) > self.threshold

    def get(self, param: float, build: Callable[[float], T]) -> T:
        if self._value is None or self.needs_rebuild(param):
            self._value = build(param)
            self._param = param
            self.rebuilds += 1
            _LOGGER.debug("Timbre rebuilt at %.3f", param)
        return self._value

    def clear(self) -> None:
        self._value = None
        self._param = None
