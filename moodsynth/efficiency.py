"""Efficiency-driven crossfade between jazz arpeggios and mechanical percussion.

Low efficiency plays swung arpeggios over a jazz progression; as efficiency
rises the arpeggios fade out, a 16-step kick/snare/hihat pattern fades in and
the tempo climbs from 75 to 110 BPM.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from types import MappingProxyType

import numpy as np

from .audio import SoundBuffer
from .mapper import SmoothedValue
from .mixer import Mixer
from .scheduler import BeatScheduler
from .sounds import PercussionKind, SoundLibrary, note, percussion

_LOGGER = logging.getLogger("moodsynth.efficiency")

BASE_BPM = 75.0
MECHANICAL_BPM = 110.0
ACTIVE_THRESHOLD = 0.05
STEPS = 16

JAZZ_CHORDS: tuple[tuple[float, float, float, float], ...] = (
    (146.83, 174.61, 220.00, 261.63),  # Dm7
    (196.00, 246.94, 293.66, 349.23),  # G7
    (130.81, 164.81, 196.00, 246.94),  # Cmaj7
    (110.00, 130.81, 164.81, 196.00),  # Am7
    (174.61, 220.00, 261.63, 329.63),  # Fmaj7
    (123.47, 146.83, 174.61, 220.00),  # Bm7b5
    (164.81, 207.65, 246.94, 311.13),  # E7
)

# chord-tone indices
ARPEGGIO_PATTERNS: tuple[tuple[int, ...], ...] = (
    (0, 1, 2, 3, 2, 1),
    (0, 2, 1, 3, 2, 0),
    (3, 2, 1, 0, 1, 2),
    (0, 1, 3, 2, 0, 1),
    (2, 0, 3, 1, 2, 3),
)

NOTE_FREQUENCIES: tuple[float, ...] = (
    110.0, 123.47, 130.81, 146.83, 164.81, 174.61,
    196.0, 207.65, 220.0, 246.94, 261.63, 293.66,
    311.13, 329.63, 349.23, 392.0, 440.0, 493.88,
    523.25, 587.33, 659.25, 698.46, 783.99,
)

# (duration seconds, baked volume)
PERCUSSION: Mapping[PercussionKind, tuple[float, float]] = MappingProxyType(
    {
        "kick": (1.0, 0.5),
        "snare": (0.2, 0.35),
        "hihat": (0.3, 0.4),
        "click": (0.08, 0.25),
    }
)


def nearest_note(freq: float) -> float:
    return min(NOTE_FREQUENCIES, key=lambda candidate: abs(freq - candidate))


def step_hits(step: int, efficiency: float) -> list[tuple[PercussionKind, float]]:
    """Percussion hits (kind, relative volume) for one 16th-note step."""
    hits: list[tuple[PercussionKind, float]] = []
    if step in (0, 8):
        hits.append(("kick", 1.0))
    if step in (4, 12):
        hits.append(("snare", 0.8))
    hits.append(("hihat", 0.5))
    if efficiency > 0.7 and step % 4 == 2:
        hits.append(("click", 0.4))
    return hits


class EfficiencyMusic:
    def __init__(
        self,
        mixer: Mixer,
        library: SoundLibrary,
        *,
        rng: np.random.Generator | None = None,
        master_volume: float = 0.25,
        smoothing_rate: float = 2.0,
        prefix: str = "ledger",
    ) -> None:
        self._mixer = mixer
        self._library = library
        self._rng = rng if rng is not None else library.rng
        self._prefix = prefix
        self._smoothing_rate = smoothing_rate
        self.master_volume = max(0.0, min(1.0, master_volume))
        self.initialized = False
        self._init_state()

    def _init_state(self) -> None:
        self._efficiency = SmoothedValue(0.0, self._smoothing_rate, 0.0, 1.0)
        self.nature_volume = 1.0
        self.mech_volume = 0.0
        self.bpm = BASE_BPM
        self.chord_index = 0
        self.pattern: list[float] = []
        self.arpeggio_index = 0
        self._note_timer = 0.0
        self._notes: dict[float, SoundBuffer] = {}
        self._percussion: dict[PercussionKind, SoundBuffer] = {}
        # sixteenth notes: four steps per beat
        self.sequencer = BeatScheduler(
            BASE_BPM * 4,
            smoothing_rate=1.0,
            min_bpm=1.0,
            max_bpm=MECHANICAL_BPM * 4,
            subdivisions=STEPS,
            accents=(1.0,),
            jitter=0.0,
            rng=self._rng,
        )

    @property
    def efficiency(self) -> float:
        return self._efficiency.current

    def init(self) -> None:
        """Pre-synthesize the note and percussion pools."""
        if self.initialized:
            return
        sr = self._library.sample_rate
        for freq in NOTE_FREQUENCIES:
            self._notes[freq] = self._library.memo(("note", freq, sr), lambda f=freq: note(f, sr=sr))
        for kind, (duration, volume) in PERCUSSION.items():
            self._percussion[kind] = self._library.memo(
                ("perc", kind, sr),
                lambda k=kind, d=duration, v=volume: percussion(k, d, v, rng=self._rng, sr=sr),
            )
        self.generate_arpeggio()
        self.initialized = True
        _LOGGER.debug("Efficiency music ready (%d notes)", len(self._notes))

    def generate_arpeggio(self) -> list[float]:
        chord = JAZZ_CHORDS[self.chord_index]
        shape = ARPEGGIO_PATTERNS[int(self._rng.integers(len(ARPEGGIO_PATTERNS)))]
        pattern: list[float] = []
        for index in shape:
            freq = chord[index]
            if self._rng.random() < 0.3:
                freq *= 2.0
            elif self._rng.random() < 0.2:
                freq *= 0.5
            pattern.append(freq)
        self.pattern = pattern
        return pattern

    def play_note(self, freq: float, volume: float) -> None:
        closest = nearest_note(freq)
        buffer = self._notes.get(closest)
        if buffer is None:
            return
        self._mixer.play(
            f"{self._prefix}:note:{closest}",
            buffer,
            volume * self.master_volume,
            freq / closest,
            category="music",
        )

    def play_percussion(self, kind: PercussionKind, volume: float) -> None:
        buffer = self._percussion.get(kind)
        if buffer is None:
            return
        self._mixer.play(f"{self._prefix}:perc:{kind}", buffer, volume * self.master_volume, category="music")

    def _note_interval(self, beat: float) -> float:
        # swing: long-short alternation over triplets
        swing = 1.2 if self.arpeggio_index % 2 == 1 else 0.8
        return beat / 3.0 * swing

    def _advance_arpeggio(self) -> None:
        if self.arpeggio_index < len(self.pattern):
            velocity = 0.5 + float(self._rng.random()) * 0.3
            self.play_note(self.pattern[self.arpeggio_index], velocity * self.nature_volume)
        self.arpeggio_index += 1
        if self.arpeggio_index >= len(self.pattern):
            self.arpeggio_index = 0
            if self._rng.random() < 0.4:
                self.chord_index = (self.chord_index + 1) % len(JAZZ_CHORDS)
                self.generate_arpeggio()

    def update(self, dt: float, efficiency: float) -> None:
        if not self.initialized or dt <= 0:
            return
        self._efficiency.set_target(efficiency)
        e = self._efficiency.step(dt)
        self.nature_volume = max(0.0, 1.0 - e * 2.0)
        self.mech_volume = max(0.0, (e - 0.3) * 2.0)
        self.bpm = BASE_BPM + (MECHANICAL_BPM - BASE_BPM) * e
        beat = 60.0 / self.bpm

        if self.nature_volume > ACTIVE_THRESHOLD:
            self._note_timer += dt
            interval = self._note_interval(beat)
            while self._note_timer >= interval:
                self._note_timer -= interval
                self._advance_arpeggio()
                interval = self._note_interval(beat)

        if self.mech_volume > ACTIVE_THRESHOLD:
            self.sequencer.set_bpm(self.bpm * 4)
            for event in self.sequencer.tick(dt):
                for kind, gain in step_hits(event.subdivision, e):
                    self.play_percussion(kind, self.mech_volume * gain)

    def set_master_volume(self, volume: float) -> None:
        self.master_volume = max(0.0, min(1.0, volume))

    def get_master_volume(self) -> float:
        return self.master_volume

    def stop(self) -> None:
        for freq in NOTE_FREQUENCIES:
            self._mixer.stop(f"{self._prefix}:note:{freq}")
        for kind in PERCUSSION:
            self._mixer.stop(f"{self._prefix}:perc:{kind}")

    def reset(self) -> None:
        self.stop()
        self.initialized = False
        self._init_state()
