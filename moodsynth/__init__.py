from __future__ import annotations

from .audio import SAMPLE_RATE, SoundBuffer, write_wav
from .config import (
    EngineSettings,
    EnvelopeSpec,
    Harmonic,
    OscillatorSpec,
    SlideTuning,
    SlideVoiceTuning,
    SmoothingSettings,
    VolumeCategory,
    VolumeSettings,
    WaveformKind,
)
from .efficiency import EfficiencyMusic
from .engine import AudioEngine
from .errors import InvalidConfigError, MoodSynthError, PlaybackError, UnknownSoundError
from .heartbeat import HeartbeatMusic, Mood
from .logging_utils import configure_logging as _configure_logging
from .mapper import ParameterMapper, SmoothedValue, distance_falloff, safe_ratio, smooth_toward
from .mixer import Mixer, Voice
from .music import MusicLayerManager, MusicStyle
from .playback import PlaybackBackend, resolve_backend
from .scheduler import BeatEvent, BeatScheduler, ChordSet, SchedulerState, TimbreCache
from .sfx import Footsteps, SlideSfx
from .sounds import SOUND_NAMES, SoundLibrary, SoundName
from .synth import generate_waveform, synthesize

__version__ = "0.1.0"

__all__ = [
    "SAMPLE_RATE",
    "SOUND_NAMES",
    "AudioEngine",
    "BeatEvent",
    "BeatScheduler",
    "ChordSet",
    "EfficiencyMusic",
    "EngineSettings",
    "EnvelopeSpec",
    "Footsteps",
    "Harmonic",
    "HeartbeatMusic",
    "InvalidConfigError",
    "Mixer",
    "Mood",
    "MoodSynthError",
    "MusicLayerManager",
    "MusicStyle",
    "OscillatorSpec",
    "ParameterMapper",
    "PlaybackBackend",
    "PlaybackError",
    "SchedulerState",
    "SlideSfx",
    "SlideTuning",
    "SlideVoiceTuning",
    "SmoothedValue",
    "SmoothingSettings",
    "SoundBuffer",
    "SoundLibrary",
    "SoundName",
    "TimbreCache",
    "UnknownSoundError",
    "Voice",
    "VolumeCategory",
    "VolumeSettings",
    "WaveformKind",
    "__version__",
    "distance_falloff",
    "generate_waveform",
    "resolve_backend",
    "safe_ratio",
    "smooth_toward",
    "synthesize",
    "write_wav",
]

_configure_logging()
