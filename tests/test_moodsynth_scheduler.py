import numpy as np
import pytest

from moodsynth.scheduler import BeatScheduler, ChordSet, TimbreCache


def _run(scheduler: BeatScheduler, seconds: float, dt: float) -> list:
    events = []
    for _ in range(int(round(seconds / dt))):
        events.extend(scheduler.tick(dt))
    return events


class TestBeatScheduler:
    @pytest.mark.parametrize("bpm", [20.0, 55.0, 72.0, 120.0, 240.0])
    @pytest.mark.parametrize("dt", [1.0 / 30.0, 1.0 / 60.0, 1.0 / 144.0, 0.37])
    def test_beat_count_at_constant_tempo(self, bpm: float, dt: float) -> None:
        scheduler = BeatScheduler(bpm, rng=np.random.default_rng(0))
        steps = int(round(30.0 / dt))
        total = steps * dt
        fired = len(_run(scheduler, total, dt))
        assert abs(fired - total / (60.0 / bpm)) <= 1

    def test_remainder_is_carried_not_reset(self) -> None:
        scheduler = BeatScheduler(60.0, jitter=0.0)
        events = scheduler.tick(1.25)
        assert len(events) == 1
        assert scheduler.elapsed == pytest.approx(0.25)
        assert events[0].lateness == pytest.approx(0.25)
        assert len(scheduler.tick(0.75)) == 1
        assert scheduler.elapsed == pytest.approx(0.0)

    def test_elapsed_stays_below_interval_after_tick(self) -> None:
        scheduler = BeatScheduler(300.0, max_bpm=300.0, jitter=0.0)
        events = scheduler.tick(1.01)
        assert len(events) == 5
        assert scheduler.elapsed < scheduler.beat_interval

    def test_tempo_glides_toward_target(self) -> None:
        scheduler = BeatScheduler(55.0, smoothing_rate=0.8)
        scheduler.set_target(72.0)
        _run(scheduler, 3.0, 1.0 / 60.0)
        assert scheduler.bpm - 55.0 >= 0.6 * (72.0 - 55.0)
        assert scheduler.bpm <= 72.0

    def test_bpm_never_below_minimum(self) -> None:
        scheduler = BeatScheduler(60.0, min_bpm=20.0)
        scheduler.set_target(0.0)
        _run(scheduler, 20.0, 0.1)
        assert scheduler.bpm >= 20.0
        scheduler.set_bpm(-10.0)
        assert scheduler.bpm == 20.0
        assert scheduler.beat_interval == pytest.approx(3.0)

    def test_accent_pattern_cycles_over_four_subdivisions(self) -> None:
        scheduler = BeatScheduler(60.0, jitter=0.0)
        events = _run(scheduler, 8.0, 0.5)
        assert [e.subdivision for e in events] == [0, 1, 2, 3, 0, 1, 2, 3]
        accents = [e.accent for e in events[:4]]
        assert accents[0] > accents[2] > accents[1]
        assert accents[1] == accents[3]
        assert all(e.volume == e.accent for e in events)

    def test_jitter_stays_within_ten_percent(self) -> None:
        scheduler = BeatScheduler(240.0, jitter=0.1, rng=np.random.default_rng(9))
        events = _run(scheduler, 30.0, 1.0 / 60.0)
        ratios = [e.volume / e.accent for e in events]
        assert min(ratios) >= 0.9 - 1e-9
        assert max(ratios) <= 1.1 + 1e-9
        assert len(set(ratios)) > 1

    def test_jitter_is_seed_reproducible(self) -> None:
        a = _run(BeatScheduler(120.0, rng=np.random.default_rng(1)), 5.0, 1.0 / 60.0)
        b = _run(BeatScheduler(120.0, rng=np.random.default_rng(1)), 5.0, 1.0 / 60.0)
        assert [e.volume for e in a] == [e.volume for e in b]

    def test_state_snapshot_and_reset(self) -> None:
        scheduler = BeatScheduler(60.0, jitter=0.0)
        scheduler.tick(2.5)
        state = scheduler.state()
        assert state.subdivision_index == 2
        assert state.elapsed_since_beat == pytest.approx(0.5)
        assert state.beat_interval == pytest.approx(1.0)
        scheduler.reset()
        assert scheduler.state().subdivision_index == 0
        assert scheduler.beats_fired == 0

    def test_non_positive_dt_fires_nothing(self) -> None:
        scheduler = BeatScheduler(60.0)
        assert scheduler.tick(0.0) == []
        assert scheduler.tick(-1.0) == []


class TestChordSet:
    def test_round_robin_per_bucket(self) -> None:
        chords = ChordSet(["W1", "W2", "W3"], ["C1", "C2", "C3"])
        assert [chords.advance(0.9) for _ in range(4)] == ["W2", "W3", "W1", "W2"]
        assert chords.advance(0.2) == "C3"

    def test_threshold_is_strictly_above_half(self) -> None:
        chords = ChordSet(["W"], ["C"])
        assert chords.advance(0.5) == "C"
        assert chords.advance(0.51) == "W"

    def test_empty_sets_rejected(self) -> None:
        with pytest.raises(ValueError):
            ChordSet([], ["C"])


class TestTimbreCache:
    def test_rebuilds_only_past_threshold(self) -> None:
        cache: TimbreCache[str] = TimbreCache(0.1)
        builds: list[float] = []

        def build(param: float) -> str:
            builds.append(param)
            return f"timbre@{param:.2f}"

        assert cache.get(0.5, build) == "timbre@0.50"
        assert cache.get(0.55, build) == "timbre@0.50"
        assert cache.get(0.6, build) == "timbre@0.50"
        assert cache.get(0.65, build) == "timbre@0.65"
        assert builds == [0.5, 0.65]
        assert cache.rebuilds == 2

    def test_clear_forces_rebuild(self) -> None:
        cache: TimbreCache[int] = TimbreCache(0.1)
        cache.get(0.5, lambda p: 1)
        cache.clear()
        assert cache.needs_rebuild(0.5)
