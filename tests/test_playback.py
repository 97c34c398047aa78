"""Tests for the metronome, clocks and the command-line entry point."""

from conftest import FakeClock

from rhythmtap.__main__ import main
from rhythmtap.playback import Metronome
from rhythmtap.scheduler import Scheduler


def test_metronome_ticks_through_the_bar():
    m = Metronome(bpm=120, beats_per_bar=3)
    assert m.beat_ms == 500
    assert [m.tick() for _ in range(4)] == [(0, True), (1, False), (2, False), (0, True)]


def test_metronome_runs_on_scheduler():
    clock = FakeClock(0)
    sched = Scheduler(clock)
    beats = []
    m = Metronome(bpm=120)
    m.start(sched, "g:metronome", lambda beat, down: beats.append(beat))
    assert m.running

    sched.run_pending()
    clock.advance(1000)
    sched.run_pending()
    assert beats == [0, 1, 2]

    m.stop()
    assert not m.running
    clock.advance(1000)
    sched.run_pending()
    assert beats == [0, 1, 2]


def test_cli_reports_unreadable_pattern_file(tmp_path):
    assert main(["--pattern-file", str(tmp_path / "missing.json")]) == 1


def test_monotonic_clock_never_goes_backwards():
    from rhythmtap.clock import Clock, MonotonicClock

    clock = MonotonicClock()
    first = clock.now_ms()
    assert first >= 0
    assert clock.now_ms() >= first
    assert isinstance(clock, Clock)


def test_metronome_clamps_beats_per_bar():
    m = Metronome(bpm=120, beats_per_bar=4)
    m.beats_per_bar = 0
    assert m.beats_per_bar == 1
    assert m.tick() == (0, True)
