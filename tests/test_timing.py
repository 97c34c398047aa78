"""Tests for note durations and expected onset times."""

import pytest

from rhythmtap.models import Note, NoteType, Pattern
from rhythmtap.timing import (
    beat_interval_ms,
    compute_expected_times,
    note_duration,
    pattern_end_time,
    total_beats,
)


def _pattern(*types, **flags):
    return Pattern(notes=tuple(Note(t, **flags) for t in types))


def test_beat_interval():
    assert beat_interval_ms(120) == 500.0
    assert beat_interval_ms(60) == 1000.0


@pytest.mark.parametrize("bpm", [0, -30, float("nan"), float("inf")])
def test_invalid_tempo_falls_back_to_default(bpm):
    assert beat_interval_ms(bpm) == 600.0  # DEFAULT_BPM = 100


def test_note_durations():
    assert note_duration(Note(NoteType.WHOLE), 500) == 2000
    assert note_duration(Note(NoteType.HALF), 500) == 1000
    assert note_duration(Note(NoteType.QUARTER), 500) == 500
    assert note_duration(Note(NoteType.EIGHTH), 500) == 250
    assert note_duration(Note(NoteType.SIXTEENTH), 500) == 125


def test_dotted_note_is_one_and_a_half():
    assert note_duration(Note(NoteType.QUARTER, dotted=True), 500) == 750


def test_unknown_type_uses_quarter_duration():
    assert note_duration(Note("triplet"), 500) == 500


def test_expected_times_at_120_bpm():
    pattern = _pattern(
        NoteType.QUARTER, NoteType.QUARTER, NoteType.EIGHTH, NoteType.EIGHTH, NoteType.QUARTER
    )
    assert compute_expected_times(pattern, beat_interval_ms(120)) == (0, 500, 1000, 1250, 1500)


def test_lead_in_offsets_every_note():
    pattern = _pattern(NoteType.QUARTER, NoteType.QUARTER)
    assert compute_expected_times(pattern, 500, lead_in_ms=300) == (300, 800)


def test_empty_pattern_gives_empty_table():
    assert compute_expected_times(Pattern(), 500) == ()
    assert pattern_end_time(Pattern(), (), 500, lead_in_ms=300) == 300


@pytest.mark.parametrize("bpm", [40, 97, 120, 180, 240])
def test_expected_times_are_monotonic_and_aligned(bpm):
    pattern = Pattern(notes=(
        Note(NoteType.HALF), Note(NoteType.SIXTEENTH, rest=True), Note(NoteType.EIGHTH, dotted=True),
        Note(NoteType.WHOLE), Note("bogus"), Note(NoteType.QUARTER, tie_to_next=True),
    ))
    times = compute_expected_times(pattern, beat_interval_ms(bpm))
    assert len(times) == len(pattern)
    assert all(a <= b for a, b in zip(times, times[1:]))


def test_pattern_end_time():
    pattern = _pattern(NoteType.QUARTER, NoteType.HALF)
    times = compute_expected_times(pattern, 500)
    assert pattern_end_time(pattern, times, 500) == 1500


def test_total_beats_need_not_fill_the_bar():
    pattern = Pattern(notes=(Note(NoteType.QUARTER), Note(NoteType.EIGHTH)), bars=1)
    assert total_beats(pattern) == 1.5
