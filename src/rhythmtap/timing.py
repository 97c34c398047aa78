"""Timing engine — note durations and expected onset times."""

from __future__ import annotations

import logging
import math

from rhythmtap.config import DEFAULT_BPM
from rhythmtap.models import Note, NoteType, Pattern

logger = logging.getLogger(__name__)


def normalize_bpm(bpm: float) -> float:
    """Return bpm, or DEFAULT_BPM when it is not a positive finite number."""
    if isinstance(bpm, bool) or not isinstance(bpm, (int, float)) or not math.isfinite(bpm) or bpm <= 0:
        logger.warning("Invalid tempo %r, falling back to %s BPM", bpm, DEFAULT_BPM)
        return float(DEFAULT_BPM)
    return float(bpm)


def beat_interval_ms(bpm: float) -> float:
    """Milliseconds per beat (60000 / BPM)."""
    return 60000.0 / normalize_bpm(bpm)


def type_duration(note_type: NoteType | str, beat_ms: float) -> float:
    """Undotted duration of a note type. Unknown types count as a quarter."""
    try:
        kind = NoteType(note_type)
    except ValueError:
        logger.warning("Unknown note type %r, using quarter-note duration", note_type)
        kind = NoteType.QUARTER
    return beat_ms * kind.beats


def note_duration(note: Note, beat_ms: float) -> float:
    duration = type_duration(note.type, beat_ms)
    if note.dotted:
        duration *= 1.5
    return duration


def compute_expected_times(
    pattern: Pattern,
    beat_ms: float,
    lead_in_ms: float = 0.0,
) -> tuple[float, ...]:
    """Expected onset of every note (ms since session start), aligned with pattern.notes.

    The table is rebuilt from scratch on every call; callers replace their copy
    instead of patching it when tempo or pattern changes.
    """
    times: list[float] = []
    current = float(lead_in_ms)
    for note in pattern.notes:
        times.append(current)
        current += note_duration(note, beat_ms)
    return tuple(times)


def pattern_end_time(
    pattern: Pattern,
    expected: tuple[float, ...],
    beat_ms: float,
    lead_in_ms: float = 0.0,
) -> float:
    """Time at which the last note (or rest) finishes sounding."""
    if not pattern.notes or not expected:
        return float(lead_in_ms)
    return expected[-1] + note_duration(pattern.notes[-1], beat_ms)


def total_beats(pattern: Pattern) -> float:
    """Beats implied by the notes; not required to match bars * numerator."""
    return sum(note_duration(n, 1.0) for n in pattern.notes)
