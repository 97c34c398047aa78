"""Core data models shared across the engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto


class NoteType(Enum):
    WHOLE = "whole"
    HALF = "half"
    QUARTER = "quarter"
    EIGHTH = "eighth"
    SIXTEENTH = "sixteenth"

    @property
    def beats(self) -> float:
        return _BEATS[self]


_BEATS = {
    NoteType.WHOLE: 4.0,
    NoteType.HALF: 2.0,
    NoteType.QUARTER: 1.0,
    NoteType.EIGHTH: 0.5,
    NoteType.SIXTEENTH: 0.25,
}


class HitGrade(Enum):
    PERFECT = "perfect"
    GOOD = "good"
    MISS = "miss"
    REST = "rest"  # authoritative scoring only, never counted in accuracy


class SessionState(Enum):
    IDLE = auto()
    COUNTING_IN = auto()
    PLAYING = auto()
    PAUSED = auto()
    COMPLETE = auto()


@dataclass(frozen=True)
class Note:
    """A single note or rest in a pattern.

    ``type`` is normally a :class:`NoteType`; raw strings are tolerated so that
    malformed pattern data still loads (durations fall back to a quarter).
    """

    type: NoteType | str = NoteType.QUARTER
    rest: bool = False
    dotted: bool = False
    tie_to_next: bool = False


@dataclass(frozen=True)
class TimeSignature:
    numerator: int = 4
    denominator: int = 4


@dataclass(frozen=True)
class Pattern:
    """An ordered, immutable sequence of notes plus presentation metadata."""

    notes: tuple[Note, ...] = ()
    bars: int = 1
    time_signature: TimeSignature = field(default_factory=TimeSignature)
    tags: frozenset[str] = frozenset()
    creator: str = "system"
    name: str = ""

    def __len__(self) -> int:
        return len(self.notes)


@dataclass
class HoldPeriod:
    down: float  # ms since session start
    up: float | None = None  # None while the press is still held

    @property
    def is_open(self) -> bool:
        return self.up is None


@dataclass(frozen=True)
class NoteResult:
    note_index: int
    grade: HitGrade
    timing_error_ms: float  # absolute
    offset_ms: float = 0.0  # negative = early, positive = late


@dataclass(frozen=True)
class RestViolation:
    rest_index: int
    expected_time: float
    rest_duration: float
    offset_ms: float


@dataclass(frozen=True)
class HoldGroup:
    """Inclusive range of note indices played as one continuous press."""

    start: int
    end: int

    @property
    def is_tied(self) -> bool:
        return self.end > self.start


@dataclass
class PlayerStats:
    player: str = ""
    perfect: int = 0
    good: int = 0
    missed: int = 0
    rest: int = 0
    rest_violations: int = 0
    score: int = 0
    accuracy_pct: int = 0


@dataclass
class SessionStats:
    pattern_name: str = ""
    players: dict[str, PlayerStats] = field(default_factory=dict)
    # authoritative per-note results recomputed from hold periods at the end
    results: dict[str, list[NoteResult]] = field(default_factory=dict)
    # counts derived from those results; players holds the live tallies
    recomputed: dict[str, PlayerStats] = field(default_factory=dict)
    total_paused_ms: float = 0.0
