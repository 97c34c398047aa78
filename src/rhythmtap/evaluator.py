"""Hit evaluation — compare player input to expected note times."""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from rhythmtap.config import (
    GOOD_POINTS,
    GOOD_WINDOW_MS,
    PERFECT_POINTS,
    PERFECT_WINDOW_MS,
    REST_TOLERANCE_MS,
)
from rhythmtap.models import (
    HitGrade,
    HoldGroup,
    HoldPeriod,
    NoteResult,
    Pattern,
    PlayerStats,
    RestViolation,
)
from rhythmtap.timing import note_duration


def classify(
    timing_error_ms: float,
    perfect_ms: float = PERFECT_WINDOW_MS,
    good_ms: float = GOOD_WINDOW_MS,
) -> HitGrade:
    """Grade an absolute timing error. Both boundaries are inclusive."""
    error = abs(timing_error_ms)
    if error <= perfect_ms:
        return HitGrade.PERFECT
    if error <= good_ms:
        return HitGrade.GOOD
    return HitGrade.MISS


class ScoredNoteSet:
    """Records which (player, note index) pairs already received a result.

    Insertion only: a pair is graded at most once per session. Notes graded
    by a press and notes flagged by the miss detector are kept apart. Both
    block a second grade, but only pressed notes stop being press targets, so
    a late press still resolves against the note it was aimed at.
    """

    def __init__(self) -> None:
        self._grades: dict[tuple[str, int], HitGrade] = {}
        self._flagged: set[tuple[str, int]] = set()

    def __contains__(self, key: object) -> bool:
        return key in self._grades or key in self._flagged

    def __len__(self) -> int:
        return len(self._grades) + len(self._flagged)

    def has(self, player: str, note_index: int) -> bool:
        """True once the note is graded either way."""
        return (player, note_index) in self

    def pressed(self, player: str, note_index: int) -> bool:
        return (player, note_index) in self._grades

    def flagged(self, player: str, note_index: int) -> bool:
        return (player, note_index) in self._flagged

    def add(self, player: str, note_index: int, grade: HitGrade) -> bool:
        """Record a press grade. Returns False (and changes nothing) if already graded."""
        if self.has(player, note_index):
            return False
        self._grades[(player, note_index)] = grade
        return True

    def flag_missed(self, player: str, note_index: int) -> bool:
        """Record a miss nobody pressed for. Returns False if already graded."""
        if self.has(player, note_index):
            return False
        self._flagged.add((player, note_index))
        return True

    def grade(self, player: str, note_index: int) -> HitGrade | None:
        if (player, note_index) in self._flagged:
            return HitGrade.MISS
        return self._grades.get((player, note_index))

    def last_scored(self, player: str) -> int | None:
        """Highest note index this player graded with a press, if any."""
        indices = [idx for (p, idx) in self._grades if p == player]
        return max(indices) if indices else None

    def clear(self) -> None:
        self._grades.clear()
        self._flagged.clear()


def hold_groups(pattern: Pattern) -> list[HoldGroup]:
    """Split the non-rest notes into groups linked by tie_to_next.

    Every non-rest note belongs to exactly one group; untied notes form
    single-note groups. A tie into a rest (or off the end) is ignored.
    """
    notes = pattern.notes
    groups: list[HoldGroup] = []
    i = 0
    while i < len(notes):
        if notes[i].rest:
            i += 1
            continue
        start = i
        while i + 1 < len(notes) and notes[i].tie_to_next and not notes[i + 1].rest:
            i += 1
        groups.append(HoldGroup(start=start, end=i))
        i += 1
    return groups


def tie_continuations(pattern: Pattern) -> dict[int, HoldGroup]:
    """Map each tied-over note index (not the group start) to its group."""
    result: dict[int, HoldGroup] = {}
    for group in hold_groups(pattern):
        for idx in range(group.start + 1, group.end + 1):
            result[idx] = group
    return result


def group_end_time(
    group: HoldGroup,
    pattern: Pattern,
    expected: Sequence[float],
    beat_ms: float,
) -> float:
    return expected[group.end] + note_duration(pattern.notes[group.end], beat_ms)


def find_rest_violation(
    input_time: float,
    pattern: Pattern,
    expected: Sequence[float],
    beat_ms: float,
    tolerance_ms: float = REST_TOLERANCE_MS,
) -> RestViolation | None:
    """Return the first rest whose window contains input_time.

    A rest window spans [expected - tol, expected + duration + tol], clipped so
    that it ends no later than tol before the following entry's onset.
    """
    for index, note in enumerate(pattern.notes):
        if not note.rest:
            continue
        rest_time = expected[index]
        rest_duration = note_duration(note, beat_ms)
        window_end = rest_time + rest_duration + tolerance_ms
        if index + 1 < len(expected):
            window_end = min(window_end, expected[index + 1] - tolerance_ms)
        if rest_time - tolerance_ms <= input_time <= window_end:
            return RestViolation(
                rest_index=index,
                expected_time=rest_time,
                rest_duration=rest_duration,
                offset_ms=input_time - rest_time,
            )
    return None


def score_input(
    player: str,
    input_time: float,
    expected: Sequence[float],
    pattern: Pattern,
    scored: ScoredNoteSet,
    perfect_ms: float = PERFECT_WINDOW_MS,
    good_ms: float = GOOD_WINDOW_MS,
) -> NoteResult | None:
    """Match an input to the nearest note this player has not pressed yet.

    Rests and tied-over notes are never onset targets. Ties in distance go to
    the earliest note. Notes already flagged as missed stay candidates; the
    caller drops a press that lands on one. Returns None when nothing is left
    to hit. The caller is responsible for recording the result in ``scored``.
    """
    continuations = tie_continuations(pattern)
    best_idx: int | None = None
    best_error = float("inf")

    for idx, note in enumerate(pattern.notes):
        if note.rest or idx in continuations or scored.pressed(player, idx):
            continue
        error = abs(input_time - expected[idx])
        if error < best_error:
            best_error = error
            best_idx = idx

    if best_idx is None:
        return None

    offset = input_time - expected[best_idx]
    return NoteResult(
        note_index=best_idx,
        grade=classify(best_error, perfect_ms, good_ms),
        timing_error_ms=best_error,
        offset_ms=offset,
    )


def score_hold_group(
    group: HoldGroup,
    holds: Iterable[HoldPeriod],
    expected: Sequence[float],
    pattern: Pattern,
    beat_ms: float,
    now: float,
    perfect_ms: float = PERFECT_WINDOW_MS,
    good_ms: float = GOOD_WINDOW_MS,
) -> NoteResult:
    """Score a tie group as a unit from the press and release of one hold.

    The press must land within the good window of the group start and the
    release (``now`` for a hold still in progress) must reach the group end
    minus the good window. The grade comes from the start error only.
    """
    start_time = expected[group.start]
    end_time = group_end_time(group, pattern, expected, beat_ms)

    for hold in holds:
        released = now if hold.up is None else hold.up
        error = abs(hold.down - start_time)
        if error <= good_ms and released >= end_time - good_ms:
            return NoteResult(
                note_index=group.start,
                grade=classify(error, perfect_ms, good_ms),
                timing_error_ms=error,
                offset_ms=hold.down - start_time,
            )

    return NoteResult(note_index=group.start, grade=HitGrade.MISS, timing_error_ms=float("inf"))


def score_pattern(
    pattern: Pattern,
    holds: Sequence[HoldPeriod],
    expected: Sequence[float],
    beat_ms: float,
    now: float,
    perfect_ms: float = PERFECT_WINDOW_MS,
    good_ms: float = GOOD_WINDOW_MS,
) -> list[NoteResult]:
    """Authoritative recomputation of every note result from recorded holds."""
    results: list[NoteResult | None] = [None] * len(pattern.notes)

    for group in hold_groups(pattern):
        if group.is_tied:
            scored = score_hold_group(
                group, holds, expected, pattern, beat_ms, now, perfect_ms, good_ms
            )
            for idx in range(group.start, group.end + 1):
                results[idx] = NoteResult(
                    note_index=idx,
                    grade=scored.grade,
                    timing_error_ms=scored.timing_error_ms,
                    offset_ms=scored.offset_ms,
                )
        else:
            idx = group.start
            best: NoteResult | None = None
            for hold in holds:
                error = abs(hold.down - expected[idx])
                if best is None or error < best.timing_error_ms:
                    best = NoteResult(
                        note_index=idx,
                        grade=classify(error, perfect_ms, good_ms),
                        timing_error_ms=error,
                        offset_ms=hold.down - expected[idx],
                    )
            results[idx] = best or NoteResult(
                note_index=idx, grade=HitGrade.MISS, timing_error_ms=float("inf")
            )

    for idx, note in enumerate(pattern.notes):
        if note.rest:
            results[idx] = NoteResult(note_index=idx, grade=HitGrade.REST, timing_error_ms=0.0)

    return [r for r in results if r is not None]


def get_stats(
    results: Iterable[NoteResult],
    player: str = "",
    perfect_points: int = PERFECT_POINTS,
    good_points: int = GOOD_POINTS,
) -> PlayerStats:
    """Aggregate per-note results. Rests are excluded from accuracy."""
    stats = PlayerStats(player=player)
    for result in results:
        if result.grade == HitGrade.REST:
            stats.rest += 1
        elif result.grade == HitGrade.PERFECT:
            stats.perfect += 1
            stats.score += perfect_points
        elif result.grade == HitGrade.GOOD:
            stats.good += 1
            stats.score += good_points
        else:
            stats.missed += 1

    scorable = stats.perfect + stats.good + stats.missed
    if scorable > 0:
        stats.accuracy_pct = round(100 * (stats.perfect + stats.good) / scorable)
    return stats
