"""Miss detection — retroactively flag notes whose timing window has passed."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence

from rhythmtap.config import GOOD_WINDOW_MS, MISS_WINDOW_MS
from rhythmtap.evaluator import ScoredNoteSet, group_end_time, tie_continuations
from rhythmtap.models import Pattern

logger = logging.getLogger(__name__)


class MissDetector:
    """Scans forward through the expected-time table on every poll.

    Each non-rest note becomes due ``miss_window_ms`` after its onset; when due,
    every player that has not scored it gets a MISS. Tied-over notes are not
    due before their group's end minus the good window, so a press still being
    held can be resolved first. Scanning stops at the first note that is not
    due yet; notes are time ordered, so nothing later can be due either.
    """

    def __init__(
        self,
        pattern: Pattern,
        expected: Sequence[float],
        beat_ms: float,
        players: Sequence[str],
        scored: ScoredNoteSet,
        on_miss: Callable[[str, int], None],
        miss_window_ms: float = MISS_WINDOW_MS,
        good_ms: float = GOOD_WINDOW_MS,
    ) -> None:
        self.pattern = pattern
        self.expected = tuple(expected)
        self.players = tuple(players)
        self.scored = scored
        self.miss_window_ms = miss_window_ms
        self._on_miss = on_miss
        self.last_checked = -1
        self._due = self._due_times(beat_ms, good_ms)

    def _due_times(self, beat_ms: float, good_ms: float) -> tuple[float, ...]:
        continuations = tie_continuations(self.pattern)
        due: list[float] = []
        for idx, onset in enumerate(self.expected):
            deadline = onset + self.miss_window_ms
            group = continuations.get(idx)
            if group is not None:
                end = group_end_time(group, self.pattern, self.expected, beat_ms)
                deadline = max(deadline, end - good_ms)
            due.append(deadline)
        return tuple(due)

    def due_time(self, note_index: int) -> float:
        return self._due[note_index]

    def check(self, now: float) -> list[tuple[str, int]]:
        """Record misses for every note due at ``now``. Returns (player, index) pairs."""
        missed: list[tuple[str, int]] = []
        for idx in range(self.last_checked + 1, len(self.expected)):
            if self.pattern.notes[idx].rest:
                self.last_checked = idx
                continue
            if now <= self._due[idx]:
                break
            missed.extend(self._flag(idx))
            self.last_checked = idx
        return missed

    def flush(self) -> list[tuple[str, int]]:
        """Flag every remaining unscored note regardless of time (session end)."""
        missed: list[tuple[str, int]] = []
        for idx in range(self.last_checked + 1, len(self.expected)):
            if not self.pattern.notes[idx].rest:
                missed.extend(self._flag(idx))
            self.last_checked = idx
        return missed

    def _flag(self, idx: int) -> list[tuple[str, int]]:
        missed: list[tuple[str, int]] = []
        for player in self.players:
            if not self.scored.flag_missed(player, idx):
                continue
            logger.debug("%s missed note %d", player, idx)
            missed.append((player, idx))
            self._on_miss(player, idx)
        return missed
