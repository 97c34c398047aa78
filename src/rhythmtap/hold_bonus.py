"""Hold-duration bonus, awarded one input late.

A release only tells us how long the player held; which note that hold
belonged to is settled when the next press arrives (or the session ends), so
the bonus is evaluated retroactively at that point.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from rhythmtap.config import HoldBonusConfig
from rhythmtap.evaluator import ScoredNoteSet
from rhythmtap.models import NoteType, Pattern
from rhythmtap.timing import type_duration

logger = logging.getLogger(__name__)


class HoldBonusEvaluator:
    def __init__(
        self,
        config: HoldBonusConfig | None = None,
        on_bonus: Callable[[str, int, int], None] | None = None,
    ) -> None:
        self.config = config or HoldBonusConfig()
        self._on_bonus = on_bonus
        self._durations: dict[str, float] = {}

    def record_release(self, player: str, hold_ms: float) -> None:
        """Store the latest hold duration (one slot per player)."""
        self._durations[player] = hold_ms

    def pending(self, player: str) -> float | None:
        return self._durations.get(player)

    def is_eligible(self, note_type: NoteType | str) -> bool:
        value = note_type.value if isinstance(note_type, NoteType) else note_type
        return value in self.config.note_types

    def bonus_for_ratio(self, ratio: float) -> int:
        lo, hi = self.config.perfect_ratio
        if lo <= ratio <= hi:
            return self.config.perfect_bonus
        lo, hi = self.config.good_ratio
        if lo <= ratio <= hi:
            return self.config.good_bonus
        return 0

    def apply_previous(
        self,
        player: str,
        pattern: Pattern,
        scored: ScoredNoteSet,
        beat_ms: float,
    ) -> tuple[int, int] | None:
        """Evaluate the stored hold against the player's most recently scored note.

        Returns (note_index, points) when a bonus was granted. The stored
        duration is consumed either way.
        """
        if not self.config.enabled:
            return None
        hold_ms = self._durations.pop(player, None)
        if not hold_ms:
            return None

        # notes flagged by the miss detector are never the held note
        note_index = scored.last_scored(player)
        if note_index is None:
            return None

        note = pattern.notes[note_index]
        if not self.is_eligible(note.type):
            return None

        ideal = type_duration(note.type, beat_ms)
        ratio = hold_ms / ideal
        points = self.bonus_for_ratio(ratio)
        logger.debug(
            "%s hold on note %d: %.0fms of %.0fms (ratio %.2f) -> +%d",
            player, note_index, hold_ms, ideal, ratio, points,
        )
        if points <= 0:
            return None
        if self._on_bonus is not None:
            self._on_bonus(player, note_index, points)
        return note_index, points

    def clear(self) -> None:
        self._durations.clear()
