"""Callback contract between the scoring core and its presentation collaborators."""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

from rhythmtap.models import HitGrade, SessionState

logger = logging.getLogger(__name__)


@runtime_checkable
class SessionListener(Protocol):
    """Receives feedback from a game session.

    Listeners may implement any subset of these methods; missing ones are
    skipped by :class:`EventDispatcher`.
    """

    def on_note_scored(self, player: str, note_index: int, grade: HitGrade, timing_error_ms: float) -> None: ...
    def on_miss(self, player: str, note_index: int) -> None: ...
    def on_rest_violation(self, player: str, rest_index: int, offset_ms: float) -> None: ...
    def on_bonus_awarded(self, player: str, note_index: int, points: int) -> None: ...
    def on_session_state_change(self, state: SessionState) -> None: ...
    def on_count_in(self, remaining: int) -> None: ...
    def on_beat(self, beat_index: int, is_downbeat: bool) -> None: ...


class EventDispatcher:
    """Fans events out to every registered listener.

    A listener that raises is logged and skipped; it never interrupts scoring.
    """

    def __init__(self, listeners: list[object] | None = None) -> None:
        self._listeners: list[object] = list(listeners or [])

    def add(self, listener: object) -> None:
        self._listeners.append(listener)

    def remove(self, listener: object) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def __len__(self) -> int:
        return len(self._listeners)

    def _emit(self, method: str, *args: object) -> None:
        for listener in list(self._listeners):
            handler = getattr(listener, method, None)
            if handler is None:
                continue
            try:
                handler(*args)
            except Exception:
                logger.exception("Listener %r failed in %s", listener, method)

    def note_scored(self, player: str, note_index: int, grade: HitGrade, timing_error_ms: float) -> None:
        self._emit("on_note_scored", player, note_index, grade, timing_error_ms)

    def miss(self, player: str, note_index: int) -> None:
        self._emit("on_miss", player, note_index)

    def rest_violation(self, player: str, rest_index: int, offset_ms: float) -> None:
        self._emit("on_rest_violation", player, rest_index, offset_ms)

    def bonus_awarded(self, player: str, note_index: int, points: int) -> None:
        self._emit("on_bonus_awarded", player, note_index, points)

    def session_state_change(self, state: SessionState) -> None:
        self._emit("on_session_state_change", state)

    def count_in(self, remaining: int) -> None:
        self._emit("on_count_in", remaining)

    def beat(self, beat_index: int, is_downbeat: bool) -> None:
        self._emit("on_beat", beat_index, is_downbeat)
