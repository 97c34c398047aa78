"""Metronome — beat counting at the session tempo."""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable

from rhythmtap.timing import beat_interval_ms

if TYPE_CHECKING:
    from rhythmtap.scheduler import Scheduler


class Metronome:
    """Counts beats on a scheduler task and reports each one to a callback.

    Beat 1 of every bar is reported as the downbeat so the presentation layer
    can accent it.
    """

    def __init__(self, bpm: float = 100.0, beats_per_bar: int = 4) -> None:
        self.bpm = bpm
        self.beats_per_bar = beats_per_bar
        self._beat_counter = 0
        self._key: str | None = None
        self._scheduler: Scheduler | None = None

    @property
    def beats_per_bar(self) -> int:
        return self._beats_per_bar

    @beats_per_bar.setter
    def beats_per_bar(self, value: int) -> None:
        self._beats_per_bar = max(1, int(value))

    @property
    def beat_ms(self) -> float:
        return beat_interval_ms(self.bpm)

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._key is not None and self._scheduler.is_scheduled(self._key)

    def tick(self) -> tuple[int, bool]:
        """Advance one beat. Returns (beat index within bar, is downbeat)."""
        beat = self._beat_counter % self.beats_per_bar
        self._beat_counter += 1
        return beat, beat == 0

    def start(
        self,
        scheduler: Scheduler,
        key: str,
        on_beat: Callable[[int, bool], None],
    ) -> None:
        """Schedule ticks every beat; the first one fires immediately."""
        self.reset()
        self._scheduler = scheduler
        self._key = key

        def _fire() -> None:
            on_beat(*self.tick())

        scheduler.every(self.beat_ms, _fire, key=key, immediate=True)

    def stop(self) -> None:
        if self._scheduler is not None and self._key is not None:
            self._scheduler.cancel(self._key)
        self._scheduler = None
        self._key = None

    def reset(self) -> None:
        self._beat_counter = 0
