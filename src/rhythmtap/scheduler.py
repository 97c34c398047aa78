"""Cooperative periodic task scheduler driven by the host frame loop."""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:
    from rhythmtap.clock import Clock

logger = logging.getLogger(__name__)

# Upper bound on catch-up firings of a single task within one run_pending call.
MAX_CATCH_UP = 1000


@dataclass
class PeriodicTask:
    key: str
    interval_ms: float
    callback: Callable[[], None]
    next_due: float
    seq: int = 0
    suspended: bool = False
    cancelled: bool = False
    fired: int = 0  # firings within the current run_pending call


class Scheduler:
    """Runs "repeat every N ms until cancelled" tasks.

    Nothing runs on its own: the host calls :meth:`run_pending` once per frame
    and due tasks fire in deadline order on that call. Keys are
    ``"<group>:<name>"`` so a whole session's tasks can be cancelled,
    suspended or resumed together.
    """

    def __init__(self, clock: Clock) -> None:
        self._clock = clock
        self._tasks: dict[str, PeriodicTask] = {}
        self._seq = itertools.count()

    def every(
        self,
        interval_ms: float,
        callback: Callable[[], None],
        key: str,
        immediate: bool = False,
    ) -> PeriodicTask:
        """Schedule callback every interval_ms. Replaces any task with the same key."""
        if interval_ms <= 0:
            raise ValueError(f"interval must be positive, got {interval_ms}")
        self.cancel(key)
        now = self._clock.now_ms()
        task = PeriodicTask(
            key=key,
            interval_ms=interval_ms,
            callback=callback,
            next_due=now if immediate else now + interval_ms,
            seq=next(self._seq),
        )
        self._tasks[key] = task
        return task

    def cancel(self, key: str) -> bool:
        task = self._tasks.pop(key, None)
        if task is None:
            return False
        task.cancelled = True
        return True

    def cancel_group(self, group: str) -> int:
        keys = self._group_keys(group)
        for key in keys:
            self.cancel(key)
        if keys:
            logger.debug("Cancelled %d task(s) in group %s", len(keys), group)
        return len(keys)

    def suspend_group(self, group: str) -> None:
        for key in self._group_keys(group):
            self._tasks[key].suspended = True

    def resume_group(self, group: str, shift_ms: float = 0.0) -> None:
        """Resume suspended tasks, pushing their deadlines back by shift_ms."""
        for key in self._group_keys(group):
            task = self._tasks[key]
            if task.suspended:
                task.suspended = False
                task.next_due += shift_ms

    def is_scheduled(self, key: str) -> bool:
        return key in self._tasks

    def pending_keys(self) -> list[str]:
        return sorted(self._tasks)

    def run_pending(self, now: float | None = None) -> int:
        """Fire every task that is due at ``now``. Returns the number of firings."""
        if now is None:
            now = self._clock.now_ms()
        fired = 0
        while True:
            due = [
                t for t in self._tasks.values()
                if not t.suspended and t.next_due <= now and t.fired < MAX_CATCH_UP
            ]
            if not due:
                break
            task = min(due, key=lambda t: (t.next_due, t.seq))
            task.next_due += task.interval_ms
            task.fired += 1
            fired += 1
            task.callback()
        for task in self._tasks.values():
            task.fired = 0
        return fired

    def _group_keys(self, group: str) -> list[str]:
        prefix = f"{group}:"
        return [key for key in self._tasks if key.startswith(prefix)]
