"""Monotonic millisecond clocks used to timestamp input and drive the scheduler."""

from __future__ import annotations

import time
from typing import Protocol, runtime_checkable

import pygame


@runtime_checkable
class Clock(Protocol):
    def now_ms(self) -> float: ...


class MonotonicClock:
    """Wall-clock independent time from time.perf_counter()."""

    def __init__(self) -> None:
        self._origin = time.perf_counter()

    def now_ms(self) -> float:
        return (time.perf_counter() - self._origin) * 1000.0


class PygameClock:
    """Milliseconds since pygame.init(); shares the time base of the event loop."""

    def now_ms(self) -> float:
        return float(pygame.time.get_ticks())
