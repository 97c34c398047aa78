"""Tap input from the computer keyboard or a connected MIDI device."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

import pygame

from rhythmtap.config import PLAYER_ONE, PLAYER_TWO

if TYPE_CHECKING:
    from rhythmtap.clock import Clock

try:
    import rtmidi
    _HAS_RTMIDI = True
except ImportError:
    _HAS_RTMIDI = False


@dataclass
class TapEvent:
    player: str
    timestamp: float  # clock ms
    is_press: bool


class MidiDeviceError(Exception):
    """Raised when no MIDI device is found or connection fails."""


@runtime_checkable
class InputSource(Protocol):
    """Common interface for MIDI and keyboard input sources."""
    def poll(self) -> TapEvent | None: ...
    def close(self) -> None: ...


SINGLE_PLAYER_KEYS: dict[int, str] = {
    pygame.K_t: PLAYER_ONE,
    pygame.K_SPACE: PLAYER_ONE,
}
TWO_PLAYER_KEYS: dict[int, str] = {
    pygame.K_t: PLAYER_ONE,
    pygame.K_k: PLAYER_TWO,
}


class KeyboardInput:
    """Maps key presses and releases to per-player tap events."""

    def __init__(self, clock: Clock, key_map: dict[int, str] | None = None) -> None:
        self._clock = clock
        self._key_map = dict(key_map or SINGLE_PLAYER_KEYS)
        self._events: list[TapEvent] = []
        self._held: set[int] = set()

    def feed_event(self, event: pygame.event.Event) -> None:
        """Call from the game loop for each pygame event."""
        if event.type == pygame.KEYDOWN and event.key in self._key_map:
            # OS key repeat shows up as KEYDOWN without a KEYUP in between
            if event.key not in self._held:
                self._held.add(event.key)
                self._events.append(TapEvent(
                    player=self._key_map[event.key],
                    timestamp=self._clock.now_ms(),
                    is_press=True,
                ))
        elif event.type == pygame.KEYUP and event.key in self._key_map:
            self._held.discard(event.key)
            self._events.append(TapEvent(
                player=self._key_map[event.key],
                timestamp=self._clock.now_ms(),
                is_press=False,
            ))

    def poll(self) -> TapEvent | None:
        if self._events:
            return self._events.pop(0)
        return None

    def close(self) -> None:
        self._events.clear()
        self._held.clear()


class MidiInput:
    """Any note on a MIDI device counts as a tap for one player."""

    def __init__(self, clock: Clock, player: str = PLAYER_ONE, port_index: int | None = None) -> None:
        if not _HAS_RTMIDI:
            raise MidiDeviceError("python-rtmidi is not installed")
        self.midi_in = rtmidi.MidiIn()
        self._clock = clock
        self._player = player
        self._port_index = port_index
        self._open = False

    @staticmethod
    def list_ports() -> list[str]:
        if not _HAS_RTMIDI:
            return []
        midi_in = rtmidi.MidiIn()
        return midi_in.get_ports()

    def open(self) -> None:
        ports = self.midi_in.get_ports()
        if not ports:
            raise MidiDeviceError("No MIDI input devices found")
        idx = self._port_index if self._port_index is not None else 0
        self.midi_in.open_port(idx)
        self._open = True

    def poll(self) -> TapEvent | None:
        """Non-blocking poll for the next MIDI message. Returns None if no message."""
        if not self._open:
            return None
        msg = self.midi_in.get_message()
        if msg is None:
            return None
        data, _delta = msg
        status = data[0] & 0xF0
        now = self._clock.now_ms()
        if status == 0x90 and data[2] > 0:
            return TapEvent(player=self._player, timestamp=now, is_press=True)
        elif status == 0x80 or (status == 0x90 and data[2] == 0):
            return TapEvent(player=self._player, timestamp=now, is_press=False)
        return None

    def close(self) -> None:
        if self._open:
            self.midi_in.close_port()
            self._open = False
