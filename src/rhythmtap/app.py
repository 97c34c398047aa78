"""Top-level application: initializes pygame, wires input to the session, and runs the loop."""

from __future__ import annotations

import logging
from collections import deque

import pygame

from rhythmtap.clock import PygameClock
from rhythmtap.config import (
    FPS,
    PLAYER_ONE,
    WINDOW_HEIGHT,
    WINDOW_TITLE,
    WINDOW_WIDTH,
    HoldBonusConfig,
    TimingConfig,
)
from rhythmtap.midi_input import (
    SINGLE_PLAYER_KEYS,
    TWO_PLAYER_KEYS,
    InputSource,
    KeyboardInput,
    MidiInput,
)
from rhythmtap.models import HitGrade, Pattern, SessionState
from rhythmtap.renderer import colors
from rhythmtap.renderer.hud import render_hud
from rhythmtap.session import GameSession

logger = logging.getLogger(__name__)

_HIDDEN_EVENTS = (pygame.WINDOWHIDDEN, pygame.WINDOWMINIMIZED)
_SHOWN_EVENTS = (pygame.WINDOWSHOWN, pygame.WINDOWRESTORED)

_GRADE_COLORS = {
    HitGrade.PERFECT: colors.NOTE_PERFECT,
    HitGrade.GOOD: colors.NOTE_GOOD,
    HitGrade.MISS: colors.NOTE_MISS,
}


class FeedbackLog:
    """Session listener that keeps the last few feedback lines for the HUD."""

    def __init__(self, size: int = 8) -> None:
        self.lines: deque[tuple[str, tuple[int, int, int]]] = deque(maxlen=size)
        self.last_beat: tuple[int, bool] | None = None

    def on_note_scored(self, player: str, note_index: int, grade: HitGrade, timing_error_ms: float) -> None:
        self.lines.appendleft(
            (f"{player} beat {note_index + 1}: {grade.value} ({timing_error_ms:.0f}ms)", _GRADE_COLORS[grade])
        )

    def on_miss(self, player: str, note_index: int) -> None:
        self.lines.appendleft((f"{player} beat {note_index + 1}: miss", colors.NOTE_MISS))

    def on_rest_violation(self, player: str, rest_index: int, offset_ms: float) -> None:
        self.lines.appendleft((f"{player} tapped during rest {rest_index + 1}", colors.REST_WARNING))

    def on_bonus_awarded(self, player: str, note_index: int, points: int) -> None:
        self.lines.appendleft((f"{player} hold bonus +{points}", colors.NOTE_PERFECT))

    def on_beat(self, beat_index: int, is_downbeat: bool) -> None:
        self.last_beat = (beat_index, is_downbeat)

    def on_session_state_change(self, state: SessionState) -> None:
        if state == SessionState.COUNTING_IN:
            self.lines.clear()


class App:
    def __init__(
        self,
        pattern: Pattern,
        bpm: float,
        players: int = 1,
        config: TimingConfig | None = None,
        bonus_config: HoldBonusConfig | None = None,
        use_midi: bool = False,
    ) -> None:
        pygame.init()
        self.screen = pygame.display.set_mode((WINDOW_WIDTH, WINDOW_HEIGHT))
        pygame.display.set_caption(WINDOW_TITLE)
        self.frame_clock = pygame.time.Clock()
        self.clock = PygameClock()

        key_map = TWO_PLAYER_KEYS if players > 1 else SINGLE_PLAYER_KEYS
        self._keyboard_input = KeyboardInput(self.clock, key_map)
        self._sources: list[InputSource] = [self._keyboard_input]
        if use_midi:
            midi = self._try_midi()
            if midi is not None:
                self._sources.append(midi)

        self.feedback = FeedbackLog()
        listeners: list[object] = [self.feedback, *self._try_plugins()]
        self.session = GameSession(
            self.clock,
            players=sorted(set(key_map.values())),
            config=config,
            bonus_config=bonus_config,
            listeners=listeners,
            bpm=bpm,
        )
        self.session.load_pattern(pattern)

    def run(self) -> None:
        running = True
        while running:
            self.frame_clock.tick(FPS)
            for event in pygame.event.get():
                if event.type == pygame.QUIT:
                    running = False
                elif event.type in _HIDDEN_EVENTS:
                    self.session.visibility_changed(True)
                elif event.type in _SHOWN_EVENTS:
                    self.session.visibility_changed(False)
                elif event.type == pygame.KEYDOWN and event.key == pygame.K_ESCAPE:
                    running = False
                elif event.type == pygame.KEYDOWN and event.key == pygame.K_RETURN:
                    self.session.start()
                elif event.type == pygame.KEYDOWN and event.key == pygame.K_BACKSPACE:
                    self.session.stop()
                else:
                    self._keyboard_input.feed_event(event)

            self._drain_inputs()
            self.session.tick()
            self._draw()
            pygame.display.flip()

        self._cleanup()
        pygame.quit()

    def _drain_inputs(self) -> None:
        for source in self._sources:
            while (tap := source.poll()) is not None:
                if tap.is_press:
                    self.session.input_press(tap.player, tap.timestamp)
                else:
                    self.session.input_release(tap.player, tap.timestamp)

    def _draw(self) -> None:
        self.screen.fill(colors.BG)
        beat = self.feedback.last_beat
        if beat is not None and self.session.is_active:
            color = colors.BEAT_ACCENT if beat[1] else colors.BEAT_NORMAL
            x = WINDOW_WIDTH - 60 * (self.session.metronome.beats_per_bar - beat[0])
            pygame.draw.circle(self.screen, color, (x, 40), 18)
        render_hud(self.screen, self.session, list(self.feedback.lines))

    def _cleanup(self) -> None:
        self.session.stop()
        for source in self._sources:
            source.close()

    def _try_midi(self) -> MidiInput | None:
        try:
            logger.info("MIDI input ports: %s", MidiInput.list_ports())
            mi = MidiInput(self.clock, player=PLAYER_ONE)
            mi.open()
            return mi
        except Exception as exc:
            logger.warning("MIDI input unavailable: %s", exc)
            return None

    @staticmethod
    def _try_plugins() -> list[object]:
        try:
            from rhythmtap.plugins.manager import PluginManager
            pm = PluginManager()
            pm.discover()
            return pm.get_listeners()
        except Exception as exc:
            logger.warning("Plugin discovery failed: %s", exc)
            return []
