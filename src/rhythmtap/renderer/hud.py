"""Heads-up display — session status, per-player score and recent feedback."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pygame

from rhythmtap.models import SessionState
from rhythmtap.renderer.colors import HUD_DIM, HUD_TEXT

if TYPE_CHECKING:
    from rhythmtap.session import GameSession

_STATUS = {
    SessionState.IDLE: "Ready to play (Enter to start)",
    SessionState.COUNTING_IN: "Get ready...",
    SessionState.PLAYING: "Playing...",
    SessionState.PAUSED: "Game paused (window hidden)",
    SessionState.COMPLETE: "Pattern complete!",
}


def status_text(session: GameSession) -> str:
    if session.state == SessionState.COUNTING_IN:
        remaining = session.config.count_in_beats - session.count_in_beat + 1
        return str(max(remaining, 1))
    return _STATUS[session.state]


def render_hud(
    surface: pygame.Surface,
    session: GameSession,
    feedback: list[tuple[str, tuple[int, int, int]]],
) -> None:
    font = pygame.font.SysFont("monospace", 20)

    y = 10
    title = f"{session.pattern.name or 'Pattern'} @ {session.bpm:.0f} BPM"
    surface.blit(font.render(title, True, HUD_DIM), (10, y))
    y += 28
    surface.blit(font.render(status_text(session), True, HUD_TEXT), (10, y))
    y += 40

    for player in session.players:
        stats = session.player_stats(player)
        line = (
            f"{player}: {stats.score:5d}  P {stats.perfect}  G {stats.good}  M {stats.missed}"
            f"  rests {stats.rest_violations}  {stats.accuracy_pct}%"
        )
        surface.blit(font.render(line, True, HUD_TEXT), (10, y))
        y += 28

    y += 12
    for text, color in feedback:
        surface.blit(font.render(text, True, color), (10, y))
        y += 24
