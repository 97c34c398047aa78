"""Global constants and default settings."""

from __future__ import annotations

from dataclasses import dataclass, field

WINDOW_WIDTH = 960
WINDOW_HEIGHT = 540
FPS = 60
WINDOW_TITLE = "rhythmtap"

PLAYER_ONE = "player1"
PLAYER_TWO = "player2"

# Tempo
DEFAULT_BPM = 100
TEMPO_PRESETS = {"slow": 70, "medium": 100, "fast": 140}

# Hit evaluation timing windows (milliseconds)
PERFECT_WINDOW_MS = 70
GOOD_WINDOW_MS = 170
MISS_WINDOW_MS = GOOD_WINDOW_MS
REST_TOLERANCE_MS = 85
LEAD_IN_MS = 0

# Input and polling
DEBOUNCE_MS = 50
MISS_CHECK_INTERVAL_MS = 50
COMPLETION_CHECK_INTERVAL_MS = 50
COUNT_IN_BEATS = 4

# Points
PERFECT_POINTS = 100
GOOD_POINTS = 50
REST_PENALTY = 15

# Hold-duration bonus
HOLD_BONUS_NOTE_TYPES = ("quarter", "half")
HOLD_PERFECT_RATIO = (0.7, 1.3)
HOLD_GOOD_RATIO = (0.5, 2.0)
HOLD_PERFECT_BONUS = 10
HOLD_GOOD_BONUS = 5


@dataclass(frozen=True)
class TimingConfig:
    """Thresholds and intervals used by a game session."""

    perfect_ms: float = PERFECT_WINDOW_MS
    good_ms: float = GOOD_WINDOW_MS
    miss_window_ms: float = MISS_WINDOW_MS
    rest_tolerance_ms: float = REST_TOLERANCE_MS
    lead_in_ms: float = LEAD_IN_MS
    debounce_ms: float = DEBOUNCE_MS
    miss_check_interval_ms: float = MISS_CHECK_INTERVAL_MS
    completion_check_interval_ms: float = COMPLETION_CHECK_INTERVAL_MS
    count_in_beats: int = COUNT_IN_BEATS
    perfect_points: int = PERFECT_POINTS
    good_points: int = GOOD_POINTS
    rest_penalty: int = REST_PENALTY


@dataclass(frozen=True)
class HoldBonusConfig:
    enabled: bool = True
    note_types: frozenset[str] = field(default_factory=lambda: frozenset(HOLD_BONUS_NOTE_TYPES))
    perfect_ratio: tuple[float, float] = HOLD_PERFECT_RATIO
    good_ratio: tuple[float, float] = HOLD_GOOD_RATIO
    perfect_bonus: int = HOLD_PERFECT_BONUS
    good_bonus: int = HOLD_GOOD_BONUS
