import pytest

from rhythmtap.config import TimingConfig
from rhythmtap.models import Note, NoteType, Pattern
from rhythmtap.session import GameSession


class FakeClock:
    """Manually advanced millisecond clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def now_ms(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


class RecordingListener:
    def __init__(self):
        self.events = []

    def on_note_scored(self, player, note_index, grade, timing_error_ms):
        self.events.append(("scored", player, note_index, grade, timing_error_ms))

    def on_miss(self, player, note_index):
        self.events.append(("miss", player, note_index))

    def on_rest_violation(self, player, rest_index, offset_ms):
        self.events.append(("rest", player, rest_index, offset_ms))

    def on_bonus_awarded(self, player, note_index, points):
        self.events.append(("bonus", player, note_index, points))

    def on_session_state_change(self, state):
        self.events.append(("state", state))

    def on_count_in(self, remaining):
        self.events.append(("count_in", remaining))

    def of(self, kind):
        return [e for e in self.events if e[0] == kind]


def quarters(n: int) -> Pattern:
    return Pattern(notes=tuple(Note(NoteType.QUARTER) for _ in range(n)))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def listener():
    return RecordingListener()


@pytest.fixture
def make_session(clock, listener):
    """Build a session at 120 BPM (500ms beats) with no count-in."""

    def _make(pattern, players=("player1",), **config):
        config.setdefault("count_in_beats", 0)
        session = GameSession(
            clock,
            players=players,
            config=TimingConfig(**config),
            listeners=[listener],
            bpm=120,
        )
        session.load_pattern(pattern)
        return session

    return _make


def run_for(session, clock, ms: float, step: float = 10.0) -> None:
    """Advance the clock in frame-sized steps, ticking the session each time."""
    elapsed = 0.0
    while elapsed < ms:
        clock.advance(step)
        elapsed += step
        session.tick()
