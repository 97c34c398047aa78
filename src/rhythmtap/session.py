"""Game session — play state, count-in, pause/resume and live scoring."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from rhythmtap.config import DEFAULT_BPM, PLAYER_ONE, HoldBonusConfig, TimingConfig
from rhythmtap.events import EventDispatcher
from rhythmtap.evaluator import (
    ScoredNoteSet,
    find_rest_violation,
    get_stats,
    group_end_time,
    hold_groups,
    score_input,
    score_pattern,
)
from rhythmtap.hold_bonus import HoldBonusEvaluator
from rhythmtap.miss_detector import MissDetector
from rhythmtap.models import (
    HitGrade,
    HoldGroup,
    HoldPeriod,
    NoteResult,
    Pattern,
    PlayerStats,
    SessionState,
    SessionStats,
)
from rhythmtap.playback import Metronome
from rhythmtap.scheduler import Scheduler
from rhythmtap.timing import beat_interval_ms, compute_expected_times, normalize_bpm, pattern_end_time

if TYPE_CHECKING:
    from rhythmtap.clock import Clock

logger = logging.getLogger(__name__)

_ACTIVE = (SessionState.COUNTING_IN, SessionState.PLAYING, SessionState.PAUSED)


@dataclass
class PlayerState:
    """Per-player transient state, reset at the start of every session."""

    player: str
    last_tap: float | None = None
    hold_start: float | None = None
    perfect: int = 0
    good: int = 0
    missed: int = 0
    rest_violations: int = 0
    score: int = 0
    holds: list[HoldPeriod] = field(default_factory=list)
    pending_group: HoldGroup | None = None
    pending_result: NoteResult | None = None

    @property
    def accuracy_pct(self) -> int:
        judged = self.perfect + self.good + self.missed
        return round(100 * (self.perfect + self.good) / judged) if judged else 0

    def to_stats(self) -> PlayerStats:
        return PlayerStats(
            player=self.player,
            perfect=self.perfect,
            good=self.good,
            missed=self.missed,
            rest_violations=self.rest_violations,
            score=self.score,
            accuracy_pct=self.accuracy_pct,
        )


class GameSession:
    """Owns one game: pattern, tempo, timers and every player's score.

    All mutation happens on the host thread, either from the input entry
    points or from scheduler tasks fired by :meth:`tick`.
    """

    def __init__(
        self,
        clock: Clock,
        players: Sequence[str] = (PLAYER_ONE,),
        config: TimingConfig | None = None,
        bonus_config: HoldBonusConfig | None = None,
        listeners: Iterable[object] | None = None,
        scheduler: Scheduler | None = None,
        bpm: float = DEFAULT_BPM,
    ) -> None:
        self.clock = clock
        self.players = tuple(players)
        self.config = config or TimingConfig()
        self.scheduler = scheduler or Scheduler(clock)
        self.events = EventDispatcher(list(listeners or []))
        self.scored = ScoredNoteSet()
        self.bonus = HoldBonusEvaluator(bonus_config, on_bonus=self._award_bonus)
        self.metronome = Metronome()

        self.state = SessionState.IDLE
        self.pattern = Pattern()
        self.bpm = normalize_bpm(bpm)
        self.expected: tuple[float, ...] = ()
        self.session_id = 0
        self.start_time = 0.0
        self.paused_at: float | None = None
        self.total_paused_ms = 0.0
        self.end_deadline: float | None = None
        self.count_in_beat = 0
        self.last_stats: SessionStats | None = None

        self._pending_pattern: Pattern | None = None
        self._pending_bpm: float | None = None
        self._players = {p: PlayerState(p) for p in self.players}
        self._tied_groups: dict[int, HoldGroup] = {}
        self._miss_detector: MissDetector | None = None

    # -- configuration ---------------------------------------------------

    @property
    def beat_ms(self) -> float:
        return beat_interval_ms(self.bpm)

    @property
    def is_active(self) -> bool:
        return self.state in _ACTIVE

    def load_pattern(self, pattern: Pattern) -> None:
        if self.is_active:
            logger.info("Pattern change deferred until the next start")
            self._pending_pattern = pattern
            return
        self.pattern = pattern
        self._rebuild_table()

    def set_tempo(self, bpm: float) -> None:
        bpm = normalize_bpm(bpm)
        if self.is_active:
            logger.info("Tempo change to %.0f BPM deferred until the next start", bpm)
            self._pending_bpm = bpm
            return
        self.bpm = bpm
        self._rebuild_table()

    def _rebuild_table(self) -> None:
        self.expected = compute_expected_times(self.pattern, self.beat_ms, self.config.lead_in_ms)
        self._tied_groups = {g.start: g for g in hold_groups(self.pattern) if g.is_tied}

    # -- time ------------------------------------------------------------

    @property
    def _group(self) -> str:
        return f"session-{self.session_id}"

    def relative_time(self, timestamp: float | None = None) -> float:
        """Session-relative ms for a clock timestamp (default: now).

        While paused the result is frozen at the moment of pausing. This is
        the only place elapsed session time is derived from the clock.
        """
        now = self.clock.now_ms() if timestamp is None else timestamp
        if self.paused_at is not None:
            now = min(now, self.paused_at)
        return now - self.start_time

    def tick(self) -> int:
        """Fire due timers. Call once per host frame."""
        return self.scheduler.run_pending()

    # -- lifecycle -------------------------------------------------------

    def start(self) -> None:
        if self.is_active:
            logger.debug("start() ignored, session already %s", self.state.name)
            return

        if self._pending_pattern is not None:
            self.pattern, self._pending_pattern = self._pending_pattern, None
        if self._pending_bpm is not None:
            self.bpm, self._pending_bpm = self._pending_bpm, None
        self._rebuild_table()

        self.session_id += 1
        self._players = {p: PlayerState(p) for p in self.players}
        self.scored.clear()
        self.bonus.clear()
        self.last_stats = None
        self.paused_at = None
        self.total_paused_ms = 0.0
        self.end_deadline = None
        self._miss_detector = None

        self._set_state(SessionState.COUNTING_IN)
        self.metronome.bpm = self.bpm
        self.metronome.beats_per_bar = self.pattern.time_signature.numerator
        self.metronome.start(self.scheduler, f"{self._group}:metronome", self.events.beat)

        beats = self.config.count_in_beats
        if beats <= 0:
            self._begin_playing()
            return
        self.count_in_beat = 1
        self.events.count_in(beats)
        self.scheduler.every(self.beat_ms, self._count_in_tick, key=f"{self._group}:count-in")

    def _count_in_tick(self) -> None:
        self.count_in_beat += 1
        beats = self.config.count_in_beats
        if self.count_in_beat <= beats:
            self.events.count_in(beats - self.count_in_beat + 1)
        else:
            self._begin_playing()

    def _begin_playing(self) -> None:
        self.scheduler.cancel(f"{self._group}:count-in")
        self.start_time = self.clock.now_ms()
        self.paused_at = None
        self.total_paused_ms = 0.0
        self._rebuild_table()
        end = pattern_end_time(self.pattern, self.expected, self.beat_ms, self.config.lead_in_ms)
        self.end_deadline = self.start_time + end
        self._miss_detector = MissDetector(
            self.pattern,
            self.expected,
            self.beat_ms,
            self.players,
            self.scored,
            on_miss=self._record_miss,
            miss_window_ms=self.config.miss_window_ms,
            good_ms=self.config.good_ms,
        )
        self.scheduler.every(
            self.config.miss_check_interval_ms, self._check_misses, key=f"{self._group}:miss"
        )
        self.scheduler.every(
            self.config.completion_check_interval_ms,
            self._check_completion,
            key=f"{self._group}:completion",
        )
        self._set_state(SessionState.PLAYING)
        logger.info(
            "Playing %r at %.0f BPM, %d notes, %.0fms",
            self.pattern.name, self.bpm, len(self.pattern), end,
        )

    def stop(self) -> None:
        if self.state == SessionState.IDLE:
            logger.debug("stop() ignored, session already idle")
            return
        if self.state == SessionState.COMPLETE:
            self._set_state(SessionState.IDLE)
            return

        self._cancel_timers()
        self._flush_bonuses()
        self.paused_at = None
        self.last_stats = self._build_stats(authoritative=False)
        self._set_state(SessionState.IDLE)

    def visibility_changed(self, hidden: bool) -> None:
        if hidden:
            if self.state != SessionState.PLAYING:
                logger.debug("Hidden while %s, nothing to pause", self.state.name)
                return
            self.paused_at = self.clock.now_ms()
            self.scheduler.suspend_group(self._group)
            self._set_state(SessionState.PAUSED)
            return

        if self.state != SessionState.PAUSED or self.paused_at is None:
            logger.debug("Visible while %s, nothing to resume", self.state.name)
            return
        pause_ms = self.clock.now_ms() - self.paused_at
        self.paused_at = None
        self.start_time += pause_ms
        if self.end_deadline is not None:
            self.end_deadline += pause_ms
        self.total_paused_ms += pause_ms
        self.scheduler.resume_group(self._group, pause_ms)
        logger.info(
            "Resumed after %.0fms pause (total paused %.0fms)", pause_ms, self.total_paused_ms
        )
        self._set_state(SessionState.PLAYING)

    def _set_state(self, state: SessionState) -> None:
        if state == self.state:
            return
        logger.info("Session %d: %s -> %s", self.session_id, self.state.name, state.name)
        self.state = state
        self.events.session_state_change(state)

    def _cancel_timers(self) -> None:
        self.metronome.stop()
        self.scheduler.cancel_group(self._group)

    # -- periodic checks -------------------------------------------------

    def _check_misses(self) -> None:
        if self.state != SessionState.PLAYING or self._miss_detector is None:
            return
        now = self.relative_time()
        self._resolve_open_groups(now)
        self._miss_detector.check(now)

    def _check_completion(self) -> None:
        if self.state != SessionState.PLAYING or self.end_deadline is None:
            return
        if self.clock.now_ms() >= self.end_deadline:
            self._complete()

    def _complete(self) -> None:
        now = self.relative_time()
        for st in self._players.values():
            if st.pending_group is not None:
                self._resolve_group(st, now)
        self._flush_bonuses()
        if self._miss_detector is not None:
            self._miss_detector.flush()
        self._cancel_timers()
        self.last_stats = self._build_stats(authoritative=True, now=now)
        self._set_state(SessionState.COMPLETE)
        for stats in self.last_stats.players.values():
            logger.info(
                "%s finished: score %d, %d%% accuracy", stats.player, stats.score, stats.accuracy_pct
            )

    def _flush_bonuses(self) -> None:
        for player in self.players:
            if self.bonus.pending(player):
                self.bonus.apply_previous(player, self.pattern, self.scored, self.beat_ms)

    # -- input -----------------------------------------------------------

    def input_press(self, player: str, timestamp_ms: float | None = None) -> NoteResult | None:
        """Register a press. Returns the note result if the press scored a note."""
        st = self._players.get(player)
        if st is None:
            logger.debug("Press from unknown player %r ignored", player)
            return None
        if self.state != SessionState.PLAYING:
            logger.debug("Press from %s ignored while %s", player, self.state.name)
            return None

        t = self.relative_time(timestamp_ms)
        if st.last_tap is not None and abs(t - st.last_tap) < self.config.debounce_ms:
            logger.debug("Duplicate press from %s at %.0fms ignored", player, t)
            return None
        st.last_tap = t

        if st.holds and st.holds[-1].is_open:
            self._end_hold(st, t)
        st.hold_start = t
        self.bonus.apply_previous(player, self.pattern, self.scored, self.beat_ms)
        st.holds.append(HoldPeriod(down=t))

        violation = find_rest_violation(
            t, self.pattern, self.expected, self.beat_ms, self.config.rest_tolerance_ms
        )
        if violation is not None:
            st.rest_violations += 1
            st.score -= self.config.rest_penalty
            logger.info(
                "%s pressed during rest %d (%+.0fms)", player, violation.rest_index, violation.offset_ms
            )
            self.events.rest_violation(player, violation.rest_index, violation.offset_ms)
            return None

        result = score_input(
            player, t, self.expected, self.pattern, self.scored,
            self.config.perfect_ms, self.config.good_ms,
        )
        if result is None:
            logger.debug("Press from %s at %.0fms has nothing to hit", player, t)
            return None
        if self.scored.flagged(player, result.note_index):
            logger.debug(
                "Press from %s at %.0fms is too late for note %d, already missed",
                player, t, result.note_index,
            )
            return None
        if not self._record(player, result):
            return None

        group = self._tied_groups.get(result.note_index)
        if group is not None:
            st.pending_group = group
            st.pending_result = result
            if result.grade == HitGrade.MISS:
                self._resolve_group(st, t)
        return result

    def input_release(self, player: str, timestamp_ms: float | None = None) -> None:
        st = self._players.get(player)
        if st is None:
            logger.debug("Release from unknown player %r ignored", player)
            return
        if self.state not in (SessionState.PLAYING, SessionState.PAUSED) or st.hold_start is None:
            logger.debug("Release from %s without a matching press ignored", player)
            return

        t = self.relative_time(timestamp_ms)
        self.bonus.record_release(player, t - st.hold_start)
        self._end_hold(st, t)

    def _end_hold(self, st: PlayerState, t: float) -> None:
        st.hold_start = None
        if st.holds and st.holds[-1].is_open:
            st.holds[-1].up = t
        if st.pending_group is not None:
            self._resolve_group(st, t)

    # -- scoring bookkeeping ---------------------------------------------

    def _record(self, player: str, result: NoteResult) -> bool:
        if not self.scored.add(player, result.note_index, result.grade):
            logger.debug("%s already scored note %d", player, result.note_index)
            return False
        st = self._players[player]
        if result.grade == HitGrade.PERFECT:
            st.perfect += 1
            st.score += self.config.perfect_points
        elif result.grade == HitGrade.GOOD:
            st.good += 1
            st.score += self.config.good_points
        else:
            st.missed += 1
        logger.debug(
            "%s: note %d %s (%+.0fms)", player, result.note_index, result.grade.value, result.offset_ms
        )
        self.events.note_scored(player, result.note_index, result.grade, result.timing_error_ms)
        return True

    def _record_miss(self, player: str, note_index: int) -> None:
        self._players[player].missed += 1
        self.events.miss(player, note_index)

    def _resolve_open_groups(self, now: float) -> None:
        for st in self._players.values():
            group = st.pending_group
            if group is None:
                continue
            end = group_end_time(group, self.pattern, self.expected, self.beat_ms)
            if now >= end - self.config.good_ms:
                self._resolve_group(st, now)

    def _resolve_group(self, st: PlayerState, release_time: float) -> None:
        """Settle the tied-over notes of a pending group from how long it was held."""
        group, start = st.pending_group, st.pending_result
        st.pending_group = None
        st.pending_result = None
        if group is None or start is None:
            return
        end = group_end_time(group, self.pattern, self.expected, self.beat_ms)
        held = start.grade != HitGrade.MISS and release_time >= end - self.config.good_ms
        for idx in range(group.start + 1, group.end + 1):
            self._record(
                st.player,
                NoteResult(
                    note_index=idx,
                    grade=start.grade if held else HitGrade.MISS,
                    timing_error_ms=start.timing_error_ms if held else abs(release_time - end),
                    offset_ms=start.offset_ms if held else release_time - end,
                ),
            )

    def _award_bonus(self, player: str, note_index: int, points: int) -> None:
        self._players[player].score += points
        self.events.bonus_awarded(player, note_index, points)

    # -- results ---------------------------------------------------------

    def player_stats(self, player: str) -> PlayerStats:
        st = self._players.get(player)
        return st.to_stats() if st is not None else PlayerStats(player=player)

    def holds(self, player: str) -> list[HoldPeriod]:
        st = self._players.get(player)
        return list(st.holds) if st is not None else []

    def _build_stats(self, authoritative: bool, now: float | None = None) -> SessionStats:
        stats = SessionStats(pattern_name=self.pattern.name, total_paused_ms=self.total_paused_ms)
        for player, st in self._players.items():
            stats.players[player] = st.to_stats()
            if not authoritative:
                continue
            results = score_pattern(
                self.pattern, st.holds, self.expected, self.beat_ms,
                self.relative_time() if now is None else now,
                self.config.perfect_ms, self.config.good_ms,
            )
            stats.results[player] = results
            recomputed = get_stats(results, player, self.config.perfect_points, self.config.good_points)
            stats.recomputed[player] = recomputed
            live = (st.perfect, st.good, st.missed)
            if live != (recomputed.perfect, recomputed.good, recomputed.missed):
                logger.warning(
                    "%s: live perfect/good/miss %d/%d/%d disagrees with recomputed %d/%d/%d",
                    player, *live, recomputed.perfect, recomputed.good, recomputed.missed,
                )
        return stats
