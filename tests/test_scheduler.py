"""Tests for the cooperative periodic scheduler."""

import pytest

from conftest import FakeClock

from rhythmtap.scheduler import MAX_CATCH_UP, Scheduler


def test_task_fires_every_interval():
    clock = FakeClock(0)
    sched = Scheduler(clock)
    calls = []
    sched.every(100, lambda: calls.append(clock.now), key="g:a")

    assert sched.run_pending() == 0
    clock.advance(100)
    assert sched.run_pending() == 1
    clock.advance(50)
    sched.run_pending()
    clock.advance(50)
    sched.run_pending()
    assert calls == [100, 200]


def test_immediate_task_fires_on_first_run():
    clock = FakeClock(0)
    sched = Scheduler(clock)
    calls = []
    sched.every(100, lambda: calls.append("x"), key="g:a", immediate=True)
    sched.run_pending()
    assert calls == ["x"]


def test_late_run_catches_up_in_deadline_order():
    clock = FakeClock(0)
    sched = Scheduler(clock)
    order = []
    sched.every(100, lambda: order.append("slow"), key="g:slow")
    sched.every(30, lambda: order.append("fast"), key="g:fast")
    clock.advance(100)
    assert sched.run_pending() == 4
    assert order == ["fast", "fast", "fast", "slow"]


def test_catch_up_is_bounded():
    clock = FakeClock(0)
    sched = Scheduler(clock)
    sched.every(1, lambda: None, key="g:a")
    clock.advance(MAX_CATCH_UP * 5)
    assert sched.run_pending() == MAX_CATCH_UP


def test_non_positive_interval_rejected():
    sched = Scheduler(FakeClock())
    with pytest.raises(ValueError):
        sched.every(0, lambda: None, key="g:a")


def test_same_key_replaces_task():
    clock = FakeClock(0)
    sched = Scheduler(clock)
    calls = []
    sched.every(100, lambda: calls.append("old"), key="g:a")
    sched.every(100, lambda: calls.append("new"), key="g:a")
    clock.advance(100)
    sched.run_pending()
    assert calls == ["new"]


def test_cancel_group_only_touches_its_prefix():
    clock = FakeClock(0)
    sched = Scheduler(clock)
    sched.every(10, lambda: None, key="session-1:miss")
    sched.every(10, lambda: None, key="session-1:completion")
    sched.every(10, lambda: None, key="session-10:miss")
    assert sched.cancel_group("session-1") == 2
    assert sched.pending_keys() == ["session-10:miss"]


def test_callback_can_cancel_its_own_group():
    clock = FakeClock(0)
    sched = Scheduler(clock)
    calls = []

    def stop():
        calls.append("stop")
        sched.cancel_group("g")

    sched.every(10, stop, key="g:a")
    sched.every(10, lambda: calls.append("b"), key="g:b")
    clock.advance(50)
    sched.run_pending()
    assert calls == ["stop"]
    assert not sched.is_scheduled("g:b")


def test_suspended_tasks_resume_with_shifted_deadline():
    clock = FakeClock(0)
    sched = Scheduler(clock)
    calls = []
    sched.every(100, lambda: calls.append(clock.now), key="g:a")
    clock.advance(40)
    sched.suspend_group("g")
    clock.advance(1000)
    assert sched.run_pending() == 0

    sched.resume_group("g", shift_ms=1000)
    clock.advance(50)
    sched.run_pending()
    assert calls == []
    clock.advance(10)
    sched.run_pending()
    assert calls == [1100]
