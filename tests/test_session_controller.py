# tests/test_session_controller.py
# Session state machine, elapsed accrual, auto-pause by fatigue or time
# cap, intensity restarts and snapshot restore.

import pytest

from core.storage.kv_store import MemoryStore
from core.storage.metrics_log import MetricsLog
from app.analytics.baseline import BaselineStore
from app.analytics.tracker import FatigueTracker
from app.controller.session import SessionController, SessionStatus, SessionSnapshot, SNAPSHOT_KEY
from app.policy.intervention import Reason
from conftest import ManualScheduler, ManualInputSource, FailingStore

WALL0 = 1_700_000_000.0


def make_session(intensity=5, store=None, sched=None, inputs=None, metrics_log=None, wall=None):
    sched = sched or ManualScheduler()
    inputs = inputs or ManualInputSource()
    tracker = FatigueTracker(inputs, sched, BaselineStore(MemoryStore()))
    seen = []
    ctl = SessionController(
        tracker, sched,
        store=store if store is not None else MemoryStore(),
        metrics_log=metrics_log,
        on_insight=seen.append,
        wall_clock=wall or (lambda: WALL0 + sched.now),
        intensity=intensity,
    )
    return ctl, sched, inputs, seen


def feed_window(inputs, sched, k):
    """One 5s window of steady 250ms typing plus a jittery zigzag pointer."""
    for j in range(20):
        inputs.key_down(k * 5000.0 + j * 250.0)
    for x, y in [(0, 0), (100, 0), (100, 100), (0, 100), (0, 0), (100, 0)]:
        inputs.move(x, y)
    sched.advance(5)


def test_start_pause_resume_stop_reset():
    ctl, sched, _, _ = make_session()
    assert ctl.status is SessionStatus.IDLE
    assert ctl.start()
    assert ctl.status is SessionStatus.RUNNING
    assert ctl.tracker.tracking
    sched.advance(3)
    assert ctl.elapsed_s == 3

    assert ctl.pause()
    assert not ctl.tracker.tracking
    sched.advance(10)
    assert ctl.elapsed_s == 3

    assert ctl.resume()
    sched.advance(2)
    assert ctl.elapsed_s == 5

    assert ctl.stop()
    assert ctl.status is SessionStatus.COMPLETED
    assert sched.active == 0

    ctl.reset()
    assert ctl.status is SessionStatus.IDLE
    assert ctl.elapsed_s == 0


def test_invalid_transitions_are_noops():
    ctl, _, _, _ = make_session()
    assert not ctl.pause()
    assert not ctl.resume()
    assert not ctl.stop()
    ctl.start()
    assert not ctl.start()
    assert ctl.tracker.tracking and ctl.scheduler.active == 2


def test_critical_pause_at_intensity_10():
    ctl, sched, inputs, seen = make_session(intensity=10)
    ctl.start()
    feed_window(inputs, sched, 0)
    assert ctl.status is SessionStatus.PAUSED
    d = ctl.last_intervention
    assert d.reason is Reason.FATIGUE
    assert d.threshold == 65
    assert d.score >= 65
    assert ctl.history and ctl.history[-1].fatigue_score == d.score
    assert seen[-1].recommend_recovery
    assert not ctl.tracker.tracking


def test_same_input_never_pauses_at_intensity_1():
    ctl, sched, inputs, _ = make_session(intensity=1)
    ctl.start()
    for k in range(6):
        feed_window(inputs, sched, k)
    assert ctl.status is SessionStatus.RUNNING
    assert ctl.last_intervention is None
    assert 0 < ctl.current_metrics.fatigue_score < 100


def test_time_cap_pause_and_fresh_start():
    ctl, sched, _, seen = make_session(intensity=10)
    assert ctl.duration_s == 5 * 60
    ctl.start()
    sched.advance(299)
    assert ctl.status is SessionStatus.RUNNING
    sched.advance(1)
    assert ctl.status is SessionStatus.PAUSED
    assert ctl.last_intervention.reason is Reason.TIME_CAP
    assert "recovery" in seen[-1].message.lower()
    # the cap is spent: starting again resets instead of resuming
    assert not ctl.start()
    assert ctl.status is SessionStatus.IDLE and ctl.elapsed_s == 0


def test_intensity_change_restarts_tracking():
    ctl, sched, inputs, seen = make_session(intensity=5)
    ctl.start()
    assert ctl.tracker.intensity == 5
    assert ctl.set_intensity(15) == 10
    assert ctl.tracker.intensity == 10
    assert ctl.tracker.tracking
    assert len(inputs.subs) == 1
    assert sched.names() == ["fatigue-window", "session-clock"]
    assert ctl.duration_s == 5 * 60
    assert "10/10" in seen[-1].message


def test_intensity_change_while_idle_does_not_track():
    ctl, _, _, _ = make_session()
    assert ctl.set_intensity(0) == 1
    assert not ctl.tracker.tracking
    assert ctl.duration_s == 70 * 60


def test_snapshot_restore_reconstructs_running_elapsed():
    store = MemoryStore()
    a, sched_a, _, _ = make_session(intensity=7, store=store)
    a.start()
    sched_a.advance(42)

    sched_b = ManualScheduler()
    b, _, _, _ = make_session(store=store, sched=sched_b, wall=lambda: WALL0 + 100)
    assert b.restore()
    assert b.status is SessionStatus.RUNNING
    assert b.elapsed_s == 100
    assert b.intensity == 7
    assert b.session_id == a.session_id
    assert b.tracker.tracking and b.tracker.intensity == 7
    sched_b.advance(1)
    assert b.elapsed_s == 101


def test_snapshot_restore_paused_session():
    store = MemoryStore()
    a, sched_a, _, _ = make_session(store=store)
    a.start()
    sched_a.advance(12)
    a.pause()

    b, _, _, _ = make_session(store=store, wall=lambda: WALL0 + 10_000)
    assert b.restore()
    assert b.status is SessionStatus.PAUSED
    assert b.elapsed_s == 12
    assert not b.tracker.tracking


def test_corrupt_or_missing_snapshot_is_ignored():
    store = MemoryStore()
    ctl, _, _, _ = make_session(store=store)
    assert not ctl.restore()
    store.set(SNAPSHOT_KEY, "{not json")
    assert not ctl.restore()
    assert ctl.status is SessionStatus.IDLE


def test_snapshot_json_roundtrip():
    snap = SessionSnapshot(SessionStatus.RUNNING, 30, 3300, 5, "abc", WALL0)
    assert SessionSnapshot.from_json(snap.to_json()) == snap


def test_storage_failure_never_blocks_session():
    ctl, sched, _, _ = make_session(store=FailingStore())
    assert ctl.start()
    sched.advance(5)
    assert ctl.status is SessionStatus.RUNNING
    assert ctl.current_metrics is not None
    assert not ctl.restore()


def test_every_window_is_logged_for_the_session(tmp_path):
    log = MetricsLog(str(tmp_path / "metrics.sqlite3"))
    ctl, sched, _, _ = make_session(metrics_log=log)
    ctl.start()
    sched.advance(15)
    rows = log.for_session(ctl.session_id)
    assert len(rows) == 3
    assert all(r["fatigue_score"] == 5 for r in rows)


def test_snapshot_with_garbage_anchor_is_ignored():
    store = MemoryStore()
    store.set(
        SNAPSHOT_KEY,
        '{"status":"running","elapsed_s":30,"duration_s":3300,"intensity":5,'
        '"session_id":"abc","anchor_wall_s":"x"}',
    )
    ctl, _, _, _ = make_session(store=store)
    assert not ctl.restore()
    assert ctl.status is SessionStatus.IDLE
    assert not ctl.tracker.tracking
