# tests/test_tracker.py
# Tracker lifecycle (idempotent start/stop, cancellation) and per-window
# emission, driven by the manual scheduler / input source in conftest.

import pytest

from app.analytics.tracker import TrackerState


def keys_in(metrics):
    # typing_speed_wpm = keys * 12 / 5 for a 5s window
    return round(metrics.typing_speed_wpm * 5 / 12)


def test_start_is_idempotent(tracker, inputs, sched):
    got = []
    assert tracker.start_tracking(got.append, 5)
    assert not tracker.start_tracking(got.append, 5)
    assert len(inputs.subs) == 1
    assert sched.active == 1
    assert tracker.state is TrackerState.TRACKING


def test_stop_is_idempotent_and_releases_everything(tracker, inputs, sched):
    assert not tracker.stop_tracking()
    got = []
    tracker.start_tracking(got.append, 5)
    assert tracker.stop_tracking()
    assert not tracker.stop_tracking()
    assert inputs.subs == {}
    assert sched.active == 0
    sched.advance(30)
    assert got == []


def test_empty_window_still_emits(tracker, sched):
    got = []
    tracker.start_tracking(got.append, 5)
    sched.advance(5)
    assert len(got) == 1
    assert got[0].fatigue_score == 5
    assert keys_in(got[0]) == 0


def test_empty_window_scaled_by_intensity(tracker, sched):
    got = []
    tracker.start_tracking(got.append, 10)
    sched.advance(15)
    assert [m.fatigue_score for m in got] == [6, 6, 6]


def test_no_keystroke_lost_across_window_boundary(tracker, inputs, sched):
    got = []
    tracker.start_tracking(got.append, 5)
    for t in (1000, 2000, 3000, 4000):
        inputs.key_down(float(t))
    sched.advance(5)
    for t in (5500, 6000, 6500):
        inputs.key_down(float(t))
    sched.advance(5)
    assert len(got) == 2
    assert keys_in(got[0]) + keys_in(got[1]) == 7 - 1
    # the 4000 -> 5500 pair lands in the second window
    assert got[1].keystroke_latency_ms == pytest.approx((1500 + 500 + 500) / 3)


def test_stop_discards_partial_window(tracker, inputs, sched):
    got = []
    tracker.start_tracking(got.append, 5)
    for t in (0, 100, 200, 300):
        inputs.key_down(float(t))
    sched.advance(3)
    tracker.stop_tracking()
    tracker.start_tracking(got.append, 5)
    inputs.key_down(10_000.0)  # first key after restart: no latency
    sched.advance(5)
    assert len(got) == 1
    assert keys_in(got[0]) == 0


def test_windows_emit_once_per_interval(tracker, sched):
    got = []
    tracker.start_tracking(got.append, 5)
    sched.advance(4.9)
    assert got == []
    sched.advance(0.1)
    assert len(got) == 1
    sched.advance(20)
    assert len(got) == 5


def test_callback_errors_do_not_stop_tracking(tracker, sched):
    def boom(_m):
        raise RuntimeError("ui exploded")
    tracker.start_tracking(boom, 5)
    sched.advance(10)
    assert tracker.windows == 2
    assert tracker.tracking


def test_intensity_is_clamped(tracker):
    tracker.start_tracking(lambda m: None, 42)
    assert tracker.intensity == 10


def test_baseline_learned_from_clean_window(tracker, inputs, sched, kv):
    got = []
    tracker.start_tracking(got.append, 5)
    for j in range(10):
        inputs.key_down(1000.0 + j * 80)
    sched.advance(5)
    assert got[0].keystroke_latency_ms == 80.0
    assert float(kv.get("baseline.latency_ms")) == 80.0
    assert tracker.scorer.baseline.latency_baseline_ms == 80.0
