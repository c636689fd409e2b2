# tests/test_sampler.py
# Covers keystroke latency capture, pointer distance / direction-change
# counting with the 5px noise floor, and drain vs reset semantics.

import math
import pytest

from app.analytics.config import FatigueConfig
from app.analytics.sampler import InputSampler


def test_first_key_has_no_latency():
    s = InputSampler()
    s.on_key_down(1000.0)
    assert s.sample.key_latencies_ms == []
    s.on_key_down(1100.0)
    s.on_key_down(1250.0)
    assert s.sample.key_latencies_ms == [100.0, 150.0]


def test_pointer_distance_and_direction_change():
    s = InputSampler()
    s.on_pointer_move(0, 0)
    s.on_pointer_move(10, 0)
    s.on_pointer_move(10, 10)
    sample = s.sample
    assert sample.pointer_move_count == 3
    assert sample.pointer_distance_px == pytest.approx(20.0)
    assert sample.pointer_direction_changes == 1


def test_small_moves_count_distance_but_not_direction():
    s = InputSampler()
    pts = [(0, 0), (3, 0), (3, 3), (0, 3), (0, 0)]
    for x, y in pts:
        s.on_pointer_move(x, y)
    assert s.sample.pointer_move_count == 5
    assert s.sample.pointer_distance_px == pytest.approx(12.0)
    assert s.sample.pointer_direction_changes == 0


def test_exactly_45_degrees_is_not_a_change():
    s = InputSampler()
    for x, y in [(0, 0), (10, 0), (20, 10)]:
        s.on_pointer_move(x, y)
    assert s.sample.pointer_direction_changes == 0


def test_zigzag_counts_each_sharp_turn():
    s = InputSampler()
    for x, y in [(0, 0), (100, 0), (100, 100), (0, 100), (0, 0), (100, 0)]:
        s.on_pointer_move(x, y)
    assert s.sample.pointer_direction_changes == 4
    assert s.sample.pointer_distance_px == pytest.approx(500.0)


def test_drain_keeps_previous_key_reference():
    s = InputSampler()
    s.on_key_down(0.0)
    s.on_key_down(100.0)
    first = s.drain()
    assert first.key_latencies_ms == [100.0]
    assert s.sample.empty
    s.on_key_down(300.0)
    assert s.drain().key_latencies_ms == [200.0]


def test_reset_forgets_previous_references():
    s = InputSampler()
    s.on_key_down(0.0)
    s.on_pointer_move(0, 0)
    s.reset()
    s.on_key_down(500.0)
    s.on_pointer_move(50, 0)
    assert s.sample.key_latencies_ms == []
    assert s.sample.pointer_distance_px == 0.0
    assert s.sample.pointer_move_count == 1


def test_optional_latency_cap_drops_long_pauses():
    s = InputSampler(FatigueConfig(max_latency_ms=2000))
    for t in (0.0, 2500.0, 2600.0):
        s.on_key_down(t)
    assert s.sample.key_latencies_ms == [100.0]


def test_custom_angle_threshold():
    s = InputSampler(FatigueConfig(direction_change_rad=math.pi))
    for x, y in [(0, 0), (100, 0), (100, 100), (0, 100)]:
        s.on_pointer_move(x, y)
    assert s.sample.pointer_direction_changes == 0
