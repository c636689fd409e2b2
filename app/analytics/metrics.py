# app/analytics/metrics.py
from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional
import time
import numpy as np

from app.analytics.config import FatigueConfig
from app.analytics.sampler import RawInputSample

@dataclass(frozen=True)
class WindowFeatures:
    mean_latency_ms: float
    std_dev_latency_ms: float
    latency_count: int
    pointer_distance_px: float
    pointer_move_count: int
    mouse_velocity_px_s: float
    erratic_score: int
    typing_speed_wpm: float

@dataclass(frozen=True)
class FatigueMetrics:
    """One emitted window. `timestamp` is wall-clock epoch milliseconds."""
    timestamp: int
    keystroke_latency_ms: float
    typing_speed_wpm: float
    mouse_distance_px: float
    mouse_velocity_px_per_sec: float
    erratic_mouse_movement: bool
    fatigue_score: int

    def to_record(self) -> Dict[str, Any]:
        return asdict(self)

def wall_ms() -> int:
    return int(time.time() * 1000)

def aggregate(sample: RawInputSample, config: Optional[FatigueConfig] = None) -> WindowFeatures:
    """
    Reduce one window of raw counters to a feature vector.
    - latency mean / sample std (ddof=1)
    - pointer velocity normalized to px/s by the nominal window length
    - WPM approximated as keystrokes / chars_per_word per minute
    """
    cfg = config or FatigueConfig()
    n = len(sample.key_latencies_ms)
    if n:
        lat = np.asarray(sample.key_latencies_ms, dtype=float)
        mean = float(lat.mean())
        std = float(lat.std(ddof=1)) if n > 1 else 0.0
    else:
        mean, std = 0.0, 0.0

    velocity = sample.pointer_distance_px * (1000.0 / cfg.window_size_ms)
    wpm = n * (60000.0 / cfg.window_size_ms) / cfg.chars_per_word

    return WindowFeatures(
        mean_latency_ms=mean,
        std_dev_latency_ms=std,
        latency_count=n,
        pointer_distance_px=sample.pointer_distance_px,
        pointer_move_count=sample.pointer_move_count,
        mouse_velocity_px_s=velocity,
        erratic_score=sample.pointer_direction_changes,
        typing_speed_wpm=wpm,
    )
