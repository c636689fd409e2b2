# app/analytics/sampler.py
from __future__ import annotations
import math
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from app.analytics.config import FatigueConfig

@dataclass
class RawInputSample:
    """Counters accumulated over one window. Never persisted."""
    key_latencies_ms: List[float] = field(default_factory=list)
    pointer_distance_px: float = 0.0
    pointer_move_count: int = 0
    pointer_direction_changes: int = 0

    @property
    def empty(self) -> bool:
        return not self.key_latencies_ms and self.pointer_move_count == 0

class InputSampler:
    """
    Turns keydown / pointer-move events into RawInputSample counters, O(1) per event.

    The "previous" references (last keydown time, last pointer position and
    angle) survive a window drain so a keystroke pair straddling the boundary
    still yields one latency. Only reset() forgets them.
    """
    def __init__(self, config: Optional[FatigueConfig] = None):
        self.cfg = config or FatigueConfig()
        self._sample = RawInputSample()
        self._last_key_ms: Optional[float] = None
        self._last_pos: Optional[Tuple[float, float]] = None
        self._last_angle: Optional[float] = None

    @property
    def sample(self) -> RawInputSample:
        return self._sample

    def on_key_down(self, t_ms: float) -> None:
        if self._last_key_ms is not None:
            dt = t_ms - self._last_key_ms
            cap = self.cfg.max_latency_ms
            if dt >= 0 and (cap is None or dt < cap):
                self._sample.key_latencies_ms.append(dt)
        self._last_key_ms = t_ms

    def on_pointer_move(self, x: float, y: float) -> None:
        s = self._sample
        s.pointer_move_count += 1
        if self._last_pos is not None:
            dx = x - self._last_pos[0]
            dy = y - self._last_pos[1]
            dist = math.hypot(dx, dy)
            s.pointer_distance_px += dist
            if dist > self.cfg.pointer_noise_floor_px:
                angle = math.atan2(dy, dx)
                if self._last_angle is not None and abs(angle - self._last_angle) > self.cfg.direction_change_rad:
                    s.pointer_direction_changes += 1
                self._last_angle = angle
        self._last_pos = (x, y)

    def drain(self) -> RawInputSample:
        """Hand over the current window's counters and start a fresh one."""
        out, self._sample = self._sample, RawInputSample()
        return out

    def reset(self) -> None:
        self._sample = RawInputSample()
        self._last_key_ms = None
        self._last_pos = None
        self._last_angle = None
