from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

# Critical fatigue score per intensity. Higher intensity stops earlier;
# at 3 and below the score can never trip it, only the time cap or the user.
INTENSITY_THRESHOLDS: dict[int, int] = {
    10: 65,
    9: 70,
    8: 75,
    7: 80,
    6: 85,
    5: 90,
    4: 95,
    3: 100,
    2: 100,
    1: 100,
}
DEFAULT_THRESHOLD = 90

# Maximum session length in minutes before a recovery break, independent of score.
INTENSITY_TIME_CAPS: dict[int, float] = {
    1: 70,
    2: 80,
    3: 90,
    4: 50,
    5: 55,
    6: 60,
    7: 65,
    8: 30,
    9: 35,
    10: 5,
}
DEFAULT_TIME_CAP_MIN = 60

class Reason(Enum):
    NONE = "none"
    FATIGUE = "fatigue"
    TIME_CAP = "time_cap"

@dataclass(frozen=True)
class Intervention:
    reason: Reason
    score: int
    intensity: Any
    threshold: int
    time_cap_s: float
    elapsed_s: float

    @property
    def fired(self) -> bool:
        return self.reason is not Reason.NONE

    @property
    def recommend_recovery(self) -> bool:
        return self.fired

def critical_threshold(intensity: Any) -> int:
    return INTENSITY_THRESHOLDS.get(intensity, DEFAULT_THRESHOLD) if isinstance(intensity, int) else DEFAULT_THRESHOLD

def time_cap_minutes(intensity: Any) -> float:
    return INTENSITY_TIME_CAPS.get(intensity, DEFAULT_TIME_CAP_MIN) if isinstance(intensity, int) else DEFAULT_TIME_CAP_MIN

def time_cap_seconds(intensity: Any) -> float:
    return time_cap_minutes(intensity) * 60

def evaluate(score: Optional[int], intensity: Any, elapsed_s: float, running: bool = True) -> Intervention:
    """
    Decide whether the session should pause. Fatigue wins over the time cap
    when both are due; nothing fires unless the session is running.
    A missing score counts as 0.
    """
    s = int(score or 0)
    threshold = critical_threshold(intensity)
    cap_s = time_cap_seconds(intensity)
    reason = Reason.NONE
    if running:
        if s >= threshold:
            reason = Reason.FATIGUE
        elif elapsed_s >= cap_s:
            reason = Reason.TIME_CAP
    return Intervention(
        reason=reason,
        score=s,
        intensity=intensity,
        threshold=threshold,
        time_cap_s=cap_s,
        elapsed_s=elapsed_s,
    )
