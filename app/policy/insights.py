from __future__ import annotations
import time
from dataclasses import dataclass, field
from enum import Enum

from app.policy.intervention import Intervention, Reason

class InsightKind(Enum):
    SUGGESTION = "suggestion"
    WARNING = "warning"
    KUDOS = "kudos"

@dataclass(frozen=True)
class Insight:
    kind: InsightKind
    message: str
    timestamp: float = field(default_factory=time.time)
    recommend_recovery: bool = False

def ready() -> Insight:
    return Insight(InsightKind.SUGGESTION, "Ready to initiate Deep Work sequence.")

def started() -> Insight:
    return Insight(InsightKind.SUGGESTION, "Optimizing focus...")

def paused_by_user() -> Insight:
    return Insight(InsightKind.SUGGESTION, "Session paused.")

def completed(elapsed_s: float) -> Insight:
    mins = int(elapsed_s // 60)
    return Insight(InsightKind.KUDOS, f"Session complete: {mins} min of focused work banked.")

def intensity_changed(intensity: int) -> Insight:
    return Insight(InsightKind.SUGGESTION, f"Focus Intensity set to {intensity}/10. Fatigue detection threshold adjusted.")

def for_intervention(decision: Intervention) -> Insight:
    if decision.reason is Reason.TIME_CAP:
        return Insight(
            InsightKind.SUGGESTION,
            "Optimal focus window utilized. Initiating recovery sequence.",
            recommend_recovery=True,
        )
    if decision.reason is Reason.FATIGUE:
        return Insight(
            InsightKind.WARNING,
            f"Critical fatigue detected ({decision.score}%). Session paused based on "
            f"Intensity {decision.intensity}/10 threshold of {decision.threshold}%.",
            recommend_recovery=True,
        )
    raise ValueError("no insight for a decision that did not fire")
