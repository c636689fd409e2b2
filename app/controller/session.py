# app/controller/session.py
from __future__ import annotations
import json
import time
import uuid
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Callable, List, Optional
import structlog

from app.analytics.config import DEFAULT_INTENSITY, clamp_intensity
from app.analytics.metrics import FatigueMetrics
from app.analytics.tracker import FatigueTracker, Scheduler, Cancellable
from app.policy import insights
from app.policy.insights import Insight
from app.policy.intervention import Intervention, evaluate, time_cap_seconds
from core.storage.kv_store import KeyValueStore
from core.storage.metrics_log import MetricsLog

log = structlog.get_logger()

SNAPSHOT_KEY = "session.snapshot"

class SessionStatus(Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"

@dataclass
class SessionSnapshot:
    status: SessionStatus
    elapsed_s: int
    duration_s: int
    intensity: int
    session_id: Optional[str] = None
    anchor_wall_s: Optional[float] = None  # wall time at which elapsed was 0 (RUNNING only)

    def to_json(self) -> str:
        d = asdict(self)
        d["status"] = self.status.value
        return json.dumps(d, separators=(",", ":"))

    @classmethod
    def from_json(cls, raw: str) -> "SessionSnapshot":
        d = json.loads(raw)
        return cls(
            status=SessionStatus(d["status"]),
            elapsed_s=int(d["elapsed_s"]),
            duration_s=int(d["duration_s"]),
            intensity=clamp_intensity(d["intensity"]),
            session_id=d.get("session_id"),
            anchor_wall_s=float(d["anchor_wall_s"]) if d.get("anchor_wall_s") is not None else None,
        )

class SessionController:
    """
    Owns session status and elapsed time, and ties fatigue tracking to it:
    tracking and the one-second clock run exactly while status is RUNNING.
    Every metrics window and every second re-run the intervention policy;
    a firing decision pauses the session and surfaces an insight.
    """
    def __init__(
        self,
        tracker: FatigueTracker,
        scheduler: Scheduler,
        store: Optional[KeyValueStore] = None,
        metrics_log: Optional[MetricsLog] = None,
        on_insight: Optional[Callable[[Insight], None]] = None,
        wall_clock: Callable[[], float] = time.time,
        intensity: int = DEFAULT_INTENSITY,
        duration_s: Optional[int] = None,
    ):
        self.tracker = tracker
        self.scheduler = scheduler
        self.store = store
        self.metrics_log = metrics_log
        self.on_insight = on_insight
        self.wall_clock = wall_clock

        self.status = SessionStatus.IDLE
        self.elapsed_s = 0
        self.duration_s = int(duration_s) if duration_s is not None else int(time_cap_seconds(clamp_intensity(intensity)))
        self.intensity = clamp_intensity(intensity)
        self.session_id: Optional[str] = None
        self.current_metrics: Optional[FatigueMetrics] = None
        self.history: List[FatigueMetrics] = []
        self.last_intervention: Optional[Intervention] = None
        self.insight: Insight = insights.ready()
        self._ticker: Optional[Cancellable] = None

    # ---- user commands ----

    def start(self) -> bool:
        """Start from IDLE, resume from PAUSED. A finished session resets to IDLE instead."""
        if self.status is SessionStatus.RUNNING:
            return False
        if self.status is SessionStatus.COMPLETED or self.elapsed_s >= self.duration_s:
            self.reset()
            return False
        if self.status is SessionStatus.IDLE:
            self.session_id = uuid.uuid4().hex
        self.current_metrics = None
        self._set_status(SessionStatus.RUNNING)
        self._emit(insights.started())
        return True

    def resume(self) -> bool:
        if self.status is not SessionStatus.PAUSED:
            return False
        return self.start()

    def pause(self) -> bool:
        if self.status is not SessionStatus.RUNNING:
            return False
        self._set_status(SessionStatus.PAUSED)
        self._emit(insights.paused_by_user())
        return True

    def stop(self) -> bool:
        if self.status not in (SessionStatus.RUNNING, SessionStatus.PAUSED):
            return False
        self._set_status(SessionStatus.COMPLETED)
        self._emit(insights.completed(self.elapsed_s))
        return True

    def reset(self) -> None:
        self.elapsed_s = 0
        self.current_metrics = None
        self.session_id = None
        self._set_status(SessionStatus.IDLE)
        self._emit(insights.ready())

    def set_intensity(self, intensity) -> int:
        i = clamp_intensity(intensity)
        self.intensity = i
        self.duration_s = int(time_cap_seconds(i))
        if self.status is SessionStatus.RUNNING:
            # the sensitivity factor is fixed per tracking run
            self.tracker.stop_tracking()
            self.tracker.start_tracking(self._on_metrics, self.intensity)
        self._save_snapshot()
        self._emit(insights.intensity_changed(i))
        log.info("session.intensity", intensity=i, duration_s=self.duration_s, status=self.status.value)
        return i

    # ---- state machine ----

    def _set_status(self, new: SessionStatus) -> None:
        old = self.status
        if old is new:
            self._save_snapshot()
            return
        if old is SessionStatus.RUNNING:
            self._leave_running()
        self.status = new
        if new is SessionStatus.RUNNING:
            self._enter_running()
        self._save_snapshot()
        log.info("session.status", old=old.value, new=new.value, elapsed_s=self.elapsed_s, session=self.session_id)

    def _enter_running(self) -> None:
        self.tracker.start_tracking(self._on_metrics, self.intensity)
        if self._ticker is None:
            self._ticker = self.scheduler.call_every(1.0, self._on_second, name="session-clock")

    def _leave_running(self) -> None:
        if self._ticker is not None:
            self._ticker.cancel()
            self._ticker = None
        self.tracker.stop_tracking()

    # ---- callbacks ----

    def _on_second(self) -> None:
        if self.status is not SessionStatus.RUNNING:
            return
        self.elapsed_s += 1
        self._check_policy()

    def _on_metrics(self, metrics: FatigueMetrics) -> None:
        if self.status is not SessionStatus.RUNNING:
            return
        self.current_metrics = metrics
        if self.metrics_log is not None and self.session_id:
            self.metrics_log.append(self.session_id, metrics)
        self._check_policy()

    def _check_policy(self) -> None:
        score = self.current_metrics.fatigue_score if self.current_metrics else 0
        decision = evaluate(score, self.intensity, self.elapsed_s, running=self.status is SessionStatus.RUNNING)
        if not decision.fired:
            return
        self.last_intervention = decision
        self._set_status(SessionStatus.PAUSED)
        if self.current_metrics is not None:
            self.history.append(self.current_metrics)
        log.info(
            "session.autopause",
            reason=decision.reason.value,
            score=decision.score,
            intensity=decision.intensity,
            threshold=decision.threshold,
            elapsed_s=self.elapsed_s,
        )
        self._emit(insights.for_intervention(decision))

    def _emit(self, insight: Insight) -> None:
        self.insight = insight
        if self.on_insight:
            try:
                self.on_insight(insight)
            except Exception as e:
                log.warning("session.on_insight.error", err=str(e))

    # ---- persistence ----

    def snapshot(self) -> SessionSnapshot:
        anchor = self.wall_clock() - self.elapsed_s if self.status is SessionStatus.RUNNING else None
        return SessionSnapshot(
            status=self.status,
            elapsed_s=self.elapsed_s,
            duration_s=self.duration_s,
            intensity=self.intensity,
            session_id=self.session_id,
            anchor_wall_s=anchor,
        )

    def _save_snapshot(self) -> None:
        if self.store is None:
            return
        try:
            self.store.set(SNAPSHOT_KEY, self.snapshot().to_json())
        except Exception as e:
            log.warning("session.snapshot.save.error", err=str(e))

    def restore(self) -> bool:
        """
        Rebuild state from the stored snapshot. A RUNNING session gets its
        elapsed time back from the wall-clock anchor and resumes tracking.
        """
        if self.store is None or self.status is not SessionStatus.IDLE:
            return False
        try:
            raw = self.store.get(SNAPSHOT_KEY)
        except Exception as e:
            log.warning("session.snapshot.load.error", err=str(e))
            return False
        if not raw:
            return False
        try:
            snap = SessionSnapshot.from_json(raw)
        except (ValueError, KeyError, TypeError) as e:
            log.warning("session.snapshot.corrupt", err=str(e))
            return False

        self.elapsed_s = max(0, snap.elapsed_s)
        self.duration_s = snap.duration_s
        self.intensity = snap.intensity
        self.session_id = snap.session_id
        if snap.status is SessionStatus.RUNNING and snap.anchor_wall_s is not None:
            self.elapsed_s = max(self.elapsed_s, int(self.wall_clock() - snap.anchor_wall_s))
        if snap.status is SessionStatus.RUNNING:
            self._set_status(SessionStatus.RUNNING)
            self._check_policy()
        else:
            self.status = snap.status
        log.info("session.restore", status=self.status.value, elapsed_s=self.elapsed_s, intensity=self.intensity)
        return True
