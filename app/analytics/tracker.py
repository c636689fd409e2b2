# app/analytics/tracker.py
from __future__ import annotations
from enum import Enum
from typing import Any, Callable, Optional, Protocol
import structlog

from app.analytics.config import FatigueConfig, clamp_intensity
from app.analytics.baseline import BaselineStore
from app.analytics.metrics import FatigueMetrics, aggregate
from app.analytics.sampler import InputSampler
from app.analytics.scorer import FatigueScorer

log = structlog.get_logger()

MetricsCallback = Callable[[FatigueMetrics], None]

class Cancellable(Protocol):
    def cancel(self) -> None: ...

class InputSource(Protocol):
    """Delivers keydown times (ms) and pointer positions (px) from one context."""
    def subscribe(self, on_key_down: Callable[[float], None], on_pointer_move: Callable[[float, float], None]) -> Any: ...
    def unsubscribe(self, token: Any) -> None: ...

class Scheduler(Protocol):
    def call_every(self, interval_s: float, fn: Callable[[], None], name: str = "") -> Cancellable: ...

class TrackerState(Enum):
    IDLE = "idle"
    TRACKING = "tracking"

class FatigueTracker:
    """
    Two-state machine (IDLE <-> TRACKING) around sampler, aggregator and scorer.

    start_tracking() subscribes to input and schedules the window tick;
    stop_tracking() releases both before returning and throws away the
    partial window. Both are idempotent. Each tick drains the sampler,
    scores the window and hands the metrics to the callback, including
    windows with no input at all.
    """
    def __init__(
        self,
        inputs: InputSource,
        scheduler: Scheduler,
        baselines: Optional[BaselineStore] = None,
        config: Optional[FatigueConfig] = None,
    ):
        self.cfg = config or FatigueConfig()
        self.inputs = inputs
        self.scheduler = scheduler
        self.sampler = InputSampler(self.cfg)
        self.scorer = FatigueScorer(baselines, self.cfg)

        self.state = TrackerState.IDLE
        self.intensity: Optional[int] = None
        self.windows = 0
        self._on_metrics: Optional[MetricsCallback] = None
        self._sub: Any = None
        self._timer: Optional[Cancellable] = None

    @property
    def tracking(self) -> bool:
        return self.state is TrackerState.TRACKING

    def start_tracking(self, on_metrics: MetricsCallback, intensity: int) -> bool:
        if self.tracking:
            log.debug("tracker.start.noop", intensity=self.intensity)
            return False
        self.intensity = clamp_intensity(intensity)
        self._on_metrics = on_metrics
        self.sampler.reset()
        self.scorer.reset()
        self._sub = self.inputs.subscribe(self.sampler.on_key_down, self.sampler.on_pointer_move)
        self._timer = self.scheduler.call_every(self.cfg.window_size_s, self._tick, name="fatigue-window")
        self.state = TrackerState.TRACKING
        log.info(
            "tracker.start",
            intensity=self.intensity,
            latency_baseline_ms=self.scorer.baseline.latency_baseline_ms,
            variance_baseline_ms=self.scorer.baseline.variance_baseline_ms,
        )
        return True

    def stop_tracking(self) -> bool:
        if not self.tracking:
            return False
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._sub is not None:
            self.inputs.unsubscribe(self._sub)
            self._sub = None
        self.sampler.reset()
        self.scorer.reset()
        self._on_metrics = None
        self.state = TrackerState.IDLE
        log.info("tracker.stop", windows=self.windows)
        return True

    def _tick(self) -> None:
        if not self.tracking:
            return
        self.process_window()

    def process_window(self) -> FatigueMetrics:
        """Drain, score and emit one window."""
        sample = self.sampler.drain()
        features = aggregate(sample, self.cfg)
        metrics = self.scorer.score(features, self.intensity or 5)
        self.windows += 1
        b = self.scorer.last_breakdown
        log.debug(
            "tracker.window",
            n=self.windows,
            keys=features.latency_count,
            moves=features.pointer_move_count,
            raw=round(b.raw, 2) if b else None,
            score=metrics.fatigue_score,
        )
        cb = self._on_metrics
        if cb is not None:
            try:
                cb(metrics)
            except Exception as e:
                log.warning("tracker.on_metrics.error", err=str(e))
        return metrics
