# app/analytics/scorer.py
from __future__ import annotations
from collections import deque
from dataclasses import dataclass
from typing import Deque, Optional
import structlog

from app.analytics.config import FatigueConfig, clamp_intensity
from app.analytics.baseline import BaselineStore, BaselineState, LATENCY_KEY, VARIANCE_KEY
from app.analytics.metrics import WindowFeatures, FatigueMetrics, wall_ms

log = structlog.get_logger()

@dataclass(frozen=True)
class ScoreBreakdown:
    cognitive_slowing: float
    motor_inconsistency: float
    sluggish_bonus: float
    erratic_bonus: float
    stagnation_bonus: float
    raw: float
    factor: float
    adjusted: float  # after sensitivity and clamp, before smoothing
    smoothed: int

def sensitivity_factor(intensity: int, config: Optional[FatigueConfig] = None) -> float:
    """1.0 at the neutral intensity, +span at 10, linear in between (0.84 at 1 by default)."""
    cfg = config or FatigueConfig()
    return 1.0 + ((clamp_intensity(intensity) - cfg.neutral_intensity) / 5.0) * cfg.sensitivity_span

class FatigueScorer:
    """
    Fuses one window's features, the personal baselines and the intensity
    dial into a 0-100 score, then smooths it over the last few windows:
      - cognitive slowing: weighted % excess of mean latency over baseline
      - motor inconsistency: weighted % excess of latency jitter over baseline
      - flat bonuses for sluggish, erratic or absent input
    After scoring, a clean window tightens the stored baselines.
    """
    def __init__(self, baselines: Optional[BaselineStore] = None, config: Optional[FatigueConfig] = None):
        self.cfg = config or FatigueConfig()
        self.baselines = baselines or BaselineStore()
        self._recent: Deque[float] = deque(maxlen=self.cfg.smoothing_window)
        self.baseline: BaselineState = self._load_baseline()
        self.last_breakdown: Optional[ScoreBreakdown] = None

    def _load_baseline(self) -> BaselineState:
        return self.baselines.snapshot(
            self.cfg.default_latency_baseline_ms,
            self.cfg.default_variance_baseline_ms,
        )

    def reset(self) -> None:
        """Fresh smoothing history and a re-read of persisted baselines."""
        self._recent.clear()
        self.baseline = self._load_baseline()
        self.last_breakdown = None

    @property
    def recent_scores(self) -> tuple:
        return tuple(self._recent)

    def score(self, f: WindowFeatures, intensity: int, timestamp: Optional[int] = None) -> FatigueMetrics:
        cfg = self.cfg
        lat_base = max(self.baseline.latency_baseline_ms, cfg.baseline_floor_ms)
        var_base = max(self.baseline.variance_baseline_ms, cfg.baseline_floor_ms)

        slowing = max(0.0, f.mean_latency_ms - lat_base) / lat_base * 100.0 * cfg.latency_weight
        jitter = max(0.0, f.std_dev_latency_ms - var_base) / var_base * 100.0 * cfg.variance_weight

        sluggish = cfg.sluggish_bonus if (f.mouse_velocity_px_s < cfg.sluggish_velocity_px_s and f.pointer_move_count > 0) else 0.0
        erratic = f.erratic_score > cfg.erratic_changes_min
        erratic_pts = cfg.erratic_bonus if erratic else 0.0
        stagnant = cfg.stagnation_bonus if (f.latency_count == 0 and f.pointer_move_count < cfg.stagnation_moves_max) else 0.0

        raw = slowing + jitter + sluggish + erratic_pts + stagnant
        factor = sensitivity_factor(intensity, cfg)
        adjusted = min(100.0, max(0.0, raw * factor))

        self._recent.append(adjusted)
        smoothed = int(round(sum(self._recent) / len(self._recent)))
        smoothed = min(100, max(0, smoothed))

        self.last_breakdown = ScoreBreakdown(
            cognitive_slowing=slowing,
            motor_inconsistency=jitter,
            sluggish_bonus=sluggish,
            erratic_bonus=erratic_pts,
            stagnation_bonus=stagnant,
            raw=raw,
            factor=factor,
            adjusted=adjusted,
            smoothed=smoothed,
        )

        self._calibrate(f)

        return FatigueMetrics(
            timestamp=timestamp if timestamp is not None else wall_ms(),
            keystroke_latency_ms=f.mean_latency_ms,
            typing_speed_wpm=f.typing_speed_wpm,
            mouse_distance_px=f.pointer_distance_px,
            mouse_velocity_px_per_sec=f.mouse_velocity_px_s,
            erratic_mouse_movement=erratic,
            fatigue_score=smoothed,
        )

    def _calibrate(self, f: WindowFeatures) -> None:
        # a lone key pair (e.g. an accidental double tap) is not typing; it
        # takes two latencies to move the latency baseline, and a zero jitter
        # never becomes the variance baseline
        if f.latency_count < 2:
            return
        cfg = self.cfg
        lat = self.baseline.latency_baseline_ms
        var = self.baseline.variance_baseline_ms
        if self.baselines.write(LATENCY_KEY, f.mean_latency_ms, default=cfg.default_latency_baseline_ms):
            lat = min(lat, f.mean_latency_ms)
        if f.std_dev_latency_ms > 0 and self.baselines.write(
            VARIANCE_KEY, f.std_dev_latency_ms, default=cfg.default_variance_baseline_ms
        ):
            var = min(var, f.std_dev_latency_ms)
        if (lat, var) != (self.baseline.latency_baseline_ms, self.baseline.variance_baseline_ms):
            log.info("baseline.update", latency_ms=round(lat, 2), variance_ms=round(var, 2))
            self.baseline = BaselineState(latency_baseline_ms=lat, variance_baseline_ms=var)
