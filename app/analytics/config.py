from __future__ import annotations
import math
import tomllib
from dataclasses import dataclass, fields, replace
from typing import Any, Mapping, Optional

@dataclass(frozen=True)
class FatigueConfig:
    # window cadence (ms)
    window_size_ms: float = 5000.0

    # baselines used until real data arrives (ms)
    default_latency_baseline_ms: float = 120.0
    default_variance_baseline_ms: float = 30.0
    baseline_floor_ms: float = 1.0  # divisions never see a baseline below this

    # sampler
    pointer_noise_floor_px: float = 5.0
    direction_change_rad: float = math.pi / 4
    max_latency_ms: Optional[float] = None  # e.g. 2000 to drop "thinking" pauses

    # weighted excess over baseline
    latency_weight: float = 0.40
    variance_weight: float = 0.30

    # flat bonuses
    sluggish_velocity_px_s: float = 50.0
    sluggish_bonus: float = 10.0
    erratic_changes_min: int = 2  # strictly more than this is erratic
    erratic_bonus: float = 20.0
    stagnation_moves_max: int = 5  # strictly fewer moves (and no keys) is stagnation
    stagnation_bonus: float = 5.0

    # intensity sensitivity: factor = 1 + ((i - neutral) / 5) * span
    neutral_intensity: int = 5
    sensitivity_span: float = 0.2

    # temporal smoothing
    smoothing_window: int = 5

    # WPM heuristic: this many keystrokes count as one word
    chars_per_word: float = 5.0

    def __post_init__(self):
        if self.window_size_ms <= 0:
            raise ValueError("window_size_ms must be positive")
        if self.smoothing_window < 1:
            raise ValueError("smoothing_window must be >= 1")
        if self.baseline_floor_ms <= 0:
            raise ValueError("baseline_floor_ms must be positive")
        if self.default_latency_baseline_ms <= 0 or self.default_variance_baseline_ms <= 0:
            raise ValueError("default baselines must be positive")
        if self.max_latency_ms is not None and self.max_latency_ms <= 0:
            raise ValueError("max_latency_ms must be positive when set")

    @property
    def window_size_s(self) -> float:
        return self.window_size_ms / 1000.0


def config_from_mapping(data: Mapping[str, Any], base: Optional[FatigueConfig] = None) -> FatigueConfig:
    """Override `base` (or defaults) with the given keys; unknown keys are an error."""
    known = {f.name for f in fields(FatigueConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"unknown fatigue config keys: {', '.join(unknown)}")
    return replace(base or FatigueConfig(), **dict(data))


def load_config(path: Optional[str]) -> FatigueConfig:
    """Read the `[fatigue]` table of a TOML file; no path means defaults."""
    if not path:
        return FatigueConfig()
    with open(path, "rb") as f:
        doc = tomllib.load(f)
    return config_from_mapping(doc.get("fatigue", {}))


MIN_INTENSITY = 1
MAX_INTENSITY = 10
DEFAULT_INTENSITY = 5


def clamp_intensity(value: Any) -> int:
    """Coerce caller input into the 1..10 intensity dial."""
    try:
        i = int(round(float(value)))
    except (TypeError, ValueError, OverflowError):
        return DEFAULT_INTENSITY
    return max(MIN_INTENSITY, min(MAX_INTENSITY, i))
