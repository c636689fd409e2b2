from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Optional, Dict, Any
import time
from datetime import datetime, timezone

# --- timing helpers ---
def utc_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds")

def mono_ts() -> float:
    # Monotonic high-res timestamp (immune to system clock changes)
    return time.perf_counter()

# --- core enums ---
class EventType(Enum):
    """Top-level classifier for event routing."""
    KEY = auto()
    MOUSE = auto()
    TIMER = auto()

class KeyAction(Enum):
    DOWN = "down"
    UP = "up"

class MouseAction(Enum):
    MOVE = "move"

# --- base event ---
@dataclass(frozen=True)
class BaseEvent:
    """Common shape for all events."""
    etype: EventType = field(init=False)         # auto-set by subclasses
    t_utc: Optional[str] = None                  # lazy; materialized on serialize
    t_mono: float = field(default_factory=mono_ts)

    @property
    def t_ms(self) -> float:
        return self.t_mono * 1000.0

    def to_record(self) -> Dict[str, Any]:
        t_utc_val = self.t_utc or utc_iso()
        return {
            "etype": self.etype.name,
            "t_utc": t_utc_val,
            "t_mono": self.t_mono,
        }

# --- key event ---
@dataclass(frozen=True)
class KeyEvent(BaseEvent):
    """Low-level keystroke event. Only timing is kept, never which key."""
    action: KeyAction = KeyAction.DOWN

    def __post_init__(self):
        object.__setattr__(self, "etype", EventType.KEY)

    def to_record(self) -> Dict[str, Any]:
        base = super().to_record()
        base.update({
            "action": self.action.value,
        })
        return base

# --- mouse event ---
@dataclass(frozen=True)
class MouseEvent(BaseEvent):
    """Pointer position in screen pixels."""
    action: MouseAction = MouseAction.MOVE
    x: float = 0.0
    y: float = 0.0

    def __post_init__(self):
        object.__setattr__(self, "etype", EventType.MOUSE)

    def to_record(self) -> Dict[str, Any]:
        base = super().to_record()
        base.update({
            "action": self.action.value,
            "x": self.x,
            "y": self.y,
        })
        return base

# --- timer event ---
@dataclass(frozen=True)
class TimerEvent(BaseEvent):
    """A scheduled tick, routed through the same queue as input so ordering holds."""
    timer_id: int = 0
    name: str = ""

    def __post_init__(self):
        object.__setattr__(self, "etype", EventType.TIMER)

    def to_record(self) -> Dict[str, Any]:
        base = super().to_record()
        base.update({
            "timer_id": self.timer_id,
            "name": self.name,
        })
        return base
