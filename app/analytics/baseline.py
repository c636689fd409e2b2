# app/analytics/baseline.py
from __future__ import annotations
import math
from dataclasses import dataclass
from typing import Dict, Optional
import structlog

from core.storage.kv_store import KeyValueStore, MemoryStore

log = structlog.get_logger()

LATENCY_KEY = "baseline.latency_ms"
VARIANCE_KEY = "baseline.variance_ms"

@dataclass(frozen=True)
class BaselineState:
    latency_baseline_ms: float
    variance_baseline_ms: float

def _valid(v: Optional[float]) -> bool:
    return v is not None and math.isfinite(v) and v > 0

class BaselineStore:
    """
    Durable "keep the minimum" scalars over a key/value store.

    A stored baseline only ever goes down: it is the user's best alert state.
    Storage errors are logged and absorbed; the last known values are kept
    in memory so scoring carries on with them for the process lifetime.
    """
    def __init__(self, store: Optional[KeyValueStore] = None):
        self.store = store if store is not None else MemoryStore()
        self._mem: Dict[str, float] = {}

    def read(self, key: str, default: float) -> float:
        try:
            raw = self.store.get(key)
        except Exception as e:
            log.warning("baseline.read.error", key=key, err=str(e))
            return self._mem.get(key, default)
        if raw is None:
            return self._mem.get(key, default)
        try:
            val = float(raw)
        except (TypeError, ValueError):
            log.warning("baseline.read.unparseable", key=key, raw=raw)
            return self._mem.get(key, default)
        if not _valid(val):
            return self._mem.get(key, default)
        self._mem[key] = val
        return val

    def _stored(self, key: str) -> Optional[float]:
        try:
            raw = self.store.get(key)
        except Exception as e:
            log.warning("baseline.read.error", key=key, err=str(e))
            return self._mem.get(key)
        try:
            val = float(raw) if raw is not None else None
        except (TypeError, ValueError):
            val = None
        return val if _valid(val) else self._mem.get(key)

    def write(self, key: str, candidate: float, default: Optional[float] = None) -> bool:
        """
        Persist `candidate` only if it beats the current value. The current
        value is the stored one, else `default` when given, else nothing
        (first valid candidate always lands). Returns True when written.
        """
        if not _valid(candidate):
            return False
        current = self._stored(key)
        if current is None:
            current = default if default is not None else math.inf
        if not candidate < current:
            return False
        self._mem[key] = candidate
        try:
            self.store.set(key, repr(float(candidate)))
        except Exception as e:
            log.warning("baseline.write.error", key=key, err=str(e))
        log.debug("baseline.update", key=key, old=current if math.isfinite(current) else None, new=candidate)
        return True

    def snapshot(self, default_latency_ms: float, default_variance_ms: float) -> BaselineState:
        return BaselineState(
            latency_baseline_ms=self.read(LATENCY_KEY, default_latency_ms),
            variance_baseline_ms=self.read(VARIANCE_KEY, default_variance_ms),
        )

    def clear(self) -> None:
        self._mem.clear()
        for key in (LATENCY_KEY, VARIANCE_KEY):
            try:
                self.store.delete(key)
            except Exception as e:
                log.warning("baseline.clear.error", key=key, err=str(e))
