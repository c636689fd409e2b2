from __future__ import annotations
import threading
from typing import Callable, Optional
import structlog

from core.hooks.keyboard_listener import KeyboardHook
from core.hooks.mouse_listener import MouseHook
from core.storage.kv_store import KeyValueStore, MemoryStore, SqliteStore
from core.storage.metrics_log import MetricsLog
from app.analytics.baseline import BaselineStore
from app.analytics.config import FatigueConfig
from app.analytics.tracker import FatigueTracker
from app.controller.dispatch import EventPump
from app.controller.session import SessionController
from app.policy.insights import Insight


log = structlog.get_logger()

def open_store(db_path: Optional[str]) -> KeyValueStore:
    """sqlite store at db_path; in-memory when no path is given or the file cannot be opened."""
    if not db_path:
        return MemoryStore()
    try:
        return SqliteStore(db_path)
    except Exception as e:
        log.warning("store.open.error", err=str(e), db=db_path)
        return MemoryStore()

class HookRuntime:
    """
    Starts/stops the OS input hooks and the consumer thread, and builds the
    tracker + session controller on top of one EventPump. Every callback
    into the session runs on the consumer thread; use submit() for calls
    from anywhere else.
    """
    def __init__(
        self,
        db_path: Optional[str] = None,
        config: Optional[FatigueConfig] = None,
        intensity: int = 5,
        on_insight: Optional[Callable[[Insight], None]] = None,
    ):
        self.cfg = config or FatigueConfig()
        self.pump = EventPump()
        self.kbd = KeyboardHook(self.pump.q)
        self.mouse = MouseHook(self.pump.q)
        self.store = open_store(db_path)
        self.metrics_log = MetricsLog(db_path) if db_path else None
        self.tracker = FatigueTracker(self.pump, self.pump, BaselineStore(self.store), self.cfg)
        self.session = SessionController(
            self.tracker,
            self.pump,
            store=self.store,
            metrics_log=self.metrics_log,
            on_insight=on_insight,
            intensity=intensity,
        )
        self._consumer_thr: Optional[threading.Thread] = None
        self._stop_evt = threading.Event()

    def start(self) -> None:
        if self._consumer_thr and self._consumer_thr.is_alive():
            return
        self._stop_evt.clear()
        self.kbd.start()
        self.mouse.start()
        self._consumer_thr = threading.Thread(target=self._consume_loop, daemon=True, name="fatigue-pump")
        self._consumer_thr.start()
        log.info("hooks.runtime.start")

    def stop(self) -> None:
        self.kbd.stop()
        self.mouse.stop()
        self.submit(self._shutdown_session)
        self._stop_evt.set()
        if self._consumer_thr:
            self._consumer_thr.join(timeout=2.0)
            self._consumer_thr = None
        self.pump.close()
        log.info("hooks.runtime.stop")

    def submit(self, fn: Callable[[], object]) -> None:
        self.pump.submit(fn)

    def _shutdown_session(self) -> None:
        # leave a RUNNING snapshot in place so the next launch can resume it
        self.tracker.stop_tracking()

    def _consume_loop(self):
        while not self._stop_evt.is_set():
            self.pump.pump(timeout=0.5)
        # flush what was queued before stop (including the shutdown call)
        self.pump.pump()
