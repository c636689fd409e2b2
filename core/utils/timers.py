# core/utils/timers.py
from __future__ import annotations
import threading
import time
from queue import Queue
from typing import Optional
import structlog

from core.hooks.events import TimerEvent
from core.utils.queueing import safe_put

log = structlog.get_logger()

class RepeatingTimer:
    """
    Posts a TimerEvent onto a queue every `interval_s` until cancelled.
    The timer never runs the callback itself; the queue consumer does, so
    ticks stay ordered with the input events around them.
    Deadlines are absolute (start + k*interval) so sleep overshoot does not accumulate.
    """
    def __init__(self, out_q: Queue, interval_s: float, timer_id: int, name: str = ""):
        if interval_s <= 0:
            raise ValueError("interval_s must be positive")
        self.out_q = out_q
        self.interval_s = interval_s
        self.timer_id = timer_id
        self.name = name
        self._thr: Optional[threading.Thread] = None
        self._stop = threading.Event()

    @property
    def active(self) -> bool:
        return bool(self._thr and self._thr.is_alive() and not self._stop.is_set())

    def start(self) -> None:
        if self._thr and self._thr.is_alive(): return
        self._stop.clear()
        self._thr = threading.Thread(target=self._loop, daemon=True, name=f"timer-{self.name or self.timer_id}")
        self._thr.start()
        log.debug("timer.start", timer=self.name, interval_s=self.interval_s)

    def cancel(self) -> None:
        self._stop.set()
        if self._thr and self._thr is not threading.current_thread():
            self._thr.join(timeout=1.0)
        self._thr = None
        log.debug("timer.cancel", timer=self.name)

    def _loop(self):
        next_at = time.monotonic() + self.interval_s
        while not self._stop.wait(max(0.0, next_at - time.monotonic())):
            safe_put(self.out_q, TimerEvent(timer_id=self.timer_id, name=self.name))
            next_at += self.interval_s
