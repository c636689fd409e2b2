# app/controller/dispatch.py
from __future__ import annotations
import itertools
from queue import Queue, Empty
from typing import Any, Callable, Dict, Optional, Tuple
import structlog

from core.hooks.events import BaseEvent, KeyEvent, MouseEvent, TimerEvent, KeyAction, MouseAction
from core.utils.queueing import safe_put, drain_nowait
from core.utils.timers import RepeatingTimer

log = structlog.get_logger()

TimerFactory = Callable[[Queue, float, int, str], Any]

class TimerHandle:
    def __init__(self, pump: "EventPump", timer_id: int):
        self._pump = pump
        self.timer_id = timer_id

    def cancel(self) -> None:
        self._pump._cancel_timer(self.timer_id)

class EventPump:
    """
    The single execution context for tracking.

    Hook threads and timer threads only enqueue; pump() dequeues and runs
    handlers one at a time, in arrival order. Subscriptions and timers are
    plain dict entries, so removing one drops anything already queued for it.
    Also serves as the tracker's InputSource and Scheduler.
    """
    def __init__(self, q: Optional[Queue] = None, timer_factory: TimerFactory = RepeatingTimer):
        self.q: Queue = q if q is not None else Queue(maxsize=5000)
        self.timer_factory = timer_factory
        self._ids = itertools.count(1)
        self._subs: Dict[int, Tuple[Callable[[float], None], Callable[[float, float], None]]] = {}
        self._timers: Dict[int, Tuple[Any, Callable[[], None]]] = {}

    # ---- InputSource ----

    def subscribe(self, on_key_down: Callable[[float], None], on_pointer_move: Callable[[float, float], None]) -> int:
        token = next(self._ids)
        self._subs[token] = (on_key_down, on_pointer_move)
        return token

    def unsubscribe(self, token: int) -> None:
        self._subs.pop(token, None)

    @property
    def subscriber_count(self) -> int:
        return len(self._subs)

    # ---- Scheduler ----

    def call_every(self, interval_s: float, fn: Callable[[], None], name: str = "") -> TimerHandle:
        timer_id = next(self._ids)
        timer = self.timer_factory(self.q, interval_s, timer_id, name)
        self._timers[timer_id] = (timer, fn)
        timer.start()
        return TimerHandle(self, timer_id)

    def _cancel_timer(self, timer_id: int) -> None:
        entry = self._timers.pop(timer_id, None)
        if entry:
            entry[0].cancel()

    @property
    def timer_count(self) -> int:
        return len(self._timers)

    # ---- queue side ----

    def post(self, item) -> None:
        safe_put(self.q, item)

    def submit(self, fn: Callable[[], Any]) -> None:
        """Run `fn` on the pump's context, after everything already queued."""
        safe_put(self.q, fn)

    def dispatch(self, item) -> None:
        if isinstance(item, TimerEvent):
            entry = self._timers.get(item.timer_id)
            if entry:
                entry[1]()
        elif isinstance(item, KeyEvent):
            if item.action == KeyAction.DOWN:
                for on_key, _ in list(self._subs.values()):
                    on_key(item.t_ms)
        elif isinstance(item, MouseEvent):
            if item.action == MouseAction.MOVE:
                for _, on_move in list(self._subs.values()):
                    on_move(item.x, item.y)
        elif callable(item):
            item()
        elif isinstance(item, BaseEvent):
            log.debug("pump.unrouted", **item.to_record())

    def pump(self, timeout: Optional[float] = None, max_items: int = 0) -> int:
        """
        Process queued items. With a timeout, waits up to that long for the
        first one; afterwards only takes what is already there.
        """
        count = 0
        block = timeout is not None
        while not max_items or count < max_items:
            try:
                item = self.q.get(timeout=timeout) if block else self.q.get_nowait()
            except Empty:
                break
            block = False
            try:
                self.dispatch(item)
            except Exception as e:
                log.warning("pump.dispatch.error", err=str(e), item=type(item).__name__)
            count += 1
        return count

    def close(self) -> None:
        for timer_id in list(self._timers):
            self._cancel_timer(timer_id)
        self._subs.clear()
        dropped = drain_nowait(self.q)
        if dropped:
            log.debug("pump.close.dropped", count=len(dropped))
