# core/hooks/mouse_listener.py
from __future__ import annotations
from typing import Optional
from queue import Queue
from pynput import mouse
import structlog

from .events import MouseEvent, MouseAction
from core.utils.queueing import safe_put

log = structlog.get_logger()

class MouseHook:
    """
    Background pynput mouse listener emitting pointer moves into a queue.
    Clicks and scrolls carry no fatigue signal and are not subscribed.
    """
    def __init__(self, out_q: Queue):
        self.out_q = out_q
        self._listener: Optional[mouse.Listener] = None

    @property
    def running(self) -> bool:
        return bool(self._listener and self._listener.running)

    def start(self) -> None:
        if self.running:
            return
        self._listener = mouse.Listener(on_move=self._on_move)
        self._listener.daemon = True
        self._listener.start()
        log.info("mouse.start")

    def stop(self) -> None:
        if self._listener:
            self._listener.stop()
            self._listener = None
            log.info("mouse.stop")

    def _on_move(self, x, y):
        safe_put(self.out_q, MouseEvent(action=MouseAction.MOVE, x=float(x), y=float(y)))
