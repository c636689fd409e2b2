# core/hooks/keyboard_listener.py
from __future__ import annotations
from typing import Set, Optional
from queue import Queue
from pynput import keyboard
import structlog

from .events import KeyEvent, KeyAction
from core.utils.queueing import safe_put

log = structlog.get_logger()

def _key_to_str(k: keyboard.Key | keyboard.KeyCode) -> str:
    try:
        if isinstance(k, keyboard.KeyCode):
            return k.char if k.char else f"keycode_{k.vk or 'unknown'}"
        return str(k).split(".")[-1]
    except Exception:
        return "unknown"

class KeyboardHook:
    """
    Background pynput keyboard listener emitting KeyEvent into a queue.
    Key identity stays inside the hook (to tell a fresh press from OS
    auto-repeat); only press timing travels downstream.
    """
    def __init__(self, out_q: Queue):
        self.out_q = out_q
        self._held: Set[str] = set()
        self._listener: Optional[keyboard.Listener] = None

    @property
    def running(self) -> bool:
        return bool(self._listener and self._listener.running)

    def start(self) -> None:
        if self.running:
            return
        self._held.clear()
        self._listener = keyboard.Listener(
            on_press=self._on_press,
            on_release=self._on_release,
            suppress=False
        )
        self._listener.daemon = True
        self._listener.start()
        log.info("kbd.start")

    def stop(self) -> None:
        if self._listener:
            self._listener.stop()
            self._listener = None
            log.info("kbd.stop")

    def _on_press(self, key):
        name = _key_to_str(key)
        # a held key repeats at the OS rate; only the first press is typing
        if name in self._held:
            return
        self._held.add(name)
        safe_put(self.out_q, KeyEvent(action=KeyAction.DOWN))

    def _on_release(self, key):
        self._held.discard(_key_to_str(key))
