# tests/conftest.py
# Deterministic stand-ins for the runtime collaborators: a scheduler driven
# by advance(seconds), an input source driven by explicit calls, and a
# store that fails every call.

import itertools
import pytest

from core.storage.kv_store import MemoryStore
from app.analytics.baseline import BaselineStore
from app.analytics.tracker import FatigueTracker


class _Handle:
    def __init__(self, sched, tid):
        self._sched = sched
        self.tid = tid

    def cancel(self):
        self._sched._timers.pop(self.tid, None)


class ManualScheduler:
    def __init__(self):
        self.now = 0.0
        self._ids = itertools.count(1)
        self._timers = {}  # tid -> [interval, next_due, fn, name]

    def call_every(self, interval_s, fn, name=""):
        tid = next(self._ids)
        self._timers[tid] = [interval_s, self.now + interval_s, fn, name]
        return _Handle(self, tid)

    @property
    def active(self):
        return len(self._timers)

    def names(self):
        return sorted(t[3] for t in self._timers.values())

    def advance(self, seconds):
        target = self.now + seconds
        while True:
            due = [(t[1], tid) for tid, t in self._timers.items() if t[1] <= target + 1e-9]
            if not due:
                break
            at, tid = min(due)
            self.now = at
            entry = self._timers[tid]
            entry[1] += entry[0]
            entry[2]()
        self.now = target


class ManualInputSource:
    def __init__(self):
        self._ids = itertools.count(1)
        self.subs = {}

    def subscribe(self, on_key_down, on_pointer_move):
        tok = next(self._ids)
        self.subs[tok] = (on_key_down, on_pointer_move)
        return tok

    def unsubscribe(self, token):
        self.subs.pop(token, None)

    def key_down(self, t_ms):
        for on_key, _ in list(self.subs.values()):
            on_key(t_ms)

    def move(self, x, y):
        for _, on_move in list(self.subs.values()):
            on_move(x, y)


class FailingStore:
    def get(self, key):
        raise OSError("storage unavailable")

    def set(self, key, value):
        raise OSError("storage unavailable")

    def delete(self, key):
        raise OSError("storage unavailable")


@pytest.fixture
def sched():
    return ManualScheduler()


@pytest.fixture
def inputs():
    return ManualInputSource()


@pytest.fixture
def kv():
    return MemoryStore()


@pytest.fixture
def tracker(inputs, sched, kv):
    return FatigueTracker(inputs, sched, BaselineStore(kv))
