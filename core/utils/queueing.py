# core/utils/queueing.py
from __future__ import annotations
from queue import Queue, Full, Empty
from typing import List

def safe_put(q: Queue, item) -> None:
    """
    Put without blocking; if the queue is full, drop the oldest item and retry.
    Hook threads run at device polling rate and must never stall on a slow consumer.
    """
    try:
        q.put_nowait(item)
    except Full:
        try:
            q.get_nowait()  # drop oldest
        except Empty:
            pass
        q.put_nowait(item)

def drain_nowait(q: Queue, limit: int = 0) -> List:
    """Pop everything currently queued (or up to `limit` items) without blocking."""
    out = []
    while not limit or len(out) < limit:
        try:
            out.append(q.get_nowait())
        except Empty:
            break
    return out
