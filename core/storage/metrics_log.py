from __future__ import annotations
import sqlite3
from typing import Any, Dict, List, Optional, Protocol
import structlog

from core.storage.kv_store import DB_FILE

log = structlog.get_logger()

COLUMNS = (
    "timestamp",
    "keystroke_latency_ms",
    "typing_speed_wpm",
    "mouse_distance_px",
    "mouse_velocity_px_per_sec",
    "erratic_mouse_movement",
    "fatigue_score",
)

class Recordable(Protocol):
    def to_record(self) -> Dict[str, Any]: ...

class MetricsLog:
    """
    Append-only per-window metrics history, keyed by session id.
    Only derived window metrics land here; raw input never does.
    Writes and reads degrade to False / [] on storage errors.
    """
    def __init__(self, db_path: str = DB_FILE):
        self.db_path = db_path
        self._ready = False
        try:
            self._init_db()
            self._ready = True
        except sqlite3.Error as e:
            log.warning("metrics_log.init.error", err=str(e), db=db_path)

    def _init_db(self):
        conn = sqlite3.connect(self.db_path)
        try:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS fatigue_metrics(
                  seq INTEGER PRIMARY KEY AUTOINCREMENT,
                  session_id TEXT NOT NULL,
                  timestamp INTEGER NOT NULL,
                  keystroke_latency_ms REAL NOT NULL,
                  typing_speed_wpm REAL NOT NULL,
                  mouse_distance_px REAL NOT NULL,
                  mouse_velocity_px_per_sec REAL NOT NULL,
                  erratic_mouse_movement INTEGER NOT NULL,
                  fatigue_score INTEGER NOT NULL
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS ix_metrics_session ON fatigue_metrics(session_id, timestamp)")
            conn.commit()
        finally:
            conn.close()

    def append(self, session_id: str, metrics: Recordable) -> bool:
        if not self._ready:
            return False
        rec = metrics.to_record()
        values = [session_id] + [rec[c] for c in COLUMNS]
        values[COLUMNS.index("erratic_mouse_movement") + 1] = int(bool(rec["erratic_mouse_movement"]))
        try:
            conn = sqlite3.connect(self.db_path)
            try:
                conn.execute(
                    f"INSERT INTO fatigue_metrics(session_id, {', '.join(COLUMNS)}) "
                    f"VALUES ({', '.join('?' * (len(COLUMNS) + 1))})",
                    values,
                )
                conn.commit()
            finally:
                conn.close()
            return True
        except sqlite3.Error as e:
            log.warning("metrics_log.append.error", err=str(e), session=session_id)
            return False

    def for_session(self, session_id: Optional[str] = None, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Rows ordered by timestamp; all sessions when session_id is None."""
        if not self._ready:
            return []
        sql = f"SELECT session_id, {', '.join(COLUMNS)} FROM fatigue_metrics"
        params: list = []
        if session_id is not None:
            sql += " WHERE session_id = ?"
            params.append(session_id)
        sql += " ORDER BY timestamp ASC, seq ASC"
        if limit:
            sql += " LIMIT ?"
            params.append(int(limit))
        try:
            conn = sqlite3.connect(self.db_path)
            try:
                rows = conn.execute(sql, params).fetchall()
            finally:
                conn.close()
        except sqlite3.Error as e:
            log.warning("metrics_log.read.error", err=str(e), session=session_id)
            return []
        out = []
        for row in rows:
            rec = dict(zip(("session_id",) + COLUMNS, row))
            rec["erratic_mouse_movement"] = bool(rec["erratic_mouse_movement"])
            out.append(rec)
        return out
