"""
db_logger.py - Persistent session log for clippop.

Switched on with "log_db": true (or CLIPPOP_LOG_DB=1). Every line the
EventLog emits is queued here and written to clippop.db in the config
directory by one daemon thread, so the Qt loop never waits on disk.

    sessions(id, started_at, platform)
    entries(id, session, logged_at, tag, slot, action_label, message)

`slot` is set on lines about captured text (clipboard / selection),
`action_label` on lines about a chosen action. `read_entries` is what
`clippop --recent` uses; it only ever SELECTs.
"""

import queue
import sqlite3
import threading
import uuid
from datetime import datetime, timedelta
from pathlib import Path

RETAIN_DAYS = 30
DB_NAME     = "clippop.db"

_SCHEMA = """
CREATE TABLE IF NOT EXISTS sessions (
    id          TEXT PRIMARY KEY,
    started_at  TEXT NOT NULL,
    platform    TEXT NOT NULL DEFAULT ''
);
CREATE TABLE IF NOT EXISTS entries (
    id           INTEGER PRIMARY KEY AUTOINCREMENT,
    session      TEXT NOT NULL REFERENCES sessions(id),
    logged_at    TEXT NOT NULL,
    tag          TEXT NOT NULL,
    slot         TEXT NOT NULL DEFAULT '',
    action_label TEXT NOT NULL DEFAULT '',
    message      TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_entries_logged_at ON entries(logged_at);
"""

_INSERT = (
    "INSERT INTO entries(session, logged_at, tag, slot, action_label, message) "
    "VALUES(?,?,?,?,?,?)"
)

_COLUMNS = ("logged_at", "session", "tag", "slot", "action_label", "message")


def db_file(config_dir) -> Path:
    return Path(config_dir) / DB_NAME


def _open(path) -> sqlite3.Connection:
    conn = sqlite3.connect(str(path), timeout=10)
    conn.row_factory = sqlite3.Row
    return conn


def read_entries(config_dir, limit: int = 50, tag: str = None, slot: str = None) -> list:
    """
    The newest `limit` entries matching the filters, returned oldest first
    as dicts keyed by _COLUMNS. A config dir without a database gives [].
    """
    path = db_file(config_dir)
    if not path.exists():
        return []

    filters = [(column, value) for column, value in (("tag", tag), ("slot", slot)) if value]
    where = " AND ".join(f"{column} = ?" for column, _ in filters)
    sql = (
        f"SELECT {', '.join(_COLUMNS)} FROM entries "
        f"{'WHERE ' + where if where else ''} ORDER BY id DESC LIMIT ?"
    )
    conn = _open(path)
    try:
        rows = conn.execute(sql, [value for _, value in filters] + [limit]).fetchall()
    except sqlite3.OperationalError:
        return []      # database from another program / not initialised yet
    finally:
        conn.close()
    return [dict(row) for row in reversed(rows)]


class DBLogger:
    def __init__(self, config_dir, platform: str = ""):
        Path(config_dir).mkdir(parents=True, exist_ok=True)
        self._path    = db_file(config_dir)
        self._queue   = queue.Queue()
        self.session  = uuid.uuid4().hex[:8]

        self._prepare(platform)
        self._writer = threading.Thread(
            target=self._drain, name="clippop-db", daemon=True
        )
        self._writer.start()

    def _prepare(self, platform: str):
        now = datetime.now()
        cutoff = (now - timedelta(days=RETAIN_DAYS)).isoformat()
        conn = _open(self._path)
        try:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.executescript(_SCHEMA)
            with conn:
                conn.execute("DELETE FROM entries WHERE logged_at < ?", (cutoff,))
                conn.execute(
                    "DELETE FROM sessions WHERE started_at < ? "
                    "AND id NOT IN (SELECT session FROM entries)",
                    (cutoff,),
                )
                conn.execute(
                    "INSERT INTO sessions(id, started_at, platform) VALUES(?,?,?)",
                    (self.session, now.isoformat(), platform),
                )
        finally:
            conn.close()

    # ── Writer thread ─────────────────────────────────────────────────────────

    def _drain(self):
        # Takes whatever has piled up since the last wake-up and commits it
        # as one transaction. A None in the batch ends the thread.
        conn = _open(self._path)
        try:
            done = False
            while not done:
                batch = [self._queue.get()]
                while True:
                    try:
                        batch.append(self._queue.get_nowait())
                    except queue.Empty:
                        break
                rows = [row for row in batch if row is not None]
                done = len(rows) < len(batch)
                try:
                    with conn:
                        conn.executemany(_INSERT, rows)
                except sqlite3.Error:
                    pass       # batch lost; the stream log still has it
                finally:
                    for _ in batch:
                        self._queue.task_done()
        finally:
            conn.close()

    # ── Public API ────────────────────────────────────────────────────────────

    def log(self, message: str, tag: str = "info", action_label: str = "", slot: str = ""):
        self._queue.put((
            self.session,
            datetime.now().isoformat(timespec="seconds"),
            tag,
            slot,
            action_label,
            message,
        ))

    def flush(self):
        """Block until every queued entry has been written."""
        self._queue.join()

    def stop(self):
        self._queue.put(None)
        self._writer.join(timeout=3)
