"""
event_log.py - Log sink for clippop.

The minimum level comes from the effective settings and is handed in at
construction; nothing reads it from global state afterwards. Lines go to a
stream (stderr by default) and, when a DBLogger is attached, into the
session database as well.

Tags follow the usual set: debug, info, ok, warn, err.
"""

import sys
from datetime import datetime

LEVELS = {
    "debug":    0,
    "info":     1,
    "warning":  2,
    "error":    3,
    "critical": 4,
}

TAG_LEVELS = {
    "debug": 0,
    "info":  1,
    "ok":    1,
    "warn":  2,
    "err":   3,
}

_ALIASES = {"warn": "warning", "fatal": "critical"}


def level_from_name(name) -> str:
    """Normalise a user-supplied level name; anything unknown becomes 'info'."""
    normalized = str(name or "").strip().lower()
    normalized = _ALIASES.get(normalized, normalized)
    return normalized if normalized in LEVELS else "info"


class EventLog:
    def __init__(self, min_level: str = "info", stream=None, db=None,
                 trace: bool = False):
        self._threshold = LEVELS[level_from_name(min_level)]
        self._stream    = stream if stream is not None else sys.stderr
        self._db        = db
        self._trace     = trace

    def log(self, message: str, tag: str = "info", action_label: str = "", slot: str = ""):
        if TAG_LEVELS.get(tag, 1) < self._threshold:
            return
        ts = datetime.now().strftime("%H:%M:%S")
        self._stream.write(f"[{ts}] {message}\n")
        self._stream.flush()
        if self._db is not None:
            self._db.log(message, tag, action_label, slot)

    def debug(self, message: str):
        self.log(message, "debug")

    def info(self, message: str, action_label: str = "", slot: str = ""):
        self.log(message, "info", action_label, slot)

    def ok(self, message: str, action_label: str = ""):
        self.log(message, "ok", action_label)

    def warn(self, message: str):
        self.log(message, "warn")

    def error(self, message: str, action_label: str = ""):
        self.log(message, "err", action_label)

    def trace(self, message: str):
        """Verbose poll tracing; only emitted when trace mode is on."""
        if self._trace:
            self.log(f"Trace: {message}", "info")

    def close(self):
        if self._db is not None:
            self._db.stop()
