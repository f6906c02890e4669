#!/usr/bin/env python3
"""
clippop.py - Action popup for whatever you just copied or selected.

Watches the clipboard and the primary selection. Each time a new non-empty
text shows up, a small row of buttons appears at the pointer:

    UPPERCASE  lowercase  Title Case  Normalize Whitespace  Copy to Clipboard
    ...followed by your own commands from actions.json

Picking a transform writes the result back to the clipboard (without
triggering another popup); picking a command launches it with the text.

Usage:
    python clippop.py [--config-dir DIR] [--log-level LEVEL] [--trace]
                      [--poll-ms MS] [--recent N [--tag TAG] [--slot SLOT]]

Configuration lives in ~/.config/clippop/ (see app_settings.py for
settings.json and external_actions.py for actions.json). CLIPPOP_*
environment variables override settings.json.
"""

import argparse
import signal
import sys
from pathlib import Path

from app_settings import ACTIONS_FILE, config_dir, resolve_settings
from clip_watcher import ClipboardWatcher, SuppressionFlag
from db_logger import DBLogger, read_entries
from event_log import LEVELS, EventLog
from external_actions import DetachedCommandRunner, ExternalActionRegistry, load_external_actions
from menu_controller import MenuController


# ─── Wiring ───────────────────────────────────────────────────────────────────

def wire(loop, source, surface, settings, log, specs, runner,
         reader=None, executor=None):
    """
    Connect watcher → controller → surface on one loop.
    Returns (watcher, controller); call watcher.start() to begin.
    """
    suppression = SuppressionFlag()
    watcher = ClipboardWatcher(
        loop, source, settings, log, suppression,
        reader=reader, executor=executor,
    )
    registry = ExternalActionRegistry(specs, runner, log)
    controller = MenuController(loop, source, watcher, surface, registry, log, suppression)
    return watcher, controller


def make_source(settings, log):
    if settings.clipboard_backend == "pyperclip":
        from clip_sources import PyperclipSource
        log.info("Clipboard backend: pyperclip")
        return PyperclipSource()
    from qt_host import QtClipboardSource
    return QtClipboardSource(log)


# ─── Entry point ──────────────────────────────────────────────────────────────

def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Pop up text actions whenever the clipboard or selection changes."
    )
    parser.add_argument("--config-dir", "-c", default=None,
                        help="Folder holding settings.json and actions.json "
                             "(default: ~/.config/clippop).")
    parser.add_argument("--log-level", "-l", default=None, choices=sorted(LEVELS),
                        help="Override the configured log level.")
    parser.add_argument("--trace", action="store_true",
                        help="Log every poll read.")
    parser.add_argument("--poll-ms", type=int, default=None,
                        help="Turn polling on with this interval in milliseconds.")
    parser.add_argument("--recent", type=int, default=None, metavar="N",
                        help="Print the last N persisted log entries and exit.")
    parser.add_argument("--tag", default=None, choices=("debug", "info", "ok", "warn", "err"),
                        help="With --recent: only entries with this tag.")
    parser.add_argument("--slot", default=None, choices=("clipboard", "selection"),
                        help="With --recent: only entries about text from this slot.")
    return parser.parse_args(argv)


def apply_cli(settings, args):
    changes = {}
    if args.log_level:
        changes["log_level"] = args.log_level
    if args.trace:
        changes["trace"] = True
    if args.poll_ms is not None and args.poll_ms > 0:
        changes["poll_enabled"] = True
        changes["poll_interval_ms"] = args.poll_ms
    return settings.with_overrides(**changes) if changes else settings


def print_recent(directory: Path, limit: int, tag=None, slot=None, stream=None) -> int:
    stream = stream or sys.stdout
    for entry in read_entries(directory, limit, tag=tag, slot=slot):
        where = f" {entry['slot']}" if entry["slot"] else ""
        label = f" [{entry['action_label']}]" if entry["action_label"] else ""
        stream.write(
            f"{entry['logged_at']} {entry['session']} "
            f"{entry['tag']:<5}{where}{label} {entry['message']}\n"
        )
    return 0


def main(argv=None) -> int:
    args = parse_args(argv)
    directory = Path(args.config_dir).expanduser() if args.config_dir else config_dir()

    if args.recent is not None:
        return print_recent(directory, args.recent, tag=args.tag, slot=args.slot)

    settings, notes = resolve_settings(directory)
    settings = apply_cli(settings, args)

    from PySide6.QtCore import QTimer
    from PySide6.QtWidgets import QApplication

    from qt_host import QtEventLoop
    from qt_popup import QtPopupSurface

    app = QApplication(sys.argv[:1])
    app.setQuitOnLastWindowClosed(False)

    db  = DBLogger(directory, app.platformName()) if settings.log_db else None
    log = EventLog(settings.log_level, db=db, trace=settings.trace)
    for tag, message in notes:
        log.log(message, tag)
    log.info(f"clippop started. Platform: {app.platformName()}")

    loop    = QtEventLoop()
    source  = make_source(settings, log)
    surface = QtPopupSurface(settings.actions_per_page, log)
    specs   = load_external_actions(directory / ACTIONS_FILE, log)
    watcher, _controller = wire(
        loop, source, surface, settings, log, specs, DetachedCommandRunner(log)
    )
    watcher.start()

    def _quit(signum, _frame):
        log.info(f"Received signal {signum}; shutting down")
        app.quit()

    signal.signal(signal.SIGINT, _quit)
    signal.signal(signal.SIGTERM, _quit)
    # Python only runs signal handlers between bytecodes; keep the interpreter ticking
    heartbeat = QTimer()
    heartbeat.timeout.connect(lambda: None)
    heartbeat.start(250)

    try:
        return app.exec()
    finally:
        watcher.stop()
        log.close()


if __name__ == "__main__":
    sys.exit(main())
