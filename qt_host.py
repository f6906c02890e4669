"""
qt_host.py - PySide6 bindings for the event loop and the system clipboard.
"""

from PySide6.QtCore import QElapsedTimer, QObject, QTimer, Signal
from PySide6.QtGui import QClipboard, QGuiApplication

from clip_sources import ClipboardSource
from clip_watcher import ClipboardSlot
from event_loop import EventLoop, TimerHandle

_MODES = {
    ClipboardSlot.CLIPBOARD: QClipboard.Mode.Clipboard,
    ClipboardSlot.SELECTION: QClipboard.Mode.Selection,
}


class _QtTimerHandle(TimerHandle):
    def __init__(self, timer: QTimer):
        self._timer = timer

    def cancel(self):
        if self._timer is not None:
            self._timer.stop()
            self._timer.deleteLater()
            self._timer = None

    @property
    def active(self) -> bool:
        return self._timer is not None and self._timer.isActive()

    def _fired(self):
        if self._timer is not None:
            self._timer.deleteLater()
            self._timer = None


class QtEventLoop(QObject, EventLoop):
    _posted = Signal(object)

    def __init__(self, parent=None):
        QObject.__init__(self, parent)
        self._clock = QElapsedTimer()
        self._clock.start()
        # emitted from worker threads, delivered queued on the GUI thread
        self._posted.connect(self._run_posted)

    def now_ms(self) -> int:
        return self._clock.elapsed()

    def call_later(self, delay_ms: int, fn) -> TimerHandle:
        timer = QTimer(self)
        timer.setSingleShot(True)
        handle = _QtTimerHandle(timer)

        def _fire():
            handle._fired()
            fn()

        timer.timeout.connect(_fire)
        timer.start(max(0, int(delay_ms)))
        return handle

    def post(self, fn):
        self._posted.emit(fn)

    def _run_posted(self, fn):
        fn()


class QtClipboardSource(ClipboardSource):
    def __init__(self, log, clipboard: QClipboard = None):
        self._clipboard = clipboard or QGuiApplication.clipboard()
        self._log = log
        log.info(f"Supports selection: {self._clipboard.supportsSelection()}")

    def connect(self, handler):
        self._clipboard.dataChanged.connect(lambda: handler(ClipboardSlot.CLIPBOARD))
        if self._clipboard.supportsSelection():
            self._clipboard.selectionChanged.connect(
                lambda: handler(ClipboardSlot.SELECTION)
            )

    def read(self, slot: ClipboardSlot) -> str:
        if slot is ClipboardSlot.SELECTION and not self._clipboard.supportsSelection():
            return ""
        return self._clipboard.text(_MODES[slot])

    def write(self, slot: ClipboardSlot, text: str):
        self._clipboard.setText(text, _MODES[slot])

    def supports_selection(self) -> bool:
        return self._clipboard.supportsSelection()
