"""
event_loop.py - The loop every piece of clipboard and menu state runs on.

Clipboard notifications, the debounce timer, the poll timer and popup
callbacks are all serialised onto one EventLoop, so none of that state
needs a lock. Work that may block (the wl-paste fallback read) runs on a
worker and comes back through post().

qt_host.QtEventLoop is the production implementation.
"""


class TimerHandle:
    """A scheduled single-shot callback. cancel() may be called any number of times."""

    def cancel(self):
        raise NotImplementedError

    @property
    def active(self) -> bool:
        raise NotImplementedError


class EventLoop:
    def now_ms(self) -> int:
        """Monotonic milliseconds."""
        raise NotImplementedError

    def call_later(self, delay_ms: int, fn) -> TimerHandle:
        raise NotImplementedError

    def post(self, fn):
        """Run fn on the loop as soon as possible. Safe to call from any thread."""
        raise NotImplementedError


class SingleShot:
    """
    One re-armable timer slot. start() replaces whatever was scheduled before,
    so a burst of start() calls only ever produces one firing.
    """

    def __init__(self, loop: EventLoop, fn):
        self._loop   = loop
        self._fn     = fn
        self._handle = None

    def start(self, delay_ms: int):
        self.stop()
        self._handle = self._loop.call_later(delay_ms, self._fire)

    def stop(self):
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    @property
    def active(self) -> bool:
        return self._handle is not None and self._handle.active

    def _fire(self):
        self._handle = None
        self._fn()
