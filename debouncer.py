"""
debouncer.py - Coalesces bursts of clipboard notifications.

Selecting text with the mouse fires selectionChanged on every drag step;
only the value left once things go quiet is worth a popup.
"""

from event_loop import EventLoop, SingleShot

DEFAULT_QUIET_MS = 120


class Debouncer:
    def __init__(self, loop: EventLoop, on_fire, quiet_ms: int = DEFAULT_QUIET_MS):
        self.quiet_ms = quiet_ms
        self._on_fire = on_fire
        self._timer   = SingleShot(loop, self._fire)

    def schedule(self):
        """(Re)start the quiet period. Last call in a burst wins."""
        self._timer.start(self.quiet_ms)

    def cancel(self):
        self._timer.stop()

    @property
    def pending(self) -> bool:
        return self._timer.active

    def _fire(self):
        self._on_fire()
