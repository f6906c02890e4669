"""
clip_sources.py - Where clipboard text comes from and goes to.

A clipboard source offers:
    connect(handler)      handler(slot) is called on every change notification
    read(slot) -> str
    write(slot, text)
    supports_selection() -> bool

qt_host.QtClipboardSource is the default. PyperclipSource reads through
pyperclip instead (wl-paste / xclip / xsel underneath), which keeps working
on Wayland sessions where an unfocused Qt window sees a stale clipboard.
"""

import pyperclip

from clip_watcher import ClipboardSlot


class ClipboardSource:
    def connect(self, handler):
        raise NotImplementedError

    def read(self, slot: ClipboardSlot) -> str:
        raise NotImplementedError

    def write(self, slot: ClipboardSlot, text: str):
        raise NotImplementedError

    def supports_selection(self) -> bool:
        return False


class PyperclipSource(ClipboardSource):
    """Clipboard slot only, and no notifications: pair it with polling."""

    def connect(self, handler):
        pass

    def read(self, slot: ClipboardSlot) -> str:
        if slot is not ClipboardSlot.CLIPBOARD:
            return ""
        return pyperclip.paste() or ""

    def write(self, slot: ClipboardSlot, text: str):
        if slot is ClipboardSlot.CLIPBOARD:
            pyperclip.copy(text)
