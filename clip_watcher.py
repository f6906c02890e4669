"""
clip_watcher.py - Turns clipboard and selection changes into candidate text.

Two ways in:
  - change notifications from the clipboard source, debounced, then read
  - an optional poll timer that reads both slots (plus the wl-paste fallback
    reader when enabled) and reports differences immediately

Everything here runs on the event loop. The only blocking call, the
wl-paste fallback, is done on a worker thread whose result is posted back.

Writes made by clippop itself arm a SuppressionFlag first; the echo
notification they cause is swallowed here and never reaches the menu.
"""

import enum
import subprocess
from concurrent.futures import ThreadPoolExecutor

from debouncer import DEFAULT_QUIET_MS, Debouncer
from event_loop import SingleShot
from text_transforms import preview

FALLBACK_TIMEOUT_MS = 200


class ClipboardSlot(enum.Enum):
    CLIPBOARD = "clipboard"
    SELECTION = "selection"


class SuppressionFlag:
    """
    Armed right before a self-initiated write to `slot`; the next change
    notification for that slot consumes it. Never survives more than one event.
    """

    def __init__(self):
        self._slot = None

    def arm(self, slot: ClipboardSlot):
        self._slot = slot

    @property
    def armed(self) -> bool:
        return self._slot is not None

    def consume(self, slot: ClipboardSlot) -> bool:
        if self._slot is slot:
            self._slot = None
            return True
        return False


# ─── Fallback reader ──────────────────────────────────────────────────────────

class WlPasteReader:
    """Reads text through wl-paste. Timeout, missing binary or non-zero exit → ("", False)."""

    def __init__(self, binary: str = "wl-paste"):
        self._binary = binary

    def read(self, args, timeout_ms: int):
        try:
            proc = subprocess.run(
                [self._binary, *args],
                stdin=subprocess.DEVNULL,
                capture_output=True,
                timeout=timeout_ms / 1000.0,
            )
        except (subprocess.TimeoutExpired, OSError):
            return "", False
        if proc.returncode != 0:
            return "", False
        return proc.stdout.decode("utf-8", errors="replace").strip(), True


# ─── Watcher ──────────────────────────────────────────────────────────────────

class ClipboardWatcher:
    def __init__(self, loop, source, settings, log, suppression: SuppressionFlag,
                 reader=None, executor=None, quiet_ms: int = DEFAULT_QUIET_MS):
        self.on_candidate = None          # on_candidate(text, slot)

        self._loop        = loop
        self._source      = source
        self._settings    = settings
        self._log         = log
        self._suppression = suppression
        self._reader      = reader
        self._executor    = executor
        self._own_executor = False

        self._last     = {slot: "" for slot in ClipboardSlot}
        self._pending  = None             # (slot, provider) awaiting the quiet period
        self._paused   = False
        self._in_flight = False
        self._fallback_failing = set()

        self._debouncer   = Debouncer(loop, self._on_quiet, quiet_ms)
        self._poll_timer  = SingleShot(loop, self._on_poll_tick)
        self._rearm_timer = SingleShot(loop, self._on_rearm)

        if settings.fallback_reader_enabled:
            if self._reader is None:
                self._reader = WlPasteReader()
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=1, thread_name_prefix="clippop-fallback"
                )
                self._own_executor = True

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    def start(self):
        self._seed()
        self._source.connect(self.on_change)
        if self._settings.poll_enabled:
            self._log.info(f"Polling enabled interval_ms={self._settings.poll_interval_ms}")
            # first poll waits one interval so launch never pops a menu
            self._poll_timer.start(self._settings.poll_interval_ms)
        if self._settings.fallback_reader_enabled:
            self._log.info(f"wl-paste fallback enabled, mode: {self._settings.fallback_reader_mode}")

    def stop(self):
        self._debouncer.cancel()
        self._poll_timer.stop()
        self._rearm_timer.stop()
        if self._own_executor:
            self._executor.shutdown(wait=False)

    def _seed(self):
        for slot in ClipboardSlot:
            try:
                self._last[slot] = (self._source.read(slot) or "").strip()
            except Exception as exc:
                self._log.warn(f"Clipboard read error ({slot.value}): {exc}")

    # ── State ─────────────────────────────────────────────────────────────────

    def last_known(self, slot: ClipboardSlot) -> str:
        return self._last[slot]

    def remember(self, slot: ClipboardSlot, text: str):
        """Record a value clippop wrote itself, so polling does not report it back."""
        self._last[slot] = text.strip()

    @property
    def paused(self) -> bool:
        return self._paused

    @property
    def polling_active(self) -> bool:
        return self._poll_timer.active

    # ── Change notifications ──────────────────────────────────────────────────

    def on_change(self, slot: ClipboardSlot, provider=None):
        if self._suppression.consume(slot):
            self._log.info(f"{slot.value.capitalize()} change suppressed.")
            return
        self._log.info(f"{slot.value.capitalize()} changed.")
        self._pending = (slot, provider)
        self._debouncer.schedule()

    def _on_quiet(self):
        if self._pending is None:
            return
        slot, provider = self._pending
        self._pending = None
        try:
            raw = provider() if provider is not None else self._source.read(slot)
        except Exception as exc:
            self._log.warn(f"Clipboard read error ({slot.value}): {exc}")
            return
        text = (raw or "").strip()
        self._last[slot] = text
        self._log.info(
            f"Evaluating text from {slot.value} len={len(text)} preview={preview(text)}",
            slot=slot.value,
        )
        self._emit(text, slot)

    def _emit(self, text: str, slot: ClipboardSlot):
        if self.on_candidate is not None:
            self.on_candidate(text, slot)

    # ── Polling ───────────────────────────────────────────────────────────────

    def pause_polling(self):
        self._paused = True
        self._poll_timer.stop()
        self._rearm_timer.stop()

    def resume_polling_after(self, delay_ms: int):
        if not self._settings.poll_enabled:
            self._paused = False
            return
        self._rearm_timer.start(delay_ms)

    def _on_rearm(self):
        if not self._settings.poll_enabled:
            return
        self._paused = False
        self._poll_timer.start(self._settings.poll_interval_ms)

    def _on_poll_tick(self):
        self.poll()
        if self._settings.poll_enabled and not self._paused:
            self._poll_timer.start(self._settings.poll_interval_ms)

    def poll(self):
        if not self._settings.poll_enabled or self._paused or self._in_flight:
            return
        try:
            clip = (self._source.read(ClipboardSlot.CLIPBOARD) or "").strip()
            sel  = (self._source.read(ClipboardSlot.SELECTION) or "").strip()
        except Exception as exc:
            self._log.warn(f"Clipboard read error: {exc}")
            return

        if not self._settings.fallback_reader_enabled:
            self._apply_poll(clip, sel)
            return

        self._in_flight = True
        future = self._executor.submit(self._read_fallback)
        future.add_done_callback(
            lambda f: self._loop.post(lambda: self._finish_fallback(f, clip, sel))
        )

    def _read_fallback(self) -> dict:
        # worker thread: touch nothing but the reader
        mode = self._settings.fallback_reader_mode
        results = {}
        if mode != "primary":
            results[ClipboardSlot.CLIPBOARD] = self._reader.read([], FALLBACK_TIMEOUT_MS)
        if mode != "clipboard":
            results[ClipboardSlot.SELECTION] = self._reader.read(["--primary"], FALLBACK_TIMEOUT_MS)
        return results

    def _finish_fallback(self, future, clip: str, sel: str):
        self._in_flight = False
        try:
            results = future.result()
        except Exception as exc:
            self._log.warn(f"wl-paste read failed: {exc}")
            results = {}

        texts = {ClipboardSlot.CLIPBOARD: clip, ClipboardSlot.SELECTION: sel}
        for slot, (text, ok) in results.items():
            self._note_fallback(slot, ok)
            self._log.trace(f"wl-paste {slot.value} ok={ok} len={len(text)}")
            if ok and text:
                texts[slot] = text

        if self._paused:
            self._log.trace("poll result dropped while paused")
            return
        self._apply_poll(texts[ClipboardSlot.CLIPBOARD], texts[ClipboardSlot.SELECTION])

    def _note_fallback(self, slot: ClipboardSlot, ok: bool):
        if ok:
            if slot in self._fallback_failing:
                self._fallback_failing.discard(slot)
                self._log.info(f"wl-paste {slot.value} read recovered")
        elif slot not in self._fallback_failing:
            self._fallback_failing.add(slot)
            self._log.warn(f"wl-paste {slot.value} read failed; using the clipboard value")

    def _apply_poll(self, clip: str, sel: str):
        for slot, text in ((ClipboardSlot.CLIPBOARD, clip), (ClipboardSlot.SELECTION, sel)):
            self._log.trace(f"{slot.value} len={len(text)} preview={preview(text)}")
            if text == self._last[slot]:
                continue
            self._last[slot] = text
            if text:
                self._log.info(f"Poll: {slot.value} changed len={len(text)}")
                self._emit(text, slot)
