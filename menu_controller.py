"""
menu_controller.py - Owns the popup and everything that happens in it.

    IDLE ──candidate text (non-empty, past cooldown)──▶ POPUP_OPEN
    POPUP_OPEN ──escape / focus loss / action picked──▶ IDLE

While the popup is open further candidates are dropped, not queued.
Polling pauses on open and re-arms RESUME_POLL_MS after close; a new popup
is not allowed until POPUP_COOLDOWN_MS after the previous one closed.

Built-in actions write back to the clipboard they came from, so each one
arms the SuppressionFlag before writing.
"""

import enum
from dataclasses import dataclass, field
from typing import Callable, List, Optional

import text_transforms
from clip_watcher import ClipboardSlot, SuppressionFlag
from text_transforms import preview

RESUME_POLL_MS    = 300
POPUP_COOLDOWN_MS = 800


class MenuState(enum.Enum):
    IDLE       = "idle"
    POPUP_OPEN = "popup_open"


@dataclass
class MenuAction:
    label: str
    effect: Callable[[], None]
    enabled: bool = True
    icon: Optional[str] = None


@dataclass
class PopupState:
    is_visible: bool = False
    current_page: int = 0
    text: str = ""
    actions: List[MenuAction] = field(default_factory=list)


# (label, transform, icon) in menu order
BUILTIN_ACTIONS = (
    ("UPPERCASE",            text_transforms.upper,                "sp:SP_ArrowUp"),
    ("lowercase",            text_transforms.lower,                "sp:SP_ArrowDown"),
    ("Title Case",           text_transforms.title_case,           "sp:SP_FileDialogDetailedView"),
    ("Normalize Whitespace", text_transforms.normalize_whitespace, "sp:SP_BrowserReload"),
    ("Copy to Clipboard",    None,                                 "sp:SP_DialogOpenButton"),
)


class MenuController:
    def __init__(self, loop, source, watcher, surface, registry, log,
                 suppression: SuppressionFlag):
        self._loop        = loop
        self._source      = source
        self._watcher     = watcher
        self._surface     = surface
        self._registry    = registry
        self._log         = log
        self._suppression = suppression

        self.state = MenuState.IDLE
        self.popup = PopupState()
        self.last_text = ""
        self._next_allowed_popup_ms = 0

        watcher.on_candidate = self.evaluate
        surface.set_callbacks(
            on_selected=self.on_action_selected,
            on_closed=self.on_popup_closed,
            on_page_changed=self.on_page_changed,
        )

    # ── Opening ───────────────────────────────────────────────────────────────

    def evaluate(self, text: str, slot: ClipboardSlot = ClipboardSlot.CLIPBOARD) -> bool:
        """Open the popup for `text` if nothing forbids it. Returns True when it opened."""
        text = (text or "").strip()
        if not text:
            self._log.info("No text to act on.")
            return False
        if self.state is MenuState.POPUP_OPEN:
            self._log.info("Popup already visible; skipping.")
            return False
        if self._loop.now_ms() < self._next_allowed_popup_ms:
            self._log.info("Popup cooldown active; skipping.")
            return False

        self.state = MenuState.POPUP_OPEN
        self.last_text = text
        self._watcher.pause_polling()

        actions = self.build_actions(text)
        self.popup = PopupState(is_visible=True, current_page=0, text=text, actions=actions)
        self._log.info(
            f"Showing menu with {len(actions)} items for {slot.value} text "
            f"preview={preview(text)}",
            slot=slot.value,
        )
        self._surface.show(text, actions)
        return True

    def build_actions(self, text: str) -> List[MenuAction]:
        actions = []
        for label, transform, icon in BUILTIN_ACTIONS:
            result = transform(text) if transform is not None else text
            actions.append(MenuAction(label, self._writer(result), True, icon))
        for spec in self._registry.enabled_specs():
            actions.append(MenuAction(spec.label, self._registry.make_effect(spec, text),
                                      True, spec.icon))
        return actions

    def _writer(self, text: str):
        def _write():
            self.set_clipboard_text(text)
        return _write

    def set_clipboard_text(self, text: str):
        slot = ClipboardSlot.CLIPBOARD
        self._suppression.arm(slot)
        self._watcher.remember(slot, text)
        self.last_text = text
        self._log.info(f"Setting clipboard text len={len(text)}")
        self._source.write(slot, text)

    # ── Popup callbacks ───────────────────────────────────────────────────────

    def on_action_selected(self, index: int):
        if self.state is not MenuState.POPUP_OPEN:
            self._log.warn(f"Action {index} selected with no popup open; ignored")
            return
        actions = self.popup.actions
        if not 0 <= index < len(actions) or not actions[index].enabled:
            self._log.warn(f"Action index {index} out of range; ignored")
            return

        action = actions[index]
        self._log.info(f"Menu choice: {action.label}", action_label=action.label)
        try:
            action.effect()
        except Exception as exc:
            self._log.error(f"Action '{action.label}' failed: {exc}", action_label=action.label)
        finally:
            self._surface.dismiss()

    def on_page_changed(self, page: int):
        self.popup.current_page = page

    def on_popup_closed(self):
        if self.state is not MenuState.POPUP_OPEN:
            return
        self.state = MenuState.IDLE
        self.popup = PopupState()
        self._next_allowed_popup_ms = self._loop.now_ms() + POPUP_COOLDOWN_MS
        self._watcher.resume_polling_after(RESUME_POLL_MS)
        self._log.debug("Popup closed.")
