"""
popup_surface.py - The popup contract, independent of any widget toolkit.

MenuController only ever talks to a PopupSurface. The base class carries
the protocol every surface must honour:

  - at most `per_page` action buttons per page; when there are more actions,
    two extra columns hold previous/next controls (disabled at the ends)
  - selections are reported as indices into the list given to show(),
    never page-local positions
  - on_closed fires exactly once per show(); dismiss() is idempotent

Subclasses only draw (_render) and hide (_hide). qt_popup.QtPopupSurface is
the real one.
"""

import math
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple
from urllib.parse import unquote, urlparse

FOCUS_GRACE_MS = 200


# ─── Pagination ───────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Slot:
    kind: str                     # "action" | "spacer" | "prev" | "next"
    index: Optional[int] = None   # visible position for "action"
    enabled: bool = True


@dataclass(frozen=True)
class PageLayout:
    page: int
    page_count: int
    needs_paging: bool
    slots: Tuple[Slot, ...]

    @property
    def action_slots(self) -> List[Slot]:
        return [s for s in self.slots if s.kind == "action"]

    def nav(self, kind: str) -> Optional[Slot]:
        return next((s for s in self.slots if s.kind == kind), None)


def paginate(total: int, per_page: int, page: int = 0) -> PageLayout:
    per_page = max(1, per_page)
    needs_paging = total > per_page
    page_count = math.ceil(total / per_page) if needs_paging else 1
    page = min(max(page, 0), page_count - 1)

    start = page * per_page
    end   = min(total, start + per_page)
    slots = [Slot("action", i) for i in range(start, end)]
    slots += [Slot("spacer", enabled=False)] * (per_page - len(slots))
    if needs_paging:
        slots.append(Slot("prev", enabled=page > 0))
        slots.append(Slot("next", enabled=page + 1 < page_count))
    return PageLayout(page, page_count, needs_paging, tuple(slots))


# ─── Geometry / focus ─────────────────────────────────────────────────────────

def clamp_to_bounds(pos, size, bounds):
    """
    Keep a popup of `size` (w, h) at `pos` (x, y) inside `bounds`
    (left, top, width, height). Oversized popups stick to the top-left edge.
    """
    x, y = pos
    w, h = size
    left, top, width, height = bounds
    x = max(left, min(x, left + width - w))
    y = max(top, min(y, top + height - h))
    return x, y


def focus_loss_dismisses(elapsed_ms: float, under_pointer: bool,
                         grace_ms: int = FOCUS_GRACE_MS) -> bool:
    # the popup's own appearance steals focus once; ignore that one
    if elapsed_ms < grace_ms:
        return False
    return not under_pointer


# ─── Icon specs ───────────────────────────────────────────────────────────────

_LABEL_ICONS = (
    ("uppercase", "sp:SP_ArrowUp"),
    ("lowercase", "sp:SP_ArrowDown"),
    ("title",     "sp:SP_FileDialogDetailedView"),
    ("normalize", "sp:SP_BrowserReload"),
    ("copy",      "sp:SP_DialogOpenButton"),
)
DEFAULT_ICON = "sp:SP_FileIcon"


def default_icon_for(label: str) -> str:
    key = label.lower()
    return next((spec for word, spec in _LABEL_ICONS if word in key), DEFAULT_ICON)


def parse_icon_spec(spec: Optional[str]):
    """
    Classify an icon spec:
        "sp:SP_ArrowUp"          -> ("standard", "SP_ArrowUp")
        "file:///x.png", "~/x"   -> ("file", "/abs/path")   only if it exists
        "edit-copy"              -> ("theme", "edit-copy")
    Returns None for empty specs and for file specs that point nowhere.
    """
    if not spec:
        return None
    if spec.startswith("sp:"):
        return ("standard", spec[3:])
    if spec.startswith("file:"):
        path = Path(unquote(urlparse(spec).path))
        return ("file", str(path)) if path.exists() else None
    path = Path(spec).expanduser()
    if path.is_absolute():
        return ("file", str(path)) if path.exists() else None
    return ("theme", spec)


# ─── Surface base ─────────────────────────────────────────────────────────────

class PopupSurface:
    def __init__(self, per_page: int = 10):
        self.per_page = max(1, per_page)
        self._on_selected     = None
        self._on_closed       = None
        self._on_page_changed = None
        self._actions  = []
        self._visible_indices = []
        self._page     = 0
        self._is_open  = False
        self.text      = ""

    def set_callbacks(self, on_selected, on_closed, on_page_changed=None):
        self._on_selected     = on_selected
        self._on_closed       = on_closed
        self._on_page_changed = on_page_changed

    @property
    def is_open(self) -> bool:
        return self._is_open

    @property
    def page(self) -> int:
        return self._page

    def layout(self) -> PageLayout:
        return paginate(len(self._visible_indices), self.per_page, self._page)

    def visible_action(self, position: int):
        return self._actions[self._visible_indices[position]]

    # ── Protocol ──────────────────────────────────────────────────────────────

    def show(self, text: str, actions):
        self.text = text
        self._actions = list(actions)
        self._visible_indices = [i for i, a in enumerate(self._actions) if a.enabled]
        self._page = 0
        self._is_open = True
        self._render(self.layout())

    def turn_page(self, delta: int):
        if not self._is_open:
            return
        layout = paginate(len(self._visible_indices), self.per_page, self._page + delta)
        if layout.page == self._page:
            return
        self._page = layout.page
        self._render(layout)
        if self._on_page_changed is not None:
            self._on_page_changed(self._page)

    def select_visible(self, position: int):
        """Report the button at visible `position`, translated to its index in show()'s list."""
        if not self._is_open or not 0 <= position < len(self._visible_indices):
            return
        if self._on_selected is not None:
            self._on_selected(self._visible_indices[position])

    def select_slot(self, column: int):
        """Report the action button sitting in `column` of the current page."""
        slots = self.layout().slots
        if 0 <= column < len(slots) and slots[column].kind == "action":
            self.select_visible(slots[column].index)

    def dismiss(self):
        if not self._is_open:
            return
        self._is_open = False
        self._hide()
        if self._on_closed is not None:
            self._on_closed()

    # ── Drawing ───────────────────────────────────────────────────────────────

    def _render(self, layout: PageLayout):
        raise NotImplementedError

    def _hide(self):
        raise NotImplementedError
