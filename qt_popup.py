"""
qt_popup.py - The action popup as a frameless PySide6 tool window.

One row of icon buttons (label in the tooltip), plus previous/next arrows
when the actions do not fit on one page. Escape dismisses; so does losing
focus once the grace window after showing has passed, unless the pointer
is still over the popup.
"""

import time

from PySide6.QtCore import QPoint, QSize, Qt
from PySide6.QtGui import QCursor, QGuiApplication, QIcon
from PySide6.QtWidgets import QGridLayout, QStyle, QToolButton, QWidget

from popup_surface import (
    PopupSurface, default_icon_for, focus_loss_dismisses, clamp_to_bounds, parse_icon_spec,
)

BUTTON_SIZE = 30
ICON_SIZE   = 20


class _ActionPopup(QWidget):
    def __init__(self, surface: "QtPopupSurface"):
        super().__init__(None, Qt.WindowType.Tool | Qt.WindowType.FramelessWindowHint)
        self._surface  = surface
        self._shown_at = None
        self.setObjectName("ActionPopup")
        self.setFocusPolicy(Qt.FocusPolicy.StrongFocus)

        self.grid = QGridLayout(self)
        self.grid.setContentsMargins(6, 6, 6, 6)
        self.grid.setSpacing(4)

    def show_at_cursor(self):
        pos    = QCursor.pos()
        screen = QGuiApplication.screenAt(pos) or QGuiApplication.primaryScreen()
        geom   = screen.availableGeometry()
        size   = self.sizeHint()
        x, y = clamp_to_bounds(
            (pos.x(), pos.y()),
            (size.width(), size.height()),
            (geom.left(), geom.top(), geom.width(), geom.height()),
        )
        self.move(QPoint(x, y))
        self._shown_at = time.monotonic()
        self.show()
        self.raise_()
        self.activateWindow()
        self.setFocus()

    # ── Events ────────────────────────────────────────────────────────────────

    def focusOutEvent(self, event):
        super().focusOutEvent(event)
        elapsed_ms = (time.monotonic() - (self._shown_at or 0)) * 1000
        if focus_loss_dismisses(elapsed_ms, self.underMouse()):
            self._surface.dismiss()

    def keyPressEvent(self, event):
        if event.key() == Qt.Key.Key_Escape:
            self._surface.dismiss()
            return
        super().keyPressEvent(event)

    def hideEvent(self, event):
        super().hideEvent(event)
        # window manager closes count as a dismiss too; dismiss() ignores repeats
        self._surface.dismiss()


class QtPopupSurface(PopupSurface):
    def __init__(self, per_page: int, log):
        super().__init__(per_page)
        self._log    = log
        self._widget = _ActionPopup(self)

    @property
    def widget(self) -> QWidget:
        return self._widget

    # ── PopupSurface ──────────────────────────────────────────────────────────

    def show(self, text: str, actions):
        super().show(text, actions)
        self._widget.show_at_cursor()

    def _hide(self):
        self._widget.hide()

    def _render(self, layout):
        grid = self._widget.grid
        while grid.count():
            item = grid.takeAt(0)
            if item.widget() is not None:
                item.widget().deleteLater()

        for col, slot in enumerate(layout.slots):
            if slot.kind == "action":
                widget = self._action_button(slot.index)
            elif slot.kind == "prev":
                widget = self._nav_button(QStyle.StandardPixmap.SP_ArrowBack,
                                          "Previous actions", slot.enabled, -1)
            elif slot.kind == "next":
                widget = self._nav_button(QStyle.StandardPixmap.SP_ArrowForward,
                                          "Next actions", slot.enabled, 1)
            else:
                widget = QWidget(self._widget)
                widget.setFixedSize(BUTTON_SIZE, BUTTON_SIZE)
            grid.addWidget(widget, 0, col)
        self._widget.adjustSize()

    # ── Buttons ───────────────────────────────────────────────────────────────

    def _tool_button(self, icon: QIcon, tooltip: str) -> QToolButton:
        button = QToolButton(self._widget)
        button.setToolButtonStyle(Qt.ToolButtonStyle.ToolButtonIconOnly)
        button.setAutoRaise(True)
        button.setIcon(icon)
        button.setToolTip(tooltip)
        button.setFixedSize(BUTTON_SIZE, BUTTON_SIZE)
        button.setIconSize(QSize(ICON_SIZE, ICON_SIZE))
        return button

    def _action_button(self, position: int) -> QToolButton:
        action = self.visible_action(position)
        button = self._tool_button(self.icon_for(action.label, action.icon), action.label)
        button.clicked.connect(lambda _checked=False, p=position: self.select_visible(p))
        return button

    def _nav_button(self, pixmap, tooltip: str, enabled: bool, delta: int) -> QToolButton:
        button = self._tool_button(self._widget.style().standardIcon(pixmap), tooltip)
        button.setEnabled(enabled)
        button.clicked.connect(lambda _checked=False, d=delta: self.turn_page(d))
        return button

    # ── Icons ─────────────────────────────────────────────────────────────────

    def icon_for(self, label: str, spec) -> QIcon:
        icon = self._icon_from_spec(spec)
        if icon.isNull():
            icon = self._icon_from_spec(default_icon_for(label))
        return icon

    def _icon_from_spec(self, spec) -> QIcon:
        parsed = parse_icon_spec(spec)
        if parsed is None:
            return QIcon()
        kind, name = parsed
        if kind == "standard":
            pixmap = getattr(QStyle.StandardPixmap, name, None)
            if pixmap is None:
                self._log.debug(f"Unknown standard icon {name}")
                return QIcon()
            return self._widget.style().standardIcon(pixmap)
        if kind == "file":
            return QIcon(name)
        return QIcon.fromTheme(name)
