import os

import pytest

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
QtWidgets = pytest.importorskip("PySide6.QtWidgets")

from PySide6.QtWidgets import QToolButton  # noqa: E402

from menu_controller import MenuAction  # noqa: E402
from qt_popup import QtPopupSurface  # noqa: E402


@pytest.fixture(scope="module")
def qt_app():
    app = QtWidgets.QApplication.instance()
    if app is None:
        app = QtWidgets.QApplication([])
    yield app


def make_actions(n):
    return [MenuAction(f"Action {i}", lambda: None) for i in range(n)]


def live_buttons(surface):
    grid = surface.widget.grid
    return [grid.itemAt(i).widget() for i in range(grid.count())
            if isinstance(grid.itemAt(i).widget(), QToolButton)]


def test_renders_one_button_per_action_without_nav(qt_app, log):
    surface = QtPopupSurface(per_page=10, log=log)
    surface.show("text", make_actions(3))
    tips = [b.toolTip() for b in live_buttons(surface)]
    assert tips == ["Action 0", "Action 1", "Action 2"]
    surface.dismiss()


def test_paged_render_has_nav_and_maps_clicks(qt_app, log):
    surface = QtPopupSurface(per_page=2, log=log)
    picked = []
    surface.set_callbacks(picked.append, lambda: None)
    surface.show("text", make_actions(5))

    row = live_buttons(surface)
    assert [b.toolTip() for b in row] == ["Action 0", "Action 1", "Previous actions", "Next actions"]
    assert row[2].isEnabled() is False
    assert row[3].isEnabled() is True

    row[3].click()
    qt_app.processEvents()
    row = live_buttons(surface)
    assert [b.toolTip() for b in row][:2] == ["Action 2", "Action 3"]
    row[1].click()
    assert picked == [3]
    surface.dismiss()


def test_dismiss_hides_widget_and_closes_once(qt_app, log):
    surface = QtPopupSurface(per_page=10, log=log)
    closed = []
    surface.set_callbacks(lambda i: None, lambda: closed.append(True))
    surface.show("text", make_actions(2))
    assert surface.widget.isVisible()
    surface.dismiss()
    surface.widget.hide()
    assert not surface.widget.isVisible()
    assert closed == [True]


def test_unknown_icon_falls_back_to_label_icon(qt_app, log):
    surface = QtPopupSurface(per_page=10, log=log)
    assert not surface.icon_for("UPPERCASE", "sp:SP_NotARealIcon").isNull()
    assert not surface.icon_for("Anything", None).isNull()
