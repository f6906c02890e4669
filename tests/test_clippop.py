import io
import sqlite3

import clippop
from app_settings import EffectiveSettings
from clip_watcher import ClipboardSlot
from db_logger import DBLogger, db_file, read_entries
from event_log import EventLog
from external_actions import ExternalActionSpec
from fakes import FakeReader, FakeSource, FakeSurface, ImmediateExecutor, settings
from menu_controller import MenuState

CLIP = ClipboardSlot.CLIPBOARD
SEL = ClipboardSlot.SELECTION


def build(loop, log, runner, source=None, surface=None, specs=(), reader=None, **config):
    source = source or FakeSource()
    surface = surface or FakeSurface()
    watcher, controller = clippop.wire(
        loop, source, surface, settings(**config), log, list(specs), runner,
        reader=reader, executor=ImmediateExecutor(),
    )
    watcher.start()
    return watcher, controller, source, surface


def test_poll_scenario_one_popup_for_new_value(loop, log, runner):
    _w, _c, source, surface = build(
        loop, log, runner, poll_enabled=True, poll_interval_ms=1500, fallback_reader_enabled=False,
    )
    loop.advance(1500)
    source.change(CLIP, "abc", notify=False)
    loop.advance(1500)
    loop.advance(1500)
    assert [s[0] for s in surface.shows] == ["abc"]


def test_poll_ticks_while_visible_fire_nothing(loop, log, runner):
    _w, controller, source, surface = build(loop, log, runner, poll_enabled=True, poll_interval_ms=500)
    controller.evaluate("open")
    for i in range(10):
        source.change(CLIP, f"value {i}", notify=False)
        source.change(SEL, f"sel {i}", notify=False)
        loop.advance(500)
    assert len(surface.shows) == 1


def test_debounced_burst_gives_single_popup_with_last_text(loop, log, runner):
    _w, _c, source, surface = build(loop, log, runner)
    for text in ("a", "ab", "abc", "abcd"):
        source.change(SEL, text)
        loop.advance(30)
    loop.advance(200)
    assert surface.shows == [("abcd", surface.shows[0][1])]


def test_normalize_scenario_with_echo(loop, log, runner):
    source = FakeSource(echo=True)
    _w, controller, _s, surface = build(loop, log, runner, source=source)
    source.change(CLIP, "  hello   world  ")
    loop.advance(120)
    surface.select_label("Normalize Whitespace")
    loop.advance(5000)
    assert source.values[CLIP] == "hello world"
    assert len(surface.shows) == 1
    assert controller.state is MenuState.IDLE


def test_external_action_scenario(loop, log, runner):
    spec = ExternalActionSpec("Tool", "tool", ("--text", "{text}"))
    _w, controller, source, surface = build(loop, log, runner, specs=[spec])
    source.change(CLIP, "hi")
    loop.advance(120)
    surface.select_label("Tool")
    assert runner.calls == [("tool", ["--text", "hi"])]


def test_fallback_reader_wired_through(loop, log, runner):
    reader = FakeReader({("--primary",): ("from wl-paste", True)})
    _w, _c, _source, surface = build(
        loop, log, runner, reader=reader,
        poll_enabled=True, poll_interval_ms=1000, fallback_reader_enabled=True,
    )
    loop.advance(1000)
    assert [s[0] for s in surface.shows] == ["from wl-paste"]


def test_parse_args_and_apply_cli():
    args = clippop.parse_args(["--log-level", "debug", "--trace", "--poll-ms", "700"])
    applied = clippop.apply_cli(EffectiveSettings(), args)
    assert applied.log_level == "debug"
    assert applied.trace is True
    assert applied.poll_enabled is True
    assert applied.poll_interval_ms == 700

    untouched = EffectiveSettings(poll_interval_ms=1234)
    assert clippop.apply_cli(untouched, clippop.parse_args([])) is untouched


def test_print_recent(tmp_path):
    db = DBLogger(tmp_path)
    db.log("first")
    db.log("Showing menu", slot="selection")
    db.log("launched", "ok", "Search")
    db.flush()
    db.stop()

    out = io.StringIO()
    assert clippop.print_recent(tmp_path, 10, stream=out) == 0
    lines = out.getvalue().splitlines()
    assert lines[0].endswith("first")
    assert " selection Showing menu" in lines[1]
    assert "[Search] launched" in lines[2]

    out = io.StringIO()
    clippop.print_recent(tmp_path, 10, tag="ok", stream=out)
    assert out.getvalue().count("\n") == 1

    out = io.StringIO()
    clippop.print_recent(tmp_path, 10, slot="selection", stream=out)
    assert out.getvalue().rstrip().endswith("Showing menu")


def test_print_recent_does_not_write(tmp_path):
    db = DBLogger(tmp_path)
    db.log("only")
    db.flush()
    db.stop()

    def counts():
        conn = sqlite3.connect(str(db_file(tmp_path)))
        try:
            return (conn.execute("SELECT COUNT(*) FROM sessions").fetchone()[0],
                    conn.execute("SELECT COUNT(*) FROM entries").fetchone()[0])
        finally:
            conn.close()

    before = counts()
    clippop.print_recent(tmp_path, 5, stream=io.StringIO())
    assert counts() == before == (1, 1)


def test_main_recent_exits_without_qt(tmp_path, capsys):
    assert clippop.main(["--config-dir", str(tmp_path), "--recent", "5", "--tag", "ok"]) == 0
    assert capsys.readouterr().out == ""
    assert not db_file(tmp_path).exists()


def test_popup_and_choice_are_persisted_with_slot_and_label(tmp_path, loop, runner):
    db = DBLogger(tmp_path)
    log = EventLog("info", stream=io.StringIO(), db=db)
    _w, _c, source, surface = build(loop, log, runner)
    source.change(SEL, "pick me")
    loop.advance(120)
    surface.select_label("UPPERCASE")
    db.flush()

    shown = read_entries(tmp_path, slot="selection")
    assert any(e["message"].startswith("Showing menu") for e in shown)
    choices = [e for e in read_entries(tmp_path) if e["action_label"] == "UPPERCASE"]
    assert [e["message"] for e in choices] == ["Menu choice: UPPERCASE"]
    log.close()
