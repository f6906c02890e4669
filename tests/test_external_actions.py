import json
import subprocess

from external_actions import (
    DetachedCommandRunner, ExternalActionRegistry, ExternalActionSpec,
    expand_args, load_external_actions,
)
from fakes import FakeRunner


def test_expand_args_substitutes_literal_text():
    assert expand_args(["--text", "{text}"], "hi") == ["--text", "hi"]
    assert expand_args(["q={text}&again={text}"], "a b") == ["q=a b&again=a b"]
    assert expand_args(["{text}"], "$(rm -rf ~) {text}") == ["$(rm -rf ~) {text}"]


def test_load_actions_keeps_declaration_order(tmp_path, log):
    path = tmp_path / "actions.json"
    path.write_text(json.dumps({"actions": [
        {"label": "Search", "command": "xdg-open", "args": ["https://x/?q={text}"], "icon": "sp:SP_FileIcon"},
        {"label": "Speak", "command": "espeak", "args": ["{text}", 3], "enabled": False},
        {"label": "", "command": "nothing"},
        {"command": "orphan"},
        "junk",
    ]}), encoding="utf-8")

    specs = load_external_actions(path, log)

    assert [s.label for s in specs] == ["Search", "Speak"]
    assert specs[0].args == ("https://x/?q={text}",)
    assert specs[0].icon == "sp:SP_FileIcon"
    assert specs[1].args == ("{text}", "3")
    assert specs[1].enabled is False


def test_load_actions_rejects_non_boolean_enabled(tmp_path, log_stream):
    log, stream = log_stream
    path = tmp_path / "actions.json"
    path.write_text(json.dumps({"actions": [
        {"label": "Quoted", "command": "a", "enabled": "false"},
        {"label": "Numeric", "command": "b", "enabled": 0},
        {"label": "Plain", "command": "c", "enabled": True},
    ]}), encoding="utf-8")

    specs = load_external_actions(path, log)

    assert [s.label for s in specs] == ["Plain"]
    assert "Skipping action 'Quoted': enabled must be true or false" in stream.getvalue()


def test_load_actions_missing_or_malformed(tmp_path, log_stream):
    log, stream = log_stream
    assert load_external_actions(tmp_path / "absent.json", log) == []

    bad = tmp_path / "actions.json"
    bad.write_text("[oops", encoding="utf-8")
    assert load_external_actions(bad, log) == []

    bad.write_text('{"actions": {"label": "x"}}', encoding="utf-8")
    assert load_external_actions(bad, log) == []
    assert "Invalid actions.json" in stream.getvalue()


def test_registry_effect_invokes_runner_with_expanded_args(log):
    runner = FakeRunner()
    spec = ExternalActionSpec("Echo", "/bin/echo", ("--text", "{text}"))
    registry = ExternalActionRegistry([spec], runner, log)

    effect = registry.make_effect(spec, "hi")
    assert runner.calls == []
    effect()
    assert runner.calls == [("/bin/echo", ["--text", "hi"])]


def test_registry_enabled_specs_filters_disabled(log):
    specs = [
        ExternalActionSpec("A", "a"),
        ExternalActionSpec("B", "b", enabled=False),
        ExternalActionSpec("C", "c"),
    ]
    registry = ExternalActionRegistry(specs, FakeRunner(), log)
    assert [s.label for s in registry.enabled_specs()] == ["A", "C"]
    assert len(registry.specs) == 3


def test_detached_runner_reports_launch_failure(monkeypatch, log_stream):
    log, stream = log_stream

    def boom(*_args, **_kwargs):
        raise FileNotFoundError("no such file")

    monkeypatch.setattr(subprocess, "Popen", boom)
    assert DetachedCommandRunner(log).launch_detached("missing-cmd", ["x"]) is False
    assert "Could not launch missing-cmd" in stream.getvalue()


def test_detached_runner_starts_new_session(monkeypatch, log):
    seen = {}

    class FakePopen:
        def __init__(self, argv, **kwargs):
            seen["argv"] = argv
            seen.update(kwargs)

    monkeypatch.setattr(subprocess, "Popen", FakePopen)
    assert DetachedCommandRunner(log).launch_detached("cmd", ["--text", "hi"]) is True
    assert seen["argv"] == ["cmd", "--text", "hi"]
    assert seen["start_new_session"] is True
    assert seen["stdout"] is subprocess.DEVNULL
