"""
external_actions.py - User-defined commands shown after the built-in actions.

actions.json format (in the config directory):
    {
      "actions": [
        {"label": "Search DuckDuckGo", "command": "xdg-open",
         "args": ["https://duckduckgo.com/?q={text}"], "icon": "~/.config/clippop/icons/ddg.png"},
        {"label": "Speak", "command": "/usr/bin/espeak", "args": ["--", "{text}"],
         "enabled": false}
      ]
    }

Every occurrence of {text} in an argument is replaced by the captured text
verbatim. No shell is involved, so the text is never re-parsed. Commands
are launched detached; clippop does not wait for them or read their output.
"""

import json
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

PLACEHOLDER = "{text}"


@dataclass(frozen=True)
class ExternalActionSpec:
    label: str
    command: str
    args: Tuple[str, ...] = ()
    icon: Optional[str] = None
    enabled: bool = True


def expand_args(args, text: str) -> list:
    return [arg.replace(PLACEHOLDER, text) for arg in args]


# ─── Loader ───────────────────────────────────────────────────────────────────

def load_external_actions(path, log) -> list:
    """Parse actions.json. Anything unusable is skipped with a warning, never raised."""
    path = Path(path)
    if not path.exists():
        log.info(f"No external actions config at {path}")
        return []
    try:
        doc = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        log.warn(f"Invalid {path.name} ({exc})")
        return []
    if not isinstance(doc, dict):
        log.warn(f"Invalid {path.name} (not an object)")
        return []
    entries = doc.get("actions", [])
    if not isinstance(entries, list):
        log.warn(f"Invalid {path.name} ('actions' is not a list)")
        return []

    specs = []
    for entry in entries:
        if not isinstance(entry, dict):
            log.warn("Skipping action that is not an object")
            continue
        label   = entry.get("label")
        command = entry.get("command")
        if not isinstance(label, str) or not label or not isinstance(command, str) or not command:
            log.warn("Skipping action with missing label or command")
            continue
        raw_args = entry.get("args") or []
        if not isinstance(raw_args, list):
            log.warn(f"Skipping action '{label}': args must be a list")
            continue
        enabled = entry.get("enabled", True)
        if not isinstance(enabled, bool):
            log.warn(f"Skipping action '{label}': enabled must be true or false")
            continue
        icon = entry.get("icon")
        specs.append(ExternalActionSpec(
            label=label,
            command=command,
            args=tuple(a if isinstance(a, str) else json.dumps(a) for a in raw_args),
            icon=icon if isinstance(icon, str) and icon else None,
            enabled=enabled,
        ))

    log.info(f"Loaded external actions: {len(specs)}")
    return specs


# ─── Command runner ───────────────────────────────────────────────────────────

class DetachedCommandRunner:
    """Starts a process in its own session and forgets about it."""

    def __init__(self, log):
        self._log = log

    def launch_detached(self, command: str, args) -> bool:
        try:
            subprocess.Popen(
                [command, *args],
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
                close_fds=True,
            )
        except (OSError, ValueError) as exc:
            self._log.error(f"Could not launch {command}: {exc}")
            return False
        return True


# ─── Registry ─────────────────────────────────────────────────────────────────

class ExternalActionRegistry:
    def __init__(self, specs, runner, log):
        self._specs  = tuple(specs)
        self._runner = runner
        self._log    = log

    @property
    def specs(self) -> tuple:
        return self._specs

    def enabled_specs(self) -> list:
        return [s for s in self._specs if s.enabled]

    def make_effect(self, spec: ExternalActionSpec, text: str):
        def _run():
            ok = self._runner.launch_detached(spec.command, expand_args(spec.args, text))
            self._log.log(
                f"External action {spec.command} started: {ok}",
                "ok" if ok else "warn",
                action_label=spec.label,
            )
        return _run
