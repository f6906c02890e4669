"""
app_settings.py - Effective settings for clippop.

Resolution order (later wins):
    built-in defaults  <  settings.json  <  CLIPPOP_* environment variables

settings.json lives in the config directory:
    $CLIPPOP_CONFIG_DIR, else $XDG_CONFIG_HOME/clippop, else ~/.config/clippop

settings.json format:
    {
      "poll": true,              # active polling on top of change notifications
      "poll_ms": 1500,
      "wlpaste": false,          # wl-paste fallback reader during polls
      "wlpaste_mode": "primary", # primary | clipboard | both
      "icons_per_row": 10,       # actions per popup page (alias: actions_per_page)
      "log_level": "info",
      "trace": false,
      "log_db": false,
      "clipboard_backend": "qt"  # qt | pyperclip
    }

Bad values never stop startup: each one is dropped with a note and the
default stands.
"""

import json
import os
from dataclasses import dataclass, replace
from pathlib import Path

from event_log import LEVELS, level_from_name

APP_NAME       = "clippop"
SETTINGS_FILE  = "settings.json"
ACTIONS_FILE   = "actions.json"
ENV_PREFIX     = "CLIPPOP_"

FALLBACK_MODES = ("primary", "clipboard", "both")
BACKENDS       = ("qt", "pyperclip")
_FALSE_WORDS   = ("0", "false", "no", "off")


@dataclass(frozen=True)
class EffectiveSettings:
    poll_enabled: bool = False
    poll_interval_ms: int = 1500
    fallback_reader_enabled: bool = False
    fallback_reader_mode: str = "primary"
    actions_per_page: int = 10
    log_level: str = "info"
    trace: bool = False
    log_db: bool = False
    clipboard_backend: str = "qt"

    def with_overrides(self, **changes) -> "EffectiveSettings":
        return replace(self, **changes)


# ─── Config location ─────────────────────────────────────────────────────────

def config_dir(environ=None) -> Path:
    environ = os.environ if environ is None else environ
    explicit = environ.get(ENV_PREFIX + "CONFIG_DIR")
    if explicit:
        return Path(explicit).expanduser()
    xdg = environ.get("XDG_CONFIG_HOME")
    base = Path(xdg).expanduser() if xdg else Path.home() / ".config"
    return base / APP_NAME


# ─── Value coercion ──────────────────────────────────────────────────────────

def _as_bool(value):
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        return value.strip().lower() not in _FALSE_WORDS
    raise ValueError(f"not a boolean: {value!r}")


def _as_positive_int(value):
    if isinstance(value, bool):
        raise ValueError(f"not an integer: {value!r}")
    if isinstance(value, str):
        value = value.strip()
    parsed = int(value)
    if parsed <= 0:
        raise ValueError(f"must be > 0: {value!r}")
    return parsed


def _as_choice(choices):
    def coerce(value):
        normalized = str(value).strip().lower()
        if normalized not in choices:
            raise ValueError(f"expected one of {', '.join(choices)}: {value!r}")
        return normalized
    return coerce


def _as_level(value):
    normalized = str(value).strip().lower()
    if level_from_name(normalized) == "info" and normalized not in ("info", ""):
        raise ValueError(f"expected one of {', '.join(LEVELS)}: {value!r}")
    return level_from_name(normalized)


# (field, json keys, env var suffix, coercer)
_FIELDS = (
    ("poll_enabled",            ("poll",),                             "POLL",              _as_bool),
    ("poll_interval_ms",        ("poll_ms",),                          "POLL_MS",           _as_positive_int),
    ("fallback_reader_enabled", ("wlpaste",),                          "WLPASTE",           _as_bool),
    ("fallback_reader_mode",    ("wlpaste_mode",),                     "WLPASTE_MODE",      _as_choice(FALLBACK_MODES)),
    ("actions_per_page",        ("icons_per_row", "actions_per_page"), "ACTIONS_PER_PAGE",  _as_positive_int),
    ("log_level",               ("log_level",),                        "LOG_LEVEL",         _as_level),
    ("trace",                   ("trace",),                            "TRACE",             _as_bool),
    ("log_db",                  ("log_db",),                           "LOG_DB",            _as_bool),
    ("clipboard_backend",       ("clipboard_backend",),                "CLIPBOARD_BACKEND", _as_choice(BACKENDS)),
)


# ─── Loaders ─────────────────────────────────────────────────────────────────

def load_settings_file(path, notes: list) -> dict:
    """
    Read settings.json into a dict of field overrides.
    Missing or malformed files yield {} and a note; bad fields are skipped.
    """
    path = Path(path)
    if not path.exists():
        notes.append(("info", f"No settings config at {path}"))
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        notes.append(("warn", f"Invalid {path.name} ({exc}); using defaults"))
        return {}
    if not isinstance(data, dict):
        notes.append(("warn", f"Invalid {path.name} (not an object); using defaults"))
        return {}

    found = {}
    for field, keys, _env, coerce in _FIELDS:
        for key in keys:
            if key not in data:
                continue
            try:
                found[field] = coerce(data[key])
            except (TypeError, ValueError) as exc:
                notes.append(("warn", f"Ignoring {path.name} '{key}': {exc}"))
            break
    notes.append(("info", f"Loaded settings from {path}"))
    return found


def env_overrides(environ, notes: list) -> dict:
    found = {}
    for field, _keys, suffix, coerce in _FIELDS:
        name = ENV_PREFIX + suffix
        if name not in environ:
            continue
        raw = environ[name]
        if coerce is _as_bool and raw == "":
            found[field] = True   # set-but-empty counts as on
            continue
        try:
            found[field] = coerce(raw)
        except (TypeError, ValueError) as exc:
            notes.append(("warn", f"Ignoring {name}: {exc}"))
    return found


def resolve_settings(directory=None, environ=None):
    """
    Build the one EffectiveSettings snapshot used for the whole run.
    Returns (settings, notes); notes are (tag, message) pairs to replay into
    the log once it exists.
    """
    environ = os.environ if environ is None else environ
    directory = Path(directory) if directory is not None else config_dir(environ)
    notes = []

    values = load_settings_file(directory / SETTINGS_FILE, notes)
    values.update(env_overrides(environ, notes))
    settings = EffectiveSettings(**values)

    if settings.clipboard_backend == "pyperclip" and not settings.poll_enabled:
        notes.append(("warn", "pyperclip backend has no change notifications; polling forced on"))
        settings = settings.with_overrides(poll_enabled=True)
    return settings, notes
