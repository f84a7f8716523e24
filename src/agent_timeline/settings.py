"""Settings file I/O and timeline tuning knobs for agent-timeline.

Manages a JSON settings file at XDG_CONFIG_HOME/agent-timeline/settings.json.
Timeline layout values live under the "timeline" key; AGENT_TIMELINE_* environment
variables override the file.

This module is a STABLE BOUNDARY.
Import as: import agent_timeline.settings
"""

import json
import logging
import os
import tempfile
from collections.abc import Mapping
from dataclasses import dataclass, fields, replace
from pathlib import Path

logger = logging.getLogger(__name__)

AGENT_TURN_MODES = ("flat", "grouped")


def get_config_path() -> Path:
    """Return path to settings file.

    Uses XDG_CONFIG_HOME (default ~/.config) / agent-timeline / settings.json.
    """
    config_home = os.environ.get("XDG_CONFIG_HOME", os.path.expanduser("~/.config"))
    return Path(config_home) / "agent-timeline" / "settings.json"


def load_settings() -> dict:
    """Load settings from JSON file. Returns empty dict on missing/corrupt file."""
    path = get_config_path()
    # [LAW:dataflow-not-control-flow] Always attempt read; empty dict is the "no data" value.
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (FileNotFoundError, json.JSONDecodeError, OSError):
        return {}
    return data if isinstance(data, dict) else {}


def save_settings(data: dict) -> None:
    """Atomic write of settings dict to JSON file.

    Creates parent directories if needed. Writes to a temp file then renames.
    """
    path = get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
            f.write("\n")
        os.replace(tmp_path, path)
    except Exception:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


def load_setting(key: str, default=None):
    """Load a single setting by key. Returns default if absent."""
    return load_settings().get(key, default)


def save_setting(key: str, value) -> None:
    """Save a single setting by key (merge into existing settings)."""
    data = load_settings()
    data[key] = value
    save_settings(data)


# ─── Timeline settings ───────────────────────────────────────────────────────


@dataclass(frozen=True)
class TimelineSettings:
    """Layout and grouping knobs. Heights and overscan are in terminal lines."""

    estimated_item_height: int = 4
    overscan: int = 40
    materialize_threshold: int = 40
    collapse_threshold: int = 3
    summary_max_chars: int = 80
    agent_turns: str = "flat"


# [LAW:one-source-of-truth] Minimum accepted value per integer knob.
_INT_MINIMUMS: dict[str, int] = {
    "estimated_item_height": 1,
    "overscan": 0,
    "materialize_threshold": 0,
    "collapse_threshold": 1,
    "summary_max_chars": 1,
}


def _env_name(field_name: str) -> str:
    return "AGENT_TIMELINE_" + field_name.upper()


def _coerce(name: str, raw: object) -> int | str | None:
    """Validate one raw value. None means invalid."""
    if name == "agent_turns":
        value = str(raw).strip().lower()
        return value if value in AGENT_TURN_MODES else None
    if isinstance(raw, bool):
        return None
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return None
    return value if value >= _INT_MINIMUMS[name] else None


def _apply(base: TimelineSettings, raw: Mapping[str, object], origin: str) -> TimelineSettings:
    changes: dict[str, object] = {}
    for f in fields(TimelineSettings):
        if f.name not in raw:
            continue
        value = _coerce(f.name, raw[f.name])
        if value is None:
            logger.warning("ignoring invalid %s value %r from %s", f.name, raw[f.name], origin)
            continue
        changes[f.name] = value
    return replace(base, **changes) if changes else base


def load_timeline_settings(environ: Mapping[str, str] | None = None) -> TimelineSettings:
    """Defaults, then the settings file "timeline" table, then environment overrides."""
    env = os.environ if environ is None else environ
    file_values = load_setting("timeline", {})
    settings = TimelineSettings()
    if isinstance(file_values, dict):
        settings = _apply(settings, file_values, str(get_config_path()))
    env_values = {
        f.name: env[_env_name(f.name)]
        for f in fields(TimelineSettings)
        if _env_name(f.name) in env
    }
    return _apply(settings, env_values, "environment")


def save_timeline_settings(settings: TimelineSettings) -> None:
    save_setting("timeline", {f.name: getattr(settings, f.name) for f in fields(TimelineSettings)})
