"""Small text helpers shared by the normalizer, the fold and the renderers.

All functions are pure and total: they accept loosely typed input and never raise.
"""

import json
import re
from datetime import datetime, timezone


def safe_json(value: object) -> str:
    """Compact JSON for display, falling back to str() for cyclic or exotic values."""
    try:
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    except (TypeError, ValueError, RecursionError):
        pass
    try:
        return str(value)
    except Exception:
        return f"<{type(value).__name__}>"


def format_duration_ms(ms: int | float) -> str:
    """Format a duration as `5s`, `1m5s` or `1h2m3s` (rounded to whole seconds)."""
    seconds = max(0, round(ms / 1000))
    s = seconds % 60
    minutes = seconds // 60
    m = minutes % 60
    hours = minutes // 60
    if hours > 0:
        return f"{hours}h{m}m{s}s"
    if minutes > 0:
        return f"{minutes}m{s}s"
    return f"{s}s"


_SHELL_WRAPPER = re.compile(r"^(?:/bin/)?(zsh|bash)\s+-lc\s+(.+)$", re.DOTALL)


def normalize_shell_command(raw: str) -> tuple[str, str | None]:
    """Strip a `bash -lc '<cmd>'` wrapper. Returns (display_command, shell or None)."""
    trimmed = raw.strip()
    match = _SHELL_WRAPPER.match(trimmed)
    if not match:
        return trimmed, None
    shell = match.group(1).lower()
    inner = match.group(2).strip()
    if len(inner) >= 2 and inner[0] == inner[-1] and inner[0] in ("'", '"'):
        inner = inner[1:-1].strip()
    return (inner or trimmed), shell


def truncate(text: str, max_chars: int) -> str:
    """Single-line preview, cut with an ellipsis past max_chars."""
    flat = " ".join(text.split())
    if max_chars <= 0:
        return ""
    if len(flat) <= max_chars:
        return flat
    return flat[: max(0, max_chars - 1)].rstrip() + "…"


def unix_ms_to_iso(unix_ms: int | None) -> str | None:
    if unix_ms is None:
        return None
    try:
        return datetime.fromtimestamp(unix_ms / 1000, tz=timezone.utc).isoformat()
    except (OverflowError, OSError, ValueError):
        return None


# ─── Labels ───────────────────────────────────────────────────────────────────

AGENT_MODEL_LABELS: dict[str, str] = {
    "gpt-5.2": "GPT-5.2",
    "gpt-5.2-codex": "GPT-5.2-Codex",
    "gpt-5.1-codex-max": "GPT-5.1-Codex-Max",
}

THINKING_EFFORT_LABELS: dict[str, str] = {
    "minimal": "Minimal",
    "low": "Low",
    "medium": "Medium",
    "high": "High",
    "xhigh": "XHigh",
}

TASK_STATUS_LABELS: dict[str, str] = {
    "backlog": "Backlog",
    "todo": "Todo",
    "iterating": "Iterating",
    "in_progress": "Iterating",
    "validating": "Validating",
    "in_review": "Validating",
    "done": "Done",
    "canceled": "Canceled",
}


def agent_model_label(model_id: str | None) -> str:
    if not model_id:
        return "Model"
    return AGENT_MODEL_LABELS.get(model_id, model_id)


def thinking_effort_label(effort: str | None) -> str:
    if not effort:
        return "Effort"
    return THINKING_EFFORT_LABELS.get(effort, effort)


def task_status_label(status: str) -> str:
    return TASK_STATUS_LABELS.get(status, status)


def system_event_text(event_type: str, from_status: str, to_status: str) -> str:
    """Human sentence for a task lifecycle event."""
    if event_type == "task_created":
        return "created the task"
    if event_type == "task_status_changed":
        before = task_status_label(from_status)
        after = task_status_label(to_status)
        if before and after:
            return f"moved from {before} to {after}"
        if after:
            return f"changed status to {after}"
        return "changed task status"
    return "updated the task"
