"""Event normalizer — maps one raw agent item to a uniform ActivityEvent.

// [LAW:single-enforcer] The only place agent item payloads are interpreted.

normalize() is pure and total. Payloads are loosely typed backend JSON; every
field read goes through a defaulting accessor so a missing or mistyped field
degrades the entry instead of failing the fold.
"""

import re
from collections.abc import Iterable

from agent_timeline.event_types import (
    ActivityEvent,
    ActivityStatus,
    ActivityType,
    AgentItemKind,
)
from agent_timeline.formatting import normalize_shell_command, safe_json

# Synthetic activity titles. Consumers key on these strings.
TURN_ERROR_TITLE = "Turn error"
TURN_CANCELED_TITLE = "Turn canceled"
RUNNING_PLACEHOLDER_TITLE = "Running..."
RUNNING_PLACEHOLDER_ID = "synthetic_running"
REASONING_FALLBACK_TITLE = "Think"

_SENTENCE = re.compile(r"^(.+?[.!?])(\s|$)")
_BOLD_STARS = re.compile(r"\*\*([^*]+?)\*\*")
_BOLD_UNDERSCORES = re.compile(r"__([^_]+?)__")


def _field(payload: object, key: str) -> object:
    if isinstance(payload, dict):
        return payload.get(key)
    return None


def _text(payload: object, key: str, default: str = "") -> str:
    value = _field(payload, key)
    if isinstance(value, str):
        return value
    if value is None:
        return default
    return safe_json(value)


def _strip_emphasis(value: str) -> str:
    value = _BOLD_STARS.sub(r"\1", value)
    value = _BOLD_UNDERSCORES.sub(r"\1", value)
    return value.replace("**", "").replace("__", "").strip()


def first_sentence(text: str) -> str:
    """First sentence of the first line, bold markers removed. "" for blank text."""
    trimmed = text.strip()
    if not trimmed:
        return ""
    first_line = trimmed.splitlines()[0].strip()
    match = _SENTENCE.match(first_line)
    sentence = _strip_emphasis(match.group(1) if match else first_line)
    return sentence or _strip_emphasis(first_line)


def _status_from_payload(payload: object) -> ActivityStatus:
    if _field(payload, "status") == "in_progress":
        return ActivityStatus.RUNNING
    return ActivityStatus.DONE


def _strip_dot_prefix(raw: object) -> str:
    value = "" if raw is None else (raw if isinstance(raw, str) else safe_json(raw))
    value = value.strip()
    while value.startswith("./") or value.startswith(".\\"):
        value = value[2:]
    return value


def _file_change_lines(changes: list) -> str:
    lines = []
    for change in changes:
        kind = _text(change, "kind", "update") or "update"
        lines.append(f"{kind} {_strip_dot_prefix(_field(change, 'path'))}")
    return "\n".join(lines)


def _todo_lines(items: list) -> str:
    lines = []
    for item in items:
        mark = "[x]" if _field(item, "completed") is True else "[ ]"
        lines.append(f"{mark} {_text(item, 'text')}")
    return "\n".join(lines)


def normalize(
    id: str,
    kind: str,
    payload: object,
    forced_status: ActivityStatus | None = None,
) -> ActivityEvent:
    """Normalize one agent item into an ActivityEvent.

    Args:
        id: Backend item id, reused as the activity id.
        kind: Raw kind tag. Unknown kinds take the generic `complete` form.
        payload: Item payload (any JSON shape, possibly None).
        forced_status: Overrides the status derived from the payload; the fold
            passes RUNNING for items the backend has not finalized.
    """
    item_kind = AgentItemKind.parse(kind)

    if item_kind is AgentItemKind.COMMAND_EXECUTION:
        command = _text(payload, "command", "Command")
        display, shell = normalize_shell_command(command)
        return ActivityEvent(
            id=id,
            type=ActivityType.BASH,
            title=display or "Command",
            detail=_text(payload, "aggregated_output"),
            status=forced_status or _status_from_payload(payload),
            badge=shell,
        )

    if item_kind is AgentItemKind.FILE_CHANGE:
        changes = _field(payload, "changes")
        changes = changes if isinstance(changes, list) else []
        return ActivityEvent(
            id=id,
            type=ActivityType.FILE_EDIT,
            title=f"File changes ({len(changes)})",
            detail=_file_change_lines(changes),
            status=forced_status or ActivityStatus.DONE,
        )

    if item_kind is AgentItemKind.MCP_TOOL_CALL:
        server = _text(payload, "server", "mcp") or "mcp"
        tool = _text(payload, "tool", "tool") or "tool"
        detail = safe_json({
            "arguments": _field(payload, "arguments"),
            "result": _field(payload, "result"),
            "error": _field(payload, "error"),
            "status": _field(payload, "status"),
        })
        return ActivityEvent(
            id=id,
            type=ActivityType.TOOL_CALL,
            title=f"{server}.{tool}",
            detail=detail,
            status=forced_status or _status_from_payload(payload),
        )

    if item_kind is AgentItemKind.WEB_SEARCH:
        return ActivityEvent(
            id=id,
            type=ActivityType.SEARCH,
            title=_text(payload, "query") or "Web search",
            detail=safe_json(payload),
            status=forced_status or ActivityStatus.DONE,
        )

    if item_kind is AgentItemKind.TODO_LIST:
        items = _field(payload, "items")
        return ActivityEvent(
            id=id,
            type=ActivityType.TOOL_CALL,
            title="Todo list",
            detail=_todo_lines(items if isinstance(items, list) else []),
            status=forced_status or ActivityStatus.DONE,
        )

    if item_kind is AgentItemKind.REASONING:
        full_text = _text(payload, "text")
        return ActivityEvent(
            id=id,
            type=ActivityType.THINKING,
            title=first_sentence(full_text) or REASONING_FALLBACK_TITLE,
            detail=full_text,
            status=forced_status or ActivityStatus.DONE,
        )

    if item_kind is AgentItemKind.ERROR:
        return ActivityEvent(
            id=id,
            type=ActivityType.TOOL_CALL,
            title="Error",
            detail=_text(payload, "message"),
            status=forced_status or ActivityStatus.DONE,
        )

    if item_kind is AgentItemKind.AGENT_MESSAGE:
        # Only reachable for in-progress items; finalized messages feed the bubble text.
        return ActivityEvent(
            id=id,
            type=ActivityType.ASSISTANT_MESSAGE,
            title="Message",
            detail=_text(payload, "text"),
            status=forced_status or ActivityStatus.DONE,
        )

    # Forward compatibility: visible but generic.
    return ActivityEvent(
        id=id,
        type=ActivityType.COMPLETE,
        title=kind,
        detail=safe_json(payload),
        status=forced_status or ActivityStatus.DONE,
    )


# ─── Activity summaries ──────────────────────────────────────────────────────


def completed_step_count(activities: Iterable[ActivityEvent]) -> int:
    """Done activities, excluding the synthetic cancel marker."""
    return sum(
        1
        for a in activities
        if a.status is ActivityStatus.DONE and a.title != TURN_CANCELED_TITLE
    )


def activity_summary(
    activities: Iterable[ActivityEvent],
    is_streaming: bool = False,
    is_canceled: bool = False,
) -> str:
    """One-line header for a collapsed activity list."""
    items = list(activities)
    if not items:
        return ""
    if is_streaming:
        return items[-1].title
    count = completed_step_count(items)
    if is_canceled:
        return f"Cancelled after {count} steps"
    return f"Completed {count} steps"
