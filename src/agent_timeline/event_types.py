"""Typed data model for the conversation log and the reconstructed timeline.

// [LAW:one-source-of-truth] The class IS the type; there is no entry_type string field.
// [LAW:single-enforcer] parse_entry / parse_snapshot are the sole JSON validation boundary.

This module is STABLE. Safe for `from` imports everywhere.
"""

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum


# ─── Type alias for JSON-parsed dicts ─────────────────────────────────────────

JsonDict = dict[str, object]


# ─── Enums ────────────────────────────────────────────────────────────────────


class RunStatus(Enum):
    IDLE = "idle"
    RUNNING = "running"


class ActivityType(Enum):
    """Display category of a normalized agent action."""

    THINKING = "thinking"
    TOOL_CALL = "tool_call"
    FILE_EDIT = "file_edit"
    BASH = "bash"
    SEARCH = "search"
    COMPLETE = "complete"
    ASSISTANT_MESSAGE = "assistant_message"


class ActivityStatus(Enum):
    RUNNING = "running"
    DONE = "done"


class TurnStatus(Enum):
    """Lifecycle of one agent turn."""

    RUNNING = "running"
    DONE = "done"
    CANCELED = "canceled"
    ERROR = "error"


class AgentItemKind(Enum):
    """Closed set of agent item kinds the normalizer knows about.

    Anything else stays a raw string and takes the generic fallback.
    """

    AGENT_MESSAGE = "agent_message"
    COMMAND_EXECUTION = "command_execution"
    FILE_CHANGE = "file_change"
    MCP_TOOL_CALL = "mcp_tool_call"
    WEB_SEARCH = "web_search"
    TODO_LIST = "todo_list"
    REASONING = "reasoning"
    ERROR = "error"

    @classmethod
    def parse(cls, raw: object) -> "AgentItemKind | None":
        """Return the known kind for raw, or None for forward-compatible unknowns."""
        try:
            return cls(raw)
        except ValueError:
            return None


class EventSource(Enum):
    SYSTEM = "system"
    USER = "user"
    AGENT = "agent"


# ─── Raw log entries ──────────────────────────────────────────────────────────
# Immutable, append-only, backend-authoritative.


@dataclass(frozen=True)
class AttachmentRef:
    id: str
    kind: str = "file"
    name: str = ""


@dataclass(frozen=True)
class RawEntry:
    """Base class for all log entries."""


@dataclass(frozen=True)
class UserMessageEntry(RawEntry):
    text: str
    attachments: tuple[AttachmentRef, ...] = ()


@dataclass(frozen=True)
class AgentItemEntry(RawEntry):
    id: str
    kind: str
    payload: object = None


@dataclass(frozen=True)
class TurnDurationEntry(RawEntry):
    duration_ms: int


@dataclass(frozen=True)
class TurnUsageEntry(RawEntry):
    """Token usage report. Carried for completeness; the fold ignores it."""

    usage: object = None


@dataclass(frozen=True)
class TurnErrorEntry(RawEntry):
    message: str


@dataclass(frozen=True)
class TurnCanceledEntry(RawEntry):
    pass


@dataclass(frozen=True)
class SystemEventEntry(RawEntry):
    """Task lifecycle event recorded by the backend (task created, status moved)."""

    entry_id: str
    event_type: str
    from_status: str = ""
    to_status: str = ""
    created_at_unix_ms: int | None = None


@dataclass(frozen=True)
class UnknownEntry(RawEntry):
    """Entry type this version does not understand. Skipped by the fold."""

    entry_type: str
    raw: object = None


@dataclass(frozen=True)
class AgentItemLike:
    """An agent item the backend has started but not finalized."""

    id: str
    kind: str
    payload: object = None


@dataclass(frozen=True)
class QueuedPrompt:
    id: str
    text: str


@dataclass(frozen=True)
class ConversationSnapshot:
    """One authoritative view of a thread. Treated as a value."""

    run_status: RunStatus = RunStatus.IDLE
    entries: tuple[RawEntry, ...] = ()
    in_progress_items: tuple[AgentItemLike, ...] = ()
    pending_prompts: tuple[QueuedPrompt, ...] = ()
    agent_model_id: str | None = None
    thinking_effort: str | None = None
    workspace_id: str = ""
    thread_id: str = ""
    entries_total: int | None = None
    entries_start: int = 0
    entries_truncated: bool = False


# ─── Timeline model ───────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ActivityEvent:
    """A displayable representation of a single agent action."""

    id: str
    type: ActivityType
    title: str
    status: ActivityStatus
    detail: str | None = None
    badge: str | None = None  # shell name when the command was wrapped in `<shell> -lc`


@dataclass(frozen=True)
class MessageMetadata:
    """Per-aggregate counters. A field is None when zero or absent."""

    tool_calls: int | None = None
    thinking_steps: int | None = None
    duration: str | None = None
    duration_ms: int | None = None


@dataclass(frozen=True)
class Message:
    """Base class for all timeline messages.

    `key` is stable across rebuilds for the same logical entry.
    """

    key: str


@dataclass(frozen=True)
class UserMessage(Message):
    content: str
    attachments: tuple[AttachmentRef, ...] = ()


@dataclass(frozen=True)
class AssistantMessage(Message):
    content: str
    activities: tuple[ActivityEvent, ...] = ()
    metadata: MessageMetadata | None = None
    is_streaming: bool = False


@dataclass(frozen=True)
class EventMessage(Message):
    content: str
    status: ActivityStatus = ActivityStatus.DONE
    source: EventSource = EventSource.SYSTEM
    event_type: str = ""
    timestamp: str | None = None


@dataclass(frozen=True)
class AgentTurnMessage(Message):
    activities: tuple[ActivityEvent, ...] = ()
    turn_status: TurnStatus = TurnStatus.DONE
    metadata: MessageMetadata | None = None


# ─── Parse boundary ──────────────────────────────────────────────────────────
# // [LAW:single-enforcer] Single parse boundary for conversation JSON.
# Never raises: malformed fields are defaulted, unknown entry types are kept.


def _str(v: object, default: str = "") -> str:
    """Narrow object to str."""
    if isinstance(v, str):
        return v
    if v is None:
        return default
    return str(v)


def _int(v: object, default: int = 0) -> int:
    """Narrow object to int, falling back to default."""
    if isinstance(v, bool):
        return default
    if isinstance(v, int):
        return v
    if isinstance(v, float) and v == v and v not in (float("inf"), float("-inf")):
        return int(v)
    try:
        return int(str(v))
    except (TypeError, ValueError):
        return default


def _opt_int(v: object) -> int | None:
    if v is None or isinstance(v, bool):
        return None
    if isinstance(v, (int, float)):
        return _int(v)
    return None


def _dict(v: object) -> JsonDict:
    return v if isinstance(v, dict) else {}


def _list(v: object) -> list:
    return v if isinstance(v, list) else []


def parse_attachment(raw: object) -> AttachmentRef:
    d = _dict(raw)
    return AttachmentRef(
        id=_str(d.get("id")),
        kind=_str(d.get("kind"), "file"),
        name=_str(d.get("name")),
    )


def _parse_user_message(raw: JsonDict) -> RawEntry:
    return UserMessageEntry(
        text=_str(raw.get("text")),
        attachments=tuple(parse_attachment(a) for a in _list(raw.get("attachments"))),
    )


def _parse_agent_item(raw: JsonDict) -> RawEntry:
    return AgentItemEntry(
        id=_str(raw.get("id")),
        kind=_str(raw.get("kind"), "item"),
        payload=raw.get("payload"),
    )


def _parse_turn_duration(raw: JsonDict) -> RawEntry:
    return TurnDurationEntry(duration_ms=max(0, _int(raw.get("duration_ms"))))


def _parse_turn_usage(raw: JsonDict) -> RawEntry:
    return TurnUsageEntry(usage=raw.get("usage_json", raw.get("usage")))


def _parse_turn_error(raw: JsonDict) -> RawEntry:
    return TurnErrorEntry(message=_str(raw.get("message")))


def _parse_turn_canceled(_raw: JsonDict) -> RawEntry:
    return TurnCanceledEntry()


def _parse_system_event(raw: JsonDict) -> RawEntry:
    event = _dict(raw.get("event"))
    return SystemEventEntry(
        entry_id=_str(raw.get("entry_id")),
        event_type=_str(event.get("event_type")),
        from_status=_str(event.get("from")),
        to_status=_str(event.get("to")),
        created_at_unix_ms=_opt_int(raw.get("created_at_unix_ms")),
    )


# [LAW:dataflow-not-control-flow] Dispatch table for entry parsing
_ENTRY_PARSERS: dict[str, Callable[[JsonDict], RawEntry]] = {
    "user_message": _parse_user_message,
    "agent_item": _parse_agent_item,
    "turn_duration": _parse_turn_duration,
    "turn_usage": _parse_turn_usage,
    "turn_error": _parse_turn_error,
    "turn_canceled": _parse_turn_canceled,
    "system_event": _parse_system_event,
}


def parse_entry(raw: object) -> RawEntry:
    """Parse one raw log entry dict into a typed RawEntry.

    Unknown or missing `type` values produce UnknownEntry instead of raising,
    so a newer backend never breaks an older viewer.
    """
    d = _dict(raw)
    entry_type = _str(d.get("type"))
    parser = _ENTRY_PARSERS.get(entry_type)
    if parser is None:
        return UnknownEntry(entry_type=entry_type, raw=raw)
    return parser(d)


def parse_agent_item_like(raw: object) -> AgentItemLike:
    d = _dict(raw)
    return AgentItemLike(
        id=_str(d.get("id")),
        kind=_str(d.get("kind"), "item"),
        payload=d.get("payload"),
    )


def parse_queued_prompt(raw: object) -> QueuedPrompt:
    d = _dict(raw)
    return QueuedPrompt(id=_str(d.get("id")), text=_str(d.get("text")))


def parse_snapshot(raw: object) -> ConversationSnapshot:
    """Parse a conversation snapshot dict. Non-dict input yields an empty snapshot."""
    d = _dict(raw)
    run_status = RunStatus.RUNNING if d.get("run_status") == "running" else RunStatus.IDLE
    agent_model_id = d.get("agent_model_id")
    thinking_effort = d.get("thinking_effort")
    return ConversationSnapshot(
        run_status=run_status,
        entries=tuple(parse_entry(e) for e in _list(d.get("entries"))),
        in_progress_items=tuple(
            parse_agent_item_like(i) for i in _list(d.get("in_progress_items"))
        ),
        pending_prompts=tuple(
            parse_queued_prompt(p) for p in _list(d.get("pending_prompts"))
        ),
        agent_model_id=agent_model_id if isinstance(agent_model_id, str) else None,
        thinking_effort=thinking_effort if isinstance(thinking_effort, str) else None,
        workspace_id=_str(d.get("workspace_id")),
        thread_id=_str(d.get("thread_id")),
        entries_total=_opt_int(d.get("entries_total")),
        entries_start=max(0, _int(d.get("entries_start"))),
        entries_truncated=bool(d.get("entries_truncated", False)),
    )
