"""Timeline builder — folds a ConversationSnapshot into an ordered list of Messages.

// [LAW:one-source-of-truth] The snapshot is the only input; the result is rebuilt
// from scratch on every snapshot and never patched in place.

build_messages() is pure, O(entries + in_progress_items), and never raises.
Message keys are derived from absolute entry positions in the append-only log
(entries_start + index) so they survive both rebuilds and older-page prepends.
"""

import logging
from dataclasses import replace
from typing import Literal

from agent_timeline.event_types import (
    ActivityEvent,
    ActivityStatus,
    ActivityType,
    AgentItemEntry,
    AgentItemKind,
    AgentTurnMessage,
    AssistantMessage,
    ConversationSnapshot,
    EventMessage,
    EventSource,
    Message,
    MessageMetadata,
    RunStatus,
    SystemEventEntry,
    TurnCanceledEntry,
    TurnDurationEntry,
    TurnErrorEntry,
    TurnStatus,
    UnknownEntry,
    UserMessage,
    UserMessageEntry,
)
from agent_timeline.formatting import format_duration_ms, system_event_text, unix_ms_to_iso
from agent_timeline.normalizer import (
    RUNNING_PLACEHOLDER_ID,
    RUNNING_PLACEHOLDER_TITLE,
    TURN_CANCELED_TITLE,
    TURN_ERROR_TITLE,
    normalize,
)

logger = logging.getLogger(__name__)

AgentTurns = Literal["flat", "grouped"]


def turn_status_of(activities: tuple[ActivityEvent, ...] | list[ActivityEvent]) -> TurnStatus:
    """Lifecycle state implied by an activity list.

    A terminal marker (error, cancel) wins over a running activity.
    """
    titles = {a.title for a in activities}
    if TURN_ERROR_TITLE in titles:
        return TurnStatus.ERROR
    if TURN_CANCELED_TITLE in titles:
        return TurnStatus.CANCELED
    if any(a.status is ActivityStatus.RUNNING for a in activities):
        return TurnStatus.RUNNING
    return TurnStatus.DONE


class _Aggregate:
    """The open assistant aggregate. Private to one fold."""

    def __init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        self.start: int | None = None
        self.content = ""
        self.activities: list[ActivityEvent] = []
        self.tool_calls = 0
        self.thinking_steps = 0
        self.duration_ms: int | None = None

    def touch(self, position: int) -> None:
        if self.start is None:
            self.start = position

    def append_text(self, text: str) -> None:
        if not text:
            return
        self.content = f"{self.content}\n\n{text}" if self.content else text

    def is_empty(self) -> bool:
        return not self.content.strip() and not self.activities

    def has_running(self) -> bool:
        return any(a.status is ActivityStatus.RUNNING for a in self.activities)

    def metadata(self) -> MessageMetadata | None:
        tool_calls = self.tool_calls or None
        thinking_steps = self.thinking_steps or None
        duration_ms = self.duration_ms if self.duration_ms else None
        if tool_calls is None and thinking_steps is None and duration_ms is None:
            return None
        return MessageMetadata(
            tool_calls=tool_calls,
            thinking_steps=thinking_steps,
            duration=format_duration_ms(duration_ms) if duration_ms is not None else None,
            duration_ms=duration_ms,
        )


def _flush(agg: _Aggregate, out: list[Message], agent_turns: AgentTurns, fallback_pos: int) -> None:
    if agg.is_empty():
        agg.reset()
        return
    start = agg.start if agg.start is not None else fallback_pos
    content = agg.content.strip()
    activities = tuple(agg.activities)

    if agent_turns == "grouped":
        # Counters and duration ride on the turn; a text-only turn keeps them on the bubble.
        if activities:
            out.append(AgentTurnMessage(
                key=f"t_{start}",
                activities=activities,
                turn_status=turn_status_of(activities),
                metadata=agg.metadata(),
            ))
        if content:
            out.append(AssistantMessage(
                key=f"a_{start}",
                content=content,
                metadata=None if activities else agg.metadata(),
            ))
    else:
        out.append(AssistantMessage(
            key=f"a_{start}",
            content=content,
            activities=activities,
            metadata=agg.metadata(),
        ))
    agg.reset()


def _system_event_message(entry: SystemEventEntry, position: int) -> EventMessage:
    return EventMessage(
        key=f"e_{position}",
        content=system_event_text(entry.event_type, entry.from_status, entry.to_status),
        status=ActivityStatus.DONE,
        source=EventSource.SYSTEM,
        event_type=entry.event_type,
        timestamp=unix_ms_to_iso(entry.created_at_unix_ms),
    )


def build_messages(
    snapshot: ConversationSnapshot,
    agent_turns: AgentTurns = "flat",
) -> list[Message]:
    """Fold a snapshot into timeline messages.

    Args:
        snapshot: The authoritative conversation view.
        agent_turns: "flat" keeps activities inside the assistant bubble;
            "grouped" emits an AgentTurnMessage before the bubble text.
    """
    out: list[Message] = []
    agg = _Aggregate()
    base = snapshot.entries_start

    for index, entry in enumerate(snapshot.entries):
        position = base + index

        if isinstance(entry, UserMessageEntry):
            _flush(agg, out, agent_turns, position)
            out.append(UserMessage(
                key=f"u_{position}",
                content=entry.text,
                attachments=entry.attachments,
            ))
            continue

        if isinstance(entry, AgentItemEntry):
            agg.touch(position)
            item_kind = AgentItemKind.parse(entry.kind)
            if item_kind is AgentItemKind.AGENT_MESSAGE:
                text = entry.payload.get("text") if isinstance(entry.payload, dict) else None
                agg.append_text(text if isinstance(text, str) else "")
                continue
            if item_kind is None:
                logger.debug("unknown agent item kind %r at %d", entry.kind, position)
            agg.activities.append(normalize(entry.id, entry.kind, entry.payload))
            if item_kind is AgentItemKind.REASONING:
                agg.thinking_steps += 1
            elif item_kind is not AgentItemKind.ERROR:
                agg.tool_calls += 1
            continue

        if isinstance(entry, TurnDurationEntry):
            agg.duration_ms = entry.duration_ms
            continue

        if isinstance(entry, TurnErrorEntry):
            agg.touch(position)
            agg.activities.append(ActivityEvent(
                id=f"turn_error_{position}",
                type=ActivityType.TOOL_CALL,
                title=TURN_ERROR_TITLE,
                detail=entry.message,
                status=ActivityStatus.DONE,
            ))
            continue

        if isinstance(entry, TurnCanceledEntry):
            agg.touch(position)
            agg.activities.append(ActivityEvent(
                id=f"turn_canceled_{position}",
                type=ActivityType.TOOL_CALL,
                title=TURN_CANCELED_TITLE,
                status=ActivityStatus.DONE,
            ))
            continue

        if isinstance(entry, SystemEventEntry):
            _flush(agg, out, agent_turns, position)
            out.append(_system_event_message(entry, position))
            continue

        if isinstance(entry, UnknownEntry):
            logger.debug("skipping unknown entry type %r at %d", entry.entry_type, position)
        # TurnUsageEntry carries nothing the timeline shows.

    tail = base + len(snapshot.entries)
    running = snapshot.run_status is RunStatus.RUNNING

    if running:
        for item in snapshot.in_progress_items:
            agg.touch(tail)
            agg.activities.append(
                normalize(item.id, item.kind, item.payload, forced_status=ActivityStatus.RUNNING)
            )
        if not agg.has_running():
            agg.touch(tail)
            agg.activities.append(ActivityEvent(
                id=RUNNING_PLACEHOLDER_ID,
                type=ActivityType.THINKING,
                title=RUNNING_PLACEHOLDER_TITLE,
                status=ActivityStatus.RUNNING,
            ))

    _flush(agg, out, agent_turns, tail)

    if running and out and isinstance(out[-1], AssistantMessage):
        out[-1] = replace(out[-1], is_streaming=True)
    return out
