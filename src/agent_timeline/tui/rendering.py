"""Rich rendering of timeline rows into Textual strips.

Pure module: a row plus a width in, a list of Strips out. TimelineView owns
caching and placement.

// [LAW:single-enforcer] Only this module sets the click meta keys below.
"""

from rich.console import Console, RenderableType
from rich.markdown import Markdown
from rich.segment import Segment
from rich.style import Style
from rich.text import Text
from textual.strip import Strip

from agent_timeline.event_types import (
    ActivityEvent,
    ActivityStatus,
    AgentTurnMessage,
    AssistantMessage,
    EventMessage,
    MessageMetadata,
    TurnStatus,
    UserMessage,
)
from agent_timeline.grouping import CollapsedEvents, RowKind, TimelineRow
from agent_timeline.normalizer import TURN_CANCELED_TITLE, activity_summary

META_TOGGLE_RUN = "toggle_run"
META_TOGGLE_ACTIVITY = "toggle_activity"

DETAIL_MAX_LINES = 12

# [LAW:one-source-of-truth] Visual vocabulary for statuses.
_STATUS_GLYPHS: dict[ActivityStatus, str] = {
    ActivityStatus.RUNNING: "◌",
    ActivityStatus.DONE: "✓",
}

_TURN_STATUS_STYLES: dict[TurnStatus, str] = {
    TurnStatus.RUNNING: "yellow",
    TurnStatus.DONE: "green",
    TurnStatus.CANCELED: "dim",
    TurnStatus.ERROR: "bold red",
}


def _plural(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


def metadata_text(metadata: MessageMetadata | None) -> str:
    """`3 tool calls · 1 thinking step · 1m5s`, or "" when there is nothing to show."""
    if metadata is None:
        return ""
    parts = []
    if metadata.tool_calls:
        parts.append(_plural(metadata.tool_calls, "tool call"))
    if metadata.thinking_steps:
        parts.append(_plural(metadata.thinking_steps, "thinking step"))
    if metadata.duration:
        parts.append(metadata.duration)
    return " · ".join(parts)


def _activity_lines(
    activities: tuple[ActivityEvent, ...],
    expanded: frozenset[str],
) -> list[Text]:
    lines = []
    for activity in activities:
        glyph = _STATUS_GLYPHS[activity.status]
        glyph_style = "yellow" if activity.status is ActivityStatus.RUNNING else "green"
        has_detail = bool(activity.detail)
        is_open = activity.id in expanded
        arrow = ("▾ " if is_open else "▸ ") if has_detail else "  "
        line = Text("  ")
        line.append(arrow, style=Style(dim=True) + Style.from_meta({META_TOGGLE_ACTIVITY: activity.id}))
        line.append(f"{glyph} ", style=glyph_style)
        if activity.badge:
            line.append(f"[{activity.badge}] ", style="magenta")
        line.append(activity.title, style="bold" if activity.status is ActivityStatus.RUNNING else "")
        lines.append(line)
        if has_detail and is_open:
            detail_lines = (activity.detail or "").splitlines()
            for detail in detail_lines[:DETAIL_MAX_LINES]:
                lines.append(Text(f"      {detail}", style="dim"))
            hidden = len(detail_lines) - DETAIL_MAX_LINES
            if hidden > 0:
                lines.append(Text(f"      … {hidden} more lines", style="dim italic"))
    return lines


def _user_renderables(message: UserMessage) -> list[RenderableType]:
    out: list[RenderableType] = [Text("▶ You", style="bold cyan"), Text(message.content)]
    for attachment in message.attachments:
        out.append(Text(f"  📎 {attachment.name or attachment.id}", style="dim"))
    return out


def _assistant_renderables(message: AssistantMessage, expanded: frozenset[str]) -> list[RenderableType]:
    header = Text("◆ Agent", style="bold magenta")
    meta = metadata_text(message.metadata)
    if meta:
        header.append(f"  {meta}", style="dim")
    if message.is_streaming:
        header.append("  ● streaming", style="yellow")
    out: list[RenderableType] = [header]
    if message.activities:
        canceled = any(a.title == TURN_CANCELED_TITLE for a in message.activities)
        summary = activity_summary(message.activities, message.is_streaming, canceled)
        out.append(Text(f"  {summary}", style="italic"))
        out.extend(_activity_lines(message.activities, expanded))
    if message.content:
        out.append(Markdown(message.content))
    return out


def _agent_turn_renderables(message: AgentTurnMessage, expanded: frozenset[str]) -> list[RenderableType]:
    status_style = _TURN_STATUS_STYLES[message.turn_status]
    header = Text("◆ Agent turn ", style="bold magenta")
    header.append(f"({message.turn_status.value})", style=status_style)
    meta = metadata_text(message.metadata)
    if meta:
        header.append(f"  {meta}", style="dim")
    is_streaming = message.turn_status is TurnStatus.RUNNING
    is_canceled = message.turn_status is TurnStatus.CANCELED
    out: list[RenderableType] = [
        header,
        Text(f"  {activity_summary(message.activities, is_streaming, is_canceled)}", style="italic"),
    ]
    out.extend(_activity_lines(message.activities, expanded))
    return out


def _event_renderables(message: EventMessage, connected: bool) -> list[RenderableType]:
    prefix = "│ " if connected else "· "
    line = Text(prefix, style="dim")
    line.append(message.content, style="dim" if message.status is ActivityStatus.DONE else "yellow")
    if message.timestamp:
        line.append(f"  {message.timestamp}", style="dim italic")
    return [line]


def _collapsed_renderables(group: CollapsedEvents) -> list[RenderableType]:
    line = Text()
    line.append("▸ ", style=Style(bold=True) + Style.from_meta({META_TOGGLE_RUN: group.run_key}))
    line.append(group.header, style=Style(dim=True) + Style.from_meta({META_TOGGLE_RUN: group.run_key}))
    return [line]


def row_renderables(row: TimelineRow, expanded: frozenset[str] = frozenset()) -> list[RenderableType]:
    """Renderables for one row, without the trailing spacer."""
    if row.kind is RowKind.COLLAPSED_HEADER and row.group is not None:
        return _collapsed_renderables(row.group)
    message = row.message
    if isinstance(message, UserMessage):
        return _user_renderables(message)
    if isinstance(message, AssistantMessage):
        return _assistant_renderables(message, expanded)
    if isinstance(message, AgentTurnMessage):
        return _agent_turn_renderables(message, expanded)
    if isinstance(message, EventMessage):
        return _event_renderables(message, row.connected)
    return [Text(f"? {row.key}", style="dim")]


def _has_spacer(row: TimelineRow) -> bool:
    # Event lines stay tight; everything else is followed by a blank line.
    if row.kind is not RowKind.MESSAGE:
        return False
    return not isinstance(row.message, EventMessage)


def render_row_to_strips(
    row: TimelineRow,
    console: Console,
    width: int,
    expanded: frozenset[str] = frozenset(),
) -> list[Strip]:
    """Render one row at width. Always returns at least one strip."""
    width = max(1, width)
    options = console.options.update_width(width)
    strips: list[Strip] = []
    for renderable in row_renderables(row, expanded):
        segments = console.render(renderable, options)
        lines = list(Segment.split_lines(segments))
        strips.extend(s.adjust_cell_length(width) for s in Strip.from_lines(lines))
    if _has_spacer(row):
        strips.append(Strip.blank(width))
    return strips or [Strip.blank(width)]


def render_rows_to_text(rows: list[TimelineRow], expanded: frozenset[str] = frozenset()) -> list[RenderableType]:
    """Renderables for printing the whole timeline to a Rich console."""
    out: list[RenderableType] = []
    for row in rows:
        out.extend(row_renderables(row, expanded))
        if _has_spacer(row):
            out.append(Text(""))
    return out
