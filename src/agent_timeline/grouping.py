"""Grouper — collapses long runs of ambient event messages into an expandable summary.

// [LAW:dataflow-not-control-flow] group_messages() always produces the full
// render plan; expansion only changes which values are emitted.

Single pass, order preserving. Only adjacent EventMessages are ever clustered.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum

from agent_timeline.event_types import EventMessage, Message
from agent_timeline.formatting import truncate

DEFAULT_COLLAPSE_THRESHOLD = 3
DEFAULT_SUMMARY_MAX_CHARS = 80


@dataclass(frozen=True)
class SingleMessage:
    """Passthrough of one message at its position in the timeline."""

    index: int
    message: Message


@dataclass(frozen=True)
class CollapsedEvents:
    """A run of events longer than the threshold, folded behind a header.

    `start_index` is the run's position in the message list. `run_key`, the
    first member's message key, is what the viewer expands; it is derived from
    the absolute log position and survives tail compaction and prepends.
    """

    start_index: int
    hidden: tuple[EventMessage, ...]
    tail: tuple[EventMessage, ...]
    summary: str

    @property
    def hidden_count(self) -> int:
        return len(self.hidden)

    @property
    def member_keys(self) -> tuple[str, ...]:
        return tuple(m.key for m in self.hidden + self.tail)

    @property
    def visible_tail_keys(self) -> tuple[str, ...]:
        return tuple(m.key for m in self.tail)

    @property
    def run_key(self) -> str:
        return self.hidden[0].key

    @property
    def header(self) -> str:
        label = f"Show {self.hidden_count} earlier events"
        return f"{label}: {self.summary}" if self.summary else label


TimelineGroup = SingleMessage | CollapsedEvents


def summarize_events(events: Iterable[EventMessage], max_chars: int = DEFAULT_SUMMARY_MAX_CHARS) -> str:
    """Join event contents with ", " and cut to max_chars with an ellipsis."""
    return truncate(", ".join(e.content for e in events if e.content), max_chars)


def _close_run(
    run: list[EventMessage],
    start: int,
    groups: list[TimelineGroup],
    expanded: frozenset[str],
    threshold: int,
    summary_max_chars: int,
) -> None:
    if len(run) <= threshold or run[0].key in expanded:
        groups.extend(SingleMessage(start + offset, m) for offset, m in enumerate(run))
        return
    hidden = tuple(run[:-threshold])
    groups.append(CollapsedEvents(
        start_index=start,
        hidden=hidden,
        tail=tuple(run[-threshold:]),
        summary=summarize_events(hidden, summary_max_chars),
    ))


def group_messages(
    messages: Sequence[Message],
    expanded: frozenset[str] = frozenset(),
    threshold: int = DEFAULT_COLLAPSE_THRESHOLD,
    summary_max_chars: int = DEFAULT_SUMMARY_MAX_CHARS,
) -> list[TimelineGroup]:
    """Build the render plan for a message list.

    Args:
        messages: Output of build_messages().
        expanded: Keys of the first member of each run the viewer has expanded.
        threshold: Longest run that is never collapsed; also the tail length.
        summary_max_chars: Width of the collapsed header summary.
    """
    threshold = max(1, threshold)
    groups: list[TimelineGroup] = []
    run: list[EventMessage] = []
    run_start = 0

    for index, message in enumerate(messages):
        if isinstance(message, EventMessage):
            if not run:
                run_start = index
            run.append(message)
            continue
        if run:
            _close_run(run, run_start, groups, expanded, threshold, summary_max_chars)
            run = []
        groups.append(SingleMessage(index, message))

    if run:
        _close_run(run, run_start, groups, expanded, threshold, summary_max_chars)
    return groups


# ─── Render rows ─────────────────────────────────────────────────────────────


class RowKind(Enum):
    MESSAGE = "message"
    COLLAPSED_HEADER = "collapsed_header"
    EVENT_TAIL = "event_tail"


@dataclass(frozen=True)
class TimelineRow:
    """One renderable row. `key` is stable for the same logical content."""

    key: str
    kind: RowKind
    message: Message | None = None
    group: CollapsedEvents | None = None
    connected: bool = False  # tail rows draw a connecting line to the header


def flatten_groups(groups: Iterable[TimelineGroup]) -> list[TimelineRow]:
    """Expand a render plan into the flat row list the windowed view consumes."""
    rows: list[TimelineRow] = []
    for group in groups:
        if isinstance(group, SingleMessage):
            rows.append(TimelineRow(key=group.message.key, kind=RowKind.MESSAGE, message=group.message))
            continue
        rows.append(TimelineRow(
            key=f"g_{group.run_key}",
            kind=RowKind.COLLAPSED_HEADER,
            group=group,
        ))
        rows.extend(
            TimelineRow(key=m.key, kind=RowKind.EVENT_TAIL, message=m, group=group, connected=True)
            for m in group.tail
        )
    return rows
