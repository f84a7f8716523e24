"""Snapshot pagination: serve pages, merge older pages in front, compact back to the newest tail.

Snapshots carry a window into the full log: `entries_start` is the absolute
index of entries[0] and `entries_total` the full log length. Both operations
return a new snapshot and keep absolute positions intact, so message keys
derived from them stay stable.
"""

import logging
import math
from dataclasses import replace

from agent_timeline.event_types import ConversationSnapshot, RawEntry

logger = logging.getLogger(__name__)

MAX_TAIL_ENTRIES = 5000


def entries_total(snapshot: ConversationSnapshot) -> int:
    if snapshot.entries_total is None:
        return snapshot.entries_start + len(snapshot.entries)
    return snapshot.entries_total


def _is_same_thread(a: ConversationSnapshot, b: ConversationSnapshot) -> bool:
    return a.workspace_id == b.workspace_id and a.thread_id == b.thread_id


def _truncated(start: int, entries: tuple[RawEntry, ...], total: int) -> bool:
    return start > 0 or start + len(entries) < total


def prepend_snapshot(current: ConversationSnapshot, older_page: ConversationSnapshot) -> ConversationSnapshot:
    """Put an older page of entries in front of current.

    Returns current unchanged when the page belongs to another thread, does not
    start earlier, or would leave a gap between the two windows.
    """
    if not _is_same_thread(current, older_page):
        return current
    current_start = current.entries_start
    older_start = older_page.entries_start
    older_end = older_start + len(older_page.entries)
    if older_start >= current_start:
        return current
    if older_end < current_start:
        logger.debug(
            "older page [%d, %d) does not reach current start %d", older_start, older_end, current_start
        )
        return current

    overlap = older_end - current_start
    prefix = older_page.entries[: len(older_page.entries) - overlap]
    merged = prefix + current.entries
    total = max(entries_total(current), entries_total(older_page))
    return replace(
        current,
        entries=merged,
        entries_start=older_start,
        entries_total=total,
        entries_truncated=_truncated(older_start, merged, total),
    )


def compact_to_tail(snapshot: ConversationSnapshot, limit: float) -> ConversationSnapshot:
    """Keep only the newest `limit` entries (limit clamped to 1..5000)."""
    clamped = max(1, min(MAX_TAIL_ENTRIES, math.floor(limit)))
    total = entries_total(snapshot)
    start = snapshot.entries_start
    count = len(snapshot.entries)
    if count <= clamped and start + count >= total:
        return snapshot

    desired_end = min(total, start + count)
    desired_start = max(0, desired_end - clamped)
    offset = max(0, desired_start - start)
    tail = snapshot.entries[offset:]
    new_start = start + offset
    return replace(
        snapshot,
        entries=tail,
        entries_start=new_start,
        entries_truncated=_truncated(new_start, tail, total),
    )


def page_window(
    snapshot: ConversationSnapshot,
    before: int | None = None,
    limit: float | None = None,
) -> ConversationSnapshot:
    """Serve the page of up to `limit` entries that ends just before absolute position `before`.

    `before=None` means the newest entries. With neither argument the snapshot
    is returned whole. The page always records the full log length so a client
    can tell how much lies outside it.
    """
    if before is None and limit is None:
        return snapshot
    total = entries_total(snapshot)
    start = snapshot.entries_start
    available_end = start + len(snapshot.entries)
    end = available_end if before is None else max(start, min(available_end, before))
    page_start = start
    if limit is not None:
        page_start = max(start, end - max(1, min(MAX_TAIL_ENTRIES, math.floor(limit))))
    page = snapshot.entries[page_start - start:end - start]
    return replace(
        snapshot,
        entries=page,
        entries_start=page_start,
        entries_total=total,
        entries_truncated=_truncated(page_start, page, total),
    )
