"""Windowed layout — decides which timeline rows to materialize for a viewport.

// [LAW:one-source-of-truth] Heights live in one map keyed by row key; offsets
// are derived from it and recomputed lazily from the first dirty index.

Units are whatever the host measures in (terminal lines for the TUI). Scroll
ticks only binary-search the cumulative offsets; a height or list change marks
offsets dirty from the first affected index and the next query recomputes the
suffix.
"""

from bisect import bisect_right
from collections.abc import Sequence
from dataclasses import dataclass

DEFAULT_ESTIMATED_HEIGHT = 4
DEFAULT_OVERSCAN = 40
DEFAULT_MATERIALIZE_THRESHOLD = 40


@dataclass(frozen=True)
class WindowRange:
    """Half-open index range [start, stop) of rows to materialize."""

    start: int
    stop: int

    def __len__(self) -> int:
        return max(0, self.stop - self.start)

    def __contains__(self, index: object) -> bool:
        return isinstance(index, int) and self.start <= index < self.stop

    def indices(self) -> range:
        return range(self.start, self.stop)


class WindowLayout:
    """Height bookkeeping and visible-range queries for one list."""

    def __init__(
        self,
        estimated_height: int = DEFAULT_ESTIMATED_HEIGHT,
        overscan: int = DEFAULT_OVERSCAN,
        materialize_threshold: int = DEFAULT_MATERIALIZE_THRESHOLD,
    ):
        self.estimated_height = max(1, estimated_height)
        self.overscan = max(0, overscan)
        self.materialize_threshold = max(0, materialize_threshold)
        self.list_key: str | None = None
        self._keys: list[str] = []
        self._index: dict[str, int] = {}
        self._heights: dict[str, int] = {}
        self._pending: dict[str, int] = {}
        self._offsets: list[int] = [0]
        self._dirty_from: int | None = None

    def __len__(self) -> int:
        return len(self._keys)

    @property
    def keys(self) -> tuple[str, ...]:
        return tuple(self._keys)

    def reset(self, list_key: str | None = None) -> None:
        """Drop every measurement and item. Used when the list identity changes."""
        self.list_key = list_key
        self._keys = []
        self._index = {}
        self._heights = {}
        self._pending = {}
        self._offsets = [0]
        self._dirty_from = None

    def height_of(self, key: str) -> int:
        return self._heights.get(key, self.estimated_height)

    def is_measured(self, key: str) -> bool:
        return key in self._heights

    def _mark_dirty(self, index: int) -> None:
        if self._dirty_from is None or index < self._dirty_from:
            self._dirty_from = index

    def _ensure_offsets(self) -> None:
        start = self._dirty_from
        if start is None:
            return
        n = len(self._keys)
        start = min(start, n)
        del self._offsets[start + 1:]
        running = self._offsets[start]
        for key in self._keys[start:]:
            running += self.height_of(key)
            self._offsets.append(running)
        self._dirty_from = None

    # ─── List updates ────────────────────────────────────────────────────────

    def set_items(self, keys: Sequence[str], list_key: str | None = None) -> int:
        """Replace the row list. Returns the scroll shift a pure prepend requires.

        A different list_key resets heights, offsets and pending measurements
        before the new keys are loaded.
        """
        new_keys = list(keys)
        if list_key != self.list_key:
            self.reset(list_key)
        old_keys = self._keys

        shift = 0
        added = len(new_keys) - len(old_keys)
        if old_keys and added > 0 and new_keys[added:] == old_keys:
            shift = sum(self.height_of(k) for k in new_keys[:added])
            first_changed = 0
        else:
            first_changed = 0
            limit = min(len(old_keys), len(new_keys))
            while first_changed < limit and old_keys[first_changed] == new_keys[first_changed]:
                first_changed += 1

        self._keys = new_keys
        self._index = {k: i for i, k in enumerate(new_keys)}
        self._pending = {k: h for k, h in self._pending.items() if k in self._index}
        if first_changed < len(new_keys) or len(new_keys) != len(old_keys):
            self._mark_dirty(first_changed)
        return shift

    # ─── Measurements ────────────────────────────────────────────────────────

    def record_height(self, key: str, height: int) -> bool:
        """Queue a measured height. True when the caller must schedule a flush."""
        if key not in self._index:
            return False
        height = max(1, height)
        if self._pending.get(key, self._heights.get(key)) == height:
            return False
        was_idle = not self._pending
        self._pending[key] = height
        return was_idle

    @property
    def has_pending(self) -> bool:
        return bool(self._pending)

    def flush_measurements(self, scroll_top: int = 0) -> int:
        """Apply queued heights. Returns the scroll adjustment keeping content anchored.

        Only rows lying entirely above scroll_top contribute to the adjustment.
        """
        if not self._pending:
            return 0
        self._ensure_offsets()
        adjustment = 0
        for key, height in self._pending.items():
            index = self._index.get(key)
            if index is None:
                continue
            old = self.height_of(key)
            self._heights[key] = height
            if height == old:
                continue
            if self._offsets[index + 1] <= scroll_top:
                adjustment += height - old
            self._mark_dirty(index)
        self._pending = {}
        return adjustment

    # ─── Queries ─────────────────────────────────────────────────────────────

    @property
    def total_height(self) -> int:
        self._ensure_offsets()
        return self._offsets[-1]

    def offset_of(self, index: int) -> int:
        self._ensure_offsets()
        index = max(0, min(index, len(self._keys)))
        return self._offsets[index]

    def item_at(self, y: int) -> int | None:
        """Index of the row covering y, or None for an empty list."""
        n = len(self._keys)
        if n == 0:
            return None
        self._ensure_offsets()
        index = bisect_right(self._offsets, y, 0, n) - 1
        return max(0, min(index, n - 1))

    def visible_range(self, scroll_top: int, viewport_height: int) -> WindowRange:
        """Every row intersecting [scroll_top - overscan, scroll_top + viewport + overscan].

        Lists at or below the materialize threshold are returned whole.
        """
        n = len(self._keys)
        if n <= self.materialize_threshold:
            return WindowRange(0, n)
        self._ensure_offsets()
        low = max(0, scroll_top - self.overscan)
        high = scroll_top + max(0, viewport_height) + self.overscan
        # first row whose bottom edge is past `low`
        start = bisect_right(self._offsets, low, 1, n + 1) - 1
        # rows whose top edge is at or before `high`
        stop = bisect_right(self._offsets, high, 0, n)
        start = min(start, stop)
        return WindowRange(start, stop)
