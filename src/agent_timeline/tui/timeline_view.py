"""TimelineView — virtual-rendering timeline display using the Line API.

Rows are placed by WindowLayout. Only rows inside the layout's visible range
are rendered; everything else is represented by its estimated height until it
scrolls near the viewport. Measured heights are queued during render_line()
and applied in a call_later() callback, never inside the render pass.
"""

import logging
from contextlib import contextmanager
from enum import Enum

import textual.message
from textual.cache import LRUCache
from textual.geometry import Size
from textual.scroll_view import ScrollView
from textual.strip import Strip

import agent_timeline.tui.rendering
from agent_timeline.event_types import AgentTurnMessage, AssistantMessage, Message
from agent_timeline.grouping import RowKind, TimelineRow
from agent_timeline.settings import TimelineSettings
from agent_timeline.view_state import TimelineViewState
from agent_timeline.windowing import WindowRange

logger = logging.getLogger(__name__)


# ─── Follow mode state machine ──────────────────────────────────────────────


class FollowState(Enum):
    OFF = "off"
    ENGAGED = "engaged"
    ACTIVE = "active"


# [LAW:dataflow-not-control-flow] Transitions as data, not branches.
# Key: (current_state, at_bottom) → new_state
_FOLLOW_TRANSITIONS: dict[tuple[FollowState, bool], FollowState] = {
    (FollowState.ACTIVE, True): FollowState.ACTIVE,
    (FollowState.ACTIVE, False): FollowState.ENGAGED,
    (FollowState.ENGAGED, True): FollowState.ACTIVE,
    (FollowState.ENGAGED, False): FollowState.ENGAGED,
    (FollowState.OFF, True): FollowState.OFF,
    (FollowState.OFF, False): FollowState.OFF,
}

_FOLLOW_TOGGLE: dict[FollowState, FollowState] = {
    FollowState.OFF: FollowState.ACTIVE,
    FollowState.ENGAGED: FollowState.OFF,
    FollowState.ACTIVE: FollowState.OFF,
}


def _row_activity_ids(row: TimelineRow) -> frozenset[str]:
    message = row.message
    if isinstance(message, (AssistantMessage, AgentTurnMessage)):
        return frozenset(a.id for a in message.activities)
    return frozenset()


class TimelineView(ScrollView):
    """Scrollable timeline. Feed it messages with set_timeline()."""

    class ReachedTop(textual.message.Message):
        """Posted when the user scrolls up to the first line."""

    DEFAULT_CSS = """
    TimelineView {
        color: $foreground;
        overflow-y: scroll;
        overflow-x: hidden;
        border: solid $accent;
        &:focus {
            background-tint: $foreground 5%;
        }
    }
    """

    def __init__(self, settings: TimelineSettings | None = None, **kwargs):
        super().__init__(**kwargs)
        self.state = TimelineViewState(settings)
        self._messages: list[Message] = []
        self._rows: list[TimelineRow] = []
        self._row_cache: LRUCache = LRUCache(2048)
        self._last_width: int = 78
        self._flush_scheduled: bool = False
        self._follow_state: FollowState = FollowState.ACTIVE
        self._scrolling_programmatically: bool = False
        self.render_errors: dict[str, str] = {}

    @contextmanager
    def _programmatic_scroll(self):
        """Guard scroll operations from follow-state transitions."""
        self._scrolling_programmatically = True
        try:
            yield
        finally:
            self._scrolling_programmatically = False

    @property
    def is_following(self) -> bool:
        return self._follow_state == FollowState.ACTIVE

    @property
    def follow_state(self) -> FollowState:
        return self._follow_state

    @property
    def rows(self) -> list[TimelineRow]:
        return self._rows

    @property
    def _content_width(self) -> int:
        """Render width for content, with margin to prevent horizontal scrollbar."""
        return max(1, self.scrollable_content_region.width - 1)

    @property
    def _size_known(self) -> bool:
        return self.size.width > 0

    def _render_width(self) -> int:
        return self._content_width if self._size_known else self._last_width

    # ─── Content updates ─────────────────────────────────────────────────────

    def set_timeline(self, messages: list[Message], list_key: str) -> None:
        """Show messages for list_key. A new key resets expansion and heights."""
        scope_changed = self.state.ensure_scope(list_key)
        self._messages = list(messages)
        if scope_changed:
            self._follow_state = FollowState.ACTIVE
        self._rebuild_rows()

    def _rebuild_rows(self) -> None:
        self._rows = self.state.render_plan(self._messages)
        shift = self.state.apply_rows(self._rows)
        self._update_virtual_size()
        if self.is_following:
            self._scroll_end_programmatic()
        elif shift:
            self._scroll_by_programmatic(shift)
        self._schedule_materialize()
        self.refresh()

    def _update_virtual_size(self) -> None:
        self.virtual_size = Size(self._render_width(), self.state.layout.total_height)

    def _scroll_end_programmatic(self) -> None:
        with self._programmatic_scroll():
            self.scroll_end(animate=False)

    def _scroll_by_programmatic(self, delta: int) -> None:
        with self._programmatic_scroll():
            self.scroll_to(y=self.scroll_offset.y + delta, animate=False)

    # ─── Row rendering and measurement ───────────────────────────────────────

    def _strips_for(self, index: int) -> list[Strip]:
        row = self._rows[index]
        width = self._render_width()
        expanded = _row_activity_ids(row) & frozenset(self.state.expanded_activities)
        cache_key = (row, width, expanded)
        strips = self._row_cache.get(cache_key)
        if strips is None:
            strips = agent_timeline.tui.rendering.render_row_to_strips(
                row, self.app.console, width, expanded
            )
            self._row_cache[cache_key] = strips
        if self.state.layout.record_height(row.key, len(strips)):
            self._schedule_flush()
        return strips

    def _schedule_flush(self) -> None:
        if self._flush_scheduled:
            return
        self._flush_scheduled = True
        # Can't apply inline: it changes virtual_size while render_line() is iterating.
        self.call_later(self._flush_heights)

    def _flush_heights(self) -> None:
        self._flush_scheduled = False
        adjustment = self.state.layout.flush_measurements(int(self.scroll_offset.y))
        self._update_virtual_size()
        if self.is_following:
            self._scroll_end_programmatic()
        elif adjustment:
            self._scroll_by_programmatic(adjustment)
        self.refresh()

    def window_range(self) -> WindowRange:
        return self.state.layout.visible_range(
            int(self.scroll_offset.y), self.scrollable_content_region.height
        )

    def _schedule_materialize(self) -> None:
        self.call_later(self._materialize_window)

    def _materialize_window(self) -> None:
        """Render every row in the visible range so its height is measured."""
        if not self._rows:
            return
        for index in self.window_range().indices():
            self._strips_for(index)

    def render_line(self, y: int) -> Strip:
        """Line API: render a single line at viewport row y."""
        scroll_x, scroll_y = self.scroll_offset
        actual_y = int(scroll_y) + y
        width = self._content_width
        layout = self.state.layout
        try:
            if actual_y >= layout.total_height:
                return Strip.blank(width, self.rich_style)
            index = layout.item_at(actual_y)
            if index is None:
                return Strip.blank(width, self.rich_style)
            strips = self._strips_for(index)
            local_y = actual_y - layout.offset_of(index)
            if local_y < len(strips):
                strip = strips[local_y].crop_extend(scroll_x, scroll_x + width, self.rich_style)
            else:
                strip = Strip.blank(width, self.rich_style)
            return strip.apply_style(self.rich_style)
        except Exception as exc:
            logger.exception("render_line failed at y=%d", actual_y)
            err_key = f"render:{type(exc).__name__}"
            if err_key not in self.render_errors:
                self.render_errors[err_key] = f"{type(exc).__name__}: {exc}"
                self.call_later(self.notify, self.render_errors[err_key], severity="error")
            return Strip.blank(width, self.rich_style)

    def on_resize(self, event) -> None:
        """Heights depend on width: drop measurements and re-place rows."""
        width = self._content_width
        if width != self._last_width and width > 0:
            self._last_width = width
            self.state.layout.reset(self.state.list_key)
            self._rebuild_rows()

    # ─── Follow mode ─────────────────────────────────────────────────────────

    def watch_scroll_y(self, old_value: float, new_value: float) -> None:
        """Track follow state on user scroll and measure newly exposed rows.

        // [LAW:dataflow-not-control-flow] Transition via _FOLLOW_TRANSITIONS table.
        """
        super().watch_scroll_y(old_value, new_value)
        self._schedule_materialize()
        if self._scrolling_programmatically:
            return
        self._follow_state = _FOLLOW_TRANSITIONS[
            (self._follow_state, self.is_vertical_scroll_end)
        ]
        if new_value <= 0 < old_value:
            self.post_message(self.ReachedTop())

    def release_follow(self) -> None:
        """Stop pinning to the bottom until the user scrolls back there."""
        if self._follow_state is FollowState.ACTIVE:
            self._follow_state = FollowState.ENGAGED

    def toggle_follow(self) -> None:
        self._follow_state = _FOLLOW_TOGGLE[self._follow_state]
        if self.is_following:
            self._scroll_end_programmatic()

    # ─── Expansion ───────────────────────────────────────────────────────────

    def toggle_run(self, run_key: str) -> None:
        self.state.toggle_run(run_key)
        self._rebuild_rows()

    def toggle_activity(self, activity_id: str) -> None:
        self.state.toggle_activity(activity_id)
        self.refresh()

    def collapse_all(self) -> None:
        self.state.collapse_all()
        self._rebuild_rows()

    def expand_visible_run(self) -> bool:
        """Expand the first collapsed event run in the visible range."""
        for index in self.window_range().indices():
            row = self._rows[index]
            if row.kind is RowKind.COLLAPSED_HEADER and row.group is not None:
                self.toggle_run(row.group.run_key)
                return True
        return False

    def on_click(self, event) -> None:
        meta = event.style.meta
        run = meta.get(agent_timeline.tui.rendering.META_TOGGLE_RUN)
        if run is not None:
            self.toggle_run(run)
            return
        activity_id = meta.get(agent_timeline.tui.rendering.META_TOGGLE_ACTIVITY)
        if activity_id is not None:
            self.toggle_activity(activity_id)
