"""Per-view UI state scoped by list key (the active workspace/thread).

// [LAW:single-enforcer] ensure_scope() is the only place view state is reset.

Holds the viewer's expansion choices and the window layout. Everything here is
discarded together when the list key changes, so a thread switch never leaks
collapse state or measured heights into another thread.
"""

from collections.abc import Sequence

from agent_timeline.event_types import Message
from agent_timeline.grouping import TimelineRow, flatten_groups, group_messages
from agent_timeline.settings import TimelineSettings
from agent_timeline.windowing import WindowLayout


def list_key_for(workspace_id: str, thread_id: str) -> str:
    return f"{workspace_id}/{thread_id}"


class TimelineViewState:
    """Expansion sets and window layout for one timeline view."""

    def __init__(self, settings: TimelineSettings | None = None):
        self.settings = settings or TimelineSettings()
        self.list_key: str | None = None
        self.expanded_runs: set[str] = set()
        self.expanded_activities: set[str] = set()
        self.layout = self._new_layout()

    def _new_layout(self) -> WindowLayout:
        return WindowLayout(
            estimated_height=self.settings.estimated_item_height,
            overscan=self.settings.overscan,
            materialize_threshold=self.settings.materialize_threshold,
        )

    def ensure_scope(self, list_key: str) -> bool:
        """Switch to list_key. Returns True when the scope changed and state was reset."""
        if list_key == self.list_key:
            return False
        self.list_key = list_key
        self.expanded_runs = set()
        self.expanded_activities = set()
        self.layout = self._new_layout()
        self.layout.reset(list_key)
        return True

    def toggle_run(self, run_key: str) -> bool:
        """Flip expansion of the event run whose first member is run_key. Returns new state."""
        if run_key in self.expanded_runs:
            self.expanded_runs.discard(run_key)
            return False
        self.expanded_runs.add(run_key)
        return True

    def toggle_activity(self, activity_id: str) -> bool:
        if activity_id in self.expanded_activities:
            self.expanded_activities.discard(activity_id)
            return False
        self.expanded_activities.add(activity_id)
        return True

    def collapse_all(self) -> None:
        self.expanded_runs.clear()
        self.expanded_activities.clear()

    def render_plan(self, messages: Sequence[Message]) -> list[TimelineRow]:
        """Group and flatten messages with the current expansion set."""
        groups = group_messages(
            messages,
            expanded=frozenset(self.expanded_runs),
            threshold=self.settings.collapse_threshold,
            summary_max_chars=self.settings.summary_max_chars,
        )
        return flatten_groups(groups)

    def apply_rows(self, rows: Sequence[TimelineRow]) -> int:
        """Load row keys into the layout. Returns the scroll shift for a prepend."""
        return self.layout.set_items([row.key for row in rows], self.list_key)
