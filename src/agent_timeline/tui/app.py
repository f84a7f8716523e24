"""Main TUI application using Textual.

// [LAW:locality-or-seam] Thin coordinator: fetching goes through
//   ConversationLoader, folding through build_messages, display through
//   TimelineView.
"""

import logging
from dataclasses import replace

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.widgets import Footer, Static

import agent_timeline.formatting
import agent_timeline.tui.timeline_view
from agent_timeline.event_types import ConversationSnapshot, RunStatus
from agent_timeline.fetch import ConversationFetchError, ConversationLoader
from agent_timeline.pagination import compact_to_tail, prepend_snapshot
from agent_timeline.settings import TimelineSettings, save_timeline_settings
from agent_timeline.timeline import build_messages
from agent_timeline.view_state import list_key_for

logger = logging.getLogger(__name__)

POLL_SECONDS = 2.0
OLDER_PAGE_SIZE = 2000


def status_line(snapshot: ConversationSnapshot, workspace_id: str, thread_id: str) -> str:
    """One-line summary of the loaded thread for the status bar."""
    parts = [
        f"{workspace_id}/{thread_id}",
        agent_timeline.formatting.agent_model_label(snapshot.agent_model_id),
        agent_timeline.formatting.thinking_effort_label(snapshot.thinking_effort),
        "running" if snapshot.run_status is RunStatus.RUNNING else "idle",
    ]
    total = snapshot.entries_total
    if snapshot.entries_truncated and total is not None:
        parts.append(f"entries {snapshot.entries_start + 1}-{snapshot.entries_start + len(snapshot.entries)} of {total}")
    else:
        parts.append(f"{len(snapshot.entries)} entries")
    if snapshot.pending_prompts:
        parts.append(f"{len(snapshot.pending_prompts)} queued")
    return " · ".join(parts)


class TimelineApp(App):
    """Live timeline viewer for one or more agent threads."""

    TITLE = "agent-timeline"

    CSS = """
    #status {
        height: 1;
        padding: 0 1;
        background: $panel;
        color: $text-muted;
    }
    """

    BINDINGS = [
        Binding("r", "reload", "Reload"),
        Binding("e", "expand_run", "Expand events"),
        Binding("c", "collapse_all", "Collapse"),
        Binding("f", "toggle_follow", "Follow"),
        Binding("g", "toggle_grouped", "Group turns"),
        Binding("o", "load_older", "Older"),
        Binding("n", "next_thread", "Next thread"),
        Binding("p", "prev_thread", "Prev thread"),
        Binding("q", "quit", "Quit"),
    ]

    def __init__(
        self,
        loader: ConversationLoader,
        targets: list[tuple[str, str]],
        settings: TimelineSettings | None = None,
        poll: bool = True,
        tail: int | None = None,
    ):
        super().__init__()
        if not targets:
            raise ValueError("TimelineApp needs at least one (workspace, thread) target")
        self._loader = loader
        self._targets = list(targets)
        self._target_index = 0
        self._settings = settings or TimelineSettings()
        self._agent_turns = self._settings.agent_turns
        self._poll = poll
        self._tail = tail
        self._snapshot: ConversationSnapshot | None = None
        self._shown_target: tuple[str, str] | None = None
        self.status_text = "loading…"

    def compose(self) -> ComposeResult:
        yield agent_timeline.tui.timeline_view.TimelineView(self._settings, id="timeline")
        yield Static(self.status_text, id="status", markup=False)
        yield Footer()

    @property
    def timeline(self) -> "agent_timeline.tui.timeline_view.TimelineView":
        return self.query_one("#timeline", agent_timeline.tui.timeline_view.TimelineView)

    @property
    def current_target(self) -> tuple[str, str]:
        return self._targets[self._target_index]

    @property
    def snapshot(self) -> ConversationSnapshot | None:
        return self._snapshot

    def on_mount(self) -> None:
        self.timeline.focus()
        self._start_reload()
        if self._poll:
            self.set_interval(POLL_SECONDS, self._poll_running)

    def _start_reload(self) -> None:
        self.run_worker(self.reload(), group="fetch", exclusive=False)

    def _poll_running(self) -> None:
        if self._snapshot is not None and self._snapshot.run_status is RunStatus.RUNNING:
            self._start_reload()

    async def reload(self) -> None:
        """Fetch the current target and show it, unless a newer fetch superseded it."""
        workspace_id, thread_id = self.current_target
        try:
            snapshot = await self._loader.load(workspace_id, thread_id, limit=self._tail)
        except ConversationFetchError as exc:
            logger.warning("%s", exc)
            self._set_status(f"error: {exc.reason}")
            self.notify(str(exc), severity="error")
            return
        if snapshot is None:
            return
        self.show_snapshot(self._merge_fresh(snapshot, workspace_id, thread_id), workspace_id, thread_id)

    def _merge_fresh(self, fresh: ConversationSnapshot, workspace_id: str, thread_id: str) -> ConversationSnapshot:
        """Keep older pages already on screen in front of a fresh tail.

        Once the view follows the bottom again the result is cut back to the tail.
        """
        merged = fresh
        if self._snapshot is not None and self._shown_target == (workspace_id, thread_id):
            merged = prepend_snapshot(fresh, self._snapshot)
        if self._tail is not None and self.timeline.is_following:
            merged = compact_to_tail(merged, self._tail)
        return merged

    @property
    def has_older(self) -> bool:
        return self._snapshot is not None and self._snapshot.entries_start > 0

    async def load_older(self) -> None:
        """Fetch the page before the oldest loaded entry and put it in front."""
        if self._snapshot is None or self._shown_target is None:
            return
        workspace_id, thread_id = self._shown_target
        before = self._snapshot.entries_start
        try:
            page = await self._loader.load_older(
                workspace_id, thread_id, before, limit=self._tail or OLDER_PAGE_SIZE
            )
        except ConversationFetchError as exc:
            logger.warning("%s", exc)
            self.notify(str(exc), severity="error")
            return
        if page is None or self._snapshot is None or self._shown_target != (workspace_id, thread_id):
            return
        merged = prepend_snapshot(self._snapshot, page)
        if merged is self._snapshot:
            logger.debug("older page before %d did not extend %s/%s", before, workspace_id, thread_id)
            return
        self.show_snapshot(merged, workspace_id, thread_id)

    def show_snapshot(self, snapshot: ConversationSnapshot, workspace_id: str, thread_id: str) -> None:
        self._snapshot = snapshot
        self._shown_target = (workspace_id, thread_id)
        messages = build_messages(snapshot, self._agent_turns)
        self.timeline.set_timeline(messages, list_key_for(workspace_id, thread_id))
        self._set_status(status_line(snapshot, workspace_id, thread_id))

    def _set_status(self, text: str) -> None:
        self.status_text = text
        self.query_one("#status", Static).update(text)

    def _switch_target(self, step: int) -> None:
        if len(self._targets) < 2:
            return
        self._target_index = (self._target_index + step) % len(self._targets)
        self._start_reload()

    # ─── Actions ─────────────────────────────────────────────────────────────

    def action_reload(self) -> None:
        self._start_reload()

    def action_expand_run(self) -> None:
        if not self.timeline.expand_visible_run():
            self.notify("No collapsed events in view", timeout=1)

    def action_collapse_all(self) -> None:
        self.timeline.collapse_all()

    def action_toggle_follow(self) -> None:
        self.timeline.toggle_follow()
        self.notify(f"Follow: {self.timeline.follow_state.value}", timeout=1)

    def action_toggle_grouped(self) -> None:
        self._agent_turns = "flat" if self._agent_turns == "grouped" else "grouped"
        self._settings = replace(self._settings, agent_turns=self._agent_turns)
        try:
            save_timeline_settings(self._settings)
        except OSError as exc:
            logger.warning("cannot save settings: %s", exc)
        if self._snapshot is not None and self._shown_target is not None:
            self.show_snapshot(self._snapshot, *self._shown_target)

    def action_load_older(self) -> None:
        if not self.has_older:
            self.notify("Already at the oldest entry", timeout=1)
            return
        # The page lands above the viewport; stay on what the user is reading.
        self.timeline.release_follow()
        self.run_worker(self.load_older(), group="older", exclusive=True)

    def on_timeline_view_reached_top(self, event) -> None:
        if self.has_older:
            self.action_load_older()

    def action_next_thread(self) -> None:
        self._switch_target(1)

    def action_prev_thread(self) -> None:
        self._switch_target(-1)
