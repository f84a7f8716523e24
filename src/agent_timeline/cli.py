"""CLI entry point for agent-timeline."""

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path

from rich.console import Console

import agent_timeline.io.logging_setup
from agent_timeline.event_types import ConversationSnapshot, parse_snapshot
from agent_timeline.fetch import (
    ConversationFetchError,
    ConversationLoader,
    FileConversationSource,
    SnapshotFileSource,
)
from agent_timeline.pagination import compact_to_tail
from agent_timeline.settings import TimelineSettings, load_timeline_settings
from agent_timeline.timeline import build_messages
from agent_timeline.tui.app import TimelineApp
from agent_timeline.tui.rendering import render_rows_to_text
from agent_timeline.view_state import TimelineViewState, list_key_for

logger = logging.getLogger(__name__)

LOCAL_WORKSPACE = "local"


class SnapshotLoadError(Exception):
    """A snapshot file could not be read or decoded."""


def load_snapshot_file(path: str | Path) -> ConversationSnapshot:
    path = Path(path)
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise SnapshotLoadError(f"cannot read snapshot {path}: {exc}") from exc
    return parse_snapshot(raw)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="agent-timeline",
        description="Render the timeline of an agent conversation snapshot",
    )
    parser.add_argument("snapshot", nargs="?", help="Path to a conversation snapshot JSON file")
    parser.add_argument("--print", dest="print_only", action="store_true", help="Print the timeline and exit")
    parser.add_argument("--grouped", action="store_true", help="Show agent turns as separate rows")
    parser.add_argument("--root", type=str, default=None, help="Directory of <workspace>/<thread>.json snapshots")
    parser.add_argument("--workspace", type=str, default=None, help="Workspace id under --root")
    parser.add_argument(
        "--thread",
        action="append",
        default=None,
        help="Thread id under --root (repeat to switch between threads in the TUI)",
    )
    parser.add_argument("--tail", type=int, default=None, help="Keep only the newest N entries")
    parser.add_argument("--no-poll", action="store_true", help="Do not refresh running threads")
    return parser


def _targets(args, parser: argparse.ArgumentParser) -> tuple[ConversationLoader, list[tuple[str, str]]]:
    if args.root:
        if not args.workspace or not args.thread:
            parser.error("--root requires --workspace and at least one --thread")
        loader = ConversationLoader(FileConversationSource(args.root))
        return loader, [(args.workspace, thread) for thread in args.thread]
    if not args.snapshot:
        parser.error("a snapshot file or --root/--workspace/--thread is required")
    loader = ConversationLoader(SnapshotFileSource(args.snapshot))
    return loader, [(LOCAL_WORKSPACE, Path(args.snapshot).stem)]


def print_timeline(
    snapshot: ConversationSnapshot,
    list_key: str,
    settings: TimelineSettings,
    console: Console | None = None,
) -> int:
    """Print the grouped timeline to a Rich console. Returns the number of rows."""
    console = console or Console()
    state = TimelineViewState(settings)
    state.ensure_scope(list_key)
    rows = state.render_plan(build_messages(snapshot, settings.agent_turns))
    for renderable in render_rows_to_text(rows):
        console.print(renderable)
    return len(rows)


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    loader, targets = _targets(args, parser)

    # [LAW:single-enforcer] Runtime logger configuration is centralized in io.logging_setup.
    agent_timeline.io.logging_setup.configure(session_name=targets[0][1], stderr=args.print_only)

    settings = load_timeline_settings()
    if args.grouped:
        settings = replace(settings, agent_turns="grouped")

    if args.print_only:
        workspace_id, thread_id = targets[0]
        try:
            if args.root:
                snapshot = asyncio.run(loader.load(workspace_id, thread_id, limit=args.tail))
            else:
                snapshot = load_snapshot_file(args.snapshot)
        except (ConversationFetchError, SnapshotLoadError) as exc:
            print(f"agent-timeline: {exc}", file=sys.stderr)
            return 1
        if snapshot is None:
            return 1
        if args.tail is not None:
            snapshot = compact_to_tail(snapshot, args.tail)
        print_timeline(snapshot, list_key_for(workspace_id, thread_id), settings)
        return 0

    app = TimelineApp(loader, targets, settings=settings, poll=not args.no_poll, tail=args.tail)
    app.run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
