"""App lifecycle management for Textual in-process tests.

State isolation: every call creates a fresh snapshot directory, loader and app.
"""

import json
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

from textual.pilot import Pilot

from agent_timeline.fetch import ConversationLoader, FileConversationSource
from agent_timeline.settings import TimelineSettings
from agent_timeline.tui.app import TimelineApp


def write_snapshots(root: Path, snapshots: dict[tuple[str, str], dict]) -> None:
    """Write raw snapshot dicts to <root>/<workspace>/<thread>.json."""
    for (workspace_id, thread_id), raw in snapshots.items():
        path = root / workspace_id / f"{thread_id}.json"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(raw), encoding="utf-8")


@asynccontextmanager
async def run_app(
    root: Path,
    snapshots: dict[tuple[str, str], dict],
    *,
    size: tuple[int, int] = (100, 30),
    settings: TimelineSettings | None = None,
    tail: int | None = None,
) -> AsyncIterator[tuple[Pilot, TimelineApp]]:
    """Create and run a TimelineApp over file snapshots in test mode.

    Yields (pilot, app) once the first load has been applied. Polling is off.
    """
    write_snapshots(root, snapshots)
    loader = ConversationLoader(FileConversationSource(root))
    app = TimelineApp(loader, list(snapshots), settings=settings, poll=False, tail=tail)
    async with app.run_test(size=size) as pilot:
        await app.workers.wait_for_complete()
        await pilot.pause()
        yield pilot, app
