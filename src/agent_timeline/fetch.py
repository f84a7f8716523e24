"""Snapshot acquisition with stale-response discipline.

// [LAW:single-enforcer] FetchGuard is the only arbiter of whether a response may
// reach view state.

Every fetch is tagged at issue time with a per-consumer, monotonically
increasing sequence number. A response whose token is no longer the latest for
its consumer is dropped without touching state, whatever order the awaits
resolve in. The main panel and the preview panel are separate consumers, and each
consumer's older-page requests are guarded apart from its live loads.
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from agent_timeline.event_types import ConversationSnapshot, parse_snapshot
from agent_timeline.pagination import page_window

logger = logging.getLogger(__name__)

MAIN_PANEL = "main"
PREVIEW_PANEL = "preview"
OLDER_PAGE_SUFFIX = ".older"


class ConversationFetchError(Exception):
    """The source failed to produce a snapshot for the current request."""

    def __init__(self, workspace_id: str, thread_id: str, reason: str):
        super().__init__(f"cannot fetch {workspace_id}/{thread_id}: {reason}")
        self.workspace_id = workspace_id
        self.thread_id = thread_id
        self.reason = reason


class ConversationSource(Protocol):
    async def fetch_conversation(
        self,
        workspace_id: str,
        thread_id: str,
        before: int | None = None,
        limit: int | None = None,
    ) -> ConversationSnapshot:
        ...


class FileConversationSource:
    """Reads snapshots from `<root>/<workspace_id>/<thread_id>.json`."""

    def __init__(self, root: str | Path):
        self.root = Path(root)

    def path_for(self, workspace_id: str, thread_id: str) -> Path:
        return self.root / workspace_id / f"{thread_id}.json"

    async def fetch_conversation(
        self,
        workspace_id: str,
        thread_id: str,
        before: int | None = None,
        limit: int | None = None,
    ) -> ConversationSnapshot:
        path = self.path_for(workspace_id, thread_id)
        try:
            text = await asyncio.to_thread(path.read_text, encoding="utf-8")
            raw = json.loads(text)
        except (OSError, json.JSONDecodeError) as exc:
            raise ConversationFetchError(workspace_id, thread_id, str(exc)) from exc
        if isinstance(raw, dict):
            raw.setdefault("workspace_id", workspace_id)
            raw.setdefault("thread_id", thread_id)
        return page_window(parse_snapshot(raw), before, limit)


class SnapshotFileSource:
    """Serves one snapshot file whatever ids are asked for."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    async def fetch_conversation(
        self,
        workspace_id: str,
        thread_id: str,
        before: int | None = None,
        limit: int | None = None,
    ) -> ConversationSnapshot:
        try:
            text = await asyncio.to_thread(self.path.read_text, encoding="utf-8")
            raw = json.loads(text)
        except (OSError, json.JSONDecodeError) as exc:
            raise ConversationFetchError(workspace_id, thread_id, str(exc)) from exc
        return page_window(parse_snapshot(raw), before, limit)


@dataclass(frozen=True)
class FetchToken:
    consumer: str
    workspace_id: str
    thread_id: str
    seq: int

    @property
    def scope(self) -> tuple[str, str]:
        return (self.workspace_id, self.thread_id)


class FetchGuard:
    """Issues fetch tokens and tells whether a token is still the latest."""

    def __init__(self) -> None:
        self._latest: dict[str, int] = {}

    def issue(self, workspace_id: str, thread_id: str, consumer: str = MAIN_PANEL) -> FetchToken:
        seq = self._latest.get(consumer, 0) + 1
        self._latest[consumer] = seq
        return FetchToken(consumer=consumer, workspace_id=workspace_id, thread_id=thread_id, seq=seq)

    def accepts(self, token: FetchToken) -> bool:
        return self._latest.get(token.consumer) == token.seq

    def invalidate(self, consumer: str = MAIN_PANEL) -> None:
        """Make every outstanding token for consumer stale."""
        self._latest[consumer] = self._latest.get(consumer, 0) + 1


class ConversationLoader:
    """Fetches snapshots for one consumer through a shared FetchGuard."""

    def __init__(
        self,
        source: ConversationSource,
        guard: FetchGuard | None = None,
        consumer: str = MAIN_PANEL,
    ):
        self.source = source
        self.guard = guard or FetchGuard()
        self.consumer = consumer

    async def load(
        self,
        workspace_id: str,
        thread_id: str,
        limit: int | None = None,
    ) -> ConversationSnapshot | None:
        """Return the newest `limit` entries (all when None), or None when a newer load superseded this one.

        Raises ConversationFetchError only when this load is still current.
        """
        token = self.guard.issue(workspace_id, thread_id, self.consumer)
        return await self._fetch(token, None, limit)

    async def load_older(
        self,
        workspace_id: str,
        thread_id: str,
        before: int,
        limit: int | None = None,
    ) -> ConversationSnapshot | None:
        """Fetch the page that ends just before absolute entry `before`.

        Older pages are guarded separately from live loads, so a poll never
        cancels a page the viewer asked for (and the other way round).
        """
        token = self.guard.issue(workspace_id, thread_id, self.consumer + OLDER_PAGE_SUFFIX)
        return await self._fetch(token, before, limit)

    async def _fetch(self, token: FetchToken, before: int | None, limit: int | None) -> ConversationSnapshot | None:
        workspace_id, thread_id = token.scope
        try:
            snapshot = await self.source.fetch_conversation(workspace_id, thread_id, before=before, limit=limit)
        except ConversationFetchError:
            if not self.guard.accepts(token):
                logger.debug("dropping stale fetch failure %s seq=%d", token.scope, token.seq)
                return None
            raise
        except (OSError, ValueError) as exc:
            if not self.guard.accepts(token):
                logger.debug("dropping stale fetch failure %s seq=%d", token.scope, token.seq)
                return None
            raise ConversationFetchError(workspace_id, thread_id, str(exc)) from exc

        if not self.guard.accepts(token):
            logger.debug("dropping stale snapshot %s seq=%d", token.scope, token.seq)
            return None
        return snapshot
