"""Tests for agent_timeline.event_types — parse boundary, defaults, immutability."""

import pytest

from agent_timeline.event_types import (
    AgentItemEntry,
    AgentItemKind,
    AttachmentRef,
    ConversationSnapshot,
    RunStatus,
    SystemEventEntry,
    TurnCanceledEntry,
    TurnDurationEntry,
    TurnErrorEntry,
    TurnUsageEntry,
    UnknownEntry,
    UserMessage,
    UserMessageEntry,
    parse_agent_item_like,
    parse_entry,
    parse_snapshot,
)


# ─── Value types ─────────────────────────────────────────────────────────────


class TestFrozen:
    def test_snapshot_is_frozen(self):
        snap = ConversationSnapshot()
        with pytest.raises(AttributeError):
            snap.run_status = RunStatus.RUNNING

    def test_message_is_frozen(self):
        msg = UserMessage(key="u_0", content="hi")
        with pytest.raises(AttributeError):
            msg.content = "bye"


class TestAgentItemKind:
    def test_known_kind(self):
        assert AgentItemKind.parse("reasoning") is AgentItemKind.REASONING

    def test_unknown_kind_is_none(self):
        assert AgentItemKind.parse("custom_widget") is None

    def test_non_string_is_none(self):
        assert AgentItemKind.parse(None) is None
        assert AgentItemKind.parse(["x"]) is None


# ─── parse_entry ─────────────────────────────────────────────────────────────


class TestParseEntry:
    def test_user_message_with_attachments(self):
        entry = parse_entry({
            "type": "user_message",
            "text": "fix bug",
            "attachments": [{"id": "a1", "kind": "image", "name": "shot.png"}, "junk"],
        })
        assert entry == UserMessageEntry(
            text="fix bug",
            attachments=(AttachmentRef("a1", "image", "shot.png"), AttachmentRef("", "file", "")),
        )

    def test_agent_item_keeps_raw_kind_and_payload(self):
        entry = parse_entry({"type": "agent_item", "id": "i1", "kind": "custom_widget", "payload": {"x": 1}})
        assert entry == AgentItemEntry(id="i1", kind="custom_widget", payload={"x": 1})

    def test_turn_duration_defaults_and_clamps(self):
        assert parse_entry({"type": "turn_duration", "duration_ms": 1500}) == TurnDurationEntry(1500)
        assert parse_entry({"type": "turn_duration"}) == TurnDurationEntry(0)
        assert parse_entry({"type": "turn_duration", "duration_ms": -5}) == TurnDurationEntry(0)
        assert parse_entry({"type": "turn_duration", "duration_ms": "abc"}) == TurnDurationEntry(0)

    def test_turn_usage_reads_usage_json(self):
        entry = parse_entry({"type": "turn_usage", "usage_json": {"input_tokens": 3}})
        assert entry == TurnUsageEntry(usage={"input_tokens": 3})

    def test_turn_error_and_canceled(self):
        assert parse_entry({"type": "turn_error", "message": "boom"}) == TurnErrorEntry("boom")
        assert parse_entry({"type": "turn_error"}) == TurnErrorEntry("")
        assert parse_entry({"type": "turn_canceled"}) == TurnCanceledEntry()

    def test_system_event(self):
        entry = parse_entry({
            "type": "system_event",
            "entry_id": "e1",
            "created_at_unix_ms": 1000,
            "event": {"event_type": "task_status_changed", "from": "todo", "to": "done"},
        })
        assert entry == SystemEventEntry(
            entry_id="e1",
            event_type="task_status_changed",
            from_status="todo",
            to_status="done",
            created_at_unix_ms=1000,
        )

    def test_unknown_type_is_kept(self):
        raw = {"type": "future_thing", "x": 1}
        entry = parse_entry(raw)
        assert isinstance(entry, UnknownEntry)
        assert entry.entry_type == "future_thing"
        assert entry.raw == raw

    @pytest.mark.parametrize("raw", [None, 42, "user_message", [], {}])
    def test_non_dict_or_untyped_never_raises(self, raw):
        assert isinstance(parse_entry(raw), UnknownEntry)


# ─── parse_snapshot ──────────────────────────────────────────────────────────


class TestParseSnapshot:
    def test_full_snapshot(self):
        snap = parse_snapshot({
            "run_status": "running",
            "entries": [{"type": "user_message", "text": "hi"}],
            "in_progress_items": [{"id": "p1", "kind": "command_execution", "payload": {"command": "ls"}}],
            "pending_prompts": [{"id": "q1", "text": "next"}],
            "agent_model_id": "gpt-5.2",
            "thinking_effort": "low",
            "workspace_id": "w",
            "thread_id": "t",
            "entries_total": 10,
            "entries_start": 9,
            "entries_truncated": True,
        })
        assert snap.run_status is RunStatus.RUNNING
        assert snap.entries == (UserMessageEntry(text="hi"),)
        assert snap.in_progress_items[0].kind == "command_execution"
        assert snap.pending_prompts[0].text == "next"
        assert snap.agent_model_id == "gpt-5.2"
        assert (snap.entries_total, snap.entries_start, snap.entries_truncated) == (10, 9, True)

    def test_non_dict_is_empty(self):
        assert parse_snapshot("nope") == ConversationSnapshot()

    def test_malformed_fields_default(self):
        snap = parse_snapshot({"run_status": 3, "entries": "x", "agent_model_id": 5, "entries_total": "many"})
        assert snap.run_status is RunStatus.IDLE
        assert snap.entries == ()
        assert snap.agent_model_id is None
        assert snap.entries_total is None

    def test_agent_item_like_defaults(self):
        item = parse_agent_item_like({})
        assert (item.id, item.kind, item.payload) == ("", "item", None)
