"""Shared builders for raw snapshot dicts and parsed snapshots."""

from agent_timeline.event_types import ConversationSnapshot, parse_snapshot


def user(text="fix bug", attachments=None):
    entry = {"type": "user_message", "text": text}
    if attachments is not None:
        entry["attachments"] = attachments
    return entry


def agent_item(id, kind, payload=None):
    return {"type": "agent_item", "id": id, "kind": kind, "payload": payload}


def agent_text(id, text):
    return agent_item(id, "agent_message", {"text": text})


def reasoning(id, text="thinking..."):
    return agent_item(id, "reasoning", {"text": text})


def command(id, cmd="ls -la", status="completed", output=""):
    return agent_item(
        id,
        "command_execution",
        {"command": cmd, "status": status, "aggregated_output": output},
    )


def turn_duration(ms):
    return {"type": "turn_duration", "duration_ms": ms}


def turn_error(message="boom"):
    return {"type": "turn_error", "message": message}


def turn_canceled():
    return {"type": "turn_canceled"}


def system_event(entry_id, event_type="task_status_changed", from_status="todo", to_status="iterating"):
    return {
        "type": "system_event",
        "entry_id": entry_id,
        "created_at_unix_ms": 1_700_000_000_000,
        "event": {"event_type": event_type, "from": from_status, "to": to_status},
    }


def make_raw_snapshot(entries=(), run_status="idle", in_progress_items=(), **extra):
    raw = {
        "run_status": run_status,
        "entries": list(entries),
        "in_progress_items": list(in_progress_items),
        "pending_prompts": [],
        "agent_model_id": "gpt-5.2-codex",
        "thinking_effort": "high",
        "workspace_id": "w1",
        "thread_id": "t1",
    }
    raw.update(extra)
    return raw


def make_snapshot(entries=(), run_status="idle", in_progress_items=(), **extra) -> ConversationSnapshot:
    return parse_snapshot(make_raw_snapshot(entries, run_status, in_progress_items, **extra))
