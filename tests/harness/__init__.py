"""Test harness for agent-timeline.

Re-exports the public helpers:
    from tests.harness import make_snapshot, run_app, viewport_text, ...
"""

from tests.harness.app_runner import run_app, write_snapshots
from tests.harness.builders import (
    agent_item,
    agent_text,
    command,
    make_raw_snapshot,
    make_snapshot,
    reasoning,
    system_event,
    turn_canceled,
    turn_duration,
    turn_error,
    user,
)
from tests.harness.content import strips_to_text, viewport_text

__all__ = [
    "run_app",
    "write_snapshots",
    "agent_item",
    "agent_text",
    "command",
    "make_raw_snapshot",
    "make_snapshot",
    "reasoning",
    "system_event",
    "turn_canceled",
    "turn_duration",
    "turn_error",
    "user",
    "strips_to_text",
    "viewport_text",
]
