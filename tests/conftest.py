"""Pytest configuration and shared fixtures for agent-timeline tests."""

import pytest

import agent_timeline.io.logging_setup


@pytest.fixture
def config_home(tmp_path, monkeypatch):
    """Point XDG_CONFIG_HOME at an empty temp dir and clear AGENT_TIMELINE_* overrides."""
    home = tmp_path / "config"
    home.mkdir()
    monkeypatch.setenv("XDG_CONFIG_HOME", str(home))
    for name in (
        "AGENT_TIMELINE_ESTIMATED_ITEM_HEIGHT",
        "AGENT_TIMELINE_OVERSCAN",
        "AGENT_TIMELINE_MATERIALIZE_THRESHOLD",
        "AGENT_TIMELINE_COLLAPSE_THRESHOLD",
        "AGENT_TIMELINE_SUMMARY_MAX_CHARS",
        "AGENT_TIMELINE_AGENT_TURNS",
    ):
        monkeypatch.delenv(name, raising=False)
    return home


@pytest.fixture
def log_dir(tmp_path, monkeypatch):
    """Isolated logging runtime writing under a temp dir."""
    path = tmp_path / "logs"
    monkeypatch.setenv("AGENT_TIMELINE_LOG_DIR", str(path))
    monkeypatch.delenv("AGENT_TIMELINE_LOG_FILE", raising=False)
    monkeypatch.delenv("AGENT_TIMELINE_LOG_LEVEL", raising=False)
    agent_timeline.io.logging_setup.reset()
    yield path
    agent_timeline.io.logging_setup.reset()
