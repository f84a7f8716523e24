"""Tests for agent_timeline.settings — file I/O and timeline knob resolution."""

import json
import logging

import agent_timeline.settings as settings
from agent_timeline.settings import TimelineSettings, load_timeline_settings, save_timeline_settings


class TestSettingsFile:
    def test_config_path_uses_xdg(self, config_home):
        assert settings.get_config_path() == config_home / "agent-timeline" / "settings.json"

    def test_missing_file_is_empty(self, config_home):
        assert settings.load_settings() == {}

    def test_corrupt_file_is_empty(self, config_home):
        path = settings.get_config_path()
        path.parent.mkdir(parents=True)
        path.write_text("{broken", encoding="utf-8")
        assert settings.load_settings() == {}

    def test_non_dict_is_empty(self, config_home):
        path = settings.get_config_path()
        path.parent.mkdir(parents=True)
        path.write_text("[1, 2]", encoding="utf-8")
        assert settings.load_settings() == {}

    def test_save_setting_merges(self, config_home):
        settings.save_setting("a", 1)
        settings.save_setting("b", {"c": 2})
        assert settings.load_settings() == {"a": 1, "b": {"c": 2}}
        assert settings.load_setting("missing", "dflt") == "dflt"
        assert not list(settings.get_config_path().parent.glob("*.tmp"))


class TestTimelineSettings:
    def test_defaults(self, config_home):
        assert load_timeline_settings(environ={}) == TimelineSettings(
            estimated_item_height=4,
            overscan=40,
            materialize_threshold=40,
            collapse_threshold=3,
            summary_max_chars=80,
            agent_turns="flat",
        )

    def test_file_values(self, config_home):
        settings.save_setting("timeline", {"overscan": 10, "agent_turns": "grouped"})
        loaded = load_timeline_settings(environ={})
        assert loaded.overscan == 10
        assert loaded.agent_turns == "grouped"

    def test_env_overrides_file(self, config_home):
        settings.save_setting("timeline", {"overscan": 10})
        loaded = load_timeline_settings(environ={"AGENT_TIMELINE_OVERSCAN": "7"})
        assert loaded.overscan == 7

    def test_process_environment_is_read(self, config_home, monkeypatch):
        monkeypatch.setenv("AGENT_TIMELINE_COLLAPSE_THRESHOLD", "5")
        assert load_timeline_settings().collapse_threshold == 5

    def test_invalid_values_keep_defaults(self, config_home, caplog):
        settings.save_setting("timeline", {"estimated_item_height": 0, "overscan": True, "agent_turns": "tree"})
        with caplog.at_level(logging.WARNING, logger="agent_timeline.settings"):
            loaded = load_timeline_settings(environ={"AGENT_TIMELINE_SUMMARY_MAX_CHARS": "wide"})
        assert loaded == TimelineSettings()
        assert "ignoring invalid estimated_item_height" in caplog.text
        assert "ignoring invalid summary_max_chars" in caplog.text

    def test_non_table_timeline_value_is_ignored(self, config_home):
        settings.save_setting("timeline", "nope")
        assert load_timeline_settings(environ={}) == TimelineSettings()

    def test_save_round_trip(self, config_home):
        custom = TimelineSettings(overscan=5, agent_turns="grouped")
        save_timeline_settings(custom)
        assert load_timeline_settings(environ={}) == custom
        raw = json.loads(settings.get_config_path().read_text(encoding="utf-8"))
        assert raw["timeline"]["overscan"] == 5
