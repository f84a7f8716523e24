"""Tests for the agent-timeline command line."""

import json

import pytest

from agent_timeline.cli import SnapshotLoadError, build_parser, load_snapshot_file, main
from tests.harness import agent_text, command, make_raw_snapshot, system_event, user, write_snapshots


@pytest.fixture
def snapshot_file(tmp_path):
    raw = make_raw_snapshot(
        [user("fix bug"), command("c1", "npm test"), agent_text("a1", "Fixed it")]
        + [system_event(f"s{i}") for i in range(5)]
    )
    path = tmp_path / "thread.json"
    path.write_text(json.dumps(raw), encoding="utf-8")
    return path


def test_print_mode(snapshot_file, config_home, log_dir, capsys):
    assert main([str(snapshot_file), "--print"]) == 0
    out = capsys.readouterr().out
    assert "fix bug" in out
    assert "npm test" in out
    assert "Fixed it" in out
    assert "Show 2 earlier events" in out


def test_print_grouped(snapshot_file, config_home, log_dir, capsys):
    assert main([str(snapshot_file), "--print", "--grouped"]) == 0
    assert "Agent turn (done)" in capsys.readouterr().out


def test_print_tail(snapshot_file, config_home, log_dir, capsys):
    assert main([str(snapshot_file), "--print", "--tail", "2"]) == 0
    out = capsys.readouterr().out
    assert "fix bug" not in out
    assert "moved from Todo to Iterating" in out


def test_print_from_root(tmp_path, config_home, log_dir, capsys):
    write_snapshots(tmp_path / "snaps", {("ws", "th"): make_raw_snapshot([user("from root")])})
    argv = ["--root", str(tmp_path / "snaps"), "--workspace", "ws", "--thread", "th", "--print"]
    assert main(argv) == 0
    assert "from root" in capsys.readouterr().out


def test_print_from_root_with_tail(tmp_path, config_home, log_dir, capsys):
    write_snapshots(tmp_path / "snaps", {("ws", "th"): make_raw_snapshot([user("old"), user("new")])})
    argv = ["--root", str(tmp_path / "snaps"), "--workspace", "ws", "--thread", "th", "--print", "--tail", "1"]
    assert main(argv) == 0
    out = capsys.readouterr().out
    assert "new" in out
    assert "old" not in out


def test_missing_file_fails(tmp_path, config_home, log_dir, capsys):
    assert main([str(tmp_path / "nope.json"), "--print"]) == 1
    assert "cannot read snapshot" in capsys.readouterr().err


def test_missing_thread_under_root_fails(tmp_path, config_home, log_dir, capsys):
    argv = ["--root", str(tmp_path), "--workspace", "ws", "--thread", "gone", "--print"]
    assert main(argv) == 1
    assert "cannot fetch ws/gone" in capsys.readouterr().err


def test_root_requires_workspace_and_thread(tmp_path):
    with pytest.raises(SystemExit):
        main(["--root", str(tmp_path)])


def test_snapshot_or_root_required():
    with pytest.raises(SystemExit):
        main([])


def test_thread_is_repeatable():
    args = build_parser().parse_args(["--root", "r", "--workspace", "w", "--thread", "a", "--thread", "b"])
    assert args.thread == ["a", "b"]


def test_load_snapshot_file_errors(tmp_path):
    bad = tmp_path / "bad.json"
    bad.write_text("{", encoding="utf-8")
    with pytest.raises(SnapshotLoadError):
        load_snapshot_file(bad)
