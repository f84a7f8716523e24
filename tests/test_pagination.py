"""Tests for agent_timeline.pagination: paging, prepend and tail compaction."""

from agent_timeline.pagination import MAX_TAIL_ENTRIES, compact_to_tail, entries_total, page_window, prepend_snapshot
from agent_timeline.timeline import build_messages
from tests.harness import make_snapshot, user


def _window(start, stop, total, thread="t1"):
    return make_snapshot(
        [user(f"m{i}") for i in range(start, stop)],
        entries_start=start,
        entries_total=total,
        entries_truncated=start > 0 or stop < total,
        thread_id=thread,
    )


def _texts(snapshot):
    return [e.text for e in snapshot.entries]


def test_entries_total_defaults_to_window_end():
    snap = make_snapshot([user()], entries_start=4)
    assert entries_total(snap) == 5


class TestPrepend:
    def test_adjacent_page(self):
        merged = prepend_snapshot(_window(5, 10, 10), _window(0, 5, 10))
        assert _texts(merged) == [f"m{i}" for i in range(10)]
        assert merged.entries_start == 0
        assert merged.entries_truncated is False

    def test_overlapping_page_is_deduplicated(self):
        merged = prepend_snapshot(_window(5, 10, 10), _window(2, 7, 10))
        assert _texts(merged) == [f"m{i}" for i in range(2, 10)]
        assert merged.entries_start == 2
        assert merged.entries_truncated is True

    def test_other_thread_is_ignored(self):
        current = _window(5, 10, 10)
        assert prepend_snapshot(current, _window(0, 5, 10, thread="t2")) is current

    def test_page_not_earlier_is_ignored(self):
        current = _window(5, 10, 10)
        assert prepend_snapshot(current, _window(6, 8, 10)) is current

    def test_gap_is_refused(self):
        current = _window(5, 10, 10)
        assert prepend_snapshot(current, _window(0, 3, 10)) is current

    def test_message_keys_survive_prepend(self):
        current = _window(5, 10, 10)
        merged = prepend_snapshot(current, _window(0, 5, 10))
        before = [m.key for m in build_messages(current)]
        after = [m.key for m in build_messages(merged)]
        assert after[-len(before):] == before


class TestCompact:
    def test_keeps_newest_entries(self):
        compacted = compact_to_tail(_window(0, 10, 10), 3)
        assert _texts(compacted) == ["m7", "m8", "m9"]
        assert compacted.entries_start == 7
        assert compacted.entries_truncated is True

    def test_already_small_is_unchanged(self):
        snap = _window(0, 3, 3)
        assert compact_to_tail(snap, 10) is snap

    def test_limit_is_clamped(self):
        assert len(compact_to_tail(_window(0, 4, 4), 0).entries) == 1
        assert len(compact_to_tail(_window(0, 4, 4), 2.9).entries) == 2
        assert MAX_TAIL_ENTRIES == 5000

    def test_keys_survive_compaction(self):
        snap = _window(0, 10, 10)
        full = {m.key for m in build_messages(snap)}
        tail = [m.key for m in build_messages(compact_to_tail(snap, 4))]
        assert tail == ["u_6", "u_7", "u_8", "u_9"]
        assert set(tail) <= full


class TestPageWindow:
    def test_no_arguments_is_whole_snapshot(self):
        snap = _window(0, 5, 5)
        assert page_window(snap) is snap

    def test_newest_page(self):
        page = page_window(_window(0, 10, 10), limit=3)
        assert _texts(page) == ["m7", "m8", "m9"]
        assert (page.entries_start, page.entries_total, page.entries_truncated) == (7, 10, True)

    def test_page_before_position(self):
        page = page_window(_window(0, 10, 10), before=7, limit=3)
        assert _texts(page) == ["m4", "m5", "m6"]
        assert page.entries_start == 4

    def test_page_stops_at_log_start(self):
        page = page_window(_window(0, 10, 10), before=2, limit=5)
        assert _texts(page) == ["m0", "m1"]
        assert page.entries_start == 0
        assert page.entries_truncated is True

    def test_before_without_limit_takes_everything_earlier(self):
        page = page_window(_window(0, 10, 10), before=3)
        assert _texts(page) == ["m0", "m1", "m2"]

    def test_window_source_keeps_absolute_positions(self):
        # Serving from a snapshot that is itself a window into a longer log.
        page = page_window(_window(20, 30, 30), before=25, limit=3)
        assert _texts(page) == ["m22", "m23", "m24"]
        assert page.entries_start == 22
        assert page.entries_total == 30

    def test_records_total_when_source_has_none(self):
        page = page_window(make_snapshot([user(f"m{i}") for i in range(4)]), limit=2)
        assert page.entries_total == 4

    def test_pages_chain_back_with_prepend(self):
        full = _window(0, 9, 9)
        shown = page_window(full, limit=3)
        while shown.entries_start > 0:
            shown = prepend_snapshot(shown, page_window(full, before=shown.entries_start, limit=3))
        assert _texts(shown) == _texts(full)
        assert shown.entries_truncated is False
