#!/usr/bin/env python3
"""
Unit tests for context.py and models.py modules.
"""

import datetime

from mailreconcile.models import (
    Classification,
    ComparisonNode,
    Folder,
    RestoreAction,
    RestoreRecord,
    classify,
)
from mailreconcile.statistics import StatKey


class TestModels:

    def test_classify(self):
        assert classify(10, 10) is Classification.MATCHED
        assert classify(0, 0) is Classification.MATCHED
        assert classify(12, 9) is Classification.COUNT_DIFFERS

    def test_folder_display_path(self):
        assert Folder("").display_path == "(root)"
        inbox = Folder("Inbox", ("Inbox",))
        assert inbox.child_path("Projects") == ("Inbox", "Projects")
        assert Folder("Projects", inbox.child_path("Projects")).display_path == "Inbox/Projects"

    def test_folder_equality_ignores_ref(self):
        assert Folder("Inbox", ("Inbox",), ref="/a") == Folder("Inbox", ("Inbox",), ref="/b")

    def test_walk_is_preorder(self):
        tree = ComparisonNode("", (), children=[
            ComparisonNode("A", ("A",), children=[ComparisonNode("B", ("A", "B"))]),
            ComparisonNode("C", ("C",)),
        ])
        assert [n.name for n in tree.walk()] == ["", "A", "B", "C"]

    def test_record_format_line(self):
        at = datetime.datetime(2024, 1, 1, 8, 30, 0)
        rec = RestoreRecord(RestoreAction.RESTORED_ITEMS, "Inbox", items=3, duplicates=9, at=at)
        assert rec.format_line() == "08:30:00 restored-items         Inbox | items=3 | duplicates=9"

        err = RestoreRecord(RestoreAction.ERROR, "Sent", message="copy failed", at=at)
        assert err.format_line().endswith("Sent | items=0 | copy failed")


class TestRunContext:

    def test_error_records_count_as_errors(self, run_context):
        ctx = run_context(mode="restore")
        ctx.record(RestoreAction.CHECKED_NO_ACTION, "(root)")
        ctx.record(RestoreAction.ERROR, "Inbox", message="boom")

        assert len(ctx.restore_log) == 2
        assert ctx.error_count == 1
        assert ctx.stats[StatKey.ERRORS] == 1

    def test_finish_sets_elapsed(self, run_context):
        ctx = run_context()
        assert ctx.finished_at is None
        ctx.finish()
        assert ctx.finished_at is not None
        assert ctx.elapsed_seconds >= 0
