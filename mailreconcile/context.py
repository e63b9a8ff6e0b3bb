#!/usr/bin/env python3

"""
context.py

Per-run state threaded explicitly through the aligner and restore engine.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from typing import List, Optional

from mailreconcile.models import RestoreAction, RestoreRecord
from mailreconcile.statistics import RunStats, StatKey, create_stats

DEFAULT_MAX_DEPTH = 64


@dataclass
class RunContext:
    mode: str
    source_identity: str
    target_identity: str
    max_depth: int = DEFAULT_MAX_DEPTH
    dry_run: bool = False
    stats: RunStats = field(default_factory=create_stats)
    restore_log: List[RestoreRecord] = field(default_factory=list)
    started_at: datetime.datetime = field(default_factory=datetime.datetime.now)
    finished_at: Optional[datetime.datetime] = None

    def record(
            self,
            action: RestoreAction,
            path: str,
            items: int = 0,
            duplicates: int = 0,
            message: str = "",
    ) -> RestoreRecord:
        rec = RestoreRecord(action=action, path=path, items=items, duplicates=duplicates, message=message)
        self.restore_log.append(rec)
        if action is RestoreAction.ERROR:
            self.stats.increment(StatKey.ERRORS)
        return rec

    def finish(self) -> None:
        self.finished_at = datetime.datetime.now()

    @property
    def error_count(self) -> int:
        return self.stats.get(StatKey.ERRORS)

    @property
    def elapsed_seconds(self) -> float:
        end = self.finished_at or datetime.datetime.now()
        return (end - self.started_at).total_seconds()
