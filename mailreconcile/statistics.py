#!/usr/bin/env python3

"""
statistics.py

Run counters and periodic status reporting for mailreconcile.

The engine is single-threaded; the StatusThread reads the counters from
the background while a traversal or copy is in progress.
"""

from __future__ import annotations

import threading
from enum import Enum
from typing import Dict, Optional

from mailreconcile.logger import get_logger


class StatKey(Enum):
    MATCHED = "Matched"
    COUNT_DIFFERS = "Count differs"
    ABSENT_IN_TARGET = "Absent in target"
    ABSENT_IN_TARGET_ITEMS = "Absent in target items"
    ABSENT_IN_SOURCE = "Absent in source"
    ABSENT_IN_SOURCE_ITEMS = "Absent in source items"
    FOLDERS_RESTORED = "Folders restored"
    ITEMS_RESTORED = "Items restored"
    DUPLICATES_SKIPPED = "Duplicates skipped"
    ERRORS = "Errors"


# Keys that count visited folder pairs (items totals excluded)
CLASSIFICATION_KEYS = (
    StatKey.MATCHED,
    StatKey.COUNT_DIFFERS,
    StatKey.ABSENT_IN_TARGET,
    StatKey.ABSENT_IN_SOURCE,
)

_STRING_TO_STATKEY = {key.name.lower(): key for key in StatKey}
_STRING_TO_STATKEY.update({key.value.lower().replace(" ", "_"): key for key in StatKey})


def _normalize_key(key: StatKey | str) -> StatKey:
    """
    Normalize a key to StatKey enum.

    Accepts the enum itself, its name ("items_restored") or its label
    ("Items restored").

    Raises:
        KeyError: If string key is not recognized
    """
    if isinstance(key, StatKey):
        return key
    if isinstance(key, str):
        normalized = key.strip().lower().replace("-", "_").replace(" ", "_")
        if normalized in _STRING_TO_STATKEY:
            return _STRING_TO_STATKEY[normalized]
        raise KeyError(f"Unknown statistic key: {key}")
    raise TypeError(f"Key must be StatKey or str, got {type(key)}")


class RunStats:
    """
    Counters for one compare or restore run.

    Created fresh for every run, mutated only by the aligner and the
    restore engine, read once by the report generator.
    """

    def __init__(self):
        self._counters: Dict[StatKey, int] = {}
        self._lock = threading.Lock()

    def increment(self, key: StatKey | str, value: int = 1) -> None:
        key = _normalize_key(key)
        with self._lock:
            self._counters[key] = self._counters.get(key, 0) + value

    def get(self, key: StatKey | str, default: int = 0) -> int:
        key = _normalize_key(key)
        with self._lock:
            return self._counters.get(key, default)

    def get_all(self) -> Dict[StatKey, int]:
        """Snapshot copy of all counters."""
        with self._lock:
            return dict(self._counters)

    def folders_visited(self) -> int:
        """Sum of the four classification counters."""
        snapshot = self.get_all()
        return sum(snapshot.get(key, 0) for key in CLASSIFICATION_KEYS)

    def __getitem__(self, key: StatKey | str) -> int:
        return self.get(key, 0)

    def format_status(self) -> str:
        snapshot = self.get_all()
        txt = " | "
        for key in StatKey:
            txt += f"{key.value}: {snapshot.get(key, 0)} | "
        return txt


class StatusThread:
    """
    Background thread for periodic status reporting.

    Logs a counter snapshot every `interval` seconds until stopped.
    """

    def __init__(self, interval: int, counters: RunStats):
        self.logger = get_logger(__name__)
        self.interval = interval
        self.counters = counters
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self):
        """Start the status reporting thread."""
        if self._thread is not None or self.interval <= 0:
            return

        def reporter():
            while not self._stop_event.wait(self.interval):
                self.logger.status(self.get_status_summary())  # type: ignore[attr-defined]

        t = threading.Thread(target=reporter, name="StatusReporter", daemon=True)
        t.start()
        self._thread = t

    def stop(self):
        """Stop the status reporting thread."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=2.0)

    def get_status_summary(self) -> str:
        return self.counters.format_status()


def log_status(stats: RunStats, stage: str = ""):
    """Log current counters at STATUS level."""
    logger = get_logger(__name__)

    prefix = f"[{stage}] " if stage else ""
    logger.status(prefix + stats.format_status())  # type: ignore[attr-defined]


def create_stats() -> RunStats:
    return RunStats()
