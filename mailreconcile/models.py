#!/usr/bin/env python3

"""
models.py

Plain data types shared by the aligner, the restore engine and the report
generator. Backends attach their own locator to Folder.ref / Item.ref; the
engine never looks inside it.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Tuple


@dataclass(frozen=True)
class Folder:
    name: str
    path: Tuple[str, ...] = ()
    ref: Any = field(default=None, compare=False, repr=False)

    @property
    def display_path(self) -> str:
        return "/".join(self.path) if self.path else "(root)"

    def child_path(self, name: str) -> Tuple[str, ...]:
        return self.path + (name,)


@dataclass
class Item:
    """A message-like record. No field is assumed to be stable across stores."""
    subject: Optional[str] = None
    received_at: Optional[datetime.datetime] = None
    sender_address: Optional[str] = None
    sender_name: Optional[str] = None
    size: int = 0
    ref: Any = field(default=None, compare=False, repr=False)


class Classification(Enum):
    MATCHED = "Matched"
    COUNT_DIFFERS = "CountDiffers"
    ABSENT_IN_TARGET = "AbsentInTarget"
    ABSENT_IN_SOURCE = "AbsentInSource"


def classify(source_count: int, target_count: int) -> Classification:
    """Classification of a folder that exists on both sides."""
    if source_count == target_count:
        return Classification.MATCHED
    return Classification.COUNT_DIFFERS


@dataclass
class ComparisonNode:
    """
    Result of aligning one folder pair.

    Exactly one of `classification`, `error` or `truncated` describes the
    node: error nodes replace a classification when the pair could not be
    read, truncated nodes mark where the depth bound stopped the walk.
    """
    name: str
    path: Tuple[str, ...]
    classification: Optional[Classification] = None
    source_count: int = 0
    target_count: int = 0
    children: List["ComparisonNode"] = field(default_factory=list)
    error: Optional[str] = None
    truncated: bool = False

    @property
    def display_path(self) -> str:
        return "/".join(self.path) if self.path else "(root)"

    def walk(self):
        yield self
        for child in self.children:
            yield from child.walk()


class RestoreAction(Enum):
    RESTORED_FOLDER = "restored-folder"
    RESTORED_ITEMS = "restored-items"
    WOULD_RESTORE_FOLDER = "would-restore-folder"
    WOULD_RESTORE_ITEMS = "would-restore-items"
    CHECKED_NO_ACTION = "checked-no-action"
    DEPTH_LIMIT = "depth-limit"
    ERROR = "error"


@dataclass
class RestoreRecord:
    action: RestoreAction
    path: str
    items: int = 0
    duplicates: int = 0
    message: str = ""
    at: datetime.datetime = field(default_factory=datetime.datetime.now)

    def format_line(self) -> str:
        line = f"{self.at.strftime('%H:%M:%S')} {self.action.value:<22} {self.path} | items={self.items}"
        if self.duplicates:
            line += f" | duplicates={self.duplicates}"
        if self.message:
            line += f" | {self.message}"
        return line
