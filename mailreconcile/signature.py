#!/usr/bin/env python3

"""
signature.py

Duplicate detection without stable item identifiers.

Each item is reduced to one or two normalized string keys:
- primary:   subject | receipt time (second precision) | sender
- secondary: subject | size in bytes

The index is a plain set of keys built from the target folder. A reference
item counts as already present when any of its keys is in the set. There
is no multiplicity: two reference items sharing a key both resolve to
"present" even if the target holds only one copy. Genuine duplicates with
identical subject, time and sender are therefore under-restored.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterable, Optional, Set, TYPE_CHECKING

from mailreconcile.errors import AccessError, IndexBuildError
from mailreconcile.logger import get_logger
from mailreconcile.models import Folder, Item

if TYPE_CHECKING:
    from mailreconcile.store import Store

NO_SUBJECT = "[NO_SUBJECT]"
KEY_SEPARATOR = "|"
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


class SignatureStrategy(ABC):
    """Maps an item to the set of keys that identify it for matching."""

    @abstractmethod
    def signature(self, item: Item) -> Set[str]:
        ...


def normalize_subject(subject: Optional[str]) -> str:
    s = (subject or "").strip().lower()
    return s or NO_SUBJECT


def normalize_sender(item: Item) -> str:
    sender = item.sender_address or item.sender_name or ""
    return sender.strip().lower()


def format_timestamp(item: Item) -> str:
    if item.received_at is None:
        return ""
    return item.received_at.replace(microsecond=0).strftime(TIMESTAMP_FORMAT)


class FuzzySignature(SignatureStrategy):

    def primary_key(self, item: Item) -> str:
        return KEY_SEPARATOR.join((normalize_subject(item.subject), format_timestamp(item), normalize_sender(item)))

    def secondary_key(self, item: Item) -> str:
        return KEY_SEPARATOR.join((normalize_subject(item.subject), str(item.size)))

    def signature(self, item: Item) -> Set[str]:
        primary = self.primary_key(item)
        keys = {primary}
        secondary = self.secondary_key(item)
        if secondary != primary:
            keys.add(secondary)
        return {k for k in keys if k}


class SignatureIndex:
    """Membership oracle over the signatures of one folder's items."""

    def __init__(self, strategy: Optional[SignatureStrategy] = None):
        self.strategy = strategy or FuzzySignature()
        self._keys: Set[str] = set()
        self.items_indexed = 0

    @classmethod
    def from_items(cls, items: Iterable[Item], strategy: Optional[SignatureStrategy] = None) -> "SignatureIndex":
        index = cls(strategy)
        for item in items:
            index.add(item)
        return index

    @classmethod
    def build(cls, store: "Store", folder: Folder, strategy: Optional[SignatureStrategy] = None) -> "SignatureIndex":
        """
        Index every item of `folder` in `store`.

        Raises IndexBuildError when the folder cannot be enumerated; no
        partial index is returned.
        """
        logger = get_logger(__name__)
        try:
            index = cls.from_items(store.enumerate_items(folder), strategy)
        except AccessError as e:
            raise IndexBuildError(f"Cannot index target items: {e}", folder.display_path) from e
        logger.debug(f"Indexed {index.items_indexed} items ({len(index)} keys) in {folder.display_path}")
        return index

    def add(self, item: Item) -> None:
        self._keys.update(self.strategy.signature(item))
        self.items_indexed += 1

    def contains(self, item: Item) -> bool:
        return any(key in self._keys for key in self.strategy.signature(item))

    def __contains__(self, item: Item) -> bool:
        return self.contains(item)

    def __len__(self) -> int:
        return len(self._keys)
