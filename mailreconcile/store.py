#!/usr/bin/env python3

"""
store.py

Store access facade.

Every backend subclasses Store and implements the underscore hooks. The
public methods wrap those hooks so that:
- read failures soft-fail (no children, zero items) and are logged
- copy failures are retried a bounded number of times with a fixed delay
- nothing but the typed errors from mailreconcile.errors escapes

Copies are performed by the receiving store; the folder or item passed in
belongs to the other store of the same backend kind.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterator, List, Optional, Sequence, TYPE_CHECKING

from mailreconcile.errors import AccessError, CopyError, FatalConnectError, ReconcileError
from mailreconcile.logger import get_logger
from mailreconcile.models import Folder, Item

if TYPE_CHECKING:
    from mailreconcile.config import Settings


class Store(ABC):
    def __init__(
            self,
            name: str,
            path: Optional[Path] = None,
            copy_retries: int = 3,
            copy_retry_delay: float = 2.0,
            sleep: Callable[[float], None] = time.sleep,
    ):
        if copy_retries < 1:
            raise ValueError(f"copy_retries must be >= 1, got {copy_retries}")
        if copy_retry_delay < 0:
            raise ValueError(f"copy_retry_delay must be >= 0, got {copy_retry_delay}")
        self.name = name
        self.path = path
        self.copy_retries = copy_retries
        self.copy_retry_delay = copy_retry_delay
        self._sleep = sleep
        self.closed = False
        self.logger = get_logger(__name__)

    @property
    def identity(self) -> str:
        if self.path is not None:
            return f"{self.name} ({self.path})"
        return self.name

    # ------------------------------------------------------------------
    # Backend hooks
    # ------------------------------------------------------------------

    @property
    @abstractmethod
    def root(self) -> Folder:
        ...

    @abstractmethod
    def _list_children(self, folder: Folder) -> Sequence[Folder]:
        ...

    @abstractmethod
    def _item_count(self, folder: Folder) -> int:
        ...

    @abstractmethod
    def _enumerate_items(self, folder: Folder) -> Iterator[Item]:
        ...

    @abstractmethod
    def _copy_folder(self, folder: Folder, destination_parent: Folder) -> Folder:
        ...

    @abstractmethod
    def _copy_item(self, item: Item, destination_folder: Folder) -> None:
        ...

    def _close(self) -> None:
        pass

    # ------------------------------------------------------------------
    # Reads (soft-fail, never retried)
    # ------------------------------------------------------------------

    def list_children(self, folder: Folder) -> List[Folder]:
        try:
            return list(self._list_children(folder))
        except (KeyboardInterrupt, InterruptedError):
            raise
        except Exception as e:
            self.logger.warning(f"[{self.name}] Cannot list children of {folder.display_path}: {e}")
            return []

    def item_count(self, folder: Folder) -> int:
        try:
            return int(self._item_count(folder))
        except (KeyboardInterrupt, InterruptedError):
            raise
        except Exception as e:
            self.logger.warning(f"[{self.name}] Cannot count items in {folder.display_path}: {e}")
            return 0

    def enumerate_items(self, folder: Folder) -> Iterator[Item]:
        """
        Lazily yield the items of `folder`. Each call starts a fresh pass.

        Raises AccessError if the folder cannot be read; callers decide
        whether that is soft (counting) or aborts a unit of work (indexing).
        """
        try:
            yield from self._enumerate_items(folder)
        except ReconcileError:
            raise
        except Exception as e:
            raise AccessError(f"Cannot enumerate items: {e}", folder.display_path) from e

    def find_child(self, parent: Folder, name: str) -> Optional[Folder]:
        """Exact, case-sensitive lookup of a direct child by name."""
        for child in self.list_children(parent):
            if child.name == name:
                return child
        return None

    # ------------------------------------------------------------------
    # Copies (retried with a fixed delay)
    # ------------------------------------------------------------------

    def copy_folder(self, folder: Folder, destination_parent: Folder) -> Folder:
        """Copy `folder` with all descendants and items under `destination_parent`."""
        label = f"copy folder {folder.display_path} -> {destination_parent.display_path}"
        return self._with_retries(label, self._copy_folder, folder, destination_parent)

    def copy_item(self, item: Item, destination_folder: Folder) -> None:
        label = f"copy item '{item.subject or ''}' -> {destination_folder.display_path}"
        self._with_retries(label, self._copy_item, item, destination_folder)

    def _with_retries(self, label: str, fn, *args):
        last_error: Optional[CopyError] = None
        for attempt in range(1, self.copy_retries + 1):
            try:
                return fn(*args)
            except (KeyboardInterrupt, InterruptedError):
                raise
            except CopyError as e:
                last_error = e
                if not e.retryable:
                    break
            except Exception as e:
                last_error = CopyError(f"{label} failed: {e}")
                last_error.__cause__ = e

            if attempt < self.copy_retries:
                self.logger.warning(
                    f"[{self.name}] {label} failed, retrying in {self.copy_retry_delay}s "
                    f"(attempt {attempt}/{self.copy_retries})"
                )
                self._sleep(self.copy_retry_delay)

        assert last_error is not None
        raise last_error

    # ------------------------------------------------------------------
    # Lifetime
    # ------------------------------------------------------------------

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        try:
            self._close()
        except Exception as e:
            self.logger.warning(f"[{self.name}] Error while closing store: {e}")

    def __enter__(self) -> "Store":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


@dataclass(frozen=True)
class StoreHandle:
    index: int
    name: str
    path: Optional[Path] = None


class StoreProvider:
    """
    Enumerates configured stores and opens them by index.

    `factory` turns a handle into an open Store and raises
    FatalConnectError when it cannot.
    """

    def __init__(self, handles: Sequence[StoreHandle], factory: Callable[[StoreHandle], Store]):
        self._handles = list(handles)
        self._factory = factory

    @classmethod
    def from_settings(cls, settings: "Settings") -> "StoreProvider":
        from mailreconcile.maildir_store import MaildirStore

        handles = [StoreHandle(index=i, name=s.name, path=s.path) for i, s in enumerate(settings.stores)]

        def factory(handle: StoreHandle) -> Store:
            return MaildirStore.open(
                handle.name,
                handle.path,
                copy_retries=settings.copy_retries,
                copy_retry_delay=settings.copy_retry_delay,
            )

        return cls(handles, factory)

    def list_stores(self) -> List[StoreHandle]:
        return list(self._handles)

    def validate(self, index: int) -> StoreHandle:
        """Return the handle for `index`, raising ValueError for an unknown index."""
        if not isinstance(index, int) or index < 0 or index >= len(self._handles):
            raise ValueError(f"Invalid store index {index}: choose 0..{len(self._handles) - 1}")
        return self._handles[index]

    def open(self, index: int) -> Store:
        try:
            handle = self.validate(index)
        except ValueError as e:
            raise FatalConnectError(str(e)) from e
        try:
            return self._factory(handle)
        except FatalConnectError:
            raise
        except (KeyboardInterrupt, InterruptedError):
            raise
        except Exception as e:
            raise FatalConnectError(f"Cannot open store '{handle.name}': {e}",
                                    str(handle.path) if handle.path else None) from e
