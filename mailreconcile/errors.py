#!/usr/bin/env python3

"""
errors.py

Typed failures raised at the store facade boundary.

- AccessError: folder/item unreadable; callers soft-fail to empty/zero
- CopyError: folder/item copy failed; retried, then logged and skipped
- IndexBuildError: target items could not be enumerated for dedup
- FatalConnectError: a selected store cannot be opened; aborts the run
"""

from __future__ import annotations

from typing import Optional


class ReconcileError(Exception):
    """Base class for every error the engine knows how to handle."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path

    def __str__(self) -> str:
        msg = super().__str__()
        if self.path:
            return f"{msg} [{self.path}]"
        return msg


class AccessError(ReconcileError):
    pass


class CopyError(ReconcileError):
    """`retryable=False` marks failures another attempt cannot fix."""

    def __init__(self, message: str, path: Optional[str] = None, retryable: bool = True):
        super().__init__(message, path)
        self.retryable = retryable


class IndexBuildError(ReconcileError):
    pass


class FatalConnectError(ReconcileError):
    pass
