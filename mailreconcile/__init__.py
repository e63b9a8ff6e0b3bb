#!/usr/bin/env python3

"""
mailreconcile
Compare a mail store's folder tree with its archive and restore what is
missing in either direction, without creating duplicates on repeated runs.
"""

__version__ = "0.1.0"

__all__ = [
    "aligner",
    "config",
    "context",
    "errors",
    "logger",
    "maildir_store",
    "models",
    "orchestrator",
    "report",
    "restore",
    "signature",
    "statistics",
    "store",
    "utils",
]
