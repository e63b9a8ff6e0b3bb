#!/usr/bin/env python3

"""
utils.py

Utility helpers shared across the package:
- collision-free file paths
- mail header decoding and date parsing
- atomic text write
- directory and signal helpers
"""

from __future__ import annotations

import datetime
import os
import re
import signal
from email.header import decode_header, make_header
from email.utils import parsedate_to_datetime
from pathlib import Path
from typing import Iterable, Optional, Union

from mailreconcile.logger import get_logger


def decode_mime_header(raw_header) -> str:
    """Decode MIME-encoded email headers safely and return plain string."""
    logger = get_logger(__name__)
    if not raw_header:
        return ""
    try:
        return str(make_header(decode_header(str(raw_header))))
    except (KeyboardInterrupt, InterruptedError):
        logger.error("Interrupted while decoding email header")
        raise
    except Exception as e:
        logger.debug(f"Failed to decode MIME-encoded header: {e}")
        return str(raw_header)


def parse_mail_date(date_str: Optional[str]) -> Optional[datetime.datetime]:
    """
    Parse a Date header (RFC 2822 or ISO) into an aware UTC datetime.

    Returns None when the header is missing or unparseable; callers treat
    the receipt time as unknown rather than inventing one.
    """
    if not date_str:
        return None
    cleaned = re.sub(r"\s*\([^)]*\)\s*$", "", date_str.strip())
    try:
        dt = datetime.datetime.fromisoformat(cleaned)
    except ValueError:
        try:
            dt = parsedate_to_datetime(cleaned)
        except (TypeError, ValueError, IndexError):
            return None
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=datetime.timezone.utc)
    return dt.astimezone(datetime.timezone.utc)


def run_timestamp(now: Optional[datetime.datetime] = None) -> str:
    """Filename-safe timestamp used to qualify report paths."""
    return (now or datetime.datetime.now()).strftime("%Y%m%d_%H%M%S")


def atomic_write_text(path: Path, data: Union[str, Iterable[str]]) -> None:
    """
    Atomically write text to `path`.
    `data` may be a single string or an iterable of string lines.
    """
    _logger = get_logger(__name__)
    tmp = path.with_suffix(path.suffix + ".tmp")
    try:
        with open(tmp, "w", encoding="utf-8") as f:
            if isinstance(data, str):
                f.write(data)
            else:
                for line in data:
                    f.write(line)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)
        _logger.debug(f"Wrote text atomically to {path}")
    except Exception:
        # best-effort cleanup on failure
        try:
            if tmp.exists():
                tmp.unlink()
        except OSError:
            pass
        raise


def unique_path_for_filename(outdir: Path, filename: str) -> Path:
    """
    Return a Path in `outdir` for `filename` that does not collide with existing files.
    Appends -N before the extension when collisions occur (e.g. name-1.txt).
    Does not create `outdir`.
    """
    candidate = outdir / filename
    base, ext = os.path.splitext(filename)
    counter = 1
    while candidate.exists():
        candidate = outdir / f"{base}-{counter}{ext}"
        counter += 1
    return candidate


def ensure_dirs(*paths: Path) -> None:
    for p in paths:
        p.mkdir(parents=True, exist_ok=True)


def install_signal_handlers(on_interrupt):
    signal.signal(signal.SIGINT, on_interrupt)
    signal.signal(signal.SIGTERM, on_interrupt)
