#!/usr/bin/env python3
"""
Shared pytest fixtures and configuration for mailreconcile tests.
"""

import sys
from pathlib import Path

import pytest

# Ensure parent directory is in path for package imports
parent_dir = Path(__file__).parent.parent
sys.path.insert(0, str(parent_dir))

from mailreconcile.config import Settings, StoreConfig
from mailreconcile.context import RunContext
from mailreconcile.maildir_store import MaildirStore


def build_message(
        subject="Test Email",
        sender="test@example.com",
        date="Mon, 1 Jan 2024 12:00:00 +0000",
        body="This is a test email body.",
) -> bytes:
    """Return a simple RFC-822 message; None drops the header."""
    headers = []
    if sender is not None:
        headers.append(f"From: {sender}")
    headers.append("To: recipient@example.com")
    if subject is not None:
        headers.append(f"Subject: {subject}")
    if date is not None:
        headers.append(f"Date: {date}")
    headers.append('Content-Type: text/plain; charset="utf-8"')
    return ("\n".join(headers) + "\n\n" + body + "\n").encode("utf-8")


def write_messages(folder_dir: Path, messages, prefix="msg"):
    """Create a Maildir folder at folder_dir holding `messages` in cur/."""
    for sub in ("cur", "new", "tmp"):
        (folder_dir / sub).mkdir(parents=True, exist_ok=True)
    existing = len(list((folder_dir / "cur").iterdir()))
    for i, raw in enumerate(messages, start=existing):
        (folder_dir / "cur" / f"{prefix}{i:04d}.eml:2,S").write_bytes(raw)
    return folder_dir


def numbered_messages(count, start=0, subject="Message"):
    return [
        build_message(subject=f"{subject} {n}", date=f"Mon, 1 Jan 2024 12:{n // 60:02d}:{n % 60:02d} +0000")
        for n in range(start, start + count)
    ]


@pytest.fixture
def make_message():
    return build_message


@pytest.fixture
def make_folder():
    """make_folder(root, "INBOX/Projects", messages) -> Path"""

    def _make(root: Path, rel: str, messages=()):
        folder_dir = root.joinpath(*rel.split("/")) if rel else root
        return write_messages(folder_dir, list(messages))

    return _make


@pytest.fixture
def messages():
    return numbered_messages


@pytest.fixture
def live_root(tmp_path):
    root = tmp_path / "live"
    root.mkdir()
    return root


@pytest.fixture
def archive_root(tmp_path):
    root = tmp_path / "archive"
    root.mkdir()
    return root


@pytest.fixture
def no_sleep():
    calls = []
    return calls.append


@pytest.fixture
def live_store(live_root, no_sleep):
    return MaildirStore("Mailbox", live_root, copy_retries=2, copy_retry_delay=0, sleep=no_sleep)


@pytest.fixture
def archive_store(archive_root, no_sleep):
    return MaildirStore("Archive", archive_root, copy_retries=2, copy_retry_delay=0, sleep=no_sleep)


@pytest.fixture
def run_context():
    def _make(mode="compare", dry_run=False, max_depth=64):
        return RunContext(
            mode=mode,
            source_identity="source",
            target_identity="target",
            max_depth=max_depth,
            dry_run=dry_run,
        )

    return _make


@pytest.fixture
def test_settings(tmp_path, live_root, archive_root):
    """Create a Settings object with test paths and the two test stores."""
    return Settings(
        output_dir=tmp_path / "reports",
        log_path=tmp_path / "logs" / "test.log",
        max_depth=64,
        copy_retries=2,
        copy_retry_delay=0.0,
        log_level="DEBUG",
        rotate_by_time=False,
        max_log_files=2,
        max_log_size=1024 * 1024,
        status_interval=0,
        stores=[
            StoreConfig(name="Mailbox", path=live_root),
            StoreConfig(name="Archive", path=archive_root),
        ],
    )
