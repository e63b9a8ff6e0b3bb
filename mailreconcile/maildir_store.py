#!/usr/bin/env python3

"""
maildir_store.py

Store backend over a Maildir folder tree on disk.

Structure assumed (mbsync "SubFolders Verbatim" layout):
    root/
        {cur,new,tmp}/          messages of the root folder, if any
        INBOX/{cur,new,tmp}/
        INBOX/Projects/{cur,new,tmp}/
        Sent/{cur,new,tmp}/

A folder's items are the files inside its 'cur' and 'new' directories; its
children are every other non-hidden subdirectory. Copies land in a hidden
staging name first and are renamed into place, so an interrupted run never
leaves a half-copied message or folder visible to the next run.
"""

from __future__ import annotations

import os
import shutil
import uuid
from email.message import Message
from email.parser import BytesParser
from email.policy import compat32
from email.utils import parseaddr
from pathlib import Path
from typing import Iterator, List, Optional

from mailreconcile.errors import AccessError, CopyError, FatalConnectError
from mailreconcile.models import Folder, Item
from mailreconcile.store import Store
from mailreconcile.utils import decode_mime_header, parse_mail_date, unique_path_for_filename

MAILDIR_SUBDIRS = ("cur", "new", "tmp")
MESSAGE_SUBDIRS = ("cur", "new")
STAGING_PREFIX = ".{name}.copying-"


def _is_ignored_dir(name: str) -> bool:
    return name.startswith(".") or name in MAILDIR_SUBDIRS or name == "__pycache__"


def _received_at(msg: Message):
    """Receipt time: topmost Received header stamp, else the Date header."""
    received = msg.get_all("Received") or []
    if received:
        stamp = str(received[0]).rsplit(";", 1)
        if len(stamp) == 2:
            dt = parse_mail_date(stamp[1])
            if dt is not None:
                return dt
    return parse_mail_date(msg.get("Date"))


def read_item(path: Path) -> Item:
    """
    Build an Item from the headers of one message file.

    Size always comes from the file; header fields are left empty when the
    message cannot be parsed, so the item still counts and still copies.
    """
    size = path.stat().st_size
    with open(path, "rb") as f:
        try:
            msg = BytesParser(policy=compat32).parse(f, headersonly=True)
        except (KeyboardInterrupt, InterruptedError):
            raise
        except Exception:
            return Item(size=size, ref=path)

    subject = decode_mime_header(msg.get("Subject")) or None
    name, address = parseaddr(decode_mime_header(msg.get("From")))
    return Item(
        subject=subject,
        received_at=_received_at(msg),
        sender_address=address or None,
        sender_name=name or None,
        size=size,
        ref=path,
    )


class MaildirStore(Store):

    def __init__(self, name: str, root_path: Path, **kwargs):
        super().__init__(name, root_path, **kwargs)
        self.root_path = root_path

    @classmethod
    def open(cls, name: str, path: Path, **kwargs) -> "MaildirStore":
        path = Path(path)
        if not path.is_dir():
            raise FatalConnectError("Store root does not exist or is not a directory", str(path))
        if not os.access(path, os.R_OK | os.X_OK):
            raise FatalConnectError("Store root is not readable", str(path))
        return cls(name, path, **kwargs)

    @property
    def root(self) -> Folder:
        return Folder(name="", path=(), ref=self.root_path)

    def _folder_dir(self, folder: Folder) -> Path:
        if folder.ref is None:
            raise AccessError("Folder has no location", folder.display_path)
        return Path(folder.ref)

    def _message_files(self, folder_dir: Path) -> List[Path]:
        files: List[Path] = []
        for sub in MESSAGE_SUBDIRS:
            d = folder_dir / sub
            if not d.is_dir():
                continue
            for entry in sorted(d.iterdir()):
                if entry.is_file() and not entry.name.startswith("."):
                    files.append(entry)
        return files

    def _list_children(self, folder: Folder) -> List[Folder]:
        folder_dir = self._folder_dir(folder)
        children = []
        for entry in sorted(folder_dir.iterdir()):
            if entry.is_dir() and not _is_ignored_dir(entry.name):
                children.append(Folder(name=entry.name, path=folder.child_path(entry.name), ref=entry))
        return children

    def _item_count(self, folder: Folder) -> int:
        return len(self._message_files(self._folder_dir(folder)))

    def _enumerate_items(self, folder: Folder) -> Iterator[Item]:
        for path in self._message_files(self._folder_dir(folder)):
            yield read_item(path)

    @staticmethod
    def _ensure_maildir(folder_dir: Path) -> None:
        for sub in MAILDIR_SUBDIRS:
            (folder_dir / sub).mkdir(parents=True, exist_ok=True)

    @staticmethod
    def _discard_staging_file(staging: Optional[Path]) -> None:
        if staging is not None:
            staging.unlink(missing_ok=True)

    def _discard_stale_staging(self, parent_dir: Path, name: str) -> None:
        """Remove staging dirs an interrupted copy of `name` left behind."""
        prefix = STAGING_PREFIX.format(name=name)
        for stale in parent_dir.iterdir():
            if stale.name.startswith(prefix) and stale.is_dir():
                self.logger.warning(f"[{self.name}] Removing leftover staging directory {stale}")
                shutil.rmtree(stale, ignore_errors=True)

    def _copy_item(self, item: Item, destination_folder: Folder) -> None:
        if item.ref is None:
            raise CopyError("Item has no location", retryable=False)
        src = Path(item.ref)
        dest_dir = self._folder_dir(destination_folder)
        staging: Optional[Path] = None
        try:
            self._ensure_maildir(dest_dir)
            staging = dest_dir / "tmp" / f"{uuid.uuid4().hex}.copying"
            shutil.copy2(src, staging)
            final = unique_path_for_filename(dest_dir / "cur", src.name)
            os.replace(staging, final)
            self.logger.debug(f"[{self.name}] Copied {src} -> {final}")
        except OSError as e:
            self._discard_staging_file(staging)
            raise CopyError(f"Cannot copy message {src.name}: {e}", destination_folder.display_path) from e
        except BaseException:
            self._discard_staging_file(staging)
            raise

    def _copy_folder(self, folder: Folder, destination_parent: Folder) -> Folder:
        src = self._folder_dir(folder)
        parent_dir = self._folder_dir(destination_parent)
        target = parent_dir / folder.name
        if target.exists():
            raise CopyError("Destination folder already exists", str(target), retryable=False)

        self._discard_stale_staging(parent_dir, folder.name)
        staging = parent_dir / f"{STAGING_PREFIX.format(name=folder.name)}{uuid.uuid4().hex[:8]}"
        try:
            shutil.copytree(src, staging, ignore=shutil.ignore_patterns(".*"))
            self._ensure_maildir(staging)
            os.replace(staging, target)
        except OSError as e:
            shutil.rmtree(staging, ignore_errors=True)
            raise CopyError(f"Cannot copy folder {folder.display_path}: {e}", str(target)) from e
        except BaseException:
            shutil.rmtree(staging, ignore_errors=True)
            raise

        self.logger.debug(f"[{self.name}] Copied folder {src} -> {target}")
        return Folder(name=folder.name, path=destination_parent.child_path(folder.name), ref=target)
