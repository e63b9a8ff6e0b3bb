#!/usr/bin/env python3

"""
restore.py

Restore engine: copies what the source has and the target lacks.

Per folder pair:
- folder missing on the target: copy the whole folder (children and items
  included) in one operation and do not descend
- source count <= target count: nothing to do at this level, descend
- source count > target count: index the target folder's items, copy every
  source item the index does not know, then descend

Every copy is independent, so an interrupted run leaves a partially
restored but consistent target, and a repeated run copies nothing that the
previous run already brought over.
"""

from __future__ import annotations

from typing import Dict, Optional

from mailreconcile.context import RunContext
from mailreconcile.errors import AccessError, CopyError, IndexBuildError
from mailreconcile.logger import get_logger
from mailreconcile.models import Classification, Folder, RestoreAction, classify
from mailreconcile.signature import SignatureIndex, SignatureStrategy
from mailreconcile.statistics import StatKey
from mailreconcile.store import Store


class RestoreEngine:

    def __init__(
            self,
            source: Store,
            target: Store,
            ctx: RunContext,
            strategy: Optional[SignatureStrategy] = None,
    ):
        self.source = source
        self.target = target
        self.ctx = ctx
        self.strategy = strategy
        self.logger = get_logger(__name__)

    def run(self, source_folder: Optional[Folder] = None, target_folder: Optional[Folder] = None) -> RunContext:
        source_folder = source_folder or self.source.root
        target_folder = target_folder or self.target.root
        mode = "Planning restore" if self.ctx.dry_run else "Restoring"
        self.logger.info(f"{mode} from {self.source.identity} into {self.target.identity}")
        self._restore_pair(source_folder, target_folder, depth=0)
        return self.ctx

    # ------------------------------------------------------------------
    # Folder level
    # ------------------------------------------------------------------

    def _restore_pair(self, source_folder: Folder, target_folder: Folder, depth: int) -> None:
        ctx = self.ctx
        path = source_folder.display_path
        source_count = self.source.item_count(source_folder)
        target_count = self.target.item_count(target_folder)

        if classify(source_count, target_count) is Classification.MATCHED:
            ctx.stats.increment(StatKey.MATCHED)
        else:
            ctx.stats.increment(StatKey.COUNT_DIFFERS)

        if source_count > target_count:
            self._restore_items(source_folder, target_folder)
        else:
            self.logger.debug(f"{path}: source {source_count} <= target {target_count}, nothing to restore here")
            ctx.record(RestoreAction.CHECKED_NO_ACTION, path, items=0,
                       message=f"source={source_count} target={target_count}")

        source_children = self.source.list_children(source_folder)
        if depth >= ctx.max_depth:
            if source_children:
                self.logger.warning(f"Depth limit {ctx.max_depth} reached at {path}; not descending")
                ctx.record(RestoreAction.DEPTH_LIMIT, path, message=f"{len(source_children)} subfolders not visited")
            return

        target_by_name: Dict[str, Folder] = {}
        for child in self.target.list_children(target_folder):
            target_by_name.setdefault(child.name, child)

        for child in source_children:
            try:
                match = target_by_name.get(child.name)
                if match is None:
                    self._restore_folder(child, target_folder)
                else:
                    self._restore_pair(child, match, depth + 1)
            except (KeyboardInterrupt, InterruptedError):
                raise
            except Exception as e:
                self.logger.error(f"Restore failed for {child.display_path}: {e}")
                ctx.record(RestoreAction.ERROR, child.display_path, message=str(e))

    def _subtree_item_count(self, folder: Folder, depth: int = 0) -> int:
        total = self.source.item_count(folder)
        if depth >= self.ctx.max_depth:
            return total
        for child in self.source.list_children(folder):
            total += self._subtree_item_count(child, depth + 1)
        return total

    def _restore_folder(self, folder: Folder, target_parent: Folder) -> None:
        ctx = self.ctx
        path = folder.display_path
        ctx.stats.increment(StatKey.ABSENT_IN_TARGET)
        ctx.stats.increment(StatKey.ABSENT_IN_TARGET_ITEMS, self.source.item_count(folder))
        items = self._subtree_item_count(folder)

        if ctx.dry_run:
            self.logger.info(f"[dry-run] Would copy folder {path} ({items} items)")
            ctx.record(RestoreAction.WOULD_RESTORE_FOLDER, path, items=items)
            return

        try:
            self.target.copy_folder(folder, target_parent)
        except CopyError as e:
            self.logger.error(f"Failed to copy folder {path}: {e}")
            ctx.record(RestoreAction.ERROR, path, items=items, message=f"folder copy failed: {e}")
            return

        self.logger.info(f"Restored folder {path} ({items} items)")
        ctx.stats.increment(StatKey.FOLDERS_RESTORED)
        ctx.record(RestoreAction.RESTORED_FOLDER, path, items=items)

    # ------------------------------------------------------------------
    # Item level
    # ------------------------------------------------------------------

    def _restore_items(self, source_folder: Folder, target_folder: Folder) -> None:
        ctx = self.ctx
        path = source_folder.display_path

        try:
            index = SignatureIndex.build(self.target, target_folder, self.strategy)
        except IndexBuildError as e:
            self.logger.error(f"Skipping item restore for {path}: {e}")
            ctx.record(RestoreAction.ERROR, path, message=f"index build failed: {e}")
            return

        restored = 0
        duplicates = 0
        failed = 0
        completed = False
        try:
            for item in self.source.enumerate_items(source_folder):
                if index.contains(item):
                    duplicates += 1
                    continue
                if ctx.dry_run:
                    restored += 1
                    continue
                try:
                    self.target.copy_item(item, target_folder)
                except CopyError as e:
                    failed += 1
                    self.logger.error(f"Failed to copy item '{item.subject or ''}' into {path}: {e}")
                    ctx.record(RestoreAction.ERROR, path, items=1, message=f"item copy failed: {e}")
                    continue
                restored += 1
                ctx.stats.increment(StatKey.ITEMS_RESTORED)
            completed = True
        except AccessError as e:
            failed += 1
            self.logger.error(f"Cannot read source items in {path}: {e}")
            ctx.record(RestoreAction.ERROR, path, message=f"source enumeration failed: {e}")
        finally:
            # runs on interrupt too; copies already made stay on record
            ctx.stats.increment(StatKey.DUPLICATES_SKIPPED, duplicates)
            self._record_items(path, restored, duplicates, failed, completed)

    def _record_items(self, path: str, restored: int, duplicates: int, failed: int, completed: bool) -> None:
        ctx = self.ctx
        message = "" if completed else "stopped before the folder was finished"
        if restored == 0:
            if completed and failed == 0:
                ctx.record(RestoreAction.CHECKED_NO_ACTION, path, duplicates=duplicates)
        elif ctx.dry_run:
            self.logger.info(f"[dry-run] Would copy {restored} items into {path} ({duplicates} already present)")
            ctx.record(RestoreAction.WOULD_RESTORE_ITEMS, path, items=restored, duplicates=duplicates,
                       message=message)
        else:
            self.logger.info(f"Restored {restored} items into {path} ({duplicates} already present)")
            ctx.record(RestoreAction.RESTORED_ITEMS, path, items=restored, duplicates=duplicates, message=message)


def restore_tree(
        source: Store,
        target: Store,
        ctx: RunContext,
        strategy: Optional[SignatureStrategy] = None,
) -> RunContext:
    """Restore everything `target` lacks from `source`, starting at the roots."""
    return RestoreEngine(source, target, ctx, strategy).run()
