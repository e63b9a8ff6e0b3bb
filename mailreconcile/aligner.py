#!/usr/bin/env python3

"""
aligner.py

Lock-step comparison of two folder trees.

Folders are paired by exact, case-sensitive name among siblings. A pair
present on both sides is Matched or CountDiffers depending on item counts
and is descended into; a folder on one side only is reported as absent
with its own item count and is not descended into. A renamed folder shows
up as one AbsentInTarget plus one AbsentInSource.
"""

from __future__ import annotations

from typing import Dict, Optional

from mailreconcile.context import RunContext
from mailreconcile.logger import get_logger
from mailreconcile.models import Classification, ComparisonNode, Folder, classify
from mailreconcile.statistics import StatKey
from mailreconcile.store import Store

_CLASSIFICATION_STAT = {
    Classification.MATCHED: StatKey.MATCHED,
    Classification.COUNT_DIFFERS: StatKey.COUNT_DIFFERS,
    Classification.ABSENT_IN_TARGET: StatKey.ABSENT_IN_TARGET,
    Classification.ABSENT_IN_SOURCE: StatKey.ABSENT_IN_SOURCE,
}


def compare_trees(
        source: Store,
        target: Store,
        ctx: RunContext,
        source_folder: Optional[Folder] = None,
        target_folder: Optional[Folder] = None,
) -> ComparisonNode:
    """Align `source_folder` with `target_folder` (store roots by default)."""
    logger = get_logger(__name__)
    source_folder = source_folder or source.root
    target_folder = target_folder or target.root
    logger.info(f"Comparing {source.identity} against {target.identity}")
    return _align_pair(source, target, source_folder, target_folder, ctx, depth=0)


def _count(ctx: RunContext, classification: Classification) -> None:
    ctx.stats.increment(_CLASSIFICATION_STAT[classification])


def _absent_node(store: Store, folder: Folder, classification: Classification, ctx: RunContext) -> ComparisonNode:
    count = store.item_count(folder)
    _count(ctx, classification)
    if classification is Classification.ABSENT_IN_TARGET:
        ctx.stats.increment(StatKey.ABSENT_IN_TARGET_ITEMS, count)
        return ComparisonNode(folder.name, folder.path, classification, source_count=count)
    ctx.stats.increment(StatKey.ABSENT_IN_SOURCE_ITEMS, count)
    return ComparisonNode(folder.name, folder.path, classification, target_count=count)


def _error_node(folder: Folder, err: Exception, ctx: RunContext) -> ComparisonNode:
    logger = get_logger(__name__)
    logger.error(f"Comparison failed for {folder.display_path}: {err}")
    ctx.stats.increment(StatKey.ERRORS)
    return ComparisonNode(folder.name, folder.path, error=str(err))


def _align_pair(
        source: Store,
        target: Store,
        source_folder: Folder,
        target_folder: Folder,
        ctx: RunContext,
        depth: int,
) -> ComparisonNode:
    logger = get_logger(__name__)

    source_count = source.item_count(source_folder)
    target_count = target.item_count(target_folder)
    classification = classify(source_count, target_count)
    _count(ctx, classification)
    logger.debug(f"{source_folder.display_path}: {classification.value} ({source_count}/{target_count})")

    node = ComparisonNode(
        name=source_folder.name,
        path=source_folder.path,
        classification=classification,
        source_count=source_count,
        target_count=target_count,
    )

    source_children = source.list_children(source_folder)
    target_children = target.list_children(target_folder)

    if depth >= ctx.max_depth:
        if source_children or target_children:
            logger.warning(f"Depth limit {ctx.max_depth} reached at {source_folder.display_path}; not descending")
            node.children.append(ComparisonNode(name="...", path=source_folder.path, truncated=True))
        return node

    target_by_name: Dict[str, Folder] = {}
    for child in target_children:
        target_by_name.setdefault(child.name, child)

    consumed = set()
    for child in source_children:
        try:
            match = target_by_name.get(child.name)
            if match is not None:
                consumed.add(child.name)
                node.children.append(_align_pair(source, target, child, match, ctx, depth + 1))
            else:
                node.children.append(_absent_node(source, child, Classification.ABSENT_IN_TARGET, ctx))
        except (KeyboardInterrupt, InterruptedError):
            raise
        except Exception as e:
            node.children.append(_error_node(child, e, ctx))

    for child in target_children:
        if child.name in consumed:
            continue
        consumed.add(child.name)
        try:
            node.children.append(_absent_node(target, child, Classification.ABSENT_IN_SOURCE, ctx))
        except (KeyboardInterrupt, InterruptedError):
            raise
        except Exception as e:
            node.children.append(_error_node(child, e, ctx))

    return node
