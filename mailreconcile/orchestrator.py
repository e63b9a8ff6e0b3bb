#!/usr/bin/env python3
"""
orchestrator.py

Single orchestration engine for mailreconcile.
Opens both stores for the duration of one run, drives the aligner or the
restore engine, and writes the run's report artifact.
"""

from __future__ import annotations

import time
from contextlib import ExitStack, contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional, Tuple

from mailreconcile.aligner import compare_trees
from mailreconcile.config import Settings
from mailreconcile.context import RunContext
from mailreconcile.logger import get_logger
from mailreconcile.models import ComparisonNode, RestoreAction
from mailreconcile.report import render_comparison_report, render_restore_log, write_report
from mailreconcile.restore import restore_tree
from mailreconcile.signature import SignatureStrategy
from mailreconcile.statistics import StatKey, StatusThread, log_status
from mailreconcile.store import Store, StoreProvider


@contextmanager
def open_stores(provider: StoreProvider, source_index: int, target_index: int) -> Iterator[Tuple[Store, Store]]:
    """
    Open source and target for one run and close both on every exit path.

    FatalConnectError from either open propagates; a store opened before the
    failure is still closed.
    """
    with ExitStack() as stack:
        source = stack.enter_context(provider.open(source_index))
        target = stack.enter_context(provider.open(target_index))
        yield source, target


def _new_context(settings: Settings, mode: str, source: Store, target: Store, dry_run: bool = False) -> RunContext:
    return RunContext(
        mode=mode,
        source_identity=source.identity,
        target_identity=target.identity,
        max_depth=settings.max_depth,
        dry_run=dry_run,
    )


def run_compare(
        settings: Settings,
        provider: StoreProvider,
        source_index: int,
        target_index: int,
) -> Path:
    """Compare two stores and write the comparison report. Returns its path."""
    logger = get_logger(__name__)
    logger.info("=== Mailreconcile compare started ===")
    total_start = time.time()

    with open_stores(provider, source_index, target_index) as (source, target):
        ctx = _new_context(settings, "compare", source, target)
        status_thread = StatusThread(settings.status_interval, ctx.stats)
        status_thread.start()
        logger.status(f"Compare started at {datetime.now().isoformat()}")  # type: ignore[attr-defined]

        tree: Optional[ComparisonNode] = None
        completed = False
        try:
            tree = compare_trees(source, target, ctx)
            completed = True
        except Exception as e:
            logger.exception(f"Compare aborted: {e}")
            raise
        except BaseException:
            logger.warning("Compare interrupted")
            raise
        finally:
            status_thread.stop()
            ctx.finish()
            if tree is None:
                ctx.stats.increment(StatKey.ERRORS)
                tree = ComparisonNode(name="", path=(), error="comparison aborted before completion")
            path = write_report(render_comparison_report(tree, ctx), settings.output_dir, "compare")
            log_status(ctx.stats, "compare")
            elapsed = time.time() - total_start
            outcome = "finished" if completed else "stopped"
            logger.info(f"=== Mailreconcile compare {outcome} after {elapsed:.1f}s ===")

    return path


def run_restore(
        settings: Settings,
        provider: StoreProvider,
        source_index: int,
        target_index: int,
        dry_run: bool = False,
        mode: str = "restore",
        strategy: Optional[SignatureStrategy] = None,
) -> Path:
    """
    Copy what the target store lacks from the source store and write the
    restore log. `mode` only labels the run ("restore" or "backup").
    """
    logger = get_logger(__name__)
    logger.info(f"=== Mailreconcile {mode} started ===")
    total_start = time.time()

    with open_stores(provider, source_index, target_index) as (source, target):
        ctx = _new_context(settings, mode, source, target, dry_run=dry_run)
        status_thread = StatusThread(settings.status_interval, ctx.stats)
        status_thread.start()
        logger.status(f"{mode.capitalize()} started at {datetime.now().isoformat()}")  # type: ignore[attr-defined]

        completed = False
        try:
            restore_tree(source, target, ctx, strategy)
            completed = True
        except Exception as e:
            logger.exception(f"{mode.capitalize()} aborted: {e}")
            ctx.record(RestoreAction.ERROR, "(run)", message=f"{mode} aborted: {e}")
            raise
        except BaseException:
            logger.warning(f"{mode.capitalize()} interrupted")
            ctx.record(RestoreAction.ERROR, "(run)", message=f"{mode} interrupted before completion")
            raise
        finally:
            status_thread.stop()
            ctx.finish()
            path = write_report(render_restore_log(ctx), settings.output_dir, mode)
            log_status(ctx.stats, mode)
            elapsed = time.time() - total_start
            outcome = "finished" if completed else "stopped"
            logger.info(f"=== Mailreconcile {mode} {outcome} after {elapsed:.1f}s ===")

    return path
