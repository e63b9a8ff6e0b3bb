#!/usr/bin/env python3
"""
__main__.py

Top-level CLI for mailreconcile.
Selects two configured stores by index and a direction, validates the
selection, and delegates the run to the orchestrator.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from mailreconcile.config import load_settings
from mailreconcile.errors import FatalConnectError
from mailreconcile.logger import setup_logger, get_logger
from mailreconcile.orchestrator import run_compare, run_restore
from mailreconcile.store import StoreProvider
from mailreconcile.utils import ensure_dirs, install_signal_handlers

EXIT_OK = 0
EXIT_USAGE = 1
EXIT_FATAL = 2


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        description="Mailreconcile – compare a mail store with its archive and restore what is missing"
    )
    p.add_argument(
        "action",
        choices=[
            "list",
            "compare",
            "restore",
            "backup",
        ],
        help="list: show configured stores; compare: report differences; "
             "restore/backup: copy what TARGET lacks from SOURCE",
    )
    p.add_argument("source", nargs="?", type=int, help="Index of the source store (see 'list')")
    p.add_argument("target", nargs="?", type=int, help="Index of the target store (see 'list')")
    p.add_argument("--dry-run", action="store_true", help="Plan restore/backup actions without copying")
    p.add_argument("--config", type=Path, help="Path to config file")
    return p


def print_stores(provider: StoreProvider) -> None:
    handles = provider.list_stores()
    if not handles:
        print("No stores configured.")
        return
    for h in handles:
        print(f"[{h.index}] {h.name}  {h.path or ''}".rstrip())


def validate_selection(provider: StoreProvider, source: Optional[int], target: Optional[int]) -> None:
    """Reject missing, unknown or identical indices before any store is opened."""
    if source is None or target is None:
        raise ValueError("both SOURCE and TARGET store indices are required")
    provider.validate(source)
    provider.validate(target)
    if source == target:
        raise ValueError("SOURCE and TARGET must be different stores")


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    settings = load_settings(args.config)

    setup_logger(settings)
    logger = get_logger(__name__)

    provider = StoreProvider.from_settings(settings)

    if args.action == "list":
        print_stores(provider)
        return EXIT_OK

    try:
        validate_selection(provider, args.source, args.target)
    except ValueError as e:
        logger.error(f"Invalid store selection: {e}")
        parser.print_usage(sys.stderr)
        return EXIT_USAGE

    if args.dry_run and args.action == "compare":
        logger.warning("--dry-run has no effect on compare")

    ensure_dirs(settings.output_dir)

    def on_interrupt(signum, frame):
        logger.warning("Interrupt received. Completed copies are committed; writing report and exiting...")
        sys.exit(EXIT_USAGE)

    install_signal_handlers(on_interrupt)

    try:
        if args.action == "compare":
            path = run_compare(settings, provider, args.source, args.target)
        else:
            path = run_restore(settings, provider, args.source, args.target,
                               dry_run=args.dry_run, mode=args.action)
    except FatalConnectError as e:
        logger.error(f"Cannot open store: {e}")
        return EXIT_FATAL

    logger.info(f"Action '{args.action}' completed. Report: {path}")
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
