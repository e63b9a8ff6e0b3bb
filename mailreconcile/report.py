#!/usr/bin/env python3

"""
report.py

Plain-text run artifacts.

Section order is fixed: header, body (folder tree or action log), summary,
legend. Section titles and count labels are kept stable so the files can
be grepped by other tooling.
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

from mailreconcile.context import RunContext
from mailreconcile.logger import get_logger
from mailreconcile.models import Classification, ComparisonNode, RestoreAction
from mailreconcile.statistics import StatKey
from mailreconcile.utils import atomic_write_text, ensure_dirs, run_timestamp, unique_path_for_filename

RULE = "=" * 72
THIN_RULE = "-" * 72

BRANCH = "├── "
LAST_BRANCH = "└── "
PIPE = "│   "
SPACE = "    "

NODE_TAGS = {
    Classification.MATCHED: "[OK]",
    Classification.COUNT_DIFFERS: "[DIFF]",
    Classification.ABSENT_IN_TARGET: "[MISSING IN TARGET]",
    Classification.ABSENT_IN_SOURCE: "[MISSING IN SOURCE]",
}
ERROR_TAG = "[ERROR]"
TRUNCATED_TAG = "[DEPTH LIMIT]"

COMPARE_LEGEND = [
    "[OK]                 folder exists on both sides with equal item counts",
    "[DIFF]               folder exists on both sides, item counts differ",
    "[MISSING IN TARGET]  folder exists only in the source (subtree not descended)",
    "[MISSING IN SOURCE]  folder exists only in the target (subtree not descended)",
    "[ERROR]              folder could not be read; siblings were still compared",
    "[DEPTH LIMIT]        maximum depth reached; deeper folders were not compared",
]

RESTORE_LEGEND = [
    "restored-folder       whole folder copied in one operation (items = subtree total)",
    "restored-items        missing items copied into an existing folder",
    "would-restore-*       dry run: action planned, nothing copied",
    "checked-no-action     folder checked, nothing missing (duplicates = already present)",
    "depth-limit           maximum depth reached; deeper folders were not visited",
    "error                 action failed and was skipped; the run continued",
]


def _section(title: str) -> List[str]:
    return [THIN_RULE, f" {title}", THIN_RULE]


def _header(title: str, ctx: RunContext) -> List[str]:
    lines = [
        RULE,
        f" {title}",
        RULE,
        f"Generated : {ctx.started_at.strftime('%Y-%m-%d %H:%M:%S')}",
        f"Source    : {ctx.source_identity}",
        f"Target    : {ctx.target_identity}",
        f"Max depth : {ctx.max_depth}",
    ]
    if ctx.dry_run:
        lines.append("Mode      : DRY RUN (nothing was copied)")
    lines.append("")
    return lines


def describe_node(node: ComparisonNode) -> str:
    label = node.name or "(root)"
    if node.truncated:
        return f"{label}  {TRUNCATED_TAG}"
    if node.error is not None:
        return f"{label}  {ERROR_TAG} {node.error}"
    tag = NODE_TAGS[node.classification]
    return f"{label}  {tag} source={node.source_count} target={node.target_count}"


def render_tree(root: ComparisonNode) -> List[str]:
    lines = [describe_node(root)]

    def walk(node: ComparisonNode, prefix: str) -> None:
        for i, child in enumerate(node.children):
            last = i == len(node.children) - 1
            lines.append(prefix + (LAST_BRANCH if last else BRANCH) + describe_node(child))
            walk(child, prefix + (SPACE if last else PIPE))

    walk(root, "")
    return lines


def _summary(ctx: RunContext, restore: bool) -> List[str]:
    s = ctx.stats
    lines = _section("SUMMARY")
    lines += [
        f"Matched                : {s[StatKey.MATCHED]}",
        f"Count differs          : {s[StatKey.COUNT_DIFFERS]}",
        f"Absent in target       : {s[StatKey.ABSENT_IN_TARGET]} ({s[StatKey.ABSENT_IN_TARGET_ITEMS]} items)",
    ]
    if not restore:
        lines.append(
            f"Absent in source       : {s[StatKey.ABSENT_IN_SOURCE]} ({s[StatKey.ABSENT_IN_SOURCE_ITEMS]} items)"
        )
    lines.append(f"Folders compared       : {s.folders_visited()}")
    if restore:
        lines += [
            f"Folders restored       : {s[StatKey.FOLDERS_RESTORED]}",
            f"Items restored         : {s[StatKey.ITEMS_RESTORED]}",
            f"Duplicates skipped     : {s[StatKey.DUPLICATES_SKIPPED]}",
        ]
    lines += [
        f"Errors                 : {s[StatKey.ERRORS]}",
        f"Elapsed                : {ctx.elapsed_seconds:.1f}s",
        "",
    ]
    return lines


def render_comparison_report(root: ComparisonNode, ctx: RunContext) -> str:
    lines = _header("MAILRECONCILE COMPARISON REPORT", ctx)
    lines += _section("FOLDER TREE")
    lines += render_tree(root)
    lines.append("")
    lines += _summary(ctx, restore=False)
    lines += _section("LEGEND")
    lines += COMPARE_LEGEND
    return "\n".join(lines) + "\n"


def render_restore_log(ctx: RunContext) -> str:
    title = "MAILRECONCILE RESTORE LOG"
    if ctx.mode == "backup":
        title = "MAILRECONCILE BACKUP LOG"
    lines = _header(title, ctx)
    lines += _section("ACTIONS")
    if ctx.restore_log:
        lines += [rec.format_line() for rec in ctx.restore_log]
    else:
        lines.append("(no folders visited)")
    errors = [rec for rec in ctx.restore_log if rec.action is RestoreAction.ERROR]
    lines.append("")
    lines += _summary(ctx, restore=True)
    if errors:
        lines += _section("ERRORS")
        lines += [rec.format_line() for rec in errors]
        lines.append("")
    lines += _section("LEGEND")
    lines += RESTORE_LEGEND
    return "\n".join(lines) + "\n"


def write_report(text: str, output_dir: Path, kind: str, stamp: Optional[str] = None) -> Path:
    """Write `text` to <output_dir>/<kind>_<timestamp>.txt and return the path."""
    logger = get_logger(__name__)
    ensure_dirs(output_dir)
    path = unique_path_for_filename(output_dir, f"{kind}_{stamp or run_timestamp()}.txt")
    atomic_write_text(path, text)
    logger.info(f"Report written to {path}")
    return path
