"""Text and JSON renderings of plans, apply reports and repository status.

Entry points:

- ``format_plan_preview`` -- plan preview grouped by operation.
- ``format_apply_report`` -- full post-apply summary.
- ``format_conflict_diff`` -- local vs repository diff shown before a prompt.
- ``format_status`` -- per-repository status table.
- ``plan_to_json`` / ``report_to_json`` -- structured dicts for ``--json``.
"""

from __future__ import annotations

import difflib
from collections import defaultdict
from pathlib import Path
from typing import TYPE_CHECKING

from shadow_sync.file_handler import read_text_or_none

from .models import SyncKind

if TYPE_CHECKING:
    from shadow_sync.commands import RepositoryStatus

    from .models import ApplyReport, SyncOperation, SyncPlan

_ARROWS = {
    SyncKind.PULL: "<-",
    SyncKind.PUSH: "->",
    SyncKind.CONFLICT: "<->",
    SyncKind.SKIP: "==",
}

# ------------------------------------------------------------------
# Plan preview
# ------------------------------------------------------------------


def _describe(op: SyncOperation, verbose: bool) -> str:
    line = f"  {op.relative_path} {_ARROWS[op.kind]} {op.repository_id}"
    if verbose and op.note:
        line += f"  ({op.note})"
    return line


def format_plan_preview(plan: SyncPlan, verbose: bool = False) -> str:
    """Format a plan preview grouped by operation.

    Skip operations are only listed individually when *verbose* is set;
    otherwise they are summarised by count.

    Args:
        plan: The plan to preview.
        verbose: Include notes, skipped files and shadowed copies.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []
    lines.append(f"Sync plan ({plan.created_at})")
    if plan.push_target_id:
        lines.append(f"Push target: {plan.push_target_id}")
    lines.append("")

    groups: dict[SyncKind, list[SyncOperation]] = defaultdict(list)
    for op in plan.operations:
        groups[op.kind].append(op)

    for kind in (SyncKind.PULL, SyncKind.PUSH, SyncKind.CONFLICT):
        if kind not in groups:
            continue
        lines.append(f"[{kind.value.upper()}]")
        for op in groups[kind]:
            lines.append(_describe(op, verbose))
        lines.append("")

    skip_count = len(groups.get(SyncKind.SKIP, []))
    if skip_count > 0:
        if verbose:
            lines.append("[SKIP]")
            for op in groups[SyncKind.SKIP]:
                lines.append(_describe(op, verbose))
        else:
            lines.append(f"Unchanged: {skip_count} files")
        lines.append("")

    if plan.unsynchronized:
        lines.append("Unsynchronized:")
        for u in plan.unsynchronized:
            lines.append(f"  {u.relative_path}: {u.reason}")
        lines.append("")

    if verbose and plan.shadowed:
        lines.append("Shadowed:")
        for s in plan.shadowed:
            lines.append(
                f"  {s.relative_path} in {s.repository_id} (hidden by {s.winner_id})"
            )
        lines.append("")

    if plan.skipped_repositories:
        lines.append("Skipped repositories:")
        for r in plan.skipped_repositories:
            lines.append(f"  {r.repository_id} ({r.path}): {r.reason}")
        lines.append("")

    if plan.errors:
        lines.append("Errors:")
        for e in plan.errors:
            where = f" [{e.repository_id}]" if e.repository_id else ""
            lines.append(f"  {e.relative_path}{where}: {e.message}")
        lines.append("")

    if not plan.pending and not plan.unsynchronized:
        lines.append("Everything is in sync.")
        lines.append("")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# Apply report
# ------------------------------------------------------------------


def format_apply_report(report: ApplyReport) -> str:
    """Format a complete apply report as human-readable text.

    Empty sections are omitted.

    Args:
        report: The completed apply report.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []
    lines.append(f"Sync applied ({report.mode.value})")
    lines.append(f"Started: {report.started_at}")
    if report.completed_at:
        lines.append(f"Completed: {report.completed_at}")
    lines.append("")

    lines.append(
        f"{len(report.pulled)} pulled, {len(report.pushed)} pushed, "
        f"{len(report.skipped)} unchanged, "
        f"{len(report.unresolved)} unresolved, {len(report.errors)} errors"
    )
    lines.append("")

    if report.pulled:
        lines.append("Pulled:")
        for r in report.pulled:
            lines.append(f"  {r.repository_id} -> {r.relative_path}")
        lines.append("")

    if report.pushed:
        lines.append("Pushed:")
        for r in report.pushed:
            lines.append(f"  {r.relative_path} -> {r.repository_id}")
        lines.append("")

    if report.unresolved:
        lines.append("Unresolved conflicts:")
        for r in report.unresolved:
            lines.append(f"  {r.relative_path} <-> {r.repository_id}")
        lines.append("")

    if report.errors:
        lines.append("Errors:")
        for r in report.errors:
            lines.append(f"  {r.relative_path}: {r.error}")
        lines.append("")

    if report.skipped_repositories:
        lines.append("Skipped repositories:")
        for s in report.skipped_repositories:
            lines.append(f"  {s.repository_id} ({s.path}): {s.reason}")
        lines.append("")

    if report.followup_errors:
        lines.append("After sync:")
        for message in report.followup_errors:
            lines.append(f"  {message}")
        lines.append("")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# Conflict diff
# ------------------------------------------------------------------


def format_conflict_diff(
    operation: SyncOperation, local_path: Path, remote_path: Path
) -> str:
    """Render the diff the user sees when asked to resolve a conflict.

    Shows a unified diff between the local copy and the repository copy.
    Binary files are reported without a diff.

    Args:
        operation: The Conflict operation.
        local_path: Absolute path of the working copy file.
        remote_path: Absolute path of the repository copy.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []
    lines.append(
        f"Conflict: {operation.relative_path} <-> {operation.repository_id}"
    )
    lines.append("")

    local_text = read_text_or_none(local_path)
    remote_text = read_text_or_none(remote_path)
    if local_text is None or remote_text is None:
        lines.append("(binary file, no diff available)")
        return "\n".join(lines)

    diff = difflib.unified_diff(
        local_text.splitlines(keepends=True),
        remote_text.splitlines(keepends=True),
        fromfile=f"local: {operation.relative_path}",
        tofile=f"{operation.repository_id}: {operation.relative_path}",
    )
    diff_text = "".join(diff)
    if diff_text:
        lines.append(diff_text.rstrip())
    else:
        lines.append("(no textual differences)")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# Status
# ------------------------------------------------------------------


def format_status(statuses: list[RepositoryStatus], plan: SyncPlan) -> str:
    """Format the ``status`` command output."""
    lines: list[str] = []
    if not statuses:
        lines.append("No repositories registered.")
    else:
        lines.append("Repositories:")
        for s in statuses:
            flag = "enabled" if s.enabled else "disabled"
            reach = "ok" if s.reachable else "MISSING"
            counts = ""
            if s.pending is not None:
                counts = f", {s.file_count} files, {s.pending} pending"
            lines.append(
                f"  {s.repository_id} [{s.scope.value}] {flag}, {reach}{counts}"
            )
            lines.append(f"      {s.path}")
    lines.append("")

    lines.append(
        f"Pending: {len(plan.pulls)} pull, {len(plan.pushes)} push, "
        f"{len(plan.conflicts)} conflicts"
    )
    if plan.unsynchronized:
        lines.append("Unsynchronized:")
        for u in plan.unsynchronized:
            lines.append(f"  {u.relative_path}")
    lines.append("In sync: " + ("yes" if plan.in_sync else "no"))
    return "\n".join(lines)


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def _operation_to_json(op: SyncOperation) -> dict:
    entry: dict = {
        "relative_path": op.relative_path,
        "kind": op.kind.value,
        "repository_id": op.repository_id,
        "scope": op.scope.value,
        "local_hash": op.local_hash,
        "remote_hash": op.remote_hash,
        "local_mtime": op.local_mtime,
        "remote_mtime": op.remote_mtime,
    }
    if op.note:
        entry["note"] = op.note
    return entry


def plan_to_json(plan: SyncPlan) -> dict:
    """Convert a plan to a structured dict for JSON serialisation.

    Args:
        plan: The sync plan.

    Returns:
        Dict with counts, operations and the plan's side lists.
    """
    return {
        "created_at": plan.created_at,
        "push_target_id": plan.push_target_id,
        "in_sync": plan.in_sync,
        "counts": {
            "pull": len(plan.pulls),
            "push": len(plan.pushes),
            "conflict": len(plan.conflicts),
            "skip": len(plan.skips),
            "unsynchronized": len(plan.unsynchronized),
            "errors": len(plan.errors),
        },
        "operations": [_operation_to_json(op) for op in plan.operations],
        "shadowed": [s.model_dump() for s in plan.shadowed],
        "unsynchronized": [u.model_dump() for u in plan.unsynchronized],
        "skipped_repositories": [
            s.model_dump() for s in plan.skipped_repositories
        ],
        "errors": [e.model_dump() for e in plan.errors],
    }


def report_to_json(report: ApplyReport) -> dict:
    """Convert an apply report to a structured dict for JSON serialisation.

    Args:
        report: The apply report.

    Returns:
        Dict with mode, counts, and per-result details.
    """
    results_list = []
    for r in report.results:
        entry: dict = {
            "relative_path": r.relative_path,
            "kind": r.kind.value,
            "repository_id": r.repository_id,
            "success": r.success,
        }
        if r.performed:
            entry["performed"] = r.performed.value
        if r.resolution:
            entry["resolution"] = r.resolution.value
        if r.error:
            entry["error"] = r.error
        results_list.append(entry)

    return {
        "mode": report.mode.value,
        "started_at": report.started_at,
        "completed_at": report.completed_at,
        "counts": {
            "total": len(report.results),
            "pulled": len(report.pulled),
            "pushed": len(report.pushed),
            "unchanged": len(report.skipped),
            "unresolved": len(report.unresolved),
            "errors": len(report.errors),
        },
        "results": results_list,
        "skipped_repositories": [
            s.model_dump() for s in report.skipped_repositories
        ],
        "followup_errors": list(report.followup_errors),
    }
