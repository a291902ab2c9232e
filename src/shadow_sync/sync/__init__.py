"""Multi-scope document sync engine.

Public API for reconciling a local working copy against User, Team and
Project shadow repositories.

Architecture
------------
Planning and applying are separate steps.  The planner is read-only: it
fingerprints both sides and decides a direction for every path by content
hash first, then by modification second.  The executor carries the plan
out, re-checking every file against the plan's hashes before it writes.

Modules:

- ``exclusion``   -- ``ExclusionMatcher``: segment-boundary regex rules.
- ``fingerprint`` -- SHA-256 content hashes plus modification times.
- ``planner``     -- ``SyncPlanner``: builds an immutable ``SyncPlan``.
- ``executor``    -- ``SyncExecutor``: applies a plan atomically per file.
- ``resolver``    -- Conflict resolution strategies (newer-wins, prompt,
  strict).
- ``models``      -- ``SyncKind``, ``SyncOperation``, ``SyncPlan``,
  ``ApplyMode``, ``ApplyReport``: core data contracts.
- ``reporter``    -- Human-readable and JSON report formatting.

Usage example
-------------
::

    from pathlib import Path
    from shadow_sync.registry import load_registry
    from shadow_sync.sync import ApplyMode, SyncExecutor, SyncPlanner
    from shadow_sync.sync import format_apply_report, format_plan_preview
    from shadow_sync.workspace import open_workspace

    workspace = open_workspace(Path.cwd())
    registry = load_registry(workspace.manifest_path)

    plan = SyncPlanner(workspace, registry).plan()
    print(format_plan_preview(plan))

    report = SyncExecutor(workspace, registry).apply(plan, ApplyMode.FORCE)
    print(format_apply_report(report))
"""

from .exclusion import ExclusionMatcher
from .executor import SyncExecutor
from .fingerprint import Fingerprint, fingerprint
from .models import (
    ApplyMode,
    ApplyReport,
    ApplyResult,
    Resolution,
    SyncKind,
    SyncOperation,
    SyncPlan,
)
from .planner import SyncPlanner
from .reporter import (
    format_apply_report,
    format_plan_preview,
    plan_to_json,
    report_to_json,
)
from .resolver import create_resolver

__all__ = [
    "ApplyMode",
    "ApplyReport",
    "ApplyResult",
    "ExclusionMatcher",
    "Fingerprint",
    "Resolution",
    "SyncExecutor",
    "SyncKind",
    "SyncOperation",
    "SyncPlan",
    "SyncPlanner",
    "create_resolver",
    "fingerprint",
    "format_apply_report",
    "format_plan_preview",
    "plan_to_json",
    "report_to_json",
]
