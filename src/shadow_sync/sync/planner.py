"""Sync planner: decide a direction for every path.

``SyncPlanner.plan()`` is read-only.  It walks the working copy and each
selected repository, fingerprints every candidate path and produces an
immutable :class:`~shadow_sync.sync.models.SyncPlan`.

Decision table for one path, where *remote* is the highest-precedence
repository holding it (Project > Team > User, then registration order):

=====================================  ===================================
Situation                              Operation
=====================================  ===================================
no repository holds it                 Push to the push target
local file absent                      Pull from remote
hashes equal                           Skip
remote newer (whole seconds)           Pull
local newer, remote is Project         Push to remote
local newer, remote is User/Team       Push to the push target (new file)
same second, different hashes          Conflict
=====================================  ===================================

A Push that has no eligible Project repository is reported as
unsynchronized instead.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from shadow_sync.exceptions import SyncIOError
from shadow_sync.registry import Registry, Repository, Scope
from shadow_sync.sync.exclusion import ExclusionMatcher
from shadow_sync.sync.fingerprint import Fingerprint, fingerprint
from shadow_sync.sync.models import (
    FileError,
    ShadowedPath,
    SkippedRepository,
    SyncKind,
    SyncOperation,
    SyncPlan,
    UnsynchronizedPath,
)
from shadow_sync.workspace import Workspace

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


def check_reachable(path: Path) -> str | None:
    """Return why *path* cannot be used as a repository, or ``None``."""
    if not path.exists():
        return "path does not exist"
    if not path.is_dir():
        return "path is not a directory"
    if not os.access(path, os.R_OK | os.W_OK | os.X_OK):
        return "path is not readable and writable"
    return None


def walk_files(base: Path, matcher: ExclusionMatcher, prefix: str = "") -> list[str]:
    """List files under *base* as POSIX paths, pruning excluded entries.

    Paths are matched (and returned) as ``prefix + relative path`` so the
    working copy can be walked with project-relative names.

    Raises:
        SyncIOError: If a directory cannot be listed.
    """

    def _raise(exc: OSError) -> None:
        raise SyncIOError(
            f"Cannot list directory: {exc.strerror or exc}",
            path=exc.filename,
        )

    found: list[str] = []
    for dirpath, dirnames, filenames in os.walk(base, onerror=_raise):
        rel_dir = Path(dirpath).relative_to(base).as_posix()
        rel_dir = "" if rel_dir == "." else rel_dir + "/"
        dirnames[:] = sorted(
            d
            for d in dirnames
            if not matcher.is_sync_excluded(prefix + rel_dir + d, is_dir=True)
        )
        for name in filenames:
            rel = prefix + rel_dir + name
            if matcher.is_sync_excluded(rel):
                continue
            if not os.path.isfile(os.path.join(dirpath, name)):
                continue
            found.append(rel)
    return sorted(found)


def decide_operation(
    relative_path: str,
    local: Fingerprint | None,
    remote_repo: Repository | None,
    remote: Fingerprint | None,
    push_target: Repository | None,
) -> SyncOperation | UnsynchronizedPath:
    """Apply the decision table to one path.  Pure.

    At least one of *local* and *remote* must be present.
    """
    local_fields = {}
    if local is not None:
        local_fields = {
            "local_hash": local.hash,
            "local_mtime_ns": local.mtime_ns,
        }

    def _push_new(note: str | None) -> SyncOperation | UnsynchronizedPath:
        if push_target is None:
            return UnsynchronizedPath(
                relative_path=relative_path,
                reason="no Project repository available to receive it",
            )
        return SyncOperation(
            relative_path=relative_path,
            kind=SyncKind.PUSH,
            repository_id=push_target.id,
            scope=push_target.scope,
            note=note,
            **local_fields,
        )

    if remote_repo is None or remote is None:
        return _push_new("new local file")

    remote_fields = {
        "repository_id": remote_repo.id,
        "scope": remote_repo.scope,
        "remote_hash": remote.hash,
        "remote_mtime_ns": remote.mtime_ns,
    }

    if local is None:
        return SyncOperation(
            relative_path=relative_path,
            kind=SyncKind.PULL,
            note="missing locally",
            **remote_fields,
        )

    if local.hash == remote.hash:
        return SyncOperation(
            relative_path=relative_path,
            kind=SyncKind.SKIP,
            **remote_fields,
            **local_fields,
        )

    if remote.mtime_seconds > local.mtime_seconds:
        return SyncOperation(
            relative_path=relative_path,
            kind=SyncKind.PULL,
            note="repository copy is newer",
            **remote_fields,
            **local_fields,
        )

    if local.mtime_seconds > remote.mtime_seconds:
        if remote_repo.scope.accepts_push:
            return SyncOperation(
                relative_path=relative_path,
                kind=SyncKind.PUSH,
                note="local copy is newer",
                **remote_fields,
                **local_fields,
            )
        return _push_new(
            f"local copy is newer than read-only {remote_repo.scope.value} "
            f"copy in '{remote_repo.id}'"
        )

    return SyncOperation(
        relative_path=relative_path,
        kind=SyncKind.CONFLICT,
        note="both copies changed within the same second",
        **remote_fields,
        **local_fields,
    )


# ------------------------------------------------------------------
# Planner
# ------------------------------------------------------------------


@dataclass
class _RepoView:
    repo: Repository
    root: Path
    files: set[str] = field(default_factory=set)


class SyncPlanner:
    """Build a :class:`SyncPlan` for one workspace.

    Args:
        workspace: Resolved project layout.
        registry: Loaded Registry.
        scope: Only consider repositories of this scope.
        repo_id: Only consider this repository.

    Raises:
        ConfigError: If *repo_id* is unknown or disabled.
    """

    def __init__(
        self,
        workspace: Workspace,
        registry: Registry,
        *,
        scope: Scope | None = None,
        repo_id: str | None = None,
    ) -> None:
        self.workspace = workspace
        self.registry = registry
        self.matcher = ExclusionMatcher(
            registry.sync_exclude, registry.ignore_exclude
        )
        self.selected = registry.enabled_repositories(
            scope=scope, repo_id=repo_id
        )

    def plan(self) -> SyncPlan:
        """Walk both sides and return the plan."""
        created_at = datetime.now(timezone.utc).isoformat()
        skipped: list[SkippedRepository] = []
        errors: list[FileError] = []

        views: list[_RepoView] = []
        for repo in self.selected:
            root = self.workspace.resolve_repository_path(repo.path)
            reason = check_reachable(root)
            if reason is None:
                try:
                    files = walk_files(root, self.matcher)
                except SyncIOError as exc:
                    reason = str(exc)
            if reason is not None:
                logger.warning(
                    "Skipping repository '%s' (%s): %s", repo.id, root, reason
                )
                skipped.append(
                    SkippedRepository(
                        repository_id=repo.id, path=str(root), reason=reason
                    )
                )
                continue
            views.append(_RepoView(repo=repo, root=root, files=set(files)))

        rank = {
            repo.id: i
            for i, repo in enumerate(
                self.registry.by_precedence([v.repo for v in views])
            )
        }
        views.sort(key=lambda v: rank[v.repo.id])
        push_target = next(
            (
                v.repo
                for v in sorted(
                    views,
                    key=lambda v: self.registry.registration_index(v.repo.id),
                )
                if v.repo.scope.accepts_push
            ),
            None,
        )

        local_files: set[str] = set()
        working_dir = self.workspace.working_dir
        if working_dir.is_dir():
            prefix = self.workspace.working_dir_name.rstrip("/") + "/"
            try:
                local_files = set(walk_files(working_dir, self.matcher, prefix))
            except SyncIOError as exc:
                logger.error("Cannot walk working copy: %s", exc)
                errors.append(
                    FileError(relative_path=prefix.rstrip("/"), message=str(exc))
                )

        all_paths = set(local_files)
        for view in views:
            all_paths |= view.files

        operations: list[SyncOperation] = []
        shadowed: list[ShadowedPath] = []
        unsynchronized: list[UnsynchronizedPath] = []

        for rel in sorted(all_paths):
            local_path = self.workspace.local_path(rel)
            local_fp: Fingerprint | None = None
            if rel in local_files or local_path.is_file():
                try:
                    local_fp = fingerprint(local_path)
                except SyncIOError as exc:
                    logger.error("%s", exc)
                    errors.append(FileError(relative_path=rel, message=str(exc)))
                    continue

            holders: list[tuple[Repository, Fingerprint]] = []
            for view in views:
                if rel not in view.files:
                    continue
                try:
                    fp = fingerprint(view.root / rel, repository_id=view.repo.id)
                except SyncIOError as exc:
                    logger.error("%s", exc)
                    errors.append(
                        FileError(
                            relative_path=rel,
                            repository_id=view.repo.id,
                            message=str(exc),
                        )
                    )
                    continue
                holders.append((view.repo, fp))

            if local_fp is None and not holders:
                continue

            remote_repo, remote_fp = holders[0] if holders else (None, None)
            for repo, _ in holders[1:]:
                shadowed.append(
                    ShadowedPath(
                        relative_path=rel,
                        repository_id=repo.id,
                        winner_id=remote_repo.id,
                    )
                )

            decision = decide_operation(
                rel, local_fp, remote_repo, remote_fp, push_target
            )
            if isinstance(decision, UnsynchronizedPath):
                unsynchronized.append(decision)
            else:
                operations.append(decision)

        operations.sort(key=lambda op: (op.relative_path, op.repository_id))
        plan = SyncPlan(
            operations=operations,
            shadowed=shadowed,
            unsynchronized=unsynchronized,
            skipped_repositories=skipped,
            errors=errors,
            push_target_id=push_target.id if push_target else None,
            created_at=created_at,
        )
        logger.info(
            "Planned %d operations (%d pending) across %d repositories",
            len(plan.operations),
            len(plan.pending),
            len(views),
        )
        return plan
