"""Sync executor: carry out a :class:`SyncPlan`.

Every write is guarded by a re-fingerprint of both sides: if either file
no longer matches the hashes captured at plan time, that one operation
fails with :class:`~shadow_sync.exceptions.StalePlanError` and the batch
continues.  Writes go through :func:`~shadow_sync.file_handler.atomic_copy`.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path

from shadow_sync.exceptions import (
    ConflictsRemainError,
    ShadowSyncError,
    StalePlanError,
)
from shadow_sync.file_handler import atomic_copy
from shadow_sync.registry import Registry, Repository
from shadow_sync.sync.fingerprint import fingerprint_or_none
from shadow_sync.sync.models import (
    ApplyMode,
    ApplyReport,
    ApplyResult,
    Resolution,
    SyncKind,
    SyncOperation,
    SyncPlan,
)
from shadow_sync.sync.resolver import ConflictResolver, create_resolver
from shadow_sync.workspace import Workspace

logger = logging.getLogger(__name__)


class SyncExecutor:
    """Apply sync plans for one workspace.

    Args:
        workspace: Resolved project layout.
        registry: The Registry the plan was built from.
        resolver: Conflict resolver; defaults to the one matching the
            apply mode (see :func:`create_resolver`).
    """

    def __init__(
        self,
        workspace: Workspace,
        registry: Registry,
        resolver: ConflictResolver | None = None,
    ) -> None:
        self.workspace = workspace
        self.registry = registry
        self.resolver = resolver

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    def apply(
        self, plan: SyncPlan, mode: ApplyMode = ApplyMode.AUTO
    ) -> ApplyReport:
        """Execute every operation in *plan*.

        Args:
            plan: Plan produced by :class:`SyncPlanner`.
            mode: ``auto`` refuses plans with conflicts, ``force`` resolves
                them newer-wins, ``interactive`` asks the resolver.

        Returns:
            An ``ApplyReport`` with one result per operation.

        Raises:
            ConflictsRemainError: In ``auto`` mode when the plan contains
                conflicts.  Raised before any file is touched.
        """
        mode = ApplyMode(mode)
        if mode == ApplyMode.AUTO and plan.conflicts:
            raise ConflictsRemainError(
                [op.relative_path for op in plan.conflicts]
            )

        resolver = self.resolver or create_resolver(mode)
        started_at = datetime.now(timezone.utc).isoformat()
        results: list[ApplyResult] = []

        for op in plan.operations:
            try:
                result = self._apply_one(op, plan, resolver)
            except (ShadowSyncError, OSError) as exc:
                logger.error(
                    "Error applying %s %s (%s): %s",
                    op.kind.value,
                    op.relative_path,
                    op.repository_id,
                    exc,
                )
                result = ApplyResult(
                    relative_path=op.relative_path,
                    kind=op.kind,
                    repository_id=op.repository_id,
                    success=False,
                    error=str(exc),
                )
            results.append(result)

        report = ApplyReport(
            mode=mode,
            results=results,
            skipped_repositories=plan.skipped_repositories,
            plan_errors=plan.errors,
            started_at=started_at,
            completed_at=datetime.now(timezone.utc).isoformat(),
        )
        logger.info(
            "Applied plan: %d pulled, %d pushed, %d unresolved, %d errors",
            len(report.pulled),
            len(report.pushed),
            len(report.unresolved),
            len(report.errors),
        )
        return report

    # ------------------------------------------------------------------
    # Per-operation
    # ------------------------------------------------------------------

    def _repo_file(self, repo: Repository, relative_path: str) -> Path:
        return self.workspace.resolve_repository_path(repo.path) / relative_path

    def _apply_one(
        self, op: SyncOperation, plan: SyncPlan, resolver: ConflictResolver
    ) -> ApplyResult:
        if op.kind == SyncKind.SKIP:
            return ApplyResult(
                relative_path=op.relative_path,
                kind=op.kind,
                repository_id=op.repository_id,
                success=True,
            )

        repo = self.registry.get(op.repository_id)
        local_path = self.workspace.local_path(op.relative_path)
        remote_path = self._repo_file(repo, op.relative_path)

        if op.kind == SyncKind.PULL:
            self._transfer(
                op, remote_path, op.remote_hash, local_path, op.local_hash, repo.id
            )
            return ApplyResult(
                relative_path=op.relative_path,
                kind=op.kind,
                repository_id=repo.id,
                performed=SyncKind.PULL,
                success=True,
            )

        if op.kind == SyncKind.PUSH:
            self._transfer(
                op, local_path, op.local_hash, remote_path, op.remote_hash, repo.id
            )
            return ApplyResult(
                relative_path=op.relative_path,
                kind=op.kind,
                repository_id=repo.id,
                performed=SyncKind.PUSH,
                success=True,
            )

        return self._resolve_conflict(
            op, plan, resolver, repo, local_path, remote_path
        )

    def _resolve_conflict(
        self,
        op: SyncOperation,
        plan: SyncPlan,
        resolver: ConflictResolver,
        repo: Repository,
        local_path: Path,
        remote_path: Path,
    ) -> ApplyResult:
        resolution = Resolution(resolver.resolve(op, local_path, remote_path))

        def _unresolved(reason: str) -> ApplyResult:
            logger.info("Conflict left unresolved: %s (%s)", op.relative_path, reason)
            return ApplyResult(
                relative_path=op.relative_path,
                kind=op.kind,
                repository_id=repo.id,
                success=True,
                resolution=resolution,
            )

        if resolution == Resolution.SKIP:
            return _unresolved("skipped")

        if resolution == Resolution.REMOTE:
            self._transfer(
                op, remote_path, op.remote_hash, local_path, op.local_hash, repo.id
            )
            return ApplyResult(
                relative_path=op.relative_path,
                kind=op.kind,
                repository_id=repo.id,
                performed=SyncKind.PULL,
                success=True,
                resolution=resolution,
            )

        # Local wins: only Project repositories accept writes.
        if repo.scope.accepts_push:
            target, dest, expected_dest = repo, remote_path, op.remote_hash
        elif plan.push_target_id is not None:
            target = self.registry.get(plan.push_target_id)
            dest = self._repo_file(target, op.relative_path)
            expected_dest = None
        else:
            return _unresolved("no Project repository to receive local copy")

        self._transfer(
            op, local_path, op.local_hash, dest, expected_dest, target.id
        )
        return ApplyResult(
            relative_path=op.relative_path,
            kind=op.kind,
            repository_id=target.id,
            performed=SyncKind.PUSH,
            success=True,
            resolution=resolution,
        )

    def _transfer(
        self,
        op: SyncOperation,
        src: Path,
        expected_src: str | None,
        dest: Path,
        expected_dest: str | None,
        repository_id: str,
    ) -> None:
        """Copy *src* over *dest* after checking both against the plan."""
        current_src = fingerprint_or_none(src, repository_id=repository_id)
        if current_src is None or current_src.hash != expected_src:
            raise StalePlanError(
                "Source changed since the plan was made",
                path=src,
                repository_id=repository_id,
            )
        current_dest = fingerprint_or_none(dest, repository_id=repository_id)
        current_dest_hash = current_dest.hash if current_dest else None
        if current_dest_hash != expected_dest:
            raise StalePlanError(
                "Destination changed since the plan was made",
                path=dest,
                repository_id=repository_id,
            )
        atomic_copy(src, dest)
        logger.info(
            "%s %s (%s)", op.kind.value, op.relative_path, repository_id
        )
