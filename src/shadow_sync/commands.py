"""Command implementations behind the ``shadow-sync`` CLI.

Each function takes a resolved :class:`~shadow_sync.workspace.Workspace`,
loads the Registry explicitly, does its work and returns a plain result
object.  Printing and prompting stay in :mod:`shadow_sync.cli`.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import IntEnum
from pathlib import Path

from shadow_sync import vcs_exclude
from shadow_sync.exceptions import ConfigError, SyncIOError
from shadow_sync.file_handler import (
    atomic_copy,
    project_relative_path,
    remove_empty_parents,
    resolve_project_file,
)
from shadow_sync.registry import (
    Registry,
    Repository,
    Scope,
    generate_repo_id,
    load_registry,
    save_registry,
)
from shadow_sync.sync.exclusion import ExclusionMatcher
from shadow_sync.sync.executor import SyncExecutor
from shadow_sync.sync.fingerprint import hash_file
from shadow_sync.sync.models import ApplyMode, ApplyReport, SyncPlan
from shadow_sync.sync.planner import SyncPlanner, check_reachable, walk_files
from shadow_sync.sync.resolver import ConflictResolver
from shadow_sync.workspace import Workspace

logger = logging.getLogger(__name__)


class ExitCode(IntEnum):
    SUCCESS = 0
    FAILURE = 1
    NOT_INITIALIZED = 2
    PARTIAL = 3
    CONFLICTS = 4


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


@dataclass
class InitResult:
    created: bool
    registry: Registry
    added: list[Repository] = field(default_factory=list)


@dataclass
class RepositoryStatus:
    repository_id: str
    scope: Scope
    path: str
    enabled: bool
    reachable: bool
    file_count: int | None = None
    pending: int | None = None


@dataclass
class AddFileResult:
    relative_path: str
    repository_id: str
    destination: Path
    already_registered: bool = False


@dataclass
class RemoveFileResult:
    relative_path: str
    removed_from: list[str] = field(default_factory=list)
    deleted_local: bool = False


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _new_repository(
    workspace: Workspace,
    registry: Registry,
    scope: Scope,
    path: str,
    repo_id: str | None = None,
    description: str | None = None,
) -> Repository:
    resolved = workspace.resolve_repository_path(path)
    if not resolved.exists():
        raise ConfigError(f"Repository path does not exist: {resolved}")
    if not resolved.is_dir():
        raise ConfigError(f"Repository path is not a directory: {resolved}")
    if repo_id is None:
        repo_id = generate_repo_id(
            scope, resolved, {r.id for r in registry.repositories}
        )
    stored = path if not Path(path).expanduser().is_absolute() else str(resolved)
    try:
        return Repository(
            id=repo_id, path=stored, scope=scope, description=description
        )
    except ValueError as exc:
        raise ConfigError(str(exc)) from exc


def find_target_repo(
    registry: Registry, repo_id: str | None = None, scope: Scope | None = None
) -> Repository:
    """Pick the repository a one-off ``file add`` writes to.

    Raises:
        ConfigError: If neither selector is given or nothing matches.
    """
    if repo_id is not None:
        repo = registry.get(repo_id)
        if not repo.enabled:
            raise ConfigError(f"Repository '{repo_id}' is disabled")
        return repo
    if scope is not None:
        candidates = registry.enabled_repositories(scope=scope)
        if not candidates:
            raise ConfigError(f"No enabled {scope.value} repository registered")
        return candidates[0]
    raise ConfigError("Specify a target with --repo or --context")


def _update_exclude(workspace: Workspace, registry: Registry) -> None:
    path = vcs_exclude.rewrite(workspace, registry)
    if path is not None:
        logger.info("Refreshed ignore block in %s", path)


# ---------------------------------------------------------------------------
# init / repo
# ---------------------------------------------------------------------------


def init_workspace(
    workspace: Workspace,
    *,
    user: str | None = None,
    team: str | None = None,
    project: str | None = None,
) -> InitResult:
    """Create the Registry manifest and the working-copy directory.

    An existing manifest is left untouched (``created=False``).
    """
    if workspace.is_initialized:
        return InitResult(
            created=False, registry=load_registry(workspace.manifest_path)
        )

    registry = Registry()
    added: list[Repository] = []
    for scope, path in (
        (Scope.USER, user),
        (Scope.TEAM, team),
        (Scope.PROJECT, project),
    ):
        if path:
            repo = _new_repository(workspace, registry, scope, path)
            registry = registry.add(repo)
            added.append(repo)

    save_registry(workspace.manifest_path, registry)
    workspace.working_dir.mkdir(parents=True, exist_ok=True)
    _update_exclude(workspace, registry)
    logger.info("Initialized %s", workspace.manifest_path)
    return InitResult(created=True, registry=registry, added=added)


def add_repository(
    workspace: Workspace,
    scope: Scope,
    path: str,
    repo_id: str | None = None,
    description: str | None = None,
) -> Repository:
    """Register a repository; relative paths resolve against the root."""
    registry = load_registry(workspace.manifest_path)
    repo = _new_repository(workspace, registry, scope, path, repo_id, description)
    registry = registry.add(repo)
    save_registry(workspace.manifest_path, registry)
    _update_exclude(workspace, registry)
    return repo


def remove_repository(workspace: Workspace, repo_id: str) -> Repository:
    """Unregister a repository.  Its files are left alone."""
    registry = load_registry(workspace.manifest_path)
    repo = registry.get(repo_id)
    registry = registry.remove(repo_id)
    save_registry(workspace.manifest_path, registry)
    _update_exclude(workspace, registry)
    return repo


def set_repository_enabled(
    workspace: Workspace, repo_id: str, enabled: bool
) -> Repository:
    registry = load_registry(workspace.manifest_path)
    registry = registry.set_enabled(repo_id, enabled)
    save_registry(workspace.manifest_path, registry)
    _update_exclude(workspace, registry)
    return registry.get(repo_id)


# ---------------------------------------------------------------------------
# sync / status
# ---------------------------------------------------------------------------


def plan_sync(
    workspace: Workspace,
    scope: Scope | None = None,
    repo_id: str | None = None,
) -> tuple[Registry, SyncPlan]:
    registry = load_registry(workspace.manifest_path)
    planner = SyncPlanner(workspace, registry, scope=scope, repo_id=repo_id)
    return registry, planner.plan()


def apply_sync(
    workspace: Workspace,
    registry: Registry,
    plan: SyncPlan,
    mode: ApplyMode,
    resolver: ConflictResolver | None = None,
) -> ApplyReport:
    """Apply *plan*, then refresh the ignore block.

    A failed refresh does not discard the report: the error is recorded in
    ``followup_errors``, which makes the report partial.

    Raises:
        ConflictsRemainError: In ``auto`` mode when the plan has conflicts.
    """
    report = SyncExecutor(workspace, registry, resolver).apply(plan, mode)
    try:
        _update_exclude(workspace, registry)
    except (ConfigError, OSError) as exc:
        logger.warning(
            "Files were synced but the ignore block was not refreshed: %s", exc
        )
        report = report.model_copy(
            update={"followup_errors": [*report.followup_errors, str(exc)]}
        )
    return report


def exit_code_for(report: ApplyReport) -> ExitCode:
    if report.is_partial:
        return ExitCode.PARTIAL
    if report.unresolved:
        return ExitCode.CONFLICTS
    return ExitCode.SUCCESS


def repository_status(
    workspace: Workspace,
) -> tuple[list[RepositoryStatus], SyncPlan]:
    """Report every registered repository plus the pending plan.  Read-only."""
    registry = load_registry(workspace.manifest_path)
    plan = SyncPlanner(workspace, registry).plan()
    matcher = ExclusionMatcher(registry.sync_exclude)
    skipped = {s.repository_id for s in plan.skipped_repositories}

    statuses: list[RepositoryStatus] = []
    for repo in registry.repositories:
        root = workspace.resolve_repository_path(repo.path)
        reachable = check_reachable(root) is None
        status = RepositoryStatus(
            repository_id=repo.id,
            scope=repo.scope,
            path=str(root),
            enabled=repo.enabled,
            reachable=reachable,
        )
        if repo.enabled and reachable and repo.id not in skipped:
            try:
                status.file_count = len(walk_files(root, matcher))
            except SyncIOError as exc:
                logger.warning("Cannot count files in '%s': %s", repo.id, exc)
            status.pending = sum(
                1 for op in plan.pending if op.repository_id == repo.id
            )
        statuses.append(status)
    return statuses, plan


# ---------------------------------------------------------------------------
# file add / remove
# ---------------------------------------------------------------------------


def add_file(
    workspace: Workspace,
    path_str: str,
    repo_id: str | None = None,
    scope: Scope | None = None,
) -> AddFileResult:
    """Copy one local file into a repository.

    Raises:
        ConfigError: If the file is missing, outside the project, excluded,
            or no target repository matches.
        SyncIOError: If the target repository is unreachable.
    """
    registry = load_registry(workspace.manifest_path)
    try:
        local, rel = resolve_project_file(path_str, workspace.project_root)
    except ValueError as exc:
        raise ConfigError(str(exc)) from exc

    matcher = ExclusionMatcher(registry.sync_exclude)
    if matcher.is_sync_excluded(rel):
        raise ConfigError(f"{rel} matches a sync_exclude rule")

    repo = find_target_repo(registry, repo_id, scope)
    root = workspace.resolve_repository_path(repo.path)
    reason = check_reachable(root)
    if reason is not None:
        raise SyncIOError(
            f"Repository is unreachable: {reason}", path=root, repository_id=repo.id
        )

    dest = root / rel
    result = AddFileResult(relative_path=rel, repository_id=repo.id, destination=dest)
    if dest.is_file() and hash_file(dest) == hash_file(local):
        result.already_registered = True
        logger.info("%s already registered in '%s'", rel, repo.id)
    else:
        atomic_copy(local, dest)
        logger.info("Added %s to '%s'", rel, repo.id)

    _update_exclude(workspace, registry)
    return result


def remove_file(
    workspace: Workspace, path_str: str, delete_local: bool = False
) -> RemoveFileResult:
    """Remove a file from every enabled repository holding it.

    Empty directories left behind inside a repository are pruned.

    Raises:
        ConfigError: If the path is outside the project or no repository
            holds it.
    """
    registry = load_registry(workspace.manifest_path)
    try:
        local, rel = project_relative_path(path_str, workspace.project_root)
    except ValueError as exc:
        raise ConfigError(str(exc)) from exc

    result = RemoveFileResult(relative_path=rel)
    for repo in registry.enabled_repositories():
        root = workspace.resolve_repository_path(repo.path)
        if check_reachable(root) is not None:
            logger.warning("Repository '%s' is unreachable; skipping", repo.id)
            continue
        target = root / rel
        if not target.is_file():
            continue
        try:
            target.unlink()
        except OSError as exc:
            raise SyncIOError(
                f"Cannot remove file: {exc.strerror or exc}",
                path=target,
                repository_id=repo.id,
            ) from exc
        remove_empty_parents(target, root)
        result.removed_from.append(repo.id)
        logger.info("Removed %s from '%s'", rel, repo.id)

    if not result.removed_from:
        raise ConfigError(f"{rel} is not registered in any enabled repository")

    if delete_local and local.is_file():
        os.unlink(local)
        result.deleted_local = True

    _update_exclude(workspace, registry)
    return result
