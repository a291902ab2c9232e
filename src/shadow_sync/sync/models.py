"""Pydantic models for the multi-scope sync engine.

Defines the data contracts shared by the planner, executor and reporter:

- ``SyncKind``: Enum of per-file operations.
- ``SyncOperation``: One planned operation for a (path, repository) pair.
- ``SyncPlan``: The immutable result of planning.
- ``ApplyMode`` / ``Resolution``: How the executor treats conflicts.
- ``ApplyResult`` / ``ApplyReport``: Outcome of applying a plan.

All models are frozen.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel

from shadow_sync.registry import Scope


class SyncKind(str, Enum):
    """Possible operations for a path."""

    PULL = "pull"
    PUSH = "push"
    CONFLICT = "conflict"
    SKIP = "skip"


class ApplyMode(str, Enum):
    """How the executor treats conflicts."""

    INTERACTIVE = "interactive"
    AUTO = "auto"
    FORCE = "force"


class Resolution(str, Enum):
    """Outcome chosen for a single conflict."""

    LOCAL = "local"
    REMOTE = "remote"
    SKIP = "skip"


class SyncOperation(BaseModel):
    """One planned operation.

    ``repository_id`` is the source of a Pull and the target of a Push,
    Conflict or Skip; ``source_repository_id`` and ``target_repository_id``
    expose whichever applies.

    Attributes:
        relative_path: Project-relative POSIX path.
        kind: Planned operation.
        repository_id: Repository on the remote side.
        scope: Scope of that repository.
        local_hash: SHA-256 of the local file, ``None`` if absent.
        remote_hash: SHA-256 of the repository copy, ``None`` if absent.
        local_mtime_ns: Local modification time in nanoseconds.
        remote_mtime_ns: Repository modification time in nanoseconds.
        note: Optional explanation shown in verbose previews.
    """

    relative_path: str
    kind: SyncKind
    repository_id: str
    scope: Scope
    local_hash: str | None = None
    remote_hash: str | None = None
    local_mtime_ns: int | None = None
    remote_mtime_ns: int | None = None
    note: str | None = None

    model_config = {"frozen": True}

    @property
    def source_repository_id(self) -> str | None:
        return self.repository_id if self.kind == SyncKind.PULL else None

    @property
    def target_repository_id(self) -> str | None:
        return None if self.kind == SyncKind.PULL else self.repository_id

    @property
    def local_mtime(self) -> int | None:
        """Local modification time in whole seconds."""
        if self.local_mtime_ns is None:
            return None
        return self.local_mtime_ns // 1_000_000_000

    @property
    def remote_mtime(self) -> int | None:
        """Repository modification time in whole seconds."""
        if self.remote_mtime_ns is None:
            return None
        return self.remote_mtime_ns // 1_000_000_000


class ShadowedPath(BaseModel):
    """A lower-precedence repository copy hidden by ``winner_id``."""

    relative_path: str
    repository_id: str
    winner_id: str

    model_config = {"frozen": True}


class UnsynchronizedPath(BaseModel):
    """A local file with no repository eligible to receive it."""

    relative_path: str
    reason: str

    model_config = {"frozen": True}


class SkippedRepository(BaseModel):
    """A selected repository that could not be used for this run."""

    repository_id: str
    path: str
    reason: str

    model_config = {"frozen": True}


class FileError(BaseModel):
    """A per-file failure recorded while planning.

    ``repository_id`` is ``None`` when the local copy was unreadable.
    """

    relative_path: str
    repository_id: str | None = None
    message: str

    model_config = {"frozen": True}


class SyncPlan(BaseModel):
    """Immutable result of planning.

    The hashes stored on each operation are the snapshot the executor
    re-validates before writing.

    Attributes:
        operations: Operations sorted by path then repository id.
        shadowed: Repository copies hidden by a higher-precedence copy.
        unsynchronized: Local files that no repository can receive.
        skipped_repositories: Selected repositories left out of this run.
        errors: Per-file fingerprint failures.
        push_target_id: Project repository receiving locally-new files.
        created_at: ISO 8601 timestamp when the plan was built.
    """

    operations: list[SyncOperation] = []
    shadowed: list[ShadowedPath] = []
    unsynchronized: list[UnsynchronizedPath] = []
    skipped_repositories: list[SkippedRepository] = []
    errors: list[FileError] = []
    push_target_id: str | None = None
    created_at: str

    model_config = {"frozen": True}

    @property
    def pulls(self) -> list[SyncOperation]:
        return [op for op in self.operations if op.kind == SyncKind.PULL]

    @property
    def pushes(self) -> list[SyncOperation]:
        return [op for op in self.operations if op.kind == SyncKind.PUSH]

    @property
    def conflicts(self) -> list[SyncOperation]:
        return [
            op for op in self.operations if op.kind == SyncKind.CONFLICT
        ]

    @property
    def skips(self) -> list[SyncOperation]:
        return [op for op in self.operations if op.kind == SyncKind.SKIP]

    @property
    def pending(self) -> list[SyncOperation]:
        """Operations that would change something (everything but Skip)."""
        return [op for op in self.operations if op.kind != SyncKind.SKIP]

    @property
    def in_sync(self) -> bool:
        """True when nothing is pending and every local file has a home."""
        return not self.pending and not self.unsynchronized

    @property
    def is_partial(self) -> bool:
        """True when a repository or a file had to be left out."""
        return bool(self.skipped_repositories or self.errors)


class ApplyResult(BaseModel):
    """Outcome of applying one planned operation.

    Attributes:
        relative_path: Project-relative POSIX path.
        kind: Operation as planned.
        repository_id: Repository written to or read from.
        performed: Transfer actually carried out (``PULL``/``PUSH``), or
            ``None`` when nothing was copied.
        success: False if the operation failed.
        error: Error message when ``success`` is False.
        resolution: How a conflict was resolved, ``None`` otherwise.
    """

    relative_path: str
    kind: SyncKind
    repository_id: str | None = None
    performed: SyncKind | None = None
    success: bool
    error: str | None = None
    resolution: Resolution | None = None

    model_config = {"frozen": True}


class ApplyReport(BaseModel):
    """Aggregate report for one apply run.

    Attributes:
        mode: Conflict handling mode used.
        results: One result per planned operation.
        skipped_repositories: Carried over from the plan.
        plan_errors: Per-file planning failures carried over from the plan.
        followup_errors: Failures after the transfers, such as an ignore
            block that could not be refreshed.
        started_at: ISO 8601 timestamp when the apply started.
        completed_at: ISO 8601 timestamp when the apply finished.
    """

    mode: ApplyMode
    results: list[ApplyResult] = []
    skipped_repositories: list[SkippedRepository] = []
    plan_errors: list[FileError] = []
    followup_errors: list[str] = []
    started_at: str
    completed_at: str | None = None

    model_config = {"frozen": True}

    @property
    def pulled(self) -> list[ApplyResult]:
        """Results that copied a repository file into the working copy."""
        return [
            r
            for r in self.results
            if r.success and r.performed == SyncKind.PULL
        ]

    @property
    def pushed(self) -> list[ApplyResult]:
        """Results that copied a local file into a repository."""
        return [
            r
            for r in self.results
            if r.success and r.performed == SyncKind.PUSH
        ]

    @property
    def unresolved(self) -> list[ApplyResult]:
        """Conflicts left untouched."""
        return [
            r
            for r in self.results
            if r.success
            and r.kind == SyncKind.CONFLICT
            and r.performed is None
        ]

    @property
    def skipped(self) -> list[ApplyResult]:
        """Results where the plan already found both sides identical."""
        return [r for r in self.results if r.kind == SyncKind.SKIP]

    @property
    def errors(self) -> list[ApplyResult]:
        """Results where success is False."""
        return [r for r in self.results if not r.success]

    @property
    def is_partial(self) -> bool:
        return bool(
            self.errors
            or self.skipped_repositories
            or self.plan_errors
            or self.followup_errors
        )
