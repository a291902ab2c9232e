"""Exceptions for shadow-sync.

Every failure the command surface can report derives from
``ShadowSyncError`` so the CLI can map it to an exit code.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path


class ShadowSyncError(Exception):
    """Base class for all shadow-sync errors."""


class ConfigError(ShadowSyncError):
    """Manifest missing, malformed, or referring to an invalid path."""


class NotInitializedError(ConfigError):
    """No Registry manifest exists for the project."""

    def __init__(self, manifest_path: Path) -> None:
        self.manifest_path = manifest_path
        super().__init__(
            f"Not initialized: {manifest_path} not found. "
            "Run 'shadow-sync init' (or 'shadow-sync inherit' inside a worktree)."
        )


class SyncIOError(ShadowSyncError):
    """A read or write failed for one file or one repository."""

    def __init__(
        self,
        message: str,
        *,
        path: Path | str | None = None,
        repository_id: str | None = None,
    ) -> None:
        self.path = str(path) if path is not None else None
        self.repository_id = repository_id
        details: list[str] = []
        if path is not None:
            details.append(f"path={self.path}")
        if repository_id is not None:
            details.append(f"repository={repository_id}")
        if details:
            message = f"{message} ({', '.join(details)})"
        super().__init__(message)


class StalePlanError(SyncIOError):
    """A file changed between planning and applying."""


class ConflictError(ShadowSyncError):
    """Hashes differ and timestamps cannot be ordered."""


class ConflictsRemainError(ConflictError):
    """Raised when a plan still holds conflicts and nothing resolved them."""

    def __init__(self, paths: Sequence[str]) -> None:
        self.paths = list(paths)
        super().__init__(
            f"{len(self.paths)} unresolved conflict(s): {', '.join(self.paths)}. "
            "Re-run with --force to resolve by timestamp."
        )


class LinkerError(ShadowSyncError):
    """Worktree configuration link could not be installed."""


class NotAWorktreeError(LinkerError):
    """The project root is not a linked git worktree."""


class ParentNotInitializedError(LinkerError):
    """The worktree's parent repository has no Registry manifest."""


class LinkAlreadyExistsError(LinkerError):
    """A different configuration directory or link is already in place."""
