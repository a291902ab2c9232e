"""Conflict resolution strategies for the sync executor.

A conflict is a path whose hashes differ while both copies carry the same
modification second.  Resolvers decide which side wins:

- ``NewerWinsResolver``: Compares nanosecond timestamps (``--force``).
- ``PromptResolver``: Delegates to a callback, typically an interactive
  prompt showing a diff.
- ``StrictResolver``: Never resolves; every conflict stays unresolved.

The ``create_resolver()`` factory maps an ``ApplyMode`` to a resolver.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path
from typing import Protocol

from shadow_sync.sync.models import ApplyMode, Resolution, SyncOperation

logger = logging.getLogger(__name__)

PromptCallback = Callable[[SyncOperation, Path, Path], Resolution]


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


class ConflictResolver(Protocol):
    """Anything that can turn a conflict into a decision."""

    def resolve(
        self, operation: SyncOperation, local_path: Path, remote_path: Path
    ) -> Resolution:
        """Determine the resolution for a conflict.

        Args:
            operation: The planned Conflict operation.
            local_path: Absolute path of the working copy file.
            remote_path: Absolute path of the repository copy.

        Returns:
            ``Resolution.LOCAL``, ``Resolution.REMOTE`` or ``Resolution.SKIP``.
        """
        ...  # pragma: no cover


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------


class NewerWinsResolver:
    """Resolve by nanosecond modification time recorded in the plan.

    Identical nanosecond timestamps cannot be ordered and are skipped.
    """

    def resolve(
        self, operation: SyncOperation, local_path: Path, remote_path: Path
    ) -> Resolution:
        local_ns = operation.local_mtime_ns or 0
        remote_ns = operation.remote_mtime_ns or 0
        if local_ns > remote_ns:
            return Resolution.LOCAL
        if remote_ns > local_ns:
            return Resolution.REMOTE
        logger.warning(
            "Cannot order %s: identical timestamps (%d ns)",
            operation.relative_path,
            local_ns,
        )
        return Resolution.SKIP


class PromptResolver:
    """Ask a callback for every conflict.

    Args:
        prompt: Called as ``prompt(operation, local_path, remote_path)``.
    """

    def __init__(self, prompt: PromptCallback) -> None:
        self.prompt = prompt

    def resolve(
        self, operation: SyncOperation, local_path: Path, remote_path: Path
    ) -> Resolution:
        return self.prompt(operation, local_path, remote_path)


class StrictResolver:
    """Leave every conflict unresolved."""

    def resolve(
        self, operation: SyncOperation, local_path: Path, remote_path: Path
    ) -> Resolution:
        return Resolution.SKIP


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

_STRATEGY_MAP: dict[ApplyMode, type] = {
    ApplyMode.FORCE: NewerWinsResolver,
    ApplyMode.INTERACTIVE: StrictResolver,
    ApplyMode.AUTO: StrictResolver,
}


def create_resolver(
    mode: ApplyMode | str, prompt: PromptCallback | None = None
) -> ConflictResolver:
    """Create a conflict resolver for an apply mode.

    Args:
        mode: ``"interactive"``, ``"auto"`` or ``"force"``.
        prompt: Callback used in interactive mode; without one, interactive
            conflicts stay unresolved.

    Returns:
        A ``ConflictResolver`` implementation instance.

    Raises:
        ValueError: If the mode string is not recognised.
    """
    try:
        mode = ApplyMode(mode)
    except ValueError:
        raise ValueError(
            f"Unknown apply mode: '{mode}'. Valid modes: {sorted(m.value for m in ApplyMode)}"
        ) from None
    if mode == ApplyMode.INTERACTIVE and prompt is not None:
        return PromptResolver(prompt)
    return _STRATEGY_MAP[mode]()  # type: ignore[return-value]
