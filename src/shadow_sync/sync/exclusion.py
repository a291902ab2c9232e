"""Regex exclusion rules evaluated at path-segment boundaries.

Two independent rule sets are kept in the Registry manifest:

- ``sync_exclude`` -- paths the planner never reads, hashes or reports.
- ``ignore_exclude`` -- paths never written to the VCS ignore block.

Paths are project-relative with forward slashes.  A rule may start
matching at the beginning of any segment and must stop at the end of a
segment, so ``\\.git`` excludes ``.git/`` at any depth but not
``.github/``.  A rule ending in ``/`` matches a directory prefix.  Rules
anchored with ``^`` only match from the project root.  Directories are
tested with a trailing ``/``.
"""

from __future__ import annotations

import re
from collections.abc import Sequence


def compile_rule(rule: str) -> re.Pattern[str]:
    """Compile one rule so matches end on a segment boundary.

    Raises:
        re.error: If *rule* is not a valid regular expression.
    """
    if rule.endswith("/"):
        return re.compile(rule)
    return re.compile(f"(?:{rule})(?=/|$)")


def _segment_starts(path: str) -> list[int]:
    starts = [0]
    for i, ch in enumerate(path):
        if ch == "/" and i + 1 < len(path):
            starts.append(i + 1)
    return starts


def _matches_any(patterns: Sequence[re.Pattern[str]], path: str) -> bool:
    if not patterns:
        return False
    for pos in _segment_starts(path):
        for pattern in patterns:
            # ``^`` only matches at the real start of the string, even
            # when ``pos`` is greater than zero.
            if pattern.match(path, pos):
                return True
    return False


def normalize_path(path: str) -> str:
    """Normalise to forward slashes without leading ``./`` or ``/``."""
    norm = path.replace("\\", "/")
    while norm.startswith("./"):
        norm = norm[2:]
    return norm.lstrip("/")


class ExclusionMatcher:
    """Evaluate paths against the sync and ignore exclusion rule sets.

    Args:
        sync_exclude: Rules for paths the planner must never touch.
        ignore_exclude: Rules for paths kept out of the VCS ignore block.
    """

    def __init__(
        self,
        sync_exclude: Sequence[str] = (),
        ignore_exclude: Sequence[str] = (),
    ) -> None:
        self._sync = [compile_rule(r) for r in sync_exclude]
        self._ignore = [compile_rule(r) for r in ignore_exclude]

    def is_sync_excluded(self, path: str, *, is_dir: bool = False) -> bool:
        """True if *path* matches any ``sync_exclude`` rule."""
        return _matches_any(self._sync, self._subject(path, is_dir))

    def is_ignore_excluded(self, path: str, *, is_dir: bool = False) -> bool:
        """True if *path* matches any ``ignore_exclude`` rule."""
        return _matches_any(self._ignore, self._subject(path, is_dir))

    @staticmethod
    def _subject(path: str, is_dir: bool) -> str:
        norm = normalize_path(path)
        if is_dir and not norm.endswith("/"):
            norm += "/"
        return norm
