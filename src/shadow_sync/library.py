"""Read-only queries over the local working copy: ``list`` and ``search``."""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import NamedTuple

from shadow_sync.file_handler import read_text_or_none
from shadow_sync.registry import Registry
from shadow_sync.sync.exclusion import ExclusionMatcher
from shadow_sync.sync.planner import walk_files
from shadow_sync.workspace import Workspace

logger = logging.getLogger(__name__)


class SearchMatch(NamedTuple):
    relative_path: str
    line_number: int
    text: str


def _documents(workspace: Workspace, registry: Registry) -> list[str]:
    if not workspace.working_dir.is_dir():
        return []
    matcher = ExclusionMatcher(registry.sync_exclude)
    prefix = workspace.working_dir_name.rstrip("/") + "/"
    return [
        rel[len(prefix):]
        for rel in walk_files(workspace.working_dir, matcher, prefix)
    ]


def list_documents(
    workspace: Workspace, registry: Registry
) -> dict[str, list[str]]:
    """Group working-copy documents by their first directory.

    Paths are relative to the working-copy directory.  Files directly in it
    are grouped under ``"."``.
    """
    groups: dict[str, list[str]] = defaultdict(list)
    for rel in _documents(workspace, registry):
        head, sep, _ = rel.partition("/")
        groups[head if sep else "."].append(rel)
    return dict(sorted(groups.items()))


def search_documents(
    workspace: Workspace, registry: Registry, query: str
) -> list[SearchMatch]:
    """Case-insensitive line search over text documents in the working copy.

    Binary files are skipped.
    """
    needle = query.lower()
    matches: list[SearchMatch] = []
    for rel in _documents(workspace, registry):
        path = workspace.working_dir / rel
        try:
            text = read_text_or_none(path)
        except OSError as exc:
            logger.warning("Cannot read %s: %s", path, exc)
            continue
        if text is None:
            logger.debug("Skipping binary file %s", path)
            continue
        for number, line in enumerate(text.splitlines(), start=1):
            if needle in line.lower():
                matches.append(SearchMatch(rel, number, line.strip()))
    return matches
