"""Project layout and configuration resolution.

A *workspace* is one project root plus the two directories the engine
cares about:

- the registry directory (``.shadow_sync/``), which holds the manifest and
  may be a symlink to a parent repository's registry directory when the
  project is a linked git worktree;
- the working-copy directory (``knowledge/`` by default), which always
  belongs to this project root.

``open_workspace()`` is the single place where the registry directory is
resolved.  It follows at most one level of symlink.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

CONFIG_DIR_NAME = ".shadow_sync"
MANIFEST_NAME = "repositories.yml"
DEFAULT_WORKING_DIR = "knowledge"


@dataclass(frozen=True)
class Workspace:
    """Resolved locations for one project root.

    Attributes:
        project_root: Absolute project root.
        config_dir: Resolved registry directory (symlink already followed).
        working_dir_name: Working-copy directory relative to the root.
    """

    project_root: Path
    config_dir: Path
    working_dir_name: str = DEFAULT_WORKING_DIR

    @property
    def manifest_path(self) -> Path:
        return self.config_dir / MANIFEST_NAME

    @property
    def working_dir(self) -> Path:
        return self.project_root / self.working_dir_name

    @property
    def is_initialized(self) -> bool:
        return self.manifest_path.is_file()

    def resolve_repository_path(self, path: str) -> Path:
        """Resolve a manifest path (absolute or root-relative)."""
        p = Path(path).expanduser()
        if not p.is_absolute():
            p = self.project_root / p
        return Path(os.path.normpath(p))

    def local_path(self, relative_path: str) -> Path:
        return self.project_root / relative_path


def resolve_config_dir(project_root: Path) -> Path:
    """Return the real registry directory for *project_root*.

    If ``.shadow_sync`` is a symlink, its target is returned (relative
    targets are interpreted against the project root).  Only one level is
    followed; a chain of links is not chased further.
    """
    link = project_root / CONFIG_DIR_NAME
    if not link.is_symlink():
        return link
    target = Path(os.readlink(link))
    if not target.is_absolute():
        target = link.parent / target
    resolved = Path(os.path.normpath(target))
    logger.debug("Registry directory %s -> %s", link, resolved)
    return resolved


def find_project_root(start: Path) -> Path:
    """Find the project root at or above *start*.

    The nearest directory holding either ``.shadow_sync`` or ``.git`` wins,
    so a worktree nested inside its parent checkout is its own root.
    Falls back to *start* itself.
    """
    start = start.resolve()
    for candidate in (start, *start.parents):
        for marker in (CONFIG_DIR_NAME, ".git"):
            entry = candidate / marker
            if entry.exists() or entry.is_symlink():
                return candidate
    return start


def open_workspace(
    project_root: Path, working_dir: str = DEFAULT_WORKING_DIR
) -> Workspace:
    """Resolve the workspace for *project_root* once, at startup."""
    root = project_root.resolve()
    return Workspace(
        project_root=root,
        config_dir=resolve_config_dir(root),
        working_dir_name=working_dir,
    )
