"""Worktree Linker: share a parent repository's registry with a worktree.

A linked git worktree has a ``.git`` *file* containing ``gitdir: <path>``;
that git directory holds a ``commondir`` file pointing at the main
repository's ``.git``.  ``inherit()`` uses it to find the parent project
and installs ``<worktree>/.shadow_sync -> <parent>/.shadow_sync``.  The
working-copy directory is never linked, so each worktree keeps its own.
"""

from __future__ import annotations

import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path

from shadow_sync.exceptions import (
    LinkAlreadyExistsError,
    NotAWorktreeError,
    ParentNotInitializedError,
)
from shadow_sync.workspace import CONFIG_DIR_NAME, DEFAULT_WORKING_DIR, MANIFEST_NAME

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InheritResult:
    """Outcome of :func:`inherit`.

    Attributes:
        parent_root: Project root of the main worktree.
        link_path: The ``.shadow_sync`` link inside the worktree.
        target: The parent's registry directory.
        already_linked: True if the correct link was already in place.
        replaced: True if an existing entry was replaced (``force``).
    """

    parent_root: Path
    link_path: Path
    target: Path
    already_linked: bool = False
    replaced: bool = False


# ---------------------------------------------------------------------------
# git metadata helpers
# ---------------------------------------------------------------------------


def parse_gitdir_file(dot_git: Path) -> Path:
    """Return the git directory named by a ``.git`` file.

    Raises:
        ValueError: If the file has no ``gitdir:`` line.
    """
    text = dot_git.read_text(encoding="utf-8")
    for line in text.splitlines():
        if line.startswith("gitdir:"):
            gitdir = Path(line[len("gitdir:"):].strip())
            if not gitdir.is_absolute():
                gitdir = dot_git.parent / gitdir
            return Path(os.path.normpath(gitdir))
    raise ValueError(f"{dot_git} has no 'gitdir:' line")


def read_commondir(git_dir: Path) -> Path | None:
    """Return the common git directory of a worktree git dir, if any."""
    commondir = git_dir / "commondir"
    if not commondir.is_file():
        return None
    common = Path(commondir.read_text(encoding="utf-8").strip())
    if not common.is_absolute():
        common = git_dir / common
    return Path(os.path.normpath(common))


def find_git_dir(project_root: Path) -> tuple[Path, Path] | None:
    """Locate the enclosing git checkout of *project_root*.

    Returns:
        Tuple of (worktree root, shared git directory), or ``None`` when
        *project_root* is not inside a git checkout.  For a linked
        worktree the shared directory is the common git directory.
    """
    for candidate in [project_root, *project_root.parents]:
        dot_git = candidate / ".git"
        if dot_git.is_dir():
            return (candidate, dot_git)
        if dot_git.is_file():
            try:
                git_dir = parse_gitdir_file(dot_git)
            except (OSError, ValueError) as exc:
                logger.debug("Ignoring unreadable %s: %s", dot_git, exc)
                return None
            return (candidate, read_commondir(git_dir) or git_dir)
    return None


def _same_path(a: Path, b: Path) -> bool:
    return os.path.realpath(a) == os.path.realpath(b)


# ---------------------------------------------------------------------------
# inherit
# ---------------------------------------------------------------------------


def inherit(
    project_root: Path,
    working_dir: str = DEFAULT_WORKING_DIR,
    force: bool = False,
) -> InheritResult:
    """Link a worktree's registry directory to its parent's.

    Every check runs before the filesystem is touched.

    Args:
        project_root: Root of the linked worktree.
        working_dir: Working-copy directory to create in the worktree.
        force: Replace an existing ``.shadow_sync`` that points elsewhere.

    Raises:
        NotAWorktreeError: If *project_root* is not a linked worktree.
        ParentNotInitializedError: If the parent has no manifest.
        LinkAlreadyExistsError: If ``.shadow_sync`` exists and *force* is
            not set.
    """
    dot_git = project_root / ".git"
    if not dot_git.is_file():
        raise NotAWorktreeError(
            f"{project_root} is not a linked git worktree (.git is not a file). "
            "Use 'shadow-sync init' for a main checkout."
        )
    try:
        git_dir = parse_gitdir_file(dot_git)
    except (OSError, ValueError) as exc:
        raise NotAWorktreeError(
            f"Cannot read {dot_git}: {exc}. Use 'shadow-sync init' instead."
        ) from exc
    common = read_commondir(git_dir)
    if common is None:
        raise NotAWorktreeError(
            f"{git_dir} has no commondir; {project_root} is not a linked worktree. "
            "Use 'shadow-sync init' instead."
        )

    parent_root = common.parent
    target = parent_root / CONFIG_DIR_NAME
    if not (target / MANIFEST_NAME).is_file():
        raise ParentNotInitializedError(
            f"Parent repository {parent_root} is not initialized "
            f"({target / MANIFEST_NAME} not found). Run 'shadow-sync init' there first."
        )

    link = project_root / CONFIG_DIR_NAME
    exists = link.is_symlink() or link.exists()
    if exists and link.is_symlink() and _same_path(link, target):
        logger.info("%s already links to %s", link, target)
        (project_root / working_dir).mkdir(parents=True, exist_ok=True)
        return InheritResult(
            parent_root=parent_root,
            link_path=link,
            target=target,
            already_linked=True,
        )
    if exists and not force:
        raise LinkAlreadyExistsError(
            f"{link} already exists and does not link to {target}. "
            "Use --force to replace it."
        )

    if exists:
        if link.is_dir() and not link.is_symlink():
            shutil.rmtree(link)
        else:
            link.unlink()
        logger.warning("Replaced existing %s", link)

    link.symlink_to(target, target_is_directory=True)
    (project_root / working_dir).mkdir(parents=True, exist_ok=True)
    logger.info("Linked %s -> %s", link, target)
    return InheritResult(
        parent_root=parent_root,
        link_path=link,
        target=target,
        replaced=exists,
    )
