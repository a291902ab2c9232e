"""VCS Exclusion Writer: keep synced files out of the host repository.

Files that arrive from shadow repositories must never be committed to the
project's own git repository.  They are listed in a marker-delimited block
of ``.git/info/exclude`` (the shared ``info/exclude`` of the common git
directory when the project is a linked worktree)::

    # BEGIN shadow-sync managed block
    # DO NOT EDIT: regenerated by shadow-sync
    /.shadow_sync
    /knowledge/
    /CLAUDE.md
    # END shadow-sync managed block

Text outside the markers is preserved byte-for-byte.
"""

from __future__ import annotations

import logging
import os
import tempfile
from collections.abc import Iterable
from pathlib import Path

from shadow_sync.exceptions import ConfigError
from shadow_sync.registry import Registry
from shadow_sync.sync.exclusion import ExclusionMatcher
from shadow_sync.sync.planner import check_reachable
from shadow_sync.workspace import CONFIG_DIR_NAME, Workspace
from shadow_sync.worktree import find_git_dir

logger = logging.getLogger(__name__)

BEGIN_MARKER = "# BEGIN shadow-sync managed block"
END_MARKER = "# END shadow-sync managed block"
NOTICE = "# DO NOT EDIT: regenerated by shadow-sync"


def render_exclusion_block(old_text: str, entries: Iterable[str]) -> str:
    """Return *old_text* with the managed block replaced by *entries*.

    The block is appended when absent.  Pure: no I/O.

    Raises:
        ConfigError: If a BEGIN marker has no matching END marker.
    """
    lines = old_text.splitlines(keepends=True)
    begin = end = None
    for index, line in enumerate(lines):
        stripped = line.rstrip("\r\n")
        if begin is None and stripped == BEGIN_MARKER:
            begin = index
        elif begin is not None and stripped == END_MARKER:
            end = index
            break

    if begin is not None and end is None:
        raise ConfigError(
            f"Managed block is missing '{END_MARKER}'; fix the exclude file by hand"
        )

    block_lines = [BEGIN_MARKER, NOTICE, *entries, END_MARKER]
    block = "".join(f"{line}\n" for line in block_lines)

    if begin is None:
        prefix = old_text
        if prefix and not prefix.endswith("\n"):
            prefix += "\n"
        return prefix + block
    return "".join(lines[:begin]) + block + "".join(lines[end + 1:])


def collect_entries(
    workspace: Workspace, registry: Registry, prefix: str = ""
) -> list[str]:
    """Compute the sorted, de-duplicated block entries.

    Args:
        workspace: Resolved project layout.
        registry: Loaded Registry.
        prefix: Path of the project root inside the git checkout, with a
            trailing ``/`` (empty when they coincide).
    """
    matcher = ExclusionMatcher(registry.sync_exclude, registry.ignore_exclude)
    candidates: list[tuple[str, bool]] = [
        (CONFIG_DIR_NAME, False),
        (workspace.working_dir_name.rstrip("/"), True),
    ]

    for repo in registry.enabled_repositories():
        root = workspace.resolve_repository_path(repo.path)
        if check_reachable(root) is not None:
            continue
        try:
            names = os.listdir(root)
        except OSError as exc:
            logger.warning("Cannot list repository '%s': %s", repo.id, exc)
            continue
        for name in names:
            is_dir = (root / name).is_dir()
            if matcher.is_sync_excluded(name, is_dir=is_dir):
                continue
            candidates.append((name, is_dir))

    entries: set[str] = set()
    for name, is_dir in candidates:
        if matcher.is_ignore_excluded(name, is_dir=is_dir):
            continue
        entries.add(f"/{prefix}{name}" + ("/" if is_dir else ""))
    return sorted(entries)


def exclude_file_path(project_root: Path) -> tuple[Path, str] | None:
    """Return (exclude file, project prefix), or ``None`` outside git."""
    found = find_git_dir(project_root)
    if found is None:
        return None
    git_root, git_dir = found
    rel = project_root.resolve().relative_to(git_root.resolve()).as_posix()
    prefix = "" if rel == "." else rel + "/"
    return (git_dir / "info" / "exclude", prefix)


def rewrite(workspace: Workspace, registry: Registry) -> Path | None:
    """Regenerate the managed block.

    Returns:
        The exclude file path if it was written, ``None`` if it was already
        current or the project is not inside a git checkout.

    Raises:
        ConfigError: If the existing block is malformed.
    """
    located = exclude_file_path(workspace.project_root)
    if located is None:
        logger.debug(
            "%s is not inside a git repository; skipping exclude file",
            workspace.project_root,
        )
        return None
    exclude_path, prefix = located

    old_text = ""
    if exclude_path.is_file():
        # bytes, so CRLF line endings survive untouched
        old_text = exclude_path.read_bytes().decode(
            "utf-8", errors="surrogateescape"
        )
    new_text = render_exclusion_block(
        old_text, collect_entries(workspace, registry, prefix)
    )
    if new_text == old_text:
        logger.debug("%s is up to date", exclude_path)
        return None

    exclude_path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=str(exclude_path.parent), suffix=".tmp")
    try:
        with os.fdopen(
            fd, "w", encoding="utf-8", errors="surrogateescape", newline=""
        ) as fh:
            fh.write(new_text)
        os.replace(tmp_path, exclude_path)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise
    logger.info("Updated %s", exclude_path)
    return exclude_path
