"""File handler module: path validation, encoding-aware reads, atomic copies.

Provides the low-level file I/O used by the executor and the one-off
``file`` commands.  Every write goes through ``atomic_copy()`` so a reader
never observes a half-written document.
"""

import logging
import os
import shutil
import tempfile
from pathlib import Path

from charset_normalizer import from_bytes

from shadow_sync.registry import TEMP_FILE_SUFFIX

logger = logging.getLogger(__name__)

# =============================================================================
# Path Validation
# =============================================================================


def project_relative_path(path_str: str, project_root: Path) -> tuple[Path, str]:
    """Map a command-line path onto the project.  The file need not exist.

    Args:
        path_str: Absolute path, or path relative to the current directory.
        project_root: Absolute project root.

    Returns:
        Tuple of (absolute_path, project-relative POSIX path).

    Raises:
        ValueError: If the path is outside the project root or is the root
            itself.
    """
    path = Path(path_str).expanduser()
    if not path.is_absolute():
        path = Path.cwd() / path
    absolute = Path(os.path.normpath(path))
    if absolute.parent.exists():
        absolute = absolute.parent.resolve() / absolute.name
    root = project_root.resolve()
    if not absolute.is_relative_to(root) or absolute == root:
        raise ValueError(
            f"File is outside the project directory: {absolute} not under {root}"
        )
    return (absolute, absolute.relative_to(root).as_posix())


def resolve_project_file(path_str: str, project_root: Path) -> tuple[Path, str]:
    """Validate an existing local file given on the command line.

    Args:
        path_str: Absolute path, or path relative to the current directory.
        project_root: Absolute project root.

    Returns:
        Tuple of (absolute_path, project-relative POSIX path).

    Raises:
        ValueError: If the file doesn't exist, is not a file, or is outside
            the project root.
    """
    absolute, rel = project_relative_path(path_str, project_root)
    if not absolute.exists():
        raise ValueError(f"File not found: {path_str}")
    if not absolute.is_file():
        raise ValueError(f"Path is not a file: {path_str}")
    return (absolute, rel)


# =============================================================================
# File Read
# =============================================================================


def read_text_or_none(path: Path) -> str | None:
    """Return the decoded text of *path*, or ``None`` for binary content.

    A file is treated as binary when it contains NUL bytes or when
    charset-normalizer finds no plausible encoding.
    """
    raw = path.read_bytes()
    if not raw:
        return ""
    if b"\x00" in raw:
        return None
    result = from_bytes(raw).best()
    if result is None:
        return None
    return str(result)


# =============================================================================
# Atomic Copy / Removal
# =============================================================================


def atomic_copy(src: Path, dest: Path) -> None:
    """Copy *src* over *dest* atomically, preserving the modification time.

    The bytes are written to a temporary file in the destination directory,
    metadata is copied, then ``os.replace()`` moves it into place.  Parent
    directories are created as needed.

    Raises:
        OSError: If reading, writing, or the final rename fails.  The
            temporary file is removed in that case.
    """
    dest.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(
        dir=str(dest.parent),
        prefix=f".{dest.name}.",
        suffix=TEMP_FILE_SUFFIX,
    )
    try:
        with os.fdopen(fd, "wb") as out, open(src, "rb") as inp:
            shutil.copyfileobj(inp, out)
        shutil.copystat(src, tmp_path)
        os.replace(tmp_path, dest)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise
    logger.debug("Copied %s -> %s", src, dest)


def remove_empty_parents(path: Path, stop_at: Path) -> None:
    """Remove empty directories from ``path.parent`` up to *stop_at*.

    *stop_at* itself is never removed.
    """
    current = path.parent
    stop = stop_at.resolve()
    while current.resolve() != stop and current.resolve().is_relative_to(stop):
        try:
            current.rmdir()
        except OSError:
            # not empty
            break
        logger.debug("Removed empty directory %s", current)
        current = current.parent
