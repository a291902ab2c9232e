"""Checks for user-supplied repository ids and project-relative paths.

Each ``validate_*`` function returns ``(ok, reason)`` instead of raising, so
callers can choose the exception type that fits their layer.
"""

import re

_REPO_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")
_DRIVE_PREFIX = re.compile(r"^[A-Za-z]:[\\/]")


def format_validation_error(field_name: str, reason: str) -> str:
    return f"{field_name} {reason}"


def validate_repository_id(repo_id: str) -> tuple[bool, str]:
    """Accept ids such as ``team-notes`` or ``user.v2``.

    An id starts with a letter or digit and continues with letters, digits,
    ``.``, ``_`` or ``-``.
    """
    if not repo_id or not repo_id.strip():
        return False, format_validation_error("Repository id", "cannot be empty")

    if not _REPO_ID_PATTERN.match(repo_id):
        return False, format_validation_error(
            "Repository id",
            f"'{repo_id}' may only contain letters, digits, '.', '_' and '-'",
        )

    return True, ""


def validate_relative_path(path: str) -> tuple[bool, str]:
    """Reject paths that could leave the project root.

    *path* must already use ``/`` separators.  Absolute paths, drive
    prefixes, ``..`` segments and doubled slashes are refused.
    """
    if not path or not path.strip():
        return False, format_validation_error("Path", "cannot be empty")

    if path.startswith("/") or _DRIVE_PREFIX.match(path):
        return False, format_validation_error("Path", f"'{path}' must be relative")

    segments = path.split("/")
    if ".." in segments:
        return False, format_validation_error("Path", f"'{path}' cannot contain '..'")
    if "" in segments:
        return False, format_validation_error(
            "Path", f"'{path}' cannot have empty path segments"
        )

    return True, ""
