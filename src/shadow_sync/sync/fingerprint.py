"""Content fingerprints for files taking part in a sync.

The hash is SHA-256 over the raw bytes, so two copies of a file on
different machines hash identically regardless of their timestamps.  The
modification time is carried alongside for direction decisions only.
"""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import NamedTuple

from shadow_sync.exceptions import SyncIOError

_HASH_CHUNK_SIZE = 65536


class Fingerprint(NamedTuple):
    """Hash and modification time of one file.

    Attributes:
        hash: SHA-256 hex digest of the file content.
        mtime: Modification time in seconds (float).
        mtime_ns: Modification time in nanoseconds.
    """

    hash: str
    mtime: float
    mtime_ns: int

    @property
    def mtime_seconds(self) -> int:
        """Modification time truncated to whole seconds."""
        return self.mtime_ns // 1_000_000_000


def hash_file(path: Path) -> str:
    """Compute the SHA-256 hex digest of *path*, streaming in chunks."""
    sha = hashlib.sha256()
    with open(path, "rb") as fh:
        for chunk in iter(lambda: fh.read(_HASH_CHUNK_SIZE), b""):
            sha.update(chunk)
    return sha.hexdigest()


def fingerprint(path: Path, *, repository_id: str | None = None) -> Fingerprint:
    """Return the :class:`Fingerprint` of *path*.

    Raises:
        SyncIOError: If the file cannot be stat'ed or read.
    """
    try:
        st = path.stat()
        digest = hash_file(path)
    except OSError as exc:
        raise SyncIOError(
            f"Cannot read file: {exc.strerror or exc}",
            path=path,
            repository_id=repository_id,
        ) from exc
    return Fingerprint(hash=digest, mtime=st.st_mtime, mtime_ns=st.st_mtime_ns)


def fingerprint_or_none(
    path: Path, *, repository_id: str | None = None
) -> Fingerprint | None:
    """Like :func:`fingerprint` but returns ``None`` for a missing file."""
    if not path.is_file():
        return None
    return fingerprint(path, repository_id=repository_id)
