"""Shared pytest fixtures for shadow-sync tests."""

import os
from pathlib import Path

import pytest
from dotenv import load_dotenv

from shadow_sync.registry import Registry, Repository, Scope, save_registry
from shadow_sync.workspace import open_workspace

load_dotenv()

# A fixed, whole-second base time so tests control second-level ordering.
BASE_NS = 1_700_000_000 * 1_000_000_000


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Keep developer environment variables out of the tests."""
    for name in (
        "SHADOW_SYNC_ROOT",
        "SHADOW_SYNC_WORKING_DIR",
        "SHADOW_SYNC_DEBUG",
        "SHADOW_SYNC_CONFIG",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def project(tmp_path):
    """A project root with an empty ``knowledge/`` working copy."""
    root = tmp_path / "project"
    (root / "knowledge").mkdir(parents=True)
    return root


@pytest.fixture
def workspace(project):
    return open_workspace(project)


@pytest.fixture
def repo_dirs(tmp_path):
    """One empty directory per scope, outside the project."""
    dirs = {}
    for scope in Scope:
        d = tmp_path / f"{scope.value}-repo"
        d.mkdir()
        dirs[scope] = d
    return dirs


@pytest.fixture
def write():
    """Factory fixture: write a file and pin its modification time.

    ``write(path, content, seconds=0, ns=0)`` sets the mtime to
    ``BASE_NS + seconds * 1e9 + ns``.
    """

    def _write(path: Path, content: str, seconds: int = 0, ns: int = 0) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content.encode("utf-8"))
        stamp = BASE_NS + seconds * 1_000_000_000 + ns
        os.utime(path, ns=(stamp, stamp))
        return path

    return _write


@pytest.fixture
def make_registry(workspace, repo_dirs):
    """Factory fixture: save a manifest registering the given scopes.

    ``make_registry(Scope.TEAM, Scope.PROJECT)`` registers ``team-repo``
    and ``project-repo`` (in that order) and returns the Registry.
    """

    def _make(*scopes: Scope, **kwargs) -> Registry:
        repos = [
            Repository(id=f"{s.value}-repo", path=str(repo_dirs[s]), scope=s)
            for s in scopes
        ]
        registry = Registry(repositories=repos, **kwargs)
        save_registry(workspace.manifest_path, registry)
        return registry

    return _make
