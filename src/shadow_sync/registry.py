"""Repository Registry: the durable record of shadow repositories.

The Registry is stored as one YAML manifest per project
(``.shadow_sync/repositories.yml``)::

    version: "1.0"
    sync_exclude: ['\\.git', '__pycache__']
    ignore_exclude: []
    repositories:
      - id: team-docs
        path: /srv/shared/team-docs
        scope: team
        kind: directory
        enabled: true

Key design choices:

* **Explicit value** -- ``load_registry()`` returns an immutable
  ``Registry``; every mutation returns a new instance that the caller
  saves with ``save_registry()``.  Nothing is cached process-wide.
* **Atomic writes** -- ``save_registry()`` writes to a temp file then
  calls ``os.replace()`` so readers never see a partial manifest.
* **Registration order matters** -- repositories keep the order in which
  they were added; it breaks ties between repositories of the same scope.
"""

from __future__ import annotations

import logging
import os
import re
import tempfile
from enum import Enum
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from shadow_sync.exceptions import ConfigError, NotInitializedError
from shadow_sync.validators import validate_repository_id

logger = logging.getLogger(__name__)

MANIFEST_VERSION = "1.0"

TEMP_FILE_SUFFIX = ".sync-tmp"

DEFAULT_SYNC_EXCLUDE: list[str] = [
    r"\.git",
    r"\.DS_Store",
    r"__pycache__",
    r"\.shadow_sync",
    r"\.[^/]*\.sync-tmp",
]

SUPPORTED_KINDS = frozenset({"directory"})


class Scope(str, Enum):
    """Sharing boundary of a shadow repository."""

    USER = "user"
    TEAM = "team"
    PROJECT = "project"

    @property
    def precedence(self) -> int:
        """Higher wins: Project > Team > User."""
        return _PRECEDENCE[self]

    @property
    def accepts_push(self) -> bool:
        """Only Project repositories ever receive pushes."""
        return self is Scope.PROJECT

    @classmethod
    def parse(cls, value: str) -> Scope:
        """Parse a scope name case-insensitively.

        Raises:
            ConfigError: If *value* is not user, team or project.
        """
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise ConfigError(
                f"Invalid scope '{value}'. Use: user, team, or project"
            ) from None


_PRECEDENCE = {Scope.USER: 0, Scope.TEAM: 1, Scope.PROJECT: 2}


class Repository(BaseModel):
    """One registered shadow repository.

    Attributes:
        id: Unique, human-chosen or generated identifier.
        path: Absolute path, or path relative to the project root.
        scope: Sharing boundary (user, team, project).
        enabled: Disabled repositories are ignored by the planner.
        kind: Repository kind; only ``directory`` exists today.
        description: Optional free text.
    """

    id: str
    path: str
    scope: Scope
    enabled: bool = True
    kind: str = "directory"
    description: str | None = None

    model_config = {"frozen": True}

    @field_validator("id")
    @classmethod
    def _check_id(cls, value: str) -> str:
        ok, reason = validate_repository_id(value)
        if not ok:
            raise ValueError(reason)
        return value

    @field_validator("path")
    @classmethod
    def _check_path(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Repository path cannot be empty")
        return value

    @field_validator("kind")
    @classmethod
    def _check_kind(cls, value: str) -> str:
        if value not in SUPPORTED_KINDS:
            raise ValueError(
                f"Unsupported repository kind '{value}' (supported: {sorted(SUPPORTED_KINDS)})"
            )
        return value


class Registry(BaseModel):
    """Registered repositories plus the two exclusion rule sets."""

    version: str = MANIFEST_VERSION
    sync_exclude: list[str] = Field(
        default_factory=lambda: list(DEFAULT_SYNC_EXCLUDE)
    )
    ignore_exclude: list[str] = Field(default_factory=list)
    repositories: list[Repository] = Field(default_factory=list)

    model_config = {"frozen": True}

    @field_validator("sync_exclude", "ignore_exclude")
    @classmethod
    def _check_rules(cls, rules: list[str]) -> list[str]:
        for rule in rules:
            try:
                re.compile(rule)
            except re.error as exc:
                raise ValueError(f"Invalid exclusion rule {rule!r}: {exc}") from None
        return rules

    @model_validator(mode="after")
    def _check_unique_ids(self) -> Registry:
        seen: set[str] = set()
        for repo in self.repositories:
            if repo.id in seen:
                raise ValueError(f"Duplicate repository id '{repo.id}'")
            seen.add(repo.id)
        return self

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def find(self, repo_id: str) -> Repository | None:
        for repo in self.repositories:
            if repo.id == repo_id:
                return repo
        return None

    def get(self, repo_id: str) -> Repository:
        """Return the repository with *repo_id*.

        Raises:
            ConfigError: If no such repository is registered.
        """
        repo = self.find(repo_id)
        if repo is None:
            raise ConfigError(f"Repository with ID '{repo_id}' not found")
        return repo

    def registration_index(self, repo_id: str) -> int:
        for index, repo in enumerate(self.repositories):
            if repo.id == repo_id:
                return index
        raise ConfigError(f"Repository with ID '{repo_id}' not found")

    def enabled_repositories(
        self,
        scope: Scope | None = None,
        repo_id: str | None = None,
    ) -> list[Repository]:
        """Enabled repositories in registration order, optionally filtered.

        Raises:
            ConfigError: If *repo_id* is given but not registered, or is
                registered but disabled.
        """
        if repo_id is not None:
            repo = self.get(repo_id)
            if not repo.enabled:
                raise ConfigError(f"Repository '{repo_id}' is disabled")
            if scope is not None and repo.scope is not scope:
                return []
            return [repo]
        return [
            r
            for r in self.repositories
            if r.enabled and (scope is None or r.scope is scope)
        ]

    def by_precedence(self, repos: list[Repository]) -> list[Repository]:
        """Sort *repos* highest precedence first.

        Project > Team > User; within one scope, earlier registration wins.
        """
        return sorted(
            repos,
            key=lambda r: (-r.scope.precedence, self.registration_index(r.id)),
        )

    # ------------------------------------------------------------------
    # Mutations (return new registries)
    # ------------------------------------------------------------------

    def add(self, repo: Repository) -> Registry:
        """Return a registry with *repo* appended.

        Raises:
            ConfigError: If the id is already registered.
        """
        if self.find(repo.id) is not None:
            raise ConfigError(f"Repository with ID '{repo.id}' already exists")
        return self.model_copy(
            update={"repositories": [*self.repositories, repo]}
        )

    def remove(self, repo_id: str) -> Registry:
        """Return a registry without *repo_id*.

        Raises:
            ConfigError: If no such repository is registered.
        """
        self.get(repo_id)
        return self.model_copy(
            update={
                "repositories": [
                    r for r in self.repositories if r.id != repo_id
                ]
            }
        )

    def set_enabled(self, repo_id: str, enabled: bool) -> Registry:
        """Return a registry with the enabled flag of *repo_id* changed."""
        self.get(repo_id)
        return self.model_copy(
            update={
                "repositories": [
                    r.model_copy(update={"enabled": enabled})
                    if r.id == repo_id
                    else r
                    for r in self.repositories
                ]
            }
        )


def generate_repo_id(
    scope: Scope, path: Path, existing: set[str] | frozenset[str] = frozenset()
) -> str:
    """Generate ``<scope>-<directory name>``, suffixed when taken.

    >>> generate_repo_id(Scope.USER, Path("/home/me/my-knowledge"))
    'user-my-knowledge'
    """
    name = path.name or "repo"
    name = re.sub(r"[^A-Za-z0-9._-]+", "-", name).strip("-.") or "repo"
    base = f"{scope.value}-{name}"
    candidate = base
    counter = 2
    while candidate in existing:
        candidate = f"{base}-{counter}"
        counter += 1
    return candidate


# ---------------------------------------------------------------------------
# Manifest I/O
# ---------------------------------------------------------------------------


def load_registry(manifest_path: Path) -> Registry:
    """Load the Registry manifest.

    Raises:
        NotInitializedError: If the manifest does not exist.
        ConfigError: If the manifest is not valid YAML or fails validation.
    """
    if not manifest_path.is_file():
        raise NotInitializedError(manifest_path)

    try:
        with open(manifest_path, encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Malformed manifest {manifest_path}: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"Cannot read manifest {manifest_path}: {exc}") from exc

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(
            f"Malformed manifest {manifest_path}: root must be a mapping, "
            f"got {type(data).__name__}"
        )

    try:
        registry = Registry(**data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid manifest {manifest_path}: {exc}") from exc

    logger.debug(
        "Loaded %d repositories from %s",
        len(registry.repositories),
        manifest_path,
    )
    return registry


def save_registry(manifest_path: Path, registry: Registry) -> None:
    """Persist *registry* atomically.

    Writes to a temporary file in the same directory then atomically
    replaces the target.  Creates the registry directory if needed.
    """
    manifest_path.parent.mkdir(parents=True, exist_ok=True)
    data = registry.model_dump(mode="json", exclude_none=True)

    fd, tmp_path = tempfile.mkstemp(
        dir=str(manifest_path.parent), suffix=".tmp"
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            yaml.safe_dump(data, fh, sort_keys=False, default_flow_style=False)
        os.replace(tmp_path, manifest_path)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise
    logger.debug("Saved manifest %s", manifest_path)
