"""Settings-file discovery and loading for shadow-sync.

Settings (``config.yml``) are optional and tune the command line only; the
Registry manifest (``repositories.yml``) is owned by
:mod:`shadow_sync.registry` and is never read here.

Files are looked up in this order, highest precedence first:

1. the file named by ``$SHADOW_SYNC_CONFIG``;
2. ``<project root>/.shadow_sync/config.yml`` (or ``config.yaml``);
3. ``~/.config/shadow_sync/config.yml``.

Each file may pull in others with ``!include other.yml`` and may reference
environment variables as ``${NAME}`` or ``${NAME:-fallback}``.

Usage:
    from shadow_sync.config_loader import load_settings

    raw = load_settings(project_root)
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml

from .workspace import CONFIG_DIR_NAME

logger = logging.getLogger(__name__)

SETTINGS_ENV_VAR = "SHADOW_SYNC_CONFIG"
SETTINGS_NAMES = ("config.yml", "config.yaml")

_ENV_REF = re.compile(r"\$\{(?P<name>[^}:]+?)(?::-(?P<fallback>.*?))?\}")


# ---------------------------------------------------------------------------
# Environment references
# ---------------------------------------------------------------------------


def expand_env(text: str) -> str:
    """Expand ``${NAME}`` and ``${NAME:-fallback}`` in *text*.

    An unset or empty variable expands to its fallback, or to ``""`` when
    there is none.  An unterminated ``${`` is kept as is.
    """

    def _sub(match: re.Match) -> str:
        value = os.environ.get(match.group("name"), "")
        if value:
            return value
        return match.group("fallback") or ""

    return _ENV_REF.sub(_sub, text)


def expand_env_tree(node: Any) -> Any:
    """Apply :func:`expand_env` to every string inside *node*."""
    if isinstance(node, str):
        return expand_env(node)
    if isinstance(node, list):
        return [expand_env_tree(item) for item in node]
    if isinstance(node, dict):
        return {key: expand_env_tree(value) for key, value in node.items()}
    return node


# ---------------------------------------------------------------------------
# YAML with !include
# ---------------------------------------------------------------------------


class IncludeLoader(yaml.SafeLoader):
    """``SafeLoader`` that understands ``!include``.

    Registered on this subclass only; ``yaml.safe_load`` is unaffected.
    """

    include_chain: tuple[Path, ...] = ()


def _construct_include(loader: IncludeLoader, node: yaml.ScalarNode) -> Any:
    target = Path(loader.construct_scalar(node)).expanduser()
    including = Path(loader.name).resolve()
    if not target.is_absolute():
        target = including.parent / target
    target = target.resolve()

    if target in loader.include_chain:
        cycle = " -> ".join(str(p) for p in (*loader.include_chain, target))
        raise ValueError(f"Circular include detected: {cycle}")
    if not target.is_file():
        raise FileNotFoundError(
            f"Include file not found: {target} (referenced from {including})"
        )
    return load_yaml_file(target, _chain=loader.include_chain)


IncludeLoader.add_constructor("!include", _construct_include)


def load_yaml_file(path: Path, *, _chain: tuple[Path, ...] = ()) -> Any:
    """Parse one YAML file, following ``!include`` directives.

    Raises:
        yaml.YAMLError: If a file is not valid YAML.
        ValueError: If includes form a cycle.
        FileNotFoundError: If an included file is missing.
    """
    path = path.resolve()
    with open(path, encoding="utf-8") as fh:
        loader = IncludeLoader(fh)
        loader.include_chain = (*_chain, path)
        try:
            return loader.get_single_data()
        finally:
            loader.dispose()


# ---------------------------------------------------------------------------
# Discovery and merge
# ---------------------------------------------------------------------------


def settings_paths(project_root: Path | None = None) -> list[Path]:
    """Existing settings files, highest precedence first."""
    root = project_root or Path.cwd()
    candidates: list[Path] = []

    explicit = os.environ.get(SETTINGS_ENV_VAR)
    if explicit:
        candidates.append(Path(explicit).expanduser().resolve())
    candidates.extend(root / CONFIG_DIR_NAME / name for name in SETTINGS_NAMES)
    candidates.append(Path.home() / ".config" / "shadow_sync" / "config.yml")

    return [path for path in candidates if path.is_file()]


def load_settings(project_root: Path | None = None) -> dict[str, Any]:
    """Merge every discovered settings file into one raw dict.

    Lower-precedence files are applied first; a top-level key from a
    higher-precedence file replaces the whole section.  Environment
    references are expanded after merging.  With no files at all the
    result is ``{}``.
    """
    paths = settings_paths(project_root)
    if not paths:
        logger.debug("No settings files found, using defaults")
        return {}

    merged: dict[str, Any] = {}
    for path in reversed(paths):
        logger.debug("Loading settings from %s", path)
        try:
            data = load_yaml_file(path)
        except (yaml.YAMLError, OSError, ValueError):
            logger.error("Cannot load settings file %s", path)
            raise
        if data is None:
            continue
        if not isinstance(data, dict):
            logger.warning(
                "Ignoring settings file %s: top level is a %s, not a mapping",
                path,
                type(data).__name__,
            )
            continue
        merged.update(data)

    return expand_env_tree(merged)
