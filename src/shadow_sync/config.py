"""Runtime configuration for the shadow-sync command line.

Resolves the project root, working-copy directory and debug flag from CLI
args, environment variables, .env files, and YAML settings fallbacks.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    SHADOW_SYNC_ROOT: Project root (optional, default: discovered from CWD)
    SHADOW_SYNC_WORKING_DIR: Working-copy directory (optional, default: knowledge)
    SHADOW_SYNC_DEBUG: Enable debug logging (optional, default: false)
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from .validators import validate_relative_path
from .workspace import DEFAULT_WORKING_DIR, find_project_root

logger = logging.getLogger(__name__)


@dataclass
class Config:
    project_root: Path
    working_dir: str = DEFAULT_WORKING_DIR
    debug: bool = False


def validate_config(config: Config) -> None:
    """Normalize ``working_dir`` in place and check both paths.

    Args:
        config: Config instance to validate.

    Raises:
        ValueError: If the working directory escapes the project root or
            the project root is not a directory.
    """
    config.working_dir = config.working_dir.strip().replace("\\", "/").strip("/")

    ok, reason = validate_relative_path(config.working_dir)
    if not ok:
        raise ValueError(f"Invalid working directory: {reason}")

    if not config.project_root.is_dir():
        raise ValueError(
            f"Project root '{config.project_root}' is not a directory"
        )


def load_config(
    root: str | None = None,
    working_dir: str | None = None,
    debug: bool = False,
    yaml_fallbacks: dict | None = None,
) -> Config:
    """Build a validated :class:`Config`.

    Each field takes the first value found among the explicit argument,
    the ``SHADOW_SYNC_*`` environment variable, *yaml_fallbacks* and the
    built-in default.  Without a root from either source, the root is
    discovered upwards from the current directory.  Call ``load_dotenv()``
    first if ``.env`` values should count as environment.

    Raises:
        ValueError: If the resolved working directory or root is unusable.
    """
    fb = yaml_fallbacks or {}

    root_str = root or os.getenv("SHADOW_SYNC_ROOT")
    if root_str:
        project_root = Path(root_str).expanduser().resolve()
    else:
        project_root = find_project_root(Path.cwd())

    final_working_dir = (
        working_dir
        or os.getenv("SHADOW_SYNC_WORKING_DIR")
        or fb.get("working_dir")
        or DEFAULT_WORKING_DIR
    )

    if debug:
        final_debug = True
    else:
        env_debug = os.getenv("SHADOW_SYNC_DEBUG")
        if env_debug is not None:
            final_debug = env_debug.lower() in ("true", "1", "yes", "on")
        else:
            final_debug = False

    config = Config(
        project_root=project_root,
        working_dir=final_working_dir,
        debug=final_debug,
    )

    validate_config(config)

    return config
