"""Pydantic models for the optional ``config.yml`` settings file.

Example file::

    sync:
      working_dir: knowledge
      confirm: true
    logging:
      level: INFO
      format: json
      file: /tmp/shadow-sync.log

Every field has a default, so a missing or empty file yields
``Settings()``.  Unknown keys are ignored.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field


class SyncSettings(BaseModel):
    """``sync`` section.

    Attributes:
        working_dir: Working-copy directory, relative to the project root.
        confirm: Ask before applying when ``sync`` runs interactively.
    """

    working_dir: str = Field(
        default="knowledge",
        description="Local working-copy directory (relative to project root)",
    )
    confirm: bool = Field(
        default=True,
        description="Prompt before applying a sync plan interactively",
    )

    model_config = {"frozen": True}


class LoggingSettings(BaseModel):
    """``logging`` section; ``LOG_LEVEL`` and ``--debug`` still win."""

    level: str = Field(default="WARNING", description="Default log level name")
    file: str | None = Field(default=None, description="Append log records here")
    format: Literal["text", "json"] = Field(
        default="text", description="Record format on stderr and in the file"
    )

    model_config = {"frozen": True}


class Settings(BaseModel):
    sync: SyncSettings = Field(default_factory=SyncSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    model_config = {"frozen": True}


def build_settings(raw: dict[str, Any] | None) -> Settings:
    """Validate the merged dict from :func:`~shadow_sync.config_loader.load_settings`.

    Raises:
        pydantic.ValidationError: If a section has the wrong shape.
    """
    return Settings.model_validate(raw or {})
