"""Tests for the settings models and build_settings()."""

import pytest
from pydantic import ValidationError

from shadow_sync.config_schema import (
    LoggingSettings,
    Settings,
    SyncSettings,
    build_settings,
)


class TestSettings:
    def test_defaults(self):
        settings = Settings()
        assert settings.sync.working_dir == "knowledge"
        assert settings.sync.confirm is True
        assert settings.logging.level == "WARNING"
        assert settings.logging.file is None
        assert settings.logging.format == "text"

    def test_explicit_sections(self):
        settings = Settings(
            sync=SyncSettings(working_dir="notes", confirm=False),
            logging=LoggingSettings(level="DEBUG", file="/tmp/shadow.log", format="json"),
        )
        assert settings.sync.working_dir == "notes"
        assert settings.logging.format == "json"

    def test_frozen(self):
        settings = Settings()
        with pytest.raises(ValidationError):
            settings.sync = SyncSettings(working_dir="x")


class TestLoggingSettings:
    def test_unknown_format_rejected(self):
        with pytest.raises(ValidationError):
            LoggingSettings(format="xml")


class TestBuildSettings:
    """build_settings() on raw dicts from the loader."""

    def test_empty(self):
        assert build_settings({}) == Settings()
        assert build_settings(None) == Settings()

    def test_partial_sections(self):
        settings = build_settings({"logging": {"level": "INFO"}})
        assert settings.logging.level == "INFO"
        assert settings.sync.working_dir == "knowledge"

    def test_strings_coerced(self):
        settings = build_settings({"sync": {"working_dir": "docs", "confirm": "no"}})
        assert settings.sync.working_dir == "docs"
        assert settings.sync.confirm is False

    def test_invalid_type_raises(self):
        with pytest.raises(ValidationError):
            build_settings({"sync": {"confirm": "maybe"}})

    def test_unknown_keys_ignored(self):
        assert build_settings({"server": {"port": 8080}}) == Settings()
