"""Tests for shadow_sync.config: validate_config() and load_config()."""

import pytest

from shadow_sync.config import Config, load_config, validate_config

# -------------------------------------------------------------------------
# validate_config()
# -------------------------------------------------------------------------


class TestValidateConfig:
    """Tests for validate_config(): working directory and root checks."""

    def test_valid_config(self, tmp_path):
        validate_config(Config(project_root=tmp_path))

    def test_working_dir_normalized(self, tmp_path):
        config = Config(project_root=tmp_path, working_dir=" docs\\notes/ ")
        validate_config(config)
        assert config.working_dir == "docs/notes"

    def test_empty_working_dir(self, tmp_path):
        with pytest.raises(ValueError, match="cannot be empty"):
            validate_config(Config(project_root=tmp_path, working_dir="  "))

    def test_parent_segment_rejected(self, tmp_path):
        with pytest.raises(ValueError, match="cannot contain '..'"):
            validate_config(Config(project_root=tmp_path, working_dir="a/../../b"))

    def test_drive_letter_rejected(self, tmp_path):
        with pytest.raises(ValueError, match="must be relative"):
            validate_config(Config(project_root=tmp_path, working_dir="C:\\notes"))

    def test_missing_root(self, tmp_path):
        with pytest.raises(ValueError, match="is not a directory"):
            validate_config(Config(project_root=tmp_path / "nope"))


# -------------------------------------------------------------------------
# load_config()
# -------------------------------------------------------------------------


class TestLoadConfig:
    """Tests for load_config() precedence: CLI > env > yaml > default."""

    def test_defaults(self, tmp_path):
        config = load_config(root=str(tmp_path))
        assert config.project_root == tmp_path.resolve()
        assert config.working_dir == "knowledge"
        assert config.debug is False

    def test_env_root(self, tmp_path, monkeypatch):
        monkeypatch.setenv("SHADOW_SYNC_ROOT", str(tmp_path))
        assert load_config().project_root == tmp_path.resolve()

    def test_cli_root_beats_env(self, tmp_path, monkeypatch):
        other = tmp_path / "other"
        other.mkdir()
        monkeypatch.setenv("SHADOW_SYNC_ROOT", str(tmp_path))
        assert load_config(root=str(other)).project_root == other.resolve()

    def test_root_discovered_from_cwd(self, tmp_path, monkeypatch):
        (tmp_path / ".shadow_sync").mkdir()
        nested = tmp_path / "knowledge"
        nested.mkdir()
        monkeypatch.chdir(nested)
        assert load_config().project_root == tmp_path.resolve()

    def test_working_dir_precedence(self, tmp_path, monkeypatch):
        fallbacks = {"working_dir": "from-yaml"}
        assert load_config(root=str(tmp_path), yaml_fallbacks=fallbacks).working_dir == "from-yaml"

        monkeypatch.setenv("SHADOW_SYNC_WORKING_DIR", "from-env")
        assert load_config(root=str(tmp_path), yaml_fallbacks=fallbacks).working_dir == "from-env"

        config = load_config(root=str(tmp_path), working_dir="from-cli", yaml_fallbacks=fallbacks)
        assert config.working_dir == "from-cli"

    @pytest.mark.parametrize(
        "value,expected",
        [("true", True), ("1", True), ("YES", True), ("off", False), ("0", False)],
    )
    def test_env_debug(self, tmp_path, monkeypatch, value, expected):
        monkeypatch.setenv("SHADOW_SYNC_DEBUG", value)
        assert load_config(root=str(tmp_path)).debug is expected

    def test_cli_debug_wins(self, tmp_path, monkeypatch):
        monkeypatch.setenv("SHADOW_SYNC_DEBUG", "false")
        assert load_config(root=str(tmp_path), debug=True).debug is True

    def test_invalid_working_dir_raises(self, tmp_path):
        with pytest.raises(ValueError, match="Invalid working directory"):
            load_config(root=str(tmp_path), working_dir="../escape")
