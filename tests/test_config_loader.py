"""Tests for shadow_sync.config_loader: hierarchical settings loading."""

import textwrap

import pytest
import yaml

from shadow_sync.config_loader import (
    expand_env,
    expand_env_tree,
    load_settings,
    load_yaml_file,
    settings_paths,
)

# -------------------------------------------------------------------------
# Env var interpolation
# -------------------------------------------------------------------------


class TestExpandEnv:
    """Tests for ${VAR} and ${VAR:-default} substitution."""

    def test_replaces_set_var(self, monkeypatch):
        monkeypatch.setenv("MY_NOTES", "/srv/notes")
        assert expand_env("${MY_NOTES}") == "/srv/notes"

    def test_unset_var_replaced_with_empty(self, monkeypatch):
        monkeypatch.delenv("UNSET_VAR_XYZ", raising=False)
        assert expand_env("${UNSET_VAR_XYZ}") == ""

    def test_default_used_when_unset(self, monkeypatch):
        monkeypatch.delenv("UNSET_VAR_XYZ", raising=False)
        assert expand_env("${UNSET_VAR_XYZ:-fallback}") == "fallback"

    def test_empty_env_var_uses_default(self, monkeypatch):
        monkeypatch.setenv("EMPTY_VAR", "")
        assert expand_env("${EMPTY_VAR:-fallback}") == "fallback"

    def test_literal_dollar_brace_no_closing(self):
        assert expand_env("${NO_CLOSE") == "${NO_CLOSE"

    def test_nested_structures(self, monkeypatch):
        monkeypatch.setenv("LEVEL", "DEBUG")
        data = {"logging": {"level": "${LEVEL}", "items": ["${LEVEL}", 3]}, "n": 1}
        assert expand_env_tree(data) == {
            "logging": {"level": "DEBUG", "items": ["DEBUG", 3]},
            "n": 1,
        }


# -------------------------------------------------------------------------
# YAML !include support
# -------------------------------------------------------------------------


class TestIncludes:
    """Tests for !include YAML loading via IncludeLoader."""

    def test_include_relative_file(self, tmp_path):
        (tmp_path / "logging.yml").write_text("level: INFO\n")
        main = tmp_path / "config.yml"
        main.write_text("logging: !include logging.yml\n")
        assert load_yaml_file(main) == {"logging": {"level": "INFO"}}

    def test_include_nonexistent_raises(self, tmp_path):
        main = tmp_path / "config.yml"
        main.write_text("data: !include missing.yml\n")
        with pytest.raises(FileNotFoundError, match="missing.yml"):
            load_yaml_file(main)

    def test_circular_include_raises(self, tmp_path):
        (tmp_path / "a.yml").write_text("x: !include b.yml\n")
        (tmp_path / "b.yml").write_text("y: !include a.yml\n")
        with pytest.raises(ValueError, match="Circular include"):
            load_yaml_file(tmp_path / "a.yml")

    def test_global_safe_loader_not_polluted(self, tmp_path):
        cfg = tmp_path / "test.yml"
        cfg.write_text("x: !include other.yml\n")
        with pytest.raises(yaml.constructor.ConstructorError):
            with open(cfg) as fh:
                yaml.safe_load(fh)


# -------------------------------------------------------------------------
# Convention-based file discovery
# -------------------------------------------------------------------------


@pytest.fixture
def fake_home(tmp_path, monkeypatch):
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    return home


class TestSettingsPaths:
    """Tests for settings_paths() precedence and filtering."""

    def test_nothing_found(self, tmp_path, fake_home):
        assert settings_paths(tmp_path) == []

    def test_precedence_order(self, tmp_path, fake_home, monkeypatch):
        custom = tmp_path / "custom.yml"
        custom.write_text("a: 1\n")
        monkeypatch.setenv("SHADOW_SYNC_CONFIG", str(custom))

        project_cfg = tmp_path / ".shadow_sync" / "config.yml"
        project_cfg.parent.mkdir()
        project_cfg.write_text("b: 2\n")

        global_cfg = fake_home / ".config" / "shadow_sync" / "config.yml"
        global_cfg.parent.mkdir(parents=True)
        global_cfg.write_text("c: 3\n")

        assert settings_paths(tmp_path) == [
            custom.resolve(),
            project_cfg,
            global_cfg,
        ]

    def test_yaml_extension(self, tmp_path, fake_home):
        cfg = tmp_path / ".shadow_sync" / "config.yaml"
        cfg.parent.mkdir()
        cfg.write_text("x: 1\n")
        assert settings_paths(tmp_path) == [cfg]


# -------------------------------------------------------------------------
# Hierarchical merge
# -------------------------------------------------------------------------


class TestLoadSettings:
    def test_zero_config(self, tmp_path, fake_home):
        assert load_settings(tmp_path) == {}

    def test_project_wins_over_global(self, tmp_path, fake_home):
        global_cfg = fake_home / ".config" / "shadow_sync" / "config.yml"
        global_cfg.parent.mkdir(parents=True)
        global_cfg.write_text(
            textwrap.dedent(
                """\
                logging:
                  level: DEBUG
                sync:
                  confirm: false
                """
            )
        )
        project_cfg = tmp_path / ".shadow_sync" / "config.yml"
        project_cfg.parent.mkdir()
        project_cfg.write_text("logging:\n  level: ERROR\n")

        merged = load_settings(tmp_path)
        # top-level keys replace, they are not deep-merged
        assert merged == {"logging": {"level": "ERROR"}, "sync": {"confirm": False}}

    def test_non_dict_root_skipped(self, tmp_path, fake_home):
        cfg = tmp_path / ".shadow_sync" / "config.yml"
        cfg.parent.mkdir()
        cfg.write_text("- just\n- a list\n")
        assert load_settings(tmp_path) == {}

    def test_interpolation_applied(self, tmp_path, fake_home, monkeypatch):
        monkeypatch.setenv("NOTES_DIR", "notes")
        cfg = tmp_path / ".shadow_sync" / "config.yml"
        cfg.parent.mkdir()
        cfg.write_text("sync:\n  working_dir: ${NOTES_DIR}\n")
        assert load_settings(tmp_path) == {"sync": {"working_dir": "notes"}}

    def test_malformed_yaml_raises(self, tmp_path, fake_home):
        cfg = tmp_path / ".shadow_sync" / "config.yml"
        cfg.parent.mkdir()
        cfg.write_text("sync: [unclosed\n")
        with pytest.raises(yaml.YAMLError):
            load_settings(tmp_path)
