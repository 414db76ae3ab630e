"""
Tests for configuration management.

Tests the Config class, the NestingConfig model and loading from ini/TOML
files and environment variables.
"""

from pathlib import Path

import pytest
from pydantic import ValidationError

from tasktree.config import DEFAULT_DATABASE_URL, DEFAULT_MAX_DEPTH, Config, NestingConfig


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Remove TaskTree environment overrides for every test."""
    for name in ("TASKTREE_DATABASE_URL", "TASKTREE_MAX_DEPTH", "TASKTREE_VALIDATE_REORDER"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def write_ini(tmp_path):
    def _write(content: str) -> Path:
        path = tmp_path / "config.ini"
        path.write_text(content)
        return path
    return _write


class TestConfig:
    """Tests for Config class."""

    def test_default_config_path(self):
        """Test default config path is ~/.tasktree/config.ini."""
        config = Config()
        assert config.config_path == Path.home() / ".tasktree" / "config.ini"

    def test_missing_config_file_uses_defaults(self, tmp_path):
        config = Config(tmp_path / "missing.ini")

        assert config.get_database_config()["url"] == DEFAULT_DATABASE_URL
        nesting = config.get_nesting_config()
        assert nesting.max_depth == DEFAULT_MAX_DEPTH == 4
        assert nesting.validate_reorder is True

    def test_config_file_parsing(self, write_ini):
        config = Config(write_ini("""
[database]
url = sqlite+aiosqlite:///:memory:

[nesting]
max_depth = 6
validate_reorder = false
"""))

        assert config.get_database_config()["url"] == "sqlite+aiosqlite:///:memory:"
        nesting = config.get_nesting_config()
        assert nesting.max_depth == 6
        assert nesting.validate_reorder is False

    def test_environment_variable_override(self, write_ini, monkeypatch):
        """Environment variables take precedence over the file."""
        path = write_ini("""
[database]
url = sqlite+aiosqlite:///from-file.db

[nesting]
max_depth = 6
""")
        monkeypatch.setenv("TASKTREE_DATABASE_URL", "sqlite+aiosqlite:///from-env.db")
        monkeypatch.setenv("TASKTREE_MAX_DEPTH", "2")
        monkeypatch.setenv("TASKTREE_VALIDATE_REORDER", "false")

        config = Config(path)

        assert config.get_database_config()["url"] == "sqlite+aiosqlite:///from-env.db"
        assert config.get_nesting_config().max_depth == 2
        assert config.get_nesting_config().validate_reorder is False

    def test_out_of_range_depth_rejected(self, write_ini):
        config = Config(write_ini("[nesting]\nmax_depth = 42\n"))
        with pytest.raises(ValidationError):
            config.get_nesting_config()

    def test_get_methods(self, write_ini):
        config = Config(write_ini("""
[section1]
key1 = value1
int_key = 42
bool_key = true
"""))

        assert config.get("section1", "key1") == "value1"
        assert config.get("section1", "missing", "default") == "default"
        assert config.get_int("section1", "int_key") == 42
        assert config.get_int("section1", "missing", 99) == 99
        assert config.get_bool("section1", "bool_key") is True
        assert config.has_section("section1") is True
        assert config.has_section("missing_section") is False

    def test_nesting_toml_is_base_layer(self, tmp_path):
        (tmp_path / "nesting.toml").write_text("[nesting]\nmax_depth = 3\nvalidate_reorder = false\n")

        nesting = Config(tmp_path / "config.ini").get_nesting_config()

        assert nesting.max_depth == 3
        assert nesting.validate_reorder is False

    def test_ini_overrides_nesting_toml(self, write_ini, tmp_path, monkeypatch):
        (tmp_path / "nesting.toml").write_text("[nesting]\nmax_depth = 3\nvalidate_reorder = false\n")
        config = Config(write_ini("[nesting]\nmax_depth = 7\n"))

        nesting = config.get_nesting_config()
        assert nesting.max_depth == 7
        assert nesting.validate_reorder is False

        monkeypatch.setenv("TASKTREE_MAX_DEPTH", "5")
        assert config.get_nesting_config().max_depth == 5

    def test_invalid_config_file(self, write_ini):
        """An unparsable file falls back to defaults."""
        config = Config(write_ini("This is not valid INI format @#$%^&*()"))
        assert config.get_nesting_config().max_depth == DEFAULT_MAX_DEPTH


class TestNestingConfig:
    """Tests for the NestingConfig model."""

    def test_defaults(self):
        config = NestingConfig()
        assert config.max_depth == 4
        assert config.validate_reorder is True

    @pytest.mark.parametrize("value", [0, 11, -1])
    def test_bounds(self, value):
        with pytest.raises(ValidationError):
            NestingConfig(max_depth=value)

    def test_assignment_validated(self):
        config = NestingConfig()
        config.max_depth = 7
        assert config.max_depth == 7
        with pytest.raises(ValidationError):
            config.max_depth = 0

    def test_from_missing_toml(self, tmp_path):
        assert NestingConfig.from_toml_file(tmp_path / "nesting.toml") == NestingConfig()

    def test_from_toml(self, tmp_path):
        path = tmp_path / "nesting.toml"
        path.write_text("[nesting]\nmax_depth = 3\nvalidate_reorder = false\n")

        config = NestingConfig.from_toml_file(path)

        assert config.max_depth == 3
        assert config.validate_reorder is False
