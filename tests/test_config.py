"""
Tests for settings loading.
"""

import pytest

from treelox import Settings, load_settings


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch, tmp_path):
    """Run every test without TREELOX_* variables in an empty directory."""
    for name in ("TREELOX_CONFIG", "TREELOX_MAX_ERRORS", "TREELOX_SHOW_SOURCE", "TREELOX_LOG_LEVEL",
                 "TREELOX_RECURSION_LIMIT"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


class TestDefaults:
    """Test built-in defaults."""

    def test_defaults(self):
        settings = load_settings()
        assert settings == Settings()
        assert settings.repl_mode is False
        assert settings.max_errors == 20
        assert settings.show_source is True
        assert settings.log_level == "WARNING"
        assert settings.recursion_limit == 25000

    def test_settings_are_frozen(self):
        with pytest.raises(AttributeError):
            Settings().max_errors = 3


class TestConfigFile:
    """Test YAML config files."""

    def test_explicit_file(self, tmp_path):
        path = tmp_path / "custom.yaml"
        path.write_text("max_errors: 5\nshow_source: false\nlog_level: debug\n")
        settings = load_settings(path)
        assert settings.max_errors == 5
        assert settings.show_source is False
        assert settings.log_level == "DEBUG"

    def test_default_file_in_working_directory(self, tmp_path):
        (tmp_path / "treelox.yaml").write_text("max_errors: 3\n")
        assert load_settings().max_errors == 3

    def test_config_from_environment_path(self, tmp_path, monkeypatch):
        path = tmp_path / "elsewhere.yaml"
        path.write_text("repl_mode: true\n")
        monkeypatch.setenv("TREELOX_CONFIG", str(path))
        assert load_settings().repl_mode is True

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_settings(path) == Settings()

    def test_missing_explicit_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_settings(tmp_path / "missing.yaml")

    def test_unknown_key(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("colour: blue\n")
        with pytest.raises(ValueError, match="unknown setting"):
            load_settings(path)

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- 1\n- 2\n")
        with pytest.raises(ValueError, match="mapping"):
            load_settings(path)

    def test_wrong_type(self, tmp_path):
        path = tmp_path / "typed.yaml"
        path.write_text("max_errors: lots\n")
        with pytest.raises(ValueError, match="max_errors"):
            load_settings(path)

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("max_errors: [1, 2\n")
        with pytest.raises(ValueError, match="invalid YAML"):
            load_settings(path)


class TestEnvironmentOverrides:
    """Test TREELOX_* variables."""

    def test_environment_beats_file(self, tmp_path, monkeypatch):
        path = tmp_path / "cfg.yaml"
        path.write_text("max_errors: 5\n")
        monkeypatch.setenv("TREELOX_MAX_ERRORS", "7")
        assert load_settings(path).max_errors == 7

    def test_boolean_words(self, monkeypatch):
        monkeypatch.setenv("TREELOX_SHOW_SOURCE", "no")
        assert load_settings().show_source is False
        monkeypatch.setenv("TREELOX_SHOW_SOURCE", "Yes")
        assert load_settings().show_source is True

    def test_bad_boolean(self, monkeypatch):
        monkeypatch.setenv("TREELOX_SHOW_SOURCE", "sometimes")
        with pytest.raises(ValueError):
            load_settings()

    def test_bad_integer(self, monkeypatch):
        monkeypatch.setenv("TREELOX_MAX_ERRORS", "many")
        with pytest.raises(ValueError):
            load_settings()

    def test_log_level(self, monkeypatch):
        monkeypatch.setenv("TREELOX_LOG_LEVEL", "info")
        assert load_settings().log_level == "INFO"

    def test_bad_log_level(self, monkeypatch):
        monkeypatch.setenv("TREELOX_LOG_LEVEL", "loud")
        with pytest.raises(ValueError, match="log_level"):
            load_settings()

    def test_keyword_overrides_win(self, monkeypatch):
        monkeypatch.setenv("TREELOX_MAX_ERRORS", "7")
        assert load_settings(max_errors=2).max_errors == 2

    def test_recursion_limit(self, monkeypatch):
        monkeypatch.setenv("TREELOX_RECURSION_LIMIT", "40000")
        assert load_settings().recursion_limit == 40000

    def test_recursion_limit_too_low(self):
        with pytest.raises(ValueError, match="recursion_limit"):
            load_settings(recursion_limit=10)

    def test_max_errors_must_be_positive(self):
        with pytest.raises(ValueError):
            load_settings(max_errors=0)
