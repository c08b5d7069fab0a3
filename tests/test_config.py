"""
Tests for configuration management.

Tests the Config class and configuration loading from files and environment variables.
"""

from pathlib import Path

import pytest

from fractaltask.config import DATA_DIR, DEFAULT_SUGGESTION_MODEL, Config


ENV_VARS = [
    'FRACTALTASK_STORAGE_BACKEND',
    'FRACTALTASK_DATABASE_PATH',
    'FRACTALTASK_JSON_PATH',
    'FRACTALTASK_SUGGESTIONS_ENABLED',
    'FRACTALTASK_SUGGESTION_MODEL',
    'FRACTALTASK_SUGGESTION_TIMEOUT',
    'FRACTALTASK_SHOW_DESCRIPTIONS',
    'GEMINI_API_KEY',
    'API_KEY',
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Remove configuration environment variables for every test."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config_file(tmp_path):
    """Write a settings.ini and return its path."""
    def _write(content: str) -> Path:
        path = tmp_path / "settings.ini"
        path.write_text(content, encoding="utf-8")
        return path
    return _write


class TestConfig:
    """Tests for Config class."""

    def test_default_config_path(self):
        """Test default config path is ~/.fractaltask/settings.ini."""
        config = Config()
        assert config.config_path == Path.home() / ".fractaltask" / "settings.ini"

    def test_custom_config_path(self, tmp_path):
        """Test custom config path is used."""
        custom_path = tmp_path / "custom.ini"
        config = Config(custom_path)
        assert config.config_path == custom_path

    def test_missing_config_file_uses_defaults(self, tmp_path):
        """Test that missing config file falls back to defaults."""
        config = Config(tmp_path / "missing.ini")

        storage = config.get_storage_config()
        assert storage['backend'] == 'sqlite'
        assert storage['database_path'] == DATA_DIR / 'fractaltask.db'
        assert storage['json_path'] == DATA_DIR / 'fractaltask.json'

        suggestions = config.get_suggestion_config()
        assert suggestions['enabled'] is True
        assert suggestions['model'] == DEFAULT_SUGGESTION_MODEL
        assert suggestions['api_key'] is None
        assert suggestions['timeout'] == 30.0

        assert config.get_display_config()['show_descriptions'] is True

    def test_config_file_parsing(self, config_file, tmp_path):
        """Test parsing valid config file."""
        path = config_file(f"""
[storage]
backend = json
json_path = {tmp_path / 'tasks.json'}

[suggestions]
enabled = false
model = gemini-test
api_key = file-key
timeout = 12.5

[display]
show_descriptions = no
""")
        config = Config(path)

        storage = config.get_storage_config()
        assert storage['backend'] == 'json'
        assert storage['json_path'] == tmp_path / 'tasks.json'

        suggestions = config.get_suggestion_config()
        assert suggestions['enabled'] is False
        assert suggestions['model'] == 'gemini-test'
        assert suggestions['api_key'] == 'file-key'
        assert suggestions['timeout'] == 12.5

        assert config.get_display_config()['show_descriptions'] is False

    def test_environment_variable_override(self, config_file, monkeypatch, tmp_path):
        """Test environment variables override config file."""
        path = config_file("""
[storage]
backend = sqlite

[suggestions]
enabled = true
api_key = file-key
""")
        monkeypatch.setenv('FRACTALTASK_STORAGE_BACKEND', 'JSON')
        monkeypatch.setenv('FRACTALTASK_JSON_PATH', str(tmp_path / 'env.json'))
        monkeypatch.setenv('FRACTALTASK_SUGGESTIONS_ENABLED', 'false')
        monkeypatch.setenv('GEMINI_API_KEY', 'env-key')

        config = Config(path)

        storage = config.get_storage_config()
        assert storage['backend'] == 'json'
        assert storage['json_path'] == tmp_path / 'env.json'

        suggestions = config.get_suggestion_config()
        assert suggestions['enabled'] is False
        assert suggestions['api_key'] == 'env-key'

    def test_api_key_fallback_variable(self, tmp_path, monkeypatch):
        """Test that API_KEY is used when GEMINI_API_KEY is unset."""
        monkeypatch.setenv('API_KEY', 'generic-key')

        config = Config(tmp_path / "missing.ini")

        assert config.get_suggestion_config()['api_key'] == 'generic-key'

    def test_unknown_backend_falls_back_to_sqlite(self, tmp_path, monkeypatch):
        """Test that an unknown backend name is ignored."""
        monkeypatch.setenv('FRACTALTASK_STORAGE_BACKEND', 'postgres')

        config = Config(tmp_path / "missing.ini")

        assert config.get_storage_config()['backend'] == 'sqlite'

    def test_invalid_config_file_uses_defaults(self, config_file):
        """Test that an unparseable file is ignored."""
        path = config_file("this is not an ini file\n[unclosed")

        config = Config(path)

        assert config.get_storage_config()['backend'] == 'sqlite'

    def test_malformed_timeout_env_falls_back(self, tmp_path, monkeypatch):
        """Test that a non-numeric timeout variable is replaced by the default."""
        monkeypatch.setenv('FRACTALTASK_SUGGESTION_TIMEOUT', 'soon')

        config = Config(tmp_path / "missing.ini")

        assert config.get_suggestion_config()['timeout'] == 30.0

    def test_malformed_timeout_in_file_falls_back(self, config_file):
        """Test that a non-numeric timeout in settings.ini is replaced by the default."""
        path = config_file("""
[suggestions]
timeout = thirty
""")
        config = Config(path)

        assert config.get_suggestion_config()['timeout'] == 30.0
