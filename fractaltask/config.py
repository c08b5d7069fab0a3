"""
Configuration management for FractalTask.

Loads settings from settings.ini with environment variable overrides.
Provides centralized configuration for storage, suggestions and display.
"""

import configparser
import os
from pathlib import Path
from typing import Optional, Dict, Any

from fractaltask.logging_config import get_logger

logger = get_logger(__name__)

DATA_DIR = Path.home() / ".fractaltask"

DEFAULT_SUGGESTION_MODEL = "gemini-3-flash-preview"
DEFAULT_SUGGESTION_TIMEOUT = 30.0


class Config:
    """Application configuration manager."""

    def __init__(self, config_path: Optional[Path] = None):
        """
        Initialize configuration manager.

        Args:
            config_path: Path to config file, defaults to ~/.fractaltask/settings.ini
        """
        self.config_path = config_path or self._default_config_path()
        self._config = configparser.ConfigParser()
        self._load()

    def _default_config_path(self) -> Path:
        """Get default config path."""
        return DATA_DIR / "settings.ini"

    def _load(self):
        """Load configuration from file."""
        if self.config_path.exists():
            try:
                self._config.read(self.config_path)
                logger.info(f"Loaded configuration from {self.config_path}")
            except configparser.Error as e:
                logger.warning(f"Failed to read config file: {e}. Using defaults.")
        else:
            logger.debug(f"Config file not found at {self.config_path}. Using defaults.")

    def get_storage_config(self) -> Dict[str, Any]:
        """
        Get storage configuration with environment overrides.

        Environment variables take precedence over config file:
        - FRACTALTASK_STORAGE_BACKEND (sqlite/json)
        - FRACTALTASK_DATABASE_PATH
        - FRACTALTASK_JSON_PATH

        Returns:
            Dictionary with storage configuration
        """
        backend = (
            os.getenv('FRACTALTASK_STORAGE_BACKEND') or
            self._config.get('storage', 'backend', fallback='sqlite')
        ).lower()
        if backend not in ('sqlite', 'json'):
            logger.warning(f"Unknown storage backend '{backend}', using sqlite")
            backend = 'sqlite'

        config = {
            'backend': backend,
            'database_path': Path(
                os.getenv('FRACTALTASK_DATABASE_PATH') or
                self._config.get('storage', 'database_path',
                                 fallback=str(DATA_DIR / 'fractaltask.db'))
            ).expanduser(),
            'json_path': Path(
                os.getenv('FRACTALTASK_JSON_PATH') or
                self._config.get('storage', 'json_path',
                                 fallback=str(DATA_DIR / 'fractaltask.json'))
            ).expanduser(),
        }

        logger.debug(f"Storage config: backend={config['backend']}, "
                     f"database_path={config['database_path']}, json_path={config['json_path']}")

        return config

    def get_suggestion_config(self) -> Dict[str, Any]:
        """
        Get AI subtask suggestion configuration with environment overrides.

        Environment variables take precedence over config file:
        - FRACTALTASK_SUGGESTIONS_ENABLED
        - FRACTALTASK_SUGGESTION_MODEL
        - GEMINI_API_KEY (falls back to API_KEY)
        - FRACTALTASK_SUGGESTION_TIMEOUT

        Returns:
            Dictionary with suggestion configuration
        """
        enabled_env = os.getenv('FRACTALTASK_SUGGESTIONS_ENABLED', '').lower()
        enabled = (
            enabled_env == 'true'
            if enabled_env
            else self._config.getboolean('suggestions', 'enabled', fallback=True)
        )

        timeout = (
            os.getenv('FRACTALTASK_SUGGESTION_TIMEOUT') or
            self._config.get('suggestions', 'timeout', fallback=str(DEFAULT_SUGGESTION_TIMEOUT))
        )
        try:
            timeout = float(timeout)
        except ValueError:
            logger.warning(f"Invalid suggestion timeout '{timeout}', using {DEFAULT_SUGGESTION_TIMEOUT}")
            timeout = DEFAULT_SUGGESTION_TIMEOUT

        config = {
            'enabled': enabled,
            'model': os.getenv('FRACTALTASK_SUGGESTION_MODEL') or
                     self._config.get('suggestions', 'model', fallback=DEFAULT_SUGGESTION_MODEL),
            'api_key': os.getenv('GEMINI_API_KEY') or os.getenv('API_KEY') or
                       self._config.get('suggestions', 'api_key', fallback=None),
            'timeout': timeout,
        }

        key_status = "set" if config['api_key'] else "missing"
        logger.debug(f"Suggestion config: enabled={config['enabled']}, "
                     f"model={config['model']}, api_key={key_status}")

        return config

    def get_display_config(self) -> Dict[str, Any]:
        """
        Get display configuration with environment overrides.

        Environment variables take precedence over config file:
        - FRACTALTASK_SHOW_DESCRIPTIONS

        Returns:
            Dictionary with display configuration
        """
        show_env = os.getenv('FRACTALTASK_SHOW_DESCRIPTIONS', '').lower()
        config = {
            'show_descriptions': (
                show_env == 'true'
                if show_env
                else self._config.getboolean('display', 'show_descriptions', fallback=True)
            ),
        }

        logger.debug(f"Display config: show_descriptions={config['show_descriptions']}")

        return config
