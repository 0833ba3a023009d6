"""
Input filter configuration module.

Settings are read from environment variables, optionally seeded from a ``.env``
file through python-dotenv. Values already present in the process environment
always win over the file.

Environment variables:
- INPUT_FILTER_LOG_LEVEL: stdlib log level name (default WARNING)
- INPUT_FILTER_LOG_FORMAT: ``json`` or ``console`` (default console)
- INPUT_FILTER_METRICS_ENABLED: record prometheus counters (default true)
- INPUT_FILTER_ADD_EMPTY: default ``add_empty`` for mapping filters (default true)
"""

import logging
import os
import threading
from typing import Any, Dict, Optional

from dotenv import find_dotenv, load_dotenv

from input_filter.utils.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

ENV_PREFIX = 'INPUT_FILTER_'

VALID_LOG_LEVELS = ('CRITICAL', 'ERROR', 'WARNING', 'INFO', 'DEBUG')
VALID_LOG_FORMATS = ('json', 'console')

_TRUE_VALUES = ('true', '1', 'yes', 'on')
_FALSE_VALUES = ('false', '0', 'no', 'off', '')


class EnvironmentManager:
    """
    Environment variable access with python-dotenv loading and type conversion.
    """

    def __init__(self, env_file: Optional[str] = None, load_env_file: bool = True):
        """
        Initialize environment manager.

        Args:
            env_file: Optional path to .env file, defaults to auto-discovery
            load_env_file: Whether to load the .env file at all
        """
        self.env_file = env_file
        if load_env_file:
            self.env_file = env_file or find_dotenv(usecwd=True)
            if self.env_file:
                # override=False preserves values already in the environment
                load_dotenv(self.env_file, override=False)
                logger.debug("Environment file loaded: %s", self.env_file)

    def get_optional_env(self, key: str, default: Any = None, var_type: type = str) -> Any:
        """
        Get optional environment variable with default value and type conversion.

        Args:
            key: Environment variable name, without the package prefix
            default: Default value if variable is not set
            var_type: Expected variable type

        Returns:
            Converted environment variable value or default

        Raises:
            ConfigurationError: When the value cannot be converted
        """
        name = f"{ENV_PREFIX}{key}"
        value = os.getenv(name)
        if value is None:
            return default

        if var_type == bool:
            lowered = value.strip().lower()
            if lowered in _TRUE_VALUES:
                return True
            if lowered in _FALSE_VALUES:
                return False
            raise ConfigurationError(
                f"Environment variable '{name}' is not a boolean: {value!r}",
                details={'variable': name}
            )

        try:
            return var_type(value)
        except (ValueError, TypeError) as e:
            raise ConfigurationError(
                f"Environment variable '{name}' has invalid type: {str(e)}",
                details={'variable': name}
            )


class FilterSettings:
    """
    Runtime settings for logging, metrics and mapping-filter defaults.
    """

    def __init__(
        self,
        env_manager: Optional[EnvironmentManager] = None,
        **overrides: Any
    ):
        self.env_manager = env_manager or EnvironmentManager()

        self.LOG_LEVEL = self.env_manager.get_optional_env('LOG_LEVEL', 'WARNING').upper()
        self.LOG_FORMAT = self.env_manager.get_optional_env('LOG_FORMAT', 'console').lower()
        self.METRICS_ENABLED = self.env_manager.get_optional_env('METRICS_ENABLED', True, bool)
        self.ADD_EMPTY = self.env_manager.get_optional_env('ADD_EMPTY', True, bool)

        for key, value in overrides.items():
            if not hasattr(self, key):
                raise ConfigurationError(f"Unknown setting: {key}")
            setattr(self, key, value)

        self._validate()

    def _validate(self) -> None:
        if self.LOG_LEVEL not in VALID_LOG_LEVELS:
            raise ConfigurationError(
                f"Invalid log level '{self.LOG_LEVEL}'. "
                f"Available levels: {', '.join(VALID_LOG_LEVELS)}"
            )
        if self.LOG_FORMAT not in VALID_LOG_FORMATS:
            raise ConfigurationError(
                f"Invalid log format '{self.LOG_FORMAT}'. "
                f"Available formats: {', '.join(VALID_LOG_FORMATS)}"
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'LOG_LEVEL': self.LOG_LEVEL,
            'LOG_FORMAT': self.LOG_FORMAT,
            'METRICS_ENABLED': self.METRICS_ENABLED,
            'ADD_EMPTY': self.ADD_EMPTY
        }


_settings: Optional[FilterSettings] = None
_settings_lock = threading.Lock()


def get_settings() -> FilterSettings:
    """Return the process-wide settings, loading them on first use."""
    global _settings
    if _settings is None:
        with _settings_lock:
            if _settings is None:
                _settings = FilterSettings()
    return _settings


def reset_settings() -> None:
    """Forget cached settings so the next access re-reads the environment."""
    global _settings
    with _settings_lock:
        _settings = None


__all__ = [
    'EnvironmentManager',
    'FilterSettings',
    'get_settings',
    'reset_settings',
    'ENV_PREFIX'
]
