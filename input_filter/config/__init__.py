"""Configuration package for input_filter."""

from .settings import (
    ENV_PREFIX,
    EnvironmentManager,
    FilterSettings,
    get_settings,
    reset_settings
)

__all__ = [
    'ENV_PREFIX',
    'EnvironmentManager',
    'FilterSettings',
    'get_settings',
    'reset_settings'
]
