"""
Utilities shared across the input_filter package.

- exceptions: exception hierarchy for engine, source and configuration errors
- sanitizers: legacy string sanitization (strip tags, raw filter, HTML5 escape)

``sanitizers`` is imported explicitly by its users; it depends on the filter
engine, which in turn depends on ``exceptions``.
"""

from .exceptions import (
    ConfigurationError,
    FilterError,
    InvalidFilterOptionsError,
    InvalidInputSourceError,
    UnknownFilterError
)

__all__ = [
    'ConfigurationError',
    'FilterError',
    'InvalidFilterOptionsError',
    'InvalidInputSourceError',
    'UnknownFilterError'
]
