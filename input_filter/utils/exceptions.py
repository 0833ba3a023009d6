"""
Exception hierarchy for the input filtering package.

Validation failures are never reported through exceptions: the filter engine
returns its failure sentinel (``False``, ``None`` or a configured default)
instead. The classes below cover programming and configuration errors only,
such as asking the engine for a filter it does not implement or reading from
an input category that does not exist.
"""

from typing import Any, Dict, Optional


class FilterError(Exception):
    """
    Base exception class for all input filtering errors.

    Attributes:
        message: Human-readable error message
        code: Error code, defaults to the class name
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert the error to a serializable dictionary."""
        return {
            'error': self.code,
            'message': self.message,
            'details': self.details
        }

    def __str__(self) -> str:
        return self.message


class UnknownFilterError(FilterError):
    """Raised when the engine is asked to apply a filter id it does not implement."""

    def __init__(self, filter_id: Any, **kwargs):
        super().__init__(
            f"Unknown filter id: {filter_id!r}",
            details={'filter': filter_id},
            **kwargs
        )
        self.filter_id = filter_id


class InvalidFilterOptionsError(FilterError):
    """Raised when a filter receives options it cannot work with."""
    pass


class InvalidInputSourceError(FilterError):
    """Raised when an unknown input category is requested."""

    def __init__(self, input_type: Any, **kwargs):
        super().__init__(
            f"Unknown input source type: {input_type!r}",
            details={'input_type': input_type},
            **kwargs
        )
        self.input_type = input_type


class ConfigurationError(FilterError):
    """Raised when package settings are invalid."""
    pass


__all__ = [
    'FilterError',
    'UnknownFilterError',
    'InvalidFilterOptionsError',
    'InvalidInputSourceError',
    'ConfigurationError'
]
