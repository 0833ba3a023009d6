"""
Readers for ambient input categories.

:class:`FlaskInputSources` reads the current Flask request (query string, form
body, cookies, WSGI environ) and the process environment.
:class:`StaticInputSources` serves pre-extracted data for hosts that are not
Flask applications, and for tests.

A category is *absent* when it has no values at all. The input-mapping entry
point relies on that distinction to return ``None`` instead of filtering.
"""

import os
from typing import Any, Dict, Mapping, Optional

from flask import has_request_context, request
from werkzeug.datastructures import MultiDict

from input_filter.utils.exceptions import InvalidInputSourceError
from .constants import InputType


def flatten_multidict(values: MultiDict) -> Dict[str, Any]:
    """Single values stay scalars; repeated keys become lists."""
    return {
        key: items[0] if len(items) == 1 else list(items)
        for key, items in values.lists()
    }


class InputSources:
    """Base class for input-category readers."""

    @staticmethod
    def check_type(input_type: Any) -> InputType:
        try:
            return InputType(input_type)
        except (TypeError, ValueError):
            raise InvalidInputSourceError(input_type)

    def read(self, input_type: Any) -> Optional[Mapping[str, Any]]:
        """Return all values of a category, or None when it is unavailable."""
        raise NotImplementedError

    def has(self, input_type: Any) -> bool:
        """True when the category exists and holds at least one value."""
        return bool(self.read(input_type))

    def get_all(self, input_type: Any) -> Dict[str, Any]:
        return dict(self.read(input_type) or {})

    def get(self, input_type: Any, name: str, default: Any = None) -> Any:
        return (self.read(input_type) or {}).get(name, default)


class FlaskInputSources(InputSources):
    """
    Input categories backed by the active Flask request.

    Outside a request context only ``InputType.ENV`` is available.
    """

    def read(self, input_type: Any) -> Optional[Mapping[str, Any]]:
        input_type = self.check_type(input_type)

        if input_type == InputType.ENV:
            return dict(os.environ)

        if not has_request_context():
            return None

        if input_type == InputType.GET:
            return flatten_multidict(request.args)
        if input_type == InputType.POST:
            return flatten_multidict(request.form)
        if input_type == InputType.COOKIE:
            return flatten_multidict(request.cookies)
        # InputType.SERVER: WSGI environ, including HTTP_* request headers
        return {
            key: value for key, value in request.environ.items()
            if isinstance(value, str)
        }


class StaticInputSources(InputSources):
    """Input categories served from mappings supplied up front."""

    def __init__(self, sources: Optional[Mapping[Any, Mapping[str, Any]]] = None):
        self._sources: Dict[InputType, Mapping[str, Any]] = {}
        for input_type, values in (sources or {}).items():
            self._sources[self.check_type(input_type)] = values

    def read(self, input_type: Any) -> Optional[Mapping[str, Any]]:
        return self._sources.get(self.check_type(input_type))


__all__ = [
    'InputSources',
    'FlaskInputSources',
    'StaticInputSources',
    'flatten_multidict'
]
