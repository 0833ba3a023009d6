"""
input_filter - validation and sanitization of untrusted input values.

Wraps a filter engine with support for the retired legacy string-sanitize
filter, which is emulated by a callback that strips markup and HTML-escapes
text while keeping the historical ampersand, quote and high-byte behaviour.

Typical usage::

    from input_filter import FilterFlag, FilterType, filter_mapping

    filter_mapping(
        {'count': '20', 'title': '<b>"Deals" & more</b>'},
        {
            'count': FilterType.VALIDATE_INT,
            'title': {
                'filter': FilterType.SANITIZE_STRING,
                'flags': [FilterFlag.NO_ENCODE_QUOTES],
            },
        },
    )
"""

from input_filter.filters import (
    FilterEngine,
    FilterFlag,
    FilterType,
    FlaskInputSources,
    InputFilter,
    InputSources,
    InputType,
    StaticInputSources,
    expand_apply_all,
    filter_input_mapping,
    filter_input_value,
    filter_mapping,
    filter_value,
    get_input_filter,
    normalize_options,
    reset_input_filter,
    resolve_flags
)
from input_filter.utils.exceptions import (
    ConfigurationError,
    FilterError,
    InvalidFilterOptionsError,
    InvalidInputSourceError,
    UnknownFilterError
)
from input_filter.utils.sanitizers import StringSanitizer, sanitize_string, strip_tags

__version__ = '1.0.0'

__all__ = [
    'FilterEngine',
    'FilterFlag',
    'FilterType',
    'FlaskInputSources',
    'InputFilter',
    'InputSources',
    'InputType',
    'StaticInputSources',
    'expand_apply_all',
    'filter_input_mapping',
    'filter_input_value',
    'filter_mapping',
    'filter_value',
    'get_input_filter',
    'normalize_options',
    'reset_input_filter',
    'resolve_flags',
    'ConfigurationError',
    'FilterError',
    'InvalidFilterOptionsError',
    'InvalidInputSourceError',
    'UnknownFilterError',
    'StringSanitizer',
    'sanitize_string',
    'strip_tags'
]
