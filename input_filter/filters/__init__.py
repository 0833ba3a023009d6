"""
Filtering components: constants, engine, options normalizer, input sources
and the facade tying them together.
"""

from .constants import FilterFlag, FilterType, InputType
from .engine import FilterEngine
from .facade import (
    InputFilter,
    filter_input_mapping,
    filter_input_value,
    filter_mapping,
    filter_value,
    get_input_filter,
    reset_input_filter
)
from .options import expand_apply_all, normalize_options, resolve_flags
from .sources import FlaskInputSources, InputSources, StaticInputSources

__all__ = [
    'FilterFlag',
    'FilterType',
    'InputType',
    'FilterEngine',
    'InputFilter',
    'filter_input_mapping',
    'filter_input_value',
    'filter_mapping',
    'filter_value',
    'get_input_filter',
    'reset_input_filter',
    'expand_apply_all',
    'normalize_options',
    'resolve_flags',
    'FlaskInputSources',
    'InputSources',
    'StaticInputSources'
]
