"""
Filter options normalization.

The legacy ``SANITIZE_STRING`` filter id is not implemented by the filter
engine. Every reference to it in a filter specification is rewritten into a
``CALLBACK`` filter whose callable is a :class:`StringSanitizer` bound to the
requested flags. All other specifications are passed through untouched so the
engine sees exactly what the caller wrote.

A specification is one of:

- a bare filter id, e.g. ``FilterType.VALIDATE_INT``
- a field map ``{name: filter_id_or_structured_spec}``, where a structured
  spec is ``{'filter': id, 'flags': bitset_or_sequence, 'options': ...}``
"""

from collections.abc import Iterable, Mapping
from functools import reduce
from operator import or_
from typing import Any, Dict

import structlog

from input_filter.utils.sanitizers import StringSanitizer
from .constants import FilterType

logger = structlog.get_logger(__name__)


def is_legacy_sanitize(spec: Any) -> bool:
    """True when ``spec`` is the bare legacy string-sanitize filter id."""
    return (
        isinstance(spec, int)
        and not isinstance(spec, bool)
        and spec == FilterType.SANITIZE_STRING
    )


def resolve_flags(flags: Any) -> int:
    """
    Combine flags given as a bitset or a sequence of individual flags.

    Duplicates, ordering and unknown values do not matter: members are OR-ed
    together and unknown bits are kept.
    """
    if not flags:
        return 0
    if isinstance(flags, int):
        return int(flags)
    if isinstance(flags, Iterable) and not isinstance(flags, (str, bytes)):
        return reduce(or_, (int(flag) for flag in flags), 0)
    return int(flags)


def sanitize_string_spec(flags: Any = 0) -> Dict[str, Any]:
    """Build the CALLBACK specification that replaces ``SANITIZE_STRING``."""
    return {
        'filter': FilterType.CALLBACK,
        'options': StringSanitizer(resolve_flags(flags)),
    }


def normalize_options(spec: Any) -> Any:
    """
    Rewrite legacy string-sanitize filters in a filter specification.

    Args:
        spec: Bare filter id or field map

    Returns:
        A callback specification for a bare legacy id, a new field map with
        legacy entries rewritten, or ``spec`` itself when there is nothing to
        rewrite. The caller's mapping is never modified.
    """
    if is_legacy_sanitize(spec):
        logger.debug("Rewrote legacy sanitize filter", scope='value', flags=0)
        return sanitize_string_spec()

    if not isinstance(spec, Mapping):
        return spec

    normalized = {}
    for key, field_spec in spec.items():
        if is_legacy_sanitize(field_spec):
            normalized[key] = sanitize_string_spec()
            logger.debug("Rewrote legacy sanitize filter", field=key, flags=0)
        elif isinstance(field_spec, Mapping) \
                and is_legacy_sanitize(field_spec.get('filter')):
            flags = resolve_flags(field_spec.get('flags'))
            normalized[key] = sanitize_string_spec(flags)
            logger.debug("Rewrote legacy sanitize filter", field=key, flags=flags)
        else:
            normalized[key] = field_spec
    return normalized


def count_legacy_rewrites(spec: Any) -> int:
    """Number of legacy string-sanitize references ``normalize_options`` rewrites."""
    if is_legacy_sanitize(spec):
        return 1
    if not isinstance(spec, Mapping):
        return 0
    return sum(
        1 for field_spec in spec.values()
        if is_legacy_sanitize(field_spec)
        or (isinstance(field_spec, Mapping) and is_legacy_sanitize(field_spec.get('filter')))
    )


def expand_apply_all(data: Mapping, filter_spec: Any) -> Dict[Any, Any]:
    """Assign one filter specification to every key of ``data``."""
    return {key: filter_spec for key in data.keys()}


__all__ = [
    'is_legacy_sanitize',
    'resolve_flags',
    'sanitize_string_spec',
    'normalize_options',
    'count_legacy_rewrites',
    'expand_apply_all'
]
