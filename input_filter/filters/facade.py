"""
Input filtering facade.

:class:`InputFilter` is the public entry point. It rewrites legacy
string-sanitize filters, forwards everything else to the filter engine and
returns the engine's result untouched, including its failure sentinels.

Entry points:
- filter_value: filter one value
- filter_mapping: filter a mapping with one filter for every key, or a field map
- filter_input_value: filter one variable of an input category
- filter_input_mapping: filter a whole input category; ``None`` when it is empty

The facade holds no per-call state. One shared instance is available through
:func:`get_input_filter`, but constructing separate instances is equally valid.
"""

import threading
from collections.abc import Mapping
from typing import Any, Optional

import structlog

from input_filter.config.settings import FilterSettings, get_settings
from input_filter.monitoring.metrics import FilterMetrics, get_metrics
from input_filter.utils.sanitizers import StringSanitizer
from .constants import FilterType, filter_name
from .engine import FilterEngine
from .options import (
    count_legacy_rewrites,
    expand_apply_all,
    is_legacy_sanitize,
    normalize_options,
    resolve_flags,
    sanitize_string_spec
)
from .sources import FlaskInputSources, InputSources

logger = structlog.get_logger(__name__)


def _spec_label(spec: Any) -> str:
    if isinstance(spec, Mapping):
        return 'field_map'
    return filter_name(spec)


class InputFilter:
    """
    Facade over the filter engine with legacy string-sanitize support.

    Args:
        engine: Filter engine, defaults to :class:`FilterEngine`
        sources: Input-category reader, defaults to :class:`FlaskInputSources`
        settings: Package settings, defaults to the process-wide settings
        metrics: Metrics recorder, defaults to the process-wide recorder.
            Nothing is recorded when ``settings.METRICS_ENABLED`` is false,
            whichever recorder is used.
    """

    def __init__(
        self,
        engine: Optional[FilterEngine] = None,
        sources: Optional[InputSources] = None,
        settings: Optional[FilterSettings] = None,
        metrics: Optional[FilterMetrics] = None
    ):
        self.engine = engine or FilterEngine()
        self.sources = sources or FlaskInputSources()
        self.settings = settings or get_settings()
        self.metrics = metrics or get_metrics()

    @property
    def metrics_enabled(self) -> bool:
        return bool(self.settings.METRICS_ENABLED)

    def _record_operation(self, operation: str, spec: Any) -> None:
        if self.metrics_enabled:
            self.metrics.record_operation(operation, _spec_label(spec))

    def _record_legacy_rewrite(self, count: int = 1) -> None:
        if self.metrics_enabled:
            self.metrics.record_legacy_rewrite(count)

    def filter_value(
        self,
        value: Any,
        filter: int = FilterType.DEFAULT,
        options: Any = 0
    ) -> Any:
        """
        Filter a single value.

        Args:
            value: Value to filter
            filter: Filter id
            options: Flag bitset, sequence of flags, or ``{flags, options}``
                dict as understood by the engine

        Returns:
            Whatever the engine returns, including ``False``/``None`` on failure
        """
        self._record_operation('filter_value', filter)
        return self._filter_value(value, filter, options)

    def _filter_value(self, value: Any, filter: Any, options: Any) -> Any:
        if is_legacy_sanitize(filter):
            flags = options.get('flags') if isinstance(options, Mapping) else options
            spec = sanitize_string_spec(flags)
            self._record_legacy_rewrite()
            logger.debug(
                "Rewrote legacy sanitize filter",
                scope='value',
                flags=spec['options'].flags
            )
            return self.engine.filter_var(value, spec['filter'], {'options': spec['options']})

        return self.engine.filter_var(value, filter, options)

    def filter_mapping(
        self,
        data: Mapping,
        spec: Any = FilterType.DEFAULT,
        add_empty: Optional[bool] = None
    ) -> Any:
        """
        Filter a mapping of values.

        Args:
            data: Values to filter
            spec: One filter id for every key, or a field map
            add_empty: Add keys named by the field map but missing from
                ``data`` as None; defaults to the ADD_EMPTY setting

        Returns:
            Filtered mapping, or the engine's failure value
        """
        self._record_operation('filter_mapping', spec)
        return self._filter_mapping(data, spec, add_empty)

    def _filter_mapping(self, data: Mapping, spec: Any, add_empty: Optional[bool]) -> Any:
        if add_empty is None:
            add_empty = self.settings.ADD_EMPTY

        if is_legacy_sanitize(spec):
            spec = expand_apply_all(data, spec)
            logger.debug("Expanded filter to all fields", fields=len(spec))

        self._record_legacy_rewrite(count_legacy_rewrites(spec))
        return self.engine.filter_var_array(data, normalize_options(spec), add_empty)

    def filter_input_value(
        self,
        input_type: Any,
        name: str,
        filter: int = FilterType.DEFAULT,
        options: Any = 0
    ) -> Any:
        """
        Filter one variable of an input category.

        A missing variable is filtered as None, so validating filters report
        failure for it.
        """
        self._record_operation('filter_input_value', filter)
        value = self.sources.get(input_type, name)
        return self._filter_value(value, filter, options)

    def filter_input_mapping(
        self,
        input_type: Any,
        spec: Any = FilterType.DEFAULT,
        add_empty: Optional[bool] = None
    ) -> Any:
        """
        Filter every variable of an input category.

        Returns:
            None when the category is absent or empty; otherwise the result
            of :meth:`filter_mapping`
        """
        input_type = InputSources.check_type(input_type)
        self._record_operation('filter_input_mapping', spec)

        if not self.sources.has(input_type):
            source = input_type.name.lower()
            logger.debug("Input source empty, skipping filters", source=source)
            if self.metrics_enabled:
                self.metrics.record_source_empty(source)
            return None

        return self._filter_mapping(self.sources.get_all(input_type), spec, add_empty)

    def sanitize_string(self, flags: Any = 0) -> StringSanitizer:
        """Return a legacy string sanitizer bound to ``flags``."""
        return StringSanitizer(resolve_flags(flags))

    def normalize_options(self, spec: Any) -> Any:
        """Rewrite legacy string-sanitize filters in ``spec``."""
        return normalize_options(spec)


_default_filter: Optional[InputFilter] = None
_default_lock = threading.Lock()


def get_input_filter() -> InputFilter:
    """Return the shared facade, constructing it at most once."""
    global _default_filter
    if _default_filter is None:
        with _default_lock:
            if _default_filter is None:
                _default_filter = InputFilter()
    return _default_filter


def reset_input_filter() -> None:
    """Drop the shared facade so the next access builds a new one."""
    global _default_filter
    with _default_lock:
        _default_filter = None


def filter_value(value: Any, filter: int = FilterType.DEFAULT, options: Any = 0) -> Any:
    return get_input_filter().filter_value(value, filter, options)


def filter_mapping(
    data: Mapping,
    spec: Any = FilterType.DEFAULT,
    add_empty: Optional[bool] = None
) -> Any:
    return get_input_filter().filter_mapping(data, spec, add_empty)


def filter_input_value(
    input_type: Any,
    name: str,
    filter: int = FilterType.DEFAULT,
    options: Any = 0
) -> Any:
    return get_input_filter().filter_input_value(input_type, name, filter, options)


def filter_input_mapping(
    input_type: Any,
    spec: Any = FilterType.DEFAULT,
    add_empty: Optional[bool] = None
) -> Any:
    return get_input_filter().filter_input_mapping(input_type, spec, add_empty)


__all__ = [
    'InputFilter',
    'get_input_filter',
    'reset_input_filter',
    'filter_value',
    'filter_mapping',
    'filter_input_value',
    'filter_input_mapping'
]
