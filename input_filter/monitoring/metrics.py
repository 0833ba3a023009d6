"""
Prometheus metrics for filter operations.

Counters are registered on the default prometheus registry unless a separate
``CollectorRegistry`` is supplied, which tests use to keep counts isolated.
"""

import threading
from typing import Optional

from prometheus_client import REGISTRY, CollectorRegistry, Counter

from input_filter.config.settings import get_settings


class FilterMetrics:
    """Counters describing how the filtering facade is used."""

    def __init__(
        self,
        registry: Optional[CollectorRegistry] = None,
        enabled: Optional[bool] = None
    ):
        self.registry = registry or REGISTRY
        self.enabled = get_settings().METRICS_ENABLED if enabled is None else enabled

        self.operations_total = Counter(
            'input_filter_operations_total',
            'Total number of filter operations by entry point and filter',
            ['operation', 'filter'],
            registry=self.registry
        )
        self.legacy_rewrites_total = Counter(
            'input_filter_legacy_rewrites_total',
            'Legacy string-sanitize filters rewritten to callback filters',
            registry=self.registry
        )
        self.source_empty_total = Counter(
            'input_filter_source_empty_total',
            'Input-mapping calls short-circuited because the source was empty',
            ['source'],
            registry=self.registry
        )

    def record_operation(self, operation: str, filter_label: str) -> None:
        if self.enabled:
            self.operations_total.labels(operation=operation, filter=filter_label).inc()

    def record_legacy_rewrite(self, count: int = 1) -> None:
        if self.enabled and count:
            self.legacy_rewrites_total.inc(count)

    def record_source_empty(self, source: str) -> None:
        if self.enabled:
            self.source_empty_total.labels(source=source).inc()


_metrics: Optional[FilterMetrics] = None
_metrics_lock = threading.Lock()


def get_metrics() -> FilterMetrics:
    """Return the process-wide metrics bound to the default registry."""
    global _metrics
    if _metrics is None:
        with _metrics_lock:
            if _metrics is None:
                _metrics = FilterMetrics()
    return _metrics


__all__ = ['FilterMetrics', 'get_metrics']
