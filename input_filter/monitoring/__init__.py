"""Logging and metrics for input_filter."""

from .logging import configure_logging, get_logger
from .metrics import FilterMetrics, get_metrics

__all__ = ['configure_logging', 'get_logger', 'FilterMetrics', 'get_metrics']
