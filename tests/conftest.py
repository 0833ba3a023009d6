"""
Global pytest configuration and fixtures.

Provides isolated settings (no .env loading), a private prometheus registry per
test, static and Flask-backed input sources and a ready-made facade so unit
tests never touch process-wide state.
"""

import pytest
import structlog
from flask import Flask
from prometheus_client import CollectorRegistry

from input_filter.config.settings import EnvironmentManager, FilterSettings, reset_settings
from input_filter.filters.engine import FilterEngine
from input_filter.filters.facade import InputFilter, reset_input_filter
from input_filter.filters.sources import StaticInputSources
from input_filter.monitoring.metrics import FilterMetrics

SETTINGS_ENV_VARS = (
    'INPUT_FILTER_LOG_LEVEL',
    'INPUT_FILTER_LOG_FORMAT',
    'INPUT_FILTER_METRICS_ENABLED',
    'INPUT_FILTER_ADD_EMPTY',
)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Remove package settings from the environment and reset shared state."""
    for name in SETTINGS_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    reset_settings()
    reset_input_filter()
    yield
    reset_settings()
    reset_input_filter()
    structlog.reset_defaults()


@pytest.fixture
def env_manager():
    return EnvironmentManager(load_env_file=False)


@pytest.fixture
def settings(env_manager):
    return FilterSettings(env_manager=env_manager)


@pytest.fixture
def registry():
    return CollectorRegistry()


@pytest.fixture
def metrics(registry):
    return FilterMetrics(registry=registry, enabled=True)


@pytest.fixture
def engine():
    return FilterEngine()


@pytest.fixture
def empty_sources():
    return StaticInputSources()


@pytest.fixture
def input_filter(engine, empty_sources, settings, metrics):
    return InputFilter(
        engine=engine,
        sources=empty_sources,
        settings=settings,
        metrics=metrics
    )


@pytest.fixture
def make_input_filter(engine, settings, metrics):
    """Build a facade over the given sources."""
    def _make(sources=None, **kwargs):
        return InputFilter(
            engine=kwargs.get('engine', engine),
            sources=sources or StaticInputSources(),
            settings=kwargs.get('settings', settings),
            metrics=kwargs.get('metrics', metrics)
        )
    return _make


@pytest.fixture
def app():
    app = Flask(__name__)
    app.config.update(TESTING=True)
    return app
