"""
Filtering facade tests.

Exercises the four entry points end to end over the default engine, the
legacy string-sanitize rewrite, the empty input-source short-circuit and the
counters recorded along the way. Engine isolation uses pytest-mock.
"""

import pytest
from prometheus_client import CollectorRegistry

from input_filter import (
    FilterFlag,
    FilterType,
    FlaskInputSources,
    InputType,
    StaticInputSources,
    filter_mapping,
    filter_value,
    get_input_filter
)
from input_filter.config.settings import FilterSettings
from input_filter.monitoring.metrics import FilterMetrics
from input_filter.utils.sanitizers import StringSanitizer

MARKUP_SAMPLE = "<a href='test'>\"Test\" & 'Check'</a>"
HIGH_SAMPLE = "<a href='test'>\"Test\" & 'Check' " + chr(128) + '</a>'
DEALS_REGEXP = '!(deal|deals|coupon|offers|features)!i'


# ============================================================================
# SINGLE VALUES
# ============================================================================

class TestFilterValue:
    """Single-value entry point."""

    @pytest.mark.parametrize('value, filter_id, options, expected', [
        ('foo', FilterType.UNSAFE_RAW, 0, 'foo'),
        (MARKUP_SAMPLE, FilterType.SANITIZE_STRING, 0,
         '&quot;Test&quot; & &apos;Check&apos;'),
        (MARKUP_SAMPLE, FilterType.SANITIZE_STRING, FilterFlag.NO_ENCODE_QUOTES,
         "\"Test\" & 'Check'"),
        (MARKUP_SAMPLE, FilterType.SANITIZE_STRING, FilterFlag.ENCODE_AMP,
         '&quot;Test&quot; &amp; &apos;Check&apos;'),
        (MARKUP_SAMPLE, FilterType.SANITIZE_STRING,
         FilterFlag.ENCODE_AMP | FilterFlag.NO_ENCODE_QUOTES,
         '"Test" &amp; \'Check\''),
        (HIGH_SAMPLE, FilterType.SANITIZE_STRING,
         FilterFlag.STRIP_HIGH | FilterFlag.NO_ENCODE_QUOTES,
         '"Test" & \'Check\' '),
        (HIGH_SAMPLE, FilterType.SANITIZE_STRING,
         FilterFlag.ENCODE_HIGH | FilterFlag.NO_ENCODE_QUOTES,
         '"Test" & \'Check\' &#128;'),
        ('1', FilterType.VALIDATE_INT, 0, 1),
        ('1', FilterType.VALIDATE_BOOL, 0, True),
        ('not a bool', FilterType.VALIDATE_BOOL, FilterFlag.NULL_ON_FAILURE, None),
    ], ids=[
        'no-change',
        'sanitize-string',
        'sanitize-string-no-quotes',
        'sanitize-string-encode-amp',
        'sanitize-string-encode-amp-no-quotes',
        'sanitize-string-strip-high',
        'sanitize-string-encode-high',
        'validate-int',
        'validate-bool',
        'validate-bool-null-on-failure',
    ])
    def test_filter_value(self, input_filter, value, filter_id, options, expected):
        assert input_filter.filter_value(value, filter_id, options) == expected

    def test_flag_sequence(self, input_filter):
        flags = [FilterFlag.NO_ENCODE_QUOTES, FilterFlag.ENCODE_AMP, FilterFlag.NO_ENCODE_QUOTES]
        assert input_filter.filter_value(
            MARKUP_SAMPLE, FilterType.SANITIZE_STRING, flags
        ) == '"Test" &amp; \'Check\''

    def test_flags_in_options_dict(self, input_filter):
        options = {'flags': FilterFlag.NO_ENCODE_QUOTES}
        assert input_filter.filter_value(
            MARKUP_SAMPLE, FilterType.SANITIZE_STRING, options
        ) == "\"Test\" & 'Check'"

    def test_legacy_filter_on_list_sanitizes_each_element(self, input_filter):
        result = input_filter.filter_value(['<b>a</b>', ['"b"']], FilterType.SANITIZE_STRING)
        assert result == ['a', ['&quot;b&quot;']]

    def test_bytes_value_through_engine(self, input_filter):
        result = input_filter.filter_value(b'<i>x\x80</i>', FilterType.SANITIZE_STRING,
                                           FilterFlag.ENCODE_HIGH)
        assert result == 'x&#128;'

    def test_records_rewrite(self, input_filter, registry):
        input_filter.filter_value('x', FilterType.SANITIZE_STRING)

        assert registry.get_sample_value('input_filter_legacy_rewrites_total') == 1.0
        assert registry.get_sample_value(
            'input_filter_operations_total',
            {'operation': 'filter_value', 'filter': 'sanitize_string'}
        ) == 1.0


class TestEnginePassthrough:
    """Non-legacy requests reach the engine unchanged."""

    @pytest.fixture
    def engine_mock(self, mocker):
        return mocker.Mock()

    def test_filter_value_forwards_arguments(self, make_input_filter, engine_mock):
        engine_mock.filter_var.return_value = 'result'
        facade = make_input_filter(engine=engine_mock)

        assert facade.filter_value('x', FilterType.VALIDATE_INT, 5) == 'result'
        engine_mock.filter_var.assert_called_once_with('x', FilterType.VALIDATE_INT, 5)

    def test_engine_failure_value_is_returned_untouched(self, make_input_filter, engine_mock):
        engine_mock.filter_var_array.return_value = False
        facade = make_input_filter(engine=engine_mock)

        assert facade.filter_mapping({'a': '1'}, {'a': FilterType.VALIDATE_INT}) is False

    def test_legacy_value_becomes_callback(self, make_input_filter, engine_mock):
        facade = make_input_filter(engine=engine_mock)

        facade.filter_value('x', FilterType.SANITIZE_STRING, FilterFlag.ENCODE_AMP)

        engine_mock.filter_var.assert_called_once_with(
            'x', FilterType.CALLBACK, {'options': StringSanitizer(FilterFlag.ENCODE_AMP)}
        )

    def test_legacy_mapping_becomes_callback_map(self, make_input_filter, engine_mock):
        facade = make_input_filter(engine=engine_mock)

        facade.filter_mapping({'a': 'x', 'b': 'y'}, FilterType.SANITIZE_STRING)

        callback = {'filter': FilterType.CALLBACK, 'options': StringSanitizer(0)}
        engine_mock.filter_var_array.assert_called_once_with(
            {'a': 'x', 'b': 'y'}, {'a': callback, 'b': callback}, True
        )

    def test_non_legacy_bare_id_is_not_expanded(self, make_input_filter, engine_mock):
        facade = make_input_filter(engine=engine_mock)

        facade.filter_mapping({'a': '1'}, FilterType.VALIDATE_INT, add_empty=False)

        engine_mock.filter_var_array.assert_called_once_with(
            {'a': '1'}, FilterType.VALIDATE_INT, False
        )


# ============================================================================
# MAPPINGS
# ============================================================================

class TestFilterMapping:
    """Mapping entry point."""

    def test_one_filter_applied_to_all(self, input_filter):
        data = {
            'type': 'deals',
            'ids': '1,2,3,4,5,6,7,8',
            'e': 1,
            'count': 20,
            'h': MARKUP_SAMPLE,
        }

        assert input_filter.filter_mapping(data, FilterType.SANITIZE_STRING) == {
            'type': 'deals',
            'ids': '1,2,3,4,5,6,7,8',
            'e': '1',
            'count': '20',
            'h': '&quot;Test&quot; & &apos;Check&apos;',
        }

    def test_field_map(self, input_filter):
        data = {
            'type': 'deals',
            'ids': '1,2,3,4,5,6,"7",8',
            'e': 1,
            'count': 20,
            'h': MARKUP_SAMPLE,
        }
        spec = {
            'type': {
                'filter': FilterType.VALIDATE_REGEXP,
                'options': {'regexp': DEALS_REGEXP},
            },
            'ids': {
                'filter': FilterType.SANITIZE_STRING,
                'flags': FilterFlag.NO_ENCODE_QUOTES,
            },
            'e': FilterType.VALIDATE_INT,
            'count': FilterType.VALIDATE_INT,
            'h': FilterType.SANITIZE_STRING,
        }

        assert input_filter.filter_mapping(data, spec) == {
            'type': 'deals',
            'ids': '1,2,3,4,5,6,"7",8',
            'e': 1,
            'count': 20,
            'h': '&quot;Test&quot; & &apos;Check&apos;',
        }

    def test_apply_all_matches_explicit_field_map(self, input_filter):
        data = {'a': '<b>x</b>', 'b': '"y"', 'c': 3}
        explicit = {key: FilterType.SANITIZE_STRING for key in data}

        assert input_filter.filter_mapping(data, FilterType.SANITIZE_STRING) == \
            input_filter.filter_mapping(data, explicit)

    def test_flag_sequence_in_field_map(self, input_filter):
        spec = {
            'h': {
                'filter': FilterType.SANITIZE_STRING,
                'flags': [FilterFlag.ENCODE_AMP, FilterFlag.NO_ENCODE_QUOTES],
            },
        }
        assert input_filter.filter_mapping({'h': MARKUP_SAMPLE}, spec) == {
            'h': '"Test" &amp; \'Check\'',
        }

    def test_missing_keys_follow_add_empty_setting(self, make_input_filter, env_manager):
        facade = make_input_filter(settings=FilterSettings(env_manager=env_manager, ADD_EMPTY=False))
        spec = {'a': FilterType.VALIDATE_INT, 'b': FilterType.SANITIZE_STRING}

        assert facade.filter_mapping({'a': '1'}, spec) == {'a': 1}
        assert facade.filter_mapping({'a': '1'}, spec, add_empty=True) == {'a': 1, 'b': None}

    def test_caller_spec_is_not_modified(self, input_filter):
        spec = {'h': FilterType.SANITIZE_STRING}
        input_filter.filter_mapping({'h': 'x'}, spec)
        assert spec == {'h': FilterType.SANITIZE_STRING}

    def test_records_one_rewrite_per_field(self, input_filter, registry):
        input_filter.filter_mapping({'a': 'x', 'b': 'y', 'c': '1'}, {
            'a': FilterType.SANITIZE_STRING,
            'b': {'filter': FilterType.SANITIZE_STRING},
            'c': FilterType.VALIDATE_INT,
        })
        assert registry.get_sample_value('input_filter_legacy_rewrites_total') == 2.0

    def test_disabled_metrics_record_nothing(self, make_input_filter):
        registry = CollectorRegistry()
        facade = make_input_filter(metrics=FilterMetrics(registry=registry, enabled=False))

        facade.filter_mapping({'a': 'x'}, FilterType.SANITIZE_STRING)

        assert registry.get_sample_value('input_filter_legacy_rewrites_total') == 0.0
        assert registry.get_sample_value(
            'input_filter_operations_total',
            {'operation': 'filter_mapping', 'filter': 'sanitize_string'}
        ) is None

    def test_settings_disabling_metrics_stop_recording(self, make_input_filter, env_manager, registry):
        settings = FilterSettings(env_manager=env_manager, METRICS_ENABLED=False)
        facade = make_input_filter(
            StaticInputSources({InputType.COOKIE: {}}),
            settings=settings
        )

        facade.filter_value('x', FilterType.SANITIZE_STRING)
        facade.filter_mapping({'a': 'x'}, {'a': FilterType.SANITIZE_STRING})
        facade.filter_input_mapping(InputType.COOKIE, FilterType.SANITIZE_STRING)

        assert facade.metrics.enabled is True
        assert registry.get_sample_value('input_filter_legacy_rewrites_total') == 0.0
        assert registry.get_sample_value(
            'input_filter_operations_total',
            {'operation': 'filter_value', 'filter': 'sanitize_string'}
        ) is None
        assert registry.get_sample_value(
            'input_filter_source_empty_total', {'source': 'cookie'}
        ) is None


# ============================================================================
# INPUT SOURCES
# ============================================================================

class TestFilterInput:
    """Input-source entry points."""

    def test_missing_variable_fails_validation(self, input_filter):
        assert input_filter.filter_input_value(InputType.POST, 'foo', FilterType.VALIDATE_INT) is False

    def test_input_value(self, make_input_filter):
        facade = make_input_filter(StaticInputSources({InputType.GET: {'q': '<b>"hi"</b>'}}))
        assert facade.filter_input_value(
            InputType.GET, 'q', FilterType.SANITIZE_STRING
        ) == '&quot;hi&quot;'

    def test_empty_source_returns_none_without_engine(self, make_input_filter, mocker, registry):
        engine = mocker.Mock()
        facade = make_input_filter(StaticInputSources({InputType.COOKIE: {}}), engine=engine)

        assert facade.filter_input_mapping(InputType.COOKIE, {'sid': FilterType.SANITIZE_STRING}) is None
        engine.filter_var_array.assert_not_called()
        assert registry.get_sample_value(
            'input_filter_source_empty_total', {'source': 'cookie'}
        ) == 1.0

    def test_absent_source_returns_none(self, input_filter):
        assert input_filter.filter_input_mapping(InputType.POST, {'foo': FilterType.VALIDATE_INT}) is None

    def test_input_mapping(self, make_input_filter):
        facade = make_input_filter(StaticInputSources({
            InputType.POST: {'count': '20', 'title': '<b>Deals & more</b>'},
        }))

        assert facade.filter_input_mapping(InputType.POST, {
            'count': FilterType.VALIDATE_INT,
            'title': FilterType.SANITIZE_STRING,
            'missing': FilterType.VALIDATE_INT,
        }) == {'count': 20, 'title': 'Deals & more', 'missing': None}

    def test_input_entry_points_count_once(self, make_input_filter, registry):
        facade = make_input_filter(StaticInputSources({InputType.POST: {'n': '5'}}))

        facade.filter_input_value(InputType.POST, 'n', FilterType.VALIDATE_INT)
        facade.filter_input_mapping(InputType.POST, {'n': FilterType.SANITIZE_STRING})

        def count(operation, filter_label):
            return registry.get_sample_value(
                'input_filter_operations_total',
                {'operation': operation, 'filter': filter_label}
            )

        assert count('filter_input_value', 'validate_int') == 1.0
        assert count('filter_input_mapping', 'field_map') == 1.0
        assert count('filter_value', 'validate_int') is None
        assert count('filter_mapping', 'field_map') is None
        assert registry.get_sample_value('input_filter_legacy_rewrites_total') == 1.0

    def test_flask_request(self, app, make_input_filter):
        facade = make_input_filter(FlaskInputSources())

        with app.test_request_context('/?id=7&name=%3Cb%3EJane%3C%2Fb%3E'):
            assert facade.filter_input_value(InputType.GET, 'id', FilterType.VALIDATE_INT) == 7
            assert facade.filter_input_mapping(InputType.GET, FilterType.SANITIZE_STRING) == {
                'id': '7',
                'name': 'Jane',
            }
            assert facade.filter_input_mapping(InputType.COOKIE, FilterType.SANITIZE_STRING) is None


# ============================================================================
# SHARED INSTANCE
# ============================================================================

class TestSharedInstance:

    def test_get_input_filter_is_cached(self):
        assert get_input_filter() is get_input_filter()

    def test_module_functions(self):
        assert filter_value(MARKUP_SAMPLE, FilterType.SANITIZE_STRING) == \
            '&quot;Test&quot; & &apos;Check&apos;'
        assert filter_mapping({'n': '5'}, {'n': FilterType.VALIDATE_INT}) == {'n': 5}

    def test_add_empty_from_environment(self, monkeypatch):
        monkeypatch.setenv('INPUT_FILTER_ADD_EMPTY', 'false')
        assert filter_mapping({}, {'n': FilterType.VALIDATE_INT}) == {}

    def test_sanitize_string_helper(self, input_filter):
        sanitizer = input_filter.sanitize_string([FilterFlag.NO_ENCODE_QUOTES])
        assert sanitizer('<i>"x"</i>') == '"x"'
