"""
Default filter engine.

Implements the single-value filter, the mapping filter and the callback filter
kind on which the filtering facade is built. Semantics follow the historical
platform filter extension so that existing filter definitions keep producing
the same results:

- scalars are converted to text before any filter runs
- a failed filter yields ``False``, ``None`` under ``NULL_ON_FAILURE``, or the
  ``default`` option when one is given
- lists and dicts are rejected unless ``REQUIRE_ARRAY`` or ``FORCE_ARRAY`` is
  set, except for ``CALLBACK`` which is applied to every element
- mapping definitions decide the key set of the result

The legacy ``SANITIZE_STRING`` id is deliberately unknown to the engine; the
options normalizer must rewrite it first.
"""

import ipaddress
import re
from functools import lru_cache
from html.entities import codepoint2name
from typing import Any, Callable, Dict, Mapping, Optional, Pattern
from urllib.parse import urlparse

import structlog
from email_validator import EmailNotValidError, validate_email

from input_filter.utils.exceptions import InvalidFilterOptionsError, UnknownFilterError
from .constants import FilterFlag, FilterType

logger = structlog.get_logger(__name__)

# Returned by handlers to signal a failed validation.
FAILED = object()

# Characters trimmed by the validating filters.
TRIM_CHARS = ' \t\n\r\v\x00'

INT_MIN = -(2 ** 63)
INT_MAX = 2 ** 63 - 1

DECIMAL_INT_REGEX = re.compile(r'[+-]?(?:0|[1-9][0-9]*)')
HEX_INT_REGEX = re.compile(r'0[xX]([0-9a-fA-F]+)')
OCTAL_INT_REGEX = re.compile(r'0[oO]?([0-7]+)')

# Hostname label per RFC 1123, as used for URL host validation
HOST_LABEL_REGEX = re.compile(r'(?!-)[A-Za-z0-9-]{1,63}(?<!-)')
SCHEME_REGEX = re.compile(r'[A-Za-z][A-Za-z0-9+.-]*')

SCHEMES_WITHOUT_HOST = ('mailto', 'news', 'file')

ALNUM = 'abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789'
URL_SAFE_CHARS = frozenset(ALNUM + "$-_.+!*'(),{}|\\^~[]`<>#%\";/?:@&=")
EMAIL_SAFE_CHARS = frozenset(ALNUM + "!#$%&'*+-=?^_`{|}~@.[]")
ENCODED_SAFE_CHARS = frozenset(ALNUM + '-._')

PATTERN_BRACKETS = {'(': ')', '[': ']', '{': '}', '<': '>'}
PATTERN_MODIFIERS = {
    'i': re.IGNORECASE,
    'm': re.MULTILINE,
    's': re.DOTALL,
    'x': re.VERBOSE,
    'u': 0,
    'D': 0,
}

TRUE_WORDS = ('1', 'true', 'on', 'yes')
FALSE_WORDS = ('0', 'false', 'off', 'no', '')


def to_text(value: Any) -> str:
    """Convert a scalar to the text form every filter operates on."""
    if value is None:
        return ''
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return '1' if value else ''
    if isinstance(value, float):
        if value.is_integer() and abs(value) < 1e15:
            return str(int(value))
        return repr(value)
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode('latin-1')
    return str(value)


def strip_and_encode(
    text: str,
    flags: int,
    encode_chars: str = '',
    encode_low: bool = False
) -> str:
    """
    Apply the character-level strip and encode flags shared by the sanitizers.

    Stripping happens before encoding, so a character matched by both a strip
    and an encode flag is removed. Encoded characters become decimal numeric
    references such as ``&#38;``.

    Args:
        text: Text to process
        flags: Bitset of STRIP_LOW, STRIP_HIGH, STRIP_BACKTICK, ENCODE_LOW,
            ENCODE_HIGH and ENCODE_AMP
        encode_chars: Additional characters that are always encoded
        encode_low: Always encode characters below 32

    Returns:
        Processed text
    """
    strip_low = flags & FilterFlag.STRIP_LOW
    strip_high = flags & FilterFlag.STRIP_HIGH
    strip_backtick = flags & FilterFlag.STRIP_BACKTICK
    encode_low = encode_low or flags & FilterFlag.ENCODE_LOW
    encode_high = flags & FilterFlag.ENCODE_HIGH
    if flags & FilterFlag.ENCODE_AMP:
        encode_chars += '&'

    if not (strip_low or strip_high or strip_backtick or encode_low
            or encode_high or encode_chars):
        return text

    output = []
    for char in text:
        code = ord(char)
        if (strip_low and code < 32) or (strip_high and code >= 128) \
                or (strip_backtick and char == '`'):
            continue
        if (encode_low and code < 32) or (encode_high and code >= 128) \
                or char in encode_chars:
            output.append(f'&#{code};')
        else:
            output.append(char)
    return ''.join(output)


@lru_cache(maxsize=256)
def compile_delimited_pattern(expression: str) -> Pattern:
    """
    Compile a delimited regular expression such as ``!(deal|deals)!i``.

    The first character is the delimiter; bracket delimiters close with their
    counterpart. Trailing characters are pattern modifiers.

    Raises:
        InvalidFilterOptionsError: When the expression is malformed
    """
    stripped = expression.lstrip()
    if not stripped:
        raise InvalidFilterOptionsError("Empty regular expression")

    delimiter = stripped[0]
    if delimiter.isalnum() or delimiter == '\\':
        raise InvalidFilterOptionsError(
            f"Delimiter must not be alphanumeric or backslash: {expression!r}"
        )

    closing = PATTERN_BRACKETS.get(delimiter, delimiter)
    end = stripped.rfind(closing)
    if end <= 0:
        raise InvalidFilterOptionsError(f"No ending delimiter {closing!r} found")

    body = stripped[1:end]
    re_flags = 0
    anchored = False
    for modifier in stripped[end + 1:]:
        if modifier == 'A':
            anchored = True
        elif modifier in PATTERN_MODIFIERS:
            re_flags |= PATTERN_MODIFIERS[modifier]
        elif modifier in ' \r\n':
            continue
        else:
            raise InvalidFilterOptionsError(f"Unknown modifier {modifier!r}")

    if anchored:
        body = r'\A(?:' + body + ')'

    try:
        return re.compile(body, re_flags)
    except re.error as e:
        raise InvalidFilterOptionsError(f"Invalid regular expression: {str(e)}")


def _option(options: Any, name: str, default: Any = None) -> Any:
    if isinstance(options, Mapping):
        return options.get(name, default)
    return default


def _in_range(number, options: Any) -> bool:
    min_range = _option(options, 'min_range')
    max_range = _option(options, 'max_range')
    if min_range is not None and number < min_range:
        return False
    if max_range is not None and number > max_range:
        return False
    return True


# =============================================================================
# VALIDATING FILTERS
# =============================================================================

def validate_int(text: str, flags: int, options: Any) -> Any:
    text = text.strip(TRIM_CHARS)
    if not text:
        return FAILED

    match = HEX_INT_REGEX.fullmatch(text) if flags & FilterFlag.ALLOW_HEX else None
    if match:
        number = int(match.group(1), 16)
    else:
        match = OCTAL_INT_REGEX.fullmatch(text) if flags & FilterFlag.ALLOW_OCTAL else None
        if match:
            number = int(match.group(1), 8)
        elif DECIMAL_INT_REGEX.fullmatch(text):
            number = int(text)
        else:
            return FAILED

    if number < INT_MIN or number > INT_MAX:
        return FAILED
    if not _in_range(number, options):
        return FAILED
    return number


def validate_bool(text: str, flags: int, options: Any) -> Any:
    word = text.strip(TRIM_CHARS).lower()
    if word in TRUE_WORDS:
        return True
    if word in FALSE_WORDS:
        return False
    return FAILED


def validate_float(text: str, flags: int, options: Any) -> Any:
    decimal = _option(options, 'decimal', '.')
    if len(decimal) != 1:
        raise InvalidFilterOptionsError("Decimal separator must be one char")
    thousand = _option(options, 'thousand', "',.")
    if not thousand:
        raise InvalidFilterOptionsError("Thousand separator must be at least one char")
    # the decimal separator always wins over a thousand separator
    thousand = thousand.replace(decimal, '')

    text = text.strip(TRIM_CHARS)
    if not text:
        return FAILED

    dec = re.escape(decimal)
    if flags & FilterFlag.ALLOW_THOUSAND and thousand:
        sep = '[' + re.escape(thousand) + ']'
        int_part = rf'(?:\d{{1,3}}(?:{sep}\d{{3}})+|\d+)'
    else:
        sep = None
        int_part = r'\d+'

    pattern = rf'[+-]?(?:{int_part}(?:{dec}\d*)?|{dec}\d+)(?:[eE][+-]?\d+)?'
    if not re.fullmatch(pattern, text):
        return FAILED

    mantissa, exponent = text, ''
    exponent_match = re.search(r'[eE]', text)
    if exponent_match:
        mantissa, exponent = text[:exponent_match.start()], text[exponent_match.start():]

    integer, has_decimal, fraction = mantissa.partition(decimal)
    if sep:
        integer = re.sub(sep, '', integer)
    normalized = f'{integer}.{fraction}{exponent}' if has_decimal else f'{integer}{exponent}'

    try:
        number = float(normalized)
    except ValueError:
        return FAILED
    if number in (float('inf'), float('-inf')):
        return FAILED
    if not _in_range(number, options):
        return FAILED
    return number


def validate_regexp(text: str, flags: int, options: Any) -> Any:
    expression = _option(options, 'regexp')
    if not expression:
        raise InvalidFilterOptionsError("'regexp' option missing")
    pattern = compile_delimited_pattern(expression)
    return text if pattern.search(text) else FAILED


def _valid_host(host: str) -> bool:
    if host.startswith('[') and host.endswith(']'):
        try:
            ipaddress.IPv6Address(host[1:-1])
            return True
        except ValueError:
            return False
    host = host[:-1] if host.endswith('.') else host
    if not host or len(host) > 253:
        return False
    return all(HOST_LABEL_REGEX.fullmatch(label) for label in host.split('.'))


def validate_url(text: str, flags: int, options: Any) -> Any:
    if not text or any(char not in URL_SAFE_CHARS for char in text):
        return FAILED

    parsed = urlparse(text)
    if not parsed.scheme or not SCHEME_REGEX.fullmatch(parsed.scheme):
        return FAILED

    netloc_host = parsed.netloc.rpartition('@')[2]
    if netloc_host.startswith('['):
        host = netloc_host[:netloc_host.find(']') + 1]
    else:
        host = netloc_host.partition(':')[0]

    if not host:
        if parsed.scheme.lower() not in SCHEMES_WITHOUT_HOST:
            return FAILED
    elif not _valid_host(host):
        return FAILED

    try:
        parsed.port
    except ValueError:
        return FAILED

    if flags & FilterFlag.PATH_REQUIRED and not parsed.path:
        return FAILED
    if flags & FilterFlag.QUERY_REQUIRED and not parsed.query:
        return FAILED
    return text


def validate_email_address(text: str, flags: int, options: Any) -> Any:
    try:
        validate_email(
            text,
            check_deliverability=False,
            allow_smtputf8=bool(flags & FilterFlag.EMAIL_UNICODE)
        )
    except EmailNotValidError:
        return FAILED
    return text


def validate_ip(text: str, flags: int, options: Any) -> Any:
    try:
        address = ipaddress.ip_address(text)
    except ValueError:
        return FAILED

    want_v4 = flags & FilterFlag.IPV4
    want_v6 = flags & FilterFlag.IPV6
    if want_v4 or want_v6:
        if address.version == 4 and not want_v4:
            return FAILED
        if address.version == 6 and not want_v6:
            return FAILED

    if flags & FilterFlag.NO_PRIV_RANGE and address.is_private \
            and not (address.is_loopback or address.is_link_local):
        return FAILED
    if flags & FilterFlag.NO_RES_RANGE and (
            address.is_reserved or address.is_loopback
            or address.is_link_local or address.is_unspecified):
        return FAILED
    return text


# =============================================================================
# SANITIZING FILTERS
# =============================================================================

def unsafe_raw(text: str, flags: int, options: Any) -> Any:
    if flags & FilterFlag.EMPTY_STRING_NULL and not text:
        return None
    return strip_and_encode(text, flags)


def sanitize_special_chars(text: str, flags: int, options: Any) -> Any:
    return strip_and_encode(text, flags, encode_chars='\'"<>&', encode_low=True)


def sanitize_full_special_chars(text: str, flags: int, options: Any) -> Any:
    encode_quotes = not flags & FilterFlag.NO_ENCODE_QUOTES
    output = []
    for char in text:
        if char == '"':
            output.append('&quot;' if encode_quotes else char)
        elif char == "'":
            output.append('&#039;' if encode_quotes else char)
        elif ord(char) in codepoint2name:
            output.append(f'&{codepoint2name[ord(char)]};')
        else:
            output.append(char)
    return ''.join(output)


def sanitize_encoded(text: str, flags: int, options: Any) -> Any:
    text = strip_and_encode(text, flags & (
        FilterFlag.STRIP_LOW | FilterFlag.STRIP_HIGH | FilterFlag.STRIP_BACKTICK
    ))
    output = []
    for char in text:
        if char in ENCODED_SAFE_CHARS:
            output.append(char)
        else:
            output.extend(f'%{byte:02X}' for byte in char.encode('utf-8'))
    return ''.join(output)


def _keep_only(text: str, allowed) -> str:
    return ''.join(char for char in text if char in allowed)


def sanitize_email(text: str, flags: int, options: Any) -> Any:
    return _keep_only(text, EMAIL_SAFE_CHARS)


def sanitize_url(text: str, flags: int, options: Any) -> Any:
    return _keep_only(text, URL_SAFE_CHARS)


def sanitize_number_int(text: str, flags: int, options: Any) -> Any:
    return _keep_only(text, '0123456789+-')


def sanitize_number_float(text: str, flags: int, options: Any) -> Any:
    allowed = '0123456789+-'
    if flags & FilterFlag.ALLOW_FRACTION:
        allowed += '.'
    if flags & FilterFlag.ALLOW_THOUSAND:
        allowed += ','
    if flags & FilterFlag.ALLOW_SCIENTIFIC:
        allowed += 'eE'
    return _keep_only(text, allowed)


def sanitize_add_slashes(text: str, flags: int, options: Any) -> Any:
    return (
        text.replace('\\', '\\\\')
        .replace("'", "\\'")
        .replace('"', '\\"')
        .replace('\x00', '\\0')
    )


FilterHandler = Callable[[str, int, Any], Any]

DEFAULT_HANDLERS: Dict[int, FilterHandler] = {
    FilterType.VALIDATE_INT: validate_int,
    FilterType.VALIDATE_BOOL: validate_bool,
    FilterType.VALIDATE_FLOAT: validate_float,
    FilterType.VALIDATE_REGEXP: validate_regexp,
    FilterType.VALIDATE_URL: validate_url,
    FilterType.VALIDATE_EMAIL: validate_email_address,
    FilterType.VALIDATE_IP: validate_ip,
    FilterType.UNSAFE_RAW: unsafe_raw,
    FilterType.SANITIZE_ENCODED: sanitize_encoded,
    FilterType.SANITIZE_SPECIAL_CHARS: sanitize_special_chars,
    FilterType.SANITIZE_FULL_SPECIAL_CHARS: sanitize_full_special_chars,
    FilterType.SANITIZE_EMAIL: sanitize_email,
    FilterType.SANITIZE_URL: sanitize_url,
    FilterType.SANITIZE_NUMBER_INT: sanitize_number_int,
    FilterType.SANITIZE_NUMBER_FLOAT: sanitize_number_float,
    FilterType.SANITIZE_ADD_SLASHES: sanitize_add_slashes,
}


class FilterEngine:
    """
    Synchronous, stateless filter engine.

    Any object exposing ``filter_var`` and ``filter_var_array`` with the same
    contracts can replace it in the filtering facade.
    """

    def __init__(self, handlers: Optional[Mapping[int, FilterHandler]] = None):
        self._handlers: Dict[int, FilterHandler] = dict(DEFAULT_HANDLERS)
        if handlers:
            self._handlers.update({int(key): value for key, value in handlers.items()})

    def filter_var(
        self,
        value: Any,
        filter: int = FilterType.DEFAULT,
        options: Any = 0
    ) -> Any:
        """
        Filter a single value.

        Args:
            value: Value to filter, a scalar or a list/dict when array flags
                are given
            filter: Filter id
            options: Flag bitset, or a dict with ``flags`` and ``options``
                keys; for CALLBACK ``options`` is the callable

        Returns:
            The filtered value, or the failure sentinel
        """
        filter_id = self._resolve_filter(filter)
        if isinstance(options, Mapping):
            flags = int(options.get('flags', 0) or 0)
            filter_options = options.get('options')
        else:
            flags = int(options or 0)
            filter_options = None
        return self._apply(value, filter_id, flags, filter_options)

    def filter_var_array(
        self,
        data: Mapping[str, Any],
        definition: Any = FilterType.DEFAULT,
        add_empty: bool = True
    ) -> Any:
        """
        Filter a mapping of values.

        Args:
            data: Values to filter
            definition: One filter id applied to every value, or a mapping of
                key to filter id or ``{filter, flags, options}`` dict
            add_empty: Add missing definition keys to the result as None

        Returns:
            Filtered mapping, or False for an unusable definition
        """
        if not isinstance(data, Mapping):
            raise TypeError(f"data must be a mapping, got {type(data).__name__}")

        if isinstance(definition, int) and not isinstance(definition, bool):
            filter_id = self._resolve_filter(definition)
            return self._apply(dict(data), filter_id, FilterFlag.REQUIRE_ARRAY, None)

        if not isinstance(definition, Mapping):
            logger.warning(
                "Unusable filter definition",
                definition_type=type(definition).__name__
            )
            return False

        result = {}
        for key, argument in definition.items():
            if key not in data:
                if add_empty:
                    result[key] = None
                continue

            if isinstance(argument, Mapping):
                filter_id = self._resolve_filter(argument.get('filter', FilterType.DEFAULT))
                flags = int(argument.get('flags', 0) or 0)
                filter_options = argument.get('options')
            else:
                filter_id = self._resolve_filter(argument)
                flags = 0
                filter_options = None

            result[key] = self._apply(data[key], filter_id, flags, filter_options)
        return result

    def _resolve_filter(self, filter: Any) -> int:
        try:
            filter_id = int(filter)
        except (TypeError, ValueError):
            filter_id = None

        if filter_id != FilterType.CALLBACK and filter_id not in self._handlers:
            logger.warning("Unknown filter requested", filter=filter)
            raise UnknownFilterError(filter)
        return filter_id

    def _apply(self, value: Any, filter_id: int, flags: int, options: Any) -> Any:
        if filter_id == FilterType.CALLBACK:
            if not callable(options):
                logger.warning(
                    "Callback filter without a callable",
                    options_type=type(options).__name__
                )
                raise InvalidFilterOptionsError(
                    "CALLBACK filter requires a callable in 'options'"
                )
            if isinstance(value, (list, tuple, dict)):
                return self._apply_recursive(value, filter_id, flags, options)
            return options(to_text(value))

        if isinstance(value, (list, tuple, dict)):
            if flags & (FilterFlag.REQUIRE_ARRAY | FilterFlag.FORCE_ARRAY):
                return self._apply_recursive(value, filter_id, flags, options)
            return self._failure(flags, options)

        if flags & FilterFlag.REQUIRE_ARRAY:
            return self._failure(flags, options)

        result = self._apply_scalar(value, filter_id, flags, options)
        if flags & FilterFlag.FORCE_ARRAY:
            return [result]
        return result

    def _apply_recursive(self, value: Any, filter_id: int, flags: int, options: Any) -> Any:
        if isinstance(value, dict):
            return {
                key: self._apply_element(item, filter_id, flags, options)
                for key, item in value.items()
            }
        return [self._apply_element(item, filter_id, flags, options) for item in value]

    def _apply_element(self, value: Any, filter_id: int, flags: int, options: Any) -> Any:
        if isinstance(value, (list, tuple, dict)):
            return self._apply_recursive(value, filter_id, flags, options)
        if filter_id == FilterType.CALLBACK:
            return options(to_text(value))
        return self._apply_scalar(value, filter_id, flags, options)

    def _apply_scalar(self, value: Any, filter_id: int, flags: int, options: Any) -> Any:
        handler = self._handlers[filter_id]
        result = handler(to_text(value), flags, options)
        if result is FAILED:
            return self._failure(flags, options)
        return result

    @staticmethod
    def _failure(flags: int, options: Any) -> Any:
        if isinstance(options, Mapping) and 'default' in options:
            return options['default']
        if flags & FilterFlag.NULL_ON_FAILURE:
            return None
        return False


__all__ = [
    'FilterEngine',
    'FAILED',
    'DEFAULT_HANDLERS',
    'to_text',
    'strip_and_encode',
    'compile_delimited_pattern'
]
