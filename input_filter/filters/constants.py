"""
Filter, flag and input-source catalogs.

Numeric values are compatible with the historical platform filter extension so
that stored or serialized filter definitions keep their meaning. Plain ``int``
values are accepted anywhere one of these enums is expected.
"""

from enum import IntEnum, IntFlag


class FilterType(IntEnum):
    """Identifiers of the filter operations understood by the filter engine."""

    VALIDATE_INT = 257
    VALIDATE_BOOL = 258
    VALIDATE_FLOAT = 259
    VALIDATE_REGEXP = 272
    VALIDATE_URL = 273
    VALIDATE_EMAIL = 274
    VALIDATE_IP = 275

    # Legacy string sanitizer. The engine does not implement it; the options
    # normalizer rewrites it into a CALLBACK bound to sanitize_string.
    SANITIZE_STRING = 513
    SANITIZE_ENCODED = 514
    SANITIZE_SPECIAL_CHARS = 515
    UNSAFE_RAW = 516
    SANITIZE_EMAIL = 517
    SANITIZE_URL = 518
    SANITIZE_NUMBER_INT = 519
    SANITIZE_NUMBER_FLOAT = 520
    SANITIZE_FULL_SPECIAL_CHARS = 522
    SANITIZE_ADD_SLASHES = 523

    CALLBACK = 1024

    DEFAULT = 516


class FilterFlag(IntFlag):
    """Modifier bits accepted by the filters."""

    NONE = 0

    ALLOW_OCTAL = 1
    ALLOW_HEX = 2
    STRIP_LOW = 4
    STRIP_HIGH = 8
    ENCODE_LOW = 16
    ENCODE_HIGH = 32
    ENCODE_AMP = 64
    NO_ENCODE_QUOTES = 128
    EMPTY_STRING_NULL = 256
    STRIP_BACKTICK = 512
    ALLOW_FRACTION = 4096
    ALLOW_THOUSAND = 8192
    ALLOW_SCIENTIFIC = 16384
    PATH_REQUIRED = 262144
    QUERY_REQUIRED = 524288
    IPV4 = 1048576
    IPV6 = 2097152
    NO_RES_RANGE = 4194304
    NO_PRIV_RANGE = 8388608
    EMAIL_UNICODE = 1048576

    REQUIRE_ARRAY = 16777216
    REQUIRE_SCALAR = 33554432
    FORCE_ARRAY = 67108864
    NULL_ON_FAILURE = 134217728


class InputType(IntEnum):
    """Categories of ambient request/process input."""

    POST = 0
    GET = 1
    COOKIE = 2
    ENV = 4
    SERVER = 5


def filter_name(filter_id) -> str:
    """Readable name for a filter id, used as a log and metric label."""
    try:
        return FilterType(filter_id).name.lower()
    except ValueError:
        return str(filter_id)


__all__ = ['FilterType', 'FilterFlag', 'InputType', 'filter_name']
