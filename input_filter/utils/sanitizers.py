"""
Legacy string sanitization.

Reproduces the output of the retired "sanitize string" platform filter so that
callers relying on it keep getting byte-identical results. The pipeline is:

1. strip markup tags, keeping their text content
2. run the raw filter with the caller's flags minus ``ENCODE_AMP``
3. HTML5-escape ``& < >`` and, unless ``NO_ENCODE_QUOTES``, ``" '``
4. turn ``&amp;`` back into ``&`` unless the caller asked for ``ENCODE_AMP``

The raw filter would encode ``&`` as ``&#38;`` and the escaping step as
``&amp;``; clearing the flag for step 2 and undoing step 3 selectively leaves
exactly one encoding, chosen by the caller's original flag.
"""

from typing import Any, Union

from input_filter.filters.constants import FilterFlag
from input_filter.filters.engine import to_text, unsafe_raw

# strip_tags scanner states
_TEXT = 0
_TAG = 1
_INSTRUCTION = 2
_DECLARATION = 3
_COMMENT = 4

# only ASCII whitespace after '<' keeps it as text
_ASCII_WHITESPACE = frozenset(' \t\n\r\v\f')

_ENTITIES_WITH_QUOTES = str.maketrans({
    '&': '&amp;',
    '<': '&lt;',
    '>': '&gt;',
    '"': '&quot;',
    "'": '&apos;',
})

_ENTITIES_WITHOUT_QUOTES = str.maketrans({
    '&': '&amp;',
    '<': '&lt;',
    '>': '&gt;',
})


def strip_tags(text: str) -> str:
    """
    Remove ``<...>`` markup from text, keeping the text between tags.

    This is a scanner, not an HTML parser:

    - a ``<`` followed by whitespace is ordinary text
    - a ``>`` inside a quoted attribute value does not close the tag
    - nested ``<`` inside a tag must be balanced before the tag closes
    - ``<!-- -->`` comments, ``<!...>`` declarations and ``<?...>``
      processing instructions are dropped entirely
    - an unterminated tag swallows the rest of the input
    """
    output = []
    state = _TEXT
    depth = 0
    quote = None
    index = 0
    length = len(text)

    while index < length:
        char = text[index]

        if state == _TEXT:
            if char == '<':
                following = text[index + 1] if index + 1 < length else ''
                if following in _ASCII_WHITESPACE:
                    output.append(char)
                elif text.startswith('<!--', index):
                    state = _COMMENT
                    index += 4
                    continue
                elif following == '!':
                    state = _DECLARATION
                elif following == '?':
                    state = _INSTRUCTION
                else:
                    state = _TAG
            else:
                output.append(char)

        elif state == _COMMENT:
            if text.startswith('-->', index):
                state = _TEXT
                index += 3
                continue

        else:
            if quote:
                if char == quote:
                    quote = None
            elif char in '"\'':
                quote = char
            elif char == '<':
                depth += 1
            elif char == '>':
                if depth:
                    depth -= 1
                else:
                    state = _TEXT

        index += 1

    return ''.join(output)


def encode_html_entities(text: str, encode_quotes: bool = True) -> str:
    """
    HTML5-escape text.

    ``&``, ``<`` and ``>`` are always escaped. Quotes become ``&quot;`` and
    ``&apos;`` when ``encode_quotes`` is set. Existing entities are escaped
    again (``&amp;`` becomes ``&amp;amp;``).
    """
    table = _ENTITIES_WITH_QUOTES if encode_quotes else _ENTITIES_WITHOUT_QUOTES
    return text.translate(table)


def sanitize_string(value: Any, flags: int = 0) -> Union[str, bytes]:
    """
    Sanitize a value the way the legacy string-sanitize filter did.

    Args:
        value: Text to sanitize. ``bytes`` are processed byte for byte and
            returned as ``bytes``; other scalars are converted to text first.
            For ``str`` input the low/high flags apply per code point, so
            ``ENCODE_HIGH`` turns ``'€'`` into ``&#8364;``. Pass the
            UTF-8 ``bytes`` to get one reference per byte instead.
        flags: Bitset of STRIP_LOW, STRIP_HIGH, STRIP_BACKTICK, ENCODE_LOW,
            ENCODE_HIGH, ENCODE_AMP and NO_ENCODE_QUOTES. Unknown bits are
            passed to the raw filter untouched.

    Returns:
        Sanitized text; never fails
    """
    flags = int(flags or 0)
    encode_amp = bool(flags & FilterFlag.ENCODE_AMP)
    raw_flags = flags & ~int(FilterFlag.ENCODE_AMP)
    is_bytes = isinstance(value, (bytes, bytearray))

    text = strip_tags(to_text(value))

    text = unsafe_raw(text, raw_flags, None)
    if text is None:
        text = ''

    text = encode_html_entities(
        text,
        encode_quotes=not raw_flags & FilterFlag.NO_ENCODE_QUOTES
    )

    if not encode_amp:
        text = text.replace('&amp;', '&')

    if is_bytes:
        return text.encode('latin-1')
    return text


class StringSanitizer:
    """
    ``sanitize_string`` bound to a fixed flag bitset.

    Instances are what the options normalizer installs as the ``options`` of a
    CALLBACK filter. They hold no state beyond the flags, so they can be
    shared freely and compare equal when their flags match.
    """

    __slots__ = ('flags',)

    def __init__(self, flags: int = 0):
        self.flags = int(flags or 0)

    def __call__(self, value: Any = None) -> Union[str, bytes]:
        return sanitize_string(value, self.flags)

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, StringSanitizer):
            return NotImplemented
        return self.flags == other.flags

    def __hash__(self) -> int:
        return hash((StringSanitizer, self.flags))

    def __repr__(self) -> str:
        return f"StringSanitizer(flags={self.flags})"


__all__ = [
    'strip_tags',
    'encode_html_entities',
    'sanitize_string',
    'StringSanitizer'
]
