"""Number and string helpers for AT command text exchanged with the device."""

from __future__ import annotations

import enum
from typing import Union

AT_CMD_BLOCKING = 1
AT_CMD_NONBLOCKING = 0

HW_RST_ASSERT = 0
HW_RST_DEASSERT = 1

# Whether a value that is set should also be stored in the device's flash
# as its default, to be applied again after the next reset.
SETVALUE_NOT_SAVE = 0
SETVALUE_SAVE = 1

ASCII_CR = 0x0D
ASCII_LF = 0x0A
ASCII_DOUBLE_QUOTE = 0x22
ASCII_COMMA = 0x2C
ASCII_DOT = 0x2E
ASCII_COLON = 0x3A
ASCII_EQUAL = 0x3D
CRLF = b"\r\n"

CharLike = Union[int, str]


class DigitBase(enum.IntEnum):
    """Radix used when parsing or formatting numbers."""

    DECIMAL = 10
    HEX = 16


class TokenNotFoundError(ValueError):
    """Raised when a token does not occur within the allowed span."""


def _code(ch: CharLike) -> int:
    return ord(ch) if isinstance(ch, str) else int(ch)


def _is_decimal(code: int) -> bool:
    return 0x30 <= code <= 0x39


def _is_hex(code: int) -> bool:
    return _is_decimal(code) or 0x61 <= code <= 0x66 or 0x41 <= code <= 0x46


def _to_int32(value: int) -> int:
    return ((value + 0x80000000) & 0xFFFFFFFF) - 0x80000000


def is_valid_ascii(ch: CharLike) -> bool:
    """Return True for printable ASCII, carriage return or line feed."""
    code = _code(ch)
    return 32 <= code <= 126 or code in (ASCII_CR, ASCII_LF)


def hex_char_value(ch: CharLike) -> int:
    """Return the value of one hexadecimal digit, or 0 if it is not one."""
    code = _code(ch)
    if _is_decimal(code):
        return code - 0x30
    if 0x61 <= code <= 0x66:
        return code - 0x61 + 10
    if 0x41 <= code <= 0x46:
        return code - 0x41 + 10
    return 0


def parse_first_number(
    data: bytes | bytearray | memoryview | str,
    pos: int = 0,
    base: DigitBase | int = DigitBase.DECIMAL,
) -> tuple[int, int]:
    """Parse the first number found at or after ``pos``.

    Characters that are not digits of ``base`` are skipped; a minus sign
    directly in front of the digits makes the number negative. Returns the
    value, wrapped to a signed 32-bit integer, and the position just after
    the last digit (or the end of the data when no number was found).
    """
    if isinstance(data, str):
        data = data.encode("latin-1")
    radix = DigitBase(base)
    is_digit = _is_decimal if radix is DigitBase.DECIMAL else _is_hex
    size = len(data)

    negative = False
    while pos < size and data[pos] != 0 and not is_digit(data[pos]):
        negative = data[pos] == ord("-")
        pos += 1

    value = 0
    while pos < size and is_digit(data[pos]):
        value = value * radix + hex_char_value(data[pos])
        pos += 1

    return _to_int32(-value if negative else value), pos


def number_to_str(num: int, base: DigitBase | int = DigitBase.DECIMAL) -> str:
    """Format ``num`` in decimal or lower-case hexadecimal."""
    radix = DigitBase(base)
    return format(int(num), "x" if radix is DigitBase.HEX else "d")


def parse_until_token(src, token, limit: int):
    """Return the part of ``src`` before ``token``.

    The token must occur within the first ``limit`` characters, before any
    NUL character; otherwise TokenNotFoundError is raised.
    """
    if isinstance(src, str):
        tok = token if isinstance(token, str) else chr(token)
        nul = "\0"
    else:
        src = bytes(src)
        if isinstance(token, int):
            tok = bytes([token])
        elif isinstance(token, str):
            tok = token.encode("latin-1")
        else:
            tok = bytes(token)
        nul = b"\0"
    if limit <= 0:
        raise TokenNotFoundError("no room to search for the token")
    window = src[:limit]
    end = window.find(nul)
    if end >= 0:
        window = window[:end]
    idx = window.find(tok)
    if idx < 0:
        raise TokenNotFoundError(f"token {tok!r} not found within {limit} characters")
    return src[:idx]