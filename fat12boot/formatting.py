"""A small printf-style formatter with the bootloader console's semantics."""

from __future__ import annotations

from collections.abc import Iterator
from enum import Enum, auto
from typing import Any

_DIGITS = "0123456789abcdef"


class _Length(Enum):
    DEFAULT = auto()
    SHORT_SHORT = auto()
    SHORT = auto()
    LONG = auto()
    LONG_LONG = auto()


class _State(Enum):
    NORMAL = auto()
    LENGTH = auto()
    LENGTH_SHORT = auto()
    LENGTH_LONG = auto()
    SPEC = auto()


# int is 16 bits wide on the target; short and char arguments promote to it.
_BITS = {
    _Length.DEFAULT: 16,
    _Length.SHORT: 16,
    _Length.SHORT_SHORT: 16,
    _Length.LONG: 32,
    _Length.LONG_LONG: 64,
}

_RADIX = {"d": 10, "i": 10, "u": 10, "x": 16, "X": 16, "p": 16, "o": 8}
_SIGNED = {"d", "i"}


def _next_arg(args: Iterator[Any]) -> Any:
    try:
        return next(args)
    except StopIteration:
        raise TypeError("not enough arguments for format string") from None


def _digits(number: int, radix: int) -> str:
    out = []
    while True:
        number, rem = divmod(number, radix)
        out.append(_DIGITS[rem])
        if number == 0:
            break
    return "".join(reversed(out))


def _format_number(value: int, length: _Length, signed: bool, radix: int) -> str:
    bits = _BITS[length]
    mask = (1 << bits) - 1
    number = int(value) & mask
    if signed and number >> (bits - 1):
        return "-" + _digits((1 << bits) - number, radix)
    return _digits(number, radix)


def _format_char(value: Any) -> str:
    if isinstance(value, str):
        if len(value) != 1:
            raise TypeError("%c requires a single character")
        return value
    return chr(int(value) & 0xFF)


def format_printf(fmt: str, *args: Any) -> str:
    """Format ``fmt`` with ``args`` the way the boot console's printf does.

    Supports %c, %s, %%, %d, %i, %u, %x, %X, %p and %o with the optional
    length modifiers h, hh, l and ll. Hexadecimal digits are always lower
    case and unknown conversions are dropped without consuming an argument.
    """
    out: list[str] = []
    arg_iter = iter(args)
    state = _State.NORMAL
    length = _Length.DEFAULT

    for ch in fmt:
        if state is _State.NORMAL:
            if ch == "%":
                state = _State.LENGTH
            else:
                out.append(ch)
            continue

        if state is _State.LENGTH:
            if ch == "h":
                length, state = _Length.SHORT, _State.LENGTH_SHORT
                continue
            if ch == "l":
                length, state = _Length.LONG, _State.LENGTH_LONG
                continue
        elif state is _State.LENGTH_SHORT and ch == "h":
            length, state = _Length.SHORT_SHORT, _State.SPEC
            continue
        elif state is _State.LENGTH_LONG and ch == "l":
            length, state = _Length.LONG_LONG, _State.SPEC
            continue

        if ch == "c":
            out.append(_format_char(_next_arg(arg_iter)))
        elif ch == "s":
            out.append(str(_next_arg(arg_iter)))
        elif ch == "%":
            out.append("%")
        elif ch in _RADIX:
            out.append(
                _format_number(_next_arg(arg_iter), length, ch in _SIGNED, _RADIX[ch])
            )

        state = _State.NORMAL
        length = _Length.DEFAULT

    return "".join(out)