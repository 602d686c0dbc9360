"""Minimal formatted output understanding %d %l %x %p %s %c and %%."""

from __future__ import annotations

import sys
from typing import IO, Any, Iterator

_DIGITS = "0123456789ABCDEF"
_MASK32 = (1 << 32) - 1
_MASK64 = (1 << 64) - 1


def _to_int32(value: int) -> int:
    value &= _MASK32
    return value - (1 << 32) if value >= 1 << 31 else value


def _printint(value: int, base: int, signed: bool) -> str:
    xx = _to_int32(int(value))
    neg = signed and xx < 0
    x = -xx if neg else xx & _MASK32
    out = []
    while True:
        out.append(_DIGITS[x % base])
        x //= base
        if x == 0:
            break
    if neg:
        out.append("-")
    return "".join(reversed(out))


def _printptr(value: int) -> str:
    return "0x" + f"{int(value) & _MASK64:016X}"


def _next(args: Iterator[Any]) -> Any:
    try:
        return next(args)
    except StopIteration:
        raise TypeError("not enough arguments for format string") from None


def format(fmt: str, *args: Any) -> str:
    """Render fmt with args; unknown conversions are echoed verbatim."""
    it = iter(args)
    out: list[str] = []
    pending = False
    for c in fmt:
        if not pending:
            if c == "%":
                pending = True
            else:
                out.append(c)
            continue
        pending = False
        if c == "d":
            out.append(_printint(_next(it), 10, True))
        elif c == "l":
            out.append(_printint(_next(it), 10, False))
        elif c == "x":
            out.append(_printint(_next(it), 16, False))
        elif c == "p":
            out.append(_printptr(_next(it)))
        elif c == "s":
            s = _next(it)
            out.append("(null)" if s is None else str(s))
        elif c == "c":
            ch = _next(it)
            out.append(ch[:1] if isinstance(ch, str) else chr(int(ch) & 0xFF))
        elif c == "%":
            out.append("%")
        else:
            out.append("%" + c)
    return "".join(out)


def fprintf(stream: IO[str], fmt: str, *args: Any) -> None:
    """Write formatted output to a text stream."""
    stream.write(format(fmt, *args))


def printf(fmt: str, *args: Any) -> None:
    """Write formatted output to standard output."""
    fprintf(sys.stdout, fmt, *args)