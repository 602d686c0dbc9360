"""Small string helpers and the wall-clock date record."""

from __future__ import annotations

from dataclasses import dataclass
from itertools import zip_longest
from typing import IO, AnyStr


@dataclass
class RtcDate:
    """A calendar date and time of day as reported by a real-time clock."""

    second: int = 0
    minute: int = 0
    hour: int = 0
    day: int = 0
    month: int = 0
    year: int = 0


def _as_bytes(s: str | bytes) -> bytes:
    return s.encode("utf-8") if isinstance(s, str) else bytes(s)


def strcmp(p: str | bytes, q: str | bytes) -> int:
    """Compare two strings bytewise as unsigned chars, stopping at a NUL.

    Returns zero when equal, otherwise the difference of the first
    differing bytes.
    """
    for x, y in zip_longest(_as_bytes(p), _as_bytes(q), fillvalue=0):
        if x == 0 or x != y:
            return x - y
    return 0


def atoi(s: str | bytes) -> int:
    """Convert the leading decimal digits of s to an integer.

    No sign or leading whitespace is accepted; anything else yields 0.
    """
    n = 0
    for ch in _as_bytes(s):
        if not 0x30 <= ch <= 0x39:
            break
        n = n * 10 + ch - 0x30
    return n


def gets(stream: IO[AnyStr], max: int) -> AnyStr:
    """Read one line of at most max-1 characters from stream.

    Reading stops after a newline or carriage return, which is kept,
    or at end of input.
    """
    chunks = []
    while len(chunks) + 1 < max:
        c = stream.read(1)
        if not c:
            break
        chunks.append(c)
        if c in ("\n", "\r", b"\n", b"\r"):
            break
    empty = stream.read(0)
    return empty.join(chunks)