"""Count lines, words and bytes."""

from __future__ import annotations

import sys
from dataclasses import dataclass
from typing import BinaryIO, TextIO

from xvkit.printf import fprintf

_WHITESPACE = frozenset(b" \r\t\n\v")
_CHUNK = 512


@dataclass(frozen=True)
class WordCount:
    """Totals of lines, words and bytes."""

    lines: int
    words: int
    chars: int


def count(data: bytes) -> WordCount:
    """Count newlines, whitespace-separated words and bytes in data."""
    words = 0
    inword = False
    for b in data:
        if b in _WHITESPACE:
            inword = False
        elif not inword:
            words += 1
            inword = True
    return WordCount(data.count(b"\n"), words, len(data))


def wc(stream: BinaryIO, name: str, out: TextIO) -> WordCount:
    """Count stream and print "lines words chars name" to out."""
    data = b"".join(iter(lambda: stream.read(_CHUNK), b""))
    result = count(data)
    fprintf(out, "%d %d %d %s\n", result.lines, result.words, result.chars, name)
    return result


def main(argv: list[str] | None = None) -> int:
    """Count each named file, or standard input; return exit status."""
    args = sys.argv[1:] if argv is None else list(argv)
    out = sys.stdout
    try:
        if not args:
            wc(sys.stdin.buffer, "", out)
            return 0
        for name in args:
            try:
                f = open(name, "rb")
            except OSError:
                fprintf(out, "wc: cannot open %s\n", name)
                return 1
            with f:
                wc(f, name, out)
        return 0
    except OSError:
        fprintf(out, "wc: read error\n")
        return 1