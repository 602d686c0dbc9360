"""Line filter supporting the ^ . * $ regular-expression operators."""

from __future__ import annotations

import sys
from typing import BinaryIO

_BUFSIZE = 1024


def match(re: str, text: str) -> bool:
    """Search for re anywhere in text."""
    if re.startswith("^"):
        return _matchhere(re, 1, text, 0)
    for start in range(len(text) + 1):
        if _matchhere(re, 0, text, start):
            return True
    return False


def _matchhere(re: str, ri: int, text: str, ti: int) -> bool:
    while True:
        if ri >= len(re):
            return True
        if ri + 1 < len(re) and re[ri + 1] == "*":
            return _matchstar(re[ri], re, ri + 2, text, ti)
        if re[ri] == "$" and ri + 1 == len(re):
            return ti == len(text)
        if ti < len(text) and (re[ri] == "." or re[ri] == text[ti]):
            ri += 1
            ti += 1
            continue
        return False


def _matchstar(c: str, re: str, ri: int, text: str, ti: int) -> bool:
    while True:
        if _matchhere(re, ri, text, ti):
            return True
        if ti < len(text) and (text[ti] == c or c == "."):
            ti += 1
        else:
            return False


def grep(pattern: str, stream: BinaryIO, out: BinaryIO) -> None:
    """Copy the newline-terminated lines of stream that match pattern to out.

    Lines are gathered in a fixed buffer; an unterminated final line is
    ignored, and a line too long for the buffer ends the search.
    """
    buf = b""
    while True:
        chunk = stream.read(_BUFSIZE - 1 - len(buf))
        if not chunk:
            break
        buf += chunk
        *lines, buf = buf.split(b"\n")
        for line in lines:
            if match(pattern, line.decode("latin-1")):
                out.write(line + b"\n")


def main(argv: list[str] | None = None) -> int:
    """Run grep over the named files, or standard input; return exit status."""
    args = sys.argv[1:] if argv is None else list(argv)
    if not args:
        sys.stderr.write("usage: grep pattern [file ...]\n")
        return 1
    pattern, files = args[0], args[1:]
    out = sys.stdout.buffer
    try:
        if not files:
            grep(pattern, sys.stdin.buffer, out)
            return 0
        for name in files:
            try:
                f = open(name, "rb")
            except OSError:
                out.write(f"grep: cannot open {name}\n".encode())
                return 1
            with f:
                grep(pattern, f, out)
        return 0
    finally:
        out.flush()