"""Small file utilities: cat, echo, ls, kill, ln, mkdir and rm."""

from __future__ import annotations

import os
import signal
import stat as _stat
import sys
from typing import BinaryIO, TextIO

from xvkit.printf import fprintf
from xvkit.ulib import atoi

DIRSIZ = 14  # longest name a directory entry holds

_CAT_BUFSIZE = 512
_LS_BUFSIZE = 512

# Inode types as ls reports them.
_T_DIR = 1
_T_FILE = 2
_T_DEVICE = 3

_SIGKILL = getattr(signal, "SIGKILL", signal.SIGTERM)


def _args(argv: list[str] | None) -> list[str]:
    return sys.argv[1:] if argv is None else list(argv)


def cat(stream: BinaryIO, out: BinaryIO) -> None:
    """Copy stream to out.

    Raises OSError with message "cat: read error" or "cat: write error".
    """
    while True:
        try:
            chunk = stream.read(_CAT_BUFSIZE)
        except OSError as exc:
            raise OSError("cat: read error") from exc
        if not chunk:
            return
        try:
            written = out.write(chunk)
        except OSError as exc:
            raise OSError("cat: write error") from exc
        if written is not None and written != len(chunk):
            raise OSError("cat: write error")


def cat_main(argv: list[str] | None = None) -> int:
    """Concatenate the named files, or standard input, to standard output."""
    args = _args(argv)
    sys.stdout.flush()
    out = sys.stdout.buffer
    try:
        if not args:
            cat(sys.stdin.buffer, out)
            return 0
        for name in args:
            try:
                f = open(name, "rb")
            except OSError:
                out.flush()
                fprintf(sys.stderr, "cat: cannot open %s\n", name)
                return 1
            with f:
                cat(f, out)
        return 0
    except OSError as exc:
        out.flush()
        fprintf(sys.stderr, "%s\n", str(exc))
        return 1
    finally:
        out.flush()


def echo_main(argv: list[str] | None = None) -> int:
    """Print the arguments separated by spaces and ended by a newline."""
    args = _args(argv)
    if args:
        sys.stdout.write(" ".join(args) + "\n")
    return 0


def fmtname(path: str) -> str:
    """Return the last path component, blank-padded to DIRSIZ characters."""
    name = path.rsplit("/", 1)[-1]
    if len(name) >= DIRSIZ:
        return name
    return name.ljust(DIRSIZ)


def _kind(mode: int) -> int:
    if _stat.S_ISDIR(mode):
        return _T_DIR
    if _stat.S_ISREG(mode):
        return _T_FILE
    return _T_DEVICE


def ls(path: str, out: TextIO, err: TextIO) -> None:
    """List a file, or each entry of a directory, with type, inode and size."""
    try:
        st = os.stat(path)
    except OSError:
        fprintf(err, "ls: cannot open %s\n", path)
        return
    kind = _kind(st.st_mode)
    if kind == _T_FILE:
        fprintf(out, "%s %d %d %l\n", fmtname(path), kind, st.st_ino, st.st_size)
    elif kind == _T_DIR:
        if len(path) + 1 + DIRSIZ + 1 > _LS_BUFSIZE:
            fprintf(out, "ls: path too long\n")
            return
        try:
            names = os.listdir(path)
        except OSError:
            fprintf(err, "ls: cannot open %s\n", path)
            return
        for name in [".", "..", *names]:
            full = f"{path}/{name}"
            try:
                est = os.stat(full)
            except OSError:
                fprintf(out, "ls: cannot stat %s\n", full)
                continue
            fprintf(
                out,
                "%s %d %d %d\n",
                fmtname(full),
                _kind(est.st_mode),
                est.st_ino,
                est.st_size,
            )


def ls_main(argv: list[str] | None = None) -> int:
    """List each named path, or the current directory."""
    args = _args(argv) or ["."]
    for path in args:
        ls(path, sys.stdout, sys.stderr)
    return 0


def kill_main(argv: list[str] | None = None) -> int:
    """Kill each process whose id is given."""
    args = _args(argv)
    if not args:
        fprintf(sys.stderr, "usage: kill pid...\n")
        return 1
    for arg in args:
        pid = atoi(arg)
        if pid <= 0:
            continue
        try:
            os.kill(pid, _SIGKILL)
        except (OSError, OverflowError):
            pass
    return 0


def ln_main(argv: list[str] | None = None) -> int:
    """Create a hard link named new to old."""
    args = _args(argv)
    if len(args) != 2:
        fprintf(sys.stderr, "Usage: ln old new\n")
        return 1
    old, new = args
    try:
        os.link(old, new)
    except OSError:
        fprintf(sys.stderr, "link %s %s: failed\n", old, new)
    return 0


def mkdir_main(argv: list[str] | None = None) -> int:
    """Create each named directory, stopping at the first failure."""
    args = _args(argv)
    if not args:
        fprintf(sys.stderr, "Usage: mkdir files...\n")
        return 1
    for name in args:
        try:
            os.mkdir(name)
        except OSError:
            fprintf(sys.stderr, "mkdir: %s failed to create\n", name)
            break
    return 0


def _unlink(path: str) -> None:
    if os.path.isdir(path) and not os.path.islink(path):
        os.rmdir(path)
    else:
        os.unlink(path)


def rm_main(argv: list[str] | None = None) -> int:
    """Remove each named file or empty directory, stopping at the first failure."""
    args = _args(argv)
    if not args:
        fprintf(sys.stderr, "Usage: rm files...\n")
        return 1
    for name in args:
        try:
            _unlink(name)
        except OSError:
            fprintf(sys.stderr, "rm: %s failed to delete\n", name)
            break
    return 0