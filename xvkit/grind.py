"""Stress the file system with a pseudo-random mix of operations."""

from __future__ import annotations

import errno
import os
import sys
import threading
from typing import Callable

from xvkit import tools
from xvkit.umalloc import Heap

_NACTIONS = 23
_BUFSIZE = 999
_HEAP_LIMIT = 1 << 30
_ROUND_ITERATIONS = 100000
_RDWR_CREATE = os.O_CREAT | os.O_RDWR
_MASK64 = (1 << 64) - 1


class ParkMiller:
    """The Park-Miller minimal standard random number generator."""

    def __init__(self, seed: int = 1) -> None:
        self.state = seed & _MASK64

    def next(self) -> int:
        """Advance the generator and return a value in [0, 0x7ffffffd]."""
        x = self.state % 0x7FFFFFFE + 1
        hi, lo = divmod(x, 127773)
        x = 16807 * lo - 2836 * hi
        if x < 0:
            x += 0x7FFFFFFF
        x -= 1
        self.state = x
        return x


def _spawn(fn: Callable[[], None]) -> tuple[threading.Thread, list[int]]:
    """Run fn in a thread standing in for a child; status 1 if it raised."""
    status = [0]

    def body() -> None:
        try:
            fn()
        except Exception:
            status[0] = 1

    thread = threading.Thread(target=body, daemon=True)
    thread.start()
    return thread, status


def _close(fd: int | None) -> None:
    if fd is None:
        return
    try:
        os.close(fd)
    except OSError:
        pass


class Grinder:
    """One worker issuing random file-system operations under a root directory.

    Paths are interpreted with root as "/" and a private current directory,
    so ".." at the root stays at the root.
    """

    def __init__(self, root: str | os.PathLike, which_child: int = 0, seed: int = 1) -> None:
        self.root = os.fspath(root)
        self.which_child = which_child
        self.rng = ParkMiller(seed)
        self.cwd: list[str] = []
        self.fd: int | None = None
        self.buf = bytes(_BUFSIZE)
        self.heap = Heap(_HEAP_LIMIT)
        self.break0 = self.heap.brk
        self.iters = 0
        self._mkdir("grindir")
        if not self._chdir("grindir"):
            raise RuntimeError("grind: chdir grindir failed")
        self._chdir("/")

    # Path handling -------------------------------------------------------

    def _resolve(self, path: str, cwd: list[str] | None = None) -> list[str]:
        parts = [] if path.startswith("/") else list(self.cwd if cwd is None else cwd)
        comps = path.split("/")
        for i, comp in enumerate(comps):
            if comp == "..":
                if parts:
                    parts.pop()
            elif comp not in ("", "."):
                parts.append(comp)
            if i < len(comps) - 1 and not os.path.isdir(self._host(parts)):
                raise NotADirectoryError(errno.ENOTDIR, "not a directory", path)
        return parts

    def _host(self, parts: list[str]) -> str:
        return os.path.join(self.root, *parts)

    def _open(self, path: str, flags: int, cwd: list[str] | None = None) -> int | None:
        try:
            return os.open(self._host(self._resolve(path, cwd)), flags, 0o666)
        except OSError:
            return None

    def _unlink(self, path: str, cwd: list[str] | None = None) -> bool:
        if path.rstrip("/").rsplit("/", 1)[-1] in (".", ".."):
            return False
        try:
            parts = self._resolve(path, cwd)
            if not parts:
                return False
            target = self._host(parts)
            if os.path.isdir(target) and not os.path.islink(target):
                os.rmdir(target)
            else:
                os.unlink(target)
        except OSError:
            return False
        return True

    def _mkdir(self, path: str, cwd: list[str] | None = None) -> bool:
        try:
            os.mkdir(self._host(self._resolve(path, cwd)))
        except OSError:
            return False
        return True

    def _link(self, old: str, new: str) -> bool:
        try:
            source = self._host(self._resolve(old))
            if os.path.isdir(source):
                return False
            os.link(source, self._host(self._resolve(new)))
        except OSError:
            return False
        return True

    def _chdir_parts(self, path: str, cwd: list[str] | None = None) -> list[str] | None:
        try:
            parts = self._resolve(path, cwd)
        except OSError:
            return None
        return parts if os.path.isdir(self._host(parts)) else None

    def _chdir(self, path: str) -> bool:
        parts = self._chdir_parts(path)
        if parts is None:
            return False
        self.cwd = parts
        return True

    # Operations ----------------------------------------------------------

    def step(self, what: int) -> None:
        """Perform operation number what, 0 to 22."""
        if not 0 <= what < _NACTIONS:
            raise ValueError(f"no such operation {what}")
        if what == 1:
            _close(self._open("grindir/../a", _RDWR_CREATE))
        elif what == 2:
            _close(self._open("grindir/../grindir/../b", _RDWR_CREATE))
        elif what == 3:
            self._unlink("grindir/../a")
        elif what == 4:
            if not self._chdir("grindir"):
                raise RuntimeError("grind: chdir grindir failed")
            self._unlink("../b")
            self._chdir("/")
        elif what == 5:
            _close(self.fd)
            self.fd = self._open("/grindir/../a", _RDWR_CREATE)
        elif what == 6:
            _close(self.fd)
            self.fd = self._open("/./grindir/./../b", _RDWR_CREATE)
        elif what == 7:
            if self.fd is not None:
                try:
                    os.write(self.fd, self.buf)
                except OSError:
                    pass
        elif what == 8:
            if self.fd is not None:
                try:
                    data = os.read(self.fd, _BUFSIZE)
                except OSError:
                    data = b""
                self.buf = data + self.buf[len(data):]
        elif what == 9:
            self._mkdir("grindir/../a")
            _close(self._open("a/../a/./a", _RDWR_CREATE))
            self._unlink("a/a")
        elif what == 10:
            self._mkdir("/../b")
            _close(self._open("grindir/../b/b", _RDWR_CREATE))
            self._unlink("b/b")
        elif what == 11:
            self._unlink("b")
            self._link("../grindir/./../a", "../b")
        elif what == 12:
            self._unlink("../grindir/../a")
            self._link(".././b", "/grindir/../a")
        elif what == 13:
            _spawn(lambda: None)[0].join()
        elif what == 14:
            def forker() -> None:
                for thread, _ in (_spawn(lambda: None), _spawn(lambda: None)):
                    thread.join()

            _spawn(forker)[0].join()
        elif what == 15:
            try:
                self.heap.sbrk(6011)
            except MemoryError:
                pass
        elif what == 16:
            if self.heap.brk > self.break0:
                self.heap.sbrk(-(self.heap.brk - self.break0))
        elif what == 17:
            snapshot = list(self.cwd)
            child, _ = _spawn(lambda: _close(self._open("a", _RDWR_CREATE, snapshot)))
            if not self._chdir("../grindir/.."):
                child.join()
                raise RuntimeError("grind: chdir failed")
            child.join()
        elif what == 18:
            _spawn(lambda: None)[0].join()
        elif what == 19:
            self._pipe_step()
        elif what == 20:
            self._orphan_dir_step()
        elif what == 21:
            self._create_c_step()
        elif what == 22:
            self._pipeline_step()

    def _pipe_step(self) -> None:
        r, w = os.pipe()

        def child() -> None:
            if os.write(w, b"x") != 1:
                sys.stdout.write("grind: pipe write failed\n")
            if len(os.read(r, 1)) != 1:
                sys.stdout.write("grind: pipe read failed\n")

        _spawn(child)[0].join()
        os.close(r)
        os.close(w)

    def _orphan_dir_step(self) -> None:
        def child() -> None:
            cwd = list(self.cwd)
            self._unlink("a", cwd)
            self._mkdir("a", cwd)
            moved = self._chdir_parts("a", cwd)
            if moved is not None:
                cwd = moved
            self._unlink("../a", cwd)
            fd = self._open("x", _RDWR_CREATE, cwd)
            self._unlink("x", cwd)
            _close(fd)

        _spawn(child)[0].join()

    def _create_c_step(self) -> None:
        self._unlink("c")
        fd1 = self._open("c", _RDWR_CREATE)
        if fd1 is None:
            raise RuntimeError("grind: create c failed")
        try:
            if os.write(fd1, b"x") != 1:
                raise RuntimeError("grind: write c failed")
            size = os.fstat(fd1).st_size
            if size != 1:
                raise RuntimeError(f"grind: fstat reports wrong size {size}")
        finally:
            os.close(fd1)
        self._unlink("c")

    def _pipeline_step(self) -> None:
        aa_r, aa_w = os.pipe()
        bb_r, bb_w = os.pipe()

        def echo() -> None:
            os.close(aa_r)
            with os.fdopen(aa_w, "wb") as out:
                out.write(b"hi\n")

        def cat() -> None:
            with os.fdopen(aa_r, "rb") as src, os.fdopen(bb_w, "wb") as out:
                tools.cat(src, out)

        # The echo side owns the write end of aa; cat owns its read end.
        echo_thread, st1 = _spawn(lambda: _echo_only(aa_w))
        cat_thread, st2 = _spawn(cat)
        got = b"".join(os.read(bb_r, 1) for _ in range(3))
        os.close(bb_r)
        echo_thread.join()
        cat_thread.join()
        if st1[0] != 0 or st2[0] != 0 or got != b"hi\n":
            text = got.decode("latin-1")
            raise RuntimeError(
                f'grind: exec pipeline failed {st1[0]} {st2[0]} "{text}"'
            )

    def run(self, iterations: int) -> list[int]:
        """Perform iterations random operations; return the operation numbers."""
        whats = []
        for _ in range(iterations):
            self.iters += 1
            if self.iters % 500 == 0:
                sys.stdout.write("B" if self.which_child else "A")
                sys.stdout.flush()
            what = self.rng.next() % _NACTIONS
            whats.append(what)
            self.step(what)
        return whats


def _echo_only(fd: int) -> None:
    with os.fdopen(fd, "wb") as out:
        out.write(b"hi\n")


def _remove(path: str) -> None:
    try:
        if os.path.isdir(path) and not os.path.islink(path):
            os.rmdir(path)
        else:
            os.unlink(path)
    except OSError:
        pass


def _round(root: str, iterations: int) -> int:
    _remove(os.path.join(root, "a"))
    _remove(os.path.join(root, "b"))
    errors: list[str] = []

    def child(which: int, seed: int) -> None:
        try:
            Grinder(root, which, seed).run(iterations)
        except RuntimeError as exc:
            errors.append(str(exc))

    threads = [
        threading.Thread(target=child, args=(0, 31), daemon=True),
        threading.Thread(target=child, args=(1, 7177), daemon=True),
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    for message in errors:
        sys.stdout.write(message + "\n")
    return 1 if errors else 0


def main(argv: list[str] | None = None) -> int:
    """Run two grinders side by side in a directory, round after round.

    Usage: grind [directory [iterations]]. With an iteration count one
    round is run; without, rounds continue indefinitely.
    """
    args = sys.argv[1:] if argv is None else list(argv)
    if len(args) > 2 or (len(args) == 2 and (not args[1].isdigit() or int(args[1]) == 0)):
        sys.stderr.write("usage: grind [directory [iterations]]\n")
        return 1
    root = args[0] if args else "."
    if len(args) == 2:
        return _round(root, int(args[1]))
    while True:
        _round(root, _ROUND_ITERATIONS)