"""Process-table and concurrency exercises: forktest, stressfs and zombie."""

from __future__ import annotations

import os
import sys
import threading
import time
from collections import deque
from typing import TextIO

from xvkit.printf import fprintf
from xvkit.riscv import NPROC

_FORK_ATTEMPTS = 1000
_STRESS_CHILDREN = 4
_STRESS_BLOCK = 512
_STRESS_ROUNDS = 20
_TICK = 0.1  # seconds per scheduler tick


class _ProcTable:
    """Children of one parent, limited to a fixed number of slots."""

    def __init__(self, capacity: int) -> None:
        self.capacity = capacity
        self._next_pid = 1
        self._zombies: deque[int] = deque()

    def fork(self) -> int:
        """Create a child that exits at once; return its pid or -1 if full."""
        if len(self._zombies) >= self.capacity:
            return -1
        pid = self._next_pid
        self._next_pid += 1
        self._zombies.append(pid)
        return pid

    def wait(self) -> int:
        """Reap one exited child; return its pid or -1 if there is none."""
        return self._zombies.popleft() if self._zombies else -1


def forktest(limit: int = NPROC, out: TextIO | None = None) -> int:
    """Fork until the process table is full, then reap every child.

    limit is the number of process slots available to children. Returns
    the exit status: 0 when fork and wait behave, 1 otherwise.
    """
    out = sys.stdout if out is None else out
    table = _ProcTable(limit)
    fprintf(out, "fork test\n")
    n = 0
    while n < _FORK_ATTEMPTS:
        if table.fork() < 0:
            break
        n += 1
    if n == _FORK_ATTEMPTS:
        fprintf(out, "fork claimed to work N times!\n")
        return 1
    for _ in range(n):
        if table.wait() < 0:
            fprintf(out, "wait stopped early\n")
            return 1
    if table.wait() != -1:
        fprintf(out, "wait got too many\n")
        return 1
    fprintf(out, "fork test OK\n")
    return 0


def stressfs(directory: str | os.PathLike, out: TextIO | None = None) -> list[str]:
    """Have a chain of five workers each write and read back its own file.

    Returns the paths of the files written, in worker order.
    """
    out = sys.stdout if out is None else out
    lock = threading.Lock()
    data = b"a" * _STRESS_BLOCK
    paths = [
        os.path.join(os.fspath(directory), f"stressfs{i}")
        for i in range(_STRESS_CHILDREN + 1)
    ]

    def say(fmt: str, *args: object) -> None:
        with lock:
            fprintf(out, fmt, *args)

    def worker(i: int) -> None:
        child = None
        if i < _STRESS_CHILDREN:
            child = threading.Thread(target=worker, args=(i + 1,))
            child.start()
        say("write %d\n", i)
        fd = os.open(paths[i], os.O_CREAT | os.O_RDWR, 0o666)
        with os.fdopen(fd, "r+b") as f:
            for _ in range(_STRESS_ROUNDS):
                f.write(data)
        say("read\n")
        with open(paths[i], "rb") as f:
            for _ in range(_STRESS_ROUNDS):
                f.read(_STRESS_BLOCK)
        if child is not None:
            child.join()

    say("stressfs starting\n")
    worker(0)
    return paths


def zombie_main(argv: list[str] | None = None) -> int:
    """Start a child that exits before its parent, which sleeps briefly."""
    child = threading.Thread(target=lambda: None, daemon=True)
    child.start()
    time.sleep(5 * _TICK)
    return 0