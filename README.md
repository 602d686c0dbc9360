# xvkit

The user-level programs of a small Unix-like teaching operating system, and
a model of its three-level Sv39 virtual-memory code, in plain Python.

## What is inside

- `xvkit.riscv`: page arithmetic and page-table-entry helpers
  (`pgroundup`, `pgrounddown`, `pa2pte`, `pte2pa`, `pte_flags`, `px`,
  `pxshift`, `make_satp`), the `PTE_*`, status and interrupt bit masks,
  `MAXVA`, and system limits such as `NPROC`, `MAXARG` and `MAXPATH`.
- `xvkit.vm`: a simulated physical memory (`PhysicalMemory`, with
  `alloc`, `free`, `read`, `write`, `read_word`, `write_word`,
  `free_pages`) and `PageTable`, with `walk`, `walkaddr`, `map_pages`,
  `unmap`, `init_user`, `grow`, `shrink`, `free_walk`, `free`, `copy_to`,
  `clear_user`, `copyin`, `copyout` and `copyinstr`. Inconsistencies raise
  `KernelPanic`, failed allocations raise `OutOfMemory`, and addresses not
  mapped for user access raise `BadAddress`.
- `xvkit.ulib`: `strcmp`, `atoi` and `gets` with the small C library's
  semantics, and the `RtcDate` record.
- `xvkit.printf`: `format`, `fprintf` and `printf`, a formatter that
  understands `%d`, `%l`, `%x`, `%p`, `%s`, `%c` and `%%` and echoes any
  other conversion unchanged.
- `xvkit.umalloc`: the first-fit, address-ordered free-list `Allocator`
  on top of a break-based `Heap`; offsets stand in for pointers.
- `xvkit.grep`: `match` supporting `^ . * $`, and `grep` over streams.
- `xvkit.wc`: `count` returning a `WordCount`, and `wc`.
- `xvkit.tools`: `cat`, `fmtname`, `ls`, and the `*_main` entry points
  for cat, echo, ls, kill, ln, mkdir and rm, working on the host file
  system.
- `xvkit.sh`: the shell parser (`parse_cmd`, `Parser`) producing
  `ExecCmd`, `RedirCmd`, `PipeCmd`, `ListCmd` and `BackCmd` trees, with
  `ShellSyntaxError` and `RedirMode`, and `run_cmd` to run a tree against
  a mapping of Python callables.
- `xvkit.grind`: the `ParkMiller` generator and `Grinder`, which applies
  a random mix of 23 file operations under a root directory.
- `xvkit.procs`: `forktest` against a bounded table of child slots,
  `stressfs`, and `zombie_main`.

## Installing

```
pip install .
```

Python 3.10 or later; no third-party dependencies.

## Library use

```python
from xvkit import riscv
from xvkit.grep import match
from xvkit.printf import format
from xvkit.sh import parse_cmd, PipeCmd
from xvkit.vm import PhysicalMemory, PageTable

riscv.pgroundup(5000)          # 8192
match("^a.*b$", "axxb")        # True
format("%d is %x", 255, 255)   # "255 is FF"

cmd = parse_cmd("echo hi | wc")
isinstance(cmd, PipeCmd)       # True

mem = PhysicalMemory(64, 0x80000000)
pt = PageTable.create(mem)
pt.init_user(b"hello")
pt.copyin(0, 5)                # b"hello"
```

## Commands

```
xv-sh
xv-grep PATTERN [FILE ...]
xv-wc [FILE ...]
xv-cat [FILE ...]
xv-echo [WORD ...]
xv-ls [PATH ...]
xv-ln OLD NEW
xv-mkdir DIR ...
xv-rm PATH ...
xv-kill PID ...
xv-grind [DIRECTORY [ITERATIONS]]
xv-zombie
```

`xv-sh` reads command lines from standard input, handles `cd` itself, and
runs cat, echo, grep, wc, ls, kill, ln, mkdir and rm in-process. `xv-ls`
prints each entry's name, a type number (1 directory, 2 file, 3 other),
inode number and size. `xv-kill` sends the kill signal to host process ids.

`xv-grind` runs two workers side by side doing random file operations in
DIRECTORY (default: the current directory). Given ITERATIONS it runs one
round of that many operations per worker; without, it runs until
interrupted. Start it in a scratch directory.

## What it does not do

There is no kernel here beyond the page-table model: no boot, scheduler,
disk file system or system-call layer. The shell runs only the built-in
Python programs listed above and starts no other programs; pipeline
stages run one after another, and background jobs run as threads.
`grind`, `stressfs` and `zombie` use threads and the host file system in
place of processes, and `forktest` counts against a simulated table of
child slots. `forktest` and `stressfs` are library functions with no
command of their own.

## Running the tests

```
pip install ".[test]"
pytest
```