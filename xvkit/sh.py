"""Command shell: a parser for pipes, lists, redirections and background
jobs, and an in-process runner for the parsed commands."""

from __future__ import annotations

import enum
import io
import os
import sys
import threading
from dataclasses import dataclass, field
from typing import BinaryIO, Callable, Mapping, TextIO, Union

from xvkit import grep as _grep
from xvkit import tools
from xvkit import wc as _wc
from xvkit.printf import fprintf
from xvkit.ulib import gets

MAXARGS = 10
_WHITESPACE = " \t\r\n\v"
_SYMBOLS = "<|>&;()"
_LINE_MAX = 100


class ShellSyntaxError(Exception):
    """A command line could not be parsed."""

    def __init__(self, message: str, leftovers: str | None = None) -> None:
        super().__init__(message)
        self.leftovers = leftovers


class RedirMode(enum.Enum):
    """How a redirection opens its file."""

    READ = os.O_RDONLY
    WRITE = os.O_WRONLY | os.O_CREAT | os.O_TRUNC
    APPEND = os.O_WRONLY | os.O_CREAT


@dataclass
class ExecCmd:
    argv: list[str] = field(default_factory=list)


@dataclass
class RedirCmd:
    cmd: "Command"
    file: str
    mode: RedirMode
    fd: int


@dataclass
class PipeCmd:
    left: "Command"
    right: "Command"


@dataclass
class ListCmd:
    left: "Command"
    right: "Command"


@dataclass
class BackCmd:
    cmd: "Command"


Command = Union[ExecCmd, RedirCmd, PipeCmd, ListCmd, BackCmd]
Program = Callable[[list, BinaryIO, BinaryIO, TextIO], int]


class Parser:
    """Recursive-descent parser over one command line."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0

    def _skip_whitespace(self) -> None:
        while self.pos < len(self.text) and self.text[self.pos] in _WHITESPACE:
            self.pos += 1

    def gettoken(self) -> tuple[str, str]:
        """Consume one token and return (kind, text).

        kind is "" at the end, "a" for a word, "+" for ">>", or the
        symbol character itself.
        """
        self._skip_whitespace()
        text = self.text
        start = self.pos
        if start >= len(text):
            kind = ""
        else:
            c = text[start]
            if c in "|();&<":
                self.pos += 1
                kind = c
            elif c == ">":
                self.pos += 1
                if self.pos < len(text) and text[self.pos] == ">":
                    self.pos += 1
                    kind = "+"
                else:
                    kind = ">"
            else:
                kind = "a"
                while (
                    self.pos < len(text)
                    and text[self.pos] not in _WHITESPACE
                    and text[self.pos] not in _SYMBOLS
                ):
                    self.pos += 1
        word = text[start:self.pos]
        self._skip_whitespace()
        return kind, word

    def peek(self, toks: str) -> bool:
        """Skip whitespace and tell whether the next character is in toks."""
        self._skip_whitespace()
        return self.pos < len(self.text) and self.text[self.pos] in toks

    def parse_line(self) -> Command:
        cmd = self.parse_pipe()
        while self.peek("&"):
            self.gettoken()
            cmd = BackCmd(cmd)
        if self.peek(";"):
            self.gettoken()
            cmd = ListCmd(cmd, self.parse_line())
        return cmd

    def parse_pipe(self) -> Command:
        cmd = self.parse_exec()
        if self.peek("|"):
            self.gettoken()
            cmd = PipeCmd(cmd, self.parse_pipe())
        return cmd

    def parse_redirs(self, cmd: Command) -> Command:
        while self.peek("<>"):
            tok, _ = self.gettoken()
            kind, word = self.gettoken()
            if kind != "a":
                raise ShellSyntaxError("missing file for redirection")
            if tok == "<":
                cmd = RedirCmd(cmd, word, RedirMode.READ, 0)
            elif tok == ">":
                cmd = RedirCmd(cmd, word, RedirMode.WRITE, 1)
            else:
                cmd = RedirCmd(cmd, word, RedirMode.APPEND, 1)
        return cmd

    def parse_block(self) -> Command:
        if not self.peek("("):
            raise ShellSyntaxError("parseblock")
        self.gettoken()
        cmd = self.parse_line()
        if not self.peek(")"):
            raise ShellSyntaxError("syntax - missing )")
        self.gettoken()
        return self.parse_redirs(cmd)

    def parse_exec(self) -> Command:
        if self.peek("("):
            return self.parse_block()
        ecmd = ExecCmd()
        ret: Command = self.parse_redirs(ecmd)
        while not self.peek("|)&;"):
            kind, word = self.gettoken()
            if kind == "":
                break
            if kind != "a":
                raise ShellSyntaxError("syntax")
            ecmd.argv.append(word)
            if len(ecmd.argv) >= MAXARGS:
                raise ShellSyntaxError("too many args")
            ret = self.parse_redirs(ret)
        return ret


def parse_cmd(text: str) -> Command:
    """Parse a whole command line; trailing unparsed text is an error."""
    parser = Parser(text)
    cmd = parser.parse_line()
    parser.peek("")
    if parser.pos != len(text):
        raise ShellSyntaxError("syntax", leftovers=text[parser.pos:])
    return cmd


def run_cmd(
    cmd: Command,
    commands: Mapping[str, Program],
    stdin: BinaryIO,
    stdout: BinaryIO,
    stderr: TextIO,
) -> int:
    """Run a parsed command and return its exit status.

    Programs are looked up by name in commands and called as
    program(argv, stdin, stdout, stderr). Pipelines run their stages one
    after another; background commands run in a separate thread.
    """
    if isinstance(cmd, ExecCmd):
        if not cmd.argv:
            return 1
        program = commands.get(cmd.argv[0])
        if program is None:
            fprintf(stderr, "exec %s failed\n", cmd.argv[0])
            return 0
        return program(list(cmd.argv), stdin, stdout, stderr)
    if isinstance(cmd, RedirCmd):
        try:
            fd = os.open(cmd.file, cmd.mode.value, 0o666)
        except OSError:
            fprintf(stderr, "open %s failed\n", cmd.file)
            return 1
        with os.fdopen(fd, "rb" if cmd.mode is RedirMode.READ else "wb") as f:
            if cmd.fd == 0:
                return run_cmd(cmd.cmd, commands, f, stdout, stderr)
            return run_cmd(cmd.cmd, commands, stdin, f, stderr)
    if isinstance(cmd, ListCmd):
        run_cmd(cmd.left, commands, stdin, stdout, stderr)
        return run_cmd(cmd.right, commands, stdin, stdout, stderr)
    if isinstance(cmd, PipeCmd):
        piped = io.BytesIO()
        run_cmd(cmd.left, commands, stdin, piped, stderr)
        run_cmd(cmd.right, commands, io.BytesIO(piped.getvalue()), stdout, stderr)
        return 0
    if isinstance(cmd, BackCmd):
        job = threading.Thread(
            target=run_cmd,
            args=(cmd.cmd, commands, stdin, stdout, stderr),
            daemon=True,
        )
        job.start()
        return 0
    raise TypeError(f"runcmd: unknown command {cmd!r}")


def _adapt(main_fn: Callable[[list], int]) -> Program:
    """Wrap a main(argv) function so it runs against the given streams."""

    def program(argv, stdin, stdout, stderr):
        text_in = io.TextIOWrapper(stdin, encoding="utf-8")
        text_out = io.TextIOWrapper(stdout, encoding="utf-8", write_through=True)
        saved = sys.stdin, sys.stdout, sys.stderr
        sys.stdin, sys.stdout, sys.stderr = text_in, text_out, stderr
        try:
            return main_fn(argv[1:])
        finally:
            sys.stdin, sys.stdout, sys.stderr = saved
            text_out.flush()
            text_out.detach()
            text_in.detach()

    return program


def _default_commands() -> dict[str, Program]:
    mains = {
        "cat": tools.cat_main,
        "echo": tools.echo_main,
        "grep": _grep.main,
        "wc": _wc.main,
        "ls": tools.ls_main,
        "kill": tools.kill_main,
        "ln": tools.ln_main,
        "mkdir": tools.mkdir_main,
        "rm": tools.rm_main,
    }
    return {name: _adapt(fn) for name, fn in mains.items()}


def main(argv: list[str] | None = None) -> int:
    """Read command lines from standard input and run them until end of input."""
    commands = _default_commands()
    stdin_b = getattr(sys.stdin, "buffer", None) or io.BytesIO()
    stdout_b = getattr(sys.stdout, "buffer", None) or io.BytesIO()
    while True:
        fprintf(sys.stderr, "$ ")
        line = gets(sys.stdin, _LINE_MAX)
        if not line:
            break
        if line.startswith("cd "):
            target = line[3:-1]
            try:
                os.chdir(target)
            except OSError:
                fprintf(sys.stderr, "cannot cd %s\n", target)
            continue
        try:
            cmd = parse_cmd(line)
        except ShellSyntaxError as exc:
            if exc.leftovers is not None:
                fprintf(sys.stderr, "leftovers: %s\n", exc.leftovers)
            fprintf(sys.stderr, "%s\n", str(exc))
            continue
        sys.stdout.flush()
        run_cmd(cmd, commands, stdin_b, stdout_b, sys.stderr)
        stdout_b.flush()
    return 0