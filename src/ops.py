from __future__ import annotations

import re
import subprocess
import sys
from contextlib import ExitStack
from dataclasses import dataclass
from typing import IO, Dict, Iterator, List, Optional, Pattern, Tuple

from errors import CommandNotFound, EmptyCommand, ExpectedString, RedirectIOError
from groups import (
    CHAIN_OPERATORS,
    REDIRECTS,
    STRING_KINDS,
    Chain,
    ChainElement,
    ChainOperator,
    Invocation,
    Token,
    tokenize,
)


class ShellSession:
    """Holds session-wide shell context: the variable store and stray children."""

    # $NAME or ${ NAME }, matched in one pass so substituted values are never rescanned
    VARIABLE_PATTERN: Pattern[str] = re.compile(
        r"\$(?:([A-Za-z0-9]+)|\{[ \t]*([A-Za-z0-9]+)[ \t]*\})"
    )

    def __init__(self) -> None:
        self.strings: Dict[str, str] = {}
        # Interior pipeline stages that were spawned but never waited on
        self.children: List[subprocess.Popen] = []

    # --- variable helpers ---
    def get_var(self, name: str) -> Optional[str]:
        return self.strings.get(name)

    def set_var(self, name: str, value: str) -> None:
        self.strings[name] = value

    def unset_var(self, name: str) -> None:
        self.strings.pop(name, None)

    def assign(self, name: str, expression: str) -> None:
        """Store ``expression`` under ``name`` after substituting its variables."""
        self.set_var(name, self.substitute(expression))

    def substitute(self, text: str) -> str:
        """Replace $NAME and ${NAME} with stored values; unset names become ''."""

        def lookup(m: "re.Match[str]") -> str:
            name = m.group(1) or m.group(2)
            return self.strings.get(name, "")

        return self.VARIABLE_PATTERN.sub(lookup, text)

    # --- child bookkeeping ---
    def reap_children(self) -> None:
        """Collect finished interior pipeline stages without blocking."""
        self.children = [proc for proc in self.children if proc.poll() is None]


@dataclass(frozen=True)
class ExitStatus:
    """Outcome of a finished process: an exit code or the signal that killed it."""

    code: Optional[int] = 0
    signal: Optional[int] = None

    @classmethod
    def from_returncode(cls, returncode: int) -> "ExitStatus":
        if returncode < 0:
            return cls(code=None, signal=-returncode)
        return cls(code=returncode)

    @property
    def success(self) -> bool:
        return self.code == 0

    def as_int(self) -> int:
        """Shell-style integer: the exit code, or 128 + signal number."""
        if self.signal is not None:
            return 128 + self.signal
        return self.code if self.code is not None else 0


SUCCESS = ExitStatus(0)


# --------- Invocation-chain parsing ---------

def _next(tokens: Iterator[Token]) -> Optional[Token]:
    return next(tokens, None)


def _expect_string(tokens: Iterator[Token]) -> Token:
    token = _next(tokens)
    if token is None:
        raise ExpectedString()
    if token.kind not in STRING_KINDS:
        raise ExpectedString(token.value)
    return token


def _parse_string(tokens: Iterator[Token], session: ShellSession) -> str:
    return session.substitute(_expect_string(tokens).value)


def _parse_invocation(tokens: Iterator[Token], session: ShellSession) -> ChainElement:
    token = _expect_string(tokens)
    executable = session.substitute(token.value)
    if not executable:
        raise EmptyCommand(token.value)
    invocation = Invocation(executable)
    while True:
        token = _next(tokens)
        if token is None:
            return ChainElement(invocation, None)
        if token.kind in STRING_KINDS:
            invocation.args.append(session.substitute(token.value))
        elif token.kind in REDIRECTS:
            # A repeated redirect of the same kind replaces the earlier one
            setattr(invocation, REDIRECTS[token.kind], _parse_string(tokens, session))
        else:
            return ChainElement(invocation, CHAIN_OPERATORS[token.kind])


def parse_command(line: str, session: ShellSession) -> Chain:
    """Parse ``line`` into a flat list of (invocation, operator) elements.

    Raises ExpectedString, EmptyCommand or InvalidSyntax; nothing is returned for a
    partially valid line.
    """
    tokens = tokenize(line)
    chain: Chain = []
    while True:
        element = _parse_invocation(tokens, session)
        chain.append(element)
        if element.operator is None:
            return chain


# --------- Process orchestration ---------

def _open_redirections(inv: Invocation, stack: ExitStack, *, open_input: bool) -> Tuple[Optional[IO[bytes]], Optional[IO[bytes]], Optional[IO[bytes]]]:
    # Returns (stdin, stdout, stderr) file objects, registered on stack for closing
    def _open(path: str, mode: str) -> IO[bytes]:
        try:
            f = open(path, mode)
        except OSError as e:
            raise RedirectIOError(path, e.strerror or str(e)) from e
        stack.callback(f.close)
        return f

    stdin = _open(inv.input_file, "rb") if open_input and inv.input_file is not None else None
    stdout = _open(inv.output_file, "wb") if inv.output_file is not None else None
    stderr = _open(inv.stderr_file, "wb") if inv.stderr_file is not None else None
    return stdin, stdout, stderr


def _spawn(inv: Invocation, pending: Optional[IO[bytes]], *, pipe_out: bool) -> subprocess.Popen:
    """Start the process for ``inv``; consumes ``pending`` (closes the parent's copy)."""
    with ExitStack() as stack:
        if pending is not None:
            stack.callback(pending.close)
        stdin, stdout, stderr = _open_redirections(inv, stack, open_input=pending is None)
        if pending is not None:
            stdin = pending
        if pipe_out:
            stdout = subprocess.PIPE  # type: ignore[assignment]
        sys.stdout.flush()
        sys.stderr.flush()
        try:
            return subprocess.Popen(inv.argv, stdin=stdin, stdout=stdout, stderr=stderr)
        except FileNotFoundError as e:
            raise CommandNotFound(inv.executable) from e
        except OSError as e:
            raise CommandNotFound(inv.executable, e.strerror or str(e)) from e


def _wait(proc: subprocess.Popen) -> ExitStatus:
    try:
        returncode = proc.wait()
    except KeyboardInterrupt:
        # The child shares our foreground group and got the same SIGINT
        returncode = proc.wait()
    return ExitStatus.from_returncode(returncode)


def exec_chain(chain: Chain, session: ShellSession) -> ExitStatus:
    """Run a parsed chain left to right and return the deciding status.

    Interior pipe stages are spawned without waiting and handed to the
    session for later reaping.
    """
    pending: Optional[IO[bytes]] = None
    try:
        for element in chain:
            inv, op = element.invocation, element.operator
            handle, pending = pending, None
            if op is ChainOperator.PIPE:
                proc = _spawn(inv, handle, pipe_out=True)
                session.children.append(proc)
                pending = proc.stdout
                continue

            status = _wait(_spawn(inv, handle, pipe_out=False))
            if op is ChainOperator.AND and not status.success:
                return status
            if op is ChainOperator.OR and status.success:
                return status
            if op is None:
                return status
        return SUCCESS
    finally:
        if pending is not None:
            pending.close()
        session.reap_children()


def execute_line(line: str, session: ShellSession) -> ExitStatus:
    """Public API: parse and run one command line.

    Raises a ShellError subclass on syntax, spawn or redirect failure.
    """
    return exec_chain(parse_command(line, session), session)
