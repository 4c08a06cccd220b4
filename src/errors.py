"""Error hierarchy for dcsh.

Every failure the command-language processor can report is a subclass of
:class:`ShellError`. None of them is fatal to the shell: the interactive
loop prints the message and returns to a fresh prompt, script mode
reports it and exits with ``exit_code``.

ShellError
├── ShellSyntaxError
│   ├── ExpectedString
│   ├── EmptyCommand
│   └── InvalidSyntax
├── CommandNotFound
└── RedirectIOError
"""

from __future__ import annotations

import sys
from typing import Optional, TextIO

PROG = "dcsh"


def report(message: object, stream: Optional[TextIO] = None) -> None:
    """Write a one-line ``dcsh: ...`` diagnostic to stderr."""
    stream = stream if stream is not None else sys.stderr
    stream.write(f"{PROG}: {message}\n")
    stream.flush()


class ShellError(Exception):
    """Base exception for all user-facing dcsh errors."""

    exit_code: int = 1


class ShellSyntaxError(ShellError):
    """The command line could not be tokenized or parsed."""

    exit_code = 2


class ExpectedString(ShellSyntaxError):
    """An operator or end of input appeared where a word was required."""

    def __init__(self, found: Optional[str] = None) -> None:
        self.found = found
        if found is None:
            msg = "syntax error: expected a word, found end of input"
        else:
            msg = f"syntax error: expected a word, found '{found}'"
        super().__init__(msg)


class EmptyCommand(ShellSyntaxError):
    """The executable word of an invocation is empty after substitution."""

    def __init__(self, text: str) -> None:
        self.text = text
        if text:
            msg = f"syntax error: command name '{text}' is empty after substitution"
        else:
            msg = "syntax error: empty command name"
        super().__init__(msg)


class InvalidSyntax(ShellSyntaxError):
    """No token kind matches the input at ``position``."""

    def __init__(self, line: str, position: int) -> None:
        self.line = line
        self.position = position
        super().__init__(f"syntax error: unexpected character {line[position]!r} at column {position + 1}")


class CommandNotFound(ShellError):
    """The executable of an invocation could not be spawned."""

    exit_code = 127

    def __init__(self, command: str, reason: Optional[str] = None) -> None:
        self.command = command
        self.reason = reason
        if reason:
            super().__init__(f"{command}: {reason}")
        else:
            super().__init__(f"command not found: {command}")


class RedirectIOError(ShellError):
    """A redirect target could not be opened or created."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"{path}: {reason}")
