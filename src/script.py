"""Statement layer: splits source text into assignments and commands.

A statement is one line. ``NAME = value`` stores a variable, any other
non-blank line is a command handed to :func:`ops.execute_line`.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, List, Pattern, Union

from ops import SUCCESS, ExitStatus, ShellSession, execute_line


@dataclass
class Assignment:
    name: str
    expression: str


@dataclass
class Command:
    text: str


Statement = Union[Assignment, Command]

ASSIGNMENT_PATTERN: Pattern[str] = re.compile(r"\A([A-Za-z0-9]+)[ \t]*=[ \t]*(.*)\Z")


def parse_statement(line: str) -> Statement:
    m = ASSIGNMENT_PATTERN.match(line)
    if m:
        return Assignment(m.group(1), m.group(2))
    return Command(line)


def parse_script(source: str) -> List[Statement]:
    statements: List[Statement] = []
    for raw in source.splitlines():
        line = raw.strip()
        if line:
            statements.append(parse_statement(line))
    return statements


def execute_statement(statement: Statement, session: ShellSession) -> ExitStatus:
    if isinstance(statement, Assignment):
        session.assign(statement.name, statement.expression)
        return SUCCESS
    return execute_line(statement.text, session)


def execute_script(statements: Iterable[Statement], session: ShellSession) -> ExitStatus:
    """Run statements in order, stopping at the first ShellError (which propagates)."""
    status = SUCCESS
    for statement in statements:
        status = execute_statement(statement, session)
    return status
