"""Grouping and tokenization utilities for dcsh.

This module defines the data structures representing a parsed command
line (invocations joined by chain operators) and the tokenizer that turns
a raw input line into a stream of typed tokens.
"""
from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field
from typing import Iterable, Iterator, List, Optional, Pattern, Tuple

from errors import InvalidSyntax


class TokenKind(enum.Enum):
    AND = "&&"
    OR = "||"
    SEMICOLON = ";"
    PIPE = "|"
    INPUT_REDIRECT = "<"
    OUTPUT_REDIRECT = ">"
    STDERR_REDIRECT = "2>"
    QUOTED_STRING = "string"
    WORD = "word"


# Kinds whose value is a string usable as a command, argument or target
STRING_KINDS = frozenset({TokenKind.WORD, TokenKind.QUOTED_STRING})


# ---- Token model ----
class Token:
    def __init__(self, kind: TokenKind, value: str, position: int = 0) -> None:
        # value is the matched text; for quoted strings the quotes are stripped
        self.kind = kind
        self.value = value
        self.position = position

    def __repr__(self) -> str:
        return f"Token({self.kind.name}, {self.value!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Token):
            return NotImplemented
        return self.kind is other.kind and self.value == other.value


class Tokenizer:
    """Scans a command line into tokens.

    At each position every matcher is tried and the longest match wins;
    on a tie the matcher listed first wins. Adding a token kind means
    adding one row to ``MATCHERS``.
    """

    SKIP: Pattern[str] = re.compile(r"[ \t]*")
    MATCHERS: Tuple[Tuple[TokenKind, Pattern[str]], ...] = (
        (TokenKind.AND, re.compile(r"&&")),
        (TokenKind.OR, re.compile(r"\|\|")),
        (TokenKind.STDERR_REDIRECT, re.compile(r"2>")),
        (TokenKind.SEMICOLON, re.compile(r";")),
        (TokenKind.PIPE, re.compile(r"\|")),
        (TokenKind.INPUT_REDIRECT, re.compile(r"<")),
        (TokenKind.OUTPUT_REDIRECT, re.compile(r">")),
        (TokenKind.QUOTED_STRING, re.compile(r'"(?:\\"|[^"])*"')),
        (TokenKind.WORD, re.compile(r"[^ \t;]+")),
    )

    def __init__(self, line: str) -> None:
        self.line = line

    def __iter__(self) -> Iterator[Token]:
        return self.tokens()

    def tokens(self) -> Iterator[Token]:
        line = self.line
        n = len(line)
        pos = self.SKIP.match(line, 0).end()
        while pos < n:
            best_kind: Optional[TokenKind] = None
            best_end = pos
            for kind, pattern in self.MATCHERS:
                m = pattern.match(line, pos)
                if m is not None and m.end() > best_end:
                    best_kind = kind
                    best_end = m.end()
            if best_kind is None:
                raise InvalidSyntax(line, pos)
            text = line[pos:best_end]
            if best_kind is TokenKind.QUOTED_STRING:
                # Only the delimiting quotes are removed; \" stays as written
                text = text[1:-1]
            yield Token(best_kind, text, pos)
            pos = self.SKIP.match(line, best_end).end()


def tokenize(line: str) -> Iterator[Token]:
    """Lazily tokenize ``line``; raises InvalidSyntax on the first unmatched character."""
    return Tokenizer(line).tokens()


# ---- Invocation chain model ----
class ChainOperator(enum.Enum):
    """Relationship between an invocation and the one that follows it."""

    AND = "&&"
    OR = "||"
    SEQUENCE = ";"
    PIPE = "|"


CHAIN_OPERATORS = {
    TokenKind.AND: ChainOperator.AND,
    TokenKind.OR: ChainOperator.OR,
    TokenKind.SEMICOLON: ChainOperator.SEQUENCE,
    TokenKind.PIPE: ChainOperator.PIPE,
}

# Redirect token -> Invocation attribute receiving the target
REDIRECTS = {
    TokenKind.INPUT_REDIRECT: "input_file",
    TokenKind.OUTPUT_REDIRECT: "output_file",
    TokenKind.STDERR_REDIRECT: "stderr_file",
}


@dataclass
class Invocation:
    """One executable with its arguments and redirect targets."""

    executable: str
    args: List[str] = field(default_factory=list)
    input_file: Optional[str] = None
    output_file: Optional[str] = None
    stderr_file: Optional[str] = None

    @property
    def argv(self) -> List[str]:
        return [self.executable, *self.args]


@dataclass
class ChainElement:
    invocation: Invocation
    operator: Optional[ChainOperator] = None


Chain = List[ChainElement]


# --- Formatting (debug / test aid) ---

def format_chain(chain: Iterable[ChainElement]) -> str:
    lines: List[str] = []
    for element in chain:
        inv = element.invocation
        parts = ["CMD ", " ".join(inv.argv)]
        if inv.input_file is not None:
            parts.append(f" < {inv.input_file}")
        if inv.output_file is not None:
            parts.append(f" > {inv.output_file}")
        if inv.stderr_file is not None:
            parts.append(f" 2> {inv.stderr_file}")
        lines.append("".join(parts))
        if element.operator is not None:
            lines.append("OP  " + element.operator.value)
    return "\n".join(lines) if lines else "<empty>"
