"""Raw-mode terminal handling and the interactive input loop.

The loop reads key events, edits the current :class:`prompt.Prompt`, and
on Enter hands the line to the statement layer with the terminal back in
its normal (cooked) mode.
"""
from __future__ import annotations

import codecs
import enum
import os
import select
import sys
import termios
import tty
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, TextIO, Union

from errors import ShellError, report
from ops import SUCCESS, ExitStatus, ShellSession
from prompt import History, Prompt
from script import execute_statement, parse_statement


class Terminal:
    """Toggles raw mode on a terminal file descriptor.

    enable/disable are idempotent so nested suspend/resume stays balanced.
    """

    def __init__(self, fd: int) -> None:
        self.fd = fd
        self._saved: Optional[List] = None

    @property
    def is_raw(self) -> bool:
        return self._saved is not None

    def enable_raw_mode(self) -> None:
        if self._saved is not None:
            return
        self._saved = termios.tcgetattr(self.fd)
        tty.setraw(self.fd, termios.TCSADRAIN)

    def disable_raw_mode(self) -> None:
        if self._saved is None:
            return
        saved, self._saved = self._saved, None
        termios.tcsetattr(self.fd, termios.TCSADRAIN, saved)

    @contextmanager
    def raw(self) -> Iterator["Terminal"]:
        self.enable_raw_mode()
        try:
            yield self
        finally:
            self.disable_raw_mode()

    @contextmanager
    def cooked(self) -> Iterator["Terminal"]:
        """Leave raw mode for the duration of the block, restoring it on any exit."""
        self.disable_raw_mode()
        try:
            yield self
        finally:
            self.enable_raw_mode()


# ---- Key events ----
class Key(enum.Enum):
    ENTER = "enter"
    TAB = "tab"
    BACKSPACE = "backspace"
    DELETE = "delete"
    LEFT = "left"
    RIGHT = "right"
    UP = "up"
    DOWN = "down"
    ESCAPE = "escape"


class Modifier(enum.Flag):
    NONE = 0
    CONTROL = enum.auto()


@dataclass(frozen=True)
class KeyEvent:
    key: Union[Key, str]
    modifiers: Modifier = Modifier.NONE

    @property
    def is_control(self) -> bool:
        return bool(self.modifiers & Modifier.CONTROL)


CSI_KEYS = {"A": Key.UP, "B": Key.DOWN, "C": Key.RIGHT, "D": Key.LEFT}
CSI_TILDE_KEYS = {"3": Key.DELETE}
PLAIN_KEYS = {"\r": Key.ENTER, "\n": Key.ENTER, "\t": Key.TAB, "\x7f": Key.BACKSPACE, "\x08": Key.BACKSPACE}

# xterm encodes modifiers as 1 + bitmask (shift 1, alt 2, ctrl 4) in the second CSI parameter
CSI_CTRL_BIT = 4

# Seconds to wait for the rest of an escape sequence before reporting a lone ESC
ESCAPE_TIMEOUT = 0.05


class KeyDecoder:
    """Turns raw terminal bytes into KeyEvents.

    Partial UTF-8 characters and partial escape sequences, including a
    trailing ESC, are held back until the next ``feed``. ``flush`` gives
    up on whatever is held back.
    """

    def __init__(self) -> None:
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._pending = ""

    @property
    def pending(self) -> bool:
        return bool(self._pending)

    def feed(self, data: bytes) -> List[KeyEvent]:
        text = self._pending + self._utf8.decode(data)
        self._pending = ""
        events: List[KeyEvent] = []
        i = 0
        n = len(text)
        while i < n:
            ch = text[i]
            if ch == "\x1b":
                end = self._escape_end(text, i)
                if end is None:
                    self._pending = text[i:]
                    break
                event = self._decode_escape(text[i:end])
                if event is not None:
                    events.append(event)
                i = end
                continue
            if ch in PLAIN_KEYS:
                events.append(KeyEvent(PLAIN_KEYS[ch]))
            elif ord(ch) < 0x20:
                # Ctrl-A..Ctrl-Z arrive as 0x01..0x1a
                events.append(KeyEvent(chr(ord(ch) + 0x60), Modifier.CONTROL))
            else:
                events.append(KeyEvent(ch))
            i += 1
        return events

    def flush(self) -> List[KeyEvent]:
        """Resolve held-back input once no more bytes are coming.

        A lone ESC becomes Key.ESCAPE; an unfinished sequence is dropped.
        """
        pending, self._pending = self._pending, ""
        if pending == "\x1b":
            return [KeyEvent(Key.ESCAPE)]
        return []

    @staticmethod
    def _escape_end(text: str, i: int) -> Optional[int]:
        # Index just past the escape sequence starting at i, None if incomplete
        if i + 1 >= len(text):
            return None
        intro = text[i + 1]
        if intro == "O":
            return i + 3 if i + 2 < len(text) else None
        if intro != "[":
            return i + 1
        j = i + 2
        while j < len(text):
            if "\x40" <= text[j] <= "\x7e":
                return j + 1
            j += 1
        return None

    @staticmethod
    def _modifiers(params: List[str]) -> Modifier:
        if len(params) < 2 or not params[1].isdigit():
            return Modifier.NONE
        if (int(params[1]) - 1) & CSI_CTRL_BIT:
            return Modifier.CONTROL
        return Modifier.NONE

    @classmethod
    def _decode_escape(cls, seq: str) -> Optional[KeyEvent]:
        if len(seq) == 1:
            return KeyEvent(Key.ESCAPE)
        final = seq[-1]
        params = seq[2:-1].split(";")
        if final in CSI_KEYS and seq[1] in "[O":
            return KeyEvent(CSI_KEYS[final], cls._modifiers(params))
        if final == "~" and params[0] in CSI_TILDE_KEYS:
            return KeyEvent(CSI_TILDE_KEYS[params[0]], cls._modifiers(params))
        return None


def read_events(fd: int, escape_timeout: float = ESCAPE_TIMEOUT) -> Iterator[KeyEvent]:
    """Blocking key-event source; ends when the terminal reports end of input.

    While an escape sequence is incomplete the next read waits at most
    ``escape_timeout`` seconds, after which the held-back input is flushed.
    """
    decoder = KeyDecoder()
    while True:
        if decoder.pending:
            ready, _, _ = select.select([fd], [], [], escape_timeout)
            if not ready:
                yield from decoder.flush()
                continue
        data = os.read(fd, 1024)
        if not data:
            yield from decoder.flush()
            return
        yield from decoder.feed(data)


# ---- Interactive loop ----
EXIT_KEYS = frozenset({"c", "d"})

EDIT_ACTIONS = {
    Key.LEFT: Prompt.move_left,
    Key.RIGHT: Prompt.move_right,
    Key.BACKSPACE: Prompt.backspace,
    Key.DELETE: Prompt.delete,
}

HISTORY_ACTIONS = {
    Key.UP: History.up,
    Key.DOWN: History.down,
}


def run_committed_line(line: str, session: ShellSession, err: Optional[TextIO] = None) -> Optional[ExitStatus]:
    """Execute one committed line, reporting errors instead of raising them.

    Returns None for a blank line.
    """
    if not line.strip():
        return None
    try:
        status = execute_statement(parse_statement(line.strip()), session)
    except ShellError as e:
        report(e, err)
        return ExitStatus(e.exit_code)
    if status.signal is not None:
        report(f"killed by signal {status.signal}", err)
    return status


def event_loop(
    session: ShellSession,
    terminal: Terminal,
    events: Iterable[KeyEvent],
    out: Optional[TextIO] = None,
    marker: str = "> ",
    history: Optional[History] = None,
) -> int:
    """Run the interactive shell until Ctrl-C, Ctrl-D or end of input.

    Returns the status of the last executed line as a shell-style integer.
    """
    out = out if out is not None else sys.stdout
    history = history if history is not None else History()
    prompt = Prompt(marker=marker)
    last = SUCCESS
    with terminal.raw():
        prompt.render(out)
        for event in events:
            if event.is_control:
                if event.key in EXIT_KEYS:
                    break
                continue
            key = event.key
            if key is Key.ENTER:
                line = prompt.contents()
                with terminal.cooked():
                    out.write("\n")
                    out.flush()
                    status = run_committed_line(line, session)
                if status is not None:
                    last = status
                    history.push(line)
                prompt = Prompt(marker=marker)
            elif key in EDIT_ACTIONS:
                EDIT_ACTIONS[key](prompt)
            elif key in HISTORY_ACTIONS:
                # Nothing to browse: keep the half-typed line
                if history:
                    prompt.replace(HISTORY_ACTIONS[key](history))
            elif isinstance(key, str):
                prompt.insert(key)
            prompt.render(out)
    out.write("\r\n")
    out.flush()
    session.reap_children()
    return last.as_int()
