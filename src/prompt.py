"""Line editing state: the cursor-split edit buffer and command history."""
from __future__ import annotations

from collections import deque
from typing import Deque, List, Optional, TextIO

CLEAR_LINE = "\r\x1b[K"


class Prompt:
    """Edit buffer split at the cursor.

    ``left`` holds the characters before the cursor and ``right`` those
    after it, so every edit touches only the ends of the two deques.
    """

    def __init__(self, text: str = "", marker: str = "> ") -> None:
        self.marker = marker
        self.left: Deque[str] = deque(text)
        self.right: Deque[str] = deque()

    @property
    def cursor(self) -> int:
        return len(self.left)

    def insert(self, ch: str) -> None:
        self.left.append(ch)

    def move_left(self) -> None:
        if self.left:
            self.right.appendleft(self.left.pop())

    def move_right(self) -> None:
        if self.right:
            self.left.append(self.right.popleft())

    def backspace(self) -> None:
        if self.left:
            self.left.pop()

    def delete(self) -> None:
        if self.right:
            self.right.popleft()

    def replace(self, text: str) -> None:
        """Swap in a whole new line with the cursor at its end."""
        self.left = deque(text)
        self.right = deque()

    def contents(self) -> str:
        return "".join(self.left) + "".join(self.right)

    def render(self, out: TextIO) -> None:
        # Clear the row, redraw, then put the cursor back at column marker + left (1-based)
        column = len(self.marker) + len(self.left) + 1
        out.write(f"{CLEAR_LINE}{self.marker}{self.contents()}\x1b[{column}G")
        out.flush()


class History:
    """Committed lines plus a browse cursor in ``[0, len(lines)]``.

    The cursor equal to ``len(lines)`` means "not browsing".
    """

    def __init__(self, lines: Optional[List[str]] = None) -> None:
        self.lines: List[str] = list(lines) if lines else []
        self.index = len(self.lines)

    def __len__(self) -> int:
        return len(self.lines)

    def push(self, line: str) -> None:
        self.lines.append(line)
        self.index = len(self.lines)

    def up(self) -> str:
        if self.index > 0:
            self.index -= 1
        return self.lines[self.index] if self.lines else ""

    def down(self) -> str:
        if self.index < len(self.lines):
            self.index += 1
        if self.index == len(self.lines):
            return ""
        return self.lines[self.index]
