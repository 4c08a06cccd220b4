"""Tests for the statement layer in script.py."""

import pytest  # type: ignore

from errors import CommandNotFound
from script import Assignment, Command, execute_script, parse_script, parse_statement


class TestParseStatement:
    """Assignments versus commands."""

    @pytest.mark.parametrize(
        "line,expected",
        [
            ("x = 5", Assignment("x", "5")),
            ("x=5", Assignment("x", "5")),
            ("greeting =\thello world", Assignment("greeting", "hello world")),
            ("path = $base/bin", Assignment("path", "$base/bin")),
            ("empty =", Assignment("empty", "")),
        ],
    )
    def test_assignments(self, line, expected):
        assert parse_statement(line) == expected

    @pytest.mark.parametrize("line", ["ls -al", "echo a=b", "env X=1 true", "a-b = c"])
    def test_commands(self, line):
        assert parse_statement(line) == Command(line)

    def test_parse_script_skips_blank_lines(self):
        source = "x = 1\n\n   \necho $x\n"
        assert parse_script(source) == [Assignment("x", "1"), Command("echo $x")]


class TestExecuteScript:
    """Statements run in order against one session."""

    def test_assignments_feed_later_commands(self, session, sandbox):
        statuses = execute_script(parse_script("f = out\ng = ${f}.txt\necho hi > $g\n"), session)
        assert statuses.success
        assert (sandbox / "out.txt").read_text() == "hi\n"

    def test_status_of_last_statement(self, session):
        assert execute_script(parse_script("true\nfalse\n"), session).code == 1
        assert execute_script(parse_script("x = 1"), session).success

    def test_empty_script(self, session):
        assert execute_script([], session).success

    def test_first_error_stops_script(self, session, sandbox):
        with pytest.raises(CommandNotFound):
            execute_script(parse_script("touch a\nno-such-command-dcsh\ntouch b\n"), session)
        assert (sandbox / "a").exists()
        assert not (sandbox / "b").exists()
