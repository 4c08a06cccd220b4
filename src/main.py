#!/usr/bin/env python3

# Entry of dcsh

from __future__ import annotations

import argparse
import os
import sys
from typing import Optional

PROMPT = "> "

from errors import ShellError, report  # local modules in the same folder
from groups import format_chain
from ops import ShellSession, parse_command
from script import execute_script, parse_script
from terminal import Terminal, event_loop, read_events


def get_prompt(override: Optional[str] = None) -> str:
    """Prompt marker: --prompt, then $DCSH_PROMPT, then the default."""
    if override is not None:
        return override
    return os.environ.get("DCSH_PROMPT", PROMPT)


def run_source(source: str, session: ShellSession) -> int:
    """Run a script non-interactively, stopping at the first error."""
    try:
        status = execute_script(parse_script(source), session)
    except ShellError as e:
        report(e)
        return e.exit_code
    finally:
        session.reap_children()
    if status.signal is not None:
        report(f"killed by signal {status.signal}")
    return status.as_int()


def explain(command: str, session: ShellSession) -> int:
    try:
        chain = parse_command(command, session)
    except ShellError as e:
        report(e)
        return e.exit_code
    print(format_chain(chain))
    return 0


def repl(marker: str) -> int:
    session = ShellSession()
    fd = sys.stdin.fileno()
    return event_loop(session, Terminal(fd), read_events(fd), sys.stdout, marker)


def parse_args(args=None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="dcsh",
        description="dcsh - a small interactive shell",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  dcsh                          # Interactive shell
  dcsh -c 'ls -al | grep foo'   # Run one command line
  dcsh script.dcsh              # Run a script file
  dcsh --explain -c 'a | b'     # Show how a command line parses

Environment:
  DCSH_PROMPT   prompt marker (default "> ")
"""
    )

    parser.add_argument(
        "script",
        nargs="?",
        metavar="SCRIPT",
        help="Run statements from this file instead of starting interactively"
    )
    parser.add_argument(
        "-c",
        dest="command",
        metavar="COMMAND",
        help="Run COMMAND and exit"
    )
    parser.add_argument(
        "--explain",
        action="store_true",
        help="Print the parsed invocation chain of -c COMMAND instead of running it"
    )
    parser.add_argument(
        "--prompt",
        metavar="MARKER",
        help="Prompt marker shown before the edit line"
    )

    return parser.parse_args(args)


def run(args: argparse.Namespace) -> int:
    if args.explain:
        if args.command is None:
            report("--explain requires -c COMMAND")
            return 2
        return explain(args.command, ShellSession())
    if args.command is not None:
        return run_source(args.command, ShellSession())
    if args.script is not None:
        try:
            with open(args.script, encoding="utf-8") as f:
                source = f.read()
        except OSError as e:
            report(f"{args.script}: {e.strerror or e}")
            return 1
        return run_source(source, ShellSession())
    if not sys.stdin.isatty():
        return run_source(sys.stdin.read(), ShellSession())
    return repl(get_prompt(args.prompt))


def main() -> None:
    sys.exit(run(parse_args()))


if __name__ == "__main__":
    main()
