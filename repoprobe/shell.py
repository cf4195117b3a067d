"""Shell command construction for the execution environment.

Every command sent to a sandbox is assembled from argument lists here. Caller-
and repository-derived values (paths, URLs, prompts) only ever reach the shell
through :func:`quote`, so no interpolated value can change what gets executed.
"""

from __future__ import annotations

import shlex
from typing import Iterable


def quote(value: object) -> str:
    """Return ``value`` as a single shell word."""
    return shlex.quote(str(value))


def command(*args: object) -> str:
    """Join an argument vector into one shell command string."""
    if not args:
        raise ValueError("command() requires at least one argument")
    return " ".join(quote(arg) for arg in args)


def chain(*commands: str) -> str:
    """Run ``commands`` in order, stopping at the first failure."""
    return " && ".join(_group(cmd) for cmd in _non_empty(commands))


def first_success(*commands: str) -> str:
    """Run ``commands`` until one succeeds."""
    return " || ".join(_group(cmd) for cmd in _non_empty(commands))


def in_directory(path: str, cmd: str) -> str:
    """Run ``cmd`` with ``path`` as the working directory."""
    return chain(command("cd", path), cmd)


def silenced(cmd: str) -> str:
    """Discard both output streams of ``cmd``; only its exit status remains."""
    return f"{_group(cmd)} >/dev/null 2>&1"


def _group(cmd: str) -> str:
    # Single commands need no grouping; compound ones keep their own precedence.
    if any(token in cmd for token in ("&&", "||", "|", ";")):
        return f"{{ {cmd}; }}"
    return cmd


def _non_empty(commands: Iterable[str]) -> list[str]:
    items = [cmd for cmd in commands if cmd and cmd.strip()]
    if not items:
        raise ValueError("at least one non-empty command is required")
    return items


__all__ = ["chain", "command", "first_success", "in_directory", "quote", "silenced"]
