"""Scripted in-memory sandbox for exercising code that shells out."""

from __future__ import annotations

import re
import shlex
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Pattern, Set, Tuple, Union

from repoprobe.sandbox import ExecResult

Response = Union[ExecResult, str, Callable[[str], ExecResult]]

_MKDIR_RE = re.compile(r"mkdir -p (\S+)")
_REMOVE_RE = re.compile(r"rm -rf -- (\S+)")
_MOVE_RE = re.compile(r"mv -T (\S+) ([^\s;]+)")


class FakeSandbox:
    """Answers commands from registered handlers, falling back to success.

    ``test -d`` consults :attr:`directories`, which ``mkdir -p``,
    ``mv -T`` and ``rm -rf --`` keep up to date; ``env`` lists :attr:`env`.
    """

    def __init__(
        self,
        workspace: str = "/workspace",
        *,
        directories: Iterable[str] = (),
        files: Optional[Mapping[str, bytes]] = None,
        env: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.workspace = workspace
        self.directories: Set[str] = set(directories)
        self.files: Dict[str, bytes] = dict(files or {})
        self.env: Dict[str, str] = dict(env or {})
        self.commands: List[str] = []
        self._handlers: List[Tuple[Pattern[str], Response]] = []

    def on(self, pattern: str, response: Response) -> "FakeSandbox":
        """Answer commands matching ``pattern``; a string answers as successful stdout."""
        self._handlers.append((re.compile(pattern), response))
        return self

    def fail(self, pattern: str, stderr: str = "failed") -> "FakeSandbox":
        return self.on(pattern, ExecResult(stderr=stderr, success=False))

    def ran(self, pattern: str) -> bool:
        return any(re.search(pattern, command) for command in self.commands)

    def count(self, pattern: str) -> int:
        return sum(1 for command in self.commands if re.search(pattern, command))

    async def execute(self, command: str) -> ExecResult:
        self.commands.append(command)
        result = self._respond(command)
        if result.success:
            for raw in _MKDIR_RE.findall(command):
                self.directories.add(_unquote(raw))
            for source, destination in _MOVE_RE.findall(command):
                self.directories.discard(_unquote(source))
                self.directories.add(_unquote(destination))
        for raw in _REMOVE_RE.findall(command):
            self.directories.discard(_unquote(raw))
        return result

    async def read_file(self, path: str) -> bytes:
        try:
            return self.files[path]
        except KeyError:
            raise FileNotFoundError(path) from None

    async def write_file(self, path: str, data: bytes) -> None:
        self.files[path] = bytes(data)

    async def set_env_vars(self, env: Mapping[str, str]) -> None:
        self.env.update(env)

    def _respond(self, command: str) -> ExecResult:
        for pattern, response in self._handlers:
            if pattern.search(command):
                if isinstance(response, ExecResult):
                    return response
                if isinstance(response, str):
                    return ExecResult(stdout=response)
                return response(command)

        tokens = _split(command)
        if tokens[:2] == ["test", "-d"] and len(tokens) == 3:
            return ExecResult(success=tokens[2] in self.directories)
        if tokens == ["env"]:
            listing = "\n".join(f"{key}={value}" for key, value in self.env.items())
            return ExecResult(stdout=listing)
        return ExecResult()


def healthy_sandbox(**kwargs: object) -> FakeSandbox:
    """A sandbox where the tool executable exists and credentials are set."""
    sandbox = FakeSandbox(env={"ANTHROPIC_API_KEY": "sk-test"}, **kwargs)  # type: ignore[arg-type]
    sandbox.on(r"command -v claude", ExecResult())
    return sandbox


def _unquote(raw: str) -> str:
    tokens = _split(raw)
    return tokens[0] if tokens else raw


def _split(command: str) -> List[str]:
    try:
        return shlex.split(command)
    except ValueError:
        return command.split()


__all__ = ["FakeSandbox", "healthy_sandbox"]
