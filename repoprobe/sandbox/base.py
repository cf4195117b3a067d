"""Narrow capability interface for an execution environment."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable, Mapping, Protocol, runtime_checkable


class SandboxUnavailableError(RuntimeError):
    """Raised when an execution environment cannot be provided for a session."""


@dataclass(frozen=True)
class ExecResult:
    """Outcome of one shell command inside the environment."""

    stdout: str = ""
    stderr: str = ""
    success: bool = True

    @property
    def output(self) -> str:
        """Return stdout, or stderr when stdout is empty."""
        return self.stdout if self.stdout.strip() else self.stderr


@runtime_checkable
class Sandbox(Protocol):
    """Everything the core needs from an execution environment.

    ``workspace`` is the directory inside the environment under which this
    session's repositories are materialized.
    """

    workspace: str

    async def execute(self, command: str) -> ExecResult:
        ...

    async def read_file(self, path: str) -> bytes:
        ...

    async def write_file(self, path: str, data: bytes) -> None:
        ...

    async def set_env_vars(self, env: Mapping[str, str]) -> None:
        ...


SandboxFactory = Callable[[str], Awaitable[Sandbox]]
"""Builds the environment bound to one session identifier."""


__all__ = ["ExecResult", "Sandbox", "SandboxFactory", "SandboxUnavailableError"]
