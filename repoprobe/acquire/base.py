"""Shared pieces of the acquisition strategies."""

from __future__ import annotations

from typing import Callable, Optional

from .. import shell
from ..sandbox import Sandbox

ProgressCallback = Callable[[str], None]


class AcquisitionError(RuntimeError):
    """Raised when no strategy could materialize the repository."""


def report(progress: Optional[ProgressCallback], message: str) -> None:
    if progress is not None:
        progress(message)


async def directory_exists(sandbox: Sandbox, path: str) -> bool:
    result = await sandbox.execute(shell.command("test", "-d", path))
    return result.success


async def make_directory(sandbox: Sandbox, path: str) -> None:
    result = await sandbox.execute(shell.command("mkdir", "-p", path))
    if not result.success:
        raise AcquisitionError(f"Cannot create directory {path}: {result.output.strip()}")


async def remove_path(sandbox: Sandbox, path: str) -> None:
    await sandbox.execute(shell.command("rm", "-rf", "--", path))


__all__ = [
    "AcquisitionError",
    "ProgressCallback",
    "directory_exists",
    "make_directory",
    "remove_path",
    "report",
]
