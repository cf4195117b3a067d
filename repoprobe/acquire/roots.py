"""Locate the meaningful project root inside a materialized tree."""

from __future__ import annotations

import posixpath
from typing import List, Optional, Sequence

from .. import shell
from ..logging import get_logger
from ..sandbox import Sandbox
from .base import ProgressCallback, report

_IGNORED_ENTRIES = {"__MACOSX/", ".DS_Store"}


class RootDetector:
    """Skips single wrapper directories until a recognized project root appears.

    Detection is best-effort: when no marker is found the last directory
    visited is returned rather than raising.
    """

    def __init__(self, markers: Sequence[str] = ("app/code", "vendor/magento"), max_iterations: int = 3) -> None:
        self.markers = [marker.strip("/") for marker in markers if marker.strip("/")]
        self.max_iterations = max_iterations
        self.logger = get_logger("acquire.roots")

    async def detect(
        self,
        sandbox: Sandbox,
        base_dir: str,
        progress: Optional[ProgressCallback] = None,
    ) -> str:
        base = base_dir.rstrip("/") or "/"
        current = base
        for _ in range(self.max_iterations):
            if await self._has_marker(sandbox, current):
                break
            entries = await self._list_entries(sandbox, current)
            if len(entries) == 1 and entries[0].endswith("/"):
                current = posixpath.join(current, entries[0].rstrip("/"))
                continue
            break

        if current != base:
            self.logger.debug("Nested root %s under %s", current, base)
            report(progress, f"Detected nested root: {current}")
        return current

    async def _has_marker(self, sandbox: Sandbox, directory: str) -> bool:
        if not self.markers:
            return False
        checks = [
            shell.command("test", "-e", posixpath.join(directory, marker))
            for marker in self.markers
        ]
        result = await sandbox.execute(shell.first_success(*checks))
        return result.success

    async def _list_entries(self, sandbox: Sandbox, directory: str) -> List[str]:
        # -p marks directories with a trailing slash.
        result = await sandbox.execute(shell.command("ls", "-A", "-1", "-p", "--", directory))
        if not result.success:
            return []
        entries = [line.strip() for line in result.stdout.splitlines() if line.strip()]
        return [entry for entry in entries if entry not in _IGNORED_ENTRIES]


__all__ = ["RootDetector"]
