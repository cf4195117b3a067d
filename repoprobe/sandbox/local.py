"""Sandbox backed by a per-session directory on the local machine."""

from __future__ import annotations

import asyncio
import contextlib
import hashlib
import os
import re
from pathlib import Path
from typing import Dict, Mapping, Optional

from ..logging import get_logger
from .base import ExecResult, SandboxUnavailableError

_SESSION_DIR_RE = re.compile(r"[^A-Za-z0-9_.-]+")


class LocalSandbox:
    """Runs commands with ``bash -c`` inside a dedicated workspace directory."""

    def __init__(
        self,
        workspace: Path,
        *,
        shell: str = "bash",
        timeout: Optional[float] = None,
        inherit_env: bool = True,
    ) -> None:
        self.workspace = str(workspace)
        self.shell = shell
        self.timeout = timeout
        self._env: Dict[str, str] = dict(os.environ) if inherit_env else {}
        self.logger = get_logger("sandbox.local")

    async def execute(self, command: str) -> ExecResult:
        self.logger.debug("exec: %s", command)
        try:
            proc = await asyncio.create_subprocess_exec(
                self.shell,
                "-c",
                command,
                cwd=self.workspace,
                env=self._env,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as exc:
            raise SandboxUnavailableError(f"Shell '{self.shell}' is not available") from exc

        try:
            stdout_b, stderr_b = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            with contextlib.suppress(ProcessLookupError):
                proc.kill()
            await proc.wait()
            return ExecResult(stdout="", stderr=f"timed out after {self.timeout}s", success=False)

        return ExecResult(
            stdout=(stdout_b or b"").decode("utf-8", errors="replace"),
            stderr=(stderr_b or b"").decode("utf-8", errors="replace"),
            success=proc.returncode == 0,
        )

    async def read_file(self, path: str) -> bytes:
        return await asyncio.to_thread(self._resolve(path).read_bytes)

    async def write_file(self, path: str, data: bytes) -> None:
        target = self._resolve(path)

        def _write() -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)

        await asyncio.to_thread(_write)

    async def set_env_vars(self, env: Mapping[str, str]) -> None:
        for key, value in env.items():
            self._env[str(key)] = str(value)

    def _resolve(self, path: str) -> Path:
        candidate = Path(path)
        if not candidate.is_absolute():
            candidate = Path(self.workspace) / candidate
        return candidate


class LocalSandboxFactory:
    """Creates one :class:`LocalSandbox` per session under ``base_dir``."""

    def __init__(
        self,
        base_dir: Path,
        *,
        timeout: Optional[float] = None,
        inherit_env: bool = True,
    ) -> None:
        self.base_dir = Path(base_dir).expanduser()
        self.timeout = timeout
        self.inherit_env = inherit_env

    async def __call__(self, session_id: str) -> LocalSandbox:
        workspace = self.base_dir / _session_dirname(session_id)
        try:
            await asyncio.to_thread(workspace.mkdir, parents=True, exist_ok=True)
        except OSError as exc:
            raise SandboxUnavailableError(
                f"Cannot create workspace for session {session_id}: {exc}"
            ) from exc
        return LocalSandbox(workspace, timeout=self.timeout, inherit_env=self.inherit_env)


def _session_dirname(session_id: str) -> str:
    cleaned = _SESSION_DIR_RE.sub("-", session_id).strip(".-")
    if cleaned == session_id:
        return cleaned
    # Distinct identifiers must never share a directory once sanitized.
    digest = hashlib.sha256(session_id.encode("utf-8")).hexdigest()[:10]
    return f"{cleaned or 'session'}-{digest}"


__all__ = ["LocalSandbox", "LocalSandboxFactory"]
