"""Invoke the external inference CLI inside a session's sandbox."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from .. import shell
from ..config import DEFAULT_CREDENTIAL_KEYS
from ..logging import get_logger
from ..sandbox import Sandbox
from .environment import has_credentials, parse_env_listing


@dataclass(frozen=True)
class HealthStatus:
    """Result of the pre-invocation health check."""

    cli_ok: bool
    creds_ok: bool

    @property
    def healthy(self) -> bool:
        return self.cli_ok and self.creds_ok

    def describe(self) -> str:
        cli = "ok" if self.cli_ok else "missing"
        creds = "ok" if self.creds_ok else "missing"
        return f"cli: {cli}, creds: {creds}"


@dataclass(frozen=True)
class ToolResult:
    """Raw text returned by the tool, or the reason there is none."""

    health: HealthStatus
    output: str = ""
    success: bool = False
    elapsed_ms: int = 0

    @property
    def unhealthy(self) -> bool:
        return not self.health.healthy

    def preview(self, limit: int = 200) -> str:
        return " ".join(self.output[:limit].split())


class ToolInvoker:
    """Runs ``<executable> -p <instruction>`` after verifying the tool can work."""

    def __init__(
        self,
        sandbox: Sandbox,
        *,
        executable: str = "claude",
        credential_keys: Sequence[str] = DEFAULT_CREDENTIAL_KEYS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.sandbox = sandbox
        self.executable = executable
        self.credential_keys = tuple(credential_keys)
        self._clock = clock
        self.logger = get_logger("llm.invoker")

    async def health_check(self) -> HealthStatus:
        """Check the executable is on PATH and credentials are in the environment."""
        try:
            cli = await self.sandbox.execute(
                shell.silenced(shell.command("command", "-v", self.executable))
            )
            listing = await self.sandbox.execute(shell.command("env"))
        except Exception as exc:  # pragma: no cover - sandbox transport failure
            self.logger.warning("Health check failed: %s", exc)
            return HealthStatus(cli_ok=False, creds_ok=False)
        creds_ok = listing.success and has_credentials(
            parse_env_listing(listing.stdout), self.credential_keys
        )
        return HealthStatus(cli_ok=cli.success, creds_ok=creds_ok)

    async def run(self, instruction: str, *, cwd: Optional[str] = None) -> ToolResult:
        """Return raw tool output; never parses it and never raises."""
        health = await self.health_check()
        if not health.healthy:
            self.logger.info("Skipping tool invocation (%s)", health.describe())
            return ToolResult(health=health)

        cmd = shell.command(self.executable, "-p", instruction)
        if cwd:
            cmd = shell.in_directory(cwd, cmd)

        started = self._clock()
        try:
            result = await self.sandbox.execute(cmd)
        except Exception as exc:  # pragma: no cover - sandbox transport failure
            self.logger.warning("Tool invocation failed: %s", exc)
            return ToolResult(health=health, output=str(exc), success=False)
        elapsed_ms = int((self._clock() - started) * 1000)

        if result.success:
            output = result.stdout if result.stdout.strip() else result.stderr
        else:
            output = result.stderr if result.stderr.strip() else result.stdout
        self.logger.debug("Tool finished in %dms (success=%s)", elapsed_ms, result.success)
        return ToolResult(
            health=health,
            output=output,
            success=result.success,
            elapsed_ms=elapsed_ms,
        )


__all__ = ["HealthStatus", "ToolInvoker", "ToolResult"]
