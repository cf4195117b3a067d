"""Tests for the external tool invoker and its health check."""

from __future__ import annotations

import asyncio
import shlex
from itertools import count

from repoprobe.llm import HealthStatus, ToolInvoker
from repoprobe.sandbox import ExecResult
from tests._fixtures.fake_sandbox import FakeSandbox, healthy_sandbox


def _clock():
    ticks = count()
    return lambda: next(ticks) * 0.25


def test_health_check_reports_missing_cli_and_creds(sandbox: FakeSandbox) -> None:
    sandbox.fail(r"command -v claude")

    status = asyncio.run(ToolInvoker(sandbox).health_check())

    assert status == HealthStatus(cli_ok=False, creds_ok=False)
    assert status.describe() == "cli: missing, creds: missing"


def test_unhealthy_tool_is_never_invoked(sandbox: FakeSandbox) -> None:
    result = asyncio.run(ToolInvoker(sandbox).run("Analyze the module"))

    assert result.unhealthy
    assert result.health.cli_ok is True
    assert result.health.creds_ok is False
    assert result.output == ""
    assert not sandbox.ran(r"claude -p")


def test_credentials_are_read_from_the_sandbox_environment(sandbox: FakeSandbox) -> None:
    asyncio.run(sandbox.set_env_vars({"AWS_BEARER_TOKEN_BEDROCK": "token"}))

    status = asyncio.run(ToolInvoker(sandbox).health_check())

    assert status.healthy


def test_healthy_run_returns_stdout_and_timing() -> None:
    sandbox = healthy_sandbox()
    sandbox.on(r"claude -p", '{"classes": 2}')
    invoker = ToolInvoker(sandbox, clock=_clock())

    result = asyncio.run(invoker.run("Count the classes", cwd="/workspace/shop"))

    assert result.success
    assert result.output == '{"classes": 2}'
    assert result.elapsed_ms == 250
    command = sandbox.commands[-1]
    assert command.startswith("cd /workspace/shop && ")
    assert shlex.split(command.split(" && ", 1)[1]) == ["claude", "-p", "Count the classes"]


def test_failed_run_prefers_stderr() -> None:
    sandbox = healthy_sandbox()
    sandbox.on(r"claude -p", ExecResult(stdout="partial", stderr="rate limited", success=False))

    result = asyncio.run(ToolInvoker(sandbox).run("anything"))

    assert not result.success
    assert not result.unhealthy
    assert result.output == "rate limited"


def test_successful_run_with_empty_stdout_uses_stderr() -> None:
    sandbox = healthy_sandbox()
    sandbox.on(r"claude -p", ExecResult(stdout="  ", stderr='{"a": 1}'))

    assert asyncio.run(ToolInvoker(sandbox).run("anything")).output == '{"a": 1}'


def test_preview_collapses_whitespace_and_truncates() -> None:
    sandbox = healthy_sandbox()
    sandbox.on(r"claude -p", "line one\n\n   line two\t" + "x" * 400)

    result = asyncio.run(ToolInvoker(sandbox).run("anything"))

    preview = result.preview()
    assert preview.startswith("line one line two x")
    assert "\n" not in preview
    assert len(preview) <= 200


def test_custom_executable_is_checked() -> None:
    sandbox = FakeSandbox(env={"ANTHROPIC_API_KEY": "k"})
    sandbox.fail(r"command -v other-tool")

    result = asyncio.run(ToolInvoker(sandbox, executable="other-tool").run("x"))

    assert result.health.describe() == "cli: missing, creds: ok"
