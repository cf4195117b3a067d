"""Execution environment capability and the local implementation."""

from .base import ExecResult, Sandbox, SandboxFactory, SandboxUnavailableError
from .local import LocalSandbox, LocalSandboxFactory

__all__ = [
    "ExecResult",
    "LocalSandbox",
    "LocalSandboxFactory",
    "Sandbox",
    "SandboxFactory",
    "SandboxUnavailableError",
]
