"""External inference tool adapters."""

from .environment import build_tool_env
from .invoker import HealthStatus, ToolInvoker, ToolResult

__all__ = ["HealthStatus", "ToolInvoker", "ToolResult", "build_tool_env"]
