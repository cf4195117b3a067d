"""Complexity measurement for one module."""

from __future__ import annotations

from typing import Optional

from ..extraction import extract_object
from ..llm import ToolInvoker
from ..logging import get_logger
from ..models import ComplexityMetrics
from .common import ProgressCallback, as_count, as_number, as_text, notify
from .prompts import complexity_prompt


class ComplexityAnalyzer:
    def __init__(self, invoker: ToolInvoker) -> None:
        self.invoker = invoker
        self.logger = get_logger("operations.complexity")

    async def measure(
        self,
        module_path: str,
        *,
        root: Optional[str] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> ComplexityMetrics:
        """Return whatever metrics the tool reported; missing ones stay ``None``."""
        label = self.invoker.executable
        result = await self.invoker.run(complexity_prompt(module_path), cwd=root)
        if result.unhealthy:
            notify(progress, f"{label}: complexity skipped ({result.health.describe()})")
            return ComplexityMetrics(module_name=module_path)

        notify(progress, f"{label}: complexity output ({result.elapsed_ms}ms): {result.preview()}")
        data = extract_object(result.output)
        if data is None:
            notify(progress, f"{label}: non-JSON complexity output; metrics unavailable")
            return ComplexityMetrics(module_name=module_path)

        return ComplexityMetrics(
            module_name=as_text(data.get("moduleName")) or module_path,
            lines_of_code=as_count(data.get("linesOfCode")),
            classes=as_count(data.get("classes")),
            functions=as_count(data.get("functions")),
            cyclomatic_complexity=as_number(data.get("cyclomaticComplexity")),
        )


__all__ = ["ComplexityAnalyzer"]
