"""Aggregate summary computed after every selected module was analyzed."""

from __future__ import annotations

from typing import Any, Dict, List, Sequence

from ..models import AnalysisSummary, ModuleResult


class ReportBuilder:
    def __init__(self, top_complexity: int = 5) -> None:
        self.top_complexity = max(0, top_complexity)

    def summarize(self, results: Sequence[ModuleResult]) -> AnalysisSummary:
        analyzed = [
            result
            for result in results
            if (result.logic is not None and not result.logic.is_empty)
            or (result.complexity is not None and result.complexity.has_metrics)
        ]
        return AnalysisSummary(
            total_modules=len(results),
            analyzed_modules=len(analyzed),
            degraded_modules=sum(1 for result in results if result.degraded),
            top_complex_modules=self.rank(results),
        )

    def rank(self, results: Sequence[ModuleResult]) -> List[str]:
        """Module paths ordered by cyclomatic complexity, then lines of code."""
        measured = [
            result
            for result in results
            if result.complexity is not None
            and (
                result.complexity.cyclomatic_complexity is not None
                or result.complexity.lines_of_code is not None
            )
        ]
        # sorted() is stable, so ties keep processing order.
        measured = sorted(
            measured,
            key=lambda result: (
                result.complexity.cyclomatic_complexity or 0,
                result.complexity.lines_of_code or 0,
            ),
            reverse=True,
        )
        return [result.module_path for result in measured[: self.top_complexity]]

    def build(self, results: Sequence[ModuleResult]) -> Dict[str, Any]:
        return {
            "results": [result.to_dict() for result in results],
            "summary": self.summarize(results).to_dict(),
        }


__all__ = ["ReportBuilder"]
