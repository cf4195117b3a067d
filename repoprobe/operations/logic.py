"""Business-logic extraction for one module."""

from __future__ import annotations

from typing import Optional

from ..extraction import extract_object
from ..llm import ToolInvoker
from ..logging import get_logger
from ..models import BusinessLogic
from .common import ProgressCallback, as_str_list, as_text, notify
from .prompts import business_logic_prompt


class BusinessLogicExtractor:
    """Asks the tool for a module's entities, services, controllers and workflows.

    Failures degrade to :meth:`BusinessLogic.empty`; they never raise.
    """

    def __init__(self, invoker: ToolInvoker) -> None:
        self.invoker = invoker
        self.logger = get_logger("operations.logic")

    async def extract(
        self,
        module_path: str,
        *,
        root: Optional[str] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> BusinessLogic:
        label = self.invoker.executable
        notify(progress, f"{label}: health check for business logic of {module_path}")
        result = await self.invoker.run(business_logic_prompt(module_path), cwd=root)
        if result.unhealthy:
            notify(progress, f"{label}: unhealthy ({result.health.describe()})")
            return BusinessLogic.empty(module_path)

        notify(progress, f"{label}: extraction output ({result.elapsed_ms}ms): {result.preview()}")
        data = extract_object(result.output)
        if data is None:
            self.logger.debug("No JSON object in extraction output for %s", module_path)
            notify(progress, f"{label}: non-JSON extraction output; falling back to empty lists")
            return BusinessLogic.empty(module_path)

        return BusinessLogic(
            module=as_text(data.get("module")) or module_path,
            entities=as_str_list(data.get("entities")),
            services=as_str_list(data.get("services")),
            controllers=as_str_list(data.get("controllers")),
            workflows=as_str_list(data.get("workflows")),
            summary=as_text(data.get("summary")),
        )


__all__ = ["BusinessLogicExtractor"]
