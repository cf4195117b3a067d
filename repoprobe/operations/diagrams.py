"""Mermaid diagrams for one module: tool-generated, else built from its components."""

from __future__ import annotations

import re
from typing import Any, List, Optional, Sequence

from ..extraction import extract_array
from ..llm import ToolInvoker
from ..logging import get_logger
from ..models import BusinessLogic, Diagram
from .common import ProgressCallback, as_text, notify
from .prompts import diagram_prompt

_IDENT_RE = re.compile(r"[^a-zA-Z0-9]")
_GROUP_LIMIT = 5


class DiagramGenerator:
    def __init__(self, invoker: ToolInvoker, *, enabled: bool = True) -> None:
        self.invoker = invoker
        self.enabled = enabled
        self.logger = get_logger("operations.diagrams")

    async def generate(
        self,
        module_path: str,
        logic: BusinessLogic,
        *,
        root: Optional[str] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> List[Diagram]:
        if not self.enabled:
            return []
        label = self.invoker.executable
        result = await self.invoker.run(diagram_prompt(module_path, logic), cwd=root)
        if result.unhealthy:
            notify(progress, f"{label}: diagrams skipped ({result.health.describe()})")
        else:
            notify(progress, f"{label}: diagram output ({result.elapsed_ms}ms): {result.preview()}")
            diagrams = parse_diagrams(extract_array(result.output))
            if diagrams:
                return diagrams
            notify(progress, f"{label}: no usable diagrams; using generic diagrams")
        return generic_diagrams(module_path, logic)


def parse_diagrams(items: Optional[Sequence[Any]]) -> List[Diagram]:
    """Keep entries that have a string id and title and a non-empty chart."""
    diagrams: List[Diagram] = []
    for item in items or []:
        if not isinstance(item, dict):
            continue
        ident, title, chart = item.get("id"), item.get("title"), as_text(item.get("chart"))
        if not isinstance(ident, str) or not isinstance(title, str) or chart is None:
            continue
        diagrams.append(
            Diagram(id=ident, title=title, chart=chart, description=as_text(item.get("description")))
        )
    return diagrams


def generic_diagrams(module_path: str, logic: BusinessLogic) -> List[Diagram]:
    diagrams = [_sequence_diagram(logic), _architecture_diagram(module_path, logic)]
    if logic.workflows:
        diagrams.append(_workflow_diagram(logic.workflows))
    return diagrams


def _sequence_diagram(logic: BusinessLogic) -> Diagram:
    controller = _identifier(logic.controllers[0] if logic.controllers else "", "Controller")
    service = _identifier(logic.services[0] if logic.services else "", "Service")
    entity = _identifier(logic.entities[0] if logic.entities else "", "Entity")
    chart = "\n".join(
        [
            "sequenceDiagram",
            "    participant Client",
            f"    participant {controller}",
            f"    participant {service}",
            f"    participant {entity}",
            "    participant Database",
            f"    Client->>{controller}: Request",
            f"    {controller}->>{service}: Handle request",
            f"    {service}->>{entity}: Load or update",
            f"    {entity}->>Database: Persist",
            f"    Database-->>{entity}: Data",
            f"    {entity}-->>{service}: Entity",
            f"    {service}-->>{controller}: Result",
            f"    {controller}-->>Client: Response",
        ]
    )
    return Diagram(
        id="sequence",
        title="Request Flow",
        chart=chart,
        description="How a request travels through the module's layers",
    )


def _architecture_diagram(module_path: str, logic: BusinessLogic) -> Diagram:
    lines = ["graph TD", f"    M[\"{_label(module_path)}\"]"]
    groups = (
        ("C", "Controllers", logic.controllers),
        ("S", "Services", logic.services),
        ("E", "Entities", logic.entities),
        ("W", "Workflows", logic.workflows),
    )
    styles: List[str] = []
    for prefix, title, items in groups:
        if not items:
            continue
        lines.append(f"    subgraph {title}")
        for index, item in enumerate(items[:_GROUP_LIMIT]):
            lines.append(f"        {prefix}{index}[\"{_label(item)}\"]")
        if len(items) > _GROUP_LIMIT:
            lines.append(f"        {prefix}more[\"... {len(items) - _GROUP_LIMIT} more\"]")
        lines.append("    end")
        lines.append(f"    M --> {title}")
        styles.append(f"    style {title} fill:#f5f5f5,stroke:#999")
    lines.extend(styles)
    return Diagram(
        id="architecture",
        title="Module Architecture",
        chart="\n".join(lines),
        description="Components grouped by role",
    )


def _workflow_diagram(workflows: Sequence[str]) -> Diagram:
    lines = ["graph LR", "    Start((Start))"]
    previous = "Start"
    for index, workflow in enumerate(workflows):
        node = f"W{index}"
        lines.append(f"    {node}[\"{_label(workflow)}\"]")
        lines.append(f"    {previous} --> {node}")
        previous = node
    lines.append("    End((End))")
    lines.append(f"    {previous} --> End")
    return Diagram(
        id="workflow",
        title="Business Workflows",
        chart="\n".join(lines),
        description="Workflows in the order they were reported",
    )


def _identifier(name: str, fallback: str) -> str:
    return _IDENT_RE.sub("", name) or fallback


def _label(text: str) -> str:
    return text.replace('"', "#quot;")


__all__ = ["DiagramGenerator", "generic_diagrams", "parse_diagrams"]
