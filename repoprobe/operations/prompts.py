"""Instructions sent to the external inference tool."""

from __future__ import annotations

from typing import Sequence

from ..models import BusinessLogic


def business_logic_prompt(module_path: str) -> str:
    return " ".join(
        [
            f"Analyze the code under: {module_path}.",
            "Return ONLY compact JSON with exact keys:",
            '{ "module", "entities", "services", "controllers", "workflows", "summary" }.',
            "Each of entities/services/controllers/workflows must be an array of strings.",
            'The "summary" must be a single plain-English sentence describing what the module does for the business/user.',
            "No prose outside JSON, no backticks.",
        ]
    )


def complexity_prompt(module_path: str) -> str:
    return " ".join(
        [
            f"Analyze the code under: {module_path}.",
            "Respond ONLY with compact JSON using keys:",
            '{ "moduleName", "classes", "functions", "linesOfCode", "cyclomaticComplexity" }.',
            "No prose, no backticks.",
        ]
    )


def diagram_prompt(module_path: str, logic: BusinessLogic) -> str:
    components = "; ".join(
        f"{label}: {', '.join(items)}"
        for label, items in _component_groups(logic)
        if items
    )
    parts = [
        f"Analyze the code in {module_path}.",
        f"Module purpose: {logic.summary or 'Analyze this module'}.",
        f"Components: {components}." if components else "",
        "Generate 2-3 Mermaid diagrams that explain HOW this module works and its key workflows.",
        "Return ONLY a JSON array of diagram objects.",
        'Each object must have: {"id": "unique-id", "title": "Diagram Title", "description": "What this shows", "chart": "mermaid syntax"}.',
        "Make diagrams SPECIFIC to this module's actual functionality, not generic structures.",
        "Focus on: actual business workflows, state transitions, data flows, decision paths, or use cases.",
        "Use appropriate Mermaid diagram types: flowchart, sequenceDiagram, stateDiagram-v2, graph.",
        'Make the chart field contain ONLY the mermaid syntax (no backticks, no "mermaid" tag).',
        "Return ONLY the JSON array, no other text.",
    ]
    return " ".join(part for part in parts if part)


def _component_groups(logic: BusinessLogic) -> Sequence[tuple[str, Sequence[str]]]:
    return (
        ("Entities", logic.entities),
        ("Services", logic.services),
        ("Controllers", logic.controllers),
        ("Workflows", logic.workflows),
    )


__all__ = ["business_logic_prompt", "complexity_prompt", "diagram_prompt"]
