"""Tests for business-logic extraction and complexity measurement."""

from __future__ import annotations

import asyncio
from typing import List

import pytest

from repoprobe.llm import ToolInvoker
from repoprobe.operations import BusinessLogicExtractor, ComplexityAnalyzer
from repoprobe.operations.common import as_number, as_str_list
from tests._fixtures.fake_sandbox import FakeSandbox, healthy_sandbox

LOGIC_OUTPUT = """Here is the analysis:
```json
{"module": "Acme_Sales", "entities": ["Order", "  ", 42, null],
 "services": "OrderService", "controllers": ["Index"], "workflows": ["Checkout"],
 "summary": "Handles orders."}
```
"""


def test_logic_is_extracted_and_coerced() -> None:
    sandbox = healthy_sandbox()
    sandbox.on(r"claude -p .*plain-English sentence", LOGIC_OUTPUT)
    messages: List[str] = []

    logic = asyncio.run(
        BusinessLogicExtractor(ToolInvoker(sandbox)).extract(
            "app/code/Acme/Sales", root="/workspace/shop", progress=messages.append
        )
    )

    assert logic.module == "Acme_Sales"
    assert logic.entities == ["Order", "42"]
    assert logic.services == []
    assert logic.controllers == ["Index"]
    assert logic.workflows == ["Checkout"]
    assert logic.summary == "Handles orders."
    assert messages[0] == "claude: health check for business logic of app/code/Acme/Sales"
    assert messages[1].startswith("claude: extraction output (")
    assert sandbox.ran(r"^cd /workspace/shop && claude -p ")


def test_logic_survives_a_list_before_the_object() -> None:
    sandbox = healthy_sandbox()
    sandbox.on(
        r"claude -p",
        "I looked at [Controller/Index.php, Model/Order.php] and found:\n"
        '{"entities": ["Order"], "services": ["OrderService"]}',
    )

    logic = asyncio.run(BusinessLogicExtractor(ToolInvoker(sandbox)).extract("mod"))

    assert logic.entities == ["Order"]
    assert logic.services == ["OrderService"]


def test_logic_degrades_when_unhealthy(sandbox: FakeSandbox) -> None:
    messages: List[str] = []

    logic = asyncio.run(
        BusinessLogicExtractor(ToolInvoker(sandbox)).extract("mod", progress=messages.append)
    )

    assert logic.is_empty
    assert logic.module == "mod"
    assert messages[-1] == "claude: unhealthy (cli: ok, creds: missing)"


def test_logic_degrades_on_non_json_output() -> None:
    sandbox = healthy_sandbox()
    sandbox.on(r"claude -p", "I could not find any code in that directory.")
    messages: List[str] = []

    logic = asyncio.run(
        BusinessLogicExtractor(ToolInvoker(sandbox)).extract("mod", progress=messages.append)
    )

    assert logic.is_empty
    assert messages[-1] == "claude: non-JSON extraction output; falling back to empty lists"


def test_complexity_metrics_are_coerced() -> None:
    sandbox = healthy_sandbox()
    sandbox.on(
        r"claude -p .*linesOfCode",
        '{"moduleName": "Sales", "classes": "7", "functions": -1,'
        ' "linesOfCode": 1200.0, "cyclomaticComplexity": 14.5}',
    )

    metrics = asyncio.run(ComplexityAnalyzer(ToolInvoker(sandbox)).measure("app/code/Acme/Sales"))

    assert metrics.module_name == "Sales"
    assert metrics.classes == 7
    assert metrics.functions is None
    assert metrics.lines_of_code == 1200
    assert metrics.cyclomatic_complexity == 14.5
    assert metrics.to_dict() == {
        "moduleName": "Sales",
        "linesOfCode": 1200,
        "classes": 7,
        "cyclomaticComplexity": 14.5,
    }


def test_complexity_degrades_to_absent_metrics(sandbox: FakeSandbox) -> None:
    messages: List[str] = []

    metrics = asyncio.run(
        ComplexityAnalyzer(ToolInvoker(sandbox)).measure("mod", progress=messages.append)
    )

    assert not metrics.has_metrics
    assert metrics.to_dict() == {"moduleName": "mod"}
    assert "complexity skipped" in messages[-1]


@pytest.mark.parametrize(
    ("value", "expected"),
    [(3, 3), (0, 0), (2.0, 2), ("4.5", 4.5), (True, None), (-2, None), ("n/a", None), (None, None)],
)
def test_as_number(value: object, expected: object) -> None:
    assert as_number(value) == expected


def test_as_str_list_rejects_non_lists() -> None:
    assert as_str_list("a, b") == []
    assert as_str_list([" a ", "", {"x": 1}, 1.5]) == ["a", "1.5"]
