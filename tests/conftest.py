from __future__ import annotations

import pytest

from tests._fixtures.fake_sandbox import FakeSandbox, healthy_sandbox


@pytest.fixture
def sandbox() -> FakeSandbox:
    """Provide an empty scripted sandbox rooted at /workspace."""
    return FakeSandbox()


@pytest.fixture
def tool_sandbox() -> FakeSandbox:
    """Provide a sandbox where the inference tool passes its health check."""
    return healthy_sandbox()
