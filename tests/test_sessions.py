"""Tests for the session to sandbox mapping."""

from __future__ import annotations

import asyncio
from typing import List

import pytest

from repoprobe.ids import MonotonicIds
from repoprobe.sandbox import SandboxUnavailableError
from repoprobe.sessions import SessionManager
from tests._fixtures.fake_sandbox import FakeSandbox


class CountingFactory:
    def __init__(self, fail: bool = False) -> None:
        self.calls: List[str] = []
        self.fail = fail

    async def __call__(self, session_id: str) -> FakeSandbox:
        self.calls.append(session_id)
        await asyncio.sleep(0)
        if self.fail:
            raise OSError("disk full")
        return FakeSandbox(workspace=f"/sandboxes/{session_id}")


def test_concurrent_lookups_create_one_sandbox() -> None:
    factory = CountingFactory()
    manager = SessionManager(factory)

    async def _race():
        return await asyncio.gather(*(manager.get_or_create("m2-1") for _ in range(5)))

    sessions = asyncio.run(_race())

    assert factory.calls == ["m2-1"]
    assert all(session is sessions[0] for session in sessions)
    assert manager.get("m2-1") is sessions[0]


def test_existing_session_is_reused() -> None:
    factory = CountingFactory()
    manager = SessionManager(factory)

    first = asyncio.run(manager.get_or_create("m2-1"))
    second = asyncio.run(manager.get_or_create("m2-1"))

    assert first is second
    assert len(factory.calls) == 1


def test_missing_identifier_is_generated() -> None:
    manager = SessionManager(CountingFactory(), prefix="m2-", ids=MonotonicIds(clock=lambda: 5.0))

    session = asyncio.run(manager.get_or_create(None))

    assert session.session_id == "m2-5000"
    assert manager.new_session_id() == "m2-5001"
    assert manager.session_ids() == ["m2-5000"]


def test_factory_failure_is_reported_and_retryable() -> None:
    factory = CountingFactory(fail=True)
    manager = SessionManager(factory)

    with pytest.raises(SandboxUnavailableError, match="disk full"):
        asyncio.run(manager.get_or_create("m2-1"))
    assert manager.get("m2-1") is None

    factory.fail = False
    session = asyncio.run(manager.get_or_create("m2-1"))
    assert session.sandbox.workspace == "/sandboxes/m2-1"
    assert factory.calls == ["m2-1", "m2-1"]
