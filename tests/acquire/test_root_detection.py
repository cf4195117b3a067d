"""Tests for nested project-root detection."""

from __future__ import annotations

import asyncio
from typing import List

from repoprobe.acquire import RootDetector
from repoprobe.acquire import base, roots
from tests._fixtures.fake_sandbox import FakeSandbox


def _detector() -> RootDetector:
    return RootDetector(markers=("composer.json",), max_iterations=3)


def test_marker_at_base_stops_immediately(sandbox: FakeSandbox) -> None:
    root = asyncio.run(_detector().detect(sandbox, "/workspace/up"))

    assert root == "/workspace/up"
    assert not sandbox.ran(r"^ls ")


def test_single_wrapper_directory_is_skipped(sandbox: FakeSandbox) -> None:
    sandbox.fail(r"^test -e /workspace/up/composer\.json$")
    sandbox.on(r"^ls -A -1 -p -- /workspace/up$", "shop-main/\n__MACOSX/\n.DS_Store\n")
    messages: List[str] = []

    root = asyncio.run(_detector().detect(sandbox, "/workspace/up/", messages.append))

    assert root == "/workspace/up/shop-main"
    assert messages == ["Detected nested root: /workspace/up/shop-main"]


def test_multiple_top_level_entries_keep_base(sandbox: FakeSandbox) -> None:
    sandbox.fail(r"^test -e ")
    sandbox.on(r"^ls -A -1 -p -- /workspace/up$", "backend/\nfrontend/\n")

    root = asyncio.run(_detector().detect(sandbox, "/workspace/up"))

    assert root == "/workspace/up"


def test_single_file_keeps_base(sandbox: FakeSandbox) -> None:
    sandbox.fail(r"^test -e ")
    sandbox.on(r"^ls -A -1 -p -- /workspace/up$", "README.md\n")

    assert asyncio.run(_detector().detect(sandbox, "/workspace/up")) == "/workspace/up"


def test_descent_is_bounded(sandbox: FakeSandbox) -> None:
    sandbox.fail(r"^test -e ")
    sandbox.on(r"^ls -A -1 -p -- ", "nested/\n")

    root = asyncio.run(_detector().detect(sandbox, "/workspace/up"))

    assert root == "/workspace/up/nested/nested/nested"
    assert sandbox.count(r"^ls ") == 3


def test_default_markers_are_checked_together(sandbox: FakeSandbox) -> None:
    asyncio.run(RootDetector().detect(sandbox, "/workspace/up"))

    assert sandbox.commands[0] == (
        "test -e /workspace/up/app/code || test -e /workspace/up/vendor/magento"
    )


def test_nested_root_without_progress_callback(sandbox: FakeSandbox) -> None:
    sandbox.fail(r"^test -e /workspace/up/composer\.json$")
    sandbox.on(r"^ls -A -1 -p -- /workspace/up$", "shop-main/\n")

    assert asyncio.run(_detector().detect(sandbox, "/workspace/up")) == "/workspace/up/shop-main"


def test_progress_callback_type_is_shared_with_other_strategies() -> None:
    assert roots.ProgressCallback is base.ProgressCallback
