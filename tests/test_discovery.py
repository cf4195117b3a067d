"""Tests for marker-based module discovery."""

from __future__ import annotations

import asyncio
import shlex

import pytest

from repoprobe.discovery import DiscoveryError, ModuleDiscoverer
from tests._fixtures.fake_sandbox import FakeSandbox


def test_modules_are_sorted_and_deduplicated(sandbox: FakeSandbox) -> None:
    sandbox.on(
        r"&& find app/code ",
        "\n".join(
            [
                "app/code/Acme/Sales/registration.php",
                "app/code/Acme/Sales/etc/module.xml",
                "app/code/Acme/Catalog/etc/module.xml",
                "",
            ]
        ),
    )

    modules = asyncio.run(ModuleDiscoverer().discover(sandbox, "/workspace/shop"))

    assert modules == ["app/code/Acme/Catalog", "app/code/Acme/Sales"]
    assert not sandbox.ran(r"find \. ")


def test_find_command_is_scoped_and_quoted(sandbox: FakeSandbox) -> None:
    asyncio.run(ModuleDiscoverer().discover(sandbox, "/workspace/my shop"))

    first = sandbox.commands[0]
    assert first.startswith("cd '/workspace/my shop' && find app/code -maxdepth 6 ")
    find_args = shlex.split(first.split(" && ", 1)[1])
    assert ["-name", "registration.php", "-o", "-path", "*/etc/module.xml"] == find_args[-7:-2]
    assert "-prune" in find_args
    assert ".git" in find_args


def test_falls_back_to_scanning_whole_root(sandbox: FakeSandbox) -> None:
    sandbox.on(
        r"&& find \. ",
        "./src/app/code/Acme/Sales/registration.php\n./vendor/lib/registration.php\n",
    )

    modules = asyncio.run(ModuleDiscoverer().discover(sandbox, "/workspace/shop"))

    assert modules == ["src/app/code/Acme/Sales"]
    assert sandbox.ran(r"find \. -maxdepth 8 ")


def test_custom_markers_without_search_roots(sandbox: FakeSandbox) -> None:
    sandbox.on(r"&& find \. ", "./packages/api/package.json\n./package.json\n")
    discoverer = ModuleDiscoverer(markers=["package.json"], search_roots=[], max_depth=3)

    modules = asyncio.run(discoverer.discover(sandbox, "/workspace/mono"))

    # The root itself has no relative name and is not a module.
    assert modules == ["packages/api"]


def test_no_markers_means_no_modules(sandbox: FakeSandbox) -> None:
    assert asyncio.run(ModuleDiscoverer(markers=[]).discover(sandbox, "/workspace")) == []
    assert sandbox.commands == []


def test_missing_root_is_an_error(sandbox: FakeSandbox) -> None:
    sandbox.fail(r"^cd /workspace/gone ", stderr="bash: cd: /workspace/gone: No such file or directory")

    with pytest.raises(DiscoveryError, match="Project root not found: /workspace/gone"):
        asyncio.run(ModuleDiscoverer().discover(sandbox, "/workspace/gone"))


def test_missing_search_root_falls_through_to_scan() -> None:
    sandbox = FakeSandbox(directories={"/workspace/shop"})
    sandbox.fail(r"&& find app/code ", stderr="find: 'app/code': No such file or directory")

    modules = asyncio.run(ModuleDiscoverer().discover(sandbox, "/workspace/shop"))

    assert modules == []
    assert sandbox.ran(r"find \. -maxdepth 8 ")


def test_failing_find_is_an_error() -> None:
    sandbox = FakeSandbox(directories={"/workspace/shop", "/workspace/shop/app/code"})
    sandbox.fail(r"&& find app/code ", stderr="find: 'app/code/Acme': Permission denied")

    with pytest.raises(DiscoveryError, match="Permission denied"):
        asyncio.run(ModuleDiscoverer().discover(sandbox, "/workspace/shop"))
