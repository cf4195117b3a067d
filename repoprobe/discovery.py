"""Discovery of analyzable module directories under a project root."""

from __future__ import annotations

import posixpath
from typing import Iterable, List, Sequence, Set

from . import shell
from .logging import get_logger
from .sandbox import Sandbox

_EXCLUDED_DIRS = (
    ".git",
    ".hg",
    ".svn",
    ".venv",
    "node_modules",
    "__pycache__",
    ".idea",
)


class DiscoveryError(RuntimeError):
    """Raised when the project root cannot be searched for modules."""


class ModuleDiscoverer:
    """Finds module directories by the marker files they contain.

    A marker without a slash (``registration.php``) marks its own directory; a
    marker with one (``etc/module.xml``) marks the directory the relative path
    hangs from. Paths are returned relative to the root, sorted, without duplicates.
    """

    def __init__(
        self,
        markers: Sequence[str] = ("registration.php", "etc/module.xml"),
        search_roots: Sequence[str] = ("app/code",),
        max_depth: int = 6,
    ) -> None:
        self.markers = [marker.strip("/") for marker in markers if marker.strip("/")]
        self.search_roots = [root.strip("/") for root in search_roots if root.strip("/")]
        self.max_depth = max_depth
        self.logger = get_logger("discovery")

    async def discover(self, sandbox: Sandbox, root: str) -> List[str]:
        if not self.markers:
            return []

        modules: Set[str] = set()
        for search_root in self.search_roots:
            found = await self._find(sandbox, root, search_root, self.max_depth)
            modules.update(found)

        if not modules:
            # Markers may sit deeper than expected (e.g. a nested checkout).
            found = await self._find(sandbox, root, ".", self.max_depth + 2)
            modules.update(path for path in found if self._under_search_root(path))

        ordered = sorted(modules)
        self.logger.info("Discovered %d modules under %s", len(ordered), root)
        return ordered

    async def _find(self, sandbox: Sandbox, root: str, start: str, depth: int) -> List[str]:
        result = await sandbox.execute(shell.in_directory(root, self._find_command(start, depth)))
        if not result.stdout.strip():
            if not result.success:
                await self._check_failure(sandbox, root, start, result.output.strip())
            return []
        return [
            module
            for module in (self._module_dir(line.strip()) for line in result.stdout.splitlines())
            if module
        ]

    async def _check_failure(self, sandbox: Sandbox, root: str, start: str, detail: str) -> None:
        # A missing search root is not an error; a missing project root or a failing find is.
        if not await _is_directory(sandbox, root):
            raise DiscoveryError(f"Project root not found: {root}")
        if start != "." and not await _is_directory(sandbox, posixpath.join(root, start)):
            return
        raise DiscoveryError(f"Module discovery failed under {root}: {detail or 'unknown error'}")

    def _find_command(self, start: str, depth: int) -> str:
        args: List[str] = ["find", start, "-maxdepth", str(depth), "("]
        args.extend(_alternatives(["-name", name] for name in _EXCLUDED_DIRS))
        args.extend([")", "-prune", "-o", "-type", "f", "("])
        args.extend(_alternatives(self._marker_test(marker) for marker in self.markers))
        args.extend([")", "-print"])
        return shell.command(*args)

    @staticmethod
    def _marker_test(marker: str) -> List[str]:
        if "/" in marker:
            return ["-path", f"*/{marker}"]
        return ["-name", marker]

    def _module_dir(self, file_path: str) -> str:
        path = file_path[2:] if file_path.startswith("./") else file_path
        for marker in self.markers:
            if "/" in marker and path.endswith(f"/{marker}"):
                return path[: -len(marker) - 1]
        if posixpath.basename(path) in self.markers:
            return posixpath.dirname(path)
        return ""

    def _under_search_root(self, path: str) -> bool:
        if not self.search_roots:
            return True
        wrapped = f"/{path}/"
        return any(f"/{search_root}/" in wrapped for search_root in self.search_roots)


async def _is_directory(sandbox: Sandbox, path: str) -> bool:
    result = await sandbox.execute(shell.command("test", "-d", path))
    return result.success


def _alternatives(tests: Iterable[List[str]]) -> List[str]:
    args: List[str] = []
    for test in tests:
        if args:
            args.append("-o")
        args.extend(test)
    return args


__all__ = ["DiscoveryError", "ModuleDiscoverer"]
