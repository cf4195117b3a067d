"""The planning phase: an explicit module plan, or a request for discovery."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List


@dataclass(frozen=True)
class ModulePlan:
    """Modules the run should analyze; empty means discovery decides."""

    modules: List[str] = field(default_factory=list)

    @property
    def needs_discovery(self) -> bool:
        return not self.modules


class PhasePlanner:
    def __init__(self, modules: Iterable[str] = ()) -> None:
        self._modules = _unique(module.strip().strip("/") for module in modules)

    def plan(self) -> ModulePlan:
        return ModulePlan(modules=list(self._modules))


def _unique(items: Iterable[str]) -> List[str]:
    seen = set()
    ordered: List[str] = []
    for item in items:
        if item and item not in seen:
            seen.add(item)
            ordered.append(item)
    return ordered


__all__ = ["ModulePlan", "PhasePlanner"]
