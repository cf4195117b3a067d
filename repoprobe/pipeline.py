"""Pipeline coordinator: phase state machine over an explicit snapshot value.

The snapshot held by a session is never mutated in place. Every phase change
goes through :func:`advance`, which checks the transition table and returns a
new snapshot; the coordinator stores the result back on the session so a later
request (the resume after a checkpoint) sees where the previous one stopped.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import (
    TYPE_CHECKING,
    Any,
    AsyncIterator,
    Awaitable,
    Callable,
    Dict,
    FrozenSet,
    Iterable,
    List,
    Optional,
    Sequence,
    Tuple,
    TypeVar,
)

from .config import RepoProbeConfig
from .discovery import ModuleDiscoverer
from .events import (
    ProgressEvent,
    ProgressRelay,
    ResultEvent,
    SelectModulesEvent,
    StreamEvent,
    describe_error,
)
from .llm import ToolInvoker
from .logging import get_logger, session_logger
from .models import BusinessLogic, ComplexityMetrics, Diagram, ModuleResult
from .operations import (
    BusinessLogicExtractor,
    ComplexityAnalyzer,
    DiagramGenerator,
    PhasePlanner,
    ReportBuilder,
)
from .sandbox import Sandbox

if TYPE_CHECKING:  # pragma: no cover
    from .sessions import Session

T = TypeVar("T")


class PipelineState(str, Enum):
    INITIALIZED = "initialized"
    PLANNING = "planning"
    DISCOVERING = "discovering"
    AWAITING_SELECTION = "awaiting-selection"
    ANALYZING = "analyzing"
    REPORTING = "reporting"
    COMPLETE = "complete"


ALLOWED_TRANSITIONS: Dict[PipelineState, FrozenSet[PipelineState]] = {
    PipelineState.INITIALIZED: frozenset({PipelineState.PLANNING}),
    PipelineState.PLANNING: frozenset({PipelineState.DISCOVERING}),
    PipelineState.DISCOVERING: frozenset(
        {PipelineState.AWAITING_SELECTION, PipelineState.ANALYZING}
    ),
    PipelineState.AWAITING_SELECTION: frozenset({PipelineState.ANALYZING}),
    PipelineState.ANALYZING: frozenset({PipelineState.REPORTING}),
    PipelineState.REPORTING: frozenset({PipelineState.COMPLETE}),
    # A finished session may be resumed with a different selection.
    PipelineState.COMPLETE: frozenset({PipelineState.ANALYZING}),
}


class InvalidTransitionError(RuntimeError):
    """Raised when a phase change is not in :data:`ALLOWED_TRANSITIONS`."""


@dataclass(frozen=True)
class PipelineSnapshot:
    """Where one session's pipeline stands."""

    state: PipelineState = PipelineState.INITIALIZED
    root_path: Optional[str] = None
    discovered: Tuple[str, ...] = ()
    selected: Tuple[str, ...] = ()
    analyzed: int = 0


def advance(snapshot: PipelineSnapshot, state: PipelineState, **patch: Any) -> PipelineSnapshot:
    """Return ``snapshot`` moved to ``state`` with ``patch`` applied."""
    if state not in ALLOWED_TRANSITIONS.get(snapshot.state, frozenset()):
        raise InvalidTransitionError(
            f"Cannot move pipeline from {snapshot.state.value} to {state.value}"
        )
    return replace(snapshot, state=state, **patch)


class PipelineCoordinator:
    """Drives plan, discover, checkpoint, analyze and report for one session."""

    def __init__(
        self,
        sandbox: Sandbox,
        *,
        logic: BusinessLogicExtractor,
        complexity: ComplexityAnalyzer,
        diagrams: DiagramGenerator,
        planner: PhasePlanner | None = None,
        discoverer: ModuleDiscoverer | None = None,
        reporter: ReportBuilder | None = None,
    ) -> None:
        self.sandbox = sandbox
        self.logic = logic
        self.complexity = complexity
        self.diagrams = diagrams
        self.planner = planner or PhasePlanner()
        self.discoverer = discoverer or ModuleDiscoverer()
        self.reporter = reporter or ReportBuilder()
        self.logger = get_logger("pipeline")

    @classmethod
    def from_config(cls, sandbox: Sandbox, config: RepoProbeConfig) -> "PipelineCoordinator":
        invoker = ToolInvoker(
            sandbox,
            executable=config.tool.executable,
            credential_keys=config.tool.credential_keys,
        )
        return cls(
            sandbox,
            logic=BusinessLogicExtractor(invoker),
            complexity=ComplexityAnalyzer(invoker),
            diagrams=DiagramGenerator(invoker, enabled=config.pipeline.diagrams),
            planner=PhasePlanner(config.pipeline.modules),
            discoverer=ModuleDiscoverer(
                markers=config.discovery.markers,
                search_roots=config.discovery.search_roots,
                max_depth=config.discovery.max_depth,
            ),
            reporter=ReportBuilder(config.pipeline.top_complexity),
        )

    async def run(
        self,
        session: "Session",
        root: str,
        selection: Optional[Sequence[str]] = None,
    ) -> AsyncIterator[StreamEvent]:
        """Yield progress events, then a checkpoint or a result."""
        progress = self._progress_factory(session.session_id)
        snapshot = session.snapshot

        if selection is None:
            if snapshot.state is PipelineState.AWAITING_SELECTION and snapshot.root_path == root:
                yield progress("Awaiting module selection")
                yield self._checkpoint(session)
                return
            async for event in self._plan_and_discover(session, root):
                yield event
            snapshot = session.snapshot
            if snapshot.state is PipelineState.AWAITING_SELECTION:
                yield progress(f"Found {len(snapshot.discovered)} modules. Select modules to analyze.")
                yield self._checkpoint(session)
                return
        else:
            modules = _normalize_modules(selection)
            snapshot = self._resume(session, root, modules)

        session_logger("pipeline", session.session_id).info(
            "analyzing %d modules under %s", len(snapshot.selected), root
        )
        yield progress(
            f"Found {len(snapshot.selected)} modules. Extracting business logic and computing complexity..."
        )
        results: List[ModuleResult] = []
        for index, module in enumerate(snapshot.selected, start=1):
            yield progress(f"Analyzing ({index}/{len(snapshot.selected)}): {module}")

            logic_relay: ProgressRelay[BusinessLogic] = ProgressRelay()
            work = self.logic.extract(module, root=root, progress=logic_relay.report)
            guarded = self._attempt(
                "business logic", module, work, BusinessLogic.empty(module), logic_relay.report
            )
            async for message in logic_relay.run(guarded):
                yield progress(message)
            logic = logic_relay.result or BusinessLogic.empty(module)

            metrics_relay: ProgressRelay[ComplexityMetrics] = ProgressRelay()
            fallback_metrics = ComplexityMetrics(module_name=module)
            work = self.complexity.measure(module, root=root, progress=metrics_relay.report)
            guarded = self._attempt(
                "complexity", module, work, fallback_metrics, metrics_relay.report
            )
            async for message in metrics_relay.run(guarded):
                yield progress(message)
            metrics = metrics_relay.result or fallback_metrics

            diagram_relay: ProgressRelay[List[Diagram]] = ProgressRelay()
            work = self.diagrams.generate(module, logic, root=root, progress=diagram_relay.report)
            guarded = self._attempt("diagrams", module, work, [], diagram_relay.report)
            async for message in diagram_relay.run(guarded):
                yield progress(message)
            diagrams = diagram_relay.result or []

            results.append(
                ModuleResult(module_path=module, logic=logic, complexity=metrics, diagrams=diagrams)
            )
            snapshot = replace(snapshot, analyzed=index)
            session.snapshot = snapshot
            yield progress(f"Analyzed: {module}")

        snapshot = advance(snapshot, PipelineState.REPORTING)
        session.snapshot = snapshot
        yield progress("Building report...")
        report = self.reporter.build(results)

        session.snapshot = advance(snapshot, PipelineState.COMPLETE)
        yield progress("Analysis complete")
        yield ResultEvent(data=report)

    async def _plan_and_discover(self, session: "Session", root: str) -> AsyncIterator[ProgressEvent]:
        """Walk planning and discovery, leaving the resulting snapshot on ``session``."""
        progress = self._progress_factory(session.session_id)
        snapshot = advance(PipelineSnapshot(root_path=root), PipelineState.PLANNING)
        session.snapshot = snapshot
        yield progress("Planning modules...")
        plan = self.planner.plan()

        snapshot = advance(snapshot, PipelineState.DISCOVERING)
        session.snapshot = snapshot
        if not plan.needs_discovery:
            yield progress(f"Using planned modules: {len(plan.modules)}")
            snapshot = advance(
                snapshot,
                PipelineState.ANALYZING,
                discovered=tuple(plan.modules),
                selected=tuple(plan.modules),
            )
            session.snapshot = snapshot
            return

        yield progress("Discovering modules...")
        discovered = tuple(await self.discoverer.discover(self.sandbox, root))
        if discovered:
            snapshot = advance(snapshot, PipelineState.AWAITING_SELECTION, discovered=discovered)
        else:
            yield progress("No modules discovered")
            snapshot = advance(snapshot, PipelineState.ANALYZING, selected=())
        session.snapshot = snapshot

    def _resume(self, session: "Session", root: str, modules: Tuple[str, ...]) -> PipelineSnapshot:
        snapshot = session.snapshot
        if snapshot.state in (PipelineState.AWAITING_SELECTION, PipelineState.COMPLETE):
            snapshot = advance(
                snapshot, PipelineState.ANALYZING, root_path=root, selected=modules, analyzed=0
            )
        else:
            # Nothing to resume in this process: the selection stands in for discovery.
            snapshot = PipelineSnapshot(root_path=root)
            for state in (PipelineState.PLANNING, PipelineState.DISCOVERING):
                snapshot = advance(snapshot, state)
            snapshot = advance(
                snapshot, PipelineState.ANALYZING, discovered=modules, selected=modules
            )
        session.snapshot = snapshot
        return snapshot

    def _checkpoint(self, session: "Session") -> SelectModulesEvent:
        snapshot = session.snapshot
        return SelectModulesEvent(
            modules=list(snapshot.discovered),
            session_id=session.session_id,
            root_path=snapshot.root_path or "",
        )

    async def _attempt(
        self,
        facet: str,
        module: str,
        operation: Awaitable[T],
        fallback: T,
        progress: Callable[[str], None],
    ) -> T:
        try:
            return await operation
        except Exception as exc:
            self.logger.warning("%s failed for %s: %s", facet, module, exc)
            progress(f"{facet.capitalize()} unavailable for {module}: {describe_error(exc)}")
            return fallback

    @staticmethod
    def _progress_factory(session_id: str) -> Callable[[str], ProgressEvent]:
        def _progress(message: str) -> ProgressEvent:
            return ProgressEvent(message=message, session_id=session_id)

        return _progress


def _normalize_modules(modules: Iterable[str]) -> Tuple[str, ...]:
    seen = set()
    ordered: List[str] = []
    for module in modules:
        if not isinstance(module, str):
            continue
        cleaned = module.strip().rstrip("/")
        if cleaned and cleaned not in seen:
            seen.add(cleaned)
            ordered.append(cleaned)
    return tuple(ordered)


__all__ = [
    "ALLOWED_TRANSITIONS",
    "InvalidTransitionError",
    "PipelineCoordinator",
    "PipelineSnapshot",
    "PipelineState",
    "advance",
]
