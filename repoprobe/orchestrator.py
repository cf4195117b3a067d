"""Submit-or-resume entry point tying sessions, acquisition and the pipeline together."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import AsyncIterator, Callable, Dict, List, Mapping, Optional

from .acquire import AcquisitionError, ArchiveAcquirer, RepositoryAcquirer, RootDetector
from .config import RepoProbeConfig
from .events import ProgressEvent, ProgressRelay, StreamEvent, guard_stream
from .llm import build_tool_env
from .llm.environment import has_credentials
from .logging import session_logger
from .models import AcquiredRoot, Provenance, RepositorySource
from .pipeline import PipelineCoordinator
from .sandbox import LocalSandboxFactory, Sandbox
from .sessions import SessionManager
from .storage import FilesystemObjectStore, ObjectStore

CoordinatorFactory = Callable[[Sandbox], PipelineCoordinator]


@dataclass
class AnalysisRequest:
    """One submit or resume call; at most one repository source is used."""

    repo: Optional[str] = None
    root_path: Optional[str] = None
    remote_archive_url: Optional[str] = None
    object_key: Optional[str] = None
    filename: Optional[str] = None
    archive: Optional[bytes] = field(default=None, repr=False)
    session_id: Optional[str] = None
    selected_modules: Optional[List[str]] = None
    env_vars: Dict[str, str] = field(default_factory=dict, repr=False)

    def source(self) -> Optional[RepositorySource]:
        """Pick the source by precedence: path, upload, stored object, remote archive, URL."""
        if self.root_path:
            return RepositorySource.from_path(self.root_path)
        if self.archive:
            return RepositorySource.from_archive(self.archive, self.filename)
        if self.object_key:
            return RepositorySource.from_object_key(self.object_key, self.filename)
        if self.remote_archive_url:
            return RepositorySource.from_remote_archive(self.remote_archive_url)
        if self.repo:
            return RepositorySource.from_url(self.repo)
        return None

    @property
    def resuming(self) -> bool:
        return self.selected_modules is not None


class AnalysisOrchestrator:
    """Turns an :class:`AnalysisRequest` into a stream of events."""

    def __init__(
        self,
        sessions: SessionManager,
        *,
        acquirer: RepositoryAcquirer | None = None,
        coordinator_factory: CoordinatorFactory | None = None,
        config: RepoProbeConfig | None = None,
        host_env: Mapping[str, str] | None = None,
    ) -> None:
        self.config = config or RepoProbeConfig()
        self.sessions = sessions
        self.acquirer = acquirer or RepositoryAcquirer()
        self._coordinator_factory = coordinator_factory or self._default_coordinator
        self._host_env = host_env

    @classmethod
    def from_config(
        cls,
        config: RepoProbeConfig,
        *,
        object_store: ObjectStore | None = None,
    ) -> "AnalysisOrchestrator":
        """Wire the local sandbox, object store and pipeline from ``config``."""
        factory = LocalSandboxFactory(config.workspace.base_dir, timeout=config.tool.timeout)
        store = object_store or FilesystemObjectStore(
            config.storage.directory, ttl=config.storage.ttl
        )
        detector = RootDetector(config.roots.markers, config.roots.max_iterations)
        acquirer = RepositoryAcquirer(
            archives=ArchiveAcquirer(root_detector=detector),
            object_store=store,
        )
        sessions = SessionManager(factory, prefix=config.workspace.session_prefix)
        return cls(sessions, acquirer=acquirer, config=config)

    def submit(self, request: AnalysisRequest) -> AsyncIterator[StreamEvent]:
        """Return the event stream for ``request``; it always ends in one terminal event."""
        return guard_stream(self._run(request))

    async def _run(self, request: AnalysisRequest) -> AsyncIterator[StreamEvent]:
        session_id = (request.session_id or "").strip() or self.sessions.new_session_id()
        log = session_logger("orchestrator", session_id)
        yield ProgressEvent("Starting analysis...", session_id)

        session = await self.sessions.get_or_create(session_id)
        yield ProgressEvent("Sandbox ready", session_id)

        env = dict(self.config.tool.env)
        env.update(build_tool_env(self._host_env, extra=request.env_vars))
        if env:
            await session.sandbox.set_env_vars(env)
        creds_ok = has_credentials(env, self.config.tool.credential_keys)
        status = "creds_ok" if creds_ok else "creds_missing"
        log.info("credentials: %s", status)
        yield ProgressEvent(f"Sandbox credentials status: {status}", session_id)

        source = request.source()
        root: Optional[str] = None
        if request.root_path:
            root = request.root_path
            session.acquired = AcquiredRoot(path=root, provenance=Provenance.EXISTING_PATH)
        elif session.acquired is not None and (request.resuming or source is None):
            root = session.acquired.path
            yield ProgressEvent(f"Reusing acquired repository: {root}", session_id)
        elif source is not None:
            log.info("acquiring from %s", source.kind.value)
            relay: ProgressRelay[AcquiredRoot] = ProgressRelay()
            async for message in relay.run(
                self.acquirer.acquire(session.sandbox, source, relay.report)
            ):
                yield ProgressEvent(message, session_id)
            acquired = relay.result
            if acquired is None:  # pragma: no cover - acquire() always returns or raises
                raise AcquisitionError("Repository acquisition produced no root")
            session.acquired = acquired
            root = acquired.path
        if root is None:
            raise AcquisitionError(
                "No repository source provided: send repo, rootPath, remoteArchiveUrl, objectKey or an archive"
            )

        coordinator = self._coordinator_factory(session.sandbox)
        async for event in coordinator.run(session, root, request.selected_modules):
            yield event

    def _default_coordinator(self, sandbox: Sandbox) -> PipelineCoordinator:
        return PipelineCoordinator.from_config(sandbox, self.config)


__all__ = ["AnalysisOrchestrator", "AnalysisRequest", "CoordinatorFactory"]
