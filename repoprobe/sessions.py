"""Session to execution-environment mapping."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .ids import MonotonicIds
from .logging import get_logger
from .models import AcquiredRoot
from .pipeline import PipelineSnapshot, PipelineState
from .sandbox import Sandbox, SandboxFactory, SandboxUnavailableError


@dataclass
class Session:
    """One caller-correlated session and everything memoized for it."""

    session_id: str
    sandbox: Sandbox
    acquired: Optional[AcquiredRoot] = None
    snapshot: PipelineSnapshot = field(default_factory=PipelineSnapshot)

    @property
    def awaiting_selection(self) -> bool:
        return self.snapshot.state is PipelineState.AWAITING_SELECTION


class SessionManager:
    """Creates each session's sandbox lazily, at most once per identifier.

    Concurrent requests for an identifier whose sandbox is still being created
    wait for that creation instead of starting another.
    """

    def __init__(
        self,
        factory: SandboxFactory,
        *,
        prefix: str = "m2-",
        ids: MonotonicIds | None = None,
    ) -> None:
        self._factory = factory
        self.prefix = prefix
        self._ids = ids or MonotonicIds()
        self._sessions: Dict[str, Session] = {}
        self._pending: Dict[str, "asyncio.Future[Session]"] = {}
        self.logger = get_logger("sessions")

    def new_session_id(self) -> str:
        return self._ids.next(self.prefix)

    def get(self, session_id: str) -> Optional[Session]:
        return self._sessions.get(session_id)

    def session_ids(self) -> List[str]:
        return sorted(self._sessions)

    async def get_or_create(self, session_id: Optional[str] = None) -> Session:
        """Return the session for ``session_id``, creating it (and a new id) if needed."""
        sid = (session_id or "").strip() or self.new_session_id()
        session = self._sessions.get(sid)
        if session is not None:
            return session

        # No await between the lookup and the insert below.
        pending = self._pending.get(sid)
        if pending is None:
            pending = asyncio.ensure_future(self._create(sid))
            self._pending[sid] = pending
            pending.add_done_callback(lambda _: self._pending.pop(sid, None))
        return await asyncio.shield(pending)

    async def _create(self, session_id: str) -> Session:
        self.logger.info("Creating sandbox for session %s", session_id)
        try:
            sandbox = await self._factory(session_id)
        except SandboxUnavailableError:
            raise
        except Exception as exc:
            raise SandboxUnavailableError(
                f"Sandbox unavailable for session {session_id}: {exc}"
            ) from exc
        if sandbox is None:
            raise SandboxUnavailableError(f"Sandbox unavailable for session {session_id}")
        session = Session(session_id=session_id, sandbox=sandbox)
        self._sessions[session_id] = session
        return session


__all__ = ["Session", "SessionManager"]
