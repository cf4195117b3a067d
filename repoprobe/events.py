"""Stream events, their NDJSON encoding and the terminal-event guard."""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Awaitable, Dict, Generic, List, Optional, TypeVar, Union

from .logging import get_logger

NDJSON_MEDIA_TYPE = "application/x-ndjson; charset=utf-8"

logger = get_logger("events")

T = TypeVar("T")


@dataclass(frozen=True)
class ProgressEvent:
    message: str
    session_id: Optional[str] = None

    terminal = False

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": "progress", "message": self.message}
        if self.session_id:
            data["sessionId"] = self.session_id
        return data


@dataclass(frozen=True)
class ResultEvent:
    data: Dict[str, Any]

    terminal = True

    def to_dict(self) -> Dict[str, Any]:
        return {"type": "result", "data": self.data}


@dataclass(frozen=True)
class ErrorEvent:
    message: str

    terminal = True

    def to_dict(self) -> Dict[str, Any]:
        return {"type": "error", "message": self.message}


@dataclass(frozen=True)
class SelectModulesEvent:
    """Checkpoint: the caller must pick modules and resume with this session."""

    modules: List[str] = field(default_factory=list)
    session_id: str = ""
    root_path: str = ""

    terminal = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "select-modules",
            "modules": list(self.modules),
            "sessionId": self.session_id,
            "rootPath": self.root_path,
        }


StreamEvent = Union[ProgressEvent, ResultEvent, ErrorEvent, SelectModulesEvent]


def encode_event(event: StreamEvent) -> str:
    """Serialize ``event`` as one newline-terminated JSON record."""
    return json.dumps(event.to_dict(), ensure_ascii=False) + "\n"


def describe_error(exc: BaseException) -> str:
    message = str(exc).strip()
    return message or exc.__class__.__name__


async def guard_stream(source: AsyncIterator[StreamEvent]) -> AsyncIterator[StreamEvent]:
    """Yield ``source`` so that exactly one terminal event ends the stream.

    Exceptions raised by ``source`` become an :class:`ErrorEvent`, events after
    the first terminal one are dropped, and a source that runs dry without a
    terminal event gets an error appended.
    """
    try:
        async for event in source:
            yield event
            if event.terminal:
                return
    except Exception as exc:
        logger.exception("Analysis stream failed")
        yield ErrorEvent(message=describe_error(exc))
        return
    finally:
        aclose = getattr(source, "aclose", None)
        if aclose is not None:
            await aclose()
    yield ErrorEvent(message="Analysis ended without a result")


class ProgressRelay(Generic[T]):
    """Runs one awaitable in the background and yields the progress it reports.

    Operations report through the synchronous :meth:`report` callback; the
    messages come out of :meth:`run` while the work is still in flight. The
    awaited value is left on :attr:`result`, and its exception is re-raised.
    """

    def __init__(self) -> None:
        self._queue: "asyncio.Queue[str]" = asyncio.Queue()
        self.result: Optional[T] = None

    def report(self, message: str) -> None:
        self._queue.put_nowait(message)

    async def run(self, work: Awaitable[T]) -> AsyncIterator[str]:
        # A dropped consumer leaves the task running to completion.
        task = asyncio.ensure_future(work)
        task.add_done_callback(_retrieve_exception)
        while True:
            if not self._queue.empty():
                yield self._queue.get_nowait()
                continue
            if task.done():
                break
            getter = asyncio.ensure_future(self._queue.get())
            await asyncio.wait({task, getter}, return_when=asyncio.FIRST_COMPLETED)
            if getter.done():
                yield getter.result()
            else:
                getter.cancel()
        self.result = task.result()


def _retrieve_exception(task: "asyncio.Future[Any]") -> None:
    if not task.cancelled() and task.exception() is not None:
        logger.debug("Background step failed: %s", task.exception())


__all__ = [
    "ErrorEvent",
    "NDJSON_MEDIA_TYPE",
    "ProgressEvent",
    "ProgressRelay",
    "ResultEvent",
    "SelectModulesEvent",
    "StreamEvent",
    "describe_error",
    "encode_event",
    "guard_stream",
]
