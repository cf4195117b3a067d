"""Object storage used to relay archives too large for a direct upload."""

from __future__ import annotations

import asyncio
import re
import time
import uuid
from pathlib import Path
from typing import Callable, Optional, Protocol

_KEY_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")
_NAME_RE = re.compile(r"[^A-Za-z0-9._-]+")


class ObjectStore(Protocol):
    """Put bytes under a key, get them back by key."""

    async def put(self, key: str, data: bytes) -> None:
        ...

    async def get(self, key: str) -> bytes:
        ...


def new_object_key(filename: str | None = None) -> str:
    """Return a fresh, unguessable key, suffixed with a safe form of ``filename``."""
    token = uuid.uuid4().hex
    if not filename:
        return token
    safe = _NAME_RE.sub("-", Path(filename).name).strip(".-")
    return f"{token}-{safe}" if safe else token


class FilesystemObjectStore:
    """Stores objects as files; entries older than ``ttl`` seconds are expired."""

    def __init__(
        self,
        directory: Path,
        *,
        ttl: Optional[float] = 3600.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.directory = Path(directory).expanduser()
        self.ttl = ttl
        self._clock = clock

    async def put(self, key: str, data: bytes) -> None:
        path = self._path_for(key)

        def _write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)

        await asyncio.to_thread(_write)

    async def get(self, key: str) -> bytes:
        path = self._path_for(key)

        def _read() -> bytes:
            try:
                stat_result = path.stat()
            except FileNotFoundError:
                raise KeyError(key) from None
            if self.ttl is not None and self._clock() - stat_result.st_mtime > self.ttl:
                path.unlink(missing_ok=True)
                raise KeyError(key)
            return path.read_bytes()

        return await asyncio.to_thread(_read)

    def _path_for(self, key: str) -> Path:
        if not _KEY_RE.match(key or ""):
            raise KeyError(key)
        return self.directory / key


__all__ = ["FilesystemObjectStore", "ObjectStore", "new_object_key"]
