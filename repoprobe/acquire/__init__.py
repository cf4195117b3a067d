"""Repository acquisition strategies and the facade that picks between them."""

from __future__ import annotations

from typing import Optional
from urllib.parse import urlparse

from ..logging import get_logger
from ..models import AcquiredRoot, Provenance, RepositorySource, SourceKind
from ..sandbox import Sandbox
from ..storage import ObjectStore
from .archives import ArchiveAcquirer, ArchiveExtractor, detect_media_type, slugify_archive_name
from .base import AcquisitionError, ProgressCallback
from .git import GitRepositoryFetcher, repository_name
from .roots import RootDetector


class RepositoryAcquirer:
    """Produces an :class:`AcquiredRoot` for any :class:`RepositorySource`."""

    def __init__(
        self,
        git: GitRepositoryFetcher | None = None,
        archives: ArchiveAcquirer | None = None,
        object_store: ObjectStore | None = None,
    ) -> None:
        self.git = git or GitRepositoryFetcher()
        self.archives = archives or ArchiveAcquirer()
        self.object_store = object_store
        self.logger = get_logger("acquire")

    async def acquire(
        self,
        sandbox: Sandbox,
        source: RepositorySource,
        progress: Optional[ProgressCallback] = None,
    ) -> AcquiredRoot:
        self.logger.info("Acquiring %s into %s", source.kind.value, sandbox.workspace)

        if source.kind is SourceKind.EXISTING_PATH:
            if not source.location:
                raise AcquisitionError("rootPath must not be empty")
            return AcquiredRoot(path=source.location, provenance=Provenance.EXISTING_PATH)

        if source.kind is SourceKind.REPOSITORY_URL:
            url = _require_url(source.location, "repository", ("http", "https", "ssh", "git"))
            return await self.git.acquire(sandbox, url, sandbox.workspace, progress)

        if source.kind is SourceKind.ARCHIVE_UPLOAD:
            return await self.archives.from_bytes(
                sandbox, source.archive or b"", source.filename, progress
            )

        if source.kind is SourceKind.STORED_ARCHIVE:
            data = await self._fetch_object(source.location)
            return await self.archives.from_bytes(
                sandbox,
                data,
                source.filename or source.location,
                progress,
                provenance=Provenance.STORED_ARCHIVE,
            )

        if source.kind is SourceKind.REMOTE_ARCHIVE:
            url = _require_url(source.location, "remote archive")
            return await self.archives.from_remote(sandbox, url, progress)

        raise AcquisitionError(f"Unsupported repository source: {source.kind}")  # pragma: no cover

    async def _fetch_object(self, key: Optional[str]) -> bytes:
        if self.object_store is None:
            raise AcquisitionError("No object store is configured for stored uploads")
        if not key:
            raise AcquisitionError("objectKey must not be empty")
        try:
            return await self.object_store.get(key)
        except KeyError:
            raise AcquisitionError(f"Stored upload not found or expired: {key}") from None


def _require_url(
    value: Optional[str], label: str, schemes: tuple[str, ...] = ("http", "https")
) -> str:
    parsed = urlparse(value or "")
    if parsed.scheme not in schemes or not parsed.netloc:
        raise AcquisitionError(f"Invalid {label} URL: {value!r}")
    return value  # type: ignore[return-value]


__all__ = [
    "AcquisitionError",
    "ArchiveAcquirer",
    "ArchiveExtractor",
    "GitRepositoryFetcher",
    "ProgressCallback",
    "RepositoryAcquirer",
    "RootDetector",
    "detect_media_type",
    "repository_name",
    "slugify_archive_name",
]
