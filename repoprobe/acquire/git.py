"""Acquisition of hosted git repositories: tarball fetch with clone fallback."""

from __future__ import annotations

import asyncio
import posixpath
from typing import Dict, Optional, Sequence
from urllib.parse import urlparse

from .. import shell
from ..ids import MonotonicIds
from ..logging import get_logger
from ..models import AcquiredRoot, Provenance
from ..sandbox import Sandbox
from .base import (
    AcquisitionError,
    ProgressCallback,
    directory_exists,
    make_directory,
    remove_path,
    report,
)


def repository_name(url: str) -> str:
    """Return the checkout directory name for ``url`` (last path segment, no ``.git``)."""
    path = urlparse(url).path if "://" in url else url
    segment = path.rstrip("/").split("/")[-1] if path else ""
    if segment.endswith(".git"):
        segment = segment[: -len(".git")]
    # A name is only ever a single path component below the workspace.
    if segment in {"", ".", ".."}:
        return "repo"
    return segment


class GitRepositoryFetcher:
    """Materializes ``<base_dir>/<name>`` once; later calls reuse the directory.

    Downloads land in a ``<name>.partial-<id>`` sibling that is renamed into
    place as the last step, so ``<name>`` only ever exists complete. Calls for
    the same target wait for one another.
    """

    def __init__(
        self,
        tarball_hosts: Sequence[str] = ("github.com", "www.github.com"),
        api_base: str = "https://api.github.com",
        ids: MonotonicIds | None = None,
    ) -> None:
        self.tarball_hosts = {host.lower() for host in tarball_hosts}
        self.api_base = api_base.rstrip("/")
        self.ids = ids or MonotonicIds()
        self._locks: Dict[str, asyncio.Lock] = {}
        self.logger = get_logger("acquire.git")

    def tarball_url(self, url: str) -> Optional[str]:
        """Derive the archive download URL from a hosted repository's owner/name."""
        parsed = urlparse(url)
        if (parsed.hostname or "").lower() not in self.tarball_hosts:
            return None
        parts = [part for part in parsed.path.split("/") if part]
        if len(parts) < 2:
            return None
        owner, name = parts[0], parts[1]
        if name.endswith(".git"):
            name = name[: -len(".git")]
        if not owner or not name:
            return None
        return f"{self.api_base}/repos/{owner}/{name}/tarball"

    async def acquire(
        self,
        sandbox: Sandbox,
        url: str,
        base_dir: str,
        progress: Optional[ProgressCallback] = None,
    ) -> AcquiredRoot:
        name = repository_name(url)
        target = posixpath.join(base_dir, name)
        lock = self._locks.setdefault(target, asyncio.Lock())
        async with lock:
            return await self._acquire(sandbox, url, name, target, base_dir, progress)

    async def _acquire(
        self,
        sandbox: Sandbox,
        url: str,
        name: str,
        target: str,
        base_dir: str,
        progress: Optional[ProgressCallback],
    ) -> AcquiredRoot:
        await make_directory(sandbox, base_dir)

        if await directory_exists(sandbox, target):
            report(progress, "Repository already present. Skipping clone.")
            self.logger.debug("Reusing %s for %s", target, url)
            return AcquiredRoot(path=target, provenance=Provenance.ALREADY_PRESENT)

        tarball = self.tarball_url(url)
        if tarball is not None:
            report(progress, f"Fetching repository tarball: {url}")
            if await self._fetch_tarball(sandbox, tarball, target):
                report(progress, f"Fetch complete: {name}")
                return AcquiredRoot(path=target, provenance=Provenance.TARBALL)
            report(progress, "Fallback to git clone due to tarball fetch error.")
        else:
            report(progress, f"Cloning repository: {url}")

        await self._clone(sandbox, url, target)
        report(progress, f"Clone complete: {name}")
        return AcquiredRoot(path=target, provenance=Provenance.CLONE)

    def _staging_path(self, target: str) -> str:
        return self.ids.next(f"{target}.partial-")

    async def _fetch_tarball(self, sandbox: Sandbox, tarball: str, target: str) -> bool:
        staging = self._staging_path(target)
        archive = posixpath.join(staging, "repo.tar.gz")
        result = await sandbox.execute(
            shell.chain(
                shell.command("mkdir", "-p", staging),
                shell.command("curl", "-fsSL", tarball, "-o", archive),
                shell.command("tar", "-xzf", archive, "-C", staging, "--strip-components=1"),
                shell.command("rm", "-f", archive),
                shell.command("mv", "-T", staging, target),
            )
        )
        if not result.success:
            self.logger.info("Tarball fetch failed for %s: %s", tarball, result.output.strip())
            await remove_path(sandbox, staging)
        return result.success

    async def _clone(self, sandbox: Sandbox, url: str, target: str) -> None:
        staging = self._staging_path(target)
        result = await sandbox.execute(
            shell.chain(
                shell.command(
                    "git",
                    "clone",
                    "--depth",
                    "1",
                    "--no-tags",
                    "--filter=blob:none",
                    "--",
                    url,
                    staging,
                ),
                shell.command("mv", "-T", staging, target),
            )
        )
        if not result.success:
            await remove_path(sandbox, staging)
            detail = result.output.strip() or "unknown error"
            raise AcquisitionError(f"Unable to acquire repository {url}: {detail}")


__all__ = ["GitRepositoryFetcher", "repository_name"]
