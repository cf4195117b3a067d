"""Archive-based acquisition: direct uploads, stored objects and remote URLs."""

from __future__ import annotations

import posixpath
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from .. import shell
from ..ids import MonotonicIds
from ..logging import get_logger
from ..models import AcquiredRoot, Provenance
from ..sandbox import Sandbox
from .base import AcquisitionError, ProgressCallback, make_directory, report
from .roots import RootDetector

MEDIA_ZIP = "application/zip"
MEDIA_GZIP = "application/gzip"
MEDIA_TAR = "application/x-tar"
MEDIA_UNKNOWN = "application/octet-stream"

_ARCHIVE_SUFFIX_RE = re.compile(r"\.(zip|tar|tgz|tar\.gz)$", re.IGNORECASE)
_SLUG_RE = re.compile(r"[^a-z0-9_-]+")
_ARCHIVE_FILENAME = "archive.bin"
_HEADER_BYTES = 512


def detect_media_type(header: bytes) -> str:
    """Classify an archive by its leading bytes rather than its file name."""
    if header.startswith((b"PK\x03\x04", b"PK\x05\x06", b"PK\x07\x08")):
        return MEDIA_ZIP
    if header.startswith(b"\x1f\x8b"):
        return MEDIA_GZIP
    if len(header) >= 262 and header[257:262] == b"ustar":
        return MEDIA_TAR
    return MEDIA_UNKNOWN


def slugify_archive_name(name: str | None) -> str:
    """Return a filesystem-safe directory name derived from an upload's file name."""
    base = posixpath.basename((name or "").replace("\\", "/"))
    stem = _ARCHIVE_SUFFIX_RE.sub("", base)
    slug = _SLUG_RE.sub("-", stem.lower()).strip("-")
    return slug or "upload"


@dataclass(frozen=True)
class ExtractionStep:
    label: str
    command: str


class ArchiveExtractor:
    """Extracts with the tool matching the detected media type, then fallbacks."""

    def __init__(self) -> None:
        self.logger = get_logger("acquire.archives")

    def plan(self, media_type: str, archive: str, destination: str) -> List[ExtractionStep]:
        bsdtar = ExtractionStep("bsdtar", shell.command("bsdtar", "-xf", archive, "-C", destination))
        plans: Dict[str, List[ExtractionStep]] = {
            MEDIA_ZIP: [
                ExtractionStep("unzip", shell.command("unzip", "-q", "-o", archive, "-d", destination)),
                bsdtar,
            ],
            MEDIA_GZIP: [
                ExtractionStep("tar", shell.command("tar", "-xzf", archive, "-C", destination)),
                bsdtar,
            ],
            MEDIA_TAR: [
                ExtractionStep("tar", shell.command("tar", "-xf", archive, "-C", destination)),
                bsdtar,
            ],
        }
        return plans.get(media_type, [])

    async def extract(
        self,
        sandbox: Sandbox,
        archive: str,
        destination: str,
        progress: Optional[ProgressCallback] = None,
    ) -> str:
        """Extract ``archive`` into ``destination`` and delete the archive file."""
        report(progress, "Extracting archive...")
        try:
            try:
                header = (await sandbox.read_file(archive))[:_HEADER_BYTES]
            except OSError as exc:
                raise AcquisitionError(f"Cannot read archive {archive}: {exc}") from exc
            media_type = detect_media_type(header)
            steps = self.plan(media_type, archive, destination)
            if not steps:
                raise AcquisitionError(
                    f"Unsupported archive format (detected {media_type}); expected zip, tar or gzip"
                )

            for step in steps:
                result = await sandbox.execute(step.command)
                if result.success:
                    self.logger.debug("Extracted %s with %s", archive, step.label)
                    return media_type
                self.logger.info("%s failed for %s: %s", step.label, archive, result.output.strip())
                report(progress, f"Extraction with {step.label} failed (mime={media_type}); trying next tool")
            raise AcquisitionError(f"Archive extraction failed with every tool (mime={media_type})")
        finally:
            await sandbox.execute(shell.command("rm", "-f", "--", archive))


class ArchiveAcquirer:
    """Materializes uploaded or downloadable archives into fresh directories."""

    def __init__(
        self,
        root_detector: RootDetector | None = None,
        extractor: ArchiveExtractor | None = None,
        ids: MonotonicIds | None = None,
    ) -> None:
        self.root_detector = root_detector or RootDetector()
        self.extractor = extractor or ArchiveExtractor()
        self.ids = ids or MonotonicIds()
        self.logger = get_logger("acquire.archives")

    async def from_bytes(
        self,
        sandbox: Sandbox,
        data: bytes,
        filename: str | None,
        progress: Optional[ProgressCallback] = None,
        *,
        provenance: Provenance = Provenance.UPLOAD,
    ) -> AcquiredRoot:
        if not data:
            raise AcquisitionError("Uploaded archive is empty")
        directory, archive = self._fresh_location(sandbox, slugify_archive_name(filename))
        report(progress, f"Preparing upload directory: {directory}")
        await make_directory(sandbox, directory)
        report(progress, f"Uploading archive ({len(data)} bytes)...")
        await sandbox.write_file(archive, data)
        return await self._finish(sandbox, directory, archive, provenance, progress)

    async def from_remote(
        self,
        sandbox: Sandbox,
        url: str,
        progress: Optional[ProgressCallback] = None,
    ) -> AcquiredRoot:
        directory, archive = self._fresh_location(sandbox, "remote")
        await make_directory(sandbox, directory)
        report(progress, "Downloading archive from remote...")
        download = shell.chain(
            shell.first_success(
                shell.command("curl", "-fsSL", url, "-o", archive),
                shell.command("wget", "-qO", archive, url),
            ),
            shell.command("test", "-s", archive),
        )
        result = await sandbox.execute(download)
        if not result.success:
            detail = result.output.strip() or "unknown error"
            report(progress, f"Remote download failed: {detail}")
            raise AcquisitionError(f"Remote archive download failed: {detail}")
        return await self._finish(sandbox, directory, archive, Provenance.REMOTE_ARCHIVE, progress)

    async def _finish(
        self,
        sandbox: Sandbox,
        directory: str,
        archive: str,
        provenance: Provenance,
        progress: Optional[ProgressCallback],
    ) -> AcquiredRoot:
        await self.extractor.extract(sandbox, archive, directory, progress)
        report(progress, "Detecting module root...")
        root = await self.root_detector.detect(sandbox, directory, progress)
        report(progress, f"Upload ready at: {root}")
        return AcquiredRoot(path=root, provenance=provenance)

    def _fresh_location(self, sandbox: Sandbox, slug: str) -> Tuple[str, str]:
        directory = posixpath.join(sandbox.workspace, self.ids.next(f"{slug}-"))
        return directory, posixpath.join(directory, _ARCHIVE_FILENAME)


__all__ = [
    "ArchiveAcquirer",
    "ArchiveExtractor",
    "MEDIA_GZIP",
    "MEDIA_TAR",
    "MEDIA_UNKNOWN",
    "MEDIA_ZIP",
    "detect_media_type",
    "slugify_archive_name",
]
