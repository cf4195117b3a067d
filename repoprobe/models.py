"""Core data models shared across repoprobe components."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class SourceKind(str, Enum):
    """Where the repository for a request comes from."""

    REPOSITORY_URL = "repository-url"
    ARCHIVE_UPLOAD = "archive-upload"
    STORED_ARCHIVE = "stored-archive"
    REMOTE_ARCHIVE = "remote-archive"
    EXISTING_PATH = "existing-path"


class Provenance(str, Enum):
    """Which acquisition strategy produced an :class:`AcquiredRoot`."""

    TARBALL = "tarball"
    CLONE = "clone"
    ALREADY_PRESENT = "already-present"
    UPLOAD = "upload"
    STORED_ARCHIVE = "stored-archive"
    REMOTE_ARCHIVE = "remote-archive"
    EXISTING_PATH = "existing-path"


@dataclass(frozen=True)
class RepositorySource:
    """One repository reference; exactly one of the payload fields is meaningful."""

    kind: SourceKind
    location: Optional[str] = None
    archive: Optional[bytes] = field(default=None, repr=False)
    filename: Optional[str] = None

    @classmethod
    def from_url(cls, url: str) -> "RepositorySource":
        return cls(kind=SourceKind.REPOSITORY_URL, location=url)

    @classmethod
    def from_archive(cls, data: bytes, filename: str | None) -> "RepositorySource":
        return cls(kind=SourceKind.ARCHIVE_UPLOAD, archive=data, filename=filename)

    @classmethod
    def from_object_key(cls, key: str, filename: str | None = None) -> "RepositorySource":
        return cls(kind=SourceKind.STORED_ARCHIVE, location=key, filename=filename)

    @classmethod
    def from_remote_archive(cls, url: str) -> "RepositorySource":
        return cls(kind=SourceKind.REMOTE_ARCHIVE, location=url)

    @classmethod
    def from_path(cls, path: str) -> "RepositorySource":
        return cls(kind=SourceKind.EXISTING_PATH, location=path)


@dataclass(frozen=True)
class AcquiredRoot:
    """Absolute project root inside the execution environment."""

    path: str
    provenance: Provenance


@dataclass
class BusinessLogic:
    """Business-logic facet of one module's analysis."""

    module: str
    entities: List[str] = field(default_factory=list)
    services: List[str] = field(default_factory=list)
    controllers: List[str] = field(default_factory=list)
    workflows: List[str] = field(default_factory=list)
    summary: Optional[str] = None

    @classmethod
    def empty(cls, module: str) -> "BusinessLogic":
        return cls(module=module)

    @property
    def is_empty(self) -> bool:
        return not (
            self.entities or self.services or self.controllers or self.workflows or self.summary
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "module": self.module,
            "entities": list(self.entities),
            "services": list(self.services),
            "controllers": list(self.controllers),
            "workflows": list(self.workflows),
        }
        if self.summary is not None:
            data["summary"] = self.summary
        return data


@dataclass
class ComplexityMetrics:
    """Complexity facet of one module's analysis; every metric may be absent."""

    module_name: str
    lines_of_code: Optional[int] = None
    classes: Optional[int] = None
    functions: Optional[int] = None
    cyclomatic_complexity: Optional[float] = None

    @property
    def has_metrics(self) -> bool:
        return any(
            value is not None
            for value in (
                self.lines_of_code,
                self.classes,
                self.functions,
                self.cyclomatic_complexity,
            )
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"moduleName": self.module_name}
        for key, value in (
            ("linesOfCode", self.lines_of_code),
            ("classes", self.classes),
            ("functions", self.functions),
            ("cyclomaticComplexity", self.cyclomatic_complexity),
        ):
            if value is not None:
                data[key] = value
        return data


@dataclass
class Diagram:
    """A Mermaid diagram describing one module."""

    id: str
    title: str
    chart: str
    description: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"id": self.id, "title": self.title, "chart": self.chart}
        if self.description is not None:
            data["description"] = self.description
        return data


@dataclass
class ModuleResult:
    """Everything the pipeline learned about one module."""

    module_path: str
    logic: Optional[BusinessLogic] = None
    complexity: Optional[ComplexityMetrics] = None
    diagrams: List[Diagram] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        logic_missing = self.logic is None or self.logic.is_empty
        metrics_missing = self.complexity is None or not self.complexity.has_metrics
        return logic_missing or metrics_missing

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"modulePath": self.module_path}
        if self.logic is not None:
            data["logic"] = self.logic.to_dict()
        if self.complexity is not None:
            data["complexity"] = self.complexity.to_dict()
        if self.diagrams:
            data["diagrams"] = [diagram.to_dict() for diagram in self.diagrams]
        return data


@dataclass
class AnalysisSummary:
    """Aggregate view computed during the reporting phase."""

    total_modules: int
    analyzed_modules: int
    degraded_modules: int
    top_complex_modules: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalModules": self.total_modules,
            "analyzedModules": self.analyzed_modules,
            "degradedModules": self.degraded_modules,
            "topComplexModules": list(self.top_complex_modules),
        }
