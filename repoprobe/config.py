"""Configuration loading for repoprobe (.repoprobe.yml)."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

import yaml

CONFIG_FILENAME = ".repoprobe.yml"
CONFIG_ENV_VAR = "REPOPROBE_CONFIG"

DEFAULT_CREDENTIAL_KEYS = (
    "ANTHROPIC_API_KEY",
    "AWS_BEARER_TOKEN_BEDROCK",
    "CLAUDE_CODE_USE_BEDROCK",
)


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


@dataclass
class WorkspaceConfig:
    """Where session environments live and how sessions are named."""

    base_dir: Path = field(default_factory=lambda: Path("~/.repoprobe/workspaces").expanduser())
    session_prefix: str = "m2-"


@dataclass
class ToolConfig:
    """External inference tool settings."""

    executable: str = "claude"
    credential_keys: List[str] = field(default_factory=lambda: list(DEFAULT_CREDENTIAL_KEYS))
    env: Dict[str, str] = field(default_factory=dict)
    timeout: Optional[float] = None


@dataclass
class DiscoveryConfig:
    """How analyzable modules are recognized under a project root."""

    markers: List[str] = field(default_factory=lambda: ["registration.php", "etc/module.xml"])
    search_roots: List[str] = field(default_factory=lambda: ["app/code"])
    max_depth: int = 6


@dataclass
class RootsConfig:
    """Project-root detection inside extracted archives."""

    markers: List[str] = field(default_factory=lambda: ["app/code", "vendor/magento"])
    max_iterations: int = 3


@dataclass
class PipelineConfig:
    """Per-run pipeline behaviour."""

    modules: List[str] = field(default_factory=list)
    diagrams: bool = True
    top_complexity: int = 5


@dataclass
class StorageConfig:
    """Object store used for large-upload indirection."""

    directory: Path = field(default_factory=lambda: Path("~/.repoprobe/objects").expanduser())
    ttl: Optional[float] = 3600.0


@dataclass
class RepoProbeConfig:
    """Represents the settings defined in .repoprobe.yml plus environment overrides."""

    source: Optional[Path] = None
    workspace: WorkspaceConfig = field(default_factory=WorkspaceConfig)
    tool: ToolConfig = field(default_factory=ToolConfig)
    discovery: DiscoveryConfig = field(default_factory=DiscoveryConfig)
    roots: RootsConfig = field(default_factory=RootsConfig)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)


def load_config(
    config_path: Path | None = None, *, environ: Mapping[str, str] | None = None
) -> RepoProbeConfig:
    """Load configuration from disk, then apply environment overrides."""
    env = os.environ if environ is None else environ
    if config_path is None:
        configured = env.get(CONFIG_ENV_VAR)
        config_path = Path(configured) if configured else Path.cwd()

    config_file = _resolve_config_path(Path(config_path))
    config = RepoProbeConfig()
    if config_file.exists():
        data = _read_config(config_file)
        if not isinstance(data, dict):
            raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping at the root")
        config = _build_config(data, source=config_file)

    _apply_env_overrides(config, env)
    return config


def _build_config(data: Dict[str, Any], *, source: Path) -> RepoProbeConfig:
    root = source.parent
    config = RepoProbeConfig(source=source)

    workspace_data = _as_dict(data.get("workspace"))
    base_dir = _as_str(workspace_data.get("base_dir"))
    if base_dir:
        config.workspace.base_dir = _as_path(base_dir, root)
    prefix = _as_str(workspace_data.get("session_prefix"))
    if prefix:
        config.workspace.session_prefix = prefix

    tool_data = _as_dict(data.get("tool"))
    executable = _as_str(tool_data.get("executable"))
    if executable:
        config.tool.executable = executable
    credential_keys = _as_str_list(tool_data.get("credential_keys"))
    if credential_keys:
        config.tool.credential_keys = credential_keys
    config.tool.env = {
        str(key): str(value)
        for key, value in _as_dict(tool_data.get("env")).items()
        if _as_str(value) is not None
    }
    config.tool.timeout = _as_float(tool_data.get("timeout"))

    discovery_data = _as_dict(data.get("discovery"))
    markers = _as_str_list(discovery_data.get("markers"))
    if markers:
        config.discovery.markers = markers
    if "search_roots" in discovery_data:
        config.discovery.search_roots = _as_str_list(discovery_data.get("search_roots"))
    max_depth = _as_int(discovery_data.get("max_depth"))
    if max_depth is not None and max_depth > 0:
        config.discovery.max_depth = max_depth

    roots_data = _as_dict(data.get("roots"))
    root_markers = _as_str_list(roots_data.get("markers"))
    if root_markers:
        config.roots.markers = root_markers
    iterations = _as_int(roots_data.get("max_iterations"))
    if iterations is not None and iterations >= 0:
        config.roots.max_iterations = iterations

    pipeline_data = _as_dict(data.get("pipeline"))
    config.pipeline.modules = _as_str_list(pipeline_data.get("modules"))
    diagrams = _as_bool(pipeline_data.get("diagrams"))
    if diagrams is not None:
        config.pipeline.diagrams = diagrams
    top = _as_int(pipeline_data.get("top_complexity"))
    if top is not None and top >= 0:
        config.pipeline.top_complexity = top

    storage_data = _as_dict(data.get("storage"))
    storage_dir = _as_str(storage_data.get("dir"))
    if storage_dir:
        config.storage.directory = _as_path(storage_dir, root)
    if "ttl" in storage_data:
        config.storage.ttl = _as_float(storage_data.get("ttl"))

    return config


def _apply_env_overrides(config: RepoProbeConfig, env: Mapping[str, str]) -> None:
    workspace = env.get("REPOPROBE_WORKSPACE")
    if workspace:
        config.workspace.base_dir = Path(workspace).expanduser()
    tool = env.get("REPOPROBE_TOOL")
    if tool:
        config.tool.executable = tool
    storage_dir = env.get("REPOPROBE_STORAGE_DIR")
    if storage_dir:
        config.storage.directory = Path(storage_dir).expanduser()


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Any:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded if loaded is not None else {}


def _as_path(value: str, root: Path) -> Path:
    path = Path(value).expanduser()
    return path if path.is_absolute() else (root / path).resolve()


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float, bool)) else None


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float, bool))]
    return []


__all__ = [
    "CONFIG_ENV_VAR",
    "CONFIG_FILENAME",
    "ConfigError",
    "DiscoveryConfig",
    "PipelineConfig",
    "RepoProbeConfig",
    "RootsConfig",
    "StorageConfig",
    "ToolConfig",
    "WorkspaceConfig",
    "load_config",
]
