"""Tests for repoprobe.config."""

from __future__ import annotations

from pathlib import Path

import pytest

from repoprobe.config import CONFIG_ENV_VAR, ConfigError, RepoProbeConfig, load_config


def test_load_config_returns_defaults_when_missing(tmp_path: Path) -> None:
    config = load_config(tmp_path, environ={})

    assert isinstance(config, RepoProbeConfig)
    assert config.source is None
    assert config.workspace.session_prefix == "m2-"
    assert config.tool.executable == "claude"
    assert "ANTHROPIC_API_KEY" in config.tool.credential_keys
    assert config.discovery.markers == ["registration.php", "etc/module.xml"]
    assert config.discovery.search_roots == ["app/code"]
    assert config.pipeline.modules == []
    assert config.pipeline.diagrams is True
    assert config.storage.ttl == 3600.0


def test_load_config_parses_expected_fields(tmp_path: Path) -> None:
    config_file = tmp_path / ".repoprobe.yml"
    config_file.write_text(
        """
workspace:
  base_dir: "sandboxes"
  session_prefix: "s-"
tool:
  executable: "/opt/bin/claude"
  credential_keys: [MY_KEY]
  env:
    CLAUDE_CODE_USE_BEDROCK: 1
  timeout: 120
discovery:
  markers: [package.json]
  search_roots: []
  max_depth: 4
roots:
  markers: [src]
  max_iterations: 2
pipeline:
  modules: [app/code/Acme/Sales]
  diagrams: "no"
  top_complexity: 3
storage:
  dir: "objects"
  ttl: 60
""",
        encoding="utf-8",
    )

    config = load_config(config_file, environ={})

    assert config.source == config_file.resolve()
    assert config.workspace.base_dir == (tmp_path / "sandboxes").resolve()
    assert config.workspace.session_prefix == "s-"
    assert config.tool.executable == "/opt/bin/claude"
    assert config.tool.credential_keys == ["MY_KEY"]
    assert config.tool.env == {"CLAUDE_CODE_USE_BEDROCK": "1"}
    assert config.tool.timeout == 120.0
    assert config.discovery.markers == ["package.json"]
    assert config.discovery.search_roots == []
    assert config.discovery.max_depth == 4
    assert config.roots.markers == ["src"]
    assert config.roots.max_iterations == 2
    assert config.pipeline.modules == ["app/code/Acme/Sales"]
    assert config.pipeline.diagrams is False
    assert config.pipeline.top_complexity == 3
    assert config.storage.directory == (tmp_path / "objects").resolve()
    assert config.storage.ttl == 60.0


def test_load_config_ignores_malformed_values(tmp_path: Path) -> None:
    (tmp_path / ".repoprobe.yml").write_text(
        "tool: nope\ndiscovery:\n  max_depth: deep\npipeline:\n  top_complexity: -1\n",
        encoding="utf-8",
    )

    config = load_config(tmp_path, environ={})

    assert config.tool.executable == "claude"
    assert config.discovery.max_depth == 6
    assert config.pipeline.top_complexity == 5


def test_load_config_rejects_invalid_yaml(tmp_path: Path) -> None:
    (tmp_path / ".repoprobe.yml").write_text("workspace: [unclosed\n", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_config(tmp_path, environ={})


def test_load_config_requires_mapping_root(tmp_path: Path) -> None:
    (tmp_path / ".repoprobe.yml").write_text("- just\n- a list\n", encoding="utf-8")

    with pytest.raises(ConfigError, match="mapping"):
        load_config(tmp_path, environ={})


def test_environment_overrides(tmp_path: Path) -> None:
    other = tmp_path / "elsewhere"
    other.mkdir()
    (other / ".repoprobe.yml").write_text("workspace:\n  session_prefix: env-\n", encoding="utf-8")

    config = load_config(
        environ={
            CONFIG_ENV_VAR: str(other),
            "REPOPROBE_WORKSPACE": str(tmp_path / "ws"),
            "REPOPROBE_TOOL": "claude-dev",
            "REPOPROBE_STORAGE_DIR": str(tmp_path / "store"),
        }
    )

    assert config.workspace.session_prefix == "env-"
    assert config.workspace.base_dir == tmp_path / "ws"
    assert config.tool.executable == "claude-dev"
    assert config.storage.directory == tmp_path / "store"
