"""Credential and configuration environment for the external inference tool."""

from __future__ import annotations

import os
from typing import Dict, Iterable, Mapping

ANTHROPIC_KEY = "ANTHROPIC_API_KEY"
BEDROCK_TOKEN_KEY = "AWS_BEARER_TOKEN_BEDROCK"

# Non-secret Bedrock settings; only applied when a Bedrock token is supplied.
BEDROCK_DEFAULTS: Dict[str, str] = {
    "AWS_REGION": "us-east-1",
    "ANTHROPIC_SMALL_FAST_MODEL_AWS_REGION": "us-east-1",
    "ANTHROPIC_MODEL": "us.anthropic.claude-sonnet-4-5-20250929-v1:0",
    "ANTHROPIC_SMALL_FAST_MODEL": "us.anthropic.claude-3-5-haiku-20241022-v1:0",
    "ANTHROPIC_BEDROCK_USE_CROSS_REGION_INFERENCE": "true",
    "CLAUDE_CODE_USE_BEDROCK": "1",
    "CLAUDE_CODE_MAX_OUTPUT_TOKENS": "64000",
    "CLAUDE_CODE_SUBAGENT_MODEL": "us.anthropic.claude-sonnet-4-5-20250929-v1:0",
}


def build_tool_env(
    host_env: Mapping[str, str] | None = None,
    *,
    extra: Mapping[str, str] | None = None,
) -> Dict[str, str]:
    """Return the variables to inject into a session's environment.

    Values come from the host process environment; nothing secret has a default.
    """
    source = os.environ if host_env is None else host_env
    env: Dict[str, str] = {}

    api_key = source.get(ANTHROPIC_KEY)
    if api_key:
        env[ANTHROPIC_KEY] = api_key

    if source.get(BEDROCK_TOKEN_KEY):
        env.update(BEDROCK_DEFAULTS)
        for key in (*BEDROCK_DEFAULTS, BEDROCK_TOKEN_KEY):
            value = source.get(key)
            if value:
                env[key] = value

    if extra:
        env.update({str(key): str(value) for key, value in extra.items()})
    return env


def parse_env_listing(text: str) -> Dict[str, str]:
    """Parse ``env`` command output into a mapping."""
    parsed: Dict[str, str] = {}
    for line in text.splitlines():
        key, sep, value = line.partition("=")
        if sep and key and " " not in key:
            parsed[key] = value
    return parsed


def has_credentials(env: Mapping[str, str], keys: Iterable[str]) -> bool:
    """Return True when any credential key is set to a non-empty value."""
    return any(env.get(key) for key in keys)


__all__ = [
    "BEDROCK_DEFAULTS",
    "build_tool_env",
    "has_credentials",
    "parse_env_listing",
]
