"""Tests for the credential environment injected into sessions."""

from __future__ import annotations

from repoprobe.llm import build_tool_env
from repoprobe.llm.environment import BEDROCK_DEFAULTS, has_credentials, parse_env_listing


def test_only_present_host_credentials_are_forwarded() -> None:
    env = build_tool_env({"ANTHROPIC_API_KEY": "sk-1", "HOME": "/root"})

    assert env == {"ANTHROPIC_API_KEY": "sk-1"}


def test_bedrock_defaults_need_a_bedrock_token() -> None:
    assert build_tool_env({}) == {}

    env = build_tool_env({"AWS_BEARER_TOKEN_BEDROCK": "tok", "AWS_REGION": "eu-west-1"})

    assert env["AWS_BEARER_TOKEN_BEDROCK"] == "tok"
    assert env["AWS_REGION"] == "eu-west-1"
    assert env["CLAUDE_CODE_USE_BEDROCK"] == BEDROCK_DEFAULTS["CLAUDE_CODE_USE_BEDROCK"]


def test_caller_variables_win() -> None:
    env = build_tool_env({"ANTHROPIC_API_KEY": "host"}, extra={"ANTHROPIC_API_KEY": "caller", "X": "1"})

    assert env == {"ANTHROPIC_API_KEY": "caller", "X": "1"}


def test_parse_env_listing_keeps_values_with_equals() -> None:
    listing = "A=1\nB=x=y\nnot a pair\n=empty\nWITH SPACE=no\n"

    assert parse_env_listing(listing) == {"A": "1", "B": "x=y"}


def test_has_credentials_ignores_empty_values() -> None:
    keys = ["ANTHROPIC_API_KEY", "AWS_BEARER_TOKEN_BEDROCK"]
    assert not has_credentials({"ANTHROPIC_API_KEY": ""}, keys)
    assert has_credentials({"AWS_BEARER_TOKEN_BEDROCK": "t"}, keys)
