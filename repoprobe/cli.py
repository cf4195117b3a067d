"""CLI entrypoints for repoprobe commands."""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Dict, List, Optional, TextIO

from .config import ConfigError, RepoProbeConfig, load_config
from .events import ErrorEvent, encode_event
from .logging import configure_logging
from .orchestrator import AnalysisOrchestrator, AnalysisRequest


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument(
        "-v",
        "--verbose",
        **kwargs,
    )


def _add_config_option(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to .repoprobe.yml (or a directory containing it).",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="repoprobe",
        description="Stream a module-by-module analysis of a code repository.",
    )
    _add_verbose_option(parser)
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve_parser = subparsers.add_parser(
        "serve",
        help="Run the HTTP service that streams analysis events.",
    )
    _add_verbose_option(serve_parser, suppress_default=True)
    _add_config_option(serve_parser)
    serve_parser.add_argument("--host", default="0.0.0.0", help="Interface to bind.")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port to listen on.")

    analyze_parser = subparsers.add_parser(
        "analyze",
        help="Analyze a repository and print NDJSON events to stdout.",
    )
    _add_verbose_option(analyze_parser, suppress_default=True)
    _add_config_option(analyze_parser)
    source = analyze_parser.add_mutually_exclusive_group()
    source.add_argument("--repo", help="Repository URL to fetch or clone.")
    source.add_argument("--archive", type=Path, help="Local zip/tar/tar.gz archive to upload.")
    source.add_argument("--remote-archive", help="URL of an archive to download.")
    source.add_argument("--root-path", help="Directory already present in the session workspace.")
    analyze_parser.add_argument(
        "--session-id",
        help="Resume the session printed by an earlier select-modules event.",
    )
    analyze_parser.add_argument(
        "--select",
        action="append",
        default=None,
        metavar="MODULE",
        help="Module to analyze; repeat to select several.",
    )
    analyze_parser.add_argument(
        "--env",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Environment variable forwarded to the session; may be repeated.",
    )

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for repoprobe commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose))

    try:
        config = load_config(args.config)
    except ConfigError as exc:
        parser.exit(1, f"{exc}\n")

    if args.command == "serve":
        from .service import run_service

        run_service(args.host, args.port, config=config)
    elif args.command == "analyze":
        try:
            env_vars = _parse_env_pairs(args.env)
        except ValueError as exc:
            parser.error(str(exc))
        request = AnalysisRequest(
            repo=args.repo,
            root_path=args.root_path,
            remote_archive_url=args.remote_archive,
            session_id=args.session_id,
            selected_modules=args.select,
            env_vars=env_vars,
        )
        if args.archive is not None:
            try:
                request.archive = args.archive.read_bytes()
            except OSError as exc:
                parser.exit(1, f"Cannot read archive {args.archive}: {exc}\n")
            request.filename = args.archive.name
        exit_code = asyncio.run(run_analysis(request, config))
        if exit_code:
            parser.exit(exit_code)
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


async def run_analysis(
    request: AnalysisRequest,
    config: RepoProbeConfig,
    *,
    orchestrator: Optional[AnalysisOrchestrator] = None,
    out: Optional[TextIO] = None,
) -> int:
    """Print the event stream; return 1 when it ended in an error."""
    stream = out or sys.stdout
    orchestrator = orchestrator or AnalysisOrchestrator.from_config(config)
    exit_code = 0
    async for event in orchestrator.submit(request):
        stream.write(encode_event(event))
        stream.flush()
        if isinstance(event, ErrorEvent):
            exit_code = 1
    return exit_code


def _parse_env_pairs(pairs: List[str]) -> Dict[str, str]:
    env: Dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise ValueError(f"Expected KEY=VALUE, got {pair!r}")
        env[key.strip()] = value
    return env


if __name__ == "__main__":
    main(sys.argv[1:])
