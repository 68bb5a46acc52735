"""CLI entry point for IdeaScope."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any


def _get_version() -> str:
    from ideascope import __version__

    return __version__


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ideascope",
        description="IdeaScope — evidence-backed business idea validation",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"IdeaScope {_get_version()}",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run = subparsers.add_parser("run", help="Research and analyze an idea")
    run.add_argument("idea", type=str, help="Path to a JSON file with the normalized idea ('-' for stdin)")
    run.add_argument("--raw", action="store_true", help="Treat the input as free text and normalize it first")
    run.add_argument("--idea-id", type=str, default=None, help="Stable idea identifier (defaults to the file stem)")
    run.add_argument("--config", "-c", type=str, default=None, help="Path to YAML configuration file")
    run.add_argument("--research-only", action="store_true", help="Stop after building the ResearchPack")
    run.add_argument("--stream", action="store_true", help="Print pipeline events as JSON lines")
    run.add_argument(
        "--log-level",
        type=str,
        choices=["debug", "info", "warning", "error"],
        default=None,
        help="Log level (overrides config)",
    )

    normalize = subparsers.add_parser("normalize", help="Normalize a free-text idea and print it as JSON")
    normalize.add_argument("idea", type=str, help="Path to a text file with the idea ('-' for stdin)")
    normalize.add_argument("--config", "-c", type=str, default=None, help="Path to YAML configuration file")
    normalize.add_argument(
        "--log-level",
        type=str,
        choices=["debug", "info", "warning", "error"],
        default=None,
        help="Log level (overrides config)",
    )
    return parser


def _load_idea(source: str) -> dict[str, Any]:
    if source == "-":
        return json.load(sys.stdin)
    path = Path(source)
    if not path.exists():
        print(f"Error: Idea file not found: {path}", file=sys.stderr)
        sys.exit(1)
    with open(path) as f:
        return json.load(f)


def _load_text(source: str) -> str:
    if source == "-":
        return sys.stdin.read()
    path = Path(source)
    if not path.exists():
        print(f"Error: Idea file not found: {path}", file=sys.stderr)
        sys.exit(1)
    return path.read_text(encoding="utf-8")


async def _run(args: argparse.Namespace) -> int:
    from ideascope.app import create_pipeline, load_settings
    from ideascope.core.errors import IdeaScopeError
    from ideascope.models.idea import NormalizedIdea
    from ideascope.observability.events import LoggingEventSink
    from ideascope.observability.logging import setup_logging

    if args.config and not Path(args.config).exists():
        print(f"Error: Config file not found: {args.config}", file=sys.stderr)
        return 1
    settings = load_settings(args.config)
    setup_logging(settings.observability, level=args.log_level)

    raw_text = _load_text(args.idea) if args.raw else ""
    idea = None if args.raw else NormalizedIdea.model_validate(_load_idea(args.idea))
    idea_id = args.idea_id or (Path(args.idea).stem if args.idea != "-" else "idea")

    try:
        async with create_pipeline(settings) as pipeline:
            if idea is None:
                idea = await pipeline.normalizer.normalize(raw_text)

            if args.research_only:
                pack = await pipeline.research.run(idea, idea_id, events=LoggingEventSink())
                print(pack.model_dump_json(indent=2))
                return 0

            if args.stream:
                failed = False
                async for event in pipeline.analysis.stream(idea, idea_id):
                    print(event.model_dump_json(), flush=True)
                    failed = failed or event.event == "orchestrator:error"
                return 1 if failed else 0

            result = await pipeline.analysis.run(idea, idea_id, events=LoggingEventSink())
            print(result.model_dump_json(indent=2))
            return 0
    except (IdeaScopeError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


async def _normalize(args: argparse.Namespace) -> int:
    from ideascope.app import create_pipeline, load_settings
    from ideascope.core.errors import IdeaScopeError
    from ideascope.observability.logging import setup_logging

    if args.config and not Path(args.config).exists():
        print(f"Error: Config file not found: {args.config}", file=sys.stderr)
        return 1
    settings = load_settings(args.config)
    setup_logging(settings.observability, level=args.log_level)
    raw_text = _load_text(args.idea)

    try:
        async with create_pipeline(settings) as pipeline:
            idea = await pipeline.normalizer.normalize(raw_text)
    except (IdeaScopeError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    print(idea.model_dump_json(indent=2, by_alias=True))
    return 0


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)
    if args.command == "run":
        sys.exit(asyncio.run(_run(args)))
    elif args.command == "normalize":
        sys.exit(asyncio.run(_normalize(args)))


if __name__ == "__main__":
    main()
