"""Arduino AI assistant CLI.

Command-line access to the agent and its error memory, without the IDE.
Tools that need the compiler, serial port or editor report that they are
unavailable.

Example Usage:
    $ arduino-ai ask "Why does my ESP32 keep rebooting?"
    $ arduino-ai ask "What does this error mean?" --mode debug
    $ arduino-ai analyze "avrdude: stk500_getsync(): not in sync: resp=0x00"
    $ arduino-ai search "stk500_getsync" --limit 5
    $ arduino-ai record-fix 3f2a9c0d1b7e4a55 "Select the correct COM port"
    $ arduino-ai stats

Configuration comes from environment variables (and .env), see
arduino_ai.config.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Optional

from .config import AgentSettings
from .domain.entities import ErrorAnalysis
from .domain.exceptions import AgentError
from .factory import create_agent
from .orchestrator.agent import AgentOrchestrator

logger = logging.getLogger(__name__)


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


def _print_analysis(analysis: ErrorAnalysis) -> None:
    print(f"Source: {analysis.source}")
    if analysis.message:
        print(analysis.message)
    if analysis.match:
        print(f"Known error {analysis.match.hash} (seen {analysis.match.occurrence_count}x)")
    for fix_match in analysis.fixes:
        print(f"  - {fix_match.fix.description} (worked {fix_match.success_count}x)")
    for fuzzy in analysis.fuzzy_matches:
        print(f"Similar ({fuzzy.confidence:.1f}): {fuzzy.error.raw_pattern[:120]}")
        for fix_match in fuzzy.fixes:
            print(f"  - {fix_match.fix.description}")
    if analysis.analysis:
        print()
        print(analysis.analysis)


async def run_command(args: argparse.Namespace, agent: AgentOrchestrator) -> int:
    """Run one subcommand. Returns the process exit code."""
    if args.command == "ask":
        result = await agent.process_query(args.question, mode=args.mode)
        if result.error:
            print(f"Error ({result.error_type}): {result.error}", file=sys.stderr)
            return 1
        print(result.response)
        if result.warning:
            print(f"\nWarning: {result.warning}", file=sys.stderr)
        return 0

    if args.command == "analyze":
        _print_analysis(await agent.analyze_error(args.error))
        return 0

    if args.command == "search":
        similar = await agent.memory.search_similar(args.query, limit=args.limit)
        _print_json(similar.to_dict())
        return 0

    if args.command == "record-fix":
        fix = await agent.memory.record_fix(args.signature, args.fix, code=args.code)
        print(f"Recorded fix {fix.id} for {fix.error_signature_hash}")
        return 0

    if args.command == "stats":
        stats = await agent.memory.get_stats()
        _print_json(stats.to_dict())
        return 0

    raise ValueError(f"Unknown command: {args.command}")


async def run(args: argparse.Namespace, settings: AgentSettings) -> int:
    agent = create_agent(settings)
    try:
        return await run_command(args, agent)
    finally:
        await agent.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="arduino-ai",
        description="AI assistant and error memory for Arduino development",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  arduino-ai ask "How do I debounce a button?"
  arduino-ai analyze "avrdude: stk500_getsync(): not in sync"
  arduino-ai search "not declared in this scope" --limit 5
  arduino-ai record-fix <signature-or-error> "Install the missing library"
  arduino-ai stats
        """,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    ask = subparsers.add_parser("ask", help="Ask the assistant a question")
    ask.add_argument("question", help="Question or instruction")
    ask.add_argument(
        "--mode",
        choices=["ask", "debug", "agent"],
        default="ask",
        help="ask: no tools; debug: memory tools; agent: all tools (default: ask)",
    )

    analyze = subparsers.add_parser("analyze", help="Analyze a compiler or upload error")
    analyze.add_argument("error", help="Error text")

    search = subparsers.add_parser("search", help="Search the error memory")
    search.add_argument("query", help="Error text or fragment")
    search.add_argument("--limit", type=int, default=10, help="Maximum matches (default: 10)")

    record = subparsers.add_parser("record-fix", help="Record a fix for an error")
    record.add_argument("signature", help="Signature hash or the raw error text")
    record.add_argument("fix", help="Description of what fixed the error")
    record.add_argument("--code", help="Code snippet of the fix")

    subparsers.add_parser("stats", help="Show error memory statistics")

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = AgentSettings.from_env()
    except AgentError as e:
        print(f"Configuration error: {e.message}", file=sys.stderr)
        return 2

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        return asyncio.run(run(args, settings))
    except (AgentError, ValueError) as e:
        logger.debug("Command failed", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
