"""CLI entrypoint for pm-intelligence.

Every subcommand runs one tool through :class:`PMToolbox` and prints its JSON
result on stdout. Logs go to stderr.
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Any

from pydantic import ValidationError

from pm_intelligence import __version__
from pm_intelligence.config import PMSettings
from pm_intelligence.logging import configure_logging
from pm_intelligence.tools import PMToolbox
from pm_intelligence.workflow import valid_state_names

logger = logging.getLogger(__name__)

# Commands that never talk to GitHub.
_LOCAL_COMMANDS = {"board", "bulk-move", "move", "cache-stats"}


def _parse_issue_numbers(values: list[str]) -> list[int]:
    numbers: list[int] = []
    for value in values:
        for part in value.split(","):
            part = part.strip().lstrip("#")
            if not part:
                continue
            number = int(part)
            if number <= 0:
                raise ValueError(f"Issue numbers must be positive: {part}")
            numbers.append(number)
    return numbers


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pm-intelligence",
        description="Project-management intelligence: triage, board health, bulk moves",
    )
    parser.add_argument("--version", action="version", version=f"pm-intelligence {__version__}")

    subparsers = parser.add_subparsers(dest="command", required=True)

    sync = subparsers.add_parser("sync", help="Pull issues from GitHub into the local store")
    sync.add_argument(
        "--force",
        action="store_true",
        help="Full refresh instead of an incremental sync",
    )

    subparsers.add_parser("board", help="Show workflow and priority counts for open issues")

    bulk_triage = subparsers.add_parser(
        "bulk-triage",
        help="Suggest labels for open issues missing type:/area: labels (no changes applied)",
    )
    bulk_triage.add_argument(
        "--max-issues",
        type=int,
        default=20,
        help="Maximum issues to process (default 20)",
    )
    bulk_triage.add_argument(
        "--state",
        default=None,
        help=f"Only consider issues in this workflow state ({', '.join(valid_state_names())})",
    )

    bulk_move = subparsers.add_parser(
        "bulk-move", help="Move several issues to one workflow state"
    )
    bulk_move.add_argument(
        "issues",
        nargs="+",
        help="Issue numbers (space or comma separated)",
    )
    bulk_move.add_argument(
        "--to",
        dest="target_state",
        required=True,
        help=f"Target workflow state ({', '.join(valid_state_names())})",
    )
    bulk_move.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would move without changing anything",
    )

    move = subparsers.add_parser("move", help="Move one issue to a workflow state")
    move.add_argument("issue_number", type=int, help="Issue number")
    move.add_argument("--to", dest="target_state", required=True, help="Target workflow state")

    subparsers.add_parser("cache-stats", help="Show cache entry counts (this process only)")

    return parser


def _tool_call(args: argparse.Namespace) -> tuple[str, dict[str, Any]]:
    if args.command == "sync":
        return "sync_from_github", {"force": args.force}
    if args.command == "board":
        return "board_overview", {}
    if args.command == "bulk-triage":
        return "bulk_triage", {"max_items": args.max_issues, "state": args.state}
    if args.command == "bulk-move":
        return "bulk_move", {
            "issue_numbers": _parse_issue_numbers(args.issues),
            "target_state": args.target_state,
            "dry_run": args.dry_run,
        }
    if args.command == "move":
        return "move_issue", {"issue_number": args.issue_number, "target_state": args.target_state}
    if args.command == "cache-stats":
        return "cache_stats", {}
    raise ValueError(f"Unknown command: {args.command}")


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = PMSettings()
    except ValidationError as e:
        # Logging isn't configured yet; keep it simple and actionable.
        print("Configuration error (check your .env):", file=sys.stderr)
        print(e, file=sys.stderr)
        return 2

    configure_logging(settings.log_level, fmt=settings.log_format)

    try:
        tool_name, params = _tool_call(args)
    except ValueError as e:
        print(str(e), file=sys.stderr)
        return 2

    try:
        toolbox = PMToolbox.from_settings(
            settings, with_github=args.command not in _LOCAL_COMMANDS
        )
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2
    except Exception:
        logger.exception("Failed to initialise")
        return 1

    try:
        response = toolbox.call(tool_name, **params)
    finally:
        toolbox.close()

    text = response["content"][0]["text"]
    if response.get("isError"):
        print(text, file=sys.stderr)
        return 1

    print(text)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
