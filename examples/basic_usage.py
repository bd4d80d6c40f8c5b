#!/usr/bin/env python3
"""Programmatic toolbox example.

This demonstrates using the pm-intelligence components directly:

* load settings from `.env`
* sync issues into `.pm/issues.json` (when a token is configured)
* preview a bulk move, then print cache and metrics snapshots

Issue numbers and the target state are passed as arguments.
"""

from __future__ import annotations

import argparse
import json
from typing import Sequence

from pm_intelligence.config import PMSettings
from pm_intelligence.logging import configure_logging
from pm_intelligence.tools import PMToolbox


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Preview a bulk workflow move (programmatic example).")
    parser.add_argument("issues", nargs="+", type=int, help="Issue numbers")
    parser.add_argument("--to", dest="target_state", required=True, help="Target workflow state")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)

    settings = PMSettings()
    configure_logging(settings.log_level, fmt=settings.log_format)

    toolbox = PMToolbox.from_settings(settings)
    try:
        if toolbox.github is not None:
            sync = toolbox.call("sync_from_github")
            print(sync["content"][0]["text"])

        preview = toolbox.call(
            "bulk_move", issue_numbers=args.issues, target_state=args.target_state, dry_run=True
        )
        print(preview["content"][0]["text"])
        if preview.get("isError"):
            return 1

        print(json.dumps({"cache": toolbox.cache_stats(), "metrics": toolbox.tool_metrics()}, indent=2))
    finally:
        toolbox.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
