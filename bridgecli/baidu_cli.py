"""Command line for searching baidu.com through the browser bridge."""

from __future__ import annotations

import argparse
import sys
from typing import Sequence

from bridgecli import output
from bridgecli.baidu import DEFAULT_LIMIT, search
from bridgecli.browser import Client, DaemonError

SESSION_NAME = "baidu"


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the ``baidu-cli`` command."""
    parser = argparse.ArgumentParser(
        prog="baidu-cli",
        description=(
            "Automate baidu search via the browser-bridge daemon. A real Chrome "
            "tab is driven, so the result page is fetched with full user context."
        ),
    )
    commands = parser.add_subparsers(dest="command")
    search_parser = commands.add_parser(
        "search",
        help="Run a baidu web search and return structured results",
        description=(
            "Navigates to https://www.baidu.com/s?wd=<query> and extracts the "
            "result list from the rendered page."
        ),
    )
    search_parser.add_argument("query", nargs="+", help="search words")
    search_parser.add_argument(
        "-n", "--limit", type=int, default=DEFAULT_LIMIT, help="max results to return"
    )
    search_parser.add_argument(
        "--all",
        action="store_true",
        help="include aladdin cards / filtered tpls (bypass organic filter)",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the command and return its exit status."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 0

    query = " ".join(args.query)
    client = Client(SESSION_NAME, timeout=90.0)
    try:
        results = search(client, query, args.limit, args.all)
    except (DaemonError, ValueError) as exc:
        output.error("search_failed", str(exc))
        return 1
    output.success({"count": len(results), "query": query, "results": results})
    return 0


if __name__ == "__main__":
    sys.exit(main())