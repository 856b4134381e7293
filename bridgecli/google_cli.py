"""Command line for Google search through the browser bridge.

Every command prints ``{"ok": true, "data": ...}`` on success and
``{"ok": false, "error": {...}}`` on failure, and exits non-zero on failure.
"""

from __future__ import annotations

import argparse
import sys
from typing import Sequence

from bridgecli import output
from bridgecli.browser import Client, DaemonError
from bridgecli.google_search import (
    DEFAULT_LANGUAGE,
    DEFAULT_LIMIT,
    ConsentRequiredError,
    EmptyContentError,
    InvalidURLError,
    fetch_result,
    fetch_search,
)

SESSION_NAME = "google-cli"


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the ``google-cli`` command."""
    parser = argparse.ArgumentParser(
        prog="google-cli",
        description=(
            "Google Search CLI backed by the browser-bridge daemon. All commands "
            "emit JSON on stdout and exit non-zero on failure."
        ),
    )
    commands = parser.add_subparsers(dest="command")

    search_parser = commands.add_parser(
        "search", help="Search Google and return structured results"
    )
    search_parser.add_argument("query", nargs="*", help="search words")
    search_parser.add_argument(
        "--limit", type=int, default=DEFAULT_LIMIT,
        help="maximum number of results to return",
    )
    search_parser.add_argument(
        "--hl", default=DEFAULT_LANGUAGE,
        help="Google UI language (en/zh-CN/etc.) — affects DOM stability",
    )

    result_parser = commands.add_parser(
        "result", help="Fetch a page and extract title, description, and text"
    )
    result_parser.add_argument("url", nargs="*", help="page address")
    return parser


def _run_search(args: argparse.Namespace) -> int:
    if not args.query:
        output.error("missing_args", "search requires a query: google-cli search <query>")
        return 1
    query = " ".join(args.query)
    client = Client(SESSION_NAME, timeout=90.0)
    try:
        results = fetch_search(client, query, args.limit, args.hl)
    except ConsentRequiredError as exc:
        output.error("consent_required", str(exc))
        return 1
    except (DaemonError, ValueError) as exc:
        message = str(exc)
        code = "daemon_unreachable" if "daemon unreachable" in message else "search_failed"
        output.error(code, message)
        return 1
    if not results:
        output.error(
            "no_results",
            "google returned no parseable results (selectors may have drifted)",
        )
        return 1
    output.success(results)
    return 0


def _run_result(args: argparse.Namespace) -> int:
    if not args.url:
        output.error("missing_args", "result requires a URL: google-cli result <url>")
        return 1
    client = Client(SESSION_NAME, timeout=90.0)
    try:
        page = fetch_result(client, args.url[0])
    except InvalidURLError as exc:
        output.error("invalid_url", str(exc))
        return 1
    except EmptyContentError as exc:
        output.error("empty_content", str(exc))
        return 1
    except (DaemonError, ValueError) as exc:
        message = str(exc)
        code = "daemon_unreachable" if "daemon unreachable" in message else "result_failed"
        output.error(code, message)
        return 1
    output.success(page)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Run the command and return its exit status."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command == "search":
        return _run_search(args)
    if args.command == "result":
        return _run_result(args)
    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())