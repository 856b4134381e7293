"""Command line for generating images on Gemini through the browser bridge."""

from __future__ import annotations

import argparse
import sys
from typing import Sequence

from bridgecli import output
from bridgecli.browser import Client, DaemonError
from bridgecli.nanobanana import GenerationError, Options, generate

SESSION_NAME = "nanobanana-cli"
DEFAULT_THUMB_WIDTH = 256
DEFAULT_TIMEOUT_SECONDS = 300


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the ``nanobanana-cli`` command."""
    parser = argparse.ArgumentParser(
        prog="nanobanana-cli",
        description=(
            "Generate images via Google Gemini and save full size plus thumbnail. "
            "Your real Chrome session is driven through the browser-bridge daemon; "
            "the full-resolution PNG is captured from the download chain and a "
            "thumbnail is scaled locally. Requires the daemon running, its Chrome "
            "extension connected, and a signed-in Gemini session."
        ),
    )
    commands = parser.add_subparsers(dest="command")
    gen = commands.add_parser(
        "gen", help="Generate an image from a prompt, save full + thumbnail"
    )
    gen.add_argument("prompt", nargs="*", help="the image prompt")
    gen.add_argument(
        "-o", "--out", default=".",
        help="output directory for *-full.png and *-thumb.png",
    )
    gen.add_argument(
        "--thumb-width", type=int, default=DEFAULT_THUMB_WIDTH,
        help="thumbnail width in px (height preserves aspect ratio)",
    )
    gen.add_argument(
        "--timeout", type=int, default=DEFAULT_TIMEOUT_SECONDS,
        help="max seconds to wait for image generation (thinking modes can exceed 2 minutes)",
    )
    return parser


def _run_gen(args: argparse.Namespace) -> int:
    if len(args.prompt) != 1:
        output.error(
            "invalid_args",
            f"gen requires exactly one <prompt> argument (got {len(args.prompt)})",
        )
        return 1
    client = Client(SESSION_NAME, timeout=120.0)
    try:
        status = client.status()
    except DaemonError as exc:
        output.error("daemon_unreachable", str(exc))
        return 1
    if not status.running:
        output.error("daemon_not_running", "browser-bridge daemon is not running")
        return 1
    if not status.extension_connected:
        output.error("extension_not_connected", "Chrome WebBridge extension is not connected")
        return 1

    options = Options(
        prompt=args.prompt[0],
        out_dir=args.out,
        thumb_width=args.thumb_width,
        timeout=float(args.timeout),
    )
    try:
        result = generate(client, options)
    except (GenerationError, DaemonError, OSError, ValueError) as exc:
        output.error("gen_failed", str(exc))
        return 1
    output.success(result)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Run the command and return its exit status."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command == "gen":
        return _run_gen(args)
    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())