"""Command line for generating images on chatgpt.com through the browser bridge."""

from __future__ import annotations

import argparse
import sys
from typing import Sequence

from bridgecli import output
from bridgecli.browser import Client, DaemonError
from bridgecli.chatgpt import GenerationError, Options, generate

SESSION_NAME = "chatgpt-image-cli"
DEFAULT_TIMEOUT_SECONDS = 180

_EXAMPLES = """examples:
  chatgpt-image-cli generate "a red apple on a wooden table"
  chatgpt-image-cli generate "夕阳下的富士山" -o ./images
  chatgpt-image-cli gen "a cat in a space suit" --timeout 180"""


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the ``chatgpt-image-cli`` command."""
    parser = argparse.ArgumentParser(
        prog="chatgpt-image-cli",
        description=(
            "Generate images on chatgpt.com/images via your logged-in Chrome "
            "session. Requires the browser-bridge daemon running, its Chrome "
            "extension connected, and a signed-in chatgpt.com session."
        ),
    )
    commands = parser.add_subparsers(dest="command")
    gen = commands.add_parser(
        "generate",
        aliases=["gen"],
        help="Generate an image from a prompt and save the PNG",
        epilog=_EXAMPLES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    gen.add_argument("prompt", nargs="*", help="the image prompt")
    gen.add_argument(
        "-o", "--out", default=".", help="output directory for the saved PNG"
    )
    gen.add_argument(
        "--timeout",
        type=int,
        default=DEFAULT_TIMEOUT_SECONDS,
        help="max seconds to wait for image generation",
    )
    return parser


def _run_generate(args: argparse.Namespace) -> int:
    if len(args.prompt) != 1:
        output.error(
            "invalid_args",
            f"generate requires exactly one <prompt> argument (got {len(args.prompt)})",
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

    options = Options(prompt=args.prompt[0], out_dir=args.out, timeout=float(args.timeout))
    try:
        result = generate(client, options)
    except (GenerationError, DaemonError, OSError, ValueError) as exc:
        output.error("generate_failed", str(exc))
        return 1
    output.success(result)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Run the command and return its exit status."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command in ("generate", "gen"):
        return _run_generate(args)
    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())