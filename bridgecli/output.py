"""JSON envelopes written to standard output by the command-line tools."""

from __future__ import annotations

import dataclasses
import json
import sys
from typing import Any


def _default(obj: Any) -> Any:
    to_json = getattr(obj, "to_json", None)
    if callable(to_json):
        return to_json()
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return dataclasses.asdict(obj)
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def _print_json(value: Any) -> None:
    try:
        text = json.dumps(
            value,
            indent=2,
            ensure_ascii=False,
            allow_nan=False,
            default=_default,
        )
    except (TypeError, ValueError) as exc:
        print(f"output error: {exc}", file=sys.stderr)
        return
    sys.stdout.write(text + "\n")
    sys.stdout.flush()


def success(data: Any) -> None:
    """Print ``{"data": ..., "ok": true}`` to standard output."""
    _print_json({"data": data, "ok": True})


def error(code: str, message: str) -> None:
    """Print ``{"error": {"code": ..., "message": ...}, "ok": false}`` to standard output."""
    _print_json({"error": {"code": code, "message": message}, "ok": False})