"""HTTP client for the local browser-bridge daemon."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

import requests

DEFAULT_DAEMON_URL = "http://127.0.0.1:10086"


class DaemonError(Exception):
    """The daemon could not carry out a command."""

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.code = code


class DaemonUnreachableError(DaemonError):
    """No connection could be made to the daemon."""


@dataclass(frozen=True)
class Status:
    """State reported by the daemon's ``/status`` endpoint."""

    running: bool = False
    extension_connected: bool = False
    extension_version: str = ""
    version: str = ""

    @classmethod
    def from_json(cls, obj: Any) -> "Status":
        if not isinstance(obj, dict):
            raise TypeError("status must be a JSON object")
        values: dict[str, Any] = {}
        for name, kind in (
            ("running", bool),
            ("extension_connected", bool),
            ("extension_version", str),
            ("version", str),
        ):
            value = obj.get(name)
            if value is None:
                continue
            if not isinstance(value, kind):
                raise TypeError(f"field {name!r} must be of type {kind.__name__}")
            values[name] = value
        return cls(**values)


def _json_text(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False)


class Client:
    """Sends commands to the daemon on behalf of one named session."""

    def __init__(
        self,
        session: str,
        timeout: float = 90.0,
        base_url: str = DEFAULT_DAEMON_URL,
    ) -> None:
        self.session = session
        self.timeout = timeout
        self.base_url = base_url
        self._http = requests.Session()

    def status(self) -> Status:
        """Query the daemon's running and extension state."""
        try:
            resp = self._http.get(self.base_url + "/status", timeout=self.timeout)
            body = resp.text
        except requests.RequestException as exc:
            raise DaemonUnreachableError(
                f"daemon unreachable at {self.base_url}: {exc}"
            ) from exc
        try:
            return Status.from_json(json.loads(body))
        except (ValueError, TypeError) as exc:
            raise DaemonError(f"parse status: {exc} (body={body})") from exc

    def call(self, action: str, args: dict[str, Any] | None = None) -> Any:
        """Run one command and return its ``data`` payload."""
        payload: dict[str, Any] = {"action": action, "session": self.session}
        if args is not None:
            payload["args"] = args
        try:
            resp = self._http.post(
                self.base_url + "/command",
                data=json.dumps(payload).encode("utf-8"),
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
            content = resp.content
        except requests.RequestException as exc:
            raise DaemonUnreachableError(
                f"daemon unreachable at {self.base_url}: {exc}"
            ) from exc

        try:
            result = json.loads(content)
        except ValueError as exc:
            raise DaemonError(f"decode daemon response: {exc}") from exc
        if not isinstance(result, dict):
            raise DaemonError("decode daemon response: expected a JSON object")
        ok = result.get("ok")
        if ok is not None and not isinstance(ok, bool):
            raise DaemonError("decode daemon response: field 'ok' must be a boolean")

        if not ok:
            err = result.get("error")
            if isinstance(err, dict):
                code = err.get("code") or ""
                message = err.get("message") or ""
                raise DaemonError(f"{code}: {message}", code=code)
            raise DaemonError("daemon returned ok=false without error payload")
        return result.get("data")

    def navigate(self, url: str, new_tab: bool = False) -> None:
        """Load ``url`` in the session's tab, or in a new one."""
        self.call("navigate", {"url": url, "newTab": new_tab})

    def click(self, selector: str) -> None:
        """Click the first element matching ``selector``."""
        self.call("click", {"selector": selector})

    def evaluate(self, code: str) -> Any:
        """Run JavaScript and return the daemon's ``{type, value}`` envelope."""
        return self.call("evaluate", {"code": code})

    def evaluate_value(self, code: str) -> Any:
        """Run JavaScript and return the value of its result."""
        envelope = self.evaluate(code)
        if envelope is None:
            envelope = {}
        if not isinstance(envelope, dict):
            raise DaemonError("parse evaluate wrapper: expected a JSON object")
        if "value" not in envelope:
            kind = envelope.get("type") or ""
            raise DaemonError(f"evaluate returned no value (type={kind})")
        return envelope["value"]

    def evaluate_json(self, code: str) -> Any:
        """Run JavaScript ending in ``JSON.stringify(...)`` and decode its result."""
        envelope = self.evaluate(code)
        if envelope is None:
            envelope = {}
        if not isinstance(envelope, dict):
            raise DaemonError("decode evaluate envelope: expected a JSON object")
        kind = envelope.get("type")
        value = envelope.get("value")
        if (kind is not None and not isinstance(kind, str)) or (
            value is not None and not isinstance(value, str)
        ):
            raise DaemonError(
                "decode evaluate envelope: 'type' and 'value' must be strings"
            )
        if kind != "string":
            raise DaemonError(
                f"expected evaluate type=string, got {_json_text(kind or '')} "
                "— did the code end with JSON.stringify(...)?"
            )
        try:
            return json.loads(value or "")
        except ValueError as exc:
            raise DaemonError(f"decode evaluate value: {exc}") from exc

    def evaluate_unwrapped(self, code: str) -> Any:
        """Run JavaScript and return its value, or the raw payload if it is not wrapped."""
        raw = self.evaluate(code)
        if not isinstance(raw, dict) or "value" not in raw:
            return raw
        kind = raw.get("type")
        if kind is not None and not isinstance(kind, str):
            return raw
        return raw["value"]