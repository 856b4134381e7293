import base64
import json
import os

import pytest
import requests
import responses

from bridgecli.browser import DEFAULT_DAEMON_URL
from bridgecli.chatgpt_cli import build_parser, main

STATUS_URL = DEFAULT_DAEMON_URL + "/status"
COMMAND_URL = DEFAULT_DAEMON_URL + "/command"
PNG_BYTES = b"\x89PNG\r\n\x1a\ncli-image"


@pytest.fixture
def rsps():
    with responses.RequestsMock(assert_all_requests_are_fired=False) as mock:
        yield mock


def _read(capsys):
    return json.loads(capsys.readouterr().out)


def _evaluate_answer(code):
    if "arrayBuffer" in code:
        return {"ok": True, "contentType": "image/png", "size": len(PNG_BYTES),
                "base64": base64.b64encode(PNG_BYTES).decode()}
    if "/backend-api/estuary/content" in code:
        return [{"src": "https://x/backend-api/estuary/content?id=file_n", "alt": "Generated image",
                 "fileId": "file_n", "w": 1024, "h": 1024}]
    if "out.push(m[1])" in code:
        return []
    if "window.location.pathname" in code:
        return {"url": "https://chatgpt.com/c/abc"}
    if "document.body.innerText" in code:
        return {"err": ""}
    return {"ok": True}


def _command_callback(request):
    payload = json.loads(request.body)
    assert payload["session"] == "chatgpt-image-cli"
    if payload["action"] == "evaluate":
        data = {"type": "object", "value": _evaluate_answer(payload["args"]["code"])}
    else:
        data = None
    return 200, {}, json.dumps({"ok": True, "data": data})


def test_parser_defaults_and_alias():
    args = build_parser().parse_args(["gen", "a cat", "-o", "pics"])
    assert args.command == "gen"
    assert args.prompt == ["a cat"]
    assert args.out == "pics"
    assert args.timeout == 180


def test_missing_prompt_is_invalid(capsys):
    assert main(["generate"]) == 1
    out = _read(capsys)
    assert out["ok"] is False
    assert out["error"]["code"] == "invalid_args"
    assert out["error"]["message"] == "generate requires exactly one <prompt> argument (got 0)"


def test_two_prompts_are_invalid(capsys):
    assert main(["gen", "a", "b"]) == 1
    assert _read(capsys)["error"]["message"].endswith("(got 2)")


def test_daemon_unreachable(capsys, rsps):
    rsps.add(responses.GET, STATUS_URL, body=requests.ConnectionError("refused"))
    assert main(["generate", "x"]) == 1
    out = _read(capsys)
    assert out["error"]["code"] == "daemon_unreachable"
    assert "daemon unreachable" in out["error"]["message"]


def test_daemon_not_running(capsys, rsps):
    rsps.add(responses.GET, STATUS_URL, json={"running": False, "extension_connected": True})
    assert main(["generate", "x"]) == 1
    assert _read(capsys)["error"]["code"] == "daemon_not_running"


def test_extension_not_connected(capsys, rsps):
    rsps.add(responses.GET, STATUS_URL, json={"running": True, "extension_connected": False})
    assert main(["generate", "x"]) == 1
    out = _read(capsys)
    assert out["error"] == {
        "code": "extension_not_connected",
        "message": "Chrome WebBridge extension is not connected",
    }


def test_generation_failure_reported(capsys, tmp_path, rsps):
    rsps.add(responses.GET, STATUS_URL, json={"running": True, "extension_connected": True})
    rsps.add(responses.POST, COMMAND_URL,
             json={"ok": False, "error": {"code": "NAV", "message": "no tab"}})
    assert main(["generate", "x", "-o", str(tmp_path)]) == 1
    out = _read(capsys)
    assert out["error"]["code"] == "generate_failed"
    assert out["error"]["message"] == "navigate: NAV: no tab"


def test_successful_generation(capsys, tmp_path, rsps):
    rsps.add(responses.GET, STATUS_URL, json={"running": True, "extension_connected": True})
    rsps.add_callback(responses.POST, COMMAND_URL, callback=_command_callback)
    assert main(["generate", "a red apple", "-o", str(tmp_path)]) == 0
    out = _read(capsys)
    assert out["ok"] is True
    data = out["data"]
    assert data["prompt"] == "a red apple"
    assert data["bytes"] == len(PNG_BYTES)
    assert data["caption"] == "Generated image"
    assert data["conversation_url"] == "https://chatgpt.com/c/abc"
    assert os.path.dirname(data["path"]) == str(tmp_path)
    with open(data["path"], "rb") as fh:
        assert fh.read() == PNG_BYTES