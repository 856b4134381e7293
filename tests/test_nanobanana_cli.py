import base64
import io
import json

import pytest
import responses
from PIL import Image

from bridgecli.browser import DEFAULT_DAEMON_URL
from bridgecli.nanobanana_cli import build_parser, main

STATUS_URL = DEFAULT_DAEMON_URL + "/status"
COMMAND_URL = DEFAULT_DAEMON_URL + "/command"


@pytest.fixture
def rsps():
    with responses.RequestsMock(assert_all_requests_are_fired=False) as mock:
        yield mock


def make_png(width, height):
    buf = io.BytesIO()
    Image.new("RGB", (width, height), (10, 200, 90)).save(buf, format="PNG")
    return buf.getvalue()


def step_of(code):
    if "insertText" in code:
        return "inject"
    if "send-button" in code:
        return "send"
    if "download-generated-image-button" in code:
        return "download"
    if "__nbHookV3" in code:
        return "hook"
    if "no_final_url" in code:
        return "fetch"
    if "__nbFinalURLAt" in code:
        return "poll"
    if "generated-image img" in code:
        return "image"
    return "textbox"


def daemon_callback(data, content_type="image/png"):
    values = {
        "textbox": {"ok": True},
        "inject": {"ok": True},
        "send": {"ok": True},
        "image": {"ready": True},
        "hook": {"ok": True},
        "download": {"ok": True},
        "poll": {"url": "https://images.example.com/final", "at": 1},
        "fetch": {
            "ok": True,
            "contentType": content_type,
            "size": len(data),
            "base64": base64.b64encode(data).decode("ascii"),
        },
    }

    def callback(request):
        body = json.loads(request.body)
        if body["action"] == "evaluate":
            value = values[step_of(body["args"]["code"])]
            reply = {"ok": True, "data": {"type": "object", "value": value}}
        else:
            reply = {"ok": True, "data": None}
        return 200, {"Content-Type": "application/json"}, json.dumps(reply)

    return callback


def read_output(capsys):
    return json.loads(capsys.readouterr().out)


def test_parser_defaults():
    args = build_parser().parse_args(["gen", "a cat"])
    assert args.out == "."
    assert args.thumb_width == 256
    assert args.timeout == 300
    assert args.prompt == ["a cat"]


def test_rejects_wrong_argument_count(capsys):
    assert main(["gen", "one", "two"]) == 1
    out = read_output(capsys)
    assert out["ok"] is False
    assert out["error"]["code"] == "invalid_args"
    assert "(got 2)" in out["error"]["message"]


def test_daemon_unreachable(capsys, rsps):
    assert main(["gen", "a cat"]) == 1
    assert read_output(capsys)["error"]["code"] == "daemon_unreachable"


def test_daemon_not_running(capsys, rsps):
    rsps.add(responses.GET, STATUS_URL, json={"running": False})
    assert main(["gen", "a cat"]) == 1
    assert read_output(capsys)["error"]["code"] == "daemon_not_running"


def test_extension_not_connected(capsys, rsps):
    rsps.add(
        responses.GET, STATUS_URL, json={"running": True, "extension_connected": False}
    )
    assert main(["gen", "a cat"]) == 1
    assert read_output(capsys)["error"]["code"] == "extension_not_connected"


def test_successful_generation(capsys, tmp_path, rsps):
    data = make_png(80, 40)
    rsps.add(
        responses.GET, STATUS_URL, json={"running": True, "extension_connected": True}
    )
    rsps.add_callback(responses.POST, COMMAND_URL, callback=daemon_callback(data))
    code = main(["gen", "a banana", "-o", str(tmp_path), "--thumb-width", "20"])
    out = read_output(capsys)
    assert code == 0
    assert out["ok"] is True
    result = out["data"]
    assert result["prompt"] == "a banana"
    assert (result["width"], result["height"]) == (80, 40)
    assert result["thumb_width"] == 20
    with open(result["full"], "rb") as fh:
        assert fh.read() == data
    with Image.open(result["thumb"]) as thumb:
        assert thumb.size[0] == 20


def test_generation_failure_is_reported(capsys, tmp_path, rsps):
    data = make_png(8, 8)
    rsps.add(
        responses.GET, STATUS_URL, json={"running": True, "extension_connected": True}
    )
    rsps.add_callback(
        responses.POST, COMMAND_URL, callback=daemon_callback(data, content_type="text/html")
    )
    assert main(["gen", "a banana", "-o", str(tmp_path)]) == 1
    out = read_output(capsys)
    assert out["error"]["code"] == "gen_failed"
    assert "unexpected content-type: text/html" in out["error"]["message"]