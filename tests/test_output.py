import json
from dataclasses import dataclass

from bridgecli import output


@dataclass
class _Point:
    y: int
    x: int


class _Custom:
    def to_json(self):
        return {"kind": "custom"}


def test_success_exact_layout(capsys):
    output.success({"a": 1})
    out = capsys.readouterr().out
    assert out == '{\n  "data": {\n    "a": 1\n  },\n  "ok": true\n}\n'


def test_success_round_trip(capsys):
    payload = {"query": "weather", "count": 2, "results": [1, 2]}
    output.success(payload)
    parsed = json.loads(capsys.readouterr().out)
    assert parsed == {"ok": True, "data": payload}


def test_error_envelope(capsys):
    output.error("search_failed", "query is empty")
    parsed = json.loads(capsys.readouterr().out)
    assert parsed == {
        "ok": False,
        "error": {"code": "search_failed", "message": "query is empty"},
    }


def test_non_ascii_and_html_are_not_escaped(capsys):
    output.success({"q": "天气 北京 <b>&</b>"})
    out = capsys.readouterr().out
    assert "天气 北京 <b>&</b>" in out


def test_dataclass_keeps_field_order(capsys):
    output.success(_Point(y=2, x=1))
    out = capsys.readouterr().out
    assert out.index('"y"') < out.index('"x"')
    assert json.loads(out)["data"] == {"y": 2, "x": 1}


def test_to_json_hook_is_used(capsys):
    output.success([_Custom()])
    parsed = json.loads(capsys.readouterr().out)
    assert parsed["data"] == [{"kind": "custom"}]


def test_unencodable_value_reports_on_stderr(capsys):
    output.success(float("nan"))
    captured = capsys.readouterr()
    assert captured.out == ""
    assert captured.err.startswith("output error: ")


def test_unknown_object_reports_on_stderr(capsys):
    output.success(object())
    captured = capsys.readouterr()
    assert captured.out == ""
    assert "output error: " in captured.err