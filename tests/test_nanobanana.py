import base64
import io
import os
from unittest import mock

import pytest
from PIL import Image

from bridgecli.browser import DaemonError
from bridgecli.nanobanana import (
    GEMINI_URL,
    GenerationError,
    Options,
    Result,
    generate,
    png_dimensions,
    write_thumbnail,
)


def make_png(width, height, color=(200, 30, 40)):
    buf = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buf, format="PNG")
    return buf.getvalue()


def make_jpeg(width, height):
    buf = io.BytesIO()
    Image.new("RGB", (width, height), (1, 2, 3)).save(buf, format="JPEG")
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
    if "contenteditable" in code:
        return "textbox"
    raise AssertionError("unexpected script")


class FakeClient:
    def __init__(self, data, **overrides):
        self.navigated = []
        self.steps = []
        self.codes = []
        self.replies = {
            "textbox": {"ok": True},
            "inject": {"ok": True},
            "send": {"ok": True},
            "image": {"ready": True},
            "hook": {"ok": True},
            "download": {"ok": True},
            "poll": {"url": "https://images.example.com/final", "at": 1},
            "fetch": {
                "ok": True,
                "contentType": "image/png",
                "size": len(data),
                "base64": base64.b64encode(data).decode("ascii"),
            },
        }
        self.replies.update(overrides)

    def navigate(self, url, new_tab=False):
        self.navigated.append((url, new_tab))

    def evaluate_value(self, code):
        step = step_of(code)
        self.steps.append(step)
        self.codes.append(code)
        reply = self.replies[step]
        if isinstance(reply, Exception):
            raise reply
        return reply


def test_png_dimensions_reads_header():
    assert png_dimensions(make_png(37, 21)) == (37, 21)


def test_png_dimensions_rejects_jpeg():
    with pytest.raises(ValueError):
        png_dimensions(make_jpeg(10, 10))


def test_png_dimensions_rejects_garbage():
    with pytest.raises(ValueError):
        png_dimensions(b"definitely not an image")


def test_write_thumbnail_square_keeps_aspect(tmp_path):
    path = tmp_path / "thumb.png"
    write_thumbnail(make_png(40, 40), str(path), 10)
    with Image.open(path) as img:
        assert img.format == "PNG"
        assert img.size == (10, 10)
        assert img.mode == "RGBA"


def test_write_thumbnail_clamps_height_to_one(tmp_path):
    path = tmp_path / "thumb.png"
    write_thumbnail(make_png(100, 1), str(path), 10)
    with Image.open(path) as img:
        assert img.size == (10, 1)


def test_write_thumbnail_rejects_non_png(tmp_path):
    path = tmp_path / "thumb.png"
    with pytest.raises(ValueError, match="decode png"):
        write_thumbnail(make_jpeg(20, 20), str(path), 10)
    assert not path.exists()


def test_write_thumbnail_rejects_non_positive_width(tmp_path):
    with pytest.raises(ValueError):
        write_thumbnail(make_png(20, 20), str(tmp_path / "t.png"), 0)


def test_generate_saves_full_and_thumbnail(tmp_path):
    data = make_png(64, 32)
    client = FakeClient(data)
    out_dir = tmp_path / "out"
    result = generate(client, Options(prompt="a banana", out_dir=str(out_dir), thumb_width=16))

    assert isinstance(result, Result)
    assert client.navigated == [(GEMINI_URL, True)]
    assert client.steps == [
        "textbox", "inject", "send", "image", "hook", "download", "poll", "fetch",
    ]
    assert '"a banana"' in client.codes[1]
    assert (result.width, result.height) == (64, 32)
    assert result.thumb_width == 16
    assert result.prompt == "a banana"
    assert os.path.isabs(result.full) and os.path.isabs(result.thumb)
    assert result.full.endswith("-full.png")
    assert result.thumb.endswith("-thumb.png")
    with open(result.full, "rb") as fh:
        assert fh.read() == data
    with Image.open(result.thumb) as thumb:
        assert thumb.size[0] == 16
    assert result.to_json()["thumb_width"] == 16


def test_generate_uses_default_thumb_width(tmp_path):
    client = FakeClient(make_png(512, 512))
    result = generate(client, Options(prompt="p", out_dir=str(tmp_path), thumb_width=0))
    assert result.thumb_width == 256
    with Image.open(result.thumb) as thumb:
        assert thumb.size == (256, 256)


def test_generate_rejects_empty_prompt(tmp_path):
    client = FakeClient(make_png(4, 4))
    with pytest.raises(GenerationError, match="prompt is empty"):
        generate(client, Options(prompt="", out_dir=str(tmp_path)))
    assert client.navigated == []


def test_generate_wraps_navigate_error(tmp_path):
    class Broken(FakeClient):
        def navigate(self, url, new_tab=False):
            raise DaemonError("E: boom", code="E")

    with pytest.raises(GenerationError, match="^navigate: E: boom"):
        generate(Broken(make_png(4, 4)), Options(prompt="p", out_dir=str(tmp_path)))


def test_generate_reports_inject_failure(tmp_path):
    client = FakeClient(make_png(4, 4), inject={"ok": False, "err": "textbox_not_found"})
    with pytest.raises(GenerationError, match="inject prompt failed: textbox_not_found"):
        generate(client, Options(prompt="p", out_dir=str(tmp_path)))


def test_generate_reports_missing_send_button(tmp_path):
    client = FakeClient(make_png(4, 4), send={"ok": False, "err": "send_button_not_found"})
    with pytest.raises(GenerationError, match="click send failed: send_button_not_found"):
        generate(client, Options(prompt="p", out_dir=str(tmp_path)))


def test_generate_reports_missing_download_button(tmp_path):
    client = FakeClient(
        make_png(4, 4), download={"ok": False, "err": "download_button_not_found"}
    )
    with pytest.raises(GenerationError, match="click download failed: download_button_not_found"):
        generate(client, Options(prompt="p", out_dir=str(tmp_path)))
    assert "hook" in client.steps


def test_generate_reports_hook_failure(tmp_path):
    client = FakeClient(make_png(4, 4), hook={"ok": False})
    with pytest.raises(GenerationError, match="install download hook: unknown failure"):
        generate(client, Options(prompt="p", out_dir=str(tmp_path)))


def test_generate_reports_fetch_status(tmp_path):
    client = FakeClient(make_png(4, 4), fetch={"ok": False, "err": "fetch_failed", "status": 403})
    with pytest.raises(GenerationError, match=r"fetch_failed \(status=403\)"):
        generate(client, Options(prompt="p", out_dir=str(tmp_path)))


def test_generate_rejects_non_image_content_type(tmp_path):
    client = FakeClient(
        make_png(4, 4),
        fetch={"ok": True, "contentType": "text/html", "size": 12, "base64": ""},
    )
    with pytest.raises(GenerationError, match=r"unexpected content-type: text/html \(size=12\)"):
        generate(client, Options(prompt="p", out_dir=str(tmp_path)))


def test_generate_rejects_non_png_payload(tmp_path):
    data = make_jpeg(8, 8)
    client = FakeClient(
        data,
        fetch={
            "ok": True,
            "contentType": "image/jpeg",
            "size": len(data),
            "base64": base64.b64encode(data).decode("ascii"),
        },
    )
    with pytest.raises(GenerationError, match="parse downloaded PNG"):
        generate(client, Options(prompt="p", out_dir=str(tmp_path)))
    assert list(tmp_path.iterdir()) == []


def test_generate_rejects_bad_base64(tmp_path):
    client = FakeClient(
        make_png(4, 4),
        fetch={"ok": True, "contentType": "image/png", "size": 3, "base64": "!!!"},
    )
    with pytest.raises(GenerationError, match="base64 decode"):
        generate(client, Options(prompt="p", out_dir=str(tmp_path)))


@mock.patch("time.sleep")
def test_generate_times_out_waiting_for_image(_sleep, tmp_path):
    client = FakeClient(make_png(4, 4), image={"ready": False})
    with pytest.raises(GenerationError, match="timeout waiting for generated image"):
        generate(client, Options(prompt="p", out_dir=str(tmp_path), timeout=0.05))
    assert "hook" not in client.steps


def test_generate_fails_fast_on_image_poll_error(tmp_path):
    client = FakeClient(make_png(4, 4), image=DaemonError("X: gone", code="X"))
    with pytest.raises(GenerationError, match="poll image: X: gone"):
        generate(client, Options(prompt="p", out_dir=str(tmp_path)))