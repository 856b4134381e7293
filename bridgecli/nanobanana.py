"""Image generation on Gemini through the browser bridge, saving full size and thumbnail."""

from __future__ import annotations

import base64
import binascii
import dataclasses
import io
import json
import os
import time
from dataclasses import dataclass
from typing import Any, Callable, TypeVar

from PIL import Image

from bridgecli.browser import Client, DaemonError

GEMINI_URL = "https://gemini.google.com/"
DEFAULT_THUMB_WIDTH = 256
DEFAULT_TIMEOUT = 300.0

_T = TypeVar("_T")

_TEXTBOX_JS = """(function(){
		const tb = document.querySelector('div[contenteditable="true"][role="textbox"]');
		return { ok: !!tb };
	})()"""

_INJECT_JS = """(function(){
		const tb = document.querySelector('div[contenteditable="true"][role="textbox"]');
		if (!tb) return { ok: false, err: 'textbox_not_found' };
		tb.focus();
		document.execCommand('selectAll', false, null);
		document.execCommand('insertText', false, %s);
		return { ok: true };
	})()"""

_CLICK_SEND_JS = """(function(){
		const selectors = ['button.send-button','button[aria-label="发送"]','button[aria-label="Send"]'];
		for (const sel of selectors) {
			const b = document.querySelector(sel);
			if (b && !b.disabled) { b.click(); return { ok: true }; }
		}
		return { ok: false, err: 'send_button_not_found' };
	})()"""

_DISPLAYED_IMAGE_JS = """(function(){
		const img = document.querySelector('generated-image img, .generated-image img, single-image img');
		if (!img || !img.complete || img.naturalWidth === 0) return { ready: false };
		return { ready: true };
	})()"""

_CLICK_DOWNLOAD_JS = """(function(){
		const b = document.querySelector('[data-test-id="download-generated-image-button"]');
		if (!b) return { ok: false, err: 'download_button_not_found' };
		b.click();
		return { ok: true };
	})()"""

# Wraps window.fetch so the response carrying the final image URL is captured
# and replaced by an empty one; the page's download chain then stops without
# the browser's download manager (and its save dialog) ever being involved.
_DOWNLOAD_HOOK_JS = """(function(){
		if (window.__nbHookV3) return { ok: true, already: true };
		window.__nbHookV3 = true;
		window.__nbFinalURL = null;
		window.__nbFinalURLAt = 0;
		if (!window.__nbOrigFetch) window.__nbOrigFetch = window.fetch;
		const origFetch = window.__nbOrigFetch;
		window.fetch = async function(input, init){
			const url = typeof input === 'string' ? input : (input && input.url) || '';
			if (url.includes('work.fife.usercontent.google.com/rd-gg-dl/')) {
				const resp = await origFetch.apply(this, arguments);
				try {
					const text = await resp.clone().text();
					window.__nbFinalURL = (text || '').trim();
					window.__nbFinalURLAt = Date.now();
				} catch (e) { /* ignore */ }
				return new Response('', { status: 200, statusText: 'OK',
					headers: { 'content-type': 'text/plain' } });
			}
			return origFetch.apply(this, arguments);
		};
		return { ok: true };
	})()"""

_POLL_FINAL_URL_JS = (
    "(function(){ return { url: window.__nbFinalURL || '', at: window.__nbFinalURLAt || 0 }; })()"
)

_FETCH_FINAL_JS = """(async function(){
		const u = window.__nbFinalURL;
		if (!u) return { ok: false, err: 'no_final_url' };
		try {
			const r = await fetch(u);
			if (!r.ok) return { ok: false, err: 'fetch_failed', status: r.status };
			const blob = await r.blob();
			const buf = await blob.arrayBuffer();
			const u8 = new Uint8Array(buf);
			let s = '';
			const chunk = 32768;
			for (let i = 0; i < u8.length; i += chunk) {
				s += String.fromCharCode.apply(null, u8.subarray(i, i + chunk));
			}
			return { ok: true, contentType: blob.type, size: blob.size, base64: btoa(s) };
		} catch (e) { return { ok: false, err: String(e).slice(0, 300) }; }
	})()"""


class GenerationError(Exception):
    """Image generation could not be completed."""


@dataclass
class Options:
    """Settings for one generation; ``timeout`` is in seconds."""

    prompt: str
    out_dir: str = "."
    thumb_width: int = DEFAULT_THUMB_WIDTH
    timeout: float = DEFAULT_TIMEOUT


@dataclass(frozen=True)
class Result:
    """Paths and size of the saved image and its thumbnail."""

    prompt: str
    full: str
    thumb: str
    width: int
    height: int
    thumb_width: int
    elapsed_ms: int = 0

    def to_json(self) -> dict[str, Any]:
        return dataclasses.asdict(self)


def _open_png(data: bytes) -> Image.Image:
    try:
        image = Image.open(io.BytesIO(data))
    except (OSError, ValueError) as exc:
        raise ValueError(f"not a PNG image: {exc}") from exc
    if image.format != "PNG":
        raise ValueError(f"not a PNG image (format={image.format})")
    return image


def png_dimensions(data: bytes) -> tuple[int, int]:
    """Return ``(width, height)`` from a PNG header without decoding its pixels."""
    with _open_png(data) as image:
        return image.size


def write_thumbnail(png_bytes: bytes, path: str, width: int) -> None:
    """Scale a PNG to ``width`` pixels wide, keeping its aspect ratio, and save it at ``path``."""
    if width <= 0:
        raise ValueError(f"thumbnail width must be positive, got {width}")
    try:
        with _open_png(png_bytes) as source:
            source.load()
            src_width, src_height = source.size
            if src_width == 0:
                raise ValueError("source image has zero width")
            height = max(width * src_height // src_width, 1)
            thumb = source.convert("RGBA").resize(
                (width, height), Image.Resampling.BICUBIC
            )
    except ValueError as exc:
        raise ValueError(f"decode png: {exc}") from exc
    except OSError as exc:
        raise ValueError(f"decode png: {exc}") from exc
    thumb.save(path, format="PNG")


def _evaluate_object(client: Client, code: str, context: str) -> dict[str, Any]:
    try:
        value = client.evaluate_value(code)
    except DaemonError as exc:
        raise GenerationError(f"{context}: {exc}") from exc
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise GenerationError(f"{context}: parse evaluate value: expected a JSON object")
    return value


def _poll(timeout: float, interval: float, attempt: Callable[[], _T | None]) -> _T | None:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        result = attempt()
        if result is not None:
            return result
        time.sleep(interval)
    return None


def _run_step(client: Client, code: str, context: str) -> None:
    out = _evaluate_object(client, code, context)
    if out.get("ok") is not True:
        raise GenerationError(f"{context} failed: {out.get('err') or ''}")


def _wait_textbox(client: Client, timeout: float) -> None:
    def attempt() -> bool | None:
        try:
            out = _evaluate_object(client, _TEXTBOX_JS, "poll textbox")
        except GenerationError:
            return None
        return True if out.get("ok") is True else None

    if _poll(timeout, 0.5, attempt) is None:
        raise GenerationError("timeout waiting for Gemini prompt textbox")


def _wait_for_displayed_image(client: Client, timeout: float) -> None:
    def attempt() -> bool | None:
        out = _evaluate_object(client, _DISPLAYED_IMAGE_JS, "poll image")
        return True if out.get("ready") is True else None

    if _poll(timeout, 1.0, attempt) is None:
        raise GenerationError(
            "timeout waiting for generated image "
            "(did Gemini route this prompt to image generation?)"
        )


def _install_download_hook(client: Client) -> None:
    out = _evaluate_object(client, _DOWNLOAD_HOOK_JS, "install download hook")
    if out.get("ok") is not True:
        raise GenerationError("install download hook: unknown failure")


def _fetch_intercepted_image(client: Client, timeout: float) -> bytes:
    def attempt() -> bytes | None:
        poll = _evaluate_object(client, _POLL_FINAL_URL_JS, "poll final url")
        if not str(poll.get("url") or ""):
            return None
        out = _evaluate_object(client, _FETCH_FINAL_JS, "fetch intercepted url")
        if out.get("ok") is not True:
            raise GenerationError(
                f"fetch intercepted url failed: {out.get('err') or ''} "
                f"(status={int(out.get('status') or 0)})"
            )
        content_type = str(out.get("contentType") or "")
        if not content_type.startswith("image/"):
            raise GenerationError(
                f"unexpected content-type: {content_type} (size={int(out.get('size') or 0)})"
            )
        try:
            return base64.b64decode(str(out.get("base64") or ""), validate=True)
        except (binascii.Error, ValueError) as exc:
            raise GenerationError(f"base64 decode: {exc}") from exc

    data = _poll(timeout, 0.3, attempt)
    if data is None:
        raise GenerationError(
            "timeout waiting for download-chain URL (did Gemini change its download flow?)"
        )
    return data


def generate(client: Client, options: Options) -> Result:
    """Send the prompt, capture the full-size image and save it with a thumbnail."""
    start = time.monotonic()
    if not options.prompt:
        raise GenerationError("prompt is empty")
    out_dir = options.out_dir or "."
    thumb_width = options.thumb_width if options.thumb_width > 0 else DEFAULT_THUMB_WIDTH
    timeout = options.timeout if options.timeout > 0 else DEFAULT_TIMEOUT
    try:
        os.makedirs(out_dir, exist_ok=True)
    except OSError as exc:
        raise GenerationError(f"mkdir output dir: {exc}") from exc

    try:
        client.navigate(GEMINI_URL, new_tab=True)
    except DaemonError as exc:
        raise GenerationError(f"navigate: {exc}") from exc
    _wait_textbox(client, 15.0)
    _run_step(client, _INJECT_JS % json.dumps(options.prompt, ensure_ascii=False), "inject prompt")
    _run_step(client, _CLICK_SEND_JS, "click send")
    _wait_for_displayed_image(client, timeout)
    _install_download_hook(client)
    _run_step(client, _CLICK_DOWNLOAD_JS, "click download")

    data = _fetch_intercepted_image(client, 30.0)
    try:
        width, height = png_dimensions(data)
    except ValueError as exc:
        raise GenerationError(f"parse downloaded PNG: {exc}") from exc

    stem = time.strftime("%Y%m%d-%H%M%S")
    full_path = os.path.join(out_dir, f"{stem}-full.png")
    thumb_path = os.path.join(out_dir, f"{stem}-thumb.png")
    try:
        with open(full_path, "wb") as fh:
            fh.write(data)
    except OSError as exc:
        raise GenerationError(f"write full: {exc}") from exc
    try:
        write_thumbnail(data, thumb_path, thumb_width)
    except (OSError, ValueError) as exc:
        raise GenerationError(f"write thumb: {exc}") from exc

    return Result(
        prompt=options.prompt,
        full=os.path.abspath(full_path),
        thumb=os.path.abspath(thumb_path),
        width=width,
        height=height,
        thumb_width=thumb_width,
        elapsed_ms=int((time.monotonic() - start) * 1000),
    )