"""Image generation on chatgpt.com through the browser bridge."""

from __future__ import annotations

import base64
import binascii
import json
import os
import time
from dataclasses import dataclass
from typing import Any, Callable, Iterable, TypeVar

from bridgecli.browser import Client, DaemonError

IMAGES_URL = "https://chatgpt.com/images/"
SUBMIT_SELECTOR = "#composer-submit-button"
DEFAULT_TIMEOUT = 120.0
MIN_IMAGE_SIDE = 400

_T = TypeVar("_T")

_TEXTBOX_JS = """(function(){
		const tb = document.getElementById('prompt-textarea');
		return { ok: !!tb };
	})()"""

# execCommand puts the text into the editor; the explicit InputEvent is what
# makes the page re-evaluate the composer so the send button is enabled.
_INJECT_JS = """(function(){
		const tb = document.getElementById('prompt-textarea');
		if (!tb) return { ok: false, err: 'textbox_not_found' };
		tb.focus();
		document.execCommand('selectAll', false, null);
		document.execCommand('insertText', false, %s);
		tb.dispatchEvent(new InputEvent('input', { bubbles: true, cancelable: true, inputType: 'insertText' }));
		return { ok: true };
	})()"""

_SEND_ENABLED_JS = """(function(){
		const b = document.getElementById('composer-submit-button');
		return { ok: !!b && !b.disabled };
	})()"""

_CONVERSATION_URL_JS = r"""(function(){
		const p = window.location.pathname;
		const m = p.match(/^\/c\/([0-9a-f-]+)/);
		return m ? { url: window.location.href } : { url: '' };
	})()"""

_BASELINE_JS = r"""(function(){
		const out = [];
		for (const img of document.querySelectorAll('main img')) {
			const s = img.src || '';
			const m = s.match(/[?&]id=(file_[A-Za-z0-9]+)/);
			if (m) out.push(m[1]);
		}
		return out;
	})()"""

_IMAGES_JS = r"""(function(){
		const out = [];
		for (const img of document.querySelectorAll('main img')) {
			const s = img.src || '';
			if (!s.includes('/backend-api/estuary/content')) continue;
			if (!img.complete || img.naturalWidth === 0) continue;
			const m = s.match(/[?&]id=(file_[A-Za-z0-9]+)/);
			out.push({ src: s, alt: img.alt || '', fileId: m ? m[1] : '', w: img.naturalWidth, h: img.naturalHeight });
		}
		return out;
	})()"""

_ERROR_BANNER_JS = r"""(function(){
		const text = document.body.innerText || '';
		const patterns = [
			/I (?:can|cannot|couldn't) (?:help|create|generate)/i,
			/content (?:policy|guidelines)/i,
			/rate[- ]limit|too many requests|try again later/i,
			/你已达到|超出限制|无法生成|违反了使用政策/i
		];
		for (const re of patterns) {
			const m = text.match(re);
			if (m) return { err: m[0].slice(0, 200) };
		}
		return { err: '' };
	})()"""

# The signed URL rotates, so the live img.src is re-read, scoped by file id.
_DOWNLOAD_JS = """(async function(){
		try {
			let url = %s;
			const fid = %s;
			if (fid) {
				const img = document.querySelector('main img[src*="' + fid + '"]');
				if (img && img.src) url = img.src;
			}
			const r = await fetch(url, { credentials: 'include' });
			if (!r.ok) return { ok: false, err: 'fetch_failed', status: r.status };
			const buf = await r.arrayBuffer();
			const u8 = new Uint8Array(buf);
			let s = '';
			const chunk = 32768;
			for (let i = 0; i < u8.length; i += chunk) {
				s += String.fromCharCode.apply(null, u8.subarray(i, i + chunk));
			}
			return { ok: true, contentType: r.headers.get('content-type') || '', size: u8.length, base64: btoa(s) };
		} catch (e) { return { ok: false, err: String(e).slice(0, 300) }; }
	})()"""


class GenerationError(Exception):
    """Image generation could not be completed."""


@dataclass
class Options:
    """Settings for one generation; ``timeout`` is in seconds."""

    prompt: str
    out_dir: str = "."
    timeout: float = DEFAULT_TIMEOUT


@dataclass(frozen=True)
class ImageInfo:
    """An image found in the page."""

    src: str = ""
    alt: str = ""
    file_id: str = ""
    width: int = 0
    height: int = 0

    @classmethod
    def from_json(cls, obj: Any) -> "ImageInfo":
        if obj is None:
            return cls()
        if not isinstance(obj, dict):
            raise GenerationError("parse evaluate value: image must be a JSON object")
        return cls(
            src=str(obj.get("src") or ""),
            alt=str(obj.get("alt") or ""),
            file_id=str(obj.get("fileId") or ""),
            width=int(obj.get("w") or 0),
            height=int(obj.get("h") or 0),
        )


@dataclass(frozen=True)
class Result:
    """Outcome of a successful generation."""

    prompt: str
    path: str
    bytes: int
    caption: str = ""
    conversation_url: str = ""
    elapsed_ms: int = 0

    def to_json(self) -> dict[str, Any]:
        data: dict[str, Any] = {"prompt": self.prompt, "path": self.path, "bytes": self.bytes}
        if self.caption:
            data["caption"] = self.caption
        if self.conversation_url:
            data["conversation_url"] = self.conversation_url
        data["elapsed_ms"] = self.elapsed_ms
        return data


def is_generated_alt(alt: str) -> bool:
    """Tell whether an alt text marks the main generated image."""
    return (
        alt.startswith("已生成图片")
        or alt.startswith("Generated image")
        or "generated image" in alt
    )


def choose_generated_image(
    candidates: Iterable[ImageInfo], baseline: set[str] | frozenset[str]
) -> ImageInfo | None:
    """Pick the newly generated image among ``candidates``.

    Images already in ``baseline``, without a file id, or smaller than
    400 pixels on a side are ignored. One with a generated-image alt text is
    preferred; otherwise the first remaining one is returned.
    """
    fallback: ImageInfo | None = None
    for image in candidates:
        if not image.file_id or image.file_id in baseline:
            continue
        if image.width < MIN_IMAGE_SIDE or image.height < MIN_IMAGE_SIDE:
            continue
        if is_generated_alt(image.alt):
            return image
        if fallback is None:
            fallback = image
    return fallback


def _evaluate(client: Client, code: str, context: str) -> Any:
    try:
        return client.evaluate_value(code)
    except DaemonError as exc:
        raise GenerationError(f"{context}: {exc}") from exc


def _evaluate_object(client: Client, code: str, context: str) -> dict[str, Any]:
    value = _evaluate(client, code, context)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise GenerationError(f"{context}: parse evaluate value: expected a JSON object")
    return value


def _evaluate_list(client: Client, code: str, context: str) -> list[Any]:
    value = _evaluate(client, code, context)
    if value is None:
        return []
    if not isinstance(value, list):
        raise GenerationError(f"{context}: parse evaluate value: expected a JSON array")
    return value


def _poll(timeout: float, interval: float, attempt: Callable[[], _T | None]) -> _T | None:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        result = attempt()
        if result is not None:
            return result
        time.sleep(interval)
    return None


def _ready_check(client: Client, code: str) -> Callable[[], bool | None]:
    def attempt() -> bool | None:
        try:
            out = _evaluate_object(client, code, "poll")
        except GenerationError:
            return None
        return True if out.get("ok") is True else None

    return attempt


def _wait_textbox(client: Client, timeout: float) -> None:
    if _poll(timeout, 0.5, _ready_check(client, _TEXTBOX_JS)) is None:
        raise GenerationError(
            "timeout waiting for ChatGPT prompt textbox "
            f"(not logged in? open {IMAGES_URL} in Chrome and sign in)"
        )


def _inject_prompt(client: Client, prompt: str) -> None:
    code = _INJECT_JS % json.dumps(prompt, ensure_ascii=False)
    out = _evaluate_object(client, code, "inject prompt")
    if out.get("ok") is not True:
        raise GenerationError(f"inject prompt failed: {out.get('err') or ''}")


def _wait_send_enabled(client: Client, timeout: float) -> None:
    if _poll(timeout, 0.2, _ready_check(client, _SEND_ENABLED_JS)) is None:
        raise GenerationError(
            "send button never became enabled (may be rate-limited or plan-limited)"
        )


def _wait_conversation_url(client: Client, timeout: float) -> str:
    def attempt() -> str | None:
        out = _evaluate_object(client, _CONVERSATION_URL_JS, "poll url")
        return str(out.get("url") or "") or None

    url = _poll(timeout, 0.5, attempt)
    if url is None:
        raise GenerationError(
            "timeout waiting for conversation URL "
            "(send may have been blocked by anti-abuse check)"
        )
    return url


def _capture_baseline_images(client: Client) -> set[str]:
    """File ids of the gallery thumbnails already shown, so they are not mistaken for the result."""
    return {str(item) for item in _evaluate_list(client, _BASELINE_JS, "capture baseline")}


def _check_for_error(client: Client) -> None:
    try:
        out = _evaluate_object(client, _ERROR_BANNER_JS, "check error")
    except GenerationError:
        return
    message = str(out.get("err") or "")
    if message:
        raise GenerationError(f"chatgpt refused generation: {message.strip()}")


def _wait_for_generated_image(
    client: Client, baseline: set[str], timeout: float
) -> ImageInfo:
    def attempt() -> ImageInfo | None:
        raw = _evaluate_list(client, _IMAGES_JS, "poll image")
        candidates = [ImageInfo.from_json(item) for item in raw]
        chosen = choose_generated_image(candidates, baseline)
        if chosen is None:
            _check_for_error(client)
        return chosen

    image = _poll(timeout, 1.0, attempt)
    if image is None:
        raise GenerationError(
            "timeout waiting for generated image "
            "(may have been blocked by content policy or quota)"
        )
    return image


def _download_image(client: Client, file_id: str, src: str) -> bytes:
    code = _DOWNLOAD_JS % (
        json.dumps(src, ensure_ascii=False),
        json.dumps(file_id, ensure_ascii=False),
    )
    out = _evaluate_object(client, code, "fetch image")
    if out.get("ok") is not True:
        raise GenerationError(
            f"fetch image failed: {out.get('err') or ''} (status={int(out.get('status') or 0)})"
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


def generate(client: Client, options: Options) -> Result:
    """Submit the prompt, wait for the generated image and save it as a PNG."""
    start = time.monotonic()
    if not options.prompt:
        raise GenerationError("prompt is empty")
    out_dir = options.out_dir or "."
    timeout = options.timeout if options.timeout > 0 else DEFAULT_TIMEOUT
    try:
        os.makedirs(out_dir, exist_ok=True)
    except OSError as exc:
        raise GenerationError(f"mkdir output dir: {exc}") from exc

    try:
        client.navigate(IMAGES_URL, new_tab=True)
    except DaemonError as exc:
        raise GenerationError(f"navigate: {exc}") from exc
    _wait_textbox(client, 15.0)
    _inject_prompt(client, options.prompt)
    _wait_send_enabled(client, 5.0)
    baseline = _capture_baseline_images(client)
    try:
        client.click(SUBMIT_SELECTOR)
    except DaemonError as exc:
        raise GenerationError(f"click send: {exc}") from exc

    conversation_url = _wait_conversation_url(client, 30.0)
    image = _wait_for_generated_image(client, baseline, timeout)
    data = _download_image(client, image.file_id, image.src)

    stem = time.strftime("%Y%m%d-%H%M%S")
    out_path = os.path.join(out_dir, f"chatgpt-{stem}.png")
    try:
        with open(out_path, "wb") as fh:
            fh.write(data)
    except OSError as exc:
        raise GenerationError(f"write file: {exc}") from exc

    return Result(
        prompt=options.prompt,
        path=os.path.abspath(out_path),
        bytes=len(data),
        caption=image.alt,
        conversation_url=conversation_url,
        elapsed_ms=int((time.monotonic() - start) * 1000),
    )