"""Google search and page extraction through the browser bridge."""

from __future__ import annotations

import dataclasses
import json
import time
from dataclasses import dataclass
from typing import Any, Sequence
from urllib.parse import quote_plus, urlparse

from bridgecli.browser import Client

DEFAULT_LIMIT = 10
DEFAULT_LANGUAGE = "en"
DEFAULT_RETRY_DELAYS = (0.3, 0.7, 1.5)
MIN_TEXT_LENGTH = 50

SEARCH_EXTRACT_JS = """
(async () => {
  const deadline = Date.now() + 8000;
  while (Date.now() < deadline) {
    if (location.host.startsWith('consent.')) break;
    if (document.querySelector('div#search div[data-hveid] h3')) break;
    await new Promise(r => setTimeout(r, 150));
  }
  const seen = new Set();
  const items = Array.from(document.querySelectorAll('div#search div[data-hveid]'))
    .filter(el => el.querySelector('h3') && el.querySelector('a[href]'))
    .map(el => {
      const a = el.querySelector('a[href]');
      const h = el.querySelector('h3');
      return {
        title: h.innerText,
        url: a.href,
        snippet: (el.querySelector('[data-sncf]')?.innerText || '').replace(/\\s*Read more\\s*$/, '')
      };
    })
    .filter(r => { if (seen.has(r.url)) return false; seen.add(r.url); return true; });
  return JSON.stringify({ consent: location.host.startsWith('consent.'), items });
})()
"""

PAGE_EXTRACT_JS = """
(async () => {
  const deadline = Date.now() + 8000;
  while (Date.now() < deadline) {
    if (document.readyState !== 'loading' && document.body && document.body.innerText.length > 50) break;
    await new Promise(r => setTimeout(r, 150));
  }
  return JSON.stringify({
    url: location.href,
    title: document.title,
    description: document.querySelector('meta[name="description"]')?.content
              || document.querySelector('meta[property="og:description"]')?.content
              || '',
    text: (document.body?.innerText || '').slice(0, 5000)
  });
})()
"""


class ConsentRequiredError(Exception):
    """Google showed its consent page instead of results."""

    def __init__(self) -> None:
        super().__init__(
            "google served a consent interstitial; accept it once in Chrome and retry"
        )


class InvalidURLError(ValueError):
    """The page address is not an absolute http(s) URL."""


class EmptyContentError(ValueError):
    """The loaded page had too little text to be useful."""


def _object(obj: Any) -> dict[str, Any]:
    if obj is None:
        return {}
    if not isinstance(obj, dict):
        raise ValueError("decode evaluate value: expected a JSON object")
    return obj


def _string(obj: dict[str, Any], name: str) -> str:
    value = obj.get(name)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"decode evaluate value: field {name!r} must be a string")
    return value


@dataclass(frozen=True)
class SearchResult:
    """One organic search hit."""

    title: str = ""
    url: str = ""
    snippet: str = ""

    @classmethod
    def from_json(cls, obj: Any) -> "SearchResult":
        data = _object(obj)
        return cls(
            title=_string(data, "title"),
            url=_string(data, "url"),
            snippet=_string(data, "snippet"),
        )

    def to_json(self) -> dict[str, Any]:
        return dataclasses.asdict(self)


@dataclass(frozen=True)
class Page:
    """Title, description and visible text of a loaded page."""

    url: str = ""
    title: str = ""
    description: str = ""
    text: str = ""

    @classmethod
    def from_json(cls, obj: Any) -> "Page":
        data = _object(obj)
        return cls(
            url=_string(data, "url"),
            title=_string(data, "title"),
            description=_string(data, "description"),
            text=_string(data, "text"),
        )

    def to_json(self) -> dict[str, Any]:
        return dataclasses.asdict(self)


def is_transient_context_error(err: BaseException) -> bool:
    """Tell whether ``err`` comes from a page context that was not ready or went away."""
    message = str(err)
    return (
        "Cannot find default execution context" in message
        or "Execution context was destroyed" in message
    )


def evaluate_with_retry(
    client: Client,
    code: str,
    delays: Sequence[float] = DEFAULT_RETRY_DELAYS,
) -> Any:
    """Run ``code`` through ``evaluate_json``, waiting before each try and retrying
    only while the page's execution context is not usable."""
    last_error: Exception | None = None
    for delay in delays:
        time.sleep(delay)
        try:
            return client.evaluate_json(code)
        except Exception as exc:
            if not is_transient_context_error(exc):
                raise
            last_error = exc
    if last_error is not None:
        raise last_error
    return None


def fetch_search(
    client: Client,
    query: str,
    limit: int = DEFAULT_LIMIT,
    hl: str = DEFAULT_LANGUAGE,
) -> list[SearchResult]:
    """Search Google for ``query`` and return up to ``limit`` results."""
    if limit <= 0:
        limit = DEFAULT_LIMIT
    if not hl:
        hl = DEFAULT_LANGUAGE

    # Ask for more than needed: ads and question cards take up result slots.
    request_n = max(limit * 2, 10)
    search_url = (
        f"https://www.google.com/search?q={quote_plus(query)}"
        f"&hl={quote_plus(hl)}&num={request_n}"
    )
    client.navigate(search_url, new_tab=True)

    payload = _object(evaluate_with_retry(client, SEARCH_EXTRACT_JS))
    consent = payload.get("consent")
    if consent is not None and not isinstance(consent, bool):
        raise ValueError("decode evaluate value: field 'consent' must be a boolean")
    if consent:
        raise ConsentRequiredError()
    items = payload.get("items")
    if items is None:
        items = []
    if not isinstance(items, list):
        raise ValueError("decode evaluate value: field 'items' must be an array")
    return [SearchResult.from_json(item) for item in items[:limit]]


def fetch_result(client: Client, page_url: str) -> Page:
    """Load ``page_url`` and return its title, description and text."""
    try:
        parsed = urlparse(page_url)
    except ValueError as exc:
        raise InvalidURLError(f"invalid_url: {exc}") from exc
    if parsed.scheme not in ("http", "https"):
        raise InvalidURLError(
            "invalid_url: scheme must be http or https, got "
            + json.dumps(parsed.scheme, ensure_ascii=False)
        )
    if not parsed.netloc.rpartition("@")[2]:
        raise InvalidURLError("invalid_url: missing host")

    client.navigate(page_url, new_tab=True)
    page = Page.from_json(evaluate_with_retry(client, PAGE_EXTRACT_JS))
    length = len(page.text.encode("utf-8"))
    if length < MIN_TEXT_LENGTH:
        raise EmptyContentError(
            f"empty_content: extracted text length {length}; "
            "page may be JS-heavy or blocked"
        )
    return page