"""Web search on baidu.com through the browser bridge."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Any, Iterable
from urllib.parse import quote_plus

from bridgecli.browser import Client, DaemonError

DEFAULT_LIMIT = 10

# Reads the server-rendered result list straight from the DOM.
EXTRACTOR_JS = """(() => {
  const items = document.querySelectorAll(".result.c-container, .result-op.c-container");
  return Array.from(items).map((el, i) => {
    const titleEl = el.querySelector("h3 a") || el.querySelector(".t a");
    const absEl = el.querySelector("[class*=summary-text]")
      || el.querySelector("[class*=abstract]")
      || el.querySelector(".c-abstract")
      || el.querySelector("[class*=paragraph]");
    const sourceEl = el.querySelector("[class*=source-text]")
      || el.querySelector("[class*=source]");
    return {
      rank: i + 1,
      id: el.id || "",
      tpl: el.getAttribute("tpl") || "",
      title: titleEl ? titleEl.innerText.trim() : "",
      url: el.getAttribute("mu") || (titleEl && titleEl.href) || "",
      abstract: absEl ? absEl.innerText.trim().replace(/\\s+/g, " ").slice(0, 400) : "",
      source: sourceEl ? sourceEl.innerText.trim().replace(/\\s+/g, " ").slice(0, 80) : ""
    };
  });
})()"""


@dataclass(frozen=True)
class Result:
    """One entry of the search result list."""

    rank: int = 0
    id: str = ""
    tpl: str = ""
    title: str = ""
    url: str = ""
    abstract: str = ""
    source: str = ""

    @classmethod
    def from_json(cls, obj: Any) -> "Result":
        if obj is None:
            return cls()
        if not isinstance(obj, dict):
            raise ValueError("result must be a JSON object")
        values: dict[str, Any] = {}
        rank = obj.get("rank")
        if rank is not None:
            if isinstance(rank, bool) or not isinstance(rank, (int, float)):
                raise ValueError("field 'rank' must be a number")
            if isinstance(rank, float) and not rank.is_integer():
                raise ValueError("field 'rank' must be an integer")
            values["rank"] = int(rank)
        for name in ("id", "tpl", "title", "url", "abstract", "source"):
            value = obj.get(name)
            if value is None:
                continue
            if not isinstance(value, str):
                raise ValueError(f"field {name!r} must be a string")
            values[name] = value
        return cls(**values)

    def to_json(self) -> dict[str, Any]:
        return dataclasses.asdict(self)


def filter_organic(results: Iterable[Result]) -> list[Result]:
    """Return the results to show when card types are not explicitly requested.

    Every result is currently kept; the ``tpl`` field is preserved so callers
    can filter on template names themselves.
    """
    return list(results)


def _rewrap(exc: DaemonError, prefix: str) -> DaemonError:
    return type(exc)(f"{prefix}: {exc}", code=exc.code)


def search(
    client: Client,
    query: str,
    limit: int = DEFAULT_LIMIT,
    include_all: bool = False,
) -> list[Result]:
    """Load the result page for ``query`` and return up to ``limit`` results ranked 1..N."""
    if not query:
        raise ValueError("query is empty")
    if limit <= 0:
        limit = DEFAULT_LIMIT

    serp_url = f"https://www.baidu.com/s?wd={quote_plus(query)}&rn={limit}"
    try:
        client.navigate(serp_url)
    except DaemonError as exc:
        raise _rewrap(exc, "navigate to SERP") from exc

    try:
        raw = client.evaluate_unwrapped(EXTRACTOR_JS)
    except DaemonError as exc:
        raise _rewrap(exc, "extract results") from exc

    if raw is None:
        raw = []
    if not isinstance(raw, list):
        raise ValueError("parse extractor output: expected a JSON array")
    try:
        results = [Result.from_json(item) for item in raw]
    except ValueError as exc:
        raise ValueError(f"parse extractor output: {exc}") from exc

    if not include_all:
        results = filter_organic(results)
    results = results[:limit]
    return [dataclasses.replace(r, rank=i) for i, r in enumerate(results, start=1)]