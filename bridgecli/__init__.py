"""Command-line tools for search and image generation that drive a logged-in browser through a local bridge daemon."""

__version__ = "0.1.0"
__all__ = [
    "baidu",
    "baidu_cli",
    "browser",
    "chatgpt",
    "chatgpt_cli",
    "google_cli",
    "google_search",
    "nanobanana",
    "nanobanana_cli",
    "output",
]