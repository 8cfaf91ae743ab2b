# backend/proxycache/keys.py
from typing import Any, Optional


def _field(request: Any, name: str) -> Optional[str]:
    if isinstance(request, dict):
        return request.get(name)
    return getattr(request, name, None)


def generate_key(request: Any) -> str:
    """
    Cache key for an inbound request: its path plus the query string of its url.

    `request` may be a dict or any object with `path` / `url` attributes.
    When `path` is missing the url stands in for it, so the query string
    ends up in the key twice ({"url": "/a?b=1"} -> "/a?b=1?b=1"). Existing
    consumers rely on that shape, keep it.
    """
    url = _field(request, "url")
    path = _field(request, "path") or url or "/"

    query = ""
    if url and "?" in url:
        query = url[url.index("?"):]

    return f"{path}{query}"
