# backend/proxycache/headers.py
from typing import Mapping, Optional

# Headers the proxy never relays: clients must not revalidate against us.
CACHE_NEGOTIATION_HEADERS = {"cache-control", "etag", "last-modified", "expires"}

PROXY_CACHE_CONTROL = "public, max-age=30"


def get_header(headers: Optional[Mapping[str, str]], name: str) -> Optional[str]:
    """Case-insensitive header lookup that works on plain dicts too."""
    if not headers:
        return None
    wanted = name.lower()
    for k, v in headers.items():
        if k.lower() == wanted:
            return v
    return None


def set_filtered_headers(response, upstream_headers: Optional[Mapping[str, str]]) -> None:
    """
    Copy upstream headers onto an outgoing response, minus the cache
    negotiation headers, and advertise the proxy's own short cache lifetime.
    `response` only needs a mutable `headers` mapping (a Flask Response works).
    """
    for k, v in (upstream_headers or {}).items():
        if k.lower() in CACHE_NEGOTIATION_HEADERS:
            continue
        response.headers[k] = v
    response.headers["Cache-Control"] = PROXY_CACHE_CONTROL
