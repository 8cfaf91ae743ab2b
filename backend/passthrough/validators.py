# backend/passthrough/validators.py
"""
Request validation and upstream URL construction.

Provides:
 - is_allowed_path(path) -> (bool, reason)
 - filter_query_params(args) -> [(key, value), ...] without the cache buster
 - build_upstream_url(base_url, path, params)
"""

from typing import Iterable, List, Mapping, Tuple, Union
from urllib.parse import urlencode, unquote

# Query parameters the browser client adds to defeat its own cache.
CLIENT_ONLY_PARAMS = {"u"}


def is_allowed_path(path: str) -> Tuple[bool, str]:
    """
    Check that a client path can be appended to an upstream base URL without
    escaping it. Returns (True, "") if allowed, otherwise (False, reason).
    """
    if path is None:
        return False, "missing path"
    decoded = unquote(path)
    if "\\" in decoded:
        return False, "backslash in path"
    if any(segment == ".." for segment in decoded.split("/")):
        return False, "path traversal"
    if "://" in decoded or decoded.startswith("//"):
        return False, "absolute url in path"
    return True, ""


def filter_query_params(args: Union[Mapping, Iterable[Tuple[str, str]]]) -> List[Tuple[str, str]]:
    """Drop client-only parameters, keeping order and repeated keys."""
    if hasattr(args, "items"):
        items = args.items(multi=True) if hasattr(args, "getlist") else args.items()
    else:
        items = args
    return [(k, v) for k, v in items if k not in CLIENT_ONLY_PARAMS]


def build_upstream_url(base_url: str, path: str, params=()) -> str:
    if not path.startswith("/"):
        path = "/" + path
    query = urlencode(list(params))
    url = base_url.rstrip("/") + path
    return f"{url}?{query}" if query else url
