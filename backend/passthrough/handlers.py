# backend/passthrough/handlers.py
import logging

from flask import Response, jsonify

from proxycache.entry import CacheStatus
from proxycache.headers import set_filtered_headers
from proxycache.inflight import CoalesceTimeout
from proxycache.keys import generate_key
from .errors import ForbiddenPathError, UpstreamError
from .fetcher import fetch_url
from .validators import build_upstream_url, filter_query_params, is_allowed_path

logger = logging.getLogger(__name__)

GATEWAY_TIMEOUT_BODY = {"error": "Upstream request failed or timed out"}
# waiters give the owner this many upstream timeouts before giving up
WAITER_TIMEOUT_FACTOR = 2


def describe_request(flask_request) -> dict:
    """The request identity the cache keys on: path and path+query."""
    url = flask_request.path
    if flask_request.query_string:
        url += "?" + flask_request.query_string.decode("latin-1")
    return {"path": flask_request.path, "url": url}


def relay(status_code: int, headers, body, cache_state: str) -> Response:
    response = Response(body, status=status_code)
    # Response() adds its own content-type; the upstream one wins if present
    response.headers.pop("Content-Type", None)
    set_filtered_headers(response, headers)
    response.headers["X-Cache"] = cache_state
    return response


def handle_passthrough(cache, base_url: str, upstream_path: str, flask_request,
                       fetch_timeout: float = 10, user_agent=None) -> Response:
    """
    Serve one GET through the cache.

    fresh       -> served from the cache
    miss/stale  -> refetched; concurrent requests for the key share one fetch
    fetch fails -> a stale entry is served if there is one, else 504
    """
    allowed, reason = is_allowed_path(upstream_path)
    if not allowed:
        raise ForbiddenPathError(reason)

    descriptor = describe_request(flask_request)
    lookup = cache.get_cached_request(descriptor)
    key = generate_key(descriptor)

    if lookup.status is CacheStatus.FRESH:
        logger.info("Cache HIT for %s", key)
        entry = lookup.data
        return relay(entry.status_code, entry.headers, entry.body, "HIT")

    url = build_upstream_url(base_url, upstream_path, filter_query_params(flask_request.args))
    accept = flask_request.headers.get("Accept")

    def _do_fetch():
        # the previous owner may have stored the key between our lookup and now
        current = cache.get_cached_request(descriptor)
        if current.status is CacheStatus.FRESH:
            return current.data, "HIT"
        logger.info("Cache %s for %s. Fetching %s", lookup.status.value.upper(), key, url)
        kwargs = {"accept": accept, "timeout": fetch_timeout}
        if user_agent:
            kwargs["user_agent"] = user_agent
        upstream = fetch_url(url, **kwargs)
        # store before waiters are released so later arrivals see the entry
        cache.store_cached_response(descriptor, upstream, url, upstream.headers)
        return upstream, "MISS"

    try:
        (upstream, state), performed_fetch = cache.coalesce(
            key, _do_fetch, wait_timeout=fetch_timeout * WAITER_TIMEOUT_FACTOR)
    except (UpstreamError, CoalesceTimeout) as e:
        if lookup.status is CacheStatus.STALE:
            logger.warning("Upstream fetch failed for %s, serving stale entry: %s", key, e)
            entry = lookup.data
            return relay(entry.status_code, entry.headers, entry.body, "STALE")
        logger.error("Upstream fetch failed for %s: %s", key, e)
        return jsonify(GATEWAY_TIMEOUT_BODY), 504

    if not performed_fetch and state == "MISS":
        state = "COALESCED"
    return relay(upstream.status_code, upstream.headers, upstream.body, state)


def handle_cache_stats(cache):
    """Current cache counters plus the stored keys, for the /cache/stats endpoint."""
    return {
        "stats": cache.get_stats(),
        "entries": cache.list_entries(),
    }


def handle_clear(cache, key=None):
    if key:
        removed = cache.clear_entry(key)
        return {"removed": removed, "key": key}, (200 if removed else 404)
    count = cache.clear()
    return {"removed": count}, 200
