# backend/proxycache/freshness.py
"""
Freshness rules for cached upstream responses.

- parse_cache_control(value) -> TTL seconds from s-maxage / max-age
- calculate_heuristic_max_age(last_modified) -> TTL from the resource age
- compute_ttl(headers) -> the combined rule used when storing
- is_fresh(entry) -> whether an entry may still be served as-is
"""

import math
import re
import time
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Mapping, Optional

from .headers import get_header

HEURISTIC_FRACTION = 0.10
HEURISTIC_MIN_SECONDS = 3600   # 1 hour
HEURISTIC_MAX_SECONDS = 14400  # 4 hours

_UNCACHEABLE = {"no-cache", "no-store"}
_SECONDS_RE = re.compile(r'^"?(\d+)"?$')
# delta-seconds too large to represent are treated as this value (RFC 9111 1.2.2)
MAX_DELTA_SECONDS = 2147483648


def _directives(header_value: str):
    """Split a Cache-Control value into {lowercased name: raw value or None}."""
    out = {}
    for part in header_value.split(","):
        part = part.strip()
        if not part:
            continue
        name, _, value = part.partition("=")
        out[name.strip().lower()] = value.strip() if value else None
    return out


def _seconds(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    m = _SECONDS_RE.match(value)
    if not m:
        return None
    digits = m.group(1).lstrip("0") or "0"
    if len(digits) > len(str(MAX_DELTA_SECONDS)):
        return MAX_DELTA_SECONDS
    return min(int(digits), MAX_DELTA_SECONDS)


def parse_cache_control(header_value: Optional[str]) -> int:
    """Return the cacheable lifetime in seconds, or 0 when not cacheable."""
    if not header_value or not isinstance(header_value, str):
        return 0

    directives = _directives(header_value)
    if directives.keys() & _UNCACHEABLE:
        return 0

    # shared-cache lifetime takes precedence over the private one
    for name in ("s-maxage", "max-age"):
        seconds = _seconds(directives.get(name))
        if seconds is not None:
            return seconds
    return 0


def _parse_http_date(value: str) -> Optional[datetime]:
    if not isinstance(value, str):
        return None
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        try:
            parsed = datetime.fromisoformat(value.strip())
        except (TypeError, ValueError, AttributeError):
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def calculate_heuristic_max_age(last_modified: Optional[str]) -> float:
    """
    Heuristic lifetime for responses without explicit directives: 10% of the
    time since the resource last changed, clamped to [1h, 4h].

    Returns 0 for modification times in the future and NaN when the value
    cannot be parsed as a date. Callers treat NaN as "no heuristic".
    """
    modified = _parse_http_date(last_modified) if last_modified else None
    if modified is None:
        return math.nan

    age = time.time() - modified.timestamp()
    if age <= 0:
        return 0

    heuristic = math.floor(age * HEURISTIC_FRACTION)
    return max(HEURISTIC_MIN_SECONDS, min(HEURISTIC_MAX_SECONDS, heuristic))


def compute_ttl(upstream_headers: Optional[Mapping[str, str]]) -> int:
    ttl = parse_cache_control(get_header(upstream_headers, "cache-control"))
    if ttl > 0:
        return ttl

    last_modified = get_header(upstream_headers, "last-modified")
    if not last_modified:
        return 0
    heuristic = calculate_heuristic_max_age(last_modified)
    if math.isnan(heuristic):
        return 0
    return int(heuristic)


def is_fresh(entry, now: Optional[float] = None) -> bool:
    if now is None:
        now = time.time()
    return now < entry.expires_at
