# backend/proxycache/store.py
import logging
import threading
import time
from threading import Lock
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from .entry import CacheEntry, CacheLookup, CacheStatus, UpstreamResponse
from .freshness import compute_ttl, is_fresh
from .inflight import InflightTable
from .keys import generate_key

logger = logging.getLogger(__name__)

DEFAULT_SWEEP_INTERVAL_SECONDS = 300
DEFAULT_SWEEP_GRACE_SECONDS = 600


class HttpCache:
    """
    Keyed store of upstream responses for the passthrough.

    Entries are classified miss / fresh / stale on every lookup; what to do
    with a stale entry is up to the caller. Concurrent refetches of one key
    are coalesced through `coalesce`. A background thread drops entries that
    have been expired for longer than the grace window; call `destroy` at
    shutdown to stop it.
    """

    def __init__(self, sweep_interval_seconds: float = DEFAULT_SWEEP_INTERVAL_SECONDS,
                 sweep_grace_seconds: float = DEFAULT_SWEEP_GRACE_SECONDS):
        self.sweep_interval = sweep_interval_seconds
        self.sweep_grace = sweep_grace_seconds
        self.entries: Dict[str, CacheEntry] = {}  # cache key → CacheEntry
        self.lock = Lock()
        self.inflight = InflightTable()

        self._stop_event = threading.Event()
        self._sweeper: Optional[threading.Thread] = None
        self._destroyed = False

    # ------------------------------------------------------------------
    # lookups and stores
    # ------------------------------------------------------------------

    def get_cached_request(self, request: Any) -> CacheLookup:
        key = generate_key(request)
        with self.lock:
            entry = self.entries.get(key)
        if entry is None:
            return CacheLookup(CacheStatus.MISS, None)
        if is_fresh(entry):
            return CacheLookup(CacheStatus.FRESH, entry)
        return CacheLookup(CacheStatus.STALE, entry)

    def store_cached_response(self, request: Any, response: UpstreamResponse,
                              source_url: Optional[str] = None,
                              upstream_headers: Optional[Mapping[str, str]] = None) -> Optional[CacheEntry]:
        """
        Cache `response` under the request's key if the upstream headers make
        it cacheable. A non-cacheable response leaves any existing entry alone.
        Returns the stored entry, or None when nothing was written.
        """
        key = generate_key(request)
        ttl = compute_ttl(upstream_headers)
        if ttl <= 0:
            logger.debug("Not caching %s: no usable freshness information", key)
            return None

        now = time.time()
        entry = CacheEntry(
            status_code=response.status_code,
            headers=dict(response.headers or {}),
            body=response.body,
            stored_at=now,
            expires_at=now + ttl,
            source_url=source_url,
        )
        with self.lock:
            self.entries[key] = entry
        logger.debug("Cached %s for %ss", key, ttl)
        return entry

    def coalesce(self, key: str, fetcher: Callable[[], Any],
                 wait_timeout: Optional[float] = None) -> Tuple[Any, bool]:
        """Run `fetcher` for `key`, sharing one in-flight call among concurrent callers."""
        return self.inflight.run(key, fetcher, wait_timeout=wait_timeout)

    # ------------------------------------------------------------------
    # management
    # ------------------------------------------------------------------

    def get_stats(self) -> Dict[str, int]:
        now = time.time()
        with self.lock:
            total = len(self.entries)
            valid = sum(1 for e in self.entries.values() if is_fresh(e, now))
        return {
            "total": total,
            "valid": valid,
            "expired": total - valid,
            "in_flight": len(self.inflight),
        }

    def list_entries(self):
        with self.lock:
            return [dict(key=k, **v.to_dict()) for k, v in self.entries.items()]

    def clear_entry(self, key: str) -> bool:
        with self.lock:
            return self.entries.pop(key, None) is not None

    def clear(self) -> int:
        with self.lock:
            count = len(self.entries)
            self.entries.clear()
        return count

    def purge_expired(self, grace_seconds: Optional[float] = None) -> int:
        """Remove entries expired for more than `grace_seconds`. Returns how many."""
        if grace_seconds is None:
            grace_seconds = self.sweep_grace
        with self.lock:
            return self._purge_locked(time.time() - grace_seconds)

    def _purge_locked(self, cutoff: float) -> int:
        dead = [k for k, e in self.entries.items() if e.expires_at <= cutoff]
        for k in dead:
            del self.entries[k]
        return len(dead)

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the background sweep thread."""
        if self._destroyed:
            raise RuntimeError("cache has been destroyed")
        if self._sweeper is not None:
            return
        self._sweeper = threading.Thread(target=self._sweep_loop,
                                         name="http-cache-sweeper", daemon=True)
        self._sweeper.start()
        logger.info("Cache sweeper started (every %ss, grace %ss)",
                    self.sweep_interval, self.sweep_grace)

    def _sweep_loop(self):
        while not self._stop_event.wait(self.sweep_interval):
            try:
                self._sweep_tick()
            except Exception:
                logger.exception("Cache sweep failed")

    def _sweep_tick(self) -> int:
        # checked under the lock so nothing is purged once destroy() returns
        with self.lock:
            if self._destroyed:
                return 0
            removed = self._purge_locked(time.time() - self.sweep_grace)
        if removed:
            logger.info("Cache sweep removed %d expired entries", removed)
        return removed

    def destroy(self) -> None:
        """Stop the sweeper. Safe to call more than once."""
        with self.lock:
            if self._destroyed:
                return
            self._destroyed = True
        self._stop_event.set()
        sweeper, self._sweeper = self._sweeper, None
        if sweeper is not None and sweeper is not threading.current_thread():
            sweeper.join(timeout=5)
        logger.info("Cache sweeper stopped")
