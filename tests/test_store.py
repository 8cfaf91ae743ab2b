"""
Unit tests for the entry store: classification, stores, stats, clears and the sweeper.
"""
import time
from email.utils import formatdate

import pytest

from proxycache.entry import CacheStatus, UpstreamResponse
from proxycache.freshness import MAX_DELTA_SECONDS
from proxycache.keys import generate_key
from proxycache.store import HttpCache

REQ = {"path": "/api/test", "url": "/api/test"}
SOURCE = "https://api.weather.gov/api/test"


class TestLookupClassification:

    def test_miss_for_unknown_key(self, cache):
        result = cache.get_cached_request(REQ)
        assert result.status is CacheStatus.MISS
        assert result.status == "miss"
        assert result.data is None

    def test_fresh_for_unexpired_entry(self, cache, make_entry):
        cache.entries[generate_key(REQ)] = make_entry(expires_in=60)

        result = cache.get_cached_request(REQ)
        assert result.status is CacheStatus.FRESH
        assert result.data.status_code == 200

    def test_stale_keeps_entry(self, cache, make_entry):
        entry = make_entry(expires_in=-1)
        cache.entries[generate_key(REQ)] = entry

        result = cache.get_cached_request(REQ)
        assert result.status is CacheStatus.STALE
        assert result.data is entry

    def test_classification_recomputed_each_lookup(self, cache, make_entry):
        cache.entries[generate_key(REQ)] = make_entry(expires_in=0.2)
        assert cache.get_cached_request(REQ).status is CacheStatus.FRESH
        time.sleep(0.3)
        assert cache.get_cached_request(REQ).status is CacheStatus.STALE


class TestStoreCachedResponse:

    def test_stores_with_explicit_ttl(self, cache):
        response = UpstreamResponse(200, {"content-type": "application/json"}, b'{"ok":true}')
        before = time.time()

        entry = cache.store_cached_response(REQ, response, SOURCE, {"cache-control": "max-age=300"})

        cached = cache.entries[generate_key(REQ)]
        assert cached is entry
        assert cached.status_code == 200
        assert cached.body == b'{"ok":true}'
        assert cached.source_url == SOURCE
        assert before < cached.expires_at <= time.time() + 300
        assert cached.expires_at - cached.stored_at == pytest.approx(300)

    def test_no_directives_stores_nothing(self, cache):
        response = UpstreamResponse(200, {}, b"{}")
        assert cache.store_cached_response(REQ, response, SOURCE, {}) is None
        assert generate_key(REQ) not in cache.entries

    def test_heuristic_from_last_modified(self, cache):
        headers = {"Last-Modified": formatdate(time.time() - 20 * 3600, usegmt=True)}
        entry = cache.store_cached_response(REQ, UpstreamResponse(200, headers, b""), SOURCE, headers)
        assert entry.expires_at - entry.stored_at == pytest.approx(7200)

    def test_invalid_last_modified_stores_nothing(self, cache):
        headers = {"last-modified": "not-a-date"}
        assert cache.store_cached_response(REQ, UpstreamResponse(200), SOURCE, headers) is None
        assert cache.entries == {}

    def test_uncacheable_response_keeps_previous_entry(self, cache, make_entry):
        previous = make_entry(expires_in=-5)
        cache.entries[generate_key(REQ)] = previous

        cache.store_cached_response(REQ, UpstreamResponse(200, {}, b"new"), SOURCE,
                                    {"cache-control": "no-store"})

        assert cache.entries[generate_key(REQ)] is previous

    def test_store_replaces_entry(self, cache, make_entry):
        cache.entries[generate_key(REQ)] = make_entry(expires_in=-5, body=b"old")

        cache.store_cached_response(REQ, UpstreamResponse(200, {}, b"new"), SOURCE,
                                    {"cache-control": "s-maxage=60"})

        result = cache.get_cached_request(REQ)
        assert result.status is CacheStatus.FRESH
        assert result.data.body == b"new"

    def test_entry_headers_are_a_copy(self, cache):
        headers = {"content-type": "text/plain"}
        entry = cache.store_cached_response(REQ, UpstreamResponse(200, headers, b""), SOURCE,
                                            {"cache-control": "max-age=60"})
        headers["content-type"] = "changed"
        assert entry.headers["content-type"] == "text/plain"

    @pytest.mark.parametrize("cache_control", ["max-age=" + "9" * 400, "s-maxage=" + "1" * 30])
    def test_oversized_lifetime_is_capped(self, cache, cache_control):
        entry = cache.store_cached_response(REQ, UpstreamResponse(200, {}, b"{}"), SOURCE,
                                            {"cache-control": cache_control})

        assert entry.expires_at - entry.stored_at == pytest.approx(MAX_DELTA_SECONDS)
        assert cache.get_cached_request(REQ).status is CacheStatus.FRESH


class TestStatsAndClear:

    def test_stats_counts(self, cache, make_entry):
        cache.entries["valid"] = make_entry(expires_in=60)
        cache.entries["expired"] = make_entry(expires_in=-1)

        assert cache.get_stats() == {"total": 2, "valid": 1, "expired": 1, "in_flight": 0}

    def test_clear_entry(self, cache, make_entry):
        cache.entries["/api/test"] = make_entry()

        assert cache.clear_entry("/api/test") is True
        assert cache.entries == {}

    def test_clear_missing_entry(self, cache, make_entry):
        cache.entries["/api/other"] = make_entry()

        assert cache.clear_entry("/api/nonexistent") is False
        assert list(cache.entries) == ["/api/other"]

    def test_clear_all(self, cache, make_entry):
        cache.entries["a"] = make_entry()
        cache.entries["b"] = make_entry(expires_in=-1)
        assert cache.clear() == 2
        assert cache.get_stats()["total"] == 0

    def test_list_entries(self, cache, make_entry):
        cache.entries["/api/x"] = make_entry()
        listed = cache.list_entries()
        assert listed[0]["key"] == "/api/x"
        assert listed[0]["source_url"] == SOURCE


class TestSweep:

    def test_purge_respects_grace(self, make_entry):
        c = HttpCache(sweep_grace_seconds=60)
        c.entries["fresh"] = make_entry(expires_in=60)
        c.entries["recently-expired"] = make_entry(expires_in=-10)
        c.entries["long-expired"] = make_entry(expires_in=-120)

        assert c.purge_expired() == 1
        assert sorted(c.entries) == ["fresh", "recently-expired"]

        assert c.purge_expired(grace_seconds=0) == 1
        assert list(c.entries) == ["fresh"]

    def test_background_sweep_removes_expired(self, make_entry):
        c = HttpCache(sweep_interval_seconds=0.05, sweep_grace_seconds=0)
        c.entries["expired"] = make_entry(expires_in=-1)
        c.entries["fresh"] = make_entry(expires_in=60)
        c.start()
        try:
            deadline = time.time() + 2
            while "expired" in c.entries and time.time() < deadline:
                time.sleep(0.02)
            assert list(c.entries) == ["fresh"]
        finally:
            c.destroy()

    def test_destroy_stops_sweeper(self):
        c = HttpCache(sweep_interval_seconds=0.05)
        c.start()
        sweeper = c._sweeper
        assert sweeper.is_alive()

        c.destroy()

        assert not sweeper.is_alive()

    def test_tick_after_destroy_does_nothing(self, make_entry):
        c = HttpCache(sweep_grace_seconds=0)
        c.destroy()
        c.entries["expired"] = make_entry(expires_in=-1)

        assert c._sweep_tick() == 0
        assert "expired" in c.entries

    def test_destroy_is_idempotent(self):
        c = HttpCache()
        c.start()
        c.destroy()
        c.destroy()

    def test_destroy_without_start(self):
        HttpCache().destroy()

    def test_start_after_destroy_raises(self):
        c = HttpCache()
        c.destroy()
        with pytest.raises(RuntimeError):
            c.start()
