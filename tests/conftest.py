"""
Pytest configuration and fixtures.
"""
import time
from unittest.mock import Mock

import pytest

from config import Settings
from proxycache.entry import CacheEntry
from proxycache.store import HttpCache


@pytest.fixture
def cache():
    """HttpCache without a running sweeper."""
    c = HttpCache(sweep_interval_seconds=3600, sweep_grace_seconds=0)
    yield c
    c.destroy()


@pytest.fixture
def make_entry():
    def _make(expires_in=60, status_code=200, body=b'{"ok":true}', headers=None):
        now = time.time()
        return CacheEntry(
            status_code=status_code,
            headers=headers if headers is not None else {"content-type": "application/json"},
            body=body,
            stored_at=now,
            expires_at=now + expires_in,
            source_url="https://api.weather.gov/api/test",
        )
    return _make


@pytest.fixture
def settings():
    return Settings(
        upstreams={"api": "https://api.weather.gov", "radar": "https://radar.weather.gov"},
        upstream_timeout=10,
        sweep_interval=3600,
        sweep_grace=0,
    )


@pytest.fixture
def app(settings):
    from app import create_app
    flask_app = create_app(settings, start_sweeper=False)
    flask_app.config["TESTING"] = True
    yield flask_app
    flask_app.extensions["http_cache"].destroy()


@pytest.fixture
def client(app):
    return app.test_client()


def upstream_reply(status_code=200, headers=None, body=b'{"ok":true}'):
    """Stand-in for a requests.Response."""
    reply = Mock()
    reply.status_code = status_code
    reply.headers = headers if headers is not None else {}
    reply.content = body
    reply.iter_content = Mock(return_value=[body])
    return reply
