# ==============================================================================
# Shared Test Fixtures
# ==============================================================================
"""
Pytest fixtures shared across all test modules.

Provides:
- an in-memory storage backend (shareable between clients = "tabs")
- a controllable millisecond clock
- a MagicMock HTTP session with a helper for collector replies
- a started MetrixClient wired to all of the above
"""

import json
from unittest.mock import MagicMock

import pytest

from metrix_core.app import MetrixClient
from metrix_core.config import MetrixConfig
from metrix_core.storage import MemoryStorage

T0 = 1_700_000_000_000

PAGE_DATA = {
    "browser": {
        "ua": "Mozilla/5.0 (X11; Linux x86_64) Chrome/120.0.0.0 Safari/537.36",
        "name": "Chrome",
        "version": 120.0,
        "platform": "Linux",
        "mobileOs": "Linux",
        "mobileOsVersion": "unknown version",
        "language": "en-US",
    },
    "document": {"title": "", "referrer": "", "url": {"protocol": "https:"}},
    "screen": {"height": 1080, "width": 1920, "colorDepth": 24, "cpuCore": 8, "gpu": "Unknown"},
    "locale": {"language": "en-US", "timezoneOffset": 0, "gmtOffset": "GMT+0000", "timezone": "UTC"},
}


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, now=T0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms
        return self.now


def make_response(status=200, body=None, text=None):
    """A requests.Response stand-in carrying a status and a JSON (or raw) body."""
    resp = MagicMock()
    resp.status_code = status
    if text is None:
        text = json.dumps(body) if body is not None else ""
    resp.text = text

    def _json():
        return json.loads(text)

    resp.json.side_effect = _json
    return resp


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def storage():
    return MemoryStorage()


@pytest.fixture()
def http():
    session = MagicMock()
    session.post.return_value = make_response(200, {"userId": "U1"})
    return session


@pytest.fixture()
def options():
    return {
        "appId": "A1",
        "storeName": "GooglePlay",
        "pageUrl": "https://shop.example/cart?utm_source=news",
    }


@pytest.fixture()
def make_client(storage, http, clock, options):
    """Factory: build (and by default start) a client; extra kwargs override options."""
    created = []

    def _make(start=True, storage_=None, http_=None, **overrides):
        config = MetrixConfig.from_options({**options, **overrides})
        client = MetrixClient(
            config,
            storage=storage_ or storage,
            http=http_ or http,
            probe=lambda: PAGE_DATA,
            clock=clock,
        )
        if start:
            client.start(background=False)
        created.append(client)
        return client

    yield _make
    for client in created:
        client.close()


@pytest.fixture()
def client(make_client):
    return make_client()
