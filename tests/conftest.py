"""Pytest fixtures."""

import asyncio
import json
import os

os.environ.setdefault("DATABASE_URL", "sqlite:///./test_sosrelay.db")

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from sosrelay.core.config import Settings
from sosrelay.core.deps import get_pipeline
from sosrelay.db.base import Base
from sosrelay.main import app
from sosrelay.models import CacheTier, CachedEntry, LifecycleRecord  # noqa: F401 - register for create_all
from sosrelay.services.pipeline import build_pipeline

REMOTE = "http://origin.test"
CDN = "https://cdn.test"
SOS_PATH = "/api/emergency/sos"

STATIC_ASSETS = ["/", "/index.html", "/styles.css", "/app.js"]


class RecordingNotifier:
    """Keeps every notification instead of showing it."""

    def __init__(self):
        self.sent = []

    def notify(self, title, body, tag, require_interaction=False, data=None):
        self.sent.append(
            {
                "title": title,
                "body": body,
                "tag": tag,
                "require_interaction": require_interaction,
                "data": data or {},
            }
        )

    def tags(self):
        return [n["tag"] for n in self.sent]


class FakeRemote:
    """Scriptable remote origin served through httpx.MockTransport."""

    def __init__(self):
        self.online = True
        self.failing_urls = set()
        self.pages = {
            f"{REMOTE}/": (b"<html>home</html>", "text/html"),
            f"{REMOTE}/index.html": (b"<html>index</html>", "text/html"),
            f"{REMOTE}/styles.css": (b"body { color: red; }", "text/css"),
            f"{REMOTE}/app.js": (b"console.log('app');", "application/javascript"),
            f"{REMOTE}/page.html": (b"<html>page</html>", "text/html"),
            f"{REMOTE}/api/status": (b'{"ok": true}', "application/json"),
            f"{CDN}/lib.js": (b"/* lib */", "application/javascript"),
            "https://other.test/widget.js": (b"/* widget */", "application/javascript"),
        }
        # Per-call outcomes for SOS POSTs: an int status or "offline"; default 201
        self.sos_outcomes = []
        self.sos_received = []
        self.requests = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)
        if not self.online or url in self.failing_urls:
            raise httpx.ConnectError("network unreachable", request=request)

        if request.method == "POST" and request.url.path == SOS_PATH:
            outcome = self.sos_outcomes.pop(0) if self.sos_outcomes else 201
            if outcome == "offline":
                raise httpx.ConnectError("network unreachable", request=request)
            if 200 <= outcome < 300:
                self.sos_received.append(json.loads(request.content))
            return httpx.Response(outcome, json={"received": 200 <= outcome < 300})

        page = self.pages.get(url)
        if page is None:
            return httpx.Response(404, text="not found")
        body, content_type = page
        return httpx.Response(200, content=body, headers={"content-type": content_type})


@pytest.fixture
def session_factory(tmp_path):
    """Fresh SQLite file per test; reusing it simulates a process restart."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'relay.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def remote():
    return FakeRemote()


@pytest.fixture
def http(remote):
    client = httpx.AsyncClient(transport=httpx.MockTransport(remote.handler))
    yield client
    asyncio.run(client.aclose())


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def relay_settings():
    return Settings(
        app_name="sosrelay",
        remote_base_url=REMOTE,
        critical_path=SOS_PATH,
        static_assets=STATIC_ASSETS,
        cache_allowed_origins=[CDN],
        cache_version="v1.0.0",
    )


@pytest.fixture
def pipeline(relay_settings, session_factory, http, notifier):
    return build_pipeline(relay_settings, session_factory, http, notifier)


@pytest.fixture
def installed(pipeline):
    """Pipeline with generation v1.0.0 installed and active."""
    asyncio.run(pipeline.lifecycle.install())
    return pipeline


@pytest.fixture
def client(pipeline):
    """Test client wired to the isolated pipeline."""
    app.dependency_overrides[get_pipeline] = lambda: pipeline
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
