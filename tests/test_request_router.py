"""Request router tests: cache-first statics, network-first API, offline SOS queueing."""

import asyncio

import httpx
import pytest

from conftest import CDN, REMOTE, SOS_PATH
from sosrelay.core.cache_policies import TAG_SOS_QUEUED
from sosrelay.core.errors import TransientNetworkError
from sosrelay.schemas.relay import OutboundRequest
from sosrelay.services.pipeline import build_pipeline


def _handle(pipeline, request):
    return asyncio.run(pipeline.router.handle(request))


def _sos(body=b'{"userId": "u1", "location": {"latitude": 28.6, "longitude": 77.2}}'):
    return OutboundRequest("POST", f"{REMOTE}{SOS_PATH}", {"content-type": "application/json"}, body)


def _queue_len(pipeline):
    return len(pipeline.sync_engine.queue().list())


# ---------- critical endpoint ----------


def test_offline_sos_is_queued_and_accepted(installed, remote, notifier):
    """Caller gets a 202 with queued=true and the id; queue grows by exactly one."""
    remote.online = False
    before = _queue_len(installed)

    response = _handle(installed, _sos())

    assert response.status_code == 202
    body = response.json()
    assert body["queued"] is True
    assert body["success"] is True
    assert isinstance(body["id"], int)
    entries = installed.sync_engine.queue().list()
    assert len(entries) == before + 1
    assert entries[-1].id == body["id"]
    assert entries[-1].payload["userId"] == "u1"

    assert notifier.tags() == [TAG_SOS_QUEUED]
    assert notifier.sent[0]["require_interaction"] is True
    assert notifier.sent[0]["data"] == {"id": body["id"]}


def test_online_sos_goes_straight_to_remote(installed, remote):
    response = _handle(installed, _sos())

    assert response.status_code == 201
    assert response.json() == {"received": True}
    assert remote.sos_received == [{"userId": "u1", "location": {"latitude": 28.6, "longitude": 77.2}}]
    assert _queue_len(installed) == 0


def test_remote_rejection_is_returned_not_queued(installed, remote):
    """Network-first only falls back on network failure, not on an error status."""
    remote.sos_outcomes = [500]
    response = _handle(installed, _sos())
    assert response.status_code == 500
    assert _queue_len(installed) == 0


def test_offline_sos_with_bad_json_answers_500(installed, remote, notifier):
    remote.online = False
    response = _handle(installed, _sos(body=b"not json"))

    assert response.status_code == 500
    assert response.json()["error"] == "Failed to queue SOS"
    assert _queue_len(installed) == 0
    assert notifier.sent == []


def test_other_api_offline_gets_deferred_response_without_queueing(installed, remote):
    remote.online = False
    response = _handle(installed, OutboundRequest("GET", f"{REMOTE}/api/status"))

    assert response.status_code == 202
    body = response.json()
    assert body["error"] == "Offline"
    assert body["queued"] is False
    assert _queue_len(installed) == 0


def test_other_api_online_passes_through(installed):
    response = _handle(installed, OutboundRequest("GET", f"{REMOTE}/api/status"))
    assert response.status_code == 200
    assert response.json() == {"ok": True}
    assert response.from_cache is False


# ---------- static assets ----------


def test_static_asset_served_from_cache_when_offline(installed, remote):
    remote.online = False
    response = _handle(installed, OutboundRequest("GET", f"{REMOTE}/app.js"))
    assert response.status_code == 200
    assert response.body == b"console.log('app');"
    assert response.from_cache is True


def test_cache_hit_skips_the_network(installed, remote):
    remote.requests.clear()
    _handle(installed, OutboundRequest("GET", f"{REMOTE}/styles.css"))
    assert remote.requests == []


def test_miss_is_fetched_and_stored_in_dynamic_tier(installed, remote):
    first = _handle(installed, OutboundRequest("GET", f"{REMOTE}/page.html"))
    assert first.status_code == 200
    assert first.from_cache is False

    manager = installed.lifecycle.tier_manager("v1.0.0")
    stored = installed.storage.match_in(manager.dynamic_tier, f"GET {REMOTE}/page.html")
    assert stored is not None

    remote.online = False
    again = _handle(installed, OutboundRequest("GET", f"{REMOTE}/page.html"))
    assert again.body == b"<html>page</html>"
    assert again.from_cache is True


def test_allowed_third_party_origin_is_cached(installed, remote):
    _handle(installed, OutboundRequest("GET", f"{CDN}/lib.js"))
    remote.online = False
    assert _handle(installed, OutboundRequest("GET", f"{CDN}/lib.js")).from_cache is True


def test_disallowed_origin_is_not_cached(installed, remote):
    response = _handle(installed, OutboundRequest("GET", "https://other.test/widget.js"))
    assert response.status_code == 200

    remote.online = False
    with pytest.raises(TransientNetworkError):
        _handle(installed, OutboundRequest("GET", "https://other.test/widget.js"))


def test_error_status_is_not_cached(installed, remote):
    assert _handle(installed, OutboundRequest("GET", f"{REMOTE}/missing.png")).status_code == 404

    remote.online = False
    with pytest.raises(TransientNetworkError):
        _handle(installed, OutboundRequest("GET", f"{REMOTE}/missing.png"))


def test_offline_navigation_falls_back_to_placeholder(installed, remote):
    remote.online = False
    request = OutboundRequest("GET", f"{REMOTE}/dashboard", {"accept": "text/html,application/xhtml+xml"})

    response = _handle(installed, request)

    assert response.status_code == 200
    assert response.body == b"<html>index</html>"


def test_offline_non_document_miss_propagates(installed, remote):
    remote.online = False
    with pytest.raises(TransientNetworkError):
        _handle(installed, OutboundRequest("GET", f"{REMOTE}/images/logo.png", {"accept": "image/png"}))


# ---------- before activation ----------


def test_nothing_intercepted_before_activation(pipeline, remote):
    response = _handle(pipeline, OutboundRequest("GET", f"{REMOTE}/page.html"))
    assert response.status_code == 200
    assert pipeline.storage.names() == []

    remote.online = False
    with pytest.raises(TransientNetworkError):
        _handle(pipeline, _sos())


def test_sos_failing_across_a_generation_bump_lands_in_the_new_queue(
    relay_settings, session_factory, remote, notifier
):
    """A new generation activated while the SOS POST is in flight still receives the alert."""
    bumped = []

    async def handler(request):
        if request.method == "POST" and request.url.path == SOS_PATH and not bumped:
            bumped.append(True)
            await pipeline.lifecycle.install("v2.0.0")
            raise httpx.ConnectError("network unreachable", request=request)
        return remote.handler(request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    pipeline = build_pipeline(relay_settings, session_factory, client, notifier)
    asyncio.run(pipeline.lifecycle.install())

    response = _handle(pipeline, _sos(b'{"n": 1}'))

    assert response.status_code == 202
    assert response.json()["queued"] is True
    assert pipeline.lifecycle.active_generation() == "v2.0.0"
    assert "sosrelay-dynamic-v1.0.0" not in pipeline.storage.names()
    queue = pipeline.sync_engine.queue()
    assert queue.tier == "sosrelay-dynamic-v2.0.0"
    assert [(e.id, e.payload) for e in queue.list()] == [(response.json()["id"], {"n": 1})]

    report = asyncio.run(pipeline.sync_engine.drain())
    asyncio.run(client.aclose())

    assert report.delivered_ids == [response.json()["id"]]
    assert remote.sos_received == [{"n": 1}]
