"""Install/activate lifecycle tests."""

import asyncio

import pytest

from conftest import REMOTE, SOS_PATH
from sosrelay.core.cache_policies import STATUS_ACTIVE, STATUS_INSTALLED, STATUS_REDUNDANT
from sosrelay.core.errors import AssetFetchError, LifecycleError
from sosrelay.schemas.relay import OutboundRequest
from sosrelay.services.pipeline import build_pipeline


def _sos_request(payload=b'{"userId": "u1"}'):
    return OutboundRequest(
        method="POST",
        url=f"{REMOTE}{SOS_PATH}",
        headers={"content-type": "application/json"},
        body=payload,
    )


def test_first_install_activates(pipeline):
    status = asyncio.run(pipeline.lifecycle.install())

    assert status == STATUS_ACTIVE
    assert pipeline.lifecycle.active_generation() == "v1.0.0"
    assert set(pipeline.storage.names()) == {"sosrelay-static-v1.0.0", "sosrelay-dynamic-v1.0.0"}


def test_failed_install_keeps_previous_generation_serving(installed, remote):
    """One of four assets fails: no promotion, old tier keeps answering."""
    remote.failing_urls.add(f"{REMOTE}/app.js")

    with pytest.raises(AssetFetchError):
        asyncio.run(installed.lifecycle.install("v2.0.0"))

    assert installed.lifecycle.active_generation() == "v1.0.0"
    assert installed.lifecycle.waiting_generation() is None
    assert "sosrelay-static-v2.0.0" not in installed.storage.names()
    assert {r.generation for r in installed.lifecycle.status().records} == {"v1.0.0"}

    remote.online = False
    response = asyncio.run(installed.router.handle(OutboundRequest("GET", f"{REMOTE}/styles.css")))
    assert response.status_code == 200
    assert response.body == b"body { color: red; }"
    assert response.from_cache is True


def test_new_generation_waits_without_skip_waiting(relay_settings, session_factory, http, notifier):
    relay_settings.skip_waiting_on_install = False
    pipeline = build_pipeline(relay_settings, session_factory, http, notifier)
    asyncio.run(pipeline.lifecycle.install())

    status = asyncio.run(pipeline.lifecycle.install("v2.0.0"))

    assert status == STATUS_INSTALLED
    assert pipeline.lifecycle.active_generation() == "v1.0.0"
    assert pipeline.lifecycle.waiting_generation() == "v2.0.0"

    assert pipeline.lifecycle.skip_waiting() is True
    assert pipeline.lifecycle.active_generation() == "v2.0.0"
    assert pipeline.lifecycle.waiting_generation() is None
    records = {r.generation: r.status for r in pipeline.lifecycle.status().records}
    assert records == {"v1.0.0": STATUS_REDUNDANT, "v2.0.0": STATUS_ACTIVE}


def test_skip_waiting_with_nothing_waiting_is_noop(installed):
    assert installed.lifecycle.skip_waiting() is False
    assert installed.lifecycle.active_generation() == "v1.0.0"


def test_activate_without_install_raises(pipeline):
    with pytest.raises(LifecycleError):
        pipeline.lifecycle.activate()


def test_activation_collects_old_tiers(installed):
    asyncio.run(installed.lifecycle.install("v2.0.0"))

    assert installed.lifecycle.active_generation() == "v2.0.0"
    assert set(installed.storage.names()) == {"sosrelay-static-v2.0.0", "sosrelay-dynamic-v2.0.0"}


def test_queued_alerts_survive_generation_bump(installed, remote):
    """The queue record moves into the new dynamic tier before the old one is deleted."""
    remote.online = False
    first = asyncio.run(installed.router.handle(_sos_request(b'{"n": 1}'))).json()["id"]
    second = asyncio.run(installed.router.handle(_sos_request(b'{"n": 2}'))).json()["id"]
    remote.online = True

    asyncio.run(installed.lifecycle.install("v2.0.0"))

    queue = installed.sync_engine.queue()
    assert queue.tier == "sosrelay-dynamic-v2.0.0"
    assert [(e.id, e.payload) for e in queue.list()] == [(first, {"n": 1}), (second, {"n": 2})]


def test_reinstalling_active_generation_keeps_it_active(installed):
    status = asyncio.run(installed.lifecycle.install())
    assert status == STATUS_ACTIVE
    assert installed.lifecycle.active_generation() == "v1.0.0"


def test_state_survives_restart(installed, relay_settings, session_factory, http, notifier, remote):
    """A new pipeline over the same store resumes with the same generation and queue."""
    remote.online = False
    asyncio.run(installed.router.handle(_sos_request()))

    restarted = build_pipeline(relay_settings, session_factory, http, notifier)

    assert restarted.lifecycle.active_generation() == "v1.0.0"
    assert [e.payload for e in restarted.sync_engine.queue().list()] == [{"userId": "u1"}]


def test_newer_install_replaces_older_waiting_generation(relay_settings, session_factory, http, notifier):
    relay_settings.skip_waiting_on_install = False
    pipeline = build_pipeline(relay_settings, session_factory, http, notifier)
    asyncio.run(pipeline.lifecycle.install())
    asyncio.run(pipeline.lifecycle.install("v2.0.0"))
    asyncio.run(pipeline.lifecycle.install("v3.0.0"))

    assert pipeline.lifecycle.waiting_generation() == "v3.0.0"
    records = {r.generation: r.status for r in pipeline.lifecycle.status().records}
    assert records["v2.0.0"] == STATUS_REDUNDANT

    pipeline.lifecycle.activate()
    assert pipeline.lifecycle.active_generation() == "v3.0.0"
    assert set(pipeline.storage.names()) == {"sosrelay-static-v3.0.0", "sosrelay-dynamic-v3.0.0"}
