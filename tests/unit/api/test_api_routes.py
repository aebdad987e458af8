"""HTTP-level tests: the FastAPI app wired to an in-memory SQLite session."""

import asyncio

import httpx
import pytest
import pytest_asyncio

from claim_routing.adapters.persistence.database import get_session
from claim_routing.adapters.persistence.repositories import (
    SqlOfferRepository,
    SqlRoutingRuleRepository,
)
from claim_routing.application.ports.notifier_port import OfferNotifier
from claim_routing.application.routing_config import RoutingConfig
from claim_routing.domain.exceptions import PersistenceFailure
from claim_routing.infrastructure.api import dependencies
from claim_routing.main import app


class RecordingNotifier(OfferNotifier):
    def __init__(self):
        self.sent = []

    async def notify(self, order, offer):
        self.sent.append((order.id, offer.assignee.id, offer.id))


@pytest_asyncio.fixture
async def client(directory):
    async def _session_override():
        yield directory

    app.dependency_overrides[get_session] = _session_override
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


async def _configure(client, mode="auto", zip_prefix="41"):
    resp = await client.post("/api/admin/assignment-settings", json={
        "profession": "trocknung", "zip_prefix": zip_prefix, "mode": mode,
    })
    assert resp.status_code == 200
    return resp.json()


async def _create_order(client, order_id="O1", zip_code="41061"):
    resp = await client.post("/api/orders", json={
        "id": order_id, "damage_type": "wasser", "customer_data": {"zip": zip_code},
    })
    assert resp.status_code == 201
    return resp.json()


@pytest.mark.asyncio
async def test_health_reports_order_backlog(client):
    await _create_order(client)
    body = (await client.get("/api/health")).json()
    assert body["status"] == "ok"
    assert body["database"] == "connected"
    assert body["orders"]["unassigned"] == 1
    assert body["orders"]["broadcasting"] == 0


@pytest.mark.asyncio
async def test_intake_with_rule_assigns_craftsman(client):
    await _configure(client)
    resp = await client.post("/api/admin/routing-rules", json={
        "zip_prefix": "41", "profession": "trocknung", "priority": 1,
        "preferred_assignee": {"type": "internal", "id": "C1"},
    })
    assert resp.status_code == 201

    body = await _create_order(client)
    assert body["routing"] == {
        "order_id": "O1", "applied": True, "assignee_id": "C1", "assignee_type": "internal",
    }
    assert body["order"]["state"] == "assigned_internal"

    order = (await client.get("/api/orders/O1")).json()
    assert order["assigned_internal_id"] == "C1"
    assert order["assigned_partner_id"] is None
    assert order["assigned_by"] == "engine"


@pytest.mark.asyncio
async def test_intake_without_settings_keeps_order(client):
    body = await _create_order(client)
    assert body["routing"]["reason"] == "no_settings"
    assert body["order"]["state"] == "unassigned"

    dup = await client.post("/api/orders", json={"id": "O1", "damage_type": "wasser"})
    assert dup.status_code == 409


@pytest.mark.asyncio
async def test_dispatch_after_settings_change(client):
    await _create_order(client)
    await _configure(client)
    resp = await client.post("/api/orders/O1/dispatch")
    assert resp.json()["routing"]["applied"] is True
    assert (await client.post("/api/orders/missing/dispatch")).status_code == 404


@pytest.mark.asyncio
async def test_manual_assign_and_stale_override(client):
    await _create_order(client)

    ok = await client.post("/api/admin/orders/O1/assign", json={
        "assignee": {"type": "external", "id": "P1"}, "expected_assignee": None,
    })
    assert ok.status_code == 200
    assert ok.json()["assigned_partner_id"] == "P1"

    stale = await client.post("/api/admin/orders/O1/assign", json={
        "assignee": {"type": "internal", "id": "C1"}, "expected_assignee": None,
    })
    assert stale.status_code == 409
    assert stale.json()["detail"]["order"]["assigned_partner_id"] == "P1"

    cleared = await client.post("/api/admin/orders/O1/assign", json={
        "assignee": None, "expected_assignee": {"type": "external", "id": "P1"},
    })
    assert cleared.json()["state"] == "unassigned"

    missing = await client.post("/api/admin/orders/nope/assign", json={"assignee": None})
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_broadcast_accept_flow(client):
    await _configure(client, mode="broadcast")
    body = await _create_order(client)
    assert body["routing"]["reason"] == "broadcast_pending"
    assert body["order"]["state"] == "broadcasting"

    offers = (await client.get("/api/broadcasts/O1/offers")).json()["offers"]
    assert {(o["assignee"]["type"], o["assignee"]["id"]) for o in offers} == {
        ("external", "P1"), ("internal", "C1"),
    }
    assert all("token" not in o for o in offers)

    first = await client.post("/api/broadcasts/O1/accept", json={"type": "external", "id": "P1"})
    second = await client.post("/api/broadcasts/O1/accept", json={"type": "internal", "id": "C1"})
    assert first.json()["outcome"] == "accepted"
    assert second.json()["outcome"] == "already_resolved"

    order = (await client.get("/api/orders/O1")).json()
    assert order["state"] == "assigned_external"
    assert order["assigned_partner_id"] == "P1"
    assert order["assigned_by"] == "broadcast"

    unknown = await client.post("/api/broadcasts/O1/accept", json={"type": "external", "id": "P2"})
    assert unknown.status_code == 404


@pytest.mark.asyncio
async def test_expire_sweep_with_nothing_due(client):
    resp = await client.post("/api/broadcasts/expire")
    assert resp.json() == {"expired": 0, "results": []}


@pytest.mark.asyncio
async def test_settings_upsert_by_key(client):
    first = await _configure(client, mode="auto")
    second = await _configure(client, mode="manual")
    assert first["id"] == second["id"]
    assert second["mode"] == "manual"

    patched = await client.patch(f"/api/admin/assignment-settings/{first['id']}", json={
        "mode": "broadcast", "broadcast_partner_count": 5,
    })
    assert patched.json()["broadcast_partner_count"] == 5

    listing = (await client.get("/api/admin/assignment-settings")).json()
    assert listing["total"] == 1

    assert (await client.delete(f"/api/admin/assignment-settings/{first['id']}")).status_code == 204
    assert (await client.delete(f"/api/admin/assignment-settings/{first['id']}")).status_code == 404


@pytest.mark.asyncio
async def test_settings_bulk_upsert(client):
    resp = await client.post("/api/admin/assignment-settings/bulk", json=[
        {"profession": "trocknung", "zip_prefix": None, "mode": "auto"},
        {"profession": "maler", "zip_prefix": "50", "mode": "broadcast", "fallback_behavior": "manual"},
    ])
    assert resp.json()["total"] == 2

    bad = await client.post("/api/admin/assignment-settings/bulk", json=[
        {"profession": "astronaut", "mode": "auto"},
    ])
    assert bad.status_code == 400


@pytest.mark.asyncio
async def test_routing_rule_validation_and_update(client):
    bad = await client.post("/api/admin/routing-rules", json={"zip_prefix": "41", "profession": "astronaut"})
    assert bad.status_code == 400
    bad_zip = await client.post("/api/admin/routing-rules", json={"zip_prefix": "4a", "profession": "maler"})
    assert bad_zip.status_code == 422

    rule = (await client.post("/api/admin/routing-rules", json={
        "zip_prefix": "50", "profession": "maler",
        "preferred_assignee": {"type": "internal", "id": "C1"},
    })).json()
    patched = (await client.patch(f"/api/admin/routing-rules/{rule['id']}", json={
        "priority": 2, "clear_preferred_assignee": True,
    })).json()
    assert patched["priority"] == 2
    assert patched["preferred_assignee"] is None

    assert (await client.get("/api/admin/routing-rules")).json()["total"] == 1
    assert (await client.delete(f"/api/admin/routing-rules/{rule['id']}")).status_code == 204


@pytest.mark.asyncio
async def test_broadcast_offers_announced_after_commit(client, monkeypatch):
    notifier = RecordingNotifier()
    monkeypatch.setattr(dependencies, "_notifier", notifier)
    await _configure(client, mode="broadcast")

    body = await _create_order(client)
    assert body["order"]["state"] == "broadcasting"
    assert sorted(assignee for _, assignee, _ in notifier.sent) == ["C1", "P1"]
    assert all(offer_id is not None for _, _, offer_id in notifier.sent)

    redispatch = await client.post("/api/orders/O1/dispatch")
    assert redispatch.json()["routing"]["reason"] == "broadcast_pending"
    assert len(notifier.sent) == 2


@pytest.mark.asyncio
async def test_timed_out_broadcast_is_rolled_back(client, monkeypatch):
    notifier = RecordingNotifier()
    monkeypatch.setattr(dependencies, "_notifier", notifier)
    monkeypatch.setattr(dependencies, "_routing_config", RoutingConfig(engine_timeout_seconds=0.2))
    original_create_many = SqlOfferRepository.create_many

    async def slow_create_many(self, offers):
        await asyncio.sleep(5)
        return await original_create_many(self, offers)

    monkeypatch.setattr(SqlOfferRepository, "create_many", slow_create_many)
    await _configure(client, mode="broadcast")

    body = await _create_order(client)
    assert body["routing"]["reason"] == "timeout"
    assert body["order"]["state"] == "unassigned"
    assert body["order"]["broadcast_expires_at"] is None
    assert (await client.get("/api/broadcasts/O1/offers")).json()["total"] == 0
    assert notifier.sent == []


@pytest.mark.asyncio
async def test_manual_assign_to_unknown_assignee(client):
    await _create_order(client)
    resp = await client.post("/api/admin/orders/O1/assign", json={
        "assignee": {"type": "internal", "id": "C404"}, "expected_assignee": None,
    })
    assert resp.status_code == 400
    order = (await client.get("/api/orders/O1")).json()
    assert order["state"] == "unassigned"


@pytest.mark.asyncio
async def test_storage_failure_maps_to_503(client, monkeypatch):
    async def unavailable(self):
        raise PersistenceFailure("connection refused")

    monkeypatch.setattr(SqlRoutingRuleRepository, "get_all", unavailable)
    resp = await client.get("/api/admin/routing-rules")
    assert resp.status_code == 503
    assert resp.json()["detail"] == "Storage temporarily unavailable"
