"""C2M2 reference data and organization webhook configuration."""
import pytest
from httpx import AsyncClient

from conftest import headers_for
from phoenixgrc.models.c2m2 import C2M2Domain, C2M2Practice


@pytest.mark.asyncio
async def test_c2m2_domains_and_practices_ordered_by_code(client: AsyncClient, db, seed):
    risk = C2M2Domain(name="Risk Management", code="RISK")
    asset = C2M2Domain(name="Asset, Change, and Configuration Management", code="ASSET")
    db.add_all([risk, asset])
    await db.flush()
    db.add_all([
        C2M2Practice(domain_id=risk.id, code="RISK-2a", description="Prioritize", target_mil=2),
        C2M2Practice(domain_id=risk.id, code="RISK-1a", description="Identify", target_mil=1),
    ])
    await db.commit()

    h = headers_for(seed.member)
    r = await client.get("/api/v1/c2m2/domains", headers=h)
    assert [d["code"] for d in r.json()] == ["ASSET", "RISK"]

    r = await client.get(f"/api/v1/c2m2/domains/{risk.id}/practices", headers=h)
    practices = r.json()
    assert [p["code"] for p in practices] == ["RISK-1a", "RISK-2a"]
    assert practices[0]["target_mil"] == 1

    r = await client.get("/api/v1/c2m2/domains/999/practices", headers=h)
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_webhooks_admin_only(client: AsyncClient, seed):
    body = {"name": "Ops chat", "url": "https://chat.test/hook", "event_types": ["risk_created"]}
    r = await client.post("/api/v1/webhooks", json=body, headers=headers_for(seed.manager))
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_webhook_lifecycle(client: AsyncClient, seed):
    h = headers_for(seed.admin)
    body = {
        "name": "Ops chat",
        "url": "https://chat.test/hook",
        "event_types": ["risk_status_changed", "risk_created", "risk_created"],
    }
    r = await client.post("/api/v1/webhooks", json=body, headers=h)
    assert r.status_code == 201
    hook = r.json()
    assert hook["organization_id"] == seed.org.id
    assert hook["event_types"] == ["risk_created", "risk_status_changed"]

    r = await client.post("/api/v1/webhooks", json={**body, "event_types": ["risk_deleted"]}, headers=h)
    assert r.status_code == 422

    assert [w["id"] for w in (await client.get("/api/v1/webhooks", headers=h)).json()] == [hook["id"]]

    outsider_admin = {**headers_for(seed.outsider), "X-User-Role": "admin"}
    r = await client.delete(f"/api/v1/webhooks/{hook['id']}", headers=outsider_admin)
    assert r.status_code == 404

    r = await client.delete(f"/api/v1/webhooks/{hook['id']}", headers=h)
    assert r.status_code == 204
    assert (await client.get("/api/v1/webhooks", headers=h)).json() == []


@pytest.mark.asyncio
async def test_webhook_get_update_and_test_send(client: AsyncClient, seed, notifier):
    h = headers_for(seed.admin)
    body = {"name": "Ops chat", "url": "https://chat.test/hook", "event_types": ["risk_created"]}
    hook = (await client.post("/api/v1/webhooks", json=body, headers=h)).json()

    r = await client.get(f"/api/v1/webhooks/{hook['id']}", headers=h)
    assert r.status_code == 200
    assert r.json()["name"] == "Ops chat"

    update = {"name": "Risk room", "url": "https://chat.test/risk", "event_types": ["risk_status_changed"]}
    r = await client.put(f"/api/v1/webhooks/{hook['id']}", json=update, headers=h)
    assert r.status_code == 200
    data = r.json()
    assert data["name"] == "Risk room"
    assert data["url"] == "https://chat.test/risk"
    assert data["event_types"] == ["risk_status_changed"]
    assert data["is_active"] is True

    r = await client.put(f"/api/v1/webhooks/{hook['id']}", json={**update, "is_active": False}, headers=h)
    assert r.json()["is_active"] is False

    r = await client.post(f"/api/v1/webhooks/{hook['id']}/test", headers=h)
    assert r.status_code == 200
    assert [url for url, _ in notifier.webhooks] == ["https://chat.test/risk"]
    assert "Risk room" in notifier.webhooks[0][1]


@pytest.mark.asyncio
async def test_webhook_of_other_org_not_found(client: AsyncClient, seed, notifier):
    h = headers_for(seed.admin)
    body = {"name": "Ops chat", "url": "https://chat.test/hook", "event_types": ["risk_created"]}
    hook = (await client.post("/api/v1/webhooks", json=body, headers=h)).json()

    outsider_admin = {**headers_for(seed.outsider), "X-User-Role": "admin"}
    assert (await client.get(f"/api/v1/webhooks/{hook['id']}", headers=outsider_admin)).status_code == 404
    assert (await client.put(f"/api/v1/webhooks/{hook['id']}", json=body, headers=outsider_admin)).status_code == 404
    assert (await client.post(f"/api/v1/webhooks/{hook['id']}/test", headers=outsider_admin)).status_code == 404
    assert notifier.webhooks == []
