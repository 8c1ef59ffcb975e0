"""Functional tests: risk register CRUD, risk level matrix and stakeholders."""
import pytest
from httpx import AsyncClient

from conftest import create_risk, headers_for
from phoenixgrc.models.risk import RiskImpact, RiskLevel, RiskProbability, compute_risk_level


# ═══ risk level matrix ═══

@pytest.mark.parametrize("impact,probability,expected", [
    (RiskImpact.LOW, RiskProbability.LOW, RiskLevel.LOW),
    (RiskImpact.HIGH, RiskProbability.LOW, RiskLevel.MODERATE),
    (RiskImpact.CRITICAL, RiskProbability.LOW, RiskLevel.HIGH),
    (RiskImpact.MEDIUM, RiskProbability.MEDIUM, RiskLevel.MODERATE),
    (RiskImpact.LOW, RiskProbability.HIGH, RiskLevel.MODERATE),
    (RiskImpact.CRITICAL, RiskProbability.HIGH, RiskLevel.EXTREME),
    (RiskImpact.HIGH, RiskProbability.CRITICAL, RiskLevel.EXTREME),
    (RiskImpact.MEDIUM, RiskProbability.CRITICAL, RiskLevel.HIGH),
])
def test_risk_matrix(impact, probability, expected):
    assert compute_risk_level(impact, probability) == expected


def test_risk_level_undefined_without_both_factors():
    assert compute_risk_level(None, RiskProbability.HIGH) == RiskLevel.UNDEFINED
    assert compute_risk_level(RiskImpact.HIGH, None) == RiskLevel.UNDEFINED


# ═══ CRUD ═══

@pytest.mark.asyncio
async def test_create_risk_defaults_owner_to_creator(client: AsyncClient, seed, notifier):
    data = await create_risk(client, seed.member)
    assert data["owner_id"] == seed.member.id
    assert data["owner_name"] == "Uma"
    assert data["organization_id"] == seed.org.id
    assert data["status"] == "open"
    assert data["risk_level"] == "high"
    assert data["is_active"] is True

    assert [e[1] for e in notifier.events] == ["risk_created"]
    assert notifier.events[0][0] == seed.org.id
    assert f"/risks/{data['id']}" in notifier.events[0][2]
    assert notifier.subjects_for(seed.member.id) == ["New Risk Created: 'Unpatched SCADA gateway'"]


@pytest.mark.asyncio
async def test_create_risk_rejects_accepted_status(client: AsyncClient, seed):
    r = await client.post(
        "/api/v1/risks",
        json={"title": "Shortcut", "status": "accepted"},
        headers=headers_for(seed.manager),
    )
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_create_risk_rejects_unknown_enum_and_short_title(client: AsyncClient, seed):
    h = headers_for(seed.manager)
    r = await client.post("/api/v1/risks", json={"title": "Ok title", "impact": "huge"}, headers=h)
    assert r.status_code == 422
    r = await client.post("/api/v1/risks", json={"title": "ab"}, headers=h)
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_create_risk_owner_from_other_org_rejected(client: AsyncClient, seed):
    r = await client.post(
        "/api/v1/risks",
        json={"title": "Vendor lock-in", "owner_id": seed.outsider.id},
        headers=headers_for(seed.manager),
    )
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_risk_of_other_org_is_not_found(client: AsyncClient, seed):
    risk = await create_risk(client, seed.manager)
    r = await client.get(f"/api/v1/risks/{risk['id']}", headers=headers_for(seed.outsider))
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_list_risks_paginated_and_filtered(client: AsyncClient, seed):
    for i in range(12):
        await create_risk(client, seed.manager, title=f"Risk number {i}", impact="low" if i % 2 else "critical")

    h = headers_for(seed.manager)
    r = await client.get("/api/v1/risks", headers=h)
    data = r.json()
    assert data["total_items"] == 12
    assert data["total_pages"] == 2
    assert data["page"] == 1
    assert data["page_size"] == 10
    assert len(data["items"]) == 10

    r = await client.get("/api/v1/risks", params={"page": 2, "page_size": 500}, headers=h)
    data = r.json()
    assert data["page_size"] == 100
    assert data["page"] == 2
    assert data["items"] == []

    r = await client.get("/api/v1/risks", params={"impact": "critical", "page_size": 0}, headers=h)
    data = r.json()
    assert data["total_items"] == 6
    assert data["page_size"] == 10
    assert all(item["impact"] == "critical" for item in data["items"])

    r = await client.get("/api/v1/risks", headers=headers_for(seed.outsider))
    assert r.json()["total_items"] == 0


@pytest.mark.asyncio
async def test_update_recomputes_level_and_notifies_status_change(client: AsyncClient, seed, notifier):
    risk = await create_risk(client, seed.owner)
    notifier.events.clear()

    r = await client.put(
        f"/api/v1/risks/{risk['id']}",
        json={"impact": "critical", "probability": "critical", "status": "in_progress"},
        headers=headers_for(seed.owner),
    )
    assert r.status_code == 200
    data = r.json()
    assert data["risk_level"] == "extreme"
    assert data["status"] == "in_progress"
    assert [e[1] for e in notifier.events] == ["risk_status_changed"]
    assert "open to in_progress" in notifier.events[0][2]


@pytest.mark.asyncio
async def test_update_clearing_probability_makes_level_undefined(client: AsyncClient, seed):
    risk = await create_risk(client, seed.owner)
    r = await client.put(
        f"/api/v1/risks/{risk['id']}", json={"probability": None}, headers=headers_for(seed.owner),
    )
    assert r.json()["risk_level"] == "undefined"


@pytest.mark.asyncio
async def test_update_permissions(client: AsyncClient, seed):
    risk = await create_risk(client, seed.owner)
    url = f"/api/v1/risks/{risk['id']}"

    r = await client.put(url, json={"title": "Not mine to edit"}, headers=headers_for(seed.member))
    assert r.status_code == 403

    r = await client.put(url, json={"owner_id": seed.member.id}, headers=headers_for(seed.owner))
    assert r.status_code == 403

    r = await client.put(url, json={"owner_id": seed.member.id}, headers=headers_for(seed.manager))
    assert r.status_code == 200
    assert r.json()["owner_id"] == seed.member.id

    r = await client.put(url, json={"status": "accepted"}, headers=headers_for(seed.admin))
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_archive_hides_risk_from_default_list(client: AsyncClient, seed):
    risk = await create_risk(client, seed.manager)
    h = headers_for(seed.manager)

    r = await client.delete(f"/api/v1/risks/{risk['id']}", headers=h)
    assert r.status_code == 200
    assert r.json() == {"status": "archived", "id": risk["id"]}

    assert (await client.get("/api/v1/risks", headers=h)).json()["total_items"] == 0
    r = await client.get("/api/v1/risks", params={"include_archived": True}, headers=h)
    assert r.json()["items"][0]["is_active"] is False

    r = await client.put(f"/api/v1/risks/{risk['id']}", json={"title": "Revived"}, headers=h)
    assert r.status_code == 404


# ═══ stakeholders ═══

@pytest.mark.asyncio
async def test_stakeholder_lifecycle(client: AsyncClient, seed):
    risk = await create_risk(client, seed.manager)
    url = f"/api/v1/risks/{risk['id']}/stakeholders"
    h = headers_for(seed.manager)

    r = await client.post(url, json={"user_id": seed.member.id}, headers=h)
    assert r.status_code == 201

    r = await client.post(url, json={"user_id": seed.member.id}, headers=h)
    assert r.status_code == 200
    assert r.json()["message"] == "Stakeholder association already exists."

    r = await client.get(url, headers=h)
    assert [s["user_id"] for s in r.json()] == [seed.member.id]

    r = await client.delete(f"{url}/{seed.member.id}", headers=h)
    assert r.status_code == 200
    r = await client.delete(f"{url}/{seed.member.id}", headers=h)
    assert r.status_code == 404
    assert (await client.get(url, headers=h)).json() == []


@pytest.mark.asyncio
async def test_stakeholder_must_belong_to_org(client: AsyncClient, seed):
    risk = await create_risk(client, seed.manager)
    r = await client.post(
        f"/api/v1/risks/{risk['id']}/stakeholders",
        json={"user_id": seed.outsider.id},
        headers=headers_for(seed.manager),
    )
    assert r.status_code == 404
