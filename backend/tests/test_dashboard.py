"""Dashboard aggregates: risk matrix, compliance overview and recent activity."""
import pytest
from httpx import AsyncClient

from conftest import create_risk, headers_for
from phoenixgrc.models.audit import AuditControl, AuditFramework


@pytest.mark.asyncio
async def test_risk_matrix_counts_active_org_risks(client: AsyncClient, seed):
    await create_risk(client, seed.manager, impact="high", probability="medium")
    await create_risk(client, seed.manager, impact="high", probability="medium", title="Second gateway")
    await create_risk(client, seed.manager, impact="low", probability="critical", title="Badge reader")
    archived = await create_risk(client, seed.manager, impact="low", probability="critical", title="Old VPN")
    await client.delete(f"/api/v1/risks/{archived['id']}", headers=headers_for(seed.manager))
    await create_risk(client, seed.manager, impact=None, probability=None, title="Unrated")
    await create_risk(client, seed.outsider, impact="high", probability="medium", title="Foreign")

    r = await client.get("/api/v1/dashboard/risk-matrix", headers=headers_for(seed.member))
    assert r.status_code == 200
    cells = {(c["probability"], c["impact"]): c["count"] for c in r.json()}
    assert cells == {("medium", "high"): 2, ("critical", "low"): 1}


@pytest.mark.asyncio
async def test_compliance_overview_averages_per_framework(client: AsyncClient, db, seed):
    csf = AuditFramework(name="NIST CSF 2.0")
    iso = AuditFramework(name="ISO 27001")
    db.add_all([csf, iso])
    await db.flush()
    c1 = AuditControl(framework_id=csf.id, control_id="ID.AM-1", family="Identify (ID.AM)")
    c2 = AuditControl(framework_id=csf.id, control_id="PR.AC-1", family="Protect (PR.AC)")
    db.add_all([c1, c2, AuditControl(framework_id=iso.id, control_id="A.5.1")])
    await db.commit()

    h = headers_for(seed.member)
    await client.post("/api/v1/audit/assessments", json={"audit_control_id": c1.id, "status": "conformant"}, headers=h)
    await client.post(
        "/api/v1/audit/assessments", json={"audit_control_id": c2.id, "status": "partially_conformant"}, headers=h,
    )
    # another organization's assessment must not leak into the average
    await client.post(
        "/api/v1/audit/assessments",
        json={"audit_control_id": c1.id, "status": "non_conformant"},
        headers=headers_for(seed.outsider),
    )

    r = await client.get("/api/v1/dashboard/compliance-overview", headers=h)
    assert r.json() == [
        {"framework_id": iso.id, "framework_name": "ISO 27001", "score": 0.0},
        {"framework_id": csf.id, "framework_name": "NIST CSF 2.0", "score": 75.0},
    ]


@pytest.mark.asyncio
async def test_recent_activity_merges_risks_and_requests(client: AsyncClient, seed):
    risk = await create_risk(client, seed.manager, owner_id=seed.owner.id)
    r = await client.post(f"/api/v1/risks/{risk['id']}/submit-acceptance", headers=headers_for(seed.manager))
    assert r.status_code == 201
    await create_risk(client, seed.outsider, title="Foreign")

    r = await client.get("/api/v1/dashboard/recent-activity", headers=headers_for(seed.member))
    items = r.json()
    assert {i["type"] for i in items} == {"risk", "acceptance_request"}
    assert [i["title"] for i in items if i["type"] == "risk"] == ["Unpatched SCADA gateway"]
    request = next(i for i in items if i["type"] == "acceptance_request")
    assert request["title"] == "Acceptance pending: 'Unpatched SCADA gateway'"
    assert request["link"].endswith(f"/risks/{risk['id']}")
    timestamps = [i["timestamp"] for i in items]
    assert timestamps == sorted(timestamps, reverse=True)
