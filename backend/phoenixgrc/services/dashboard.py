"""
Dashboard aggregation service.

Every function is scoped to one organization and reads only; archived risks
are left out of the matrix but still show up in the activity feed.
"""
from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from phoenixgrc.config import Settings
from phoenixgrc.models.audit import AuditAssessment, AuditControl, AuditFramework
from phoenixgrc.models.risk import ApprovalWorkflow, Risk
from phoenixgrc.services.notifications import risk_link

RECENT_PER_SOURCE = 5
RECENT_LIMIT = 10


async def risk_matrix(s: AsyncSession, organization_id: int) -> list[dict]:
    """Active risks counted per (probability, impact) cell; empty cells omitted."""
    q = (
        select(Risk.probability, Risk.impact, func.count().label("cnt"))
        .where(
            Risk.organization_id == organization_id,
            Risk.is_active.is_(True),
            Risk.probability.is_not(None),
            Risk.impact.is_not(None),
        )
        .group_by(Risk.probability, Risk.impact)
    )
    rows = (await s.execute(q)).all()
    return [{"probability": r.probability, "impact": r.impact, "count": r.cnt} for r in rows]


async def compliance_overview(s: AsyncSession, organization_id: int) -> list[dict]:
    """Mean assessment score per framework; 0.0 for frameworks the organization never assessed."""
    q = (
        select(
            AuditFramework.id,
            AuditFramework.name,
            func.coalesce(func.avg(AuditAssessment.score), 0).label("score"),
        )
        .outerjoin(AuditControl, AuditControl.framework_id == AuditFramework.id)
        .outerjoin(
            AuditAssessment,
            and_(
                AuditAssessment.audit_control_id == AuditControl.id,
                AuditAssessment.organization_id == organization_id,
            ),
        )
        .group_by(AuditFramework.id, AuditFramework.name)
        .order_by(AuditFramework.name)
    )
    rows = (await s.execute(q)).all()
    return [
        {"framework_id": r.id, "framework_name": r.name, "score": round(float(r.score), 2)}
        for r in rows
    ]


async def recent_activity(s: AsyncSession, organization_id: int, settings: Settings) -> list[dict]:
    """Newest risks and acceptance requests, merged newest first."""
    risks = (await s.execute(
        select(Risk)
        .where(Risk.organization_id == organization_id)
        .order_by(Risk.created_at.desc(), Risk.id.desc())
        .limit(RECENT_PER_SOURCE)
    )).scalars().all()
    requests = (await s.execute(
        select(ApprovalWorkflow, Risk.title)
        .join(Risk, ApprovalWorkflow.risk_id == Risk.id)
        .where(Risk.organization_id == organization_id)
        .order_by(ApprovalWorkflow.updated_at.desc(), ApprovalWorkflow.id.desc())
        .limit(RECENT_PER_SOURCE)
    )).all()

    items = [
        {
            "type": "risk",
            "title": r.title,
            "timestamp": r.created_at,
            "link": risk_link(settings, r.id),
        }
        for r in risks
    ]
    items += [
        {
            "type": "acceptance_request",
            "title": f"Acceptance {wf.status.value}: '{title}'",
            "timestamp": wf.updated_at,
            "link": risk_link(settings, wf.risk_id),
        }
        for wf, title in requests
    ]
    items.sort(key=lambda item: item["timestamp"], reverse=True)
    return items[:RECENT_LIMIT]
