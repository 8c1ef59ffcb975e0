"""
Audit frameworks, assessments and scores: /api/v1/audit
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from phoenixgrc.auth import CallerContext, get_caller
from phoenixgrc.database import get_session
from phoenixgrc.errors import NotFound
from phoenixgrc.models.audit import AuditControl, AuditFramework
from phoenixgrc.schemas.audit import (
    AssessmentOut, AssessmentUpsert, ComplianceScoreOut, ControlOut,
    ControlWithAssessmentOut, FrameworkOut, MaturitySummaryOut,
)
from phoenixgrc.schemas.common import MessageOut, Page, clamp_paging, page_count
from phoenixgrc.services import assessment as assessment_svc
from phoenixgrc.services.compliance_score import compliance_score
from phoenixgrc.services.maturity import maturity_summary, practice_catalog

router = APIRouter(prefix="/api/v1/audit", tags=["Audit"])


async def _get_framework(s: AsyncSession, framework_id: int) -> AuditFramework:
    fw = await s.get(AuditFramework, framework_id)
    if not fw:
        raise NotFound("Audit framework not found")
    return fw


# ═══════════════════ FRAMEWORKS ═══════════════════

@router.get("/frameworks", response_model=list[FrameworkOut], summary="List audit frameworks")
async def list_frameworks(
    caller: CallerContext = Depends(get_caller),
    s: AsyncSession = Depends(get_session),
):
    q = select(AuditFramework).order_by(AuditFramework.name)
    return (await s.execute(q)).scalars().all()


@router.get(
    "/frameworks/{framework_id}/control-families",
    response_model=list[str],
    summary="Control families of a framework",
)
async def list_control_families(
    framework_id: int,
    caller: CallerContext = Depends(get_caller),
    s: AsyncSession = Depends(get_session),
):
    await _get_framework(s, framework_id)
    q = (
        select(AuditControl.family)
        .where(AuditControl.framework_id == framework_id, AuditControl.family.is_not(None))
        .distinct()
        .order_by(AuditControl.family)
    )
    return (await s.execute(q)).scalars().all()


@router.get(
    "/frameworks/{framework_id}/controls",
    response_model=list[ControlWithAssessmentOut],
    summary="Framework controls with the caller's assessment",
)
async def list_controls(
    framework_id: int,
    family: str | None = Query(None),
    caller: CallerContext = Depends(get_caller),
    s: AsyncSession = Depends(get_session),
):
    await _get_framework(s, framework_id)
    q = select(AuditControl).where(AuditControl.framework_id == framework_id)
    if family is not None:
        q = q.where(AuditControl.family == family)
    controls = (await s.execute(q.order_by(AuditControl.control_id))).scalars().all()

    by_control = await assessment_svc.assessments_by_control(
        s, caller.organization_id, [c.id for c in controls],
    )
    catalog = await practice_catalog(s) if by_control else {}
    out = []
    for c in controls:
        a = by_control.get(c.id)
        out.append(ControlWithAssessmentOut(
            **ControlOut.model_validate(c).model_dump(),
            assessment=AssessmentOut(**assessment_svc.assessment_out(a, catalog)) if a else None,
        ))
    return out


# ═══════════════════ ASSESSMENTS ═══════════════════

@router.post("/assessments", response_model=AssessmentOut, summary="Create or update a control assessment")
async def upsert_assessment(
    body: AssessmentUpsert,
    caller: CallerContext = Depends(get_caller),
    s: AsyncSession = Depends(get_session),
):
    a = await assessment_svc.upsert_assessment(s, caller, body)
    return assessment_svc.assessment_out(a, await practice_catalog(s))


@router.get("/assessments/control/{control_id}", response_model=AssessmentOut, summary="Assessment of one control")
async def get_assessment_for_control(
    control_id: int,
    caller: CallerContext = Depends(get_caller),
    s: AsyncSession = Depends(get_session),
):
    a = await assessment_svc.get_for_control(s, caller, control_id)
    return assessment_svc.assessment_out(a, await practice_catalog(s))


@router.delete("/assessments/{assessment_id}/evidence", response_model=MessageOut, summary="Clear assessment evidence")
async def delete_evidence(
    assessment_id: int,
    caller: CallerContext = Depends(get_caller),
    s: AsyncSession = Depends(get_session),
):
    return MessageOut(message=await assessment_svc.clear_evidence(s, caller, assessment_id))


@router.get(
    "/organizations/{org_id}/frameworks/{framework_id}/assessments",
    response_model=Page[AssessmentOut],
    summary="Organization assessments for a framework",
)
async def list_org_assessments(
    org_id: int,
    framework_id: int,
    page: int | None = Query(None),
    page_size: int | None = Query(None),
    caller: CallerContext = Depends(get_caller),
    s: AsyncSession = Depends(get_session),
):
    page, page_size = clamp_paging(page, page_size)
    items, total = await assessment_svc.list_for_framework(s, caller, org_id, framework_id, page, page_size)
    catalog = await practice_catalog(s)
    return Page[AssessmentOut](
        items=[AssessmentOut(**assessment_svc.assessment_out(a, catalog)) for a in items],
        total_items=total,
        total_pages=page_count(total, page_size),
        page=page,
        page_size=page_size,
    )


# ═══════════════════ SCORES ═══════════════════

@router.get(
    "/organizations/{org_id}/frameworks/{framework_id}/compliance-score",
    response_model=ComplianceScoreOut,
    summary="Compliance score",
)
async def get_compliance_score(
    org_id: int,
    framework_id: int,
    caller: CallerContext = Depends(get_caller),
    s: AsyncSession = Depends(get_session),
):
    return await compliance_score(s, org_id, framework_id, caller)


@router.get(
    "/organizations/{org_id}/frameworks/{framework_id}/c2m2-maturity-summary",
    response_model=MaturitySummaryOut,
    summary="C2M2 maturity per NIST function",
)
async def get_maturity_summary(
    org_id: int,
    framework_id: int,
    caller: CallerContext = Depends(get_caller),
    s: AsyncSession = Depends(get_session),
):
    return await maturity_summary(s, org_id, framework_id, caller)
