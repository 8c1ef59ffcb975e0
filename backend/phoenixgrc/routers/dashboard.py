"""
Dashboard API: /api/v1/dashboard

Read-only aggregates for the caller's organization.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from phoenixgrc.auth import CallerContext, get_caller
from phoenixgrc.config import Settings, get_settings
from phoenixgrc.database import get_session
from phoenixgrc.schemas.dashboard import ActivityItem, FrameworkComplianceItem, RiskMatrixCell
from phoenixgrc.services import dashboard as svc

router = APIRouter(prefix="/api/v1/dashboard", tags=["Dashboard"])


@router.get("/risk-matrix", response_model=list[RiskMatrixCell], summary="Risk count per probability x impact cell")
async def risk_matrix(
    caller: CallerContext = Depends(get_caller),
    s: AsyncSession = Depends(get_session),
):
    return await svc.risk_matrix(s, caller.organization_id)


@router.get(
    "/compliance-overview",
    response_model=list[FrameworkComplianceItem],
    summary="Average assessment score per framework",
)
async def compliance_overview(
    caller: CallerContext = Depends(get_caller),
    s: AsyncSession = Depends(get_session),
):
    return await svc.compliance_overview(s, caller.organization_id)


@router.get("/recent-activity", response_model=list[ActivityItem], summary="Latest risks and acceptance requests")
async def recent_activity(
    caller: CallerContext = Depends(get_caller),
    s: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
):
    return await svc.recent_activity(s, caller.organization_id, settings)
