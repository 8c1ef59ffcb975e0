"""
Risk acceptance workflow: /api/v1/risks/{risk_id}/...

Admins and managers submit a risk; its owner approves or rejects.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from phoenixgrc.auth import CallerContext, get_caller
from phoenixgrc.config import Settings, get_settings
from phoenixgrc.database import get_session
from phoenixgrc.schemas.approval import ApprovalWorkflowOut, DecisionPayload
from phoenixgrc.schemas.common import Page, clamp_paging, page_count
from phoenixgrc.services.approval_workflow import ApprovalWorkflowService
from phoenixgrc.services.notifications import NotificationSink, get_notifier

router = APIRouter(prefix="/api/v1/risks", tags=["Risk acceptance"])


def get_workflow_service(
    s: AsyncSession = Depends(get_session),
    notifier: NotificationSink = Depends(get_notifier),
    settings: Settings = Depends(get_settings),
) -> ApprovalWorkflowService:
    return ApprovalWorkflowService(s, notifier, settings)


@router.post(
    "/{risk_id}/submit-acceptance",
    response_model=ApprovalWorkflowOut,
    status_code=201,
    summary="Submit risk for acceptance",
)
async def submit_acceptance(
    risk_id: int,
    caller: CallerContext = Depends(get_caller),
    svc: ApprovalWorkflowService = Depends(get_workflow_service),
):
    return await svc.submit(risk_id, caller)


@router.post(
    "/{risk_id}/approval/{approval_id}/decide",
    response_model=ApprovalWorkflowOut,
    summary="Approve or reject an acceptance request",
)
async def decide_acceptance(
    risk_id: int,
    approval_id: int,
    body: DecisionPayload,
    caller: CallerContext = Depends(get_caller),
    svc: ApprovalWorkflowService = Depends(get_workflow_service),
):
    return await svc.decide(risk_id, approval_id, caller, body.status, body.comments)


@router.get(
    "/{risk_id}/approval-history",
    response_model=Page[ApprovalWorkflowOut],
    summary="Acceptance history, newest first",
)
async def approval_history(
    risk_id: int,
    page: int | None = Query(None),
    page_size: int | None = Query(None),
    caller: CallerContext = Depends(get_caller),
    svc: ApprovalWorkflowService = Depends(get_workflow_service),
):
    page, page_size = clamp_paging(page, page_size)
    items, total = await svc.history(risk_id, caller, page, page_size)
    return Page[ApprovalWorkflowOut](
        items=[ApprovalWorkflowOut.model_validate(wf) for wf in items],
        total_items=total,
        total_pages=page_count(total, page_size),
        page=page,
        page_size=page_size,
    )
