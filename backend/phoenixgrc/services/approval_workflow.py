"""
Risk-acceptance approval workflow.

State machine:  pending -> approved | rejected   (terminal states never change)

* One pending request per risk, guarded by a partial unique index; a
  submission that loses a race against another one surfaces as ``Conflict``.
* A decision updates the workflow with ``UPDATE ... WHERE status = 'pending'``
  and, when approved, moves the risk to ``accepted`` in the same transaction.
* Notifications go out only after commit.
"""
import logging
from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from phoenixgrc.auth import CallerContext
from phoenixgrc.config import Settings
from phoenixgrc.errors import Conflict, Forbidden, InvalidInput, InvalidState, NotFound
from phoenixgrc.models.risk import ApprovalStatus, ApprovalWorkflow, Risk, RiskStatus
from phoenixgrc.models.webhook import WebhookEventType
from phoenixgrc.services.notifications import NotificationSink, risk_link

logger = logging.getLogger(__name__)


class ApprovalWorkflowService:
    def __init__(self, session: AsyncSession, notifier: NotificationSink, settings: Settings):
        self.s = session
        self.notifier = notifier
        self.settings = settings

    async def _org_risk(self, risk_id: int, caller: CallerContext, *, include_archived: bool = False) -> Risk:
        risk = await self.s.get(Risk, risk_id)
        if risk is None or risk.organization_id != caller.organization_id:
            raise NotFound("Risk not found")
        if not include_archived and not risk.is_active:
            raise NotFound("Risk not found")
        return risk

    async def _pending_for(self, risk_id: int) -> ApprovalWorkflow | None:
        q = select(ApprovalWorkflow).where(
            ApprovalWorkflow.risk_id == risk_id,
            ApprovalWorkflow.status == ApprovalStatus.PENDING,
        )
        return (await self.s.execute(q)).scalar_one_or_none()

    # ═══ SUBMIT ═══

    async def submit(self, risk_id: int, caller: CallerContext) -> ApprovalWorkflow:
        if not caller.is_admin_or_manager:
            raise Forbidden("Only admins and managers can submit a risk for acceptance")

        risk = await self._org_risk(risk_id, caller)
        if risk.owner_id is None:
            raise InvalidState("Risk must have an owner before it can be submitted for acceptance")
        if await self._pending_for(risk.id) is not None:
            raise Conflict("An acceptance request for this risk is already pending")

        wf = ApprovalWorkflow(
            risk_id=risk.id,
            requester_id=caller.user_id,
            approver_id=risk.owner_id,
            status=ApprovalStatus.PENDING,
        )
        self.s.add(wf)
        try:
            await self.s.commit()
        except IntegrityError:
            await self.s.rollback()
            logger.info("Concurrent acceptance submission for risk %s lost the race", risk_id)
            raise Conflict("An acceptance request for this risk is already pending")

        logger.info("Acceptance request %s created for risk %s by user %s", wf.id, risk.id, caller.user_id)
        self.notifier.notify_user(
            wf.approver_id,
            f"Action Required: Acceptance Approval for Risk '{risk.title}'",
            f"You have been asked to approve the acceptance of risk '{risk.title}'.\n"
            f"Review it at {risk_link(self.settings, risk.id)}",
        )
        return wf

    # ═══ DECIDE ═══

    async def decide(
        self,
        risk_id: int,
        approval_id: int,
        caller: CallerContext,
        decision: ApprovalStatus,
        comments: str | None = None,
    ) -> ApprovalWorkflow:
        if decision not in (ApprovalStatus.APPROVED, ApprovalStatus.REJECTED):
            raise InvalidInput("Decision must be approved or rejected")

        wf = await self.s.get(ApprovalWorkflow, approval_id)
        if wf is None or wf.risk_id != risk_id:
            raise NotFound("Approval workflow not found")
        # archived risks keep their pending request decidable
        risk = await self._org_risk(risk_id, caller, include_archived=True)
        if wf.approver_id != caller.user_id:
            raise Forbidden("Only the designated approver can decide this request")
        if wf.status != ApprovalStatus.PENDING:
            raise Conflict(f"Approval workflow already decided ({wf.status.value})")

        now = datetime.utcnow()
        result = await self.s.execute(
            update(ApprovalWorkflow)
            .where(
                ApprovalWorkflow.id == wf.id,
                ApprovalWorkflow.status == ApprovalStatus.PENDING,
            )
            .values(status=decision, comments=comments, decided_at=now, updated_at=now)
        )
        if result.rowcount != 1:
            await self.s.rollback()
            raise Conflict("Approval workflow already decided")

        old_status = risk.status
        if decision == ApprovalStatus.APPROVED:
            risk.status = RiskStatus.ACCEPTED
        await self.s.commit()
        await self.s.refresh(wf)

        logger.info("Acceptance request %s for risk %s %s by user %s", wf.id, risk.id, decision.value, caller.user_id)
        self._notify_decision(risk, wf, old_status)
        return wf

    def _notify_decision(self, risk: Risk, wf: ApprovalWorkflow, old_status: RiskStatus) -> None:
        link = risk_link(self.settings, risk.id)
        if wf.status == ApprovalStatus.APPROVED:
            self.notifier.notify_org_event(
                risk.organization_id,
                WebhookEventType.RISK_STATUS_CHANGED,
                f"Risk '{risk.title}' status changed from {old_status.value} to "
                f"{RiskStatus.ACCEPTED.value}. {link}",
            )
            self.notifier.notify_user(
                risk.owner_id,
                f"Risk '{risk.title}' Accepted",
                f"The acceptance of risk '{risk.title}' was approved.\n{link}",
            )
            if wf.requester_id != risk.owner_id:
                self.notifier.notify_user(
                    wf.requester_id,
                    f"Your acceptance request for Risk '{risk.title}' was Approved",
                    f"Comments: {wf.comments or '-'}\n{link}",
                )
        else:
            self.notifier.notify_user(
                wf.requester_id,
                f"Your acceptance request for Risk '{risk.title}' was Rejected",
                f"Comments: {wf.comments or '-'}\n{link}",
            )

    # ═══ HISTORY ═══

    async def history(
        self, risk_id: int, caller: CallerContext, page: int, page_size: int,
    ) -> tuple[list[ApprovalWorkflow], int]:
        await self._org_risk(risk_id, caller, include_archived=True)

        total = (await self.s.execute(
            select(func.count()).select_from(ApprovalWorkflow).where(ApprovalWorkflow.risk_id == risk_id)
        )).scalar_one()
        q = (
            select(ApprovalWorkflow)
            .where(ApprovalWorkflow.risk_id == risk_id)
            .order_by(ApprovalWorkflow.created_at.desc(), ApprovalWorkflow.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        items = (await self.s.execute(q)).scalars().all()
        return list(items), total
