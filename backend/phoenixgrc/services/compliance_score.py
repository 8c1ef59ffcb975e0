"""
Compliance score: the share of a framework an organization satisfies.

Every control with an assessment counts as evaluated and contributes its score
(0..100). ``not_applicable`` controls are evaluated but only tallied in their
own counter. The score is the mean over evaluated controls, 0.0 when nothing
has been evaluated.
"""
from collections.abc import Iterable
from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from phoenixgrc.auth import CallerContext
from phoenixgrc.errors import Forbidden, NotFound
from phoenixgrc.models.audit import AuditAssessment, AuditControl, AuditFramework, ControlStatus, default_score


@dataclass
class ComplianceTally:
    total_controls: int = 0
    evaluated_controls: int = 0
    conformant_controls: int = 0
    partially_conformant_controls: int = 0
    non_conformant_controls: int = 0
    not_applicable_controls: int = 0
    score_sum: int = 0

    @property
    def compliance_score(self) -> float:
        if not self.evaluated_controls:
            return 0.0
        return round(self.score_sum / self.evaluated_controls, 2)


def compute_compliance(total_controls: int, assessments: Iterable[tuple[ControlStatus, int | None]]) -> ComplianceTally:
    """Aggregate ``(status, score)`` pairs of the assessed controls."""
    tally = ComplianceTally(total_controls=total_controls)
    for status, score in assessments:
        status = ControlStatus(status)
        tally.evaluated_controls += 1
        tally.score_sum += score if score is not None else default_score(status)
        if status == ControlStatus.CONFORMANT:
            tally.conformant_controls += 1
        elif status == ControlStatus.PARTIALLY_CONFORMANT:
            tally.partially_conformant_controls += 1
        elif status == ControlStatus.NON_CONFORMANT:
            tally.non_conformant_controls += 1
        else:
            tally.not_applicable_controls += 1
    return tally


async def load_org_framework(
    s: AsyncSession, organization_id: int, framework_id: int, caller: CallerContext,
) -> AuditFramework:
    """Authorize the path organization and resolve the framework."""
    if organization_id != caller.organization_id:
        raise Forbidden("Access to another organization's data is not allowed")
    framework = await s.get(AuditFramework, framework_id)
    if framework is None:
        raise NotFound("Audit framework not found")
    return framework


async def compliance_score(
    s: AsyncSession, organization_id: int, framework_id: int, caller: CallerContext,
) -> dict:
    framework = await load_org_framework(s, organization_id, framework_id, caller)

    total = (await s.execute(
        select(func.count()).select_from(AuditControl).where(AuditControl.framework_id == framework_id)
    )).scalar_one()
    rows = (await s.execute(
        select(AuditAssessment.status, AuditAssessment.score)
        .join(AuditControl, AuditAssessment.audit_control_id == AuditControl.id)
        .where(
            AuditControl.framework_id == framework_id,
            AuditAssessment.organization_id == organization_id,
        )
    )).all()

    tally = compute_compliance(total, rows)
    return {
        "framework_id": framework.id,
        "framework_name": framework.name,
        "organization_id": organization_id,
        "compliance_score": tally.compliance_score,
        "total_controls": tally.total_controls,
        "evaluated_controls": tally.evaluated_controls,
        "conformant_controls": tally.conformant_controls,
        "partially_conformant_controls": tally.partially_conformant_controls,
        "non_conformant_controls": tally.non_conformant_controls,
        "not_applicable_controls": tally.not_applicable_controls,
    }
